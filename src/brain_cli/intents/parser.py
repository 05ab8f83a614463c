"""Deterministic classification of console input into typed commands.

Rules are tried in ascending priority and the first match wins. Several rules
overlap on purpose (a bare ``status`` is a git status before it could be
anything else), so priorities must stay in declaration order. Priority blocks
by family:

    100  file operations
    200  version control
    300  codebase analysis
    400  server management
    500  explicit query prefixes (``query:``, ``ask:``)
    600  implicit questions
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable

from brain_cli.intents.commands import (
    AnalyzeProject,
    Command,
    ConnectServer,
    CreateDirectory,
    EditFile,
    ExplainCodebase,
    Family,
    FindDefinition,
    FindReferences,
    GetProjectStructure,
    GitAdd,
    GitBranchInfo,
    GitCommit,
    GitDiff,
    GitLog,
    GitStatus,
    ListDirectory,
    ListServers,
    ListTools,
    Query,
    ReadFile,
    SearchFiles,
    Unknown,
    WriteFile,
)

DEVELOPMENT_KEYWORDS = (
    "read",
    "write",
    "edit",
    "file",
    "list",
    "search",
    "find",
    "git",
    "status",
    "diff",
    "commit",
    "add",
    "stage",
    "analyze",
    "explain",
    "structure",
    "definition",
    "references",
)


@dataclass(frozen=True, slots=True)
class Rule:
    priority: int
    family: Family
    pattern: re.Pattern[str]
    build: Callable[[re.Match[str]], Command]


def _rule(
    priority: int,
    family: Family,
    regex: str,
    build: Callable[[re.Match[str]], Command],
) -> Rule:
    return Rule(priority, family, re.compile(regex, re.IGNORECASE), build)


def _optional(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


def _limit(value: str | None) -> int:
    return int(value) if value else 10


RULES: tuple[Rule, ...] = (
    # File operations
    _rule(100, Family.FILE, r"^(?:read|show|cat|view)\s+(?:file\s+)?(.+)$",
          lambda m: ReadFile(file_path=m.group(1).strip())),
    _rule(110, Family.FILE, r"^(?:write|save)\s+(?:to\s+)?(?:file\s+)?(.+)$",
          lambda m: WriteFile(file_path=m.group(1).strip())),
    _rule(120, Family.FILE, r"^(?:edit|modify)\s+(?:file\s+)?(.+)$",
          lambda m: EditFile(file_path=m.group(1).strip())),
    _rule(130, Family.FILE, r"^(?:list|ls|dir)\s*(.*)$",
          lambda m: ListDirectory(path=m.group(1).strip() or ".")),
    _rule(140, Family.FILE, r"""^(?:search|find|grep)\s+(?:for\s+)?["'](.+?)["'](?:\s+in\s+(.+))?$""",
          lambda m: SearchFiles(pattern=m.group(1), directory=m.group(2) or ".")),
    _rule(150, Family.FILE, r"^(?:search|find|grep)\s+(?:for\s+)?(\S+)(?:\s+in\s+(.+))?$",
          lambda m: SearchFiles(pattern=m.group(1), directory=m.group(2) or ".")),
    _rule(160, Family.FILE, r"^(?:create|mkdir)\s+(?:directory\s+)?(.+)$",
          lambda m: CreateDirectory(path=m.group(1).strip())),
    # Version control
    _rule(200, Family.GIT, r"^git\s+status$",
          lambda m: GitStatus()),
    _rule(210, Family.GIT, r"^(?:git\s+)?(?:show\s+)?(?:status|st)$",
          lambda m: GitStatus()),
    _rule(220, Family.GIT, r"^git\s+diff(?:\s+(.+))?$",
          lambda m: GitDiff(file_path=_optional(m.group(1)))),
    _rule(230, Family.GIT, r"^(?:show\s+)?diff(?:\s+(?:for\s+)?(.+))?$",
          lambda m: GitDiff(file_path=_optional(m.group(1)))),
    _rule(240, Family.GIT, r"^git\s+log(?:\s+(\d+))?$",
          lambda m: GitLog(limit=_limit(m.group(1)))),
    _rule(250, Family.GIT, r"^(?:show\s+)?(?:git\s+)?(?:history|log)(?:\s+(\d+))?$",
          lambda m: GitLog(limit=_limit(m.group(1)))),
    _rule(260, Family.GIT, r"^git\s+add\s+(.+)$",
          lambda m: GitAdd(files=tuple(m.group(1).split()))),
    _rule(270, Family.GIT, r"^(?:stage|add)\s+(.+)$",
          lambda m: GitAdd(files=tuple(m.group(1).split()))),
    _rule(280, Family.GIT, r"""^git\s+commit\s+(?:-m\s+)?["'](.+)["']$""",
          lambda m: GitCommit(message=m.group(1))),
    _rule(290, Family.GIT, r"""^commit\s+["'](.+)["']$""",
          lambda m: GitCommit(message=m.group(1))),
    _rule(295, Family.GIT, r"^(?:git\s+)?(?:branch|branches)$",
          lambda m: GitBranchInfo()),
    # Codebase analysis
    _rule(300, Family.ANALYSIS, r"^(?:analyze|analysis)\s+(?:project|codebase)$",
          lambda m: AnalyzeProject()),
    _rule(310, Family.ANALYSIS, r"^(?:explain|describe)\s+(?:this\s+)?(?:project|codebase|architecture)$",
          lambda m: ExplainCodebase()),
    _rule(320, Family.ANALYSIS, r"^(?:show\s+)?(?:project\s+)?structure$",
          lambda m: GetProjectStructure()),
    _rule(330, Family.ANALYSIS, r"^(?:find|search)\s+(?:definition\s+(?:of\s+)?)?(\w+)(?:\s+in\s+(.+))?$",
          lambda m: FindDefinition(symbol=m.group(1), file_path=_optional(m.group(2)))),
    _rule(340, Family.ANALYSIS, r"^(?:find|search)\s+(?:references\s+(?:to\s+)?)?(\w+)(?:\s+in\s+(.+))?$",
          lambda m: FindReferences(symbol=m.group(1), file_path=_optional(m.group(2)))),
    _rule(350, Family.ANALYSIS, r"^(?:where\s+is|what\s+is)\s+(\w+)(?:\s+(?:defined|used))?$",
          lambda m: FindDefinition(symbol=m.group(1))),
    # Server management
    _rule(400, Family.SERVER, r"^connect\s+(?:to\s+)?server\s+(\w+)\s+(?:with\s+)?(?:config\s+)?(.+)$",
          lambda m: ConnectServer(server_id=m.group(1), config=m.group(2).strip())),
    _rule(410, Family.SERVER, r"^connect\s+(\w+)\s+(.+)$",
          lambda m: ConnectServer(server_id=m.group(1), config=m.group(2).strip())),
    _rule(420, Family.SERVER, r"^(?:list|show)\s+servers?$",
          lambda m: ListServers()),
    _rule(430, Family.SERVER, r"^servers?$",
          lambda m: ListServers()),
    _rule(440, Family.SERVER, r"^(?:list|show)\s+tools?\s+(?:from\s+)?(?:server\s+)?(\w+)$",
          lambda m: ListTools(server_id=m.group(1))),
    _rule(450, Family.SERVER, r"^tools?\s+(?:from\s+)?(\w+)$",
          lambda m: ListTools(server_id=m.group(1))),
    # Explicit query prefixes
    _rule(500, Family.QUERY, r"^query:\s*(.+)$",
          lambda m: Query(query=m.group(1).strip())),
    _rule(510, Family.QUERY, r"^ask:\s*(.+)$",
          lambda m: Query(query=m.group(1).strip())),
    # Implicit questions
    _rule(600, Family.QUERY,
          r"^(?:what|how|why|when|where|who|can|could|would|should|is|are|do|does|did|will|explain|tell|describe)\s+",
          lambda m: Query(query=m.string)),
    _rule(610, Family.QUERY, r"\?$",
          lambda m: Query(query=m.string)),
)


class IntentParser:
    def __init__(self, rules: Iterable[Rule] = RULES):
        self.rules: list[Rule] = sorted(rules, key=lambda rule: rule.priority)

    def parse(self, text: str) -> Command:
        normalized = text.strip()
        for rule in self.rules:
            match = rule.pattern.search(normalized)
            if match:
                return rule.build(match)
        return Unknown(text=normalized)

    def match_rule(self, text: str) -> Rule | None:
        normalized = text.strip()
        for rule in self.rules:
            if rule.pattern.search(normalized):
                return rule
        return None


def is_development_command(text: str) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in DEVELOPMENT_KEYWORDS)
