from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, TypeAlias


class Family(str, Enum):
    FILE = "file_operations"
    GIT = "git_operations"
    ANALYSIS = "codebase_analysis"
    SERVER = "server_management"
    QUERY = "queries"
    UNKNOWN = "unknown"


# File operations


@dataclass(frozen=True, slots=True)
class ReadFile:
    kind: ClassVar[str] = "read_file"
    family: ClassVar[Family] = Family.FILE
    file_path: str


@dataclass(frozen=True, slots=True)
class WriteFile:
    kind: ClassVar[str] = "write_file"
    family: ClassVar[Family] = Family.FILE
    file_path: str


@dataclass(frozen=True, slots=True)
class EditFile:
    kind: ClassVar[str] = "edit_file"
    family: ClassVar[Family] = Family.FILE
    file_path: str


@dataclass(frozen=True, slots=True)
class ListDirectory:
    kind: ClassVar[str] = "list_directory"
    family: ClassVar[Family] = Family.FILE
    path: str = "."


@dataclass(frozen=True, slots=True)
class SearchFiles:
    kind: ClassVar[str] = "search_files"
    family: ClassVar[Family] = Family.FILE
    pattern: str
    directory: str = "."


@dataclass(frozen=True, slots=True)
class CreateDirectory:
    kind: ClassVar[str] = "create_directory"
    family: ClassVar[Family] = Family.FILE
    path: str


# Version control


@dataclass(frozen=True, slots=True)
class GitStatus:
    kind: ClassVar[str] = "git_status"
    family: ClassVar[Family] = Family.GIT


@dataclass(frozen=True, slots=True)
class GitDiff:
    kind: ClassVar[str] = "git_diff"
    family: ClassVar[Family] = Family.GIT
    file_path: str | None = None


@dataclass(frozen=True, slots=True)
class GitLog:
    kind: ClassVar[str] = "git_log"
    family: ClassVar[Family] = Family.GIT
    limit: int = 10


@dataclass(frozen=True, slots=True)
class GitAdd:
    kind: ClassVar[str] = "git_add"
    family: ClassVar[Family] = Family.GIT
    files: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class GitCommit:
    kind: ClassVar[str] = "git_commit"
    family: ClassVar[Family] = Family.GIT
    message: str


@dataclass(frozen=True, slots=True)
class GitBranchInfo:
    kind: ClassVar[str] = "git_branch_info"
    family: ClassVar[Family] = Family.GIT


# Codebase analysis


@dataclass(frozen=True, slots=True)
class AnalyzeProject:
    kind: ClassVar[str] = "analyze_project"
    family: ClassVar[Family] = Family.ANALYSIS


@dataclass(frozen=True, slots=True)
class ExplainCodebase:
    kind: ClassVar[str] = "explain_codebase"
    family: ClassVar[Family] = Family.ANALYSIS


@dataclass(frozen=True, slots=True)
class GetProjectStructure:
    kind: ClassVar[str] = "get_project_structure"
    family: ClassVar[Family] = Family.ANALYSIS


@dataclass(frozen=True, slots=True)
class FindDefinition:
    kind: ClassVar[str] = "find_definition"
    family: ClassVar[Family] = Family.ANALYSIS
    symbol: str
    file_path: str | None = None


@dataclass(frozen=True, slots=True)
class FindReferences:
    kind: ClassVar[str] = "find_references"
    family: ClassVar[Family] = Family.ANALYSIS
    symbol: str
    file_path: str | None = None


# Server management


@dataclass(frozen=True, slots=True)
class ConnectServer:
    kind: ClassVar[str] = "connect_server"
    family: ClassVar[Family] = Family.SERVER
    server_id: str
    config: str


@dataclass(frozen=True, slots=True)
class ListServers:
    kind: ClassVar[str] = "list_servers"
    family: ClassVar[Family] = Family.SERVER


@dataclass(frozen=True, slots=True)
class ListTools:
    kind: ClassVar[str] = "list_tools"
    family: ClassVar[Family] = Family.SERVER
    server_id: str


# Queries


@dataclass(frozen=True, slots=True)
class Query:
    kind: ClassVar[str] = "query"
    family: ClassVar[Family] = Family.QUERY
    query: str


@dataclass(frozen=True, slots=True)
class Unknown:
    kind: ClassVar[str] = "unknown"
    family: ClassVar[Family] = Family.UNKNOWN
    text: str


Command: TypeAlias = (
    ReadFile
    | WriteFile
    | EditFile
    | ListDirectory
    | SearchFiles
    | CreateDirectory
    | GitStatus
    | GitDiff
    | GitLog
    | GitAdd
    | GitCommit
    | GitBranchInfo
    | AnalyzeProject
    | ExplainCodebase
    | GetProjectStructure
    | FindDefinition
    | FindReferences
    | ConnectServer
    | ListServers
    | ListTools
    | Query
    | Unknown
)

COMMAND_TYPES: tuple[type, ...] = Command.__args__

_FAMILIES: dict[str, Family] = {cls.kind: cls.family for cls in COMMAND_TYPES}


def family_of(kind: str) -> Family:
    return _FAMILIES.get(kind, Family.UNKNOWN)
