import json
import logging
import os
import re
import secrets
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from brain_cli.sessions.schema import Entry, EntryType, SessionRecord, SessionSummary

logger = logging.getLogger(__name__)

DEFAULT_SESSION_DIR = Path.home() / ".brain-cli" / "sessions"
SESSION_ID_PATTERN = re.compile(r"^[0-9a-f]+$")


class SessionIOError(Exception):
    pass


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def is_valid_session_id(session_id: str) -> bool:
    return bool(SESSION_ID_PATTERN.match(session_id))


def generate_session_id() -> str:
    return secrets.token_hex(8)


class SessionStore:
    """One JSON file per session, rewritten whole on every append.

    Reads and scans never raise: a missing, unreadable or corrupt record looks
    like an absent session. Write failures are logged and swallowed so the REPL
    keeps running without a transcript.
    """

    def __init__(self, session_dir: str | Path = DEFAULT_SESSION_DIR):
        self.session_dir = Path(session_dir)
        try:
            self.session_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(f"Cannot create session directory {self.session_dir}: {e}")

    def _path(self, session_id: str) -> Path:
        return self.session_dir / f"{session_id}.json"

    def _read(self, path: Path) -> SessionRecord | None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return SessionRecord.model_validate(data)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable session file {path}: {e}")
            return None

    def _write(self, record: SessionRecord) -> None:
        target = self._path(record.id)
        tmp_path = target.with_suffix(".json.tmp")
        payload = json.dumps(record.model_dump(), indent=2, ensure_ascii=False)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload, encoding="utf-8")
            os.replace(tmp_path, target)
        except OSError as e:
            raise SessionIOError(f"Failed to save session {record.id}: {e}") from e

    def create(self) -> str:
        record = SessionRecord(id=generate_session_id(), created=_now_iso())
        try:
            self._write(record)
        except SessionIOError as e:
            logger.warning(str(e))
        else:
            logger.debug(f"Created session {record.id}")
        return record.id

    def exists(self, session_id: str) -> bool:
        return is_valid_session_id(session_id) and self._path(session_id).is_file()

    def load(self, session_id: str) -> SessionRecord | None:
        if not is_valid_session_id(session_id):
            logger.warning(f"Rejecting malformed session id {session_id!r}")
            return None
        return self._read(self._path(session_id))

    def history(self, session_id: str) -> list[Entry]:
        record = self.load(session_id)
        return list(record.history) if record else []

    def append(self, session_id: str, entry_type: EntryType, content: str) -> Entry | None:
        record = self.load(session_id)
        if record is None:
            return None
        entry = Entry(type=entry_type, content=content, timestamp=_now_iso())
        record.history.append(entry)
        try:
            self._write(record)
        except SessionIOError as e:
            logger.warning(str(e))
            return None
        return entry

    def delete(self, session_id: str) -> bool:
        if not is_valid_session_id(session_id):
            return False
        try:
            self._path(session_id).unlink()
        except OSError:
            return False
        return True

    def _scan(self) -> list[SessionSummary]:
        summaries: list[SessionSummary] = []
        try:
            paths = list(self.session_dir.glob("*.json"))
        except OSError as e:
            logger.warning(f"Cannot scan session directory {self.session_dir}: {e}")
            return []

        for path in paths:
            if not is_valid_session_id(path.stem):
                continue
            try:
                modified = path.stat().st_mtime_ns
            except OSError:
                continue
            record = self._read(path)
            summaries.append(
                SessionSummary(
                    id=path.stem,
                    created=record.created if record else None,
                    modified=modified / 1e9,
                    entry_count=len(record.history) if record else 0,
                )
            )

        summaries.sort(key=lambda s: (s.modified, s.created or ""), reverse=True)
        return summaries

    def most_recent(self) -> str | None:
        summaries = self._scan()
        return summaries[0].id if summaries else None

    def list_sessions(self, limit: int = 10) -> list[SessionSummary]:
        return self._scan()[:limit]
