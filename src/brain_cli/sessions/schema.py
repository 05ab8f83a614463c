from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

EntryType = Literal["user", "query", "response"]


class Entry(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: EntryType
    content: str
    timestamp: str


class SessionRecord(BaseModel):
    id: str
    created: str
    history: list[Entry] = Field(default_factory=list)


class SessionSummary(BaseModel):
    id: str
    created: str | None = None
    modified: float
    entry_count: int = 0
