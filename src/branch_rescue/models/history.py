"""Pydantic models for exported deletion histories."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from branch_rescue.models.deletion import DeletionRecord, utc_now

EXPORT_FORMAT_VERSION = "1.0"

LedgerSnapshot = dict[str, list[DeletionRecord]]


class ImportStrategy(str, Enum):
    """How an imported history is reconciled with the current ledger."""

    MERGE = "merge"
    REPLACE = "replace"


class HistoryDocument(BaseModel):
    """Portable deletion history document."""

    version: str = Field(..., min_length=1)
    exported_at: datetime = Field(default_factory=utc_now, alias="exportedAt")
    deletion_history: dict[str, list[DeletionRecord]] = Field(
        ...,
        alias="deletionHistory",
    )

    class Config:
        populate_by_name = True

    @property
    def record_count(self) -> int:
        return sum(len(records) for records in self.deletion_history.values())


class ImportResult(BaseModel):
    """Outcome of reconciling an imported document with the ledger."""

    strategy: ImportStrategy
    ledger: dict[str, list[DeletionRecord]]
    added_count: int = Field(default=0, ge=0)
    repositories: list[str] = Field(default_factory=list)
