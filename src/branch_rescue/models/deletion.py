"""Pydantic models for tracked branch deletions."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC; naive values are taken as local time."""
    return value.astimezone(timezone.utc)


class DeletionSource(str, Enum):
    """Where a deletion record came from."""

    USER_INITIATED = "user"
    REFLOG_DISCOVERED = "reflog"


class DeletionRecord(BaseModel):
    """A single branch deletion event in one repository."""

    branch_name: str = Field(
        ...,
        alias="branchName",
        min_length=1,
        description="Short ref name of the deleted branch",
    )
    commit_hash: str = Field(
        ...,
        alias="commitHash",
        min_length=4,
        description="Commit the branch pointed to when it was deleted",
    )
    deleted_at: datetime = Field(
        default_factory=utc_now,
        alias="deletedAt",
        description="When the branch was deleted",
    )
    source: DeletionSource = Field(
        default=DeletionSource.USER_INITIATED,
        description="How the deletion was discovered",
    )

    class Config:
        populate_by_name = True
        frozen = True

    @field_validator("deleted_at")
    @classmethod
    def _normalize_deleted_at(cls, value: datetime) -> datetime:
        return to_utc(value)

    @property
    def key(self) -> tuple[str, str]:
        """Identity of the deletion event."""
        return (self.branch_name, self.commit_hash)

    @property
    def short_hash(self) -> str:
        return self.commit_hash[:7]

    def to_document(self) -> dict:
        """Serialize with camelCase keys for storage and export."""
        return self.model_dump(mode="json", by_alias=True)

    def clamped(self, now: Optional[datetime] = None) -> "DeletionRecord":
        """This record, or a copy dated now if it claims a future deletion."""
        now = now or utc_now()
        if self.deleted_at > now:
            return self.model_copy(update={"deleted_at": now})
        return self


class ReflogCandidate(BaseModel):
    """A deletion recovered from the reference log, not yet persisted."""

    branch_name: str = Field(..., min_length=1)
    commit_hash: str = Field(..., min_length=4)
    deleted_at: Optional[datetime] = Field(
        default=None,
        description="Reflog timestamp, None when the line carried none",
    )
    source: DeletionSource = DeletionSource.REFLOG_DISCOVERED
    matcher: str = Field(..., description="Name of the phrasing that matched")
    raw_line: str = ""

    @field_validator("deleted_at")
    @classmethod
    def _normalize_deleted_at(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_utc(value) if value is not None else None

    @property
    def short_hash(self) -> str:
        return self.commit_hash[:7]

    def to_record(self, now: Optional[datetime] = None) -> DeletionRecord:
        """Convert to a ledger record, using now for an unknown timestamp."""
        now = now or utc_now()
        return DeletionRecord(
            branch_name=self.branch_name,
            commit_hash=self.commit_hash,
            deleted_at=self.deleted_at or now,
            source=self.source,
        ).clamped(now)
