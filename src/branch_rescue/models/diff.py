"""Pydantic models for file-level diff previews."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ChangeKind(str, Enum):
    """Kind of change a file undergoes between two refs."""

    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"

    @classmethod
    def from_status_letter(cls, letter: str) -> "ChangeKind":
        """Map a `git diff --name-status` letter to a change kind."""
        mapping = {
            "A": cls.ADDED,
            "C": cls.ADDED,
            "D": cls.DELETED,
            "R": cls.RENAMED,
        }
        return mapping.get(letter[:1].upper(), cls.MODIFIED)


class DiffEntry(BaseModel):
    """One changed path in a diff."""

    path: str = Field(..., description="Path of the file at the target ref")
    kind: ChangeKind
    old_path: Optional[str] = Field(
        default=None,
        description="Previous path for renames",
    )

    @property
    def label(self) -> str:
        if self.kind == ChangeKind.RENAMED and self.old_path:
            return f"{self.old_path} -> {self.path}"
        return self.path
