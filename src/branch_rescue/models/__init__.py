"""
Pydantic models for branch-rescue.

This package contains data models for:
- Deletion records and reflog candidates
- File-level diff previews
- Portable history documents
"""

from branch_rescue.models.deletion import (
    DeletionRecord,
    DeletionSource,
    ReflogCandidate,
)
from branch_rescue.models.diff import ChangeKind, DiffEntry
from branch_rescue.models.history import (
    EXPORT_FORMAT_VERSION,
    HistoryDocument,
    ImportResult,
    ImportStrategy,
    LedgerSnapshot,
)

__all__ = [
    "DeletionRecord",
    "DeletionSource",
    "ReflogCandidate",
    "ChangeKind",
    "DiffEntry",
    "EXPORT_FORMAT_VERSION",
    "HistoryDocument",
    "ImportResult",
    "ImportStrategy",
    "LedgerSnapshot",
]
