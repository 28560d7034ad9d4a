"""
Core modules for branch-rescue.

This package contains the core business logic for:
- The deletion ledger and its durable store
- Reflog scanning
- Retention pruning
- Restore previews
- History export and import
"""

from branch_rescue.core.errors import (
    BranchRescueError,
    NotAGitRepositoryError,
    NotFoundFailure,
    PersistenceFailure,
    SubprocessFailure,
    ValidationFailure,
)
from branch_rescue.core.ledger import LEDGER_KEY, DeletionLedger
from branch_rescue.core.preview import (
    InteractionSurface,
    PreviewState,
    RestorePreviewEngine,
)
from branch_rescue.core.reflog import ReflogScanner
from branch_rescue.core.runner import CommandRunner, GitCommandRunner
from branch_rescue.core.service import BranchRescueService, RestoreOutcome
from branch_rescue.core.store import DurableStore, InMemoryStore, JsonFileStore

__all__ = [
    "BranchRescueError",
    "NotAGitRepositoryError",
    "NotFoundFailure",
    "PersistenceFailure",
    "SubprocessFailure",
    "ValidationFailure",
    "LEDGER_KEY",
    "DeletionLedger",
    "InteractionSurface",
    "PreviewState",
    "RestorePreviewEngine",
    "ReflogScanner",
    "CommandRunner",
    "GitCommandRunner",
    "BranchRescueService",
    "RestoreOutcome",
    "DurableStore",
    "InMemoryStore",
    "JsonFileStore",
]
