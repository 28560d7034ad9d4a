"""Exception types for branch-rescue operations."""

from typing import Optional


class BranchRescueError(Exception):
    """Base exception carrying the failed operation and its target."""

    def __init__(
        self,
        operation: str,
        target: str,
        detail: Optional[str] = None,
    ):
        self.operation = operation
        self.target = target
        self.detail = detail
        message = f"{operation} failed for {target}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class SubprocessFailure(BranchRescueError):
    """Raised when a git command exits with a non-zero status."""


class PersistenceFailure(BranchRescueError):
    """Raised when the durable store cannot be read or written."""


class ValidationFailure(BranchRescueError):
    """Raised when an imported history document is malformed."""


class NotFoundFailure(BranchRescueError):
    """Raised when a restore targets a record that is no longer tracked."""


class NotAGitRepositoryError(BranchRescueError):
    """Raised when the path is not a git working copy."""
