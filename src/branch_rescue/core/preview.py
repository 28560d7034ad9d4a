"""
Restore preview: show what restoring a branch would bring back before doing it.

The confirm/inspect/cancel flow is an explicit state machine:

    IDLE -> PREVIEWING_FILE_LIST <-> INSPECTING_FILE -> CONFIRMED | CANCELLED

Inspecting a file always returns to the file list, so repeated inspections
loop instead of recursing. The engine never mutates the ledger; it only
tells the caller whether to proceed.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Sequence

from branch_rescue.core.errors import SubprocessFailure
from branch_rescue.core.runner import CommandRunner
from branch_rescue.models.diff import DiffEntry

logger = logging.getLogger(__name__)


class PreviewState(str, Enum):
    """States of a restore preview."""

    IDLE = "idle"
    PREVIEWING_FILE_LIST = "previewing_file_list"
    INSPECTING_FILE = "inspecting_file"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class PreviewAction(str, Enum):
    """What a file-list choice asks the engine to do."""

    RESTORE = "restore"
    CANCEL = "cancel"
    INSPECT = "inspect"


@dataclass(frozen=True)
class Choice:
    """A generic option offered through InteractionSurface.choose()."""

    label: str
    value: Any = None
    description: str = ""


@dataclass(frozen=True)
class PreviewChoice:
    """An option on the restore preview file list."""

    label: str
    action: PreviewAction
    entry: Optional[DiffEntry] = None
    description: str = ""


class InteractionSurface(ABC):
    """User prompts needed by the restore and import workflows."""

    @abstractmethod
    def confirm(self, prompt: str) -> bool:
        """Yes/no question; dismissal counts as no."""

    @abstractmethod
    def choose(self, prompt: str, options: Sequence[Any]) -> Optional[Any]:
        """Pick one of options (each has .label); None if dismissed."""

    @abstractmethod
    def open_side_by_side_diff(
        self,
        repo_path: str,
        path: str,
        ref_a: str,
        ref_b: str,
        path_b: Optional[str] = None,
    ) -> None:
        """Show path at ref_a next to path_b (default: path) at ref_b."""


@dataclass
class PreviewSession:
    """Trace of one preview_and_confirm() run."""

    repo_path: str
    branch_name: str
    commit_hash: str
    state: PreviewState = PreviewState.IDLE
    current_branch: Optional[str] = None
    entries: list[DiffEntry] = field(default_factory=list)
    inspected: list[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def approved(self) -> bool:
        return self.state == PreviewState.CONFIRMED


class RestorePreviewEngine:
    """Drives the preview state machine over a runner and an interaction surface."""

    def __init__(self, runner: CommandRunner, interaction: InteractionSurface):
        self.runner = runner
        self.interaction = interaction
        self.last_session: Optional[PreviewSession] = None

    def preview_and_confirm(
        self,
        repo_path: str,
        branch_name: str,
        commit_hash: str,
    ) -> bool:
        """
        Preview restoring branch_name at commit_hash and ask for confirmation.

        Returns:
            True only if the user confirmed the restore.
        """
        session = PreviewSession(
            repo_path=repo_path,
            branch_name=branch_name,
            commit_hash=commit_hash,
        )
        self.last_session = session

        try:
            session.current_branch = self.runner.current_branch(repo_path)
            session.entries = self.runner.diff_status(
                repo_path, session.current_branch, commit_hash
            )
        except SubprocessFailure as e:
            logger.warning(f"Restore preview unavailable: {e}")
            session.error = str(e)
            approved = self.interaction.confirm(
                f"Could not preview changes for '{branch_name}' ({e.detail or e}). "
                f"Restore anyway?"
            )
            return self._finish(session, approved)

        if not session.entries:
            approved = self.interaction.confirm(
                f"No differences between '{session.current_branch}' and "
                f"{commit_hash[:7]}. Restore '{branch_name}' anyway?"
            )
            return self._finish(session, approved)

        session.state = PreviewState.PREVIEWING_FILE_LIST
        selected: Optional[DiffEntry] = None

        while session.state not in (PreviewState.CONFIRMED, PreviewState.CANCELLED):
            if session.state == PreviewState.PREVIEWING_FILE_LIST:
                choice = self.interaction.choose(
                    self._list_prompt(session),
                    self._build_choices(session.entries),
                )
                if choice is None or choice.action == PreviewAction.CANCEL:
                    session.state = PreviewState.CANCELLED
                elif choice.action == PreviewAction.RESTORE:
                    session.state = PreviewState.CONFIRMED
                else:
                    selected = choice.entry
                    session.state = PreviewState.INSPECTING_FILE

            elif session.state == PreviewState.INSPECTING_FILE:
                self._inspect(session, selected)
                session.state = PreviewState.PREVIEWING_FILE_LIST

        logger.debug(
            f"Preview of {branch_name}@{commit_hash[:7]} ended {session.state.value} "
            f"after {len(session.inspected)} inspection(s)"
        )
        return session.approved

    def _finish(self, session: PreviewSession, approved: Optional[bool]) -> bool:
        session.state = PreviewState.CONFIRMED if approved else PreviewState.CANCELLED
        return session.approved

    def _inspect(self, session: PreviewSession, entry: Optional[DiffEntry]) -> None:
        if entry is None:
            return

        session.inspected.append(entry.path)
        try:
            self.interaction.open_side_by_side_diff(
                session.repo_path,
                entry.path,
                session.commit_hash,
                session.current_branch or "HEAD",
                path_b=entry.old_path,
            )
        except SubprocessFailure as e:
            logger.warning(f"Could not open comparison for {entry.path}: {e}")

    def _list_prompt(self, session: PreviewSession) -> str:
        count = len(session.entries)
        return (
            f"Restoring '{session.branch_name}' at {session.commit_hash[:7]}: "
            f"{count} file{'s' if count != 1 else ''} differ from "
            f"'{session.current_branch}'"
        )

    def _build_choices(self, entries: list[DiffEntry]) -> list[PreviewChoice]:
        choices = [
            PreviewChoice(label="Restore now", action=PreviewAction.RESTORE),
            PreviewChoice(label="Cancel", action=PreviewAction.CANCEL),
        ]
        for entry in entries:
            choices.append(
                PreviewChoice(
                    label=f"Inspect {entry.label}",
                    action=PreviewAction.INSPECT,
                    entry=entry,
                    description=entry.kind.value,
                )
            )
        return choices
