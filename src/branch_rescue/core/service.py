"""
User-facing workflows over the deletion ledger.

This module wires the ledger, reflog scanner, preview engine and history
portability together into the operations the CLI exposes:
- Deleting a branch while tracking it
- Restoring a branch from the history or from the reflog
- Exporting and importing the history
- Applying the retention policy on demand
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from branch_rescue.core import portability, retention
from branch_rescue.core.errors import NotFoundFailure, ValidationFailure
from branch_rescue.core.ledger import DeletionLedger
from branch_rescue.core.preview import Choice, InteractionSurface, RestorePreviewEngine
from branch_rescue.core.reflog import ReflogScanner
from branch_rescue.core.runner import CommandRunner, GitCommandRunner
from branch_rescue.core.store import DurableStore, JsonFileStore
from branch_rescue.models.deletion import DeletionRecord, DeletionSource, ReflogCandidate, utc_now
from branch_rescue.models.history import ImportResult, ImportStrategy

if TYPE_CHECKING:
    from branch_rescue.config import Config

logger = logging.getLogger(__name__)


@dataclass
class RestoreOutcome:
    """Result of a restore attempt."""

    branch_name: str
    commit_hash: str
    restored: bool
    message: str


class BranchRescueService:
    """Deletion tracking and restoration for local working copies."""

    def __init__(
        self,
        ledger: DeletionLedger,
        runner: CommandRunner,
        interaction: InteractionSurface,
        scanner: Optional[ReflogScanner] = None,
        preview_enabled: bool = True,
    ):
        self.ledger = ledger
        self.runner = runner
        self.interaction = interaction
        self.scanner = scanner or ReflogScanner()
        self.preview = RestorePreviewEngine(runner, interaction)
        self.preview_enabled = preview_enabled

    @classmethod
    def from_config(
        cls,
        config: "Config",
        interaction_factory,
        store: Optional[DurableStore] = None,
        runner: Optional[CommandRunner] = None,
    ) -> "BranchRescueService":
        """
        Build a service with a loaded ledger from configuration.

        Args:
            config: Loaded configuration.
            interaction_factory: Callable taking the runner and returning
                an InteractionSurface.
            store: Override the configured state store.
            runner: Override the git command runner.
        """
        runner = runner or GitCommandRunner(
            reflog_timeout_seconds=config.reflog.timeout_seconds
        )
        ledger = DeletionLedger(
            store or JsonFileStore(config.storage_path),
            retention_days=config.history.retention_days,
            sync_across_machines=config.history.sync_across_machines,
        )
        ledger.load()

        return cls(
            ledger=ledger,
            runner=runner,
            interaction=interaction_factory(runner),
            preview_enabled=config.preview.enabled,
        )

    def delete_branch(
        self,
        repo_path: str,
        branch_name: str,
        force: bool = False,
    ) -> DeletionRecord:
        """
        Delete a local branch and track the deletion.

        Raises:
            SubprocessFailure: If the branch cannot be resolved or deleted.
        """
        commit_hash = self.runner.resolve_ref(repo_path, f"refs/heads/{branch_name}")
        self.runner.delete_branch(repo_path, branch_name, force=force)

        record = self.ledger.record(
            repo_path,
            branch_name,
            commit_hash,
            source=DeletionSource.USER_INITIATED,
        )
        if record is None:
            record = self.ledger.find(repo_path, branch_name, commit_hash)

        logger.info(f"Deleted {branch_name} at {commit_hash[:7]} in {repo_path}")
        return record

    def list_deletions(self, repo_path: str) -> list[DeletionRecord]:
        """Tracked deletions for a repository, most recent first."""
        return sorted(
            self.ledger.list_deletions(repo_path),
            key=lambda r: r.deleted_at,
            reverse=True,
        )

    def restore_from_history(
        self,
        repo_path: str,
        branch_name: str,
        commit_hash: Optional[str] = None,
        preview: Optional[bool] = None,
    ) -> RestoreOutcome:
        """
        Recreate a tracked branch at the commit it pointed to when deleted.

        The matching record is removed only after the branch was created.

        Raises:
            NotFoundFailure: If no matching deletion is tracked.
            SubprocessFailure: If git fails to create the branch.
        """
        record = self.ledger.find(repo_path, branch_name, commit_hash)

        if record is None:
            target = f"{branch_name}@{commit_hash[:7]}" if commit_hash else branch_name
            raise NotFoundFailure(
                "restore branch",
                f"{target} in {repo_path}",
                "no tracked deletion matches",
            )

        outcome = self._restore(repo_path, record.branch_name, record.commit_hash, preview)

        if outcome.restored:
            self.ledger.remove(repo_path, record.branch_name, record.commit_hash)

        return outcome

    def scan_reflog(self, repo_path: str) -> list[ReflogCandidate]:
        """Deletions found in the repository's reflog; never persisted."""
        return self.scanner.scan_repository(self.runner, repo_path)

    def track_candidates(
        self,
        repo_path: str,
        candidates: list[ReflogCandidate],
    ) -> list[DeletionRecord]:
        """
        Add reflog candidates to the ledger on request.

        Returns:
            The records that were not tracked yet.
        """
        now = utc_now()
        added = []

        for candidate in candidates:
            record = candidate.to_record(now)
            tracked = self.ledger.record(
                repo_path,
                record.branch_name,
                record.commit_hash,
                source=record.source,
                deleted_at=record.deleted_at,
            )
            if tracked is not None:
                added.append(tracked)

        return added

    def restore_from_reflog(
        self,
        repo_path: str,
        candidate: ReflogCandidate,
        preview: Optional[bool] = None,
    ) -> RestoreOutcome:
        """Recreate a branch discovered in the reflog."""
        outcome = self._restore(repo_path, candidate.branch_name, candidate.commit_hash, preview)

        if outcome.restored:
            # A tracked record for the same deletion is now stale.
            self.ledger.remove(repo_path, candidate.branch_name, candidate.commit_hash)

        return outcome

    def _restore(
        self,
        repo_path: str,
        branch_name: str,
        commit_hash: str,
        preview: Optional[bool],
    ) -> RestoreOutcome:
        if self.runner.branch_exists(repo_path, branch_name):
            return RestoreOutcome(
                branch_name=branch_name,
                commit_hash=commit_hash,
                restored=False,
                message=f"Branch '{branch_name}' already exists",
            )

        use_preview = self.preview_enabled if preview is None else preview
        if use_preview and not self.preview.preview_and_confirm(repo_path, branch_name, commit_hash):
            return RestoreOutcome(
                branch_name=branch_name,
                commit_hash=commit_hash,
                restored=False,
                message="Restore cancelled",
            )

        self.runner.create_branch(repo_path, branch_name, commit_hash)
        logger.info(f"Restored {branch_name} at {commit_hash[:7]} in {repo_path}")

        return RestoreOutcome(
            branch_name=branch_name,
            commit_hash=commit_hash,
            restored=True,
            message=f"Restored '{branch_name}' at {commit_hash[:7]}",
        )

    def export_history(self, path: Path) -> int:
        """
        Write the whole ledger to path as a history document.

        Returns:
            Number of records exported.
        """
        document = portability.export_all(self.ledger.snapshot())
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(portability.dump_document(document), encoding="utf-8")
        return document.record_count

    def import_history(
        self,
        path: Path,
        strategy: Optional[ImportStrategy] = None,
    ) -> Optional[ImportResult]:
        """
        Reconcile a history document with the ledger.

        Args:
            path: Exported history document.
            strategy: MERGE or REPLACE; asked interactively when omitted.

        Returns:
            The ImportResult, or None if the user dismissed the strategy prompt.

        Raises:
            ValidationFailure: If the file is unreadable or malformed. The
                ledger is left untouched.
        """
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ValidationFailure("import history", str(path), str(e)) from e

        document = portability.parse_document(raw)

        if strategy is None:
            choice = self.interaction.choose(
                f"Import {document.record_count} deletion record(s) from {path.name}",
                [
                    Choice(
                        label="Merge",
                        value=ImportStrategy.MERGE,
                        description="add records that are not tracked yet",
                    ),
                    Choice(
                        label="Replace",
                        value=ImportStrategy.REPLACE,
                        description="discard the current history",
                    ),
                ],
            )
            if choice is None:
                return None
            strategy = choice.value

        result = portability.import_all(document, self.ledger.snapshot(), strategy)
        self.ledger.replace_snapshot(result.ledger)
        logger.info(f"Imported {result.added_count} deletion record(s) using {strategy.value}")
        return result

    def apply_retention(self, horizon_days: Optional[int] = None) -> int:
        """Prune the ledger now, e.g. after the retention setting changed."""
        if horizon_days is not None:
            self.ledger.retention_days = retention.validate_horizon(horizon_days)
        return self.ledger.prune(horizon_days)
