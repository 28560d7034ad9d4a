"""
Deletion ledger: the authoritative record of tracked branch deletions.

The ledger keeps one ordered sequence of DeletionRecord per repository,
persists the whole map to a DurableStore after every mutation, and applies
the retention policy once when it is loaded.
"""

import logging
import os
from datetime import datetime
from typing import Any, Optional

from pydantic import ValidationError

from branch_rescue.core import retention
from branch_rescue.core.errors import PersistenceFailure
from branch_rescue.core.store import DurableStore
from branch_rescue.models.deletion import DeletionRecord, DeletionSource, utc_now
from branch_rescue.models.history import LedgerSnapshot

logger = logging.getLogger(__name__)

LEDGER_KEY = "deletedBranches"


def normalize_repo_path(repo_path: str | os.PathLike) -> str:
    """Ledger key for a working-copy path given on this machine."""
    return os.path.abspath(os.path.expanduser(os.fspath(repo_path)))


def dedupe_records(records: list[DeletionRecord]) -> list[DeletionRecord]:
    """Drop later records whose (branch, commit) identity was already seen."""
    seen: set[tuple[str, str]] = set()
    unique = []

    for record in records:
        if record.key in seen:
            continue
        seen.add(record.key)
        unique.append(record)

    return unique


def snapshot_to_document(snapshot: LedgerSnapshot) -> dict[str, list[dict]]:
    """Serialize a snapshot to the persisted/exported layout."""
    return {
        repo_path: [record.to_document() for record in records]
        for repo_path, records in snapshot.items()
    }


class DeletionLedger:
    """
    Per-repository store of deleted branches.

    Persistence failures never undo an in-memory mutation: they are logged
    and the ledger keeps working in session-only mode until a save succeeds.
    """

    def __init__(
        self,
        store: DurableStore,
        retention_days: int = retention.DEFAULT_RETENTION_DAYS,
        sync_across_machines: bool = False,
    ):
        self.store = store
        self.retention_days = retention.validate_horizon(retention_days)
        self.session_only = False
        self._deletions: LedgerSnapshot = {}

        if sync_across_machines:
            self.store.set_keys_for_sync([LEDGER_KEY])

    def load(self) -> None:
        """Read the persisted ledger, then prune expired records."""
        try:
            blob = self.store.get(LEDGER_KEY)
            self._deletions = self._parse_blob(blob)
        except PersistenceFailure as e:
            logger.warning(f"Could not load deletion history, starting empty: {e}")
            self._deletions = {}
            return

        try:
            removed = self.prune()
        except Exception as e:
            logger.warning(f"Automatic pruning failed at load: {e}")
            return

        if removed:
            logger.info(
                f"Pruned {removed} deletion record(s) older than "
                f"{self.retention_days} days"
            )

    def _parse_blob(self, blob: Any) -> LedgerSnapshot:
        if blob is None:
            return {}

        if not isinstance(blob, dict):
            logger.warning(f"Ignoring malformed deletion history of type {type(blob).__name__}")
            return {}

        now = utc_now()
        deletions: LedgerSnapshot = {}
        for repo_path, entries in blob.items():
            if not isinstance(entries, list):
                logger.warning(f"Ignoring malformed history for {repo_path}")
                continue

            records = []
            for entry in entries:
                try:
                    records.append(DeletionRecord.model_validate(entry).clamped(now))
                except ValidationError as e:
                    logger.warning(f"Skipping malformed deletion record in {repo_path}: {e}")

            records = dedupe_records(records)
            if records:
                deletions[repo_path] = records

        return deletions

    def _key(self, repo_path: str | os.PathLike) -> str:
        """Stored key for repo_path; keys from other machines match verbatim."""
        raw = os.fspath(repo_path)
        if raw in self._deletions:
            return raw
        return normalize_repo_path(raw)

    def save(self) -> bool:
        """
        Persist the full ledger.

        Returns:
            True if the write succeeded, False if the ledger is now
            tracking deletions for this session only.
        """
        try:
            self.store.set(LEDGER_KEY, snapshot_to_document(self._deletions))
        except PersistenceFailure as e:
            if not self.session_only:
                logger.warning(
                    f"Deletion history is session-only until the next successful save: {e}"
                )
            self.session_only = True
            return False

        self.session_only = False
        return True

    def record(
        self,
        repo_path: str,
        branch_name: str,
        commit_hash: str,
        source: DeletionSource = DeletionSource.USER_INITIATED,
        deleted_at: Optional[datetime] = None,
    ) -> Optional[DeletionRecord]:
        """
        Track a deleted branch.

        Returns:
            The new record, or None if the same (branch, commit) pair was
            already tracked for this repository.
        """
        repo_key = self._key(repo_path)
        now = utc_now()

        record = DeletionRecord(
            branch_name=branch_name,
            commit_hash=commit_hash,
            deleted_at=deleted_at or now,
            source=source,
        ).clamped(now)

        records = self._deletions.setdefault(repo_key, [])
        if any(existing.key == record.key for existing in records):
            logger.debug(f"Deletion of {branch_name}@{record.short_hash} already tracked")
            return None

        records.append(record)
        self.save()
        return record

    def list_deletions(self, repo_path: str) -> list[DeletionRecord]:
        """Records for a repository in discovery order."""
        return list(self._deletions.get(self._key(repo_path), []))

    def find(
        self,
        repo_path: str,
        branch_name: str,
        commit_hash: Optional[str] = None,
    ) -> Optional[DeletionRecord]:
        """
        Find a tracked deletion.

        With commit_hash, only the exact record (a hash prefix is accepted)
        matches; otherwise the oldest record with that branch name.
        """
        matches = [
            record
            for record in self._deletions.get(self._key(repo_path), [])
            if record.branch_name == branch_name
        ]

        if commit_hash:
            for record in matches:
                if record.commit_hash == commit_hash or record.commit_hash.startswith(commit_hash):
                    return record
            return None

        if not matches:
            return None

        return min(matches, key=lambda r: r.deleted_at)

    def remove(
        self,
        repo_path: str,
        branch_name: str,
        commit_hash: Optional[str] = None,
    ) -> bool:
        """Remove one tracked deletion. Returns True if a record was removed."""
        target = self.find(repo_path, branch_name, commit_hash)

        if target is None:
            return False

        repo_key = self._key(repo_path)
        remaining = [r for r in self._deletions[repo_key] if r.key != target.key]

        if remaining:
            self._deletions[repo_key] = remaining
        else:
            del self._deletions[repo_key]

        self.save()
        return True

    def clear(self, repo_path: str) -> int:
        """Forget every deletion for one repository."""
        removed = self._deletions.pop(self._key(repo_path), [])
        self.save()
        return len(removed)

    def clear_all(self) -> int:
        """Forget every tracked deletion."""
        removed = sum(len(records) for records in self._deletions.values())
        self._deletions = {}
        self.save()
        return removed

    def repositories(self) -> list[str]:
        """Repositories with at least one tracked deletion."""
        return [repo for repo, records in self._deletions.items() if records]

    def snapshot(self) -> LedgerSnapshot:
        """Copy of the whole ledger."""
        return {repo: list(records) for repo, records in self._deletions.items()}

    def replace_snapshot(self, snapshot: LedgerSnapshot) -> None:
        """
        Install a new ledger map (used by history import) and persist it.

        Repository keys are kept exactly as given.
        """
        now = utc_now()
        deletions: LedgerSnapshot = {}

        for repo_path, records in snapshot.items():
            unique = dedupe_records([record.clamped(now) for record in records])
            if unique:
                deletions[repo_path] = unique

        self._deletions = deletions
        self.save()

    def prune(self, horizon_days: Optional[int] = None) -> int:
        """
        Drop records older than the retention horizon.

        Args:
            horizon_days: Override the configured horizon.

        Returns:
            Number of records removed.
        """
        horizon = retention.validate_horizon(
            self.retention_days if horizon_days is None else horizon_days
        )
        before = sum(len(records) for records in self._deletions.values())
        pruned = retention.prune(self._deletions, horizon)
        after = sum(len(records) for records in pruned.values())

        self._deletions = pruned
        removed = before - after

        if removed:
            self.save()

        return removed
