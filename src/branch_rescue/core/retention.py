"""
Retention policy for tracked deletions.

Records older than the configured horizon are dropped. Pruning is a pure
function over a ledger snapshot so it can run at load time, after a
configuration change, or as a dry run.
"""

from datetime import datetime, timedelta
from typing import Optional

from branch_rescue.models.deletion import to_utc, utc_now
from branch_rescue.models.history import LedgerSnapshot

DEFAULT_RETENTION_DAYS = 90
MIN_RETENTION_DAYS = 1
MAX_RETENTION_DAYS = 365


def validate_horizon(horizon_days: int) -> int:
    """Check that horizon_days is an integer within the supported range."""
    if isinstance(horizon_days, bool) or not isinstance(horizon_days, int):
        raise ValueError(f"retention days must be an integer, got {horizon_days!r}")

    if not MIN_RETENTION_DAYS <= horizon_days <= MAX_RETENTION_DAYS:
        raise ValueError(
            f"retention days must be between {MIN_RETENTION_DAYS} and "
            f"{MAX_RETENTION_DAYS}, got {horizon_days}"
        )

    return horizon_days


def cutoff_for(horizon_days: int, now: Optional[datetime] = None) -> datetime:
    """Oldest deletion time that is still retained."""
    validate_horizon(horizon_days)
    now = to_utc(now) if now else utc_now()
    return now - timedelta(days=horizon_days)


def prune(
    snapshot: LedgerSnapshot,
    horizon_days: int,
    now: Optional[datetime] = None,
) -> LedgerSnapshot:
    """
    Return a copy of snapshot without records older than the horizon.

    Repositories whose sequence ends up empty are left out of the result.
    The input snapshot is not modified.
    """
    cutoff = cutoff_for(horizon_days, now)
    pruned: LedgerSnapshot = {}

    for repo_path, records in snapshot.items():
        kept = [record for record in records if record.deleted_at >= cutoff]

        if kept:
            pruned[repo_path] = kept

    return pruned


def count_expired(
    snapshot: LedgerSnapshot,
    horizon_days: int,
    now: Optional[datetime] = None,
) -> int:
    """Number of records prune() would drop."""
    cutoff = cutoff_for(horizon_days, now)

    return sum(
        1
        for records in snapshot.values()
        for record in records
        if record.deleted_at < cutoff
    )
