"""
Export and import of deletion histories.

An exported document has the layout::

    {
      "version": "1.0",
      "exportedAt": "<ISO-8601>",
      "deletionHistory": {"<repo path>": [<DeletionRecord>, ...]}
    }

Imports are validated in full before anything is reconciled, so a malformed
document never changes the ledger.
"""

import json
import logging
from datetime import datetime
from typing import Any, Optional

from pydantic import ValidationError

from branch_rescue.core.errors import ValidationFailure
from branch_rescue.core.ledger import dedupe_records, snapshot_to_document
from branch_rescue.models.deletion import utc_now
from branch_rescue.models.history import (
    EXPORT_FORMAT_VERSION,
    HistoryDocument,
    ImportResult,
    ImportStrategy,
    LedgerSnapshot,
)

logger = logging.getLogger(__name__)


def export_all(snapshot: LedgerSnapshot, now: Optional[datetime] = None) -> HistoryDocument:
    """Wrap a ledger snapshot in a portable document."""
    return HistoryDocument(
        version=EXPORT_FORMAT_VERSION,
        exported_at=now or utc_now(),
        deletion_history={repo: list(records) for repo, records in snapshot.items()},
    )


def dump_document(document: HistoryDocument) -> str:
    """Serialize a history document to JSON text."""
    payload = {
        "version": document.version,
        "exportedAt": document.exported_at.isoformat(),
        "deletionHistory": snapshot_to_document(document.deletion_history),
    }
    return json.dumps(payload, indent=2)


def parse_document(raw: Any) -> HistoryDocument:
    """
    Validate raw JSON text or decoded data as a history document.

    Raises:
        ValidationFailure: If the document is not valid JSON, lacks
            version/deletionHistory, or contains malformed records.
    """
    if isinstance(raw, HistoryDocument):
        return raw

    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            raise ValidationFailure("import history", "document", f"invalid JSON: {e}") from e

    if not isinstance(raw, dict):
        raise ValidationFailure("import history", "document", "expected a JSON object")

    version = raw.get("version")
    if not isinstance(version, str) or not version.strip():
        raise ValidationFailure("import history", "document", "missing or invalid 'version'")

    history = raw.get("deletionHistory")
    if not isinstance(history, dict):
        raise ValidationFailure(
            "import history", "document", "missing or invalid 'deletionHistory'"
        )

    for repo_path, records in history.items():
        if not isinstance(records, list):
            raise ValidationFailure(
                "import history",
                "document",
                f"history for {repo_path} must be a list of records",
            )

    try:
        document = HistoryDocument.model_validate(raw)
    except ValidationError as e:
        raise ValidationFailure("import history", "document", str(e)) from e

    if document.version != EXPORT_FORMAT_VERSION:
        logger.warning(
            f"Importing history format {document.version}, expected {EXPORT_FORMAT_VERSION}"
        )

    return document


def import_all(
    raw: Any,
    current: LedgerSnapshot,
    strategy: ImportStrategy,
) -> ImportResult:
    """
    Reconcile an imported document with the current ledger snapshot.

    Args:
        raw: JSON text or decoded document.
        current: Current ledger snapshot; never modified.
        strategy: REPLACE adopts the document as the whole ledger; MERGE adds
            records whose (branch, commit) identity is new to their repository.

    Returns:
        ImportResult with the reconciled ledger and the number of records added.

    Raises:
        ValidationFailure: If the document is malformed. Nothing is reconciled.
    """
    document = parse_document(raw)
    now = utc_now()
    imported: LedgerSnapshot = {}

    # Keys stay verbatim: they may name working copies on another machine.
    for repo_path, records in document.deletion_history.items():
        unique = dedupe_records([record.clamped(now) for record in records])
        if unique:
            imported[repo_path] = unique

    if strategy == ImportStrategy.REPLACE:
        return ImportResult(
            strategy=strategy,
            ledger=imported,
            added_count=sum(len(records) for records in imported.values()),
            repositories=list(imported),
        )

    merged: LedgerSnapshot = {repo: list(records) for repo, records in current.items()}
    added = 0
    touched = []

    for repo_path, records in imported.items():
        existing = merged.setdefault(repo_path, [])
        known = {record.key for record in existing}
        new_records = [record for record in records if record.key not in known]

        if new_records:
            existing.extend(new_records)
            added += len(new_records)
            touched.append(repo_path)
        elif not existing:
            del merged[repo_path]

    return ImportResult(
        strategy=strategy,
        ledger=merged,
        added_count=added,
        repositories=touched,
    )
