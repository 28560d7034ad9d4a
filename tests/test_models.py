"""Tests for Pydantic models."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from branch_rescue.models.deletion import DeletionRecord, DeletionSource, ReflogCandidate
from branch_rescue.models.diff import ChangeKind, DiffEntry
from branch_rescue.models.history import HistoryDocument


class TestDeletionRecord:
    """Test suite for DeletionRecord model."""

    def test_accepts_camel_case_document(self):
        record = DeletionRecord.model_validate({
            "branchName": "feature-y",
            "commitHash": "abc1234def",
            "deletedAt": "2026-01-05T09:15:00+00:00",
            "source": "reflog",
        })

        assert record.branch_name == "feature-y"
        assert record.commit_hash == "abc1234def"
        assert record.source == DeletionSource.REFLOG_DISCOVERED
        assert record.deleted_at == datetime(2026, 1, 5, 9, 15, tzinfo=timezone.utc)

    def test_accepts_field_names(self):
        record = DeletionRecord(branch_name="main", commit_hash="abcdef0")

        assert record.source == DeletionSource.USER_INITIATED
        assert record.deleted_at.tzinfo is not None

    def test_to_document_uses_aliases(self):
        record = DeletionRecord(
            branch_name="feature-y",
            commit_hash="abc1234",
            deleted_at=datetime(2026, 1, 5, 9, 15, tzinfo=timezone.utc),
        )

        document = record.to_document()

        assert document == {
            "branchName": "feature-y",
            "commitHash": "abc1234",
            "deletedAt": "2026-01-05T09:15:00Z",
            "source": "user",
        }

    def test_document_round_trip(self):
        record = DeletionRecord(branch_name="feature-y", commit_hash="abc1234")

        assert DeletionRecord.model_validate(record.to_document()) == record

    def test_offset_timestamps_normalized_to_utc(self):
        plus_two = timezone(timedelta(hours=2))
        record = DeletionRecord(
            branch_name="x",
            commit_hash="abc1234",
            deleted_at=datetime(2026, 1, 5, 11, 0, tzinfo=plus_two),
        )

        assert record.deleted_at == datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)
        assert record.deleted_at.utcoffset() == timedelta(0)

    def test_key_and_short_hash(self):
        record = DeletionRecord(branch_name="x", commit_hash="abc1234def5678")

        assert record.key == ("x", "abc1234def5678")
        assert record.short_hash == "abc1234"

    def test_clamped_moves_future_deletion_to_now(self):
        now = datetime(2026, 2, 1, tzinfo=timezone.utc)
        record = DeletionRecord(
            branch_name="x", commit_hash="abc1234", deleted_at=now + timedelta(days=400)
        )

        clamped = record.clamped(now)

        assert clamped.deleted_at == now
        assert clamped.key == record.key

    def test_clamped_keeps_past_deletion(self):
        now = datetime(2026, 2, 1, tzinfo=timezone.utc)
        record = DeletionRecord(
            branch_name="x", commit_hash="abc1234", deleted_at=now - timedelta(days=1)
        )

        assert record.clamped(now) is record

    def test_records_are_immutable(self):
        record = DeletionRecord(branch_name="x", commit_hash="abc1234")

        with pytest.raises(ValidationError):
            record.branch_name = "y"

    def test_empty_branch_name_rejected(self):
        with pytest.raises(ValidationError):
            DeletionRecord(branch_name="", commit_hash="abc1234")


class TestReflogCandidate:
    """Test suite for ReflogCandidate model."""

    def test_to_record_keeps_known_timestamp(self):
        when = datetime(2026, 1, 5, 9, 15, tzinfo=timezone.utc)
        candidate = ReflogCandidate(
            branch_name="feature-y",
            commit_hash="abc1234",
            deleted_at=when,
            matcher="local-delete",
        )

        record = candidate.to_record(now=when + timedelta(days=1))

        assert record.deleted_at == when
        assert record.source == DeletionSource.REFLOG_DISCOVERED

    def test_to_record_uses_now_for_unknown_timestamp(self):
        now = datetime(2026, 2, 1, tzinfo=timezone.utc)
        candidate = ReflogCandidate(
            branch_name="feature-y",
            commit_hash="abc1234",
            matcher="local-delete",
        )

        assert candidate.to_record(now=now).deleted_at == now

    def test_to_record_clamps_future_timestamp(self):
        now = datetime(2026, 2, 1, tzinfo=timezone.utc)
        candidate = ReflogCandidate(
            branch_name="feature-y",
            commit_hash="abc1234",
            deleted_at=now + timedelta(days=3),
            matcher="local-delete",
        )

        assert candidate.to_record(now=now).deleted_at == now


class TestDiffModels:
    """Test suite for diff entry models."""

    @pytest.mark.parametrize(
        "letter, kind",
        [
            ("A", ChangeKind.ADDED),
            ("M", ChangeKind.MODIFIED),
            ("D", ChangeKind.DELETED),
            ("R087", ChangeKind.RENAMED),
            ("C100", ChangeKind.ADDED),
            ("T", ChangeKind.MODIFIED),
        ],
    )
    def test_from_status_letter(self, letter, kind):
        assert ChangeKind.from_status_letter(letter) == kind

    def test_rename_label(self):
        entry = DiffEntry(path="new.py", kind=ChangeKind.RENAMED, old_path="old.py")

        assert entry.label == "old.py -> new.py"

    def test_plain_label(self):
        entry = DiffEntry(path="src/app.py", kind=ChangeKind.MODIFIED)

        assert entry.label == "src/app.py"


class TestHistoryDocument:
    """Test suite for HistoryDocument model."""

    def test_record_count(self):
        document = HistoryDocument(
            version="1.0",
            deletion_history={
                "/a": [DeletionRecord(branch_name="x", commit_hash="abc1234")],
                "/b": [
                    DeletionRecord(branch_name="y", commit_hash="abc1234"),
                    DeletionRecord(branch_name="z", commit_hash="abc1234"),
                ],
            },
        )

        assert document.record_count == 3

    def test_missing_history_rejected(self):
        with pytest.raises(ValidationError):
            HistoryDocument.model_validate({"version": "1.0"})
