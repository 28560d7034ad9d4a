"""Tests for the deletion ledger."""

import os
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from branch_rescue.core.errors import PersistenceFailure
from branch_rescue.core.ledger import LEDGER_KEY, DeletionLedger, normalize_repo_path
from branch_rescue.core.store import DurableStore, InMemoryStore
from branch_rescue.models.deletion import DeletionSource, utc_now

from conftest import OTHER_REPO, REPO, make_record


def failing_store() -> MagicMock:
    store = MagicMock(spec=DurableStore)
    store.get.return_value = None
    store.set.side_effect = PersistenceFailure("write", "state.json", "disk full")
    return store


class TestRecord:
    """Test suite for DeletionLedger.record."""

    def test_record_persists_document(self, ledger, memory_store):
        record = ledger.record(REPO, "feature-x", "abc1234def")

        assert record is not None
        assert record.source == DeletionSource.USER_INITIATED
        stored = memory_store.get(LEDGER_KEY)
        assert stored[REPO][0]["branchName"] == "feature-x"
        assert stored[REPO][0]["commitHash"] == "abc1234def"

    def test_duplicate_record_is_ignored(self, ledger):
        first = ledger.record(REPO, "feature-x", "abc1234")
        second = ledger.record(REPO, "feature-x", "abc1234")

        assert first is not None
        assert second is None
        assert len(ledger.list_deletions(REPO)) == 1

    def test_same_branch_different_commit_kept(self, ledger):
        ledger.record(REPO, "feature-x", "abc1234")
        ledger.record(REPO, "feature-x", "def5678")

        assert [r.commit_hash for r in ledger.list_deletions(REPO)] == ["abc1234", "def5678"]

    def test_repositories_are_independent(self, ledger):
        ledger.record(REPO, "feature-x", "abc1234")
        ledger.record(OTHER_REPO, "feature-x", "abc1234")

        assert len(ledger.list_deletions(REPO)) == 1
        assert len(ledger.list_deletions(OTHER_REPO)) == 1
        assert sorted(ledger.repositories()) == sorted([REPO, OTHER_REPO])

    def test_future_timestamp_clamped(self, ledger):
        record = ledger.record(
            REPO, "feature-x", "abc1234", deleted_at=utc_now() + timedelta(days=2)
        )

        assert record.deleted_at <= utc_now()

    def test_repo_paths_normalized(self, ledger):
        ledger.record("/work/project/../project", "feature-x", "abc1234")

        assert len(ledger.list_deletions(REPO)) == 1
        assert normalize_repo_path("/work/project/") == os.path.abspath(REPO)

    def test_records_kept_in_discovery_order(self, ledger):
        for name in ["c", "a", "b"]:
            ledger.record(REPO, name, "abc1234")

        assert [r.branch_name for r in ledger.list_deletions(REPO)] == ["c", "a", "b"]


class TestFindAndRemove:
    """Test suite for lookup and removal."""

    def test_find_without_commit_returns_oldest(self, memory_store):
        memory_store.set(LEDGER_KEY, {
            REPO: [
                make_record("feature-x", "newer00", days_ago=1).to_document(),
                make_record("feature-x", "older00", days_ago=5).to_document(),
            ]
        })
        ledger = DeletionLedger(memory_store)
        ledger.load()

        assert ledger.find(REPO, "feature-x").commit_hash == "older00"

    def test_find_by_commit_prefix(self, ledger):
        ledger.record(REPO, "feature-x", "abc1234def5678")

        assert ledger.find(REPO, "feature-x", "abc1234").commit_hash == "abc1234def5678"
        assert ledger.find(REPO, "feature-x", "fff0000") is None

    def test_find_missing_branch(self, ledger):
        assert ledger.find(REPO, "nope") is None

    def test_remove_exact_record(self, ledger):
        ledger.record(REPO, "feature-x", "abc1234")
        ledger.record(REPO, "feature-x", "def5678")

        assert ledger.remove(REPO, "feature-x", "def5678") is True
        assert [r.commit_hash for r in ledger.list_deletions(REPO)] == ["abc1234"]

    def test_remove_last_record_drops_repository(self, ledger):
        ledger.record(REPO, "feature-x", "abc1234")

        ledger.remove(REPO, "feature-x")

        assert ledger.repositories() == []

    def test_remove_missing_returns_false(self, ledger):
        assert ledger.remove(REPO, "nope") is False


class TestClear:
    """Test suite for clearing history."""

    def test_clear_one_repository(self, ledger):
        ledger.record(REPO, "a", "abc1234")
        ledger.record(REPO, "b", "abc1234")
        ledger.record(OTHER_REPO, "c", "abc1234")

        assert ledger.clear(REPO) == 2
        assert ledger.list_deletions(REPO) == []
        assert len(ledger.list_deletions(OTHER_REPO)) == 1

    def test_clear_all(self, ledger, memory_store):
        ledger.record(REPO, "a", "abc1234")
        ledger.record(OTHER_REPO, "c", "abc1234")

        assert ledger.clear_all() == 2
        assert memory_store.get(LEDGER_KEY) == {}


class TestLoad:
    """Test suite for loading persisted history."""

    def test_load_prunes_expired_records(self, memory_store):
        memory_store.set(LEDGER_KEY, {
            REPO: [
                make_record("fresh", "abc1234", days_ago=1).to_document(),
                make_record("stale", "def5678", days_ago=40).to_document(),
            ]
        })
        ledger = DeletionLedger(memory_store, retention_days=30)

        ledger.load()

        assert [r.branch_name for r in ledger.list_deletions(REPO)] == ["fresh"]
        assert len(memory_store.get(LEDGER_KEY)[REPO]) == 1

    def test_load_skips_malformed_records(self, memory_store):
        memory_store.set(LEDGER_KEY, {
            REPO: [
                {"branchName": "ok", "commitHash": "abc1234", "deletedAt": utc_now().isoformat()},
                {"branchName": "", "commitHash": "abc1234"},
                "not a record",
            ],
            OTHER_REPO: "not a list",
        })
        ledger = DeletionLedger(memory_store)

        ledger.load()

        assert [r.branch_name for r in ledger.list_deletions(REPO)] == ["ok"]
        assert ledger.list_deletions(OTHER_REPO) == []

    def test_load_drops_duplicates(self, memory_store):
        document = make_record("x", "abc1234").to_document()
        memory_store.set(LEDGER_KEY, {REPO: [document, dict(document)]})
        ledger = DeletionLedger(memory_store)

        ledger.load()

        assert len(ledger.list_deletions(REPO)) == 1

    def test_load_keeps_foreign_keys_verbatim(self, memory_store):
        windows_key = "C:\\work\\repo"
        memory_store.set(LEDGER_KEY, {
            windows_key: [make_record("a", "aaaaaaa").to_document()],
            "/r/": [make_record("b", "bbbbbbb").to_document()],
        })
        ledger = DeletionLedger(memory_store)

        ledger.load()

        assert sorted(ledger.repositories()) == sorted([windows_key, "/r/"])
        assert [r.branch_name for r in ledger.list_deletions(windows_key)] == ["a"]
        assert ledger.remove(windows_key, "a") is True
        assert windows_key not in memory_store.get(LEDGER_KEY)

    def test_load_clamps_future_records(self, memory_store):
        memory_store.set(LEDGER_KEY, {
            REPO: [make_record("ahead", "aaaaaaa", days_ago=-400).to_document()],
        })
        ledger = DeletionLedger(memory_store, retention_days=30)

        ledger.load()

        record = ledger.list_deletions(REPO)[0]
        assert record.deleted_at <= utc_now()
        assert ledger.prune(1) == 0

    def test_load_from_empty_store(self, ledger):
        ledger.load()

        assert ledger.snapshot() == {}

    def test_load_failure_starts_empty(self):
        store = MagicMock(spec=DurableStore)
        store.get.side_effect = PersistenceFailure("read", "state.json", "permission denied")
        ledger = DeletionLedger(store)

        ledger.load()

        assert ledger.snapshot() == {}


class TestPersistenceFailure:
    """Test suite for session-only fallback."""

    def test_write_failure_keeps_in_memory_record(self):
        ledger = DeletionLedger(failing_store())

        record = ledger.record(REPO, "feature-x", "abc1234")

        assert record is not None
        assert ledger.session_only is True
        assert ledger.find(REPO, "feature-x") == record

    def test_successful_save_leaves_session_only_mode(self):
        store = failing_store()
        ledger = DeletionLedger(store)
        ledger.record(REPO, "a", "abc1234")

        store.set.side_effect = None
        ledger.record(REPO, "b", "abc1234")

        assert ledger.session_only is False

    def test_save_returns_status(self, ledger):
        assert ledger.save() is True
        assert DeletionLedger(failing_store()).save() is False


class TestPrune:
    """Test suite for DeletionLedger.prune."""

    def test_prune_with_override(self, ledger):
        ledger.replace_snapshot({REPO: [make_record("a", "abc1234", days_ago=10)]})

        assert ledger.prune(15) == 0
        assert ledger.prune(5) == 1
        assert ledger.snapshot() == {}

    def test_prune_uses_configured_horizon(self, memory_store):
        ledger = DeletionLedger(memory_store, retention_days=7)
        ledger.replace_snapshot({REPO: [make_record("a", "abc1234", days_ago=10)]})

        assert ledger.prune() == 1

    def test_invalid_horizon_rejected(self, ledger):
        with pytest.raises(ValueError):
            ledger.prune(0)

    def test_invalid_retention_rejected_at_construction(self, memory_store):
        with pytest.raises(ValueError):
            DeletionLedger(memory_store, retention_days=400)


class TestSync:
    """Test suite for cross-machine sync flag."""

    def test_sync_flag_marks_ledger_key(self):
        store = InMemoryStore()

        DeletionLedger(store, sync_across_machines=True)

        assert store.synced_keys == {LEDGER_KEY}

    def test_no_sync_by_default(self, ledger, memory_store):
        assert memory_store.synced_keys == set()


class TestReplaceSnapshot:
    """Test suite for installing imported histories."""

    def test_replace_snapshot_dedupes_and_persists(self, ledger, memory_store):
        record = make_record("x", "abc1234")

        ledger.replace_snapshot({REPO: [record, record], OTHER_REPO: []})

        assert ledger.list_deletions(REPO) == [record]
        assert OTHER_REPO not in ledger.repositories()
        assert len(memory_store.get(LEDGER_KEY)[REPO]) == 1

    def test_snapshot_is_a_copy(self, ledger):
        ledger.record(REPO, "x", "abc1234")

        snapshot = ledger.snapshot()
        snapshot[REPO].clear()

        assert len(ledger.list_deletions(REPO)) == 1

    def test_replace_snapshot_keeps_keys_and_clamps(self, ledger):
        windows_key = "C:\\work\\repo"
        future = make_record("ahead", "aaaaaaa", days_ago=-400)

        ledger.replace_snapshot({windows_key: [future], "/r": [make_record("b", "bbbbbbb")]})

        assert sorted(ledger.repositories()) == sorted([windows_key, "/r"])
        assert ledger.list_deletions(windows_key)[0].deleted_at <= utc_now()
