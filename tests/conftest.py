"""
Pytest configuration and shared fixtures for Branch Rescue tests.
"""

import subprocess
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Generator
from unittest.mock import MagicMock

import pytest

from branch_rescue.core.ledger import DeletionLedger
from branch_rescue.core.preview import InteractionSurface
from branch_rescue.core.runner import CommandRunner
from branch_rescue.core.store import InMemoryStore
from branch_rescue.models.deletion import DeletionRecord, DeletionSource

REPO = "/work/project"
OTHER_REPO = "/work/other"


def make_record(
    name: str,
    commit: str,
    days_ago: float = 0,
    source: DeletionSource = DeletionSource.USER_INITIATED,
) -> DeletionRecord:
    """Build a DeletionRecord deleted the given number of days ago."""
    return DeletionRecord(
        branch_name=name,
        commit_hash=commit,
        deleted_at=datetime.now(timezone.utc) - timedelta(days=days_ago),
        source=source,
    )


def run_git(repo_path: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args],
        cwd=repo_path,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


@pytest.fixture
def temp_directory() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def git_repo(temp_directory: Path) -> Generator[Path, None, None]:
    """Create a temporary git repository with one commit."""
    repo_path = temp_directory / "test-repo"
    repo_path.mkdir()

    run_git(repo_path, "init")
    run_git(repo_path, "config", "user.email", "test@example.com")
    run_git(repo_path, "config", "user.name", "Test User")

    (repo_path / "README.md").write_text("# Test Repository\n")
    run_git(repo_path, "add", ".")
    run_git(repo_path, "commit", "-m", "Initial commit")

    yield repo_path


@pytest.fixture
def feature_branch(git_repo: Path) -> str:
    """Create a 'feature-x' branch one commit ahead of the default branch."""
    default_branch = run_git(git_repo, "branch", "--show-current")

    run_git(git_repo, "checkout", "-b", "feature-x")
    (git_repo / "feature.txt").write_text("feature work\n")
    (git_repo / "README.md").write_text("# Test Repository\n\nWith a feature.\n")
    run_git(git_repo, "add", ".")
    run_git(git_repo, "commit", "-m", "Add feature")
    commit = run_git(git_repo, "rev-parse", "HEAD")
    run_git(git_repo, "checkout", default_branch)

    return commit


@pytest.fixture
def memory_store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def ledger(memory_store: InMemoryStore) -> DeletionLedger:
    return DeletionLedger(memory_store, retention_days=90)


@pytest.fixture
def mock_runner() -> MagicMock:
    """CommandRunner double on a clean 'main' branch."""
    runner = MagicMock(spec=CommandRunner)
    runner.current_branch.return_value = "main"
    runner.diff_status.return_value = []
    runner.branch_exists.return_value = False
    return runner


@pytest.fixture
def mock_interaction() -> MagicMock:
    """InteractionSurface double that dismisses every prompt."""
    interaction = MagicMock(spec=InteractionSurface)
    interaction.confirm.return_value = False
    interaction.choose.return_value = None
    return interaction


@pytest.fixture
def sample_reflog() -> str:
    """Reflog text with every deletion phrasing, newest first."""
    return "\n".join([
        "abc1234 HEAD@{0}: branch: deleted feature-y",
        "1111111aaaaaaa branch: force-deleted spike/risky {2026-01-04T18:00:00+00:00}",
        "2222222bbbbbbb Deleted remote-tracking branch origin/release/1.2 (was 3333333) {2026-01-03T08:30:00Z}",
        "4444444ccccccc update-ref: delete refs/heads/hotfix {2026-01-02T12:00:00}",
        "5555555ddddddd checkout: moving from main to feature-y {2026-01-01T10:00:00}",
        "abc1234ffffff HEAD@{5}: branch: deleted feature-y {2025-12-30T09:15:00}",
        "this line is not a reflog entry at all",
        "",
    ])
