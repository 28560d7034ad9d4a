"""Git command execution for branch deletion tracking and restoration."""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from git import Repo
from git.exc import GitCommandError, InvalidGitRepositoryError, NoSuchPathError

from branch_rescue.core.errors import NotAGitRepositoryError, SubprocessFailure
from branch_rescue.models.diff import ChangeKind, DiffEntry

logger = logging.getLogger(__name__)

REFLOG_FORMAT = "%H %gs {%gd}"


def resolve_repository(path: Optional[Path] = None) -> str:
    """
    Find the working-copy root containing path.

    Raises:
        NotAGitRepositoryError: If path is not inside a git working copy.
    """
    start = path or Path.cwd()
    try:
        repo = Repo(start, search_parent_directories=True)
    except (InvalidGitRepositoryError, NoSuchPathError) as e:
        raise NotAGitRepositoryError("open repository", str(start), "not a git repository") from e

    if repo.working_tree_dir is None:
        raise NotAGitRepositoryError("open repository", str(start), "bare repositories are not supported")

    return str(Path(repo.working_tree_dir).absolute())


def parse_name_status(output: str) -> list[DiffEntry]:
    """Parse `git diff --name-status` output into diff entries."""
    entries = []

    for line in output.splitlines():
        parts = line.split("\t")
        if len(parts) < 2 or not parts[0]:
            continue

        kind = ChangeKind.from_status_letter(parts[0])
        if kind == ChangeKind.RENAMED and len(parts) >= 3:
            entries.append(DiffEntry(path=parts[2], kind=kind, old_path=parts[1]))
        else:
            entries.append(DiffEntry(path=parts[-1], kind=kind))

    return entries


class CommandRunner(ABC):
    """Git operations the deletion ledger and restore workflows rely on."""

    @abstractmethod
    def read_reflog(self, repo_path: str) -> str:
        """Full reference-log text, newest entries first."""

    @abstractmethod
    def diff_status(self, repo_path: str, ref_a: str, ref_b: str) -> list[DiffEntry]:
        """Changed files between ref_a and ref_b."""

    @abstractmethod
    def resolve_ref(self, repo_path: str, name_or_ref: str) -> str:
        """Full commit hash a name or ref points to."""

    @abstractmethod
    def current_branch(self, repo_path: str) -> str:
        """Checked-out branch name, or HEAD when detached."""

    @abstractmethod
    def create_branch(self, repo_path: str, name: str, commit_hash: str) -> None:
        """Create branch name pointing at commit_hash."""

    @abstractmethod
    def delete_branch(self, repo_path: str, name: str, force: bool = False) -> None:
        """Delete a local branch."""

    @abstractmethod
    def branch_exists(self, repo_path: str, name: str) -> bool:
        """Whether a local branch with this name exists."""

    @abstractmethod
    def show_file(self, repo_path: str, ref: str, path: str) -> Optional[str]:
        """Contents of path at ref, or None if it does not exist there."""


class GitCommandRunner(CommandRunner):
    """CommandRunner backed by GitPython.

    Calls are blocking and issued one at a time; GitPython reads the full
    command output, so multi-megabyte reflogs are never truncated.
    """

    def __init__(self, reflog_timeout_seconds: Optional[float] = 60):
        self.reflog_timeout_seconds = reflog_timeout_seconds
        self._repos: dict[str, Repo] = {}

    def _repo(self, repo_path: str) -> Repo:
        key = str(repo_path)
        if key not in self._repos:
            try:
                self._repos[key] = Repo(key)
            except (InvalidGitRepositoryError, NoSuchPathError) as e:
                raise NotAGitRepositoryError("open repository", key, "not a git repository") from e
        return self._repos[key]

    def _failure(self, operation: str, target: str, error: GitCommandError) -> SubprocessFailure:
        detail = (error.stderr or str(error)).strip()
        logger.debug(f"git {operation} failed for {target} (status {error.status}): {detail}")
        return SubprocessFailure(operation, target, detail)

    def read_reflog(self, repo_path: str) -> str:
        repo = self._repo(repo_path)
        try:
            return repo.git.log(
                "--walk-reflogs",
                "--all",
                "--date=iso-strict",
                f"--format={REFLOG_FORMAT}",
                kill_after_timeout=self.reflog_timeout_seconds,
            )
        except GitCommandError as e:
            raise self._failure("read reflog", repo_path, e) from e

    def diff_status(self, repo_path: str, ref_a: str, ref_b: str) -> list[DiffEntry]:
        repo = self._repo(repo_path)
        try:
            output = repo.git.diff("--name-status", "-M", ref_a, ref_b, "--")
        except GitCommandError as e:
            raise self._failure("diff", f"{ref_a}..{ref_b} in {repo_path}", e) from e
        return parse_name_status(output)

    def resolve_ref(self, repo_path: str, name_or_ref: str) -> str:
        repo = self._repo(repo_path)
        try:
            return repo.git.rev_parse("--verify", "--quiet", f"{name_or_ref}^{{commit}}").strip()
        except GitCommandError as e:
            raise self._failure("resolve ref", f"{name_or_ref} in {repo_path}", e) from e

    def current_branch(self, repo_path: str) -> str:
        repo = self._repo(repo_path)
        try:
            return repo.git.rev_parse("--abbrev-ref", "HEAD").strip()
        except GitCommandError as e:
            raise self._failure("read current branch", repo_path, e) from e

    def create_branch(self, repo_path: str, name: str, commit_hash: str) -> None:
        repo = self._repo(repo_path)
        try:
            repo.git.branch(name, commit_hash)
        except GitCommandError as e:
            raise self._failure("create branch", f"{name}@{commit_hash[:7]} in {repo_path}", e) from e

    def delete_branch(self, repo_path: str, name: str, force: bool = False) -> None:
        repo = self._repo(repo_path)
        try:
            repo.git.branch("-D" if force else "-d", name)
        except GitCommandError as e:
            raise self._failure("delete branch", f"{name} in {repo_path}", e) from e

    def branch_exists(self, repo_path: str, name: str) -> bool:
        repo = self._repo(repo_path)
        try:
            repo.git.rev_parse("--verify", "--quiet", f"refs/heads/{name}")
            return True
        except GitCommandError:
            return False

    def show_file(self, repo_path: str, ref: str, path: str) -> Optional[str]:
        repo = self._repo(repo_path)
        try:
            return repo.git.show(f"{ref}:{path}")
        except GitCommandError:
            return None
