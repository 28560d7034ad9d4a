"""
Reflog scanner for recovering branch deletions made outside this tool.

Each line of reference-log text is offered to an ordered list of matchers,
one per deletion phrasing. The first matcher that recognizes a line wins, so
a line produces at most one candidate. Lines nobody recognizes are skipped.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Optional

from branch_rescue.models.deletion import ReflogCandidate

if TYPE_CHECKING:
    from branch_rescue.core.runner import CommandRunner

logger = logging.getLogger(__name__)

HASH_PREFIX_LENGTH = 7

_LEADING_HASH = re.compile(r"^\s*([0-9a-fA-F]{7,64})\b")
_WAS_HASH = re.compile(r"\(was\s+([0-9a-fA-F]{7,64})\)", re.IGNORECASE)
_BRACED = re.compile(r"\{([^{}]*)\}")
_BRANCH_NAME = r"(?P<branch>[^\s{}()'\"]+?)[.,;:]?(?=\s|$|\{|\()"


@dataclass(frozen=True)
class ReflogMatch:
    """Fields extracted from a single recognized line."""

    branch_name: str
    commit_hash: str


Matcher = Callable[[str], Optional[ReflogMatch]]


def _extract_hash(line: str) -> Optional[str]:
    match = _WAS_HASH.search(line) or _LEADING_HASH.search(line)
    return match.group(1).lower() if match else None


def _pattern_matcher(
    pattern: str,
    strip_prefix: Optional[Callable[[str], str]] = None,
) -> Matcher:
    compiled = re.compile(pattern, re.IGNORECASE)

    def match(line: str) -> Optional[ReflogMatch]:
        found = compiled.search(line)
        if not found:
            return None

        commit_hash = _extract_hash(line)
        if not commit_hash:
            return None

        branch = found.group("branch")
        if strip_prefix:
            branch = strip_prefix(branch)
        if not branch:
            return None

        return ReflogMatch(branch_name=branch, commit_hash=commit_hash)

    return match


def _strip_remote(name: str) -> str:
    """origin/feature/x -> feature/x"""
    name = name.removeprefix("refs/remotes/")
    _, _, branch = name.partition("/")
    return branch


def _strip_heads(name: str) -> str:
    return name.removeprefix("refs/heads/")


MATCHERS: tuple[tuple[str, Matcher], ...] = (
    ("local-delete", _pattern_matcher(rf"\bbranch:\s+deleted\s+{_BRANCH_NAME}")),
    (
        "forced-delete",
        _pattern_matcher(
            rf"\bbranch(?::\s+force[- ]deleted|\s+(?-i:-D))\s+{_BRANCH_NAME}"
        ),
    ),
    (
        "remote-tracking-delete",
        _pattern_matcher(
            rf"\bdeleted\s+remote[- ]tracking\s+branch\s+{_BRANCH_NAME}",
            strip_prefix=_strip_remote,
        ),
    ),
    (
        "update-ref-delete",
        _pattern_matcher(
            rf"\bupdate-ref(?::\s+delete|\s+-d)\s+(?=refs/heads/){_BRANCH_NAME}",
            strip_prefix=_strip_heads,
        ),
    ),
)


def parse_timestamp(text: str) -> Optional[datetime]:
    """Parse an ISO-8601 or `git --date=iso` timestamp, or return None."""
    value = text.strip()
    if not value:
        return None

    if value.endswith("Z"):
        value = value[:-1] + "+00:00"

    try:
        return datetime.fromisoformat(value)
    except ValueError:
        pass

    try:
        return datetime.strptime(value, "%Y-%m-%d %H:%M:%S %z")
    except ValueError:
        return None


def extract_timestamp(line: str) -> Optional[datetime]:
    """First braced group on the line that parses as a timestamp."""
    for group in _BRACED.findall(line):
        parsed = parse_timestamp(group)
        if parsed is not None:
            return parsed
    return None


def parse_line(line: str) -> Optional[ReflogCandidate]:
    """Turn one reflog line into a candidate, or None if it is not a deletion."""
    for name, matcher in MATCHERS:
        found = matcher(line)
        if found is None:
            continue

        return ReflogCandidate(
            branch_name=found.branch_name,
            commit_hash=found.commit_hash,
            deleted_at=extract_timestamp(line),
            matcher=name,
            raw_line=line.strip(),
        )

    return None


class ReflogScanner:
    """Finds deleted branches in raw reference-log output."""

    def scan_text(self, text: str) -> list[ReflogCandidate]:
        """
        Parse reflog text into deduplicated deletion candidates.

        The log is newest-first, so the first occurrence of a
        (branch, short hash) pair is kept.
        """
        candidates: list[ReflogCandidate] = []
        seen: set[tuple[str, str]] = set()
        skipped = 0

        for line in text.splitlines():
            if not line.strip():
                continue

            candidate = parse_line(line)
            if candidate is None:
                skipped += 1
                continue

            key = (candidate.branch_name, candidate.commit_hash[:HASH_PREFIX_LENGTH])
            if key in seen:
                continue

            seen.add(key)
            candidates.append(candidate)

        logger.debug(
            f"Reflog scan found {len(candidates)} deletion(s), "
            f"ignored {skipped} unrelated line(s)"
        )
        return candidates

    def scan_repository(
        self,
        runner: "CommandRunner",
        repo_path: str,
    ) -> list[ReflogCandidate]:
        """Read the full reflog of repo_path through runner and scan it."""
        return self.scan_text(runner.read_reflog(repo_path))
