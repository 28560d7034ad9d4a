"""Small IO helpers for the persisted deletion ledger.

write_json_atomic() serializes a payload to a temp file in the destination
directory, fsyncs it and os.replace()s it into place with restrictive
permissions, so a crash never leaves a half-written state file behind.

read_json_locked() reads a JSON file under a shared advisory lock when the
platform offers one.
"""
from __future__ import annotations

import json
import logging
import os
import sys
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, TextIO

logger = logging.getLogger(__name__)


@contextmanager
def shared_file_lock(file_handle: TextIO) -> Iterator[None]:
    """Hold a shared (read) lock on file_handle for the duration of the block.

    Uses fcntl.flock on Unix and msvcrt.locking on Windows. Locking is
    best-effort: when it is unavailable the block still runs unlocked.
    """
    unlock = None

    try:
        if sys.platform == "win32":
            import msvcrt

            msvcrt.locking(file_handle.fileno(), msvcrt.LK_NBLCK, 1)
            unlock = lambda: msvcrt.locking(file_handle.fileno(), msvcrt.LK_UNLCK, 1)  # noqa: E731
        else:
            import fcntl

            fcntl.flock(file_handle, fcntl.LOCK_SH)
            unlock = lambda: fcntl.flock(file_handle, fcntl.LOCK_UN)  # noqa: E731
    except OSError as e:
        logger.debug(f"Continuing without file lock on {file_handle.name}: {e}")

    try:
        yield
    finally:
        if unlock is not None:
            try:
                unlock()
            except OSError:
                pass


def read_json_locked(path: str | Path) -> Any:
    """Read and decode a JSON file; returns None if it does not exist."""
    source = Path(path)
    if not source.exists():
        return None

    with open(source, encoding="utf-8") as f:
        with shared_file_lock(f):
            return json.load(f)


def write_json_atomic(path: str | Path, payload: Any, perms: int = 0o600) -> None:
    """Atomically write payload as indented JSON to path.

    Raises OSError (or TypeError for unserializable payloads) on failure;
    the temp file is removed if it could not be moved into place.
    """
    dest = Path(path)
    dest.parent.mkdir(parents=True, exist_ok=True)
    data = json.dumps(payload, indent=2, sort_keys=True)

    tmp_name: str | None = None
    try:
        with tempfile.NamedTemporaryFile(
            "w",
            dir=str(dest.parent),
            prefix=f".{dest.name}.",
            delete=False,
            encoding="utf-8",
        ) as tmp:
            tmp_name = tmp.name
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())

        os.replace(tmp_name, dest)
        tmp_name = None

        try:
            os.chmod(dest, perms)
        except PermissionError:
            logger.warning(f"Could not set permissions {oct(perms)} on {dest}")
    finally:
        if tmp_name is not None:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
