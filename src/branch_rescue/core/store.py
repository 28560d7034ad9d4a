"""
Durable key/value stores backing the deletion ledger.

The ledger only needs get/set of JSON-compatible blobs under a key, plus an
optional flag marking keys that should follow the user across machines.
"""

import copy
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Iterable, Optional

from branch_rescue.core.errors import PersistenceFailure
from branch_rescue.utils.io import read_json_locked, write_json_atomic

logger = logging.getLogger(__name__)


class DurableStore(ABC):
    """Key/value persistence consumed by the ledger."""

    def __init__(self) -> None:
        self.synced_keys: set[str] = set()

    @abstractmethod
    def get(self, key: str) -> Any:
        """Return the blob stored under key, or None."""

    @abstractmethod
    def set(self, key: str, blob: Any) -> None:
        """Store blob under key. Raises PersistenceFailure on I/O errors."""

    def set_keys_for_sync(self, keys: Iterable[str]) -> None:
        """Flag keys for cross-machine synchronization."""
        self.synced_keys = set(keys)


class InMemoryStore(DurableStore):
    """Process-local store; nothing survives the interpreter."""

    def __init__(self, initial: Optional[dict[str, Any]] = None):
        super().__init__()
        self._values: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def get(self, key: str) -> Any:
        return copy.deepcopy(self._values.get(key))

    def set(self, key: str, blob: Any) -> None:
        self._values[key] = copy.deepcopy(blob)


class JsonFileStore(DurableStore):
    """Store persisted as a single JSON file.

    File layout::

        {"values": {key: blob, ...}, "syncKeys": [key, ...]}
    """

    DEFAULT_FILENAME = "state.json"

    def __init__(self, path: Optional[Path] = None):
        super().__init__()
        self.path = Path(path) if path else self._get_default_path()

    def _get_default_path(self) -> Path:
        """Default state file in the user's home directory."""
        return Path.home() / ".branch-rescue" / self.DEFAULT_FILENAME

    def _read_document(self) -> dict[str, Any]:
        try:
            data = read_json_locked(self.path)
        except (OSError, ValueError) as e:
            raise PersistenceFailure("read", str(self.path), str(e)) from e

        if data is None:
            return {"values": {}, "syncKeys": []}
        if not isinstance(data, dict) or not isinstance(data.get("values", {}), dict):
            raise PersistenceFailure("read", str(self.path), "unexpected file layout")

        data.setdefault("values", {})
        data.setdefault("syncKeys", [])
        return data

    def get(self, key: str) -> Any:
        return self._read_document()["values"].get(key)

    def set(self, key: str, blob: Any) -> None:
        try:
            document = self._read_document()
        except PersistenceFailure as e:
            logger.warning(f"Overwriting unreadable state file: {e}")
            document = {"values": {}, "syncKeys": []}

        document["values"][key] = blob
        document["syncKeys"] = sorted(self.synced_keys)

        try:
            write_json_atomic(self.path, document)
        except (OSError, TypeError) as e:
            raise PersistenceFailure("write", str(self.path), str(e)) from e
