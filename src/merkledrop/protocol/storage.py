"""
merkledrop/protocol/storage.py

Key-value storage layer for contract state.

Provides:
1. MemoryBackend - In-process dict, used by tests and ephemeral services
2. FileBackend - Local disk, survives restarts
3. StagedStorage - Per-request write overlay committed in one batch

Backends apply a write_batch all or nothing. Request atomicity comes from
StagedStorage: writes stay in the overlay until commit(), and a failed
request simply drops the overlay.
"""

import os
import json
import logging
import hashlib
import uuid
from pathlib import Path
from typing import Dict, List, Optional
from abc import ABC, abstractmethod

from ..config import DEFAULT_STORAGE_DIR

logger = logging.getLogger("merkledrop.protocol.storage")


# ============================================================================
# STORAGE BACKENDS
# ============================================================================

class StorageBackend(ABC):
    """Abstract base class for storage backends."""

    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        """Get a value by key."""
        pass

    @abstractmethod
    def put(self, key: str, value: bytes) -> None:
        """Store a value."""
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Delete a value."""
        pass

    @abstractmethod
    def list_keys(self, prefix: str = "") -> List[str]:
        """List keys with optional prefix filter."""
        pass

    def write_batch(self, writes: Dict[str, Optional[bytes]]) -> None:
        """Apply a batch of writes; a None value deletes the key."""
        for key, value in writes.items():
            if value is None:
                self.delete(key)
            else:
                self.put(key, value)

    def snapshot(self) -> Dict[str, bytes]:
        """Copy of every stored key and value."""
        return {key: self.get(key) for key in self.list_keys()}


class MemoryBackend(StorageBackend):
    """In-memory storage backend."""

    def __init__(self):
        self._data: Dict[str, bytes] = {}

    def get(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    def put(self, key: str, value: bytes) -> None:
        self._data[key] = value

    def delete(self, key: str) -> bool:
        if key in self._data:
            del self._data[key]
            return True
        return False

    def list_keys(self, prefix: str = "") -> List[str]:
        return sorted(key for key in self._data if key.startswith(prefix))


class FileBackend(StorageBackend):
    """
    Local file storage backend.

    Each value lives in its own file; metadata.json maps keys to file names.
    A write never touches a published file: values go to fresh versioned
    files named "<key hash>.<version>.dat", and a single atomic replace of
    metadata.json publishes the whole batch. Superseded files are removed
    afterwards, and files no index entry points at are swept on open.
    """

    METADATA_NAME = "metadata.json"

    def __init__(self, storage_dir: Path = None):
        self.storage_dir = Path(storage_dir or DEFAULT_STORAGE_DIR)
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self._metadata_file = self.storage_dir / self.METADATA_NAME
        self._metadata: Dict[str, str] = self._load_metadata()
        self._sweep_unreferenced()

    def _load_metadata(self) -> Dict[str, str]:
        """Load metadata from disk."""
        if self._metadata_file.exists():
            with open(self._metadata_file, "r") as f:
                return json.load(f)
        return {}

    def _sweep_unreferenced(self) -> None:
        """Remove value files left behind by an interrupted write."""
        live = set(self._metadata.values())
        for path in self.storage_dir.iterdir():
            if path.name == self.METADATA_NAME or path.name in live:
                continue
            if path.suffix in (".dat", ".tmp"):
                logger.debug(f"Removing unreferenced {path.name}")
                path.unlink()

    @staticmethod
    def _atomic_write(path: Path, data: bytes) -> None:
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        with open(tmp_path, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)

    @staticmethod
    def _version_name(key: str) -> str:
        """Fresh file name for a new value of key."""
        # Hash to avoid filesystem issues with special chars
        hash_name = hashlib.sha256(key.encode()).hexdigest()[:32]
        return f"{hash_name}.{uuid.uuid4().hex[:16]}.dat"

    def get(self, key: str) -> Optional[bytes]:
        name = self._metadata.get(key)
        if name is None:
            return None
        path = self.storage_dir / name
        if not path.exists():
            logger.warning(f"Metadata lists {key} but {name} is missing")
            return None
        return path.read_bytes()

    def put(self, key: str, value: bytes) -> None:
        self.write_batch({key: value})

    def delete(self, key: str) -> bool:
        if key not in self._metadata:
            return False
        self.write_batch({key: None})
        return True

    def list_keys(self, prefix: str = "") -> List[str]:
        return sorted(key for key in self._metadata if key.startswith(prefix))

    def write_batch(self, writes: Dict[str, Optional[bytes]]) -> None:
        """
        Apply every write or none of them.

        New values land in unpublished files first. Nothing is visible until
        metadata.json is replaced, so a failure at any step leaves the
        previous contents readable, both on disk and in this instance.
        """
        metadata = dict(self._metadata)
        written: List[str] = []
        superseded: List[str] = []

        try:
            for key, value in writes.items():
                old_name = metadata.pop(key, None)
                if old_name is not None:
                    superseded.append(old_name)
                if value is None:
                    continue
                name = self._version_name(key)
                self._atomic_write(self.storage_dir / name, value)
                written.append(name)
                metadata[key] = name
            self._atomic_write(self._metadata_file, json.dumps(metadata).encode())
        except OSError:
            for name in written:
                (self.storage_dir / name).unlink(missing_ok=True)
            raise

        self._metadata = metadata
        for name in superseded:
            (self.storage_dir / name).unlink(missing_ok=True)
        logger.debug(f"Committed {len(writes)} keys to {self.storage_dir}")



# ============================================================================
# STAGED STORAGE
# ============================================================================

class StagedStorage(StorageBackend):
    """
    Write overlay over a backend for the duration of one request.

    Reads see staged writes first, then the backend. Nothing reaches the
    backend until commit(); discard() drops every staged write.

    Usage:
        staged = StagedStorage(backend)
        staged.put("state", b"...")
        staged.commit()
    """

    def __init__(self, backend: StorageBackend):
        self.backend = backend
        self._writes: Dict[str, Optional[bytes]] = {}

    @property
    def pending(self) -> int:
        """Number of staged writes."""
        return len(self._writes)

    def get(self, key: str) -> Optional[bytes]:
        if key in self._writes:
            return self._writes[key]
        return self.backend.get(key)

    def put(self, key: str, value: bytes) -> None:
        self._writes[key] = value

    def delete(self, key: str) -> bool:
        existed = self.get(key) is not None
        self._writes[key] = None
        return existed

    def list_keys(self, prefix: str = "") -> List[str]:
        keys = set(self.backend.list_keys(prefix))
        for key, value in self._writes.items():
            if not key.startswith(prefix):
                continue
            if value is None:
                keys.discard(key)
            else:
                keys.add(key)
        return sorted(keys)

    def commit(self) -> None:
        """Push every staged write to the backend."""
        if self._writes:
            self.backend.write_batch(dict(self._writes))
        self._writes.clear()

    def discard(self) -> None:
        """Drop every staged write."""
        if self._writes:
            logger.debug(f"Discarding {len(self._writes)} staged writes")
        self._writes.clear()


# ============================================================================
# JSON HELPERS
# ============================================================================

def load_json(storage: StorageBackend, key: str) -> Optional[dict]:
    """Load a JSON object stored under key."""
    data = storage.get(key)
    if data is None:
        return None
    return json.loads(data.decode("utf-8"))


def save_json(storage: StorageBackend, key: str, value: dict) -> None:
    """Store a JSON object under key."""
    storage.put(key, json.dumps(value, sort_keys=True).encode("utf-8"))
