from __future__ import annotations

import hashlib
import os
import threading
from pathlib import Path
from typing import Dict, Optional

from config.settings import settings


class LocalStore:
    """String-keyed blob store local to this process or host."""

    def get_item(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove_item(self, key: str) -> None:
        raise NotImplementedError


class MemoryLocalStore(LocalStore):
    def __init__(self, max_bytes: int = 5 * 1024 * 1024):
        self._items: Dict[str, str] = {}
        self._lock = threading.Lock()
        self.max_bytes = max_bytes

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            used = sum(len(v) for k, v in self._items.items() if k != key)
            if used + len(value) > self.max_bytes:
                raise MemoryError(f"local_store_quota_exceeded: key={key}")
            self._items[key] = value

    def remove_item(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)


class FileLocalStore(LocalStore):
    # One file per key; survives restarts of a single-host deployment.
    def __init__(self, root: str):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _path(self, key: str) -> Path:
        return self.root / (hashlib.sha256(key.encode("utf-8")).hexdigest() + ".json")

    def get_item(self, key: str) -> Optional[str]:
        p = self._path(key)
        with self._lock:
            if not p.exists():
                return None
            return p.read_text(encoding="utf-8")

    def set_item(self, key: str, value: str) -> None:
        p = self._path(key)
        tmp = p.with_suffix(".tmp")
        with self._lock:
            tmp.write_text(value, encoding="utf-8")
            os.replace(tmp, p)

    def remove_item(self, key: str) -> None:
        with self._lock:
            self._path(key).unlink(missing_ok=True)


def get_local_store() -> LocalStore:
    if settings.LOCAL_STORE_DIR:
        return FileLocalStore(settings.LOCAL_STORE_DIR)
    return MemoryLocalStore()
