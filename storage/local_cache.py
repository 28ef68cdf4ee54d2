from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional, Tuple

from config.settings import settings
from ops.best_effort import run_best_effort
from storage.local_store import LocalStore, get_local_store
from utils import jsoncodec

log = logging.getLogger("firework.cache")


def collection_cache_key(collection: str) -> str:
    return f"cached_{collection}"


class LocalCache:
    """
    Best-effort expiring cache over a LocalStore.

    Entries are stored as {"data": ..., "timestamp": <epoch seconds>}. Any
    storage or serialization failure is logged and treated as a miss.
    """

    def __init__(
        self,
        store: Optional[LocalStore] = None,
        ttl_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store or get_local_store()
        self.ttl_seconds = settings.CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self.clock = clock

    def _read(self, key: str) -> Optional[dict]:
        raw = self.store.get_item(key)
        if not raw:
            return None
        return jsoncodec.loads(raw)

    def lookup(self, key: str) -> Tuple[Any, bool]:
        """Return (data, is_fresh) without evicting; (None, False) on a miss."""
        res = run_best_effort(log, "cache_read_failed", self._read, key, context={"key": key})
        entry = res.value if res.ok else None
        if not isinstance(entry, dict) or "data" not in entry:
            return None, False
        age = self.clock() - float(entry.get("timestamp") or 0)
        return entry["data"], age <= self.ttl_seconds

    def get(self, key: str) -> Any:
        data, fresh = self.lookup(key)
        if data is None:
            return None
        if not fresh:
            self.clear(key)
            return None
        return data

    def set(self, key: str, data: Any) -> bool:
        def _write() -> None:
            self.store.set_item(key, jsoncodec.dumps({"data": data, "timestamp": self.clock()}))

        return run_best_effort(log, "cache_write_failed", _write, context={"key": key}).ok

    def clear(self, key: str) -> bool:
        return run_best_effort(
            log, "cache_clear_failed", self.store.remove_item, key, context={"key": key}
        ).ok
