from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Set

from google.cloud import firestore
from google.cloud.firestore import Client
from google.cloud.firestore_v1.base_query import FieldFilter

from config.settings import settings
from models.schema import (
    AUDIT_CREATE,
    AUDIT_DELETE,
    AUDIT_RESTORE,
    AUDIT_UPDATE,
    AUDIT_VIEW,
    COL_AUDIT_LOGS,
    COL_BACKUPS,
)
from ops.best_effort import BestEffort
from storage.firestore_client import delete_snapshots, get_firestore_client

log = logging.getLogger("firework.audit")


def _as_datetime(entry: Dict[str, Any]) -> Optional[datetime]:
    ts = entry.get("timestamp")
    if isinstance(ts, datetime):
        return ts
    created = entry.get("createdAt")
    if isinstance(created, str) and created:
        try:
            return datetime.fromisoformat(created.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


class AuditLogWriter:
    """
    Append-only audit trail in `audit_logs`.

    Writes never raise: a failed audit write must not fail the mutation that
    produced it. Entries are never updated; they are only removed by the
    retention passes (`cleanup_old_logs`, `prune_older_than`).
    """

    def __init__(self, db: Optional[Client] = None, max_logs_per_collection: Optional[int] = None):
        self.db = db or get_firestore_client()
        self.max_logs_per_collection = max_logs_per_collection or settings.AUDIT_MAX_LOGS_PER_COLLECTION
        self._pending_cleanup: Set[str] = set()
        self._pending_lock = threading.Lock()

    def _col(self):
        return self.db.collection(COL_AUDIT_LOGS)

    def log_action(
        self,
        action: str,
        collection: str,
        document_id: Optional[str] = None,
        data: Any = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> BestEffort[str]:
        try:
            entry = {
                "action": action,
                "collection": collection,
                "documentId": document_id or None,
                "data": data,
                "metadata": dict(metadata or {}),
                "timestamp": firestore.SERVER_TIMESTAMP,
                "createdAt": datetime.now(timezone.utc).isoformat(),
            }
            _, ref = self._col().add(entry)
        except Exception as e:
            log.error(
                "audit_write_failed",
                extra={
                    "extra": {
                        "event": "audit_write_failed",
                        "action": action,
                        "collection": collection,
                        "document_id": document_id,
                        "error_type": type(e).__name__,
                        "message": str(e),
                    }
                },
            )
            return BestEffort.failure(e)

        with self._pending_lock:
            self._pending_cleanup.add(collection)
        log.info(
            "audit_logged",
            extra={"extra": {"event": "audit_logged", "audit_id": ref.id, "action": action, "collection": collection}},
        )
        return BestEffort.success(ref.id)

    def log_create(self, collection: str, document_id: Optional[str], data: Any, metadata: Optional[Dict[str, Any]] = None) -> BestEffort[str]:
        return self.log_action(AUDIT_CREATE, collection, document_id, data, metadata)

    def log_update(self, collection: str, document_id: Optional[str], data: Any, metadata: Optional[Dict[str, Any]] = None) -> BestEffort[str]:
        return self.log_action(AUDIT_UPDATE, collection, document_id, data, metadata)

    def log_delete(self, collection: str, document_id: Optional[str], data: Any = None, metadata: Optional[Dict[str, Any]] = None) -> BestEffort[str]:
        return self.log_action(AUDIT_DELETE, collection, document_id, data, metadata)

    def log_view(self, collection: str, document_id: Optional[str] = None, metadata: Optional[Dict[str, Any]] = None) -> BestEffort[str]:
        return self.log_action(AUDIT_VIEW, collection, document_id, None, metadata)

    def log_restore(self, data: Any, metadata: Optional[Dict[str, Any]] = None, collection: str = COL_BACKUPS) -> BestEffort[str]:
        return self.log_action(AUDIT_RESTORE, collection, None, data, metadata)

    # -------- Reads --------
    def query(self, collection: Optional[str] = None, action: Optional[str] = None, limit: int = 100) -> List[Dict[str, Any]]:
        q = self._col()
        if collection:
            q = q.where(filter=FieldFilter("collection", "==", collection))
        if action:
            q = q.where(filter=FieldFilter("action", "==", action))
        q = q.order_by("timestamp", direction=firestore.Query.DESCENDING).limit(limit or 100)

        out: List[Dict[str, Any]] = []
        for snap in q.stream():
            d = snap.to_dict() or {}
            d["id"] = snap.id
            d["timestamp"] = _as_datetime(d)
            out.append(d)
        return out

    def statistics(self, limit: int = 500) -> Dict[str, Any]:
        logs = self.query(limit=limit)
        stats: Dict[str, Any] = {
            "totalLogs": len(logs),
            "actionCounts": {},
            "collectionCounts": {},
            "recentActivity": logs[:10],
            "activityByDay": {},
        }
        for entry in logs:
            a = entry.get("action") or "unknown"
            c = entry.get("collection") or "unknown"
            stats["actionCounts"][a] = stats["actionCounts"].get(a, 0) + 1
            stats["collectionCounts"][c] = stats["collectionCounts"].get(c, 0) + 1
            ts = entry.get("timestamp")
            if isinstance(ts, datetime):
                day = ts.date().isoformat()
                stats["activityByDay"][day] = stats["activityByDay"].get(day, 0) + 1
        return stats

    # -------- Retention --------
    def pending_cleanup(self) -> List[str]:
        """Collections written to since the last retention pass; resets the set."""
        with self._pending_lock:
            out = sorted(self._pending_cleanup)
            self._pending_cleanup.clear()
        return out

    def cleanup_old_logs(self, collection: str, keep: Optional[int] = None) -> int:
        keep = keep or self.max_logs_per_collection
        try:
            q = (
                self._col()
                .where(filter=FieldFilter("collection", "==", collection))
                .order_by("timestamp", direction=firestore.Query.DESCENDING)
            )
            snaps = list(q.stream())
            stale = snaps[keep:]
            if not stale:
                return 0
            delete_snapshots(self.db, stale)
        except Exception as e:
            log.error(
                "audit_cleanup_failed",
                extra={"extra": {"event": "audit_cleanup_failed", "collection": collection, "error_type": type(e).__name__, "message": str(e)}},
            )
            return 0

        log.info(
            "audit_cleanup",
            extra={"extra": {"event": "audit_cleanup", "collection": collection, "deleted": len(stale), "kept": keep}},
        )
        return len(stale)

    def prune_older_than(self, days: Optional[int] = None, now: Optional[datetime] = None) -> int:
        days = settings.AUDIT_RETENTION_DAYS if days is None else days
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=days)
        try:
            q = self._col().where(filter=FieldFilter("timestamp", "<", cutoff))
            snaps = list(q.stream())
            delete_snapshots(self.db, snaps)
        except Exception as e:
            log.error(
                "audit_prune_failed",
                extra={"extra": {"event": "audit_prune_failed", "days": days, "error_type": type(e).__name__, "message": str(e)}},
            )
            return 0

        log.info("audit_pruned", extra={"extra": {"event": "audit_pruned", "deleted": len(snaps), "cutoff": cutoff.isoformat()}})
        return len(snaps)
