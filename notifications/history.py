from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from google.cloud import firestore
from google.cloud.firestore import Client
from google.cloud.firestore_v1.base_query import FieldFilter

from config.settings import settings
from models.schema import COL_NOTIFICATION_HISTORY
from ops.best_effort import BestEffort
from storage.firestore_client import delete_snapshots, get_firestore_client, update_snapshots

log = logging.getLogger("firework.notifications.history")


class NotificationHistoryRepository:
    """
    Toast-style history feed (success/error/warning/info), capped at
    NOTIFICATION_HISTORY_MAX entries. Independent of live notifications.
    """

    def __init__(self, db: Optional[Client] = None, max_entries: Optional[int] = None):
        self.db = db or get_firestore_client()
        self.max_entries = max_entries or settings.NOTIFICATION_HISTORY_MAX

    def _col(self):
        return self.db.collection(COL_NOTIFICATION_HISTORY)

    def store(self, message: str, type_: str = "info", metadata: Optional[Dict[str, Any]] = None, source: str = "app") -> BestEffort[str]:
        try:
            _, ref = self._col().add(
                {
                    "type": type_ or "info",
                    "message": message,
                    "metadata": metadata or {},
                    "timestamp": firestore.SERVER_TIMESTAMP,
                    "createdAt": datetime.now(timezone.utc).isoformat(),
                    "read": False,
                    "source": source or "app",
                }
            )
        except Exception as e:
            log.error("notification_store_failed", extra={"extra": {"event": "notification_store_failed", "error_type": type(e).__name__, "message": str(e)}})
            return BestEffort.failure(e)
        return BestEffort.success(ref.id)

    def query(self, type_: Optional[str] = None, unread_only: bool = False, limit: int = 100) -> List[Dict[str, Any]]:
        q = self._col()
        if type_:
            q = q.where(filter=FieldFilter("type", "==", type_))
        if unread_only:
            q = q.where(filter=FieldFilter("read", "==", False))
        q = q.order_by("timestamp", direction=firestore.Query.DESCENDING).limit(limit or 100)
        out = []
        for snap in q.stream():
            d = snap.to_dict() or {}
            d["id"] = snap.id
            out.append(d)
        return out

    def statistics(self, limit: int = 200) -> Dict[str, Any]:
        entries = self.query(limit=limit)
        type_counts: Dict[str, int] = {}
        by_day: Dict[str, int] = {}
        for n in entries:
            t = n.get("type") or "info"
            type_counts[t] = type_counts.get(t, 0) + 1
            ts = n.get("timestamp")
            if isinstance(ts, datetime):
                day = ts.date().isoformat()
                by_day[day] = by_day.get(day, 0) + 1
        return {
            "totalNotifications": len(entries),
            "unreadCount": sum(1 for n in entries if not n.get("read")),
            "typeCounts": type_counts,
            "recentNotifications": entries[:5],
            "notificationsByDay": by_day,
        }

    def mark_as_read(self, notification_id: str) -> None:
        self._col().document(notification_id).update({"read": True, "readAt": firestore.SERVER_TIMESTAMP})

    def mark_all_as_read(self) -> int:
        unread = self._col().where(filter=FieldFilter("read", "==", False)).stream()
        return update_snapshots(self.db, unread, {"read": True, "readAt": firestore.SERVER_TIMESTAMP})

    def cleanup(self, keep: Optional[int] = None) -> int:
        keep = keep or self.max_entries
        try:
            snaps = list(self._col().order_by("timestamp", direction=firestore.Query.DESCENDING).stream())
            stale = snaps[keep:]
            if not stale:
                return 0
            delete_snapshots(self.db, stale)
        except Exception as e:
            log.error("notification_cleanup_failed", extra={"extra": {"event": "notification_cleanup_failed", "error_type": type(e).__name__, "message": str(e)}})
            return 0
        log.info("notification_cleanup", extra={"extra": {"event": "notification_cleanup", "deleted": len(stale), "kept": keep}})
        return len(stale)

    def clear_all(self) -> int:
        return delete_snapshots(self.db, self._col().stream())
