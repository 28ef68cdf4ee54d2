from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional

from audit.audit_log import AuditLogWriter
from models.schema import BACKUP_COLLECTIONS, COL_BACKUPS
from notifications.history import NotificationHistoryRepository
from ops.metrics import Timer

log = logging.getLogger("firework.ops.retention")


class RetentionJob:
    """
    Deterministic retention pass, meant to be triggered by a scheduler
    (POST /admin/run_retention).

    - audit_logs: keep the newest N per collection, then drop anything older
      than AUDIT_RETENTION_DAYS
    - notification_history: keep the newest NOTIFICATION_HISTORY_MAX
    """

    def __init__(self, audit: AuditLogWriter, history: NotificationHistoryRepository):
        self.audit = audit
        self.history = history

    def run(self, collections: Optional[Iterable[str]] = None, prune_days: Optional[int] = None) -> Dict[str, Any]:
        t = Timer()
        if collections is not None:
            targets = list(collections)
        else:
            # Pending is per process; the fixed set covers writes made by other instances.
            targets = sorted(set(self.audit.pending_cleanup()) | set(BACKUP_COLLECTIONS) | {COL_BACKUPS})

        per_collection: Dict[str, int] = {}
        for name in targets:
            per_collection[name] = self.audit.cleanup_old_logs(name)
        aged = self.audit.prune_older_than(prune_days)
        history_deleted = self.history.cleanup()

        result = {
            "audit_capped": per_collection,
            "audit_aged_out": aged,
            "history_deleted": history_deleted,
        }
        log.info(
            "retention_run",
            extra={"extra": {"event": "retention_run", "collections": len(targets), "duration_ms": t.ms(), **result}},
        )
        return result
