from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from google.cloud import firestore

from config.settings import settings
from inventory.reconciliation import detect_low_stock
from models.schema import COL_NOTIFICATIONS, NOTIFY_LOW_INVENTORY
from repos.document_repo import Document, DocumentRepository

log = logging.getLogger("firework.notifications")


def format_low_stock_message(detection: Mapping[str, Any]) -> str:
    stock = detection.get("currentStock", 0)
    if isinstance(stock, float) and stock.is_integer():
        stock = int(stock)
    return f"Low stock alert: {detection.get('productName') or 'Unknown product'} ({stock} remaining)"


class NotificationService:
    def __init__(
        self,
        docs: DocumentRepository,
        suppression_minutes: Optional[int] = None,
        now=lambda: datetime.now(timezone.utc),
    ):
        self.docs = docs
        self.suppression_minutes = (
            settings.LOW_STOCK_SUPPRESSION_MINUTES if suppression_minutes is None else suppression_minutes
        )
        self.now = now

    def add_notification(self, type_: str, message: str, data: Any = None) -> Document:
        notification = {"type": type_, "message": message, "data": data, "isRead": False}
        return self.docs.create(COL_NOTIFICATIONS, notification)

    def mark_as_read(self, notification_id: str) -> Document:
        return self.docs.update(
            COL_NOTIFICATIONS, notification_id, {"isRead": True, "readAt": firestore.SERVER_TIMESTAMP}
        )

    def mark_all_as_read(self) -> int:
        unread = self.docs.query(COL_NOTIFICATIONS, filters=[("isRead", "==", False)])
        for n in unread:
            self.mark_as_read(n["id"])
        return len(unread)

    def list(self, unread_only: bool = False) -> List[Document]:
        filters = [("isRead", "==", False)] if unread_only else None
        return self.docs.query(COL_NOTIFICATIONS, filters=filters, order_by="createdAt", descending=True)

    def _recently_notified(self) -> set:
        if self.suppression_minutes <= 0:
            return set()
        cutoff = self.now() - timedelta(minutes=self.suppression_minutes)
        unread = self.docs.query(
            COL_NOTIFICATIONS,
            filters=[("type", "==", NOTIFY_LOW_INVENTORY), ("isRead", "==", False)],
        )
        out = set()
        for n in unread:
            created = n.get("createdAt")
            if isinstance(created, datetime) and created >= cutoff:
                out.add((n.get("data") or {}).get("productId"))
        return out

    def check_low_inventory(
        self,
        products: Iterable[Mapping[str, Any]],
        inventory_records: Iterable[Mapping[str, Any]],
    ) -> List[Dict[str, Any]]:
        """
        Persist one low_inventory notification per product at or below threshold.

        Repeated checks against unchanged stock raise repeated notifications
        unless a suppression window is configured. A failed notification write
        is logged and does not stop the remaining ones.
        """
        detections = detect_low_stock(list(products), list(inventory_records))
        try:
            suppressed = self._recently_notified()
        except Exception as e:
            log.warning("suppression_lookup_failed", extra={"extra": {"event": "suppression_lookup_failed", "message": str(e)}})
            suppressed = set()

        created = 0
        for item in detections:
            if item["productId"] in suppressed:
                continue
            try:
                self.add_notification(NOTIFY_LOW_INVENTORY, format_low_stock_message(item), item)
                created += 1
            except Exception as e:
                log.error(
                    "low_stock_notification_failed",
                    extra={"extra": {"event": "low_stock_notification_failed", "product_id": item["productId"], "error_type": type(e).__name__, "message": str(e)}},
                )

        log.info(
            "low_inventory_checked",
            extra={"extra": {"event": "low_inventory_checked", "detections": len(detections), "notifications_created": created, "suppressed": len(suppressed)}},
        )
        return detections
