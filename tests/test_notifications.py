from datetime import datetime, timedelta, timezone

from models.schema import COL_NOTIFICATION_HISTORY, COL_NOTIFICATIONS
from notifications.deriver import NotificationService, format_low_stock_message
from notifications.history import NotificationHistoryRepository

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)

PRODUCTS = [
    {"id": "p1", "name": "Roman Candle", "lowInventoryThreshold": 10},
    {"id": "p2", "name": "Sparkler", "lowInventoryThreshold": 10},
]
INVENTORY = [{"productId": "p1", "quantity": 3}, {"productId": "p2", "quantity": 50}]


def test_message_format():
    msg = format_low_stock_message({"productName": "Roman Candle", "currentStock": 3.0})
    assert msg == "Low stock alert: Roman Candle (3 remaining)"


def test_check_low_inventory_persists_one_per_detection(db, services):
    detections = services.notifications.check_low_inventory(PRODUCTS, INVENTORY)
    assert [d["productId"] for d in detections] == ["p1"]

    (n,) = db.docs(COL_NOTIFICATIONS).values()
    assert n["type"] == "low_inventory"
    assert n["isRead"] is False
    assert n["message"] == "Low stock alert: Roman Candle (3 remaining)"
    assert n["data"]["productId"] == "p1"


def test_repeated_checks_repeat_notifications_by_default(db, services):
    services.notifications.check_low_inventory(PRODUCTS, INVENTORY)
    services.notifications.check_low_inventory(PRODUCTS, INVENTORY)
    assert len(db.docs(COL_NOTIFICATIONS)) == 2


def test_suppression_window_skips_recent_unread(db, services):
    svc = NotificationService(services.docs, suppression_minutes=60, now=lambda: T0 + timedelta(minutes=5))
    svc.check_low_inventory(PRODUCTS, INVENTORY)
    svc.check_low_inventory(PRODUCTS, INVENTORY)
    assert len(db.docs(COL_NOTIFICATIONS)) == 1

    # once read, a new alert is allowed
    svc.mark_all_as_read()
    svc.check_low_inventory(PRODUCTS, INVENTORY)
    assert len(db.docs(COL_NOTIFICATIONS)) == 2


def test_failed_notification_write_does_not_abort(db, services):
    db.fail(COL_NOTIFICATIONS, "add")
    detections = services.notifications.check_low_inventory(PRODUCTS, [])
    assert len(detections) == 2
    assert db.docs(COL_NOTIFICATIONS) == {}


def test_mark_read_and_list(db, services):
    svc = services.notifications
    a = svc.add_notification("general", "first")
    svc.add_notification("order_update", "second")

    assert [n["message"] for n in svc.list()] == ["second", "first"]
    svc.mark_as_read(a["id"])
    assert [n["message"] for n in svc.list(unread_only=True)] == ["second"]
    assert db.docs(COL_NOTIFICATIONS)[a["id"]]["readAt"] is not None
    assert svc.mark_all_as_read() == 1
    assert svc.list(unread_only=True) == []


def test_history_store_and_query(db):
    history = NotificationHistoryRepository(db=db)
    assert history.store("Saved", "success").ok
    history.store("Oops", "error", {"code": 7})
    history.store("Hmm", None)

    assert [n["message"] for n in history.query()] == ["Hmm", "Oops", "Saved"]
    assert [n["message"] for n in history.query(type_="error")] == ["Oops"]
    assert history.query(type_="info")[0]["source"] == "app"

    stats = history.statistics()
    assert stats["totalNotifications"] == 3
    assert stats["unreadCount"] == 3
    assert stats["typeCounts"] == {"success": 1, "error": 1, "info": 1}


def test_history_mark_read(db):
    history = NotificationHistoryRepository(db=db)
    nid = history.store("Saved", "success").value
    history.store("Oops", "error")
    history.mark_as_read(nid)
    assert [n["message"] for n in history.query(unread_only=True)] == ["Oops"]
    assert history.mark_all_as_read() == 1
    assert history.query(unread_only=True) == []


def test_history_cleanup_keeps_newest(db):
    history = NotificationHistoryRepository(db=db, max_entries=4)
    for i in range(6):
        history.store(f"n{i}", "info")
    assert history.cleanup() == 2
    assert sorted(n["message"] for n in db.docs(COL_NOTIFICATION_HISTORY).values()) == ["n2", "n3", "n4", "n5"]
    assert history.clear_all() == 4
    assert db.docs(COL_NOTIFICATION_HISTORY) == {}


def test_history_store_failure_is_reported(db):
    db.fail(COL_NOTIFICATION_HISTORY, "add")
    res = NotificationHistoryRepository(db=db).store("Saved", "success")
    assert not res.ok and res.value is None


def test_history_mark_all_read_spans_batches(db):
    history = NotificationHistoryRepository(db=db)
    for i in range(620):
        db.collection(COL_NOTIFICATION_HISTORY).document(f"h{i:04d}").set({"type": "info", "message": str(i), "read": False})

    assert history.mark_all_as_read() == 620
    assert db.batch_sizes == [500, 120]
    assert all(h["read"] for h in db.docs(COL_NOTIFICATION_HISTORY).values())
