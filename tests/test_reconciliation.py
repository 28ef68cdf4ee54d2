import threading

import pytest

from inventory.reconciliation import (
    OrderNotFound,
    detect_low_stock,
    effective_threshold,
    normalize_inventory_input,
)
from models.schema import COL_AUDIT_LOGS, COL_INVENTORY, COL_ORDERS, COL_PRODUCTS


def _seed(db, collection, doc_id, data):
    db.collection(collection).document(doc_id).set(data)


def _stock(db, product_id):
    rows = [r for r in db.docs(COL_INVENTORY).values() if r["productId"] == product_id]
    assert len(rows) == 1
    return rows[0]


def test_low_stock_is_inclusive_and_defaults_to_zero():
    products = [
        {"id": "a", "name": "A", "lowInventoryThreshold": 10},
        {"id": "b", "name": "B", "lowInventoryThreshold": 10},
        {"id": "c", "name": "C"},
        {"id": "d", "name": "D", "thresholdInItems": 24, "lowInventoryThreshold": 2},
    ]
    inventory = [
        {"productId": "a", "quantity": 10},
        {"productId": "b", "quantity": 11},
        {"productId": "d", "quantity": "20"},
    ]
    low = {d["productId"]: d for d in detect_low_stock(products, inventory)}
    assert set(low) == {"a", "c", "d"}
    assert low["c"] == {"productId": "c", "productName": "C", "currentStock": 0, "threshold": 0}
    assert low["d"]["threshold"] == 24


def test_effective_threshold_fallbacks():
    assert effective_threshold({"thresholdInItems": "12", "lowInventoryThreshold": 3}) == 12
    assert effective_threshold({"thresholdInItems": 0, "lowInventoryThreshold": 3}) == 3
    assert effective_threshold({}) == 0


def test_normalize_accepts_scalars_and_mappings():
    qty, _, loc = normalize_inventory_input("7")
    assert qty == 7
    qty, ts, loc = normalize_inventory_input({"quantity": "x", "lastUpdated": "2026-07-01", "location": "A1"})
    assert (qty, ts, loc) == (0, "2026-07-01", "A1")


def test_received_order_scenario(db, services):
    _seed(db, COL_PRODUCTS, "p1", {"name": "Roman Candle", "lowInventoryThreshold": 10})
    _seed(db, COL_INVENTORY, "i1", {"productId": "p1", "quantity": 5})
    inv = services.inventory

    assert [p["id"] for p in inv.get_low_stock_products()] == ["p1"]

    order = inv.create_order({"status": "ordered", "items": [{"productId": "p1", "quantity": 20}]})
    assert "inventoryApplied" not in order
    assert _stock(db, "p1")["quantity"] == 5

    out = inv.update_order(order["id"], {"status": "received"})
    assert out["inventoryApplied"] == [{"productId": "p1", "previousQuantity": 5, "added": 20, "newQuantity": 25}]
    assert _stock(db, "p1")["quantity"] == 25
    assert inv.get_low_stock_products() == []


def test_repeat_received_update_does_not_double_count(db, services):
    _seed(db, COL_INVENTORY, "i1", {"productId": "p1", "quantity": 5})
    inv = services.inventory
    order = inv.create_order({"status": "ordered", "items": [{"productId": "p1", "quantity": 20}]})

    inv.set_order_status(order["id"], "received")
    again = inv.update_order(order["id"], {"status": "received", "notes": "checked"})
    assert "inventoryApplied" not in again
    assert _stock(db, "p1")["quantity"] == 25


def test_apply_received_order_is_not_idempotent(db, services):
    _seed(db, COL_INVENTORY, "i1", {"productId": "p1", "quantity": 5})
    order = {"id": "o1", "items": [{"productId": "p1", "quantity": 20}]}
    services.inventory.apply_received_order(order)
    services.inventory.apply_received_order(order)
    assert _stock(db, "p1")["quantity"] == 45


def test_order_created_as_received_applies_once(db, services):
    order = services.inventory.create_order(
        {"status": "received", "items": [{"productId": "p9", "quantity": "4"}, {"productId": "p8", "quantity": "junk"}]}
    )
    assert _stock(db, "p9")["quantity"] == 4
    assert _stock(db, "p8")["quantity"] == 0
    assert len(order["inventoryApplied"]) == 2
    assert db.docs(COL_ORDERS)[order["id"]]["status"] == "received"


def test_failed_item_does_not_stop_remaining_items(db, services, monkeypatch):
    inv = services.inventory
    real = inv.update_inventory

    def flaky(product_id, value):
        if product_id == "bad":
            raise RuntimeError("write rejected")
        return real(product_id, value)

    monkeypatch.setattr(inv, "update_inventory", flaky)
    applied = inv.apply_received_order({"items": [{"productId": "bad", "quantity": 1}, {"productId": "ok", "quantity": 2}]})
    assert [a["productId"] for a in applied] == ["ok"]
    assert _stock(db, "ok")["quantity"] == 2


def test_update_missing_order(services):
    with pytest.raises(OrderNotFound):
        services.inventory.update_order("missing", {"status": "received"})


def test_update_inventory_overwrites_only_given_fields(db, services):
    _seed(db, COL_PRODUCTS, "p2", {"name": "Fountain"})
    _seed(db, COL_INVENTORY, "i2", {"productId": "p2", "quantity": 1, "location": "B9", "bin": "top"})

    services.inventory.update_inventory("p2", {"quantity": "7", "location": "A1"})
    rec = _stock(db, "p2")
    assert rec["quantity"] == 7
    assert rec["location"] == "A1"
    assert rec["bin"] == "top"

    entry = next(e for e in db.docs(COL_AUDIT_LOGS).values() if e["action"] == "update")
    assert entry["metadata"]["changeType"] == "quantity_update"
    assert entry["metadata"]["previousData"] == {"quantity": 1, "location": "B9"}
    assert entry["metadata"]["productName"] == "Fountain"


def test_update_inventory_creates_missing_record(db, services):
    rec = services.inventory.update_inventory("p3", 12)
    assert rec["quantity"] == 12
    assert "location" not in rec
    entry = next(e for e in db.docs(COL_AUDIT_LOGS).values() if e["action"] == "create")
    assert entry["metadata"]["changeType"] == "create_inventory"
    assert entry["metadata"]["productName"] == "Unknown Product"


def test_concurrent_receipts_for_one_product_are_serialized(db, services):
    _seed(db, COL_INVENTORY, "i1", {"productId": "p1", "quantity": 0})
    order = {"items": [{"productId": "p1", "quantity": 1}]}
    threads = [threading.Thread(target=services.inventory.apply_received_order, args=(order,)) for _ in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert _stock(db, "p1")["quantity"] == 10
    assert len(services.inventory.locks) == 0


def test_null_status_patch_keeps_received_order(db, services):
    inv = services.inventory
    order = inv.create_order({"status": "received", "items": [{"productId": "p1", "quantity": 3}]})

    inv.update_order(order["id"], {"status": None})
    assert db.docs(COL_ORDERS)[order["id"]]["status"] == "received"

    inv.update_order(order["id"], {"status": "received"})
    assert _stock(db, "p1")["quantity"] == 3


def test_leaving_received_and_returning_does_not_reapply(db, services):
    inv = services.inventory
    order = inv.create_order({"status": "ordered", "items": [{"productId": "p1", "quantity": 3}]})
    inv.set_order_status(order["id"], "received")
    assert db.docs(COL_ORDERS)[order["id"]]["stockAppliedAt"]

    inv.set_order_status(order["id"], "ordered")
    again = inv.set_order_status(order["id"], "received")
    assert "inventoryApplied" not in again
    assert _stock(db, "p1")["quantity"] == 3


def test_fractional_line_quantity_reports_stored_value(db, services):
    _seed(db, COL_INVENTORY, "i1", {"productId": "p1", "quantity": 5})
    applied = services.inventory.apply_received_order({"items": [{"productId": "p1", "quantity": "2.5"}]})
    assert applied == [{"productId": "p1", "previousQuantity": 5, "added": 2, "newQuantity": 7}]
    assert _stock(db, "p1")["quantity"] == 7
