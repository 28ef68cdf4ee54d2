from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from models.schema import COL_INVENTORY, COL_ORDERS, COL_PRODUCTS, ORDER_RECEIVED
from repos.document_repo import Document, DocumentRepository
from utils.keyed_lock import KeyedLock
from utils.numbers import to_number, to_quantity

log = logging.getLogger("firework.inventory")

_UNSET = object()

# Set on an order when its items have been added to stock.
STOCK_APPLIED_FIELD = "stockAppliedAt"


class OrderNotFound(LookupError):
    def __init__(self, order_id: str):
        super().__init__(f"order_not_found: {order_id}")
        self.order_id = order_id


def effective_threshold(product: Mapping[str, Any]) -> float:
    return (
        to_number(product.get("thresholdInItems"), 0)
        or to_number(product.get("lowInventoryThreshold"), 0)
        or 0
    )


def stock_index(inventory_records: Iterable[Mapping[str, Any]]) -> Dict[str, float]:
    # First record wins; there should only ever be one per product.
    out: Dict[str, float] = {}
    for rec in inventory_records:
        pid = rec.get("productId")
        if pid and pid not in out:
            out[pid] = to_number(rec.get("quantity"), 0)
    return out


def detect_low_stock(
    products: Iterable[Mapping[str, Any]],
    inventory_records: Iterable[Mapping[str, Any]],
) -> List[Dict[str, Any]]:
    """Products at or below threshold; a missing inventory record counts as 0."""
    stock = stock_index(inventory_records)
    out: List[Dict[str, Any]] = []
    for p in products:
        current = stock.get(p.get("id"), 0)
        threshold = effective_threshold(p)
        if current <= threshold:
            out.append(
                {
                    "productId": p.get("id"),
                    "productName": p.get("name"),
                    "currentStock": current,
                    "threshold": threshold,
                }
            )
    return out


def normalize_inventory_input(value: Any) -> Tuple[int, str, Any]:
    """
    Accept a raw quantity or {quantity, lastUpdated?, location?}.

    Returns (quantity, lastUpdated, location) where location is _UNSET when
    the caller did not supply one.
    """
    last_updated = datetime.now(timezone.utc).isoformat()
    location: Any = _UNSET
    if isinstance(value, Mapping):
        quantity = to_quantity(value.get("quantity"))
        if value.get("lastUpdated"):
            last_updated = value["lastUpdated"]
        if "location" in value and value["location"] is not None:
            location = value["location"]
    else:
        quantity = to_quantity(value)
    return quantity, last_updated, location


class InventoryService:
    def __init__(self, docs: DocumentRepository, locks: Optional[KeyedLock] = None):
        self.docs = docs
        self.locks = locks or KeyedLock()

    def _product_name(self, product_id: str) -> str:
        try:
            p = self.docs.get(COL_PRODUCTS, product_id)
        except Exception:
            # Name is audit decoration only.
            log.warning("product_lookup_failed", extra={"extra": {"event": "product_lookup_failed", "product_id": product_id}})
            p = None
        return (p or {}).get("name") or "Unknown Product"

    def get_inventory_by_product(self, product_id: str) -> Optional[Document]:
        rows = self.docs.query(COL_INVENTORY, filters=[("productId", "==", product_id)], limit=1)
        return rows[0] if rows else None

    def update_inventory(self, product_id: str, quantity_or_update: Any) -> Document:
        quantity, last_updated, location = normalize_inventory_input(quantity_or_update)

        with self.locks.hold(f"inventory:{product_id}"):
            existing = self.get_inventory_by_product(product_id)
            if existing:
                update: Dict[str, Any] = {"quantity": quantity, "lastUpdated": last_updated}
                if location is not _UNSET:
                    update["location"] = location
                metadata = {
                    "previousData": {"quantity": existing.get("quantity"), "location": existing.get("location")},
                    "inventoryId": existing["id"],
                    "productId": product_id,
                    "productName": self._product_name(product_id),
                    "reason": "Inventory update",
                    "changeType": "quantity_update",
                }
                result = self.docs.update(COL_INVENTORY, existing["id"], update, metadata)
            else:
                record: Dict[str, Any] = {"productId": product_id, "quantity": quantity, "lastUpdated": last_updated}
                if location is not _UNSET:
                    record["location"] = location
                metadata = {
                    "action": "Initial inventory creation",
                    "productId": product_id,
                    "productName": self._product_name(product_id),
                    "reason": "New inventory item",
                    "changeType": "create_inventory",
                }
                result = self.docs.create(COL_INVENTORY, record, metadata)

        log.info(
            "inventory_updated",
            extra={"extra": {"event": "inventory_updated", "product_id": product_id, "quantity": quantity, "created": not existing}},
        )
        return result

    def apply_received_order(self, order: Mapping[str, Any]) -> List[Dict[str, Any]]:
        """
        Add each line item's quantity to current stock.

        Not idempotent: applying the same order twice counts it twice. Callers
        gate this on the order's transition into `received` (see update_order).
        A failing line item is logged and the remaining items still apply.
        """
        applied: List[Dict[str, Any]] = []
        for item in order.get("items") or []:
            product_id = item.get("productId")
            if not product_id:
                continue
            try:
                with self.locks.hold(f"inventory:{product_id}"):
                    current_rec = self.get_inventory_by_product(product_id)
                    current = to_quantity((current_rec or {}).get("quantity"))
                    # Stock is whole units; fractions are dropped before the sum.
                    added = to_quantity(item.get("quantity"))
                    new_quantity = current + added
                    self.update_inventory(product_id, new_quantity)
            except Exception as e:
                log.error(
                    "order_item_apply_failed",
                    extra={
                        "extra": {
                            "event": "order_item_apply_failed",
                            "order_id": order.get("id"),
                            "product_id": product_id,
                            "error_type": type(e).__name__,
                            "message": str(e),
                        }
                    },
                )
                continue
            applied.append({"productId": product_id, "previousQuantity": current, "added": added, "newQuantity": new_quantity})

        log.info(
            "received_order_applied",
            extra={"extra": {"event": "received_order_applied", "order_id": order.get("id"), "items_applied": len(applied)}},
        )
        return applied

    # -------- Orders (status transition gate) --------
    def create_order(self, data: Mapping[str, Any]) -> Document:
        data = dict(data)
        receiving = data.get("status") == ORDER_RECEIVED
        if receiving:
            data[STOCK_APPLIED_FIELD] = datetime.now(timezone.utc).isoformat()
        order = self.docs.create(COL_ORDERS, data)
        if receiving:
            order["inventoryApplied"] = self.apply_received_order(order)
        return order

    def update_order(self, order_id: str, data: Mapping[str, Any]) -> Document:
        """
        Patch an order; stock is added once, on its first move into `received`.

        The order carries `stockAppliedAt` from then on, so moving it out of
        `received` and back again does not add the items a second time.
        """
        data = dict(data)
        with self.locks.hold(f"order:{order_id}"):
            previous = self.docs.get(COL_ORDERS, order_id)
            if previous is None:
                raise OrderNotFound(order_id)
            receiving = (
                data.get("status") == ORDER_RECEIVED
                and previous.get("status") != ORDER_RECEIVED
                and not previous.get(STOCK_APPLIED_FIELD)
            )
            if receiving:
                data[STOCK_APPLIED_FIELD] = datetime.now(timezone.utc).isoformat()
            result = self.docs.update(COL_ORDERS, order_id, data, {"previousData": previous})

            if receiving:
                merged = {**previous, **result}
                result["inventoryApplied"] = self.apply_received_order(merged)
        return result

    def set_order_status(self, order_id: str, status: str) -> Document:
        return self.update_order(order_id, {"status": status})

    # -------- Low stock --------
    def get_low_stock_products(self) -> List[Document]:
        products = self.docs.list(COL_PRODUCTS)
        inventory = self.docs.list(COL_INVENTORY)
        low_ids = {d["productId"] for d in detect_low_stock(products, inventory)}
        return [p for p in products if p.get("id") in low_ids]
