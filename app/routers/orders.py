from __future__ import annotations

from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from app.container import Services
from app.deps import get_services, require_permission
from inventory.reconciliation import OrderNotFound
from models.schema import COL_ORDERS, ORDER_PENDING, ORDER_SEASONS, ORDER_STATUSES
from security.permissions import PERM_DELETE, PERM_READ, PERM_WRITE

router = APIRouter()


class OrderItemBody(BaseModel):
    productId: str = Field(..., min_length=1)
    quantity: Any = 0
    unit: Optional[str] = None
    unitCost: Any = 0


class OrderBody(BaseModel):
    vendorId: Optional[str] = None
    season: Optional[str] = None
    status: str = ORDER_PENDING
    orderDate: Optional[str] = None
    notes: Optional[str] = None
    total: Any = None
    items: List[OrderItemBody] = Field(default_factory=list)


class OrderPatch(BaseModel):
    vendorId: Optional[str] = None
    season: Optional[str] = None
    status: Optional[str] = None
    orderDate: Optional[str] = None
    notes: Optional[str] = None
    total: Any = None
    items: Optional[List[OrderItemBody]] = None


def _check_status(status: Optional[str]) -> None:
    if status is not None and status not in ORDER_STATUSES:
        raise HTTPException(status_code=400, detail="invalid_order_status")


def _check_season(season: Optional[str]) -> None:
    # Orders without a season (older data) are still accepted.
    if season and season not in ORDER_SEASONS:
        raise HTTPException(status_code=400, detail="invalid_season")


@router.get("/orders", dependencies=[Depends(require_permission(PERM_READ))])
def list_orders(
    season: Optional[str] = None,
    refresh: bool = False,
    services: Services = Depends(get_services),
):
    _check_season(season)
    items = services.docs.list(COL_ORDERS, use_cache=not refresh)
    if season:
        items = [o for o in items if o.get("season") == season]
    return {"ok": True, "items": items}


@router.get("/orders/{order_id}", dependencies=[Depends(require_permission(PERM_READ))])
def get_order(order_id: str, services: Services = Depends(get_services)):
    order = services.docs.get(COL_ORDERS, order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="order_not_found")
    return {"ok": True, "item": order}


@router.post("/orders", dependencies=[Depends(require_permission(PERM_WRITE))])
def add_order(body: OrderBody, services: Services = Depends(get_services)):
    _check_status(body.status)
    _check_season(body.season)
    payload = body.model_dump(exclude_none=True)
    if not payload.get("season"):
        payload.pop("season", None)
    order = services.inventory.create_order(payload)
    return {"ok": True, "item": order}


@router.patch("/orders/{order_id}", dependencies=[Depends(require_permission(PERM_WRITE))])
def update_order(order_id: str, body: OrderPatch, services: Services = Depends(get_services)):
    if "status" in body.model_fields_set and body.status is None:
        raise HTTPException(status_code=400, detail="invalid_order_status")
    _check_status(body.status)
    _check_season(body.season)
    patch = body.model_dump(exclude_unset=True)
    if not patch:
        raise HTTPException(status_code=400, detail="empty_update")
    try:
        order = services.inventory.update_order(order_id, patch)
    except OrderNotFound:
        raise HTTPException(status_code=404, detail="order_not_found")
    return {"ok": True, "item": order}


@router.delete("/orders/{order_id}", dependencies=[Depends(require_permission(PERM_DELETE))])
def delete_order(order_id: str, services: Services = Depends(get_services)):
    services.docs.delete(COL_ORDERS, order_id)
    return {"ok": True, "removed": order_id}
