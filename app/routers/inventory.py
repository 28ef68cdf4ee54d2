from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.container import Services
from app.deps import get_services, require_permission
from models.schema import COL_INVENTORY, COL_PRODUCTS
from security.permissions import PERM_READ, PERM_WRITE

router = APIRouter()


class InventoryBody(BaseModel):
    quantity: Any = 0
    location: Optional[str] = None
    lastUpdated: Optional[str] = None


@router.get("/inventory", dependencies=[Depends(require_permission(PERM_READ))])
def list_inventory(refresh: bool = False, services: Services = Depends(get_services)):
    return {"ok": True, "items": services.docs.list(COL_INVENTORY, use_cache=not refresh)}


@router.get("/inventory/low-stock", dependencies=[Depends(require_permission(PERM_READ))])
def low_stock(services: Services = Depends(get_services)):
    return {"ok": True, "items": services.inventory.get_low_stock_products()}


@router.post("/inventory/check-low-stock", dependencies=[Depends(require_permission(PERM_WRITE))])
def check_low_stock(services: Services = Depends(get_services)):
    detections = services.notifications.check_low_inventory(
        services.docs.list(COL_PRODUCTS),
        services.docs.list(COL_INVENTORY),
    )
    return {"ok": True, "detections": detections}


@router.get("/inventory/{product_id}", dependencies=[Depends(require_permission(PERM_READ))])
def get_inventory(product_id: str, services: Services = Depends(get_services)):
    return {"ok": True, "item": services.inventory.get_inventory_by_product(product_id)}


@router.put("/inventory/{product_id}", dependencies=[Depends(require_permission(PERM_WRITE))])
def set_inventory(product_id: str, body: InventoryBody, services: Services = Depends(get_services)):
    record = services.inventory.update_inventory(product_id, body.model_dump(exclude_unset=True))
    return {"ok": True, "item": record}
