from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from app.container import Services
from app.deps import get_services, require_permission
from models.schema import COL_CATEGORIES, COL_PRODUCTS, COL_VENDORS
from security.permissions import PERM_DELETE, PERM_READ, PERM_WRITE

router = APIRouter()


class CategoryBody(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    subCategories: Optional[List[str]] = None


class VendorBody(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)


class ProductBody(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    categoryId: Optional[str] = None
    vendorId: Optional[str] = None
    lowInventoryThreshold: Any = 0
    thresholdUnit: Optional[str] = "item"
    thresholdInItems: Any = 0
    unitConfig: Optional[Dict[str, Any]] = None


def _category_payload(body: CategoryBody) -> Dict[str, Any]:
    # subCategories is persisted only when non-empty.
    payload: Dict[str, Any] = {"name": body.name}
    if body.subCategories:
        payload["subCategories"] = body.subCategories
    return payload


def _product_payload(body: ProductBody) -> Dict[str, Any]:
    return {
        "name": body.name,
        "categoryId": body.categoryId,
        "vendorId": body.vendorId,
        "lowInventoryThreshold": body.lowInventoryThreshold,
        "thresholdUnit": body.thresholdUnit,
        "thresholdInItems": body.thresholdInItems,
        "unitConfig": body.unitConfig or {},
    }


def _require(doc: Optional[Dict[str, Any]], what: str) -> Dict[str, Any]:
    if doc is None:
        raise HTTPException(status_code=404, detail=f"{what}_not_found")
    return doc


# -------- Categories --------
@router.get("/categories", dependencies=[Depends(require_permission(PERM_READ))])
def list_categories(refresh: bool = False, services: Services = Depends(get_services)):
    return {"ok": True, "items": services.docs.list(COL_CATEGORIES, use_cache=not refresh)}


@router.post("/categories", dependencies=[Depends(require_permission(PERM_WRITE))])
def add_category(body: CategoryBody, services: Services = Depends(get_services)):
    return {"ok": True, "item": services.docs.create(COL_CATEGORIES, _category_payload(body))}


@router.put("/categories/{category_id}", dependencies=[Depends(require_permission(PERM_WRITE))])
def update_category(category_id: str, body: CategoryBody, services: Services = Depends(get_services)):
    _require(services.docs.get(COL_CATEGORIES, category_id), "category")
    return {"ok": True, "item": services.docs.update(COL_CATEGORIES, category_id, _category_payload(body))}


@router.delete("/categories/{category_id}", dependencies=[Depends(require_permission(PERM_DELETE))])
def delete_category(category_id: str, services: Services = Depends(get_services)):
    services.docs.delete(COL_CATEGORIES, category_id)
    return {"ok": True, "removed": category_id}


# -------- Vendors --------
@router.get("/vendors", dependencies=[Depends(require_permission(PERM_READ))])
def list_vendors(refresh: bool = False, services: Services = Depends(get_services)):
    return {"ok": True, "items": services.docs.list(COL_VENDORS, use_cache=not refresh)}


@router.post("/vendors", dependencies=[Depends(require_permission(PERM_WRITE))])
def add_vendor(body: VendorBody, services: Services = Depends(get_services)):
    return {"ok": True, "item": services.docs.create(COL_VENDORS, {"name": body.name})}


@router.put("/vendors/{vendor_id}", dependencies=[Depends(require_permission(PERM_WRITE))])
def update_vendor(vendor_id: str, body: VendorBody, services: Services = Depends(get_services)):
    _require(services.docs.get(COL_VENDORS, vendor_id), "vendor")
    return {"ok": True, "item": services.docs.update(COL_VENDORS, vendor_id, {"name": body.name})}


@router.delete("/vendors/{vendor_id}", dependencies=[Depends(require_permission(PERM_DELETE))])
def delete_vendor(vendor_id: str, services: Services = Depends(get_services)):
    services.docs.delete(COL_VENDORS, vendor_id)
    return {"ok": True, "removed": vendor_id}


# -------- Products --------
@router.get("/products", dependencies=[Depends(require_permission(PERM_READ))])
def list_products(refresh: bool = False, services: Services = Depends(get_services)):
    return {"ok": True, "items": services.docs.list(COL_PRODUCTS, use_cache=not refresh)}


@router.get("/products/{product_id}", dependencies=[Depends(require_permission(PERM_READ))])
def get_product(product_id: str, services: Services = Depends(get_services)):
    return {"ok": True, "item": _require(services.docs.get(COL_PRODUCTS, product_id), "product")}


@router.post("/products", dependencies=[Depends(require_permission(PERM_WRITE))])
def add_product(body: ProductBody, services: Services = Depends(get_services)):
    return {"ok": True, "item": services.docs.create(COL_PRODUCTS, _product_payload(body))}


@router.put("/products/{product_id}", dependencies=[Depends(require_permission(PERM_WRITE))])
def update_product(product_id: str, body: ProductBody, services: Services = Depends(get_services)):
    _require(services.docs.get(COL_PRODUCTS, product_id), "product")
    return {"ok": True, "item": services.docs.update(COL_PRODUCTS, product_id, _product_payload(body))}


@router.delete("/products/{product_id}", dependencies=[Depends(require_permission(PERM_DELETE))])
def delete_product(product_id: str, services: Services = Depends(get_services)):
    services.docs.delete(COL_PRODUCTS, product_id)
    return {"ok": True, "removed": product_id}
