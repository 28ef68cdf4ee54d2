"""
Document schemas for the Firestore collections.

Firestore itself is schemaless; these models are applied at the access-layer
boundary so that every document written by this service has its numeric
fields coerced and its required structure present. Extra fields are kept
(documents from older app versions carry fields we do not model).
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from models.schema import (
    COL_CATEGORIES,
    COL_INVENTORY,
    COL_NOTIFICATIONS,
    COL_ORDERS,
    COL_PRODUCTS,
    COL_VENDORS,
    NOTIFY_GENERAL,
    ORDER_PENDING,
)
from utils.numbers import to_number, to_quantity


class _Doc(BaseModel):
    model_config = ConfigDict(extra="allow")


class UnitDefinition(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str
    conversionRate: float = 0


class UnitConfig(BaseModel):
    model_config = ConfigDict(extra="allow")

    structure: str = "item-case"
    item: UnitDefinition = Field(default_factory=lambda: UnitDefinition(type="item", conversionRate=1))
    package: UnitDefinition = Field(default_factory=lambda: UnitDefinition(type="package", conversionRate=0))
    case: UnitDefinition = Field(default_factory=lambda: UnitDefinition(type="case", conversionRate=1))
    itemsPerCase: float = 0
    itemsPerPackage: float = 0
    itemsPerItem: float = 0
    totalItemsPerCase: float = 0
    packagesPerCase: float = 0

    @model_validator(mode="before")
    @classmethod
    def _fill_units(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        out = dict(data)
        for name, default_rate in (("item", 1), ("package", 0), ("case", 1)):
            unit = out.get(name)
            if not isinstance(unit, Mapping):
                out[name] = {"type": name, "conversionRate": default_rate}
                continue
            unit = dict(unit)
            unit.setdefault("type", name)
            rate = unit.get("conversionRate")
            if not isinstance(rate, (int, float)) or isinstance(rate, bool):
                unit["conversionRate"] = to_number(rate, default_rate)
            out[name] = unit
        out.setdefault("structure", "item-case")
        for k in ("itemsPerCase", "itemsPerPackage", "itemsPerItem", "totalItemsPerCase", "packagesPerCase"):
            out[k] = to_number(out.get(k), 0)
        return out


class Product(_Doc):
    name: str
    categoryId: Optional[str] = None
    vendorId: Optional[str] = None
    lowInventoryThreshold: float = 0
    thresholdUnit: str = "item"
    thresholdInItems: float = 0
    unitConfig: UnitConfig = Field(default_factory=UnitConfig)

    @field_validator("lowInventoryThreshold", "thresholdInItems", mode="before")
    @classmethod
    def _num(cls, v: Any) -> Any:
        return to_number(v, 0)

    @field_validator("thresholdUnit", mode="before")
    @classmethod
    def _unit(cls, v: Any) -> Any:
        return v or "item"

    @field_validator("unitConfig", mode="before")
    @classmethod
    def _unit_config(cls, v: Any) -> Any:
        return v or {}

    @model_validator(mode="before")
    @classmethod
    def _drop_legacy_units(cls, data: Any) -> Any:
        # 'units' predates unitConfig and is rejected by the security rules.
        if isinstance(data, Mapping) and "units" in data:
            data = {k: v for k, v in data.items() if k != "units"}
        return data


class Category(_Doc):
    name: str
    subCategories: Optional[List[str]] = None

    @field_validator("subCategories", mode="before")
    @classmethod
    def _subs(cls, v: Any) -> Any:
        if not isinstance(v, list) or not v:
            return None
        return [str(s) for s in v]


class Vendor(_Doc):
    name: str


class InventoryRecord(_Doc):
    productId: str
    quantity: int = Field(default=0, ge=0)
    lastUpdated: Any = None
    location: Optional[str] = None

    @field_validator("quantity", mode="before")
    @classmethod
    def _qty(cls, v: Any) -> Any:
        if isinstance(v, Mapping):
            v = v.get("quantity")
        return to_quantity(v)


class OrderItem(BaseModel):
    model_config = ConfigDict(extra="allow")

    productId: str
    quantity: float = 0
    unitCost: float = 0

    @field_validator("quantity", "unitCost", mode="before")
    @classmethod
    def _num(cls, v: Any) -> Any:
        return to_number(v, 0)


class Order(_Doc):
    status: str = ORDER_PENDING
    season: Optional[str] = None
    orderDate: Any = None
    items: List[OrderItem] = Field(default_factory=list)
    total: float = 0

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, v: Any) -> Any:
        return v or ORDER_PENDING

    @field_validator("total", mode="before")
    @classmethod
    def _total(cls, v: Any) -> Any:
        return to_number(v, 0)


class Notification(_Doc):
    type: str = NOTIFY_GENERAL
    message: str
    data: Any = None
    isRead: bool = False
    createdAt: Any = None
    readAt: Any = None


COLLECTION_MODELS: Dict[str, Type[_Doc]] = {
    COL_PRODUCTS: Product,
    COL_CATEGORIES: Category,
    COL_VENDORS: Vendor,
    COL_INVENTORY: InventoryRecord,
    COL_ORDERS: Order,
    COL_NOTIFICATIONS: Notification,
}

# Server-stamped by the access layer; never validated here.
_PASSTHROUGH = ("createdAt", "updatedAt", "readAt", "lastUpdated")

# Map fields that a partial update writes key by key.
_NESTED = ("unitConfig",)


def _field_paths(prefix: str, supplied: Mapping[str, Any], validated: Mapping[str, Any]) -> Dict[str, Any]:
    # Firestore replaces a map given to update() whole; dotted paths touch only these keys.
    out: Dict[str, Any] = {}
    for k, v in supplied.items():
        path = f"{prefix}.{k}"
        if isinstance(v, Mapping) and isinstance(validated.get(k), Mapping):
            out.update(_field_paths(path, v, validated[k]))
        elif k in validated:
            out[path] = validated[k]
    return out


def prepare_for_write(collection: str, data: Mapping[str, Any], partial: bool = False) -> Dict[str, Any]:
    """
    Coerce a payload for `collection` into its schema.

    `partial=True` (updates) validates only the fields supplied; defaults are
    not injected so untouched stored fields are left alone. A null in a
    partial payload is never turned into a default, and map fields listed in
    _NESTED come back as dotted field paths. Raises pydantic ValidationError
    for payloads that cannot be coerced.
    """
    payload = {k: v for k, v in dict(data).items() if k != "id"}
    model = COLLECTION_MODELS.get(collection)
    if model is None:
        return payload

    passthrough = {k: payload.pop(k) for k in _PASSTHROUGH if k in payload}
    if partial:
        # Placeholders satisfy required fields; they are dropped again below.
        required = {name: "" for name, f in model.model_fields.items() if f.is_required() and name not in payload}
        validated = model.model_validate({**required, **payload})
        dumped = validated.model_dump(exclude_unset=True, exclude_none=False)
        out: Dict[str, Any] = {}
        for k, v in dumped.items():
            if k not in payload:
                continue
            if payload[k] is None and v is not None:
                continue
            if k in _NESTED and isinstance(payload[k], Mapping) and isinstance(v, Mapping):
                out.update(_field_paths(k, payload[k], v))
                continue
            out[k] = v
    else:
        out = model.model_validate(payload).model_dump(exclude_none=True)
    out.update(passthrough)
    return out
