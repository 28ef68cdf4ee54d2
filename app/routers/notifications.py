from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from app.container import Services
from app.deps import get_services, require_permission
from models.schema import NOTIFICATION_TYPES, NOTIFY_GENERAL
from security.permissions import PERM_DELETE, PERM_READ, PERM_WRITE

router = APIRouter()

HISTORY_TYPES = ("success", "error", "warning", "info")


class NotificationBody(BaseModel):
    type: str = NOTIFY_GENERAL
    message: str = Field(..., min_length=1, max_length=2000)
    data: Any = None


class HistoryBody(BaseModel):
    message: str = Field(..., min_length=1, max_length=2000)
    type: str = "info"
    metadata: Optional[Dict[str, Any]] = None
    source: str = "app"


# -------- Live notifications --------
@router.get("/notifications", dependencies=[Depends(require_permission(PERM_READ))])
def list_notifications(unread_only: bool = False, services: Services = Depends(get_services)):
    return {"ok": True, "items": services.notifications.list(unread_only=unread_only)}


@router.post("/notifications", dependencies=[Depends(require_permission(PERM_WRITE))])
def add_notification(body: NotificationBody, services: Services = Depends(get_services)):
    if body.type not in NOTIFICATION_TYPES:
        raise HTTPException(status_code=400, detail="invalid_notification_type")
    return {"ok": True, "item": services.notifications.add_notification(body.type, body.message, body.data)}


@router.post("/notifications/read-all", dependencies=[Depends(require_permission(PERM_READ))])
def read_all(services: Services = Depends(get_services)):
    return {"ok": True, "updated": services.notifications.mark_all_as_read()}


@router.post("/notifications/{notification_id}/read", dependencies=[Depends(require_permission(PERM_READ))])
def read_one(notification_id: str, services: Services = Depends(get_services)):
    return {"ok": True, "item": services.notifications.mark_as_read(notification_id)}


# -------- History feed --------
@router.get("/notification-history", dependencies=[Depends(require_permission(PERM_READ))])
def list_history(
    type: Optional[str] = None,
    unread_only: bool = False,
    limit: int = 100,
    services: Services = Depends(get_services),
):
    return {"ok": True, "items": services.history.query(type_=type, unread_only=unread_only, limit=limit)}


@router.get("/notification-history/stats", dependencies=[Depends(require_permission(PERM_READ))])
def history_stats(services: Services = Depends(get_services)):
    return {"ok": True, "stats": services.history.statistics()}


@router.post("/notification-history", dependencies=[Depends(require_permission(PERM_READ))])
def store_history(body: HistoryBody, services: Services = Depends(get_services)):
    if body.type not in HISTORY_TYPES:
        raise HTTPException(status_code=400, detail="invalid_history_type")
    result = services.history.store(body.message, body.type, body.metadata, body.source)
    return {"ok": result.ok, "id": result.value, "error": str(result.error) if result.error else None}


@router.post("/notification-history/read-all", dependencies=[Depends(require_permission(PERM_READ))])
def history_read_all(services: Services = Depends(get_services)):
    return {"ok": True, "updated": services.history.mark_all_as_read()}


@router.post("/notification-history/{notification_id}/read", dependencies=[Depends(require_permission(PERM_READ))])
def history_read_one(notification_id: str, services: Services = Depends(get_services)):
    services.history.mark_as_read(notification_id)
    return {"ok": True, "id": notification_id}


@router.delete("/notification-history", dependencies=[Depends(require_permission(PERM_DELETE))])
def history_clear(services: Services = Depends(get_services)):
    return {"ok": True, "removed": services.history.clear_all()}
