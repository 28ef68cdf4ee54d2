from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from app.container import Services
from app.deps import get_services, require_permission
from models.schema import AUDIT_ACTIONS
from security.permissions import PERM_READ

router = APIRouter()


@router.get("/audit-logs", dependencies=[Depends(require_permission(PERM_READ))])
def list_audit_logs(
    collection: Optional[str] = None,
    action: Optional[str] = None,
    limit: int = 100,
    services: Services = Depends(get_services),
):
    if action and action not in AUDIT_ACTIONS:
        raise HTTPException(status_code=400, detail="invalid_audit_action")
    if limit < 1 or limit > 1000:
        raise HTTPException(status_code=400, detail="invalid_limit")
    return {"ok": True, "items": services.audit.query(collection=collection, action=action, limit=limit)}


@router.get("/audit-logs/stats", dependencies=[Depends(require_permission(PERM_READ))])
def audit_stats(services: Services = Depends(get_services)):
    return {"ok": True, "stats": services.audit.statistics()}
