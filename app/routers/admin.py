from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.container import Services
from app.deps import get_services, require_permission, require_user
from models.schema import BACKUP_COLLECTIONS
from security.firebase_auth import CurrentUser
from security.permissions import PERM_BACKUP

router = APIRouter()
log = logging.getLogger("firework.routers.admin")


class RetentionRequest(BaseModel):
    collections: Optional[List[str]] = None
    prune_days: Optional[int] = None


@router.get("/whoami")
def whoami(user: CurrentUser = Depends(require_user)):
    return {"ok": True, "claims": {"sub": user.uid, "email": user.email, "role": user.role}}


@router.post("/run_retention")
def run_retention(
    req: Optional[RetentionRequest] = None,
    user: CurrentUser = Depends(require_permission(PERM_BACKUP)),
    services: Services = Depends(get_services),
):
    req = req or RetentionRequest()
    try:
        result = services.retention.run(collections=req.collections, prune_days=req.prune_days)
    except Exception as e:
        log.error(
            "retention_error",
            extra={"extra": {"event": "retention_error", "error_type": type(e).__name__, "message": str(e), "uid": user.uid}},
            exc_info=True,
        )
        raise
    return {"ok": True, "result": result}


@router.post("/cache/clear", dependencies=[Depends(require_permission(PERM_BACKUP))])
def clear_cache(services: Services = Depends(get_services)):
    for name in BACKUP_COLLECTIONS:
        services.docs.invalidate(name)
    return {"ok": True, "cleared": list(BACKUP_COLLECTIONS)}
