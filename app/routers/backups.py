from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from app.container import Services
from app.deps import get_services, require_permission
from security.firebase_auth import CurrentUser
from security.permissions import PERM_BACKUP

router = APIRouter()
log = logging.getLogger("firework.routers.backups")


class BackupSnapshot(BaseModel):
    metadata: Optional[Dict[str, Any]] = None
    data: Any = None


class RestoreRequest(BaseModel):
    backup: Optional[Dict[str, Any]] = None
    source_uri: Optional[str] = None  # gs://bucket/backups/<id>.json
    collections: Optional[List[str]] = None
    replace_existing: bool = False


@router.post("/backups")
def create_backup(
    export: bool = False,
    user: CurrentUser = Depends(require_permission(PERM_BACKUP)),
    services: Services = Depends(get_services),
):
    backup = services.backups.create_full_backup(created_by=user.email or user.uid)
    out: Dict[str, Any] = {"ok": True, "backup": backup}
    if export:
        out["location"] = services.backups.export_backup(backup)
    return out


@router.get("/backups", dependencies=[Depends(require_permission(PERM_BACKUP))])
def backup_history(services: Services = Depends(get_services)):
    return {"ok": True, "items": services.backups.get_backup_history()}


@router.get("/backups/stats", dependencies=[Depends(require_permission(PERM_BACKUP))])
def backup_stats(services: Services = Depends(get_services)):
    return {"ok": True, "stats": services.backups.get_backup_statistics()}


@router.delete("/backups/{backup_id}", dependencies=[Depends(require_permission(PERM_BACKUP))])
def delete_backup(backup_id: str, services: Services = Depends(get_services)):
    services.backups.delete_backup(backup_id)
    return {"ok": True, "removed": backup_id}


@router.post("/backups/validate", dependencies=[Depends(require_permission(PERM_BACKUP))])
def validate_backup(body: BackupSnapshot, services: Services = Depends(get_services)):
    report = services.backups.validate_backup_data(body.model_dump())
    return {"ok": True, "report": report.model_dump()}


@router.post("/backups/restore", dependencies=[Depends(require_permission(PERM_BACKUP))])
def restore_backup(body: RestoreRequest, services: Services = Depends(get_services)):
    if body.source_uri:
        backup = services.backups.load_backup_from_gcs(body.source_uri)
    else:
        backup = body.backup
    report = services.backups.validate_backup_data(backup)
    if not report.isValid:
        log.warning(
            "restore_rejected",
            extra={"extra": {"event": "restore_rejected", "errors": report.errors}},
        )
        raise HTTPException(status_code=400, detail={"error": "invalid_backup", "errors": report.errors})

    restored = services.backups.restore_from_backup(
        backup,
        collections=body.collections,
        replace_existing=body.replace_existing,
    )
    return {"ok": True, "restored": restored, "warnings": report.warnings}
