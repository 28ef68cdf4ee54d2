from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from app.container import Services
from app.deps import get_services, require_permission, require_user
from security.firebase_auth import CurrentUser
from security.permissions import PERM_MANAGE_USERS, ROLES

router = APIRouter()


class ProfileUpdate(BaseModel):
    displayName: Optional[str] = Field(None, max_length=200)
    firstName: Optional[str] = Field(None, max_length=100)
    lastName: Optional[str] = Field(None, max_length=100)


class RoleUpdate(BaseModel):
    role: str


@router.get("/me")
def me(user: CurrentUser = Depends(require_user)):
    return {
        "ok": True,
        "user": {
            "uid": user.uid,
            "email": user.email,
            "displayName": user.display_name,
            "emailVerified": user.email_verified,
            "role": user.role,
            "isAdmin": user.is_admin,
        },
    }


@router.patch("/me")
def update_me(
    body: ProfileUpdate,
    user: CurrentUser = Depends(require_user),
    services: Services = Depends(get_services),
):
    patch = body.model_dump(exclude_none=True)
    if not patch:
        raise HTTPException(status_code=400, detail="empty_update")
    # role is not editable here
    services.identity.profiles.update(user.uid, patch)
    return {"ok": True, "updated": sorted(patch)}


@router.put("/users/{uid}/role", dependencies=[Depends(require_permission(PERM_MANAGE_USERS))])
def set_role(uid: str, body: RoleUpdate, services: Services = Depends(get_services)):
    if body.role not in ROLES:
        raise HTTPException(status_code=400, detail="invalid_role")
    if services.identity.profiles.get(uid) is None:
        raise HTTPException(status_code=404, detail="user_not_found")
    services.identity.profiles.update(uid, {"role": body.role})
    return {"ok": True, "uid": uid, "role": body.role}
