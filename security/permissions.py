from __future__ import annotations

from typing import Optional

ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLE_USER = "user"
ROLES = (ROLE_ADMIN, ROLE_MANAGER, ROLE_USER)

PERM_READ = "read"
PERM_WRITE = "write"
PERM_DELETE = "delete"
PERM_BACKUP = "backup"
PERM_MANAGE_USERS = "manage_users"

# Admin implicitly holds every permission, including ones not listed here.
_GRANTS = {
    PERM_WRITE: {ROLE_MANAGER, ROLE_ADMIN},
    PERM_DELETE: {ROLE_ADMIN},
    PERM_BACKUP: {ROLE_ADMIN},
    PERM_MANAGE_USERS: {ROLE_ADMIN},
}


def has_permission(role: Optional[str], permission: str) -> bool:
    if role == ROLE_ADMIN:
        return True
    if permission == PERM_READ:
        # Any signed-in user can read, whatever their profile says.
        return True
    return (role or "") in _GRANTS.get(permission, set())
