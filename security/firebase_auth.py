from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from google.auth import exceptions as google_auth_exceptions
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

from config.settings import settings
from repos.user_repo import UserProfileRepository
from security.auth_errors import AuthError
from security.permissions import ROLES, has_permission

log = logging.getLogger("firework.auth")


@dataclass
class CurrentUser:
    uid: str
    email: str = ""
    display_name: str = ""
    email_verified: bool = False
    role: str = "user"
    profile: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def can(self, permission: str) -> bool:
        return has_permission(self.role, permission)


def verify_id_token(token: str) -> Dict[str, Any]:
    """Verify a Firebase ID token and return its claims."""
    project_id = settings.FIREBASE_PROJECT_ID
    if not project_id:
        # Fail closed: an empty audience would accept tokens for any project.
        raise AuthError("auth/not-configured", status_code=500)
    try:
        return id_token.verify_firebase_token(token, google_requests.Request(), audience=project_id)
    except (ValueError, google_auth_exceptions.GoogleAuthError) as e:
        msg = str(e)
        code = "auth/id-token-expired" if "expired" in msg.lower() else "auth/invalid-id-token"
        log.warning("id_token_rejected", extra={"extra": {"event": "id_token_rejected", "code": code, "error": msg}})
        raise AuthError(code, msg) from e


def _uid(claims: Dict[str, Any]) -> str:
    return str(claims.get("uid") or claims.get("sub") or claims.get("user_id") or "")


class IdentityProvider:
    """
    Maps a verified Firebase session onto a role-bearing CurrentUser.

    Role profiles live in users/{uid}; a first-time user gets the default
    role. Token verification is injectable for tests.
    """

    def __init__(
        self,
        profiles: UserProfileRepository,
        verifier: Callable[[str], Dict[str, Any]] = verify_id_token,
    ):
        self.profiles = profiles
        self.verifier = verifier

    def load_profile(self, claims: Dict[str, Any]) -> Dict[str, Any]:
        uid = _uid(claims)
        email = claims.get("email") or ""
        display = claims.get("name") or ""
        first, _, last = display.partition(" ")
        profile = self.profiles.create_if_absent(
            uid,
            {
                "uid": uid,
                "email": email,
                "displayName": display,
                "firstName": first,
                "lastName": last,
                "role": settings.DEFAULT_USER_ROLE,
            },
        )
        try:
            self.profiles.touch_last_login(uid)
        except Exception as e:
            log.warning("last_login_update_failed", extra={"extra": {"event": "last_login_update_failed", "uid": uid, "message": str(e)}})
        return profile

    def authenticate(self, token: str) -> CurrentUser:
        if not token:
            raise AuthError("auth/missing-token")
        claims = self.verifier(token)
        uid = _uid(claims)
        if not uid:
            raise AuthError("auth/invalid-id-token", "token has no subject")

        email_verified = bool(claims.get("email_verified", False))
        if settings.AUTH_REQUIRE_VERIFIED_EMAIL and not email_verified:
            raise AuthError("auth/email-not-verified", status_code=403)

        profile = self.load_profile(claims)
        role = profile.get("role") if profile.get("role") in ROLES else settings.DEFAULT_USER_ROLE
        return CurrentUser(
            uid=uid,
            email=claims.get("email") or profile.get("email") or "",
            display_name=profile.get("displayName") or claims.get("name") or claims.get("email") or "User",
            email_verified=email_verified,
            role=role,
            profile=profile,
        )
