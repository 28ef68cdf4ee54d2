from __future__ import annotations

import threading

from fastapi import Depends, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from app.container import Services, build_services
from security.auth_errors import AuthError, translate_auth_error
from security.firebase_auth import CurrentUser
from utils.request_context import set_user_id

_build_lock = threading.Lock()


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        # Built lazily so importing the app never opens a Firestore client.
        with _build_lock:
            services = getattr(request.app.state, "services", None)
            if services is None:
                services = build_services()
                request.app.state.services = services
    return services


def parse_bearer_token(request: Request) -> str:
    h = request.headers.get("Authorization", "").strip()
    parts = h.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        return ""
    return parts[1].strip()


async def require_user(request: Request, services: Services = Depends(get_services)) -> CurrentUser:
    # async so the user id lands in this request's context before the
    # (threadpooled) endpoint runs and writes audit entries.
    token = parse_bearer_token(request)
    try:
        user = await run_in_threadpool(services.identity.authenticate, token)
    except AuthError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    set_user_id(user.uid)
    request.state.user = user
    return user


def require_permission(permission: str):
    def _check(user: CurrentUser = Depends(require_user)) -> CurrentUser:
        if not user.can(permission):
            raise HTTPException(status_code=403, detail=translate_auth_error("auth/insufficient-permission"))
        return user

    return _check
