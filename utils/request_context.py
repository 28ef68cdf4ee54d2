from __future__ import annotations

from contextvars import ContextVar

_request_id_var: ContextVar[str] = ContextVar("request_id", default="")
_user_id_var: ContextVar[str] = ContextVar("user_id", default="")

# Audit entries written outside a request (retention, scripts) are attributed here.
SYSTEM_USER_ID = "system"


def set_request_id(rid: str) -> None:
    _request_id_var.set(rid or "")


def get_request_id() -> str:
    return _request_id_var.get() or ""


def clear_request_id() -> None:
    _request_id_var.set("")


def set_user_id(uid: str) -> None:
    _user_id_var.set(uid or "")


def get_user_id() -> str:
    return _user_id_var.get() or SYSTEM_USER_ID


def clear_user_id() -> None:
    _user_id_var.set("")
