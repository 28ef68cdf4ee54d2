from __future__ import annotations

from typing import Optional

# Provider error codes -> messages shown to the user.
AUTH_ERROR_MESSAGES = {
    "auth/email-already-in-use": "An account with this email already exists.",
    "auth/weak-password": "Password should be at least 6 characters.",
    "auth/invalid-email": "Please enter a valid email address.",
    "auth/user-not-found": "No account found with this email address.",
    "auth/wrong-password": "Incorrect password. Please try again.",
    "auth/too-many-requests": "Too many failed attempts. Please try again later.",
    "auth/network-request-failed": "Network error. Please check your connection.",
    "auth/requires-recent-login": "Please log in again to complete this action.",
    "auth/invalid-credential": "Invalid email or password.",
    "auth/user-disabled": "This account has been disabled.",
    # Token verification on this side of the wire
    "auth/missing-token": "Please sign in to continue.",
    "auth/id-token-expired": "Your session has expired. Please sign in again.",
    "auth/invalid-id-token": "Your session is invalid. Please sign in again.",
    "auth/email-not-verified": "Please verify your email address before continuing.",
    "auth/insufficient-permission": "You do not have permission to perform this action.",
    "auth/not-configured": "Authentication is not configured on this server.",
}

GENERIC_AUTH_MESSAGE = "An authentication error occurred."


def translate_auth_error(code: Optional[str], raw_message: Optional[str] = None) -> str:
    if code and code in AUTH_ERROR_MESSAGES:
        return AUTH_ERROR_MESSAGES[code]
    return raw_message or GENERIC_AUTH_MESSAGE


class AuthError(Exception):
    def __init__(self, code: str, raw_message: Optional[str] = None, status_code: int = 401):
        self.code = code
        self.message = translate_auth_error(code, raw_message)
        self.status_code = status_code
        super().__init__(self.message)
