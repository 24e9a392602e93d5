"""
auth/errors.py -- Domain error taxonomy for the auth core.

Every error carries the HTTP status, a machine-readable code, and the exact
message the client sees. api/main.py renders all of them through one exception
handler into the standard {"error": {...}} envelope, so the mapping from domain
error to response is one-to-one and lives here.

Anti-enumeration: AuthenticationError and InvalidCodeError have fixed messages.
Callers never pass a reason string -- a different message for "unknown email"
and "wrong password" would leak account existence.

Layer rule: no imports from api/, notify/, or core/.
"""

from __future__ import annotations


class AuthServiceError(Exception):
    """Base class for errors that map to a client-visible response."""

    status_code: int = 400
    code: str = "bad_request"
    message: str = "Bad request."

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ConflictError(AuthServiceError):
    status_code = 409
    code = "conflict"
    message = "Email already exists"


class AuthenticationError(AuthServiceError):
    """Bad credentials, inactive/deleted account, or invalid/expired token."""

    status_code = 401
    code = "unauthorized"
    message = "Invalid credentials"


class InvalidCodeError(AuthServiceError):
    """No usable reset code matched. Identical for unknown account and wrong code."""

    status_code = 400
    code = "invalid_code"
    message = "Invalid code"


class PasswordReuseError(AuthServiceError):
    status_code = 400
    code = "password_reuse"
    message = "New password cannot be the same as the old password"


class DeliveryError(AuthServiceError):
    """The notifier could not hand the message to the mail server."""

    status_code = 503
    code = "delivery_failed"
    message = "Could not deliver the reset code. Please try again later."
