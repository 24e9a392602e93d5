"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Bearer tokens only: Authorization: Bearer <jwt>. There are no cookies and no
API keys -- clients hold the token returned by /register or /login.

try_get_current_account() is the soft variant (returns None on failure).
get_current_account() wraps it and raises AuthenticationError, which the API
layer renders as 401 with the uniform message.

Layer rule: auth/dependencies.py may import from fastapi (for Request)
because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.errors import AuthenticationError
from auth.models import Account
from auth.service import AccountService


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def try_get_current_account(request: Request) -> Account | None:
    """Authenticate the request via its Bearer token. Never raises."""
    token = _bearer_token(request)
    if token is None:
        return None
    accounts: AccountService = request.app.state.accounts
    try:
        return accounts.current_account(token)
    except AuthenticationError:
        return None


def get_current_account(request: Request) -> Account:
    """Require authentication.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(account: Account = Depends(get_current_account)): ...
    """
    account = try_get_current_account(request)
    if account is None:
        raise AuthenticationError()
    return account
