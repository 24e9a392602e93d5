"""
api/routes/v1/auth.py -- Account, session, and password-reset REST endpoints.

Routes:
  POST /api/v1/auth/register            -- create account; returns a session
  POST /api/v1/auth/login               -- password login; returns a session
  GET  /api/v1/auth/me                  -- current account (requires Bearer token)
  POST /api/v1/auth/forgot-password     -- mail a reset code (always the same answer)
  POST /api/v1/auth/verify-reset-code   -- check a reset code without consuming it
  POST /api/v1/auth/reset-password      -- set a new password with a reset code

Security:
  POST /login is rate-limited per client address (Settings.login_rate_limit).
  The three reset endpoints share one per-client budget (Settings.reset_rate_limit).
  The limiter decorators sit BELOW @router so the registered endpoint is the
  rate-limited wrapper. The limit is checked before the handler body runs,
  so a throttled request never reaches the store.
  Cache-Control: no-store on every response that carries a token.
  Domain errors (auth/errors.py) are raised, never caught here; api/main.py maps
  them to status codes.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import RESET_SCOPE, limiter, login_limit, reset_limit
from api.models import (
    ForgotPasswordRequest,
    LoginRequest,
    MeResponse,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
    SessionResponse,
    VerifyResetCodeRequest,
)
from auth.dependencies import get_current_account
from auth.models import Account
from auth.reset_codes import ResetCodeManager
from auth.service import AccountService
from auth.tokens import IssuedSession

# Auth policy:
# - POST /api/v1/auth/register:           public
# - POST /api/v1/auth/login:              public, login limit
# - GET  /api/v1/auth/me:                 requires auth (get_current_account)
# - POST /api/v1/auth/forgot-password:    public, shared reset limit
# - POST /api/v1/auth/verify-reset-code:  public, shared reset limit
# - POST /api/v1/auth/reset-password:     public, shared reset limit
router = APIRouter()


def _session_response(account: Account, session: IssuedSession, status_code: int) -> JSONResponse:
    resp = JSONResponse(
        status_code=status_code,
        content=SessionResponse(
            token=session.token,
            expires_at=session.expires_at,
            user_id=account.id,
            role=account.role,
        ).model_dump(mode="json"),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Registration and login
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=SessionResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create a Tourist account and return a session for it.

    409 if the email (after trim + lowercase) is already registered.
    """
    accounts: AccountService = request.app.state.accounts
    account, session = accounts.register(body.email, body.password, body.full_name, body.nationality)
    return _session_response(account, session, 201)


@router.post("/auth/login", response_model=SessionResponse)
@limiter.limit(login_limit)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password.

    Unknown email, wrong password, inactive and soft-deleted accounts all
    produce the same 401 body.
    """
    accounts: AccountService = request.app.state.accounts
    account, session = accounts.login(body.email, body.password)
    return _session_response(account, session, 200)


@router.get("/auth/me", response_model=MeResponse)
def me(current_account: Account = Depends(get_current_account)) -> MeResponse:
    """Return profile information for the account behind the Bearer token."""
    return MeResponse.from_account(current_account)


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------


@router.post("/auth/forgot-password", response_model=MessageResponse)
@limiter.shared_limit(reset_limit, scope=RESET_SCOPE)
def forgot_password(request: Request, body: ForgotPasswordRequest) -> MessageResponse:
    """Mail a reset code if the account exists. The response never says whether it does."""
    reset_codes: ResetCodeManager = request.app.state.reset_codes
    return MessageResponse(message=reset_codes.request_code(body.email))


@router.post("/auth/verify-reset-code", response_model=MessageResponse)
@limiter.shared_limit(reset_limit, scope=RESET_SCOPE)
def verify_reset_code(request: Request, body: VerifyResetCodeRequest) -> MessageResponse:
    """Check a reset code. Failures count against the account's live code."""
    reset_codes: ResetCodeManager = request.app.state.reset_codes
    reset_codes.verify_code(body.email, body.code)
    return MessageResponse(message="Code is valid")


@router.post("/auth/reset-password", response_model=MessageResponse)
@limiter.shared_limit(reset_limit, scope=RESET_SCOPE)
def reset_password(request: Request, body: ResetPasswordRequest) -> MessageResponse:
    """Set a new password with a valid reset code, consuming the code."""
    reset_codes: ResetCodeManager = request.app.state.reset_codes
    reset_codes.consume_code(body.email, body.code, body.new_password)
    return MessageResponse(message="Password updated")
