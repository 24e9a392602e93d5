"""
auth/tokens.py -- JWT session issuing and verification.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       exactly three identity claims -- sub (account id), email, role -- plus
       exp/iat/iss/aud. There is no refresh token: when a session expires the
       client logs in again.

  Verification raises AuthenticationError on any failure (bad signature,
       expired, wrong issuer/audience, missing or malformed claim). The message
       is the same for every case so a caller cannot probe which check failed.

  SECRET_KEY: taken from the Settings value passed to the constructor. Settings
       refuses to build without a key outside debug mode, so a SessionIssuer
       can never exist with an empty secret.

Layer rule: no imports from api/ or notify/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from auth.errors import AuthenticationError
from auth.models import Account, Role
from core.config import Settings

logger = logging.getLogger("nileguide.auth")

_ALGORITHM = "HS256"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class IssuedSession:
    token: str
    expires_at: datetime


@dataclass(frozen=True)
class SessionClaims:
    """The verified identity carried by a bearer token."""

    account_id: int
    email: str
    role: Role


class SessionIssuer:
    """Builds and verifies signed, time-bound bearer tokens.

    Usage:
        issuer = SessionIssuer(get_settings())
        session = issuer.issue(account)
        claims = issuer.verify(session.token)
    """

    def __init__(self, settings: Settings, clock: Callable[[], datetime] = _utcnow) -> None:
        self._secret = settings.secret_key
        self._issuer = settings.jwt_issuer
        self._audience = settings.jwt_audience
        self.ttl = timedelta(minutes=settings.token_expire_minutes)
        self._clock = clock

    def issue(self, account: Account) -> IssuedSession:
        """Encode a signed JWT for the account. expires_at is exactly issue time + TTL.

        exp is truncated to whole seconds inside the token (JWT NumericDate);
        the returned expires_at keeps full precision for the response body.
        """
        now = self._clock()
        expires_at = now + self.ttl
        payload = {
            "sub": str(account.id),
            "email": account.email,
            "role": Role(account.role).value,
            "iat": now,
            "exp": expires_at,
            "iss": self._issuer,
            "aud": self._audience,
        }
        token = jwt.encode(payload, self._secret, algorithm=_ALGORITHM)
        return IssuedSession(token=token, expires_at=expires_at)

    def verify(self, token: str) -> SessionClaims:
        """Decode and verify a JWT, returning its identity claims.

        python-jose validates exp against the wall clock, signature, issuer and
        audience. Claim integrity (sub numeric, role in the closed set, email
        present) is checked here.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[_ALGORITHM],
                audience=self._audience,
                issuer=self._issuer,
            )
        except JWTError as exc:
            logger.debug("Rejected bearer token: %s", type(exc).__name__)
            raise AuthenticationError() from exc

        try:
            return SessionClaims(
                account_id=int(payload["sub"]),
                email=str(payload["email"]),
                role=Role(payload["role"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise AuthenticationError() from exc
