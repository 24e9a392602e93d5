"""
auth/service.py -- Registration, login, and session resolution.

Login reports every failure -- unknown email, wrong password, inactive or
soft-deleted account -- as the same AuthenticationError. Inactive and deleted
accounts are filtered by the store (active_only=True), so they take the
"unknown email" path.

Timing: an unknown email returns before bcrypt runs, so it is measurably
faster than a wrong password. The per-IP login rate limit bounds how fast that
difference can be probed.

Layer rule: no imports from api/ or notify/.
"""

from __future__ import annotations

import logging

from auth.errors import AuthenticationError
from auth.models import Account, Role
from auth.passwords import PasswordHasher
from auth.reset_codes import normalize_email
from auth.store import CredentialStore
from auth.tokens import IssuedSession, SessionIssuer

logger = logging.getLogger("nileguide.auth")


class AccountService:
    def __init__(self, store: CredentialStore, hasher: PasswordHasher, issuer: SessionIssuer) -> None:
        self.store = store
        self.hasher = hasher
        self.issuer = issuer

    def register(self, email: str, password: str, full_name: str, nationality: str) -> tuple[Account, IssuedSession]:
        """Create a Tourist account and open a session for it.

        Raises ConflictError (from the store's UNIQUE constraint) if the
        normalized email is taken.
        """
        account = Account(
            email=normalize_email(email),
            password_hash=self.hasher.hash(password),
            full_name=full_name.strip(),
            nationality=nationality.strip(),
            role=Role.tourist,
        )
        account.id = self.store.insert_account(account)
        logger.info("Registered account %d", account.id)
        return account, self.issuer.issue(account)

    def login(self, email: str, password: str) -> tuple[Account, IssuedSession]:
        account = self.store.find_account_by_email(normalize_email(email), active_only=True)
        if account is None:
            raise AuthenticationError()
        if not self.hasher.verify(password, account.password_hash):
            raise AuthenticationError()
        return account, self.issuer.issue(account)

    def current_account(self, token: str) -> Account:
        """Resolve a bearer token to a still-active account."""
        claims = self.issuer.verify(token)
        account = self.store.find_account_by_id(claims.account_id, active_only=True)
        if account is None:
            raise AuthenticationError()
        return account
