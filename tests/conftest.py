"""
tests/conftest.py -- Shared test fixtures for NileGuide Auth.

This module provides:
  - settings: an isolated Settings value (debug mode, minimum bcrypt cost)
  - store: a fresh CredentialStore on a named shared-memory SQLite database
  - clock / notifier: controllable time and a recording Notifier
  - reset_codes / accounts: the core components wired to the above
  - api: TestClient over the real FastAPI app with a patched lifespan

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.
Each fixture instance gets a unique name so tests never share rows.

DEBUG must be set before any api/ import: api/main.py builds Settings at
import time for the CORS origins, and without DEBUG a missing SECRET_KEY is
fatal.
"""

from __future__ import annotations

import os
import re
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

# CRITICAL: Set DEBUG before any api/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.models import Account
from auth.passwords import PasswordHasher
from auth.reset_codes import ResetCodeManager
from auth.service import AccountService
from auth.store import CredentialStore
from auth.tokens import SessionIssuer
from core.config import Settings, load_settings

TEST_SECRET = "test-secret-key-that-is-long-enough-0123456789"

_CODE_RE = re.compile(r"code is: (\d+)")


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


@dataclass
class SentMessage:
    destination: str
    subject: str
    body: str

    @property
    def code(self) -> str:
        match = _CODE_RE.search(self.body)
        assert match, f"No reset code in message body: {self.body!r}"
        return match.group(1)


@dataclass
class RecordingNotifier:
    """Notifier that keeps every message in memory instead of sending it."""

    sent: list[SentMessage] = field(default_factory=list)

    def send(self, destination: str, subject: str, body: str) -> None:
        self.sent.append(SentMessage(destination, subject, body))

    @property
    def last_code(self) -> str:
        assert self.sent, "No message was sent"
        return self.sent[-1].code


class FakeClock:
    """Settable UTC clock. Call it to read the time; advance() to move it."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def make_test_store() -> CredentialStore:
    """Create an isolated named shared-memory SQLite store."""
    return CredentialStore(db_url=f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")


def make_account(
    store: CredentialStore,
    hasher: PasswordHasher,
    email: str = "traveler@example.com",
    password: str = "pyramids2026",
    **fields,
) -> Account:
    """Insert an account directly through the store and return it with its id."""
    account = Account(
        email=email,
        password_hash=hasher.hash(password),
        full_name=fields.pop("full_name", "Test Traveler"),
        nationality=fields.pop("nationality", "EG"),
        **fields,
    )
    account.id = store.insert_account(account)
    return account


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return load_settings(debug=True, secret_key=TEST_SECRET, password_hash_rounds=4)


@pytest.fixture
def store() -> Generator[CredentialStore, None, None]:
    s = make_test_store()
    yield s
    s.close()


@pytest.fixture
def hasher(settings: Settings) -> PasswordHasher:
    return PasswordHasher(rounds=settings.password_hash_rounds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def reset_codes(
    store: CredentialStore,
    hasher: PasswordHasher,
    notifier: RecordingNotifier,
    settings: Settings,
    clock: FakeClock,
) -> ResetCodeManager:
    return ResetCodeManager(store, hasher, notifier, settings, clock=clock)


@pytest.fixture
def accounts(store: CredentialStore, hasher: PasswordHasher, settings: Settings) -> AccountService:
    return AccountService(store, hasher, SessionIssuer(settings))


@pytest.fixture
def account(store: CredentialStore, hasher: PasswordHasher) -> Account:
    return make_account(store, hasher)


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(store: CredentialStore, accounts: AccountService, reset_codes: ResetCodeManager):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-built test collaborators into app.state so TestClient routes see
    the isolated store and the recording notifier rather than SMTP.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.store = store
        app.state.accounts = accounts
        app.state.reset_codes = reset_codes
        yield

    return test_lifespan


@dataclass
class ApiHarness:
    client: TestClient
    store: CredentialStore
    notifier: RecordingNotifier
    accounts: AccountService


@pytest.fixture
def api(settings: Settings, hasher: PasswordHasher, notifier: RecordingNotifier) -> Generator[ApiHarness, None, None]:
    """Yield an ApiHarness around the real app with fresh state.

    The reset manager uses the real wall clock here: JWT expiry is checked by
    python-jose against the wall clock, and the HTTP tests do not move time.
    Rate-limit counters are cleared so each test starts with a full budget.
    """
    api_store = make_test_store()
    accounts = AccountService(api_store, hasher, SessionIssuer(settings))
    reset_codes = ResetCodeManager(api_store, hasher, notifier, settings)
    app.router.lifespan_context = _patch_lifespan(api_store, accounts, reset_codes)
    limiter.reset()

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiHarness(client=client, store=api_store, notifier=notifier, accounts=accounts)

    limiter.reset()
    api_store.close()
