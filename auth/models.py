"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own
domain shape; the store, services, and routes do the work. Whether a reset code
is usable is decided by the SQL predicate in auth/store.py.

Layer rule: no imports from api/, notify/, or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    """Closed set of account roles. Carried in the session token as an opaque claim."""

    tourist = "Tourist"
    admin = "Admin"


@dataclass
class Account:
    """A registered identity.

    email is always stored trimmed and lowercased; the store's UNIQUE
    constraint on that column is the only uniqueness guarantee.

    An account with is_active=False or deleted_at set is authentication-opaque:
    every lookup used by login, /me and the reset flow treats it as missing.
    """

    email: str
    password_hash: str
    full_name: str
    nationality: str
    role: Role = Role.tourist
    id: int | None = None
    is_active: bool = True
    deleted_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class ResetCode:
    """A one-time password-reset code record.

    code_hash is HMAC-SHA256(pepper, "<account_id>:<code>"). The raw code is
    never persisted -- it exists only in memory long enough to be mailed.

    Terminal states are tracked by separate fields rather than a status column:
      consumed   -- consumed_at is set (successful reset, or superseded)
      expired    -- expires_at <= now
      exhausted  -- attempt_count >= ceiling
    """

    account_id: int
    code_hash: str
    created_at: datetime
    expires_at: datetime
    id: int | None = None
    consumed_at: datetime | None = None
    attempt_count: int = 0
    last_attempt_at: datetime | None = None
