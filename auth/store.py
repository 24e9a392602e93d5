"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts and reset codes.

Pattern: Repository + Data Mapper. CredentialStore is the repository;
_row_to_account / _row_to_reset_code are the mappers. Services and routes
never touch SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  accounts.email is UNIQUE at the database level. insert_account() relies on
  the constraint rather than an existence check, so two concurrent
  registrations with the same email cannot both succeed.

  The active/not-deleted predicate is an explicit active_only argument on every
  account lookup -- there is no hidden global filter.

Atomicity:
  Each public write is one statement on one connection, except reset_password(),
  which updates the account's password hash and consumes the reset code inside a
  single transaction (engine.begin()). Attempt increments are done in SQL
  (attempt_count = attempt_count + 1) so concurrent failures never lose an
  increment; they may overshoot the ceiling, which is harmless because the
  counter never decreases.

Timestamps are stored as fixed-width ISO 8601 UTC strings, which sort
lexicographically in time order, so SQL comparisons against expires_at work
without a native datetime type.

Layer rule: no imports from api/, notify/, or core/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, ForeignKey, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.errors import ConflictError
from auth.models import Account, ResetCode, Role

_DEFAULT_DB_URL = "sqlite:///nileguide_auth.db"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),  # trimmed + lowercased
    Column("password_hash", Text, nullable=False),
    Column("full_name", String(150), nullable=False),
    Column("nationality", String(100), nullable=False),
    Column("role", String(30), nullable=False, server_default=Role.tourist.value),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("deleted_at", String(32)),  # NULL = not deleted
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_reset_codes = Table(
    "password_reset_codes",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("account_id", Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("code_hash", String(64), nullable=False, index=True),  # HMAC-SHA256 hex
    Column("created_at", String(32), nullable=False),
    Column("expires_at", String(32), nullable=False),
    Column("consumed_at", String(32)),
    Column("attempt_count", Integer, nullable=False, server_default="0"),
    Column("last_attempt_at", String(32)),
)

# Account columns a caller may change through update_account().
_ACCOUNT_UPDATABLE = {"password_hash", "full_name", "nationality", "role", "is_active", "deleted_at"}
_RESET_CODE_UPDATABLE = {"consumed_at", "attempt_count", "last_attempt_at"}


# ---------------------------------------------------------------------------
# SQLite connection setup
# ---------------------------------------------------------------------------


def _configure_sqlite(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign-key enforcement.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool. foreign_keys=ON is what makes the reset-code
    ON DELETE CASCADE actually fire.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _parse(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _usable_clause(account_id: int, now: datetime, max_attempts: int):
    return (
        (_reset_codes.c.account_id == account_id)
        & (_reset_codes.c.consumed_at.is_(None))
        & (_reset_codes.c.expires_at > _iso(now))
        & (_reset_codes.c.attempt_count < max_attempts)
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CredentialStore:
    """Repository for Account and ResetCode entities.

    Usage:
        store = CredentialStore("sqlite:///nileguide_auth.db")
        account_id = store.insert_account(Account(email="a@b.c", ...))
        account = store.find_account_by_email("a@b.c", active_only=True)
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _configure_sqlite)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def insert_account(self, account: Account) -> int:
        """Insert a new account and return its database ID.

        Raises ConflictError if the email is already taken. The UNIQUE
        constraint decides, not a prior SELECT, so the check is race-free.
        """
        now = _iso(account.created_at or _now())
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _accounts.insert().values(
                        email=account.email,
                        password_hash=account.password_hash,
                        full_name=account.full_name,
                        nationality=account.nationality,
                        role=Role(account.role).value,
                        is_active=1 if account.is_active else 0,
                        deleted_at=_iso(account.deleted_at),
                        created_at=now,
                        updated_at=now,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise ConflictError() from exc
        return result.inserted_primary_key[0]

    def find_account_by_email(self, email: str, active_only: bool = True) -> Account | None:
        """Look up an account by its normalized email.

        With active_only=True (the default for every authentication path),
        inactive and soft-deleted accounts are reported as missing.
        """
        query = _accounts.select().where(_accounts.c.email == email)
        if active_only:
            query = query.where((_accounts.c.is_active == 1) & (_accounts.c.deleted_at.is_(None)))
        with self.engine.connect() as conn:
            row = conn.execute(query).fetchone()
        return _row_to_account(row) if row is not None else None

    def find_account_by_id(self, account_id: int, active_only: bool = True) -> Account | None:
        query = _accounts.select().where(_accounts.c.id == account_id)
        if active_only:
            query = query.where((_accounts.c.is_active == 1) & (_accounts.c.deleted_at.is_(None)))
        with self.engine.connect() as conn:
            row = conn.execute(query).fetchone()
        return _row_to_account(row) if row is not None else None

    def update_account(self, account_id: int, **fields) -> bool:
        """Update mutable fields on an existing account. updated_at is always stamped.

        Accepted fields: password_hash, full_name, nationality, role, is_active,
        deleted_at. Returns True if a row was updated.
        """
        unknown = set(fields) - _ACCOUNT_UPDATABLE
        if unknown:
            raise ValueError(f"Unknown account fields: {unknown!r}")
        values = dict(fields)
        if "is_active" in values:
            values["is_active"] = 1 if values["is_active"] else 0
        if "role" in values:
            values["role"] = Role(values["role"]).value
        if "deleted_at" in values:
            values["deleted_at"] = _iso(values["deleted_at"])
        values["updated_at"] = _iso(_now())
        with self.engine.connect() as conn:
            result = conn.execute(_accounts.update().where(_accounts.c.id == account_id).values(**values))
            conn.commit()
        return result.rowcount > 0

    def delete_account(self, account_id: int) -> bool:
        """Physically delete an account row. Its reset codes cascade away with it."""
        with self.engine.connect() as conn:
            result = conn.execute(_accounts.delete().where(_accounts.c.id == account_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Reset codes
    # ------------------------------------------------------------------

    def insert_reset_code(self, code: ResetCode) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(
                _reset_codes.insert().values(
                    account_id=code.account_id,
                    code_hash=code.code_hash,
                    created_at=_iso(code.created_at),
                    expires_at=_iso(code.expires_at),
                    consumed_at=_iso(code.consumed_at),
                    attempt_count=code.attempt_count,
                    last_attempt_at=_iso(code.last_attempt_at),
                )
            )
            conn.commit()
        return result.inserted_primary_key[0]

    def find_usable_reset_codes(self, account_id: int, now: datetime, max_attempts: int) -> list[ResetCode]:
        """Return the account's usable codes, newest first.

        Usable = not consumed, not expired at `now`, attempts below the ceiling.
        Digest matching is left to the caller so it can use a constant-time
        comparison.
        """
        with self.engine.connect() as conn:
            rows = conn.execute(
                _reset_codes.select()
                .where(_usable_clause(account_id, now, max_attempts))
                .order_by(_reset_codes.c.created_at.desc(), _reset_codes.c.id.desc())
            ).fetchall()
        return [_row_to_reset_code(r) for r in rows]

    def list_reset_codes(self, account_id: int) -> list[ResetCode]:
        """Return every code ever issued to the account, oldest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _reset_codes.select().where(_reset_codes.c.account_id == account_id).order_by(_reset_codes.c.id)
            ).fetchall()
        return [_row_to_reset_code(r) for r in rows]

    def update_reset_code(self, code_id: int, **fields) -> bool:
        """Update consumed_at, attempt_count, or last_attempt_at on one code."""
        unknown = set(fields) - _RESET_CODE_UPDATABLE
        if unknown:
            raise ValueError(f"Unknown reset code fields: {unknown!r}")
        values = {k: (_iso(v) if isinstance(v, datetime) else v) for k, v in fields.items()}
        with self.engine.connect() as conn:
            result = conn.execute(_reset_codes.update().where(_reset_codes.c.id == code_id).values(**values))
            conn.commit()
        return result.rowcount > 0

    def supersede_reset_codes(self, account_id: int, now: datetime, max_attempts: int) -> int:
        """Mark every usable code for the account consumed. Returns the number of codes touched."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _reset_codes.update().where(_usable_clause(account_id, now, max_attempts)).values(consumed_at=_iso(now))
            )
            conn.commit()
        return result.rowcount

    def record_failed_attempt(self, code_id: int, now: datetime) -> None:
        """Charge one failed attempt against a code. The increment happens in SQL."""
        with self.engine.connect() as conn:
            conn.execute(
                _reset_codes.update()
                .where(_reset_codes.c.id == code_id)
                .values(attempt_count=_reset_codes.c.attempt_count + 1, last_attempt_at=_iso(now))
            )
            conn.commit()

    def reset_password(self, account_id: int, password_hash: str, code_id: int, now: datetime) -> None:
        """Set a new password hash and consume the reset code in one transaction.

        The code update is guarded by consumed_at IS NULL; if another request
        consumed it first, nothing is written and ValueError is raised so the
        transaction rolls back without changing the password.
        """
        stamp = _iso(now)
        with self.engine.begin() as conn:
            consumed = conn.execute(
                _reset_codes.update()
                .where((_reset_codes.c.id == code_id) & (_reset_codes.c.consumed_at.is_(None)))
                .values(consumed_at=stamp, last_attempt_at=stamp)
            )
            if consumed.rowcount != 1:
                raise ValueError(f"Reset code {code_id} is no longer usable")
            conn.execute(
                _accounts.update()
                .where(_accounts.c.id == account_id)
                .values(password_hash=password_hash, updated_at=stamp)
            )

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        full_name=row.full_name,
        nationality=row.nationality,
        role=Role(row.role),
        is_active=bool(row.is_active),
        deleted_at=_parse(row.deleted_at),
        created_at=_parse(row.created_at),
        updated_at=_parse(row.updated_at),
    )


def _row_to_reset_code(row) -> ResetCode:
    return ResetCode(
        id=row.id,
        account_id=row.account_id,
        code_hash=row.code_hash,
        created_at=_parse(row.created_at),
        expires_at=_parse(row.expires_at),
        consumed_at=_parse(row.consumed_at),
        attempt_count=row.attempt_count,
        last_attempt_at=_parse(row.last_attempt_at),
    )
