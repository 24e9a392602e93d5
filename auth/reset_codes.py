"""
auth/reset_codes.py -- One-time password-reset codes.

Security design decisions:
  Codes: 6 decimal digits drawn with secrets.randbelow(10**digits) and
       zero-padded, so every value in 000000-999999 is equally likely and
       leading zeros are significant. Six digits is low entropy; the attempt
       ceiling, the 10-minute expiry, and the per-IP rate limit on the reset
       endpoints are what make guessing impractical.

  Storage: only HMAC-SHA256(pepper, "<account_id>:<code>") is persisted. The
       account id in the message means the same code issued to two accounts
       produces different digests. The pepper is server-held, so a database
       dump alone does not allow an offline search of the 10^6 code space.

  Lookup: the store returns the account's usable codes (newest first) and the
       digest is compared here with hmac.compare_digest. Equality of digests is
       the selector; recency only breaks ties.

  Attempt charging: a failed verify/consume increments the attempt counter of
       the account's newest usable code whatever string was submitted. Without
       that, wrong guesses would never deplete the live code's budget.

  Anti-enumeration: request_code() returns the same message and performs no
       writes for unknown, inactive, and soft-deleted accounts. verify/consume
       raise the same InvalidCodeError for "no such account" and "wrong code".

Layer rule: no imports from api/ or notify/. Import from core/ is allowed.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from auth.errors import InvalidCodeError, PasswordReuseError
from auth.models import Account, ResetCode
from auth.passwords import PasswordHasher
from auth.store import CredentialStore
from core.config import Settings

logger = logging.getLogger("nileguide.reset")

GENERIC_REQUEST_MESSAGE = "If the email exists, a reset code was sent."
RESET_EMAIL_SUBJECT = "NileGuide Password Reset Code"


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ResetCodeManager:
    """Issues, verifies, and consumes password-reset codes.

    The notifier is anything with send(destination, subject, body); it raises
    DeliveryError on failure, which propagates to the caller.
    """

    def __init__(
        self,
        store: CredentialStore,
        hasher: PasswordHasher,
        notifier,
        settings: Settings,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.notifier = notifier
        self.digits = settings.reset_code_digits
        self.expiry = timedelta(minutes=settings.reset_code_expire_minutes)
        self.max_attempts = settings.reset_code_max_attempts
        self._pepper = settings.pepper.encode("utf-8")
        self._clock = clock

    # ------------------------------------------------------------------
    # Code material
    # ------------------------------------------------------------------

    def generate_code(self) -> str:
        return str(secrets.randbelow(10**self.digits)).zfill(self.digits)

    def digest(self, account_id: int, code: str) -> str:
        return hmac.new(self._pepper, f"{account_id}:{code}".encode("utf-8"), hashlib.sha256).hexdigest()

    # ------------------------------------------------------------------
    # Flow
    # ------------------------------------------------------------------

    def request_code(self, email: str) -> str:
        """Issue a new code for the account behind `email` and mail it.

        Always returns GENERIC_REQUEST_MESSAGE. Unknown, inactive, and
        soft-deleted accounts produce no store writes and no email.
        """
        account = self.store.find_account_by_email(normalize_email(email), active_only=True)
        if account is None:
            return GENERIC_REQUEST_MESSAGE

        now = self._clock()
        superseded = self.store.supersede_reset_codes(account.id, now, self.max_attempts)
        code = self.generate_code()
        code_id = self.store.insert_reset_code(
            ResetCode(
                account_id=account.id,
                code_hash=self.digest(account.id, code),
                created_at=now,
                expires_at=now + self.expiry,
            )
        )
        logger.info("Issued reset code %d for account %d (superseded %d)", code_id, account.id, superseded)

        minutes = int(self.expiry.total_seconds() // 60)
        self.notifier.send(
            account.email,
            RESET_EMAIL_SUBJECT,
            f"Your reset code is: {code}\nThis code expires in {minutes} minutes.",
        )
        return GENERIC_REQUEST_MESSAGE

    def verify_code(self, email: str, code: str) -> None:
        """Check a code without consuming it. Raises InvalidCodeError on any mismatch.

        Success leaves the attempt counter untouched.
        """
        self._match(email, code)

    def consume_code(self, email: str, code: str, new_password: str) -> None:
        """Set a new password using a valid code, consuming the code.

        Raises InvalidCodeError if no usable code matches, PasswordReuseError
        if new_password equals the current password. On success the password
        change and the code consumption commit together.
        """
        account, reset_code = self._match(email, code)

        if self.hasher.verify(new_password, account.password_hash):
            raise PasswordReuseError()

        try:
            self.store.reset_password(account.id, self.hasher.hash(new_password), reset_code.id, self._clock())
        except ValueError as exc:
            # A concurrent request consumed the code between lookup and commit.
            raise InvalidCodeError() from exc
        logger.info("Password reset for account %d using code %d", account.id, reset_code.id)

    # ------------------------------------------------------------------
    # Shared lookup
    # ------------------------------------------------------------------

    def _match(self, email: str, code: str) -> tuple[Account, ResetCode]:
        account = self.store.find_account_by_email(normalize_email(email), active_only=True)
        if account is None:
            raise InvalidCodeError()

        now = self._clock()
        candidate = self.digest(account.id, (code or "").strip())
        usable = self.store.find_usable_reset_codes(account.id, now, self.max_attempts)
        for reset_code in usable:
            if hmac.compare_digest(reset_code.code_hash, candidate):
                return account, reset_code

        if usable:
            self.store.record_failed_attempt(usable[0].id, now)
            logger.info(
                "Failed reset code attempt for account %d (code %d, %d prior attempts)",
                account.id,
                usable[0].id,
                usable[0].attempt_count,
            )
        raise InvalidCodeError()
