"""
auth/passwords.py -- bcrypt password hashing.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error.

Passwords longer than 72 bytes are rejected by bcrypt 5.x and truncated by
older releases. The API layer rejects passwords over 72 UTF-8 bytes
(api/models.py), so the hasher never sees one.

Layer rule: no imports from api/, notify/, or core/.
"""

from __future__ import annotations

import bcrypt


class PasswordHasher:
    """Salted, adaptive-cost password hashing.

    rounds is the bcrypt cost factor (log2 of the iteration count). Tests use
    the minimum (4); production uses Settings.password_hash_rounds.
    """

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds

    def hash(self, plain: str) -> str:
        return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if the plaintext matches. A malformed hash verifies as False."""
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            return False
