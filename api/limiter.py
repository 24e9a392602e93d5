"""
api/limiter.py -- Shared slowapi rate limiter instance and limit providers.

Import this in both api/main.py (to mount as middleware) and
api/routes/v1/auth.py (to apply per-route limits).

Using a single shared instance ensures all routes share the same in-memory
counter store. If this were instantiated in each module separately, each
module would get its own isolated counter and rate limits would never trigger.

Limits are keyed by client address (fixed window). The limit strings come from
Settings and are resolved lazily, so importing this module does not build
Settings.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://", strategy="fixed-window")

# Scope shared by forgot-password, verify-reset-code, and reset-password so the
# three endpoints draw from one per-client budget.
RESET_SCOPE = "password-reset"


def login_limit() -> str:
    return get_settings().login_rate_limit


def reset_limit() -> str:
    return get_settings().reset_rate_limit
