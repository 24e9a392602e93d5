"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for NileGuide Auth happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. The value
      is then handed to each component's constructor (SessionIssuer,
      ResetCodeManager, PasswordHasher, SmtpNotifier) so nothing reads config
      behind the caller's back.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

  frozen=True: Settings is immutable once built. Validators return the final
      value instead of assigning to self.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. JWT signing and the
  reset-code HMAC both rely on key entropy -- a short key weakens both.

  In production mode (DEBUG not set or false), a missing SECRET_KEY is a hard
  startup failure surfaced as ConfigurationError.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or notify/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import ValidationError, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("nileguide.config")


class ConfigurationError(RuntimeError):
    """Raised when the process cannot start with the given settings."""


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields except secret_key have defaults so Settings() can be
    instantiated in test environments with only DEBUG=true set.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    # debug must be declared before secret_key: the secret_key validator reads
    # it from info.data, which only holds fields validated earlier.
    debug: bool = False
    secret_key: str = ""
    database_url: str = "sqlite:///nileguide_auth.db"
    cors_origins: list[str] = ["http://localhost:4200", "http://127.0.0.1:4200"]

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    jwt_issuer: str = "nileguide-api"
    jwt_audience: str = "nileguide-clients"
    token_expire_minutes: int = 30
    password_hash_rounds: int = 12

    # ------------------------------------------------------------------
    # Password reset policy
    # ------------------------------------------------------------------

    # Empty means "use secret_key" -- see Settings.pepper.
    reset_code_pepper: str = ""
    reset_code_digits: int = 6
    reset_code_expire_minutes: int = 10
    reset_code_max_attempts: int = 5

    # ------------------------------------------------------------------
    # Rate limiting (slowapi limit strings, per client address)
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    reset_rate_limit: str = "5/minute"

    # ------------------------------------------------------------------
    # SMTP (empty host means "not configured")
    # ------------------------------------------------------------------

    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_from_email: str = "no-reply@nileguide.local"
    smtp_from_name: str = "NileGuide"
    smtp_use_tls: bool = True
    smtp_timeout_seconds: float = 10.0

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("secret_key")
    @classmethod
    def validate_secret_key(cls, value: str, info: ValidationInfo) -> str:
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Sessions and outstanding reset codes will not survive a restart.

        Production mode: refuse to start if SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not value:
            if info.data.get("debug"):
                logger.warning("Using auto-generated SECRET_KEY. Sessions will not persist across restarts.")
                return secrets.token_hex(32)
            raise ValueError(
                "SECRET_KEY is required in production mode. "
                "Set SECRET_KEY in your environment or .env file. "
                "To run in development mode, set DEBUG=true."
            )
        if len(value) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return value

    @field_validator("reset_code_digits", "reset_code_expire_minutes", "reset_code_max_attempts", "token_expire_minutes")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be a positive integer")
        return value

    @field_validator("reset_code_digits")
    @classmethod
    def validate_code_digits(cls, value: int) -> int:
        # api/models.py accepts codes of at most 12 digits
        if value > 12:
            raise ValueError("reset_code_digits must be at most 12")
        return value

    @field_validator("password_hash_rounds")
    @classmethod
    def validate_rounds(cls, value: int) -> int:
        # bcrypt accepts cost factors 4..31
        if not 4 <= value <= 31:
            raise ValueError("password_hash_rounds must be between 4 and 31")
        return value

    @property
    def pepper(self) -> str:
        """Server-held secret mixed into reset-code digests."""
        return self.reset_code_pepper or self.secret_key

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host)


def load_settings(**overrides) -> Settings:
    """Build a Settings value, turning validation failures into ConfigurationError.

    Keyword overrides take precedence over the environment; tests use them to
    build isolated configurations without touching os.environ.
    """
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return load_settings()
