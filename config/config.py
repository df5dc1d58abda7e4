"""
config/config.py

Purpose
-------
Centralized application settings for the contact relay backend.
- Normalizes environment variable names across legacy and canonical variants.
- Resolves feature availability (email, chat) once at startup into an
  immutable :class:`FeatureFlags` value that is handed to collaborators.
- Builds the retry policies used by the dispatcher from env overrides.

Notes for Maintainers
---------------------
- `.env` is loaded through python-dotenv unless SETTINGS_SKIP_DOTENV is set
  (tests set it to keep the developer's local file out of the picture).
- Handlers must never read os.environ directly; they get a Settings and a
  FeatureFlags instance from the application factory.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional, Tuple

from dotenv import load_dotenv
from pydantic import EmailStr, Field, field_validator
from pydantic_settings import BaseSettings

from utils.retry import (
    BACKOFF_MULTIPLIER,
    DEFAULT_MAX_ATTEMPTS,
    INITIAL_BACKOFF_SECONDS,
    RetryPolicy,
)

EMAIL_BACKENDS = ("brevo", "smtp")


# -----------------------------
# Helper functions
# -----------------------------
def _coalesce_env(*names: str, default: Optional[str] = None) -> Optional[str]:
    """Return the first non-empty environment variable from *names*."""
    for name in names:
        val = os.getenv(name)
        if val is not None and str(val).strip() != "":
            return val
    return default


def _parse_bool(value: Optional[str], *, default: bool) -> bool:
    if value is None:
        return default
    v = str(value).strip().lower()
    return v in {"1", "true", "yes", "y", "on"}


def _parse_int(value: Optional[str], *, default: int) -> int:
    if value is None or str(value).strip() == "":
        return default
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def _parse_float(value: Optional[str], *, default: float) -> float:
    if value is None or str(value).strip() == "":
        return default
    try:
        return float(str(value).strip())
    except ValueError:
        return default


def _load_dotenv_if_enabled() -> bool:
    if _parse_bool(os.getenv("SETTINGS_SKIP_DOTENV"), default=False):
        return False
    return load_dotenv(override=False)


_load_dotenv_if_enabled()


# -----------------------------
# Feature flags
# -----------------------------
@dataclass(frozen=True)
class FeatureFlags:
    """Which outbound services are usable, decided once at startup."""

    email_backend: str
    email_configured: bool
    missing_email_vars: Tuple[str, ...]
    chat_configured: bool


# -----------------------------
# Main Settings
# -----------------------------
class Settings(BaseSettings):
    # --- Service ---
    company_name: str = Field(
        default_factory=lambda: _coalesce_env("COMPANY_NAME") or "NexoventLabs"
    )
    contact_phone: str = Field(
        default_factory=lambda: _coalesce_env("CONTACT_PHONE") or "+91 8106811285"
    )
    app_env: str = Field(
        default_factory=lambda: _coalesce_env("APP_ENV", "NODE_ENV") or "development"
    )
    host: str = Field(default_factory=lambda: _coalesce_env("HOST") or "0.0.0.0")
    port: int = Field(
        default_factory=lambda: _parse_int(_coalesce_env("PORT"), default=3001)
    )
    log_level: str = Field(
        default_factory=lambda: (_coalesce_env("LOG_LEVEL") or "INFO").upper()
    )

    # --- Email (Brevo HTTP API is the default transport) ---
    email_backend: str = Field(
        default_factory=lambda: (_coalesce_env("EMAIL_BACKEND") or "brevo").lower()
    )
    brevo_api_key: Optional[str] = Field(
        default_factory=lambda: _coalesce_env("BREVO_API_KEY")
    )
    brevo_api_url: str = Field(
        default_factory=lambda: _coalesce_env("BREVO_API_URL")
        or "https://api.brevo.com/v3/smtp/email"
    )
    from_email: Optional[EmailStr] = Field(
        default_factory=lambda: _coalesce_env("BREVO_FROM_EMAIL", "MAIL_FROM")
    )
    from_name: Optional[str] = Field(
        default_factory=lambda: _coalesce_env("BREVO_FROM_NAME", "MAIL_FROM_NAME")
    )
    admin_email: Optional[EmailStr] = Field(
        default_factory=lambda: _coalesce_env("ADMIN_EMAIL")
    )
    email_timeout_seconds: float = Field(
        default_factory=lambda: _parse_float(
            _coalesce_env("EMAIL_TIMEOUT_SECONDS"), default=20.0
        )
    )

    # --- SMTP (optional alternative transport) ---
    smtp_host: Optional[str] = Field(default_factory=lambda: _coalesce_env("SMTP_HOST"))
    smtp_port: int = Field(
        default_factory=lambda: _parse_int(_coalesce_env("SMTP_PORT"), default=587)
    )
    smtp_username: Optional[str] = Field(
        default_factory=lambda: _coalesce_env("SMTP_USER", "SMTP_USERNAME")
    )
    smtp_password: Optional[str] = Field(
        default_factory=lambda: _coalesce_env("SMTP_PASS", "SMTP_PASSWORD")
    )
    smtp_starttls: bool = Field(
        default_factory=lambda: _parse_bool(
            _coalesce_env("SMTP_SECURE", "SMTP_TLS"), default=True
        )
    )

    # --- Text generation (Gemini) ---
    gemini_api_key: Optional[str] = Field(
        default_factory=lambda: _coalesce_env("GEMINI_API_KEY", "GOOGLE_API_KEY")
    )
    gemini_model: str = Field(
        default_factory=lambda: _coalesce_env("GEMINI_MODEL") or "gemini-2.0-flash"
    )
    gemini_api_base: str = Field(
        default_factory=lambda: _coalesce_env("GEMINI_API_BASE")
        or "https://generativelanguage.googleapis.com"
    )
    chat_timeout_seconds: float = Field(
        default_factory=lambda: _parse_float(
            _coalesce_env("CHAT_TIMEOUT_SECONDS"), default=30.0
        )
    )

    # --- Retry policies ---
    email_retry_attempts: int = Field(
        default_factory=lambda: _parse_int(
            _coalesce_env("EMAIL_RETRY_ATTEMPTS"), default=DEFAULT_MAX_ATTEMPTS
        )
    )
    email_retry_base_delay: float = Field(
        default_factory=lambda: _parse_float(
            _coalesce_env("EMAIL_RETRY_BASE_DELAY"), default=INITIAL_BACKOFF_SECONDS
        )
    )
    email_retry_multiplier: float = Field(
        default_factory=lambda: _parse_float(
            _coalesce_env("EMAIL_RETRY_MULTIPLIER"), default=BACKOFF_MULTIPLIER
        )
    )
    chat_retry_attempts: int = Field(
        default_factory=lambda: _parse_int(
            _coalesce_env("CHAT_RETRY_ATTEMPTS"), default=1
        )
    )

    # --- Keep-alive ---
    backend_url: str = Field(
        default_factory=lambda: _coalesce_env("BACKEND_URL") or "http://localhost:3001"
    )
    keep_alive_interval_seconds: float = Field(
        default_factory=lambda: _parse_float(
            _coalesce_env("KEEP_ALIVE_INTERVAL_SECONDS"), default=0.0
        )
    )
    keep_alive_timeout_seconds: float = Field(
        default_factory=lambda: _parse_float(
            _coalesce_env("KEEP_ALIVE_TIMEOUT_SECONDS"), default=25.0
        )
    )

    class Config:
        case_sensitive = False
        extra = "ignore"
        env_ignore_empty = True

    @field_validator("email_backend")
    @classmethod
    def _check_email_backend(cls, value: str) -> str:
        value = (value or "brevo").strip().lower()
        if value not in EMAIL_BACKENDS:
            raise ValueError(
                f"EMAIL_BACKEND must be one of {', '.join(EMAIL_BACKENDS)}; got {value!r}"
            )
        return value

    @field_validator("backend_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    # --- Derived values ---

    @property
    def admin_address(self) -> Optional[str]:
        """Where contact notifications and test emails go."""
        return self.admin_email or self.from_email

    def missing_email_vars(self) -> List[str]:
        required = {
            "BREVO_FROM_EMAIL": self.from_email,
            "BREVO_FROM_NAME": self.from_name,
        }
        if self.email_backend == "smtp":
            required.update(
                {
                    "SMTP_HOST": self.smtp_host,
                    "SMTP_USER": self.smtp_username,
                    "SMTP_PASS": self.smtp_password,
                }
            )
        else:
            required = {"BREVO_API_KEY": self.brevo_api_key, **required}
        return [name for name, value in required.items() if not value]

    def features(self) -> FeatureFlags:
        missing = tuple(self.missing_email_vars())
        return FeatureFlags(
            email_backend=self.email_backend,
            email_configured=not missing,
            missing_email_vars=missing,
            chat_configured=bool(self.gemini_api_key),
        )

    def email_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.email_retry_attempts,
            base_delay=self.email_retry_base_delay,
            backoff_multiplier=self.email_retry_multiplier,
        )

    def chat_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.chat_retry_attempts,
            base_delay=INITIAL_BACKOFF_SECONDS,
            backoff_multiplier=BACKOFF_MULTIPLIER,
        )


def mask_secret(value: Optional[str], *, visible: int = 4) -> str:
    """Render *value* safe for logs: ``abcd...wxyz`` or ``<unset>``."""
    if not value:
        return "<unset>"
    if len(value) <= visible * 2:
        return "*" * len(value)
    return f"{value[:visible]}...{value[-visible:]}"


# Singleton settings instance
settings = Settings()
