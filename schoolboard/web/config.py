"""
Configuration and startup security checks for schoolboard.

Why: A school dashboard exposes personal data of minors. This module reads the
few settings the API needs and provides a single guard that refuses obviously
insecure production deployments without burdening local development.

Permissions: The caller needs no special privileges. The functions simply read
environment variables; the guard raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

from dataclasses import dataclass
import os


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def _int_env(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise SystemExit(f"Refusing to start: {name} must be an integer (got {raw!r}).")
    if value < 1:
        raise SystemExit(f"Refusing to start: {name} must be positive (got {value}).")
    return value


@dataclass(frozen=True)
class Settings:
    environment: str = "dev"
    item_per_page: int = 10
    jwks_cache_ttl_seconds: int = 300

    @property
    def is_prod_like(self) -> bool:
        return _is_prod_like(self.environment)


def load_settings() -> Settings:
    return Settings(
        environment=(os.getenv("SCHOOLBOARD_ENV") or "dev").strip().lower(),
        item_per_page=_int_env("ITEM_PER_PAGE", 10),
        jwks_cache_ttl_seconds=_int_env("JWKS_CACHE_TTL_SECONDS", 300),
    )


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Intent: Abort process startup when obviously insecure settings are detected
    in production/staging. Development remains permissive for convenience.

    Checks:
    - The token issuer and an explicit JWKS URL must use https.
    - The expected token audience must be configured.
    - A database must be configured, and its DSN must not disable TLS.
    """

    env = os.getenv("SCHOOLBOARD_ENV", "dev")
    if not _is_prod_like(env):
        return  # dev/test remain permissive

    # 1) Identity provider endpoints must use HTTPS
    def _must_be_https(url_value: str, var_name: str, *, required: bool) -> None:
        val = (url_value or "").strip().lower()
        if not val:
            if required:
                raise SystemExit(f"Refusing to start: {var_name} must be set in production.")
            return
        if not val.startswith("https://"):
            raise SystemExit(f"Refusing to start: {var_name} must use https in production.")

    _must_be_https(os.getenv("OIDC_ISSUER_URL", ""), "OIDC_ISSUER_URL", required=True)
    _must_be_https(os.getenv("OIDC_JWKS_URL", ""), "OIDC_JWKS_URL", required=False)

    # 2) Audience pinning
    if not (os.getenv("OIDC_AUDIENCE") or "").strip():
        raise SystemExit("Refusing to start: OIDC_AUDIENCE is unset in production.")

    # 3) Database presence and TLS
    dsn = os.getenv("SCHOOL_DATABASE_URL") or os.getenv("DATABASE_URL") or ""
    if not dsn:
        raise SystemExit(
            "Refusing to start: no database configured in production (set SCHOOL_DATABASE_URL or DATABASE_URL)."
        )
    if "sslmode=disable" in dsn:
        raise SystemExit(
            "Refusing to start: database DSN contains sslmode=disable in production. Use sslmode=require or verify TLS."
        )
