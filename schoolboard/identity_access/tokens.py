"""
JWT verification helpers for the identity_access bounded context.

Why: Keep cryptographic validation of bearer tokens outside the web adapter so
we can unit test it independently and inject a different verifier in tests.

Security: Validates the token signature with the provider's JWKS, ensures
issuer, audience, and expiration are respected. The JWKS cache is in-memory
per process.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict
import threading
import time

import requests
from jose import jwt
from jose.exceptions import JOSEError

from .oidc import OIDCConfig


class TokenVerificationError(Exception):
    """Raised when the bearer token fails verification."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


# A verifier turns a raw bearer token into claims or raises TokenVerificationError.
TokenVerifier = Callable[[str], Dict[str, object]]


@dataclass
class _CacheEntry:
    jwks: Dict[str, object]
    expires_at: float


class JWKSCache:
    """Small in-memory cache for JWKS responses."""

    def __init__(self, ttl_seconds: int = 300):
        self.ttl_seconds = ttl_seconds
        self._entries: Dict[str, _CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, cfg: OIDCConfig) -> Dict[str, object]:
        key = cfg.certs_endpoint
        now = time.time()
        with self._lock:
            entry = self._entries.get(key)
            if entry and entry.expires_at > now:
                return entry.jwks

        jwks = self._fetch(cfg)
        with self._lock:
            self._entries[key] = _CacheEntry(jwks=jwks, expires_at=now + self.ttl_seconds)
        return jwks

    def invalidate(self) -> None:
        with self._lock:
            self._entries.clear()

    def _fetch(self, cfg: OIDCConfig) -> Dict[str, object]:
        try:
            resp = requests.get(cfg.certs_endpoint, timeout=5)
        except requests.RequestException as exc:
            raise TokenVerificationError("jwks_fetch_failed") from exc
        if resp.status_code != 200:
            raise TokenVerificationError("jwks_fetch_failed")
        try:
            jwks = resp.json()
        except ValueError as exc:
            raise TokenVerificationError("jwks_invalid") from exc
        if not isinstance(jwks, dict) or "keys" not in jwks:
            raise TokenVerificationError("jwks_invalid")
        return jwks


JWKS_CACHE = JWKSCache()

MAX_CLOCK_SKEW_SECONDS = 5  # Allow minimal skew between servers
ALLOWED_ALGORITHMS = ["RS256"]  # never taken from the token or the JWKS


def verify_access_token(
    *,
    token: str,
    cfg: OIDCConfig,
    cache: JWKSCache | None = None,
) -> Dict[str, object]:
    """Validate a bearer token using the provider JWKS and return claims.

    Parameters
    ----------
    token:
        The raw JWT string taken from the Authorization header.
    cfg:
        Issuer, audience and JWKS location.
    cache:
        Optional JWKS cache (defaults to module-level cache).

    Raises
    ------
    TokenVerificationError:
        When the token is malformed or invalid (signature, issuer, audience,
        expiry, kid).
    """
    if not token or token.count(".") != 2:
        raise TokenVerificationError("malformed_token")
    cache = cache or JWKS_CACHE
    try:
        header = jwt.get_unverified_header(token)
    except JOSEError as exc:
        raise TokenVerificationError("malformed_token") from exc
    kid = header.get("kid")
    if not kid:
        raise TokenVerificationError("missing_kid")
    key_dict = _find_key(cache.get(cfg), kid)
    if not key_dict:
        raise TokenVerificationError("unknown_kid")

    try:
        claims = jwt.decode(
            token,
            key_dict,
            algorithms=ALLOWED_ALGORITHMS,
            audience=cfg.audience,
            issuer=cfg.issuer,
            options={
                "verify_signature": True,
                "verify_aud": True,
                "verify_exp": False,
                "verify_iat": False,
                "verify_nbf": False,
                "verify_at_hash": False,
            },
        )
    except JOSEError as exc:
        raise TokenVerificationError("invalid_token") from exc

    _validate_temporal_claims(claims)

    return claims


def build_verifier(cfg: OIDCConfig, cache: JWKSCache | None = None) -> TokenVerifier:
    """Bind configuration into a one-argument verifier for the web layer."""

    def _verify(token: str) -> Dict[str, object]:
        return verify_access_token(token=token, cfg=cfg, cache=cache)

    return _verify


def _find_key(jwks: Dict[str, object], kid: str) -> Dict[str, object] | None:
    keys = jwks.get("keys")
    if not isinstance(keys, list):
        return None
    for key in keys:
        if isinstance(key, dict) and key.get("kid") == kid:
            return key
    return None


def _validate_temporal_claims(claims: Dict[str, object]) -> None:
    now = time.time()
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        raise TokenVerificationError("invalid_token")
    if exp + MAX_CLOCK_SKEW_SECONDS < now:
        raise TokenVerificationError("token_expired")

    iat = claims.get("iat")
    if isinstance(iat, (int, float)):
        if iat - MAX_CLOCK_SKEW_SECONDS > now:
            raise TokenVerificationError("invalid_token")

    nbf = claims.get("nbf")
    if isinstance(nbf, (int, float)) and nbf - MAX_CLOCK_SKEW_SECONDS > now:
        raise TokenVerificationError("invalid_token")
