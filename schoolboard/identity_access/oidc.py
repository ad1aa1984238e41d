"""
Identity provider settings needed to verify bearer tokens.

Why: Token issuance, login and session refresh live entirely in the external
identity provider. The API only verifies tokens, so it needs the issuer, the
expected audience and where to fetch the signing keys.
"""

from __future__ import annotations

from dataclasses import dataclass
import os


@dataclass(frozen=True)
class OIDCConfig:
    issuer: str  # e.g., https://id.example.org/realms/school
    audience: str  # e.g., schoolboard-api
    jwks_url: str | None = None  # override when the provider publishes keys elsewhere
    role_claim: str = "role"

    @property
    def certs_endpoint(self) -> str:
        if self.jwks_url:
            return self.jwks_url
        return f"{self.issuer.rstrip('/')}/protocol/openid-connect/certs"


def load_oidc_config() -> OIDCConfig:
    issuer = os.getenv("OIDC_ISSUER_URL", "http://localhost:8080/realms/school")
    audience = os.getenv("OIDC_AUDIENCE", "schoolboard-api")
    jwks_url = (os.getenv("OIDC_JWKS_URL") or "").strip() or None
    role_claim = (os.getenv("OIDC_ROLE_CLAIM") or "role").strip()
    return OIDCConfig(issuer=issuer, audience=audience, jwks_url=jwks_url, role_claim=role_claim)
