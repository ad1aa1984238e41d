"schoolboard API"
from __future__ import annotations

import logging
import os
import sys
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from schoolboard.access_policy.engine import AccessPolicyEngine
from schoolboard.access_policy.errors import AccessError, Forbidden, InternalError
from schoolboard.access_policy.route_access import menu_for_role, role_may_enter
from schoolboard.identity_access.domain import principal_from_claims
from schoolboard.identity_access.oidc import load_oidc_config
from schoolboard.identity_access.tokens import JWKSCache, TokenVerificationError, TokenVerifier, build_verifier
from schoolboard.school.ports import SchoolRepoProtocol
from schoolboard.school.repo_db import build_default_repo
from schoolboard.school.services.dashboard import DashboardService
from schoolboard.school.services.records import RecordsService

from .config import Settings, ensure_secure_config_on_startup, load_settings
from .http import PRIVATE_HEADERS, error_response, json_private
from .routes.dashboard import dashboard_router
from .routes.lists import lists_router
from .routes.records import records_router

logger = logging.getLogger("schoolboard.web")

PUBLIC_PATHS = frozenset({"/health"})


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out via SCHOOLBOARD_ENABLE_DOTENV (default true
      outside pytest).
    """
    if "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    flag = (os.getenv("SCHOOLBOARD_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


def _unauthenticated() -> JSONResponse:
    return JSONResponse({"error": "unauthenticated"}, status_code=401, headers=dict(PRIVATE_HEADERS))


def _bearer_token(header: Optional[str]) -> Optional[str]:
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def create_app(
    *,
    verifier: Optional[TokenVerifier] = None,
    repo: Optional[SchoolRepoProtocol] = None,
    engine: Optional[AccessPolicyEngine] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Build the API with explicit collaborators.

    Why: Tests inject a stub verifier and an in-memory repository; production
    wiring resolves the identity provider and Postgres from the environment.
    """
    settings = settings or load_settings()
    oidc_cfg = load_oidc_config()
    if verifier is None:
        verifier = build_verifier(oidc_cfg, JWKSCache(settings.jwks_cache_ttl_seconds))
    repo = repo if repo is not None else build_default_repo()
    engine = engine or AccessPolicyEngine()

    app = FastAPI(title="schoolboard", description="School management dashboard API", version="0.1.0")
    app.state.settings = settings
    app.state.verifier = verifier
    app.state.role_claim = oidc_cfg.role_claim
    app.state.engine = engine
    app.state.repo = repo
    app.state.records = RecordsService(engine=engine, repo=repo, page_size=settings.item_per_page)
    app.state.dashboard = DashboardService(engine=engine, repo=repo)

    # --- Authentication Middleware ---------------------------------------------

    @app.middleware("http")
    async def auth_enforcement(request: Request, call_next):
        path = request.url.path
        if path in PUBLIC_PATHS:
            return await call_next(request)

        token = _bearer_token(request.headers.get("Authorization"))
        if token is None:
            return _unauthenticated()
        try:
            claims = request.app.state.verifier(token)
        except TokenVerificationError as exc:
            logger.info("Bearer token rejected: %s", exc.code)
            return _unauthenticated()

        principal = principal_from_claims(claims, role_claim=request.app.state.role_claim)
        if principal is None:
            logger.info("Bearer token lacks subject or role")
            return _unauthenticated()
        if not role_may_enter(path, principal.role):
            logger.info("Forbidden path=%s principal=%s role=%s reason=route", path, principal.id, principal.role)
            return JSONResponse({"error": "forbidden"}, status_code=403, headers=dict(PRIVATE_HEADERS))

        # Read-only identity for downstream handlers; never re-derived per call site.
        request.state.principal = principal
        return await call_next(request)

    # --- Security Headers Middleware -------------------------------------------

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        response.headers.setdefault("Content-Security-Policy", "default-src 'none'; frame-ancestors 'none'")
        if settings.is_prod_like:
            response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        return response

    # --- Error mapping ----------------------------------------------------------

    @app.exception_handler(AccessError)
    async def access_error_handler(request: Request, exc: AccessError):
        if exc.status_code >= 500:
            logger.error("Request failed path=%s code=%s", request.url.path, exc.code)
        elif isinstance(exc, Forbidden):
            principal = getattr(request.state, "principal", None)
            logger.info(
                "Forbidden path=%s principal=%s role=%s reason=%s",
                request.url.path,
                getattr(principal, "id", None),
                getattr(principal, "role", None),
                exc.detail,
            )
        return error_response(exc)

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        # Request input is validated in the services; a ValueError here is a server defect.
        logger.error("Unhandled value error path=%s: %s", request.url.path, exc, exc_info=exc)
        return error_response(InternalError())

    # --- Routes -------------------------------------------------------------------

    @app.get("/health")
    async def health_check():
        # Security: include no-store to avoid caching any runtime status.
        return JSONResponse({"status": "healthy"}, headers=dict(PRIVATE_HEADERS))

    @app.get("/api/me")
    async def get_me(request: Request):
        principal = request.state.principal
        return json_private({"id": principal.id, "role": principal.role, "menu": menu_for_role(principal.role)})

    app.include_router(lists_router)
    app.include_router(records_router)
    app.include_router(dashboard_router)
    return app


def build_app_from_env() -> FastAPI:
    """Entry point for `uvicorn schoolboard.web.main:build_app_from_env --factory`."""
    if _should_load_dotenv():
        load_dotenv()
    logging.basicConfig(level=os.getenv("SCHOOLBOARD_LOG_LEVEL", "INFO").upper())
    ensure_secure_config_on_startup()
    return create_app()
