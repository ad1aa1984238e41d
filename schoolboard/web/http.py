"""
Shared response and request-context helpers for the web adapter.

Security:
    Every API response carries `Cache-Control: private, no-store`; the data is
    per-principal and must not be cached by browsers or proxies.
"""
from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from schoolboard.access_policy.errors import AccessError, Unauthenticated, ValidationFailed
from schoolboard.identity_access.domain import Principal

PRIVATE_HEADERS = {"Cache-Control": "private, no-store"}


def json_private(payload: Any, *, status_code: int = 200) -> JSONResponse:
    """Return a JSONResponse with caching disabled."""
    return JSONResponse(content=jsonable_encoder(payload), status_code=status_code, headers=dict(PRIVATE_HEADERS))


def error_response(exc: AccessError) -> JSONResponse:
    payload: dict[str, Any] = {"error": exc.code}
    if exc.detail and exc.status_code < 500:
        payload["detail"] = exc.detail
    if isinstance(exc, ValidationFailed) and exc.details:
        payload["details"] = exc.details
    return json_private(payload, status_code=exc.status_code)


def current_principal(request: Request) -> Principal:
    """Principal attached by the auth middleware; absent means unauthenticated."""
    principal = getattr(request.state, "principal", None)
    if not isinstance(principal, Principal):
        raise Unauthenticated()
    return principal
