"""
Error taxonomy shared by the policy engine, repositories and web adapter.

Each error carries a stable machine `code` (mirrors the JSON `error` field) so
the web layer maps exceptions to responses without string matching.
"""

from __future__ import annotations

from typing import Any, List, Optional


class AccessError(Exception):
    code = "error"
    status_code = 500

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail or self.code)
        self.detail = detail


class Unauthenticated(AccessError):
    """No credential, or the credential could not be verified."""

    code = "unauthenticated"
    status_code = 401


class Forbidden(AccessError):
    """Authenticated, but the policy denies the request."""

    code = "forbidden"
    status_code = 403


class NotFound(AccessError):
    code = "not_found"
    status_code = 404


class ValidationFailed(AccessError):
    """Malformed input to create/update or to a query filter."""

    code = "validation_failed"
    status_code = 400

    def __init__(self, detail: Optional[str] = None, *, details: Optional[List[dict[str, Any]]] = None):
        super().__init__(detail)
        self.details = details or []


class RepositoryError(AccessError):
    """Backing-store failure. `detail` is safe to show; the cause is not."""

    code = "repository_error"
    status_code = 500


class InternalError(AccessError):
    """Unexpected server-side failure; never echoes its cause to the client."""

    code = "internal_error"
    status_code = 500
