"""
Create, update and delete records.

Permissions:
    Admins for every kind; teachers additionally for results of their own
    lessons. Bodies are validated by `school.forms`.
"""
from __future__ import annotations

import json

from fastapi import APIRouter, Request
from fastapi.responses import Response

from schoolboard.access_policy.errors import ValidationFailed

from ..http import PRIVATE_HEADERS, current_principal, json_private
from .lists import resolve_kind

records_router = APIRouter(tags=["Records"])


async def _json_body(request: Request) -> object:
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationFailed("invalid_json") from None


@records_router.post("/api/list/{kind}")
async def create_record(request: Request, kind: str):
    principal = current_principal(request)
    entity_kind = resolve_kind(kind)
    row = request.app.state.records.create_record(principal, entity_kind, await _json_body(request))
    return json_private(row, status_code=201)


@records_router.put("/api/list/{kind}/{record_id}")
async def update_record(request: Request, kind: str, record_id: str):
    principal = current_principal(request)
    entity_kind = resolve_kind(kind)
    row = request.app.state.records.update_record(principal, entity_kind, record_id, await _json_body(request))
    return json_private(row)


@records_router.delete("/api/list/{kind}/{record_id}")
async def delete_record(request: Request, kind: str, record_id: str):
    principal = current_principal(request)
    request.app.state.records.delete_record(principal, resolve_kind(kind), record_id)
    return Response(status_code=204, headers=dict(PRIVATE_HEADERS))
