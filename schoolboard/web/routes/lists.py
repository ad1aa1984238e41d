"""
List pages and record detail (read-only).

Why:
    One generic pair of endpoints serves all twelve entity kinds. Query
    parameters other than `page` are interpreted by the kind's filter table;
    visibility always applies on top.
"""
from __future__ import annotations

from fastapi import APIRouter, Request

from schoolboard.access_policy.errors import NotFound
from schoolboard.school.schema import EntityKind, parse_kind

from ..http import current_principal, json_private

lists_router = APIRouter(tags=["Lists"])


def resolve_kind(raw: str) -> EntityKind:
    kind = parse_kind(raw)
    if kind is None:
        raise NotFound("unknown_kind")
    return kind


@lists_router.get("/api/list/{kind}")
async def list_records(request: Request, kind: str):
    principal = current_principal(request)
    service = request.app.state.records
    params = dict(request.query_params)
    return json_private(service.list_records(principal, resolve_kind(kind), params))


@lists_router.get("/api/list/{kind}/{record_id}")
async def get_record(request: Request, kind: str, record_id: str):
    principal = current_principal(request)
    return json_private(request.app.state.records.get_record(principal, resolve_kind(kind), record_id))
