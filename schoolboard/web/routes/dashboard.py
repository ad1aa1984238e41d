"""
Dashboard widgets and role home pages.

The `/api/dashboard/<role>` paths are gated by the route access map in the
auth middleware; the shared widgets are open to every authenticated role.
"""
from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Request

from schoolboard.access_policy.errors import ValidationFailed

from ..http import current_principal, json_private

dashboard_router = APIRouter(tags=["Dashboard"])


def _parse_day(raw: str | None) -> date:
    if raw is None or not raw.strip():
        return date.today()
    try:
        return date.fromisoformat(raw.strip())
    except ValueError:
        raise ValidationFailed("invalid_date") from None


@dashboard_router.get("/api/dashboard/announcements")
async def latest_announcements(request: Request):
    principal = current_principal(request)
    return json_private({"items": request.app.state.dashboard.latest_announcements(principal)})


@dashboard_router.get("/api/dashboard/events")
async def events_on_day(request: Request, date: str | None = None):
    principal = current_principal(request)
    day = _parse_day(date)
    items = request.app.state.dashboard.events_on(principal, day)
    return json_private({"date": day.isoformat(), "items": items})


@dashboard_router.get("/api/dashboard/admin")
async def admin_home(request: Request):
    return json_private(request.app.state.dashboard.admin_home(current_principal(request)))


@dashboard_router.get("/api/dashboard/teacher")
async def teacher_home(request: Request):
    return json_private(request.app.state.dashboard.teacher_home(current_principal(request)))


@dashboard_router.get("/api/dashboard/student")
async def student_home(request: Request):
    return json_private(request.app.state.dashboard.student_home(current_principal(request)))


@dashboard_router.get("/api/dashboard/parent")
async def parent_home(request: Request):
    return json_private(request.app.state.dashboard.parent_home(current_principal(request)))
