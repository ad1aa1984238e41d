"""
Authentication middleware and route gating.

Requirements:
- Requests without a valid bearer token → 401 JSON, private, no-store
- /health stays public
- A role outside the route map for a path → 403 before any handler runs
"""
from __future__ import annotations

import pytest

pytestmark = pytest.mark.anyio


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def test_health_is_public(client):
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "healthy"}


@pytest.mark.parametrize(
    "headers",
    [
        {},
        {"Authorization": "Basic dXNlcjpwdw=="},
        {"Authorization": "Bearer "},
        auth("forged-token"),
        auth("expired-token"),
        auth("no-role-token"),
    ],
)
async def test_requests_without_usable_token_are_unauthenticated(client, headers):
    r = await client.get("/api/me", headers=headers)
    assert r.status_code == 401
    assert r.json() == {"error": "unauthenticated"}
    assert r.headers.get("Cache-Control") == "private, no-store"


async def test_security_headers_on_every_response(client):
    r = await client.get("/api/me")
    assert r.headers.get("X-Content-Type-Options") == "nosniff"
    assert r.headers.get("X-Frame-Options") == "DENY"


async def test_me_returns_principal_and_menu(client):
    r = await client.get("/api/me", headers=auth("s1-token"))
    assert r.status_code == 200
    body = r.json()
    assert body["id"] == "s-1"
    assert body["role"] == "student"
    hrefs = [item["href"] for item in body["menu"]]
    assert "/api/list/exam" in hrefs
    assert "/api/list/class" not in hrefs


async def test_keycloak_realm_roles_are_understood(client):
    r = await client.get("/api/me", headers=auth("keycloak-token"))
    assert r.json()["role"] == "teacher"


async def test_unknown_role_is_authenticated_but_sees_nothing(client):
    me = await client.get("/api/me", headers=auth("janitor-token"))
    assert me.status_code == 200
    assert me.json()["menu"] == []
    r = await client.get("/api/list/event", headers=auth("janitor-token"))
    assert r.status_code == 403


async def test_route_map_blocks_before_handler(client):
    r = await client.get("/api/list/class", headers=auth("s1-token"))
    assert r.status_code == 403
    assert r.json() == {"error": "forbidden"}
    assert r.headers.get("Cache-Control") == "private, no-store"


async def test_role_home_pages_are_role_specific(client):
    assert (await client.get("/api/dashboard/admin", headers=auth("t1-token"))).status_code == 403
    assert (await client.get("/api/dashboard/teacher", headers=auth("t1-token"))).status_code == 200
