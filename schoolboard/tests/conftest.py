"""
Pytest configuration for schoolboard tests.

Why: Force AnyIO to use the asyncio backend, and provide a small seeded
school plus a stub token verifier so API tests never reach an identity
provider or a database.

The seeded school lives in `school_fixture`.
"""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Dict

import httpx
import pytest
from httpx import ASGITransport

REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from schoolboard.identity_access.tokens import TokenVerificationError  # noqa: E402
from schoolboard.school.repo_memory import InMemorySchoolRepo  # noqa: E402
from schoolboard.web.config import Settings  # noqa: E402
from schoolboard.web.main import create_app  # noqa: E402

from .school_fixture import seed_school  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def repo() -> InMemorySchoolRepo:
    return seed_school(InMemorySchoolRepo())


TOKENS: Dict[str, dict] = {
    "admin-token": {"sub": "a-1", "role": "admin"},
    "t1-token": {"sub": "t-1", "role": "teacher"},
    "t2-token": {"sub": "t-2", "role": "teacher"},
    "s1-token": {"sub": "s-1", "role": "student"},
    "p1-token": {"sub": "p-1", "role": "parent"},
    "p2-token": {"sub": "p-2", "role": "parent"},
    "keycloak-token": {"sub": "t-1", "realm_access": {"roles": ["offline_access", "teacher"]}},
    "janitor-token": {"sub": "j-1", "role": "janitor"},
    "no-role-token": {"sub": "x-1"},
}


def stub_verifier(token: str) -> dict:
    if token == "expired-token":
        raise TokenVerificationError("token_expired")
    claims = TOKENS.get(token)
    if claims is None:
        raise TokenVerificationError("invalid_token")
    return dict(claims)


@pytest.fixture
def app(repo):
    return create_app(verifier=stub_verifier, repo=repo, settings=Settings(item_per_page=2))


@pytest.fixture
async def client(app):
    async with httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
