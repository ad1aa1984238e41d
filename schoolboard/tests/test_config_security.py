"""
Startup configuration guards.

Production/staging must pin an https issuer, an audience and a TLS database;
development stays permissive.
"""
from __future__ import annotations

import pytest

from schoolboard.web import config as cfg

GOOD_PROD = {
    "SCHOOLBOARD_ENV": "prod",
    "OIDC_ISSUER_URL": "https://id.example.org/realms/school",
    "OIDC_AUDIENCE": "schoolboard-api",
    "DATABASE_URL": "postgresql://app@db/school?sslmode=require",
}


@pytest.fixture
def prod_env(monkeypatch: pytest.MonkeyPatch):
    for name in ("OIDC_JWKS_URL", "SCHOOL_DATABASE_URL"):
        monkeypatch.delenv(name, raising=False)
    for name, value in GOOD_PROD.items():
        monkeypatch.setenv(name, value)
    return monkeypatch


def test_good_prod_config_passes(prod_env):
    cfg.ensure_secure_config_on_startup()


@pytest.mark.parametrize(
    "name, value",
    [
        ("OIDC_ISSUER_URL", "http://id.example.org/realms/school"),
        ("OIDC_ISSUER_URL", ""),
        ("OIDC_JWKS_URL", "http://keys.example.org/jwks"),
        ("OIDC_AUDIENCE", ""),
        ("DATABASE_URL", ""),
        ("DATABASE_URL", "postgresql://app@db/school?sslmode=disable"),
    ],
)
def test_insecure_prod_config_refuses_to_start(prod_env, name, value):
    prod_env.setenv(name, value)
    with pytest.raises(SystemExit):
        cfg.ensure_secure_config_on_startup()


def test_dev_is_permissive(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SCHOOLBOARD_ENV", "dev")
    monkeypatch.setenv("OIDC_ISSUER_URL", "http://localhost:8080/realms/school")
    monkeypatch.delenv("DATABASE_URL", raising=False)
    cfg.ensure_secure_config_on_startup()


def test_load_settings_reads_page_size(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("ITEM_PER_PAGE", "25")
    monkeypatch.setenv("SCHOOLBOARD_ENV", "Staging")
    settings = cfg.load_settings()
    assert settings.item_per_page == 25
    assert settings.is_prod_like


@pytest.mark.parametrize("value", ["ten", "0"])
def test_load_settings_rejects_bad_page_size(monkeypatch: pytest.MonkeyPatch, value):
    monkeypatch.setenv("ITEM_PER_PAGE", value)
    with pytest.raises(SystemExit):
        cfg.load_settings()
