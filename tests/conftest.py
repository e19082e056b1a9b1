"""
Pytest config.

Every test gets its own SQLite file and its own app instance built from an explicit
Config, so nothing here depends on the developer's environment or .env file.
"""

from __future__ import annotations

import sys
from dataclasses import replace
from pathlib import Path
from typing import Dict, Iterator

import pytest
from fastapi.testclient import TestClient


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()

from social_auth.api.server import create_app  # noqa: E402
from social_auth.config import Config  # noqa: E402
from social_auth.db import init_db  # noqa: E402


CLIENT_URL = "http://client.example.com"
OTHER_ORIGIN = "http://admin.example.com"
BOT_TOKEN = "123456:telegram-test-token"


@pytest.fixture()
def cfg(tmp_path: Path) -> Config:
    return Config(
        DB_DSN=str(tmp_path / "social_auth_test.sqlite"),
        CLIENT_URL=CLIENT_URL,
        PUBLIC_API_URL="http://api.example.com",
        AUTH_JWT_SECRET="test-secret-key-for-testing-purposes-only",
        AUTH_TOKEN_EXPIRE_MINUTES=60,
        PASSWORD_SALT="test-pepper",
        AUTH_BOOTSTRAP_ADMIN_EMAIL="",
        AUTH_BOOTSTRAP_ADMIN_PASSWORD="",
        AUTH_COOKIE_NAME="token",
        AUTH_COOKIE_SAMESITE="lax",
        AUTH_COOKIE_SECURE=False,
        GOOGLE_CLIENT_ID="google-client-id",
        GOOGLE_CLIENT_SECRET="google-client-secret",
        GITHUB_CLIENT_ID="github-client-id",
        GITHUB_CLIENT_SECRET="github-client-secret",
        TELEGRAM_BOT_TOKEN=BOT_TOKEN,
        TELEGRAM_AUTH_MAX_AGE_SECONDS=86400,
        CLOUDINARY_CLOUD_NAME="demo",
        CLOUDINARY_API_KEY="key",
        CLOUDINARY_API_SECRET="secret",
        UPLOAD_MAX_BYTES=1024,
        CORS_ALLOW_ORIGINS=f"{CLIENT_URL},{OTHER_ORIGIN}",
    )


@pytest.fixture()
def db(cfg: Config) -> str:
    """Initialized database DSN for tests that work below the HTTP layer."""
    init_db(cfg.DB_DSN)
    return cfg.DB_DSN


@pytest.fixture()
def client(cfg: Config) -> Iterator[TestClient]:
    # Context manager so the startup hook (schema + admin bootstrap) runs.
    with TestClient(create_app(cfg)) as c:
        yield c


@pytest.fixture()
def admin_cfg(cfg: Config) -> Config:
    return replace(
        cfg,
        AUTH_BOOTSTRAP_ADMIN_EMAIL="root@example.com",
        AUTH_BOOTSTRAP_ADMIN_PASSWORD="root-password",
    )


@pytest.fixture()
def admin_client(admin_cfg: Config) -> Iterator[TestClient]:
    with TestClient(create_app(admin_cfg)) as c:
        yield c


def register(c: TestClient, email: str, *, name: str = "Alice", password: str = "pw-123456") -> Dict:
    r = c.post("/auth/register", json={"name": name, "email": email, "password": password})
    assert r.status_code == 200, r.json()
    return r.json()["data"]


def login(c: TestClient, email: str, password: str) -> str:
    r = c.post("/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.json()
    return r.json()["data"]["token"]


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
