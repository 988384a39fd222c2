from __future__ import annotations

from datetime import timedelta
from typing import Any

import pytest
from fastapi.testclient import TestClient

from formguard.app import create_app
from formguard.auth import LocalAuthProvider
from formguard.config import Settings
from formguard.storage import init_storage
from formguard.utils import new_uuid, now_utc

OWNER = {"id": "0f6b3c1e-8f0a-4c55-9d7b-3f2a1c0e9a01", "email": "ada@example.com"}
OTHER = {"id": "5d2e9b44-1c7e-4e0f-8a3b-6c9d0e1f2a02", "email": "grace@example.com"}


def auth_headers(user: dict[str, str]) -> dict[str, str]:
    return {"X-Auth-User-Id": user["id"], "X-Auth-User-Email": user["email"]}


@pytest.fixture
def settings(tmp_path, monkeypatch) -> Settings:
    monkeypatch.setenv("STORAGE_BACKEND", "sqlite")
    monkeypatch.setenv("SQLITE_PATH", str(tmp_path / "app.db"))
    monkeypatch.setenv("JSON_PATH", str(tmp_path / "store.json"))
    monkeypatch.setenv("AUTH_MODE", "header")
    return Settings()


@pytest.fixture(params=["sqlite", "json"])
def storage(request, tmp_path, monkeypatch):
    monkeypatch.setenv("STORAGE_BACKEND", request.param)
    monkeypatch.setenv("SQLITE_PATH", str(tmp_path / "app.db"))
    monkeypatch.setenv("JSON_PATH", str(tmp_path / "store.json"))
    store = init_storage(Settings())
    store.users.handle_new_user(OWNER["id"], OWNER["email"])
    store.users.handle_new_user(OTHER["id"], OTHER["email"])
    yield store
    store.dispose()


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


def make_form(
    storage: Any,
    fields: list[dict[str, Any]],
    is_published: bool = True,
    owner_id: str = OWNER["id"],
    settings: dict[str, Any] | None = None,
    title: str = "Feedback",
) -> dict[str, Any]:
    created = now_utc() - timedelta(hours=1)
    return storage.forms.create_form(
        {
            "id": new_uuid(),
            "title": title,
            "description": "Tell us what you think",
            "owner_id": owner_id,
            "fields": fields,
            "settings": settings,
            "is_published": is_published,
            "created_at": created,
            "updated_at": created,
        }
    )


@pytest.fixture
def sample_fields() -> list[dict[str, Any]]:
    return [
        {
            "id": "field_name",
            "type": "short_text",
            "label": "Your name",
            "required": True,
            "placeholder": "Jane Doe",
        },
        {
            "id": "field_topics",
            "type": "checkbox",
            "label": "Topics",
            "required": False,
            "options": ["Speed", "Price", "Support"],
        },
    ]


@pytest.fixture
def app_storage(app):
    store = app.state.storage
    store.users.handle_new_user(OWNER["id"], OWNER["email"])
    store.users.handle_new_user(OTHER["id"], OTHER["email"])
    return store


@pytest.fixture
def default_app(tmp_path, monkeypatch):
    for name in ("STORAGE_BACKEND", "AUTH_MODE", "LOCAL_USER_EMAIL", "LOCAL_USER_NAME"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SQLITE_PATH", str(tmp_path / "default.db"))
    return create_app(Settings())


@pytest.fixture
def local_owner(default_app) -> dict[str, str]:
    identity = LocalAuthProvider(default_app.state.settings.local_user_email).identify(None)
    default_app.state.storage.users.handle_new_user(identity.id, identity.email)
    return {"id": identity.id, "email": identity.email}
