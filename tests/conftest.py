from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from app.core.dependencies import get_admin_auth_service, get_current_user, get_email_change_secret
from app.database.supabase_client import get_service_supabase
from app.main import app
from app.modules.auth.service import clear_user_cache

SECRET = b"unit-test-email-change-secret"
ACTION_LINK = "https://project.supabase.co/auth/v1/verify?token=abc123&type=email_change"
USER = {"id": "user-42", "email": "old@example.com", "user_metadata": {}, "app_metadata": {}}


@pytest.fixture(autouse=True)
def _reset_user_cache():
    clear_user_cache()
    yield
    clear_user_cache()


@pytest.fixture
def current_user():
    return dict(USER)


@pytest.fixture
def supabase():
    return MagicMock()


@pytest.fixture
def admin_auth():
    auth = MagicMock()
    auth.generate_email_change_link.return_value = ACTION_LINK
    return auth


@pytest.fixture
def client(current_user, supabase, admin_auth):
    app.dependency_overrides[get_current_user] = lambda: current_user
    app.dependency_overrides[get_email_change_secret] = lambda: SECRET
    app.dependency_overrides[get_service_supabase] = lambda: supabase
    app.dependency_overrides[get_admin_auth_service] = lambda: admin_auth
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


def make_user(**overrides):
    fields = {
        "id": "user-42",
        "email": "old@example.com",
        "user_metadata": {"full_name": "Ada"},
        "app_metadata": {},
        "created_at": "2026-01-01T00:00:00Z",
        "updated_at": None,
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)
