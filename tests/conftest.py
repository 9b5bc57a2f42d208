"""
Shared fixtures. Environment is set before anything imports the app.
"""

import os
import pytest
from unittest.mock import patch, MagicMock

os.environ["ENVIRONMENT"] = "test"
os.environ["SUPABASE_URL"] = "https://test.supabase.co"
os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "test-key"
os.environ["CRON_SECRET_KEY"] = "cron-secret"
os.environ["STORAGE_WEBHOOK_SECRET"] = "webhook-secret"
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret"


@pytest.fixture
def auth_headers():
    """Auth headers for protected endpoints."""
    return {"Authorization": "Bearer test-token"}


@pytest.fixture
def mock_auth():
    """Signed-in, non-admin user."""
    with patch("app.supabase_client.verify_supabase_token") as mock_verify:
        mock_verify.return_value = {"id": "test-user-id", "email": "test@example.com", "role": "authenticated"}
        with patch("app.supabase_client.get_user_profile") as mock_profile:
            mock_profile.return_value = {"id": "test-user-id", "is_admin": False}
            yield mock_profile


@pytest.fixture
def mock_admin(mock_auth):
    """Signed-in admin user."""
    mock_auth.return_value = {"id": "test-user-id", "is_admin": True}
    yield mock_auth


def table_router(tables):
    """
    Build a Supabase mock whose table(name) returns tables[name].

    Unknown tables get a fresh MagicMock.
    """
    supabase = MagicMock()
    supabase.table.side_effect = lambda name: tables.setdefault(name, MagicMock())
    return supabase


@pytest.fixture
def make_supabase():
    return table_router
