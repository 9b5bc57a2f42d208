"""
Smoke Tests for the Practice Manager API

These tests exercise the HTTP surface with Supabase mocked out.
Run with: python -m pytest tests/test_smoke.py -v
"""

import time

import pytest
from unittest.mock import patch, MagicMock
from fastapi.testclient import TestClient
from jose import jwt

from app.main import app
from app.supabase_client import verify_supabase_token
from app.companies_csv import StorageDownloadError, UpsertReport

client = TestClient(app)

GOOD_CSV = (
    b"CompanyName,CompanyNumber,Accounts.NextDueDate,CompanyStatus\n"
    b"Foo Ltd,001,05/04/2024,Active\n"
    b"Foo Ltd,001,05/04/2024,Dissolved\n"
)

WEBHOOK_HEADERS = {"Authorization": "Bearer webhook-secret"}


def access_token(secret="test-jwt-secret", **overrides):
    claims = {
        "sub": "user-1",
        "email": "user@example.com",
        "aud": "authenticated",
        "role": "authenticated",
        "exp": int(time.time()) + 3600,
    }
    claims.update(overrides)
    return jwt.encode(claims, secret, algorithm="HS256")


def storage_event(name="chunk_01.csv", bucket="companies-house-uploads", **overrides):
    payload = {
        "type": "INSERT",
        "table": "objects",
        "schema": "storage",
        "record": {"name": name, "bucket_id": bucket},
    }
    payload.update(overrides)
    return payload


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def mock_supabase():
    """Mock Supabase client for the CSV routes."""
    with patch("app.companies_csv_routes.get_supabase") as mock:
        mock_client = MagicMock()
        mock.return_value = mock_client
        yield mock_client


# =============================================================================
# HEALTH & SYSTEM TESTS
# =============================================================================

class TestHealthEndpoints:
    """Test system health endpoints."""

    def test_health_check(self):
        """Health endpoint should return 200."""
        with patch("app.system_routes.get_supabase", return_value=MagicMock()):
            response = client.get("/api/system/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["services"] == {"database": "healthy"}
        assert "timestamp" in data
        assert "version" in data

    def test_health_check_without_database(self):
        """Health should report degraded when Supabase is not configured."""
        with patch("app.system_routes.get_supabase", return_value=None):
            response = client.get("/api/system/health")
        data = response.json()
        assert data["status"] == "degraded"
        assert data["services"]["database"] == "unavailable"
        assert data["environment"] == "test"

    def test_health_check_database_error(self):
        supabase = MagicMock()
        supabase.table.return_value.select.return_value.limit.return_value.execute.side_effect = Exception("boom")
        with patch("app.system_routes.get_supabase", return_value=supabase):
            data = client.get("/api/system/health").json()
        assert data["status"] == "degraded"
        assert data["services"]["database"] == "error: boom"

    def test_integrations_reported(self, monkeypatch):
        monkeypatch.setenv("COMPANIES_HOUSE_API_KEY", "ch-key")
        monkeypatch.setenv("SENDGRID_API_KEY", "sg-key")
        monkeypatch.delenv("SENDGRID_FROM_EMAIL", raising=False)
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.setenv("GOOGLE_CLOUD_API_KEY", "g-key")
        with patch("app.system_routes.get_supabase", return_value=MagicMock()):
            data = client.get("/api/system/health").json()
        assert data["status"] == "healthy"
        assert data["integrations"] == {
            "companies_house": "configured",
            "sendgrid": "not_configured",
            "gemini": "configured",
        }

    def test_root(self):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["health"] == "/api/system/health"


class TestAuthEndpoints:
    """Test authentication-related functionality."""

    def test_unauthenticated_request(self):
        """Protected endpoints should reject unauthenticated requests."""
        response = client.get("/api/client-alerts")
        assert response.status_code == 401

    def test_invalid_token(self):
        """Invalid tokens should be rejected."""
        with patch("app.supabase_client.verify_supabase_token", return_value=None):
            response = client.get("/api/client-alerts", headers={"Authorization": "Bearer invalid-token"})
        assert response.status_code == 401

    def test_malformed_header(self):
        response = client.get("/api/client-alerts", headers={"Authorization": "Token abc"})
        assert response.status_code == 401


class TestTokenVerification:
    """Access tokens must carry the project signature."""

    def test_valid_token(self):
        assert verify_supabase_token(access_token()) == {
            "id": "user-1",
            "email": "user@example.com",
            "role": "authenticated",
        }

    @pytest.mark.parametrize("token", [
        access_token(secret="not-the-project-secret"),
        access_token(exp=int(time.time()) - 60),
        access_token(aud="anon-service"),
        access_token(sub=None),
        "not.a.jwt",
    ])
    def test_rejected_tokens(self, token):
        assert verify_supabase_token(token) is None

    def test_missing_secret_rejects_everything(self, monkeypatch):
        monkeypatch.delenv("SUPABASE_JWT_SECRET")
        assert verify_supabase_token(access_token()) is None

    def test_forged_token_cannot_reach_admin_routes(self):
        forged = access_token(secret="not-the-project-secret", role="service_role")
        with patch("app.supabase_client.get_user_profile") as profile:
            response = client.post(
                "/api/admin/companies-csv/clean",
                files={"file": ("companies.csv", GOOD_CSV, "text/csv")},
                headers={"Authorization": f"Bearer {forged}"},
            )
        assert response.status_code == 401
        profile.assert_not_called()

    def test_forged_token_on_client_alerts(self):
        forged = access_token(secret="not-the-project-secret")
        response = client.get("/api/client-alerts", headers={"Authorization": f"Bearer {forged}"})
        assert response.status_code == 401


# =============================================================================
# INTERACTIVE CLEANER
# =============================================================================

class TestCleanEndpoint:
    """POST /api/admin/companies-csv/clean"""

    url = "/api/admin/companies-csv/clean"

    def upload(self, content=GOOD_CSV, filename="companies.csv", headers=None, params=None):
        return client.post(
            self.url,
            files={"file": (filename, content, "text/csv")},
            headers=headers or {},
            params=params or {},
        )

    def test_requires_auth(self):
        assert self.upload().status_code == 401

    def test_requires_admin(self, mock_auth, auth_headers):
        assert self.upload(headers=auth_headers).status_code == 403

    def test_returns_cleaned_csv(self, mock_admin, auth_headers):
        response = self.upload(headers=auth_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "cleaned_deduplicated_companies.csv" in response.headers["content-disposition"]
        assert response.headers["x-rows-input"] == "2"
        assert response.headers["x-rows-output"] == "1"
        assert response.text == (
            "company_name,company_number,accounts_next_due_date,company_status\r\n"
            "Foo Ltd,001,2024-04-05,Active\r\n"
        )

    def test_cleaning_runs_in_worker_thread(self, mock_admin, auth_headers):
        calls = []

        async def run_inline(func, *args):
            calls.append(func.__name__)
            return func(*args)

        with patch("app.companies_csv_routes.asyncio.to_thread", side_effect=run_inline):
            response = self.upload(headers=auth_headers)

        assert response.status_code == 200
        assert calls == ["clean_csv_file"]

    def test_json_preview(self, mock_admin, auth_headers):
        response = self.upload(headers=auth_headers, params={"format": "json"})

        assert response.status_code == 200
        data = response.json()
        assert data["original_headers"][0] == "CompanyName"
        assert data["cleaned_headers"][0] == "company_name"
        assert data["rows_input"] == 2
        assert data["rows_output"] == 1
        assert data["dropped"]["duplicate"] == 1
        assert data["preview"][0]["accounts_next_due_date"] == "2024-04-05"
        assert data["csv"].startswith("company_name,")

    def test_unknown_format(self, mock_admin, auth_headers):
        assert self.upload(headers=auth_headers, params={"format": "xml"}).status_code == 422

    def test_rejects_non_csv(self, mock_admin, auth_headers):
        response = self.upload(filename="companies.xlsx", headers=auth_headers)
        assert response.status_code == 400

    def test_rejects_empty_file(self, mock_admin, auth_headers):
        assert self.upload(content=b"", headers=auth_headers).status_code == 400

    def test_rejects_oversized_file(self, mock_admin, auth_headers, monkeypatch):
        monkeypatch.setenv("MAX_UPLOAD_BYTES", "10")
        assert self.upload(headers=auth_headers).status_code == 413

    def test_no_rows_left(self, mock_admin, auth_headers):
        content = b"CompanyName,CompanyNumber,CompanyStatus\nGone Ltd,001,Liquidation\n"

        response = self.upload(content=content, headers=auth_headers)

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "NO_VALID_ROWS"

    def test_header_collision(self, mock_admin, auth_headers):
        content = b"CompanyName,company name,CompanyNumber\nFoo,Foo,001\n"

        response = self.upload(content=content, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "HEADER_COLLISION"


# =============================================================================
# STORAGE-TRIGGERED INGESTION
# =============================================================================

class TestStorageEventEndpoint:
    """POST /api/companies-csv/storage-event"""

    url = "/api/companies-csv/storage-event"

    def post(self, headers=None, **kwargs):
        headers = {**WEBHOOK_HEADERS, **(headers or {})}
        return client.post(self.url, headers=headers, **kwargs)

    @pytest.mark.parametrize("authorization", [None, "Bearer wrong-secret", "webhook-secret"])
    def test_requires_webhook_secret(self, mock_supabase, authorization):
        headers = {"Authorization": authorization} if authorization else {}
        with patch("app.companies_csv_routes.ingest_storage_file") as ingest:
            response = client.post(self.url, json=storage_event(), headers=headers)

        assert response.status_code == 401
        ingest.assert_not_called()

    def test_invalid_batch_size_setting_falls_back(self, mock_supabase, monkeypatch):
        monkeypatch.setenv("COMPANIES_CSV_BATCH_SIZE", "lots")
        report = UpsertReport(file_path="chunk_01.csv", table="companies_house_data")
        with patch("app.companies_csv_routes.ingest_storage_file", return_value=report) as ingest:
            response = self.post(json=storage_event())

        assert response.status_code == 200
        assert ingest.call_args[0][2].batch_size == 100

    def test_invalid_json(self, mock_supabase):
        response = self.post(content=b"not json", headers={"Content-Type": "application/json"})
        assert response.status_code == 400
        assert "error" in response.json()

    def test_not_a_storage_insert(self, mock_supabase):
        response = self.post(json=storage_event(type="UPDATE"))
        assert response.status_code == 400
        assert response.json() == {"error": "Function expects a Supabase Storage INSERT event."}

    def test_missing_record_fields(self, mock_supabase):
        response = self.post(json=storage_event(record={"bucket_id": "companies-house-uploads"}))
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid storage event payload"}

    def test_wrong_bucket(self, mock_supabase):
        response = self.post(json=storage_event(bucket="client-files"))
        assert response.status_code == 400
        assert response.json() == {"error": "File not in the correct bucket."}

    def test_database_unavailable(self):
        with patch("app.companies_csv_routes.get_supabase", return_value=None):
            response = self.post(json=storage_event())
        assert response.status_code == 503

    def test_successful_ingest(self, mock_supabase):
        report = UpsertReport(
            file_path="chunk_01.csv",
            table="companies_house_data",
            rows_parsed=4,
            rows_cleaned=3,
            rows_upserted=3,
        )
        with patch("app.companies_csv_routes.ingest_storage_file", return_value=report) as ingest:
            response = self.post(json=storage_event())

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Processed 3 records from chunk_01.csv."
        assert data["report"]["rows_parsed"] == 4
        assert ingest.call_args[0][1] == "chunk_01.csv"

    def test_download_failure(self, mock_supabase):
        with patch(
            "app.companies_csv_routes.ingest_storage_file",
            side_effect=StorageDownloadError("Error downloading chunk_01.csv: not found"),
        ):
            response = self.post(json=storage_event())

        assert response.status_code == 500
        assert response.json()["success"] is False

    def test_end_to_end_with_mocked_storage(self, mock_supabase):
        mock_supabase.storage.from_.return_value.download.return_value = (
            b"Basic Company Data\n"
            b"CompanyName,CompanyNumber,RegAddress.PostCode,CompanyStatus\n"
            b"Foo Ltd,001,AB1 2CD,Active\n"
            b"Bar Ltd,002,AB1 2CD,Liquidation\n"
        )

        response = self.post(json=storage_event())

        assert response.status_code == 200
        assert response.json()["message"] == "Processed 1 records from chunk_01.csv."
        mock_supabase.table.return_value.upsert.assert_called_once()

    def test_ingest_runs_in_worker_thread(self, mock_supabase):
        report = UpsertReport(file_path="chunk_01.csv", table="companies_house_data")
        calls = []

        async def run_inline(func, *args):
            calls.append(func)
            return report

        with patch("app.companies_csv_routes.asyncio.to_thread", side_effect=run_inline):
            response = self.post(json=storage_event())

        assert response.status_code == 200
        assert [f.__name__ for f in calls] == ["ingest_storage_file"]
