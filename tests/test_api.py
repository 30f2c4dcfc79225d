"""
API Tests

Drives the FastAPI app through TestClient. Crawls run as background
tasks against the mock site, so a POST to /crawl returns after the
audit has been stored.
"""

import csv
import io
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from api import crawl as crawl_api
from api.main import app
from src.auth.config import get_auth_config
from src.services.audit import AuditService
from tests.helpers import build_transport, site_pages

FAST_CRAWL = {"crawl_type": "domain", "max_pages": 5, "max_depth": 2, "crawl_delay_ms": 0}


@pytest.fixture
def client():
    app.dependency_overrides[crawl_api.get_audit_service] = lambda: AuditService(
        transport=build_transport(site_pages()),
        enable_pagespeed=False,
    )
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def register(client, email="ann@example.com", password="garden123"):
    response = client.post("/api/auth/register", json={"email": email, "password": password, "full_name": "Ann"})
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def auth(client):
    return register(client)


@pytest.fixture
def project_id(client, auth):
    response = client.post(
        "/api/projects",
        json={"name": "Example Gardens", "url": "example.com", "crawl_settings": FAST_CRAWL},
        headers=auth,
    )
    assert response.status_code == 201
    return response.json()["id"]


@pytest.fixture
def analysis_id(client, auth, project_id):
    response = client.post(f"/api/projects/{project_id}/crawl", headers=auth)
    assert response.status_code == 202

    session = client.get(f"/api/crawl-sessions/{response.json()['id']}", headers=auth).json()
    assert session["status"] == "completed"
    return session["analysis_id"]


# =============================================================================
# SERVICE
# =============================================================================

class TestService:

    def test_root(self, client):
        assert client.get("/").json()["service"] == "SEO Audit Engine"

    def test_health(self, client):
        data = client.get("/api/health").json()

        assert data["status"] == "healthy"
        assert data["database"] == "connected"

    def test_database_info(self, client):
        data = client.get("/api/database").json()

        assert data["database_type"] == "sqlite"
        assert "projects" in data["tables"]

    def test_unknown_route_uses_error_envelope(self, client):
        response = client.get("/api/does-not-exist")

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Not Found"}

    def test_wrong_method_uses_error_envelope(self, client):
        response = client.put("/api/health")

        assert response.status_code == 405
        assert response.json() == {"success": False, "error": "Method Not Allowed"}

    def test_login_refused_without_jwt_secret(self, client, user, monkeypatch):
        monkeypatch.delenv("JWT_SECRET")
        get_auth_config.cache_clear()

        response = client.post("/api/auth/login", json={"email": "owner@example.com", "password": "password123"})

        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Authentication is not configured"}


# =============================================================================
# AUTH
# =============================================================================

class TestAuthEndpoints:

    def test_register_and_me(self, client, auth):
        me = client.get("/api/auth/me", headers=auth).json()

        assert me["email"] == "ann@example.com"
        assert me["project_count"] == 0
        assert not me["email_verified"]

    def test_login(self, client, auth):
        response = client.post("/api/auth/login", json={"email": "ann@example.com", "password": "garden123"})

        assert response.status_code == 200
        assert response.json()["token_type"] == "bearer"

    def test_login_failure_uses_error_envelope(self, client, auth):
        response = client.post("/api/auth/login", json={"email": "ann@example.com", "password": "wrong-pass1"})

        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Invalid email or password"}

    def test_invalid_body(self, client):
        response = client.post("/api/auth/register", json={"email": "not-an-email", "password": "garden123"})

        assert response.status_code == 422
        assert response.json()["success"] is False
        assert "email" in response.json()["error"]

    def test_missing_token(self, client):
        response = client.get("/api/projects")
        assert response.status_code == 401

    def test_verify_email(self, client, sent_emails):
        headers = register(client)
        response = client.post("/api/auth/verify-email", json={"token": sent_emails.last_token()})

        assert response.json()["success"]
        assert client.get("/api/auth/me", headers=headers).json()["email_verified"]

    def test_forgot_password_never_reveals_accounts(self, client):
        response = client.post("/api/auth/forgot-password", json={"email": "nobody@example.com"})
        assert response.status_code == 200


# =============================================================================
# PROJECTS
# =============================================================================

class TestProjectEndpoints:

    def test_create_normalizes_url(self, client, auth, project_id):
        project = client.get(f"/api/projects/{project_id}", headers=auth).json()

        assert project["url"] == "https://example.com/"
        assert project["crawl_settings"]["crawl_type"] == "domain"
        assert project["latest_analysis"] is None

    def test_list(self, client, auth, project_id):
        data = client.get("/api/projects", headers=auth).json()

        assert data["total"] == 1
        assert data["projects"][0]["id"] == project_id

    def test_page_cap(self, client, auth):
        response = client.post(
            "/api/projects",
            json={"name": "Big", "url": "https://big.example", "crawl_settings": {"crawl_type": "domain", "max_pages": 501}},
            headers=auth,
        )
        assert response.status_code == 400

    def test_other_users_project(self, client, project_id):
        stranger = register(client, email="eve@example.com")
        response = client.get(f"/api/projects/{project_id}", headers=stranger)
        assert response.status_code == 403

    def test_unknown_project(self, client, auth):
        assert client.get("/api/projects/missing", headers=auth).status_code == 404

    def test_update_and_delete(self, client, auth, project_id):
        response = client.patch(f"/api/projects/{project_id}", json={"name": "Renamed"}, headers=auth)
        assert response.json()["name"] == "Renamed"

        response = client.delete(f"/api/projects/{project_id}", headers=auth)
        assert response.json() == {"success": True, "deleted": project_id}
        assert client.get(f"/api/projects/{project_id}", headers=auth).status_code == 404


# =============================================================================
# CRAWL & ANALYSES
# =============================================================================

class TestCrawlEndpoints:

    def test_crawl_stores_analysis(self, client, auth, project_id, analysis_id):
        project = client.get(f"/api/projects/{project_id}", headers=auth).json()

        assert project["latest_analysis"]["id"] == analysis_id
        assert project["current_score"] == project["latest_analysis"]["overall_score"]
        assert project["recent_sessions"][0]["status"] == "completed"

    def test_crawl_url_must_stay_on_host(self, client, auth, project_id):
        response = client.post(
            f"/api/projects/{project_id}/crawl",
            json={"url": "https://elsewhere.example/"},
            headers=auth,
        )
        assert response.status_code == 400

    def test_list_sessions(self, client, auth, project_id, analysis_id):
        data = client.get(f"/api/projects/{project_id}/crawl-sessions", headers=auth).json()

        assert data["total"] == 1
        assert data["sessions"][0]["progress"] == 100.0

    def test_failed_crawl_is_recorded(self, client, auth, project_id):
        def refuse(request):
            raise httpx.ConnectError("Connection refused", request=request)

        app.dependency_overrides[crawl_api.get_audit_service] = lambda: AuditService(
            transport=httpx.MockTransport(refuse),
            enable_pagespeed=False,
        )
        response = client.post(f"/api/projects/{project_id}/crawl", headers=auth)

        session = client.get(f"/api/crawl-sessions/{response.json()['id']}", headers=auth).json()
        assert session["status"] == "failed"
        assert session["error_message"]
        assert session["analysis_id"] is None


class TestAnalysisEndpoints:

    def test_history(self, client, auth, project_id, analysis_id):
        data = client.get(f"/api/projects/{project_id}/analyses", headers=auth).json()

        assert [a["id"] for a in data["analyses"]] == [analysis_id]
        assert "issues" not in data["analyses"][0]

    def test_detail_and_not_modified(self, client, auth, analysis_id):
        response = client.get(f"/api/analyses/{analysis_id}", headers=auth)
        etag = response.headers["ETag"]

        assert response.json()["id"] == analysis_id
        assert response.json()["pages_analyzed"] >= 1
        assert "Authorization" in response.headers["Vary"]

        cached = client.get(f"/api/analyses/{analysis_id}", headers={**auth, "If-None-Match": etag})
        assert cached.status_code == 304

    def test_issue_lifecycle(self, client, auth, analysis_id):
        data = client.get(f"/api/analyses/{analysis_id}/issues", headers=auth).json()
        assert data["total"] == len(data["issues"]) > 0
        issue = data["issues"][0]

        etag = client.get(f"/api/analyses/{analysis_id}", headers=auth).headers["ETag"]

        response = client.patch(f"/api/issues/{issue['id']}", json={"status": "resolved"}, headers=auth)
        assert response.json()["status"] == "resolved"

        # Updates change the analysis ETag
        refreshed = client.get(f"/api/analyses/{analysis_id}", headers={**auth, "If-None-Match": etag})
        assert refreshed.status_code == 200

        resolved = client.get(f"/api/analyses/{analysis_id}/issues?status=resolved", headers=auth).json()
        assert [i["id"] for i in resolved["issues"]] == [issue["id"]]

        response = client.patch(f"/api/issues/{issue['id']}", json={"status": "in_progress"}, headers=auth)
        assert response.status_code == 400

    def test_unknown_issue_status(self, client, auth, analysis_id):
        issue = client.get(f"/api/analyses/{analysis_id}/issues", headers=auth).json()["issues"][0]
        response = client.patch(f"/api/issues/{issue['id']}", json={"status": "fixed"}, headers=auth)
        assert response.status_code == 422

    def test_recommendations(self, client, auth, analysis_id):
        data = client.get(f"/api/analyses/{analysis_id}/recommendations", headers=auth).json()
        assert data["total"] > 0
        rec = data["recommendations"][0]

        response = client.patch(
            f"/api/recommendations/{rec['id']}",
            json={"status": "completed", "notes": "Done on staging"},
            headers=auth,
        )
        assert response.json()["status"] == "completed"
        assert response.json()["notes"] == "Done on staging"

    def test_compare(self, client, auth, project_id, analysis_id):
        response = client.post(f"/api/projects/{project_id}/crawl", headers=auth)
        second = client.get(f"/api/crawl-sessions/{response.json()['id']}", headers=auth).json()["analysis_id"]

        data = client.get(f"/api/analyses/{second}/compare/{analysis_id}", headers=auth).json()

        assert data["summary"]["overall_change"] == 0
        assert data["new_issues"] == []
        assert data["resolved_issues"] == []

    def test_stranger_cannot_read(self, client, analysis_id):
        stranger = register(client, email="eve@example.com")
        assert client.get(f"/api/analyses/{analysis_id}", headers=stranger).status_code == 403


# =============================================================================
# TRENDS
# =============================================================================

class TestTrendEndpoints:

    def test_trends(self, client, auth, project_id, analysis_id):
        response = client.get(f"/api/analysis/trends/{project_id}?period=7d", headers=auth)
        data = response.json()

        assert len(data["data_points"]) == 1
        assert 0 <= data["trend_score"] <= 100

        cached = client.get(
            f"/api/analysis/trends/{project_id}?period=7d",
            headers={**auth, "If-None-Match": response.headers["ETag"]},
        )
        assert cached.status_code == 304

    def test_bad_period(self, client, auth, project_id):
        response = client.get(f"/api/analysis/trends/{project_id}?period=2d", headers=auth)
        assert response.status_code == 422

    def test_prediction_needs_history(self, client, auth, project_id, analysis_id):
        response = client.get(f"/api/analysis/trends/{project_id}/prediction", headers=auth)

        assert response.status_code == 422
        assert response.json()["success"] is False

    def test_regressions_and_issue_trends(self, client, auth, project_id, analysis_id):
        regressions = client.get(f"/api/analysis/trends/{project_id}/regressions", headers=auth).json()
        assert regressions["regressions"] == []

        issues = client.get(f"/api/analysis/trends/{project_id}/issues?days=7", headers=auth).json()
        assert issues["project_id"] == project_id


# =============================================================================
# REPORTS
# =============================================================================

class TestReportEndpoints:

    def test_html_report(self, client, auth, analysis_id):
        response = client.get(f"/api/analyses/{analysis_id}/report?format=html", headers=auth)

        assert response.headers["content-type"].startswith("text/html")
        assert "attachment" in response.headers["content-disposition"]
        assert "Example Gardens - SEO Audit Report" in response.text

    def test_unsupported_format(self, client, auth, analysis_id):
        response = client.get(f"/api/analyses/{analysis_id}/report?format=pdf", headers=auth)
        assert response.status_code == 422

    def test_bulk_export_and_redownload(self, client, auth, project_id, analysis_id):
        response = client.post(
            "/api/reports/bulk-export",
            json={"project_ids": [project_id], "format": "csv", "sections": ["content"]},
            headers=auth,
        )

        assert response.headers["X-Row-Count"] == "1"
        [row] = list(csv.DictReader(io.StringIO(response.text)))
        assert row["analysis_id"] == analysis_id
        assert row["project_name"] == "Example Gardens"

        again = client.get(f"/api/reports/exports/{response.headers['X-Export-Id']}", headers=auth)
        assert again.text == response.text

    def test_bulk_export_with_trends(self, client, auth, analysis_id):
        response = client.post(
            "/api/reports/bulk-export",
            json={"analysis_ids": [analysis_id], "sections": ["trends"]},
            headers=auth,
        )
        record = json.loads(response.text)["analyses"][0]
        assert record["trends"]["total_data_points"] == 1

    def test_empty_selection(self, client, auth):
        response = client.post("/api/reports/bulk-export", json={}, headers=auth)
        assert response.status_code == 400

    def test_export_belongs_to_owner(self, client, auth, analysis_id):
        response = client.post("/api/reports/bulk-export", json={"analysis_ids": [analysis_id]}, headers=auth)
        stranger = register(client, email="eve@example.com")

        again = client.get(f"/api/reports/exports/{response.headers['X-Export-Id']}", headers=stranger)
        assert again.status_code == 404


# =============================================================================
# CACHE
# =============================================================================

class TestCacheEndpoints:

    def test_health_and_stats(self, client, auth):
        health = client.get("/api/cache/health", headers=auth).json()
        assert health["status"] == "healthy"
        assert health["backend"] == "sqlite"

        stats = client.get("/api/cache/stats", headers=auth).json()
        assert stats["enabled"]

    def test_invalidate_project(self, client, auth, project_id, analysis_id):
        response = client.post(f"/api/cache/invalidate/project/{project_id}", headers=auth).json()

        assert response["success"]
        assert response["keys_invalidated"] >= 1

    def test_admin_operations(self, client, auth, monkeypatch, project_id, analysis_id):
        assert client.post("/api/cache/cleanup", headers=auth).status_code == 403

        monkeypatch.setenv("ADMIN_EMAILS", "boss@example.com")
        get_auth_config.cache_clear()
        admin = register(client, email="boss@example.com")

        warmed = client.post("/api/cache/warm", json={"project_ids": [project_id]}, headers=admin).json()
        assert warmed["analyses_cached"] == 1

        assert client.post("/api/cache/cleanup", headers=admin).json()["success"]
        assert client.delete("/api/cache", headers=admin).json() == {"success": True}


# =============================================================================
# DASHBOARD
# =============================================================================

class TestDashboardEndpoints:

    def test_stats_without_projects(self, client, auth):
        data = client.get("/api/dashboard/stats", headers=auth).json()

        assert data["total_projects"] == 0
        assert data["average_score"] == 0.0
        assert data["open_issues"]["total"] == 0
        assert data["last_scan_date"] is None

    def test_stats_after_audit(self, client, auth, project_id, analysis_id):
        project = client.get(f"/api/projects/{project_id}", headers=auth).json()
        issues = client.get(f"/api/analyses/{analysis_id}/issues", headers=auth).json()

        response = client.get("/api/dashboard/stats", headers=auth)
        data = response.json()

        assert response.headers["Cache-Control"] == "no-store"
        assert data["total_projects"] == 1
        assert data["scanned_projects"] == 1
        assert data["completed_analyses"] == 1
        assert data["weekly_scans"] == 1
        assert data["active_analyses"] == 0
        assert data["average_score"] == project["current_score"]
        assert data["open_issues"]["total"] == issues["total"]
        assert data["critical_issues"] == issues["by_severity"]["critical"]
        assert sum(data["score_distribution"].values()) == 1

    def test_resolved_issue_leaves_open_totals(self, client, auth, analysis_id):
        issue = client.get(f"/api/analyses/{analysis_id}/issues", headers=auth).json()["issues"][0]
        before = client.get("/api/dashboard/stats", headers=auth).json()

        client.patch(f"/api/issues/{issue['id']}", json={"status": "resolved"}, headers=auth)
        after = client.get("/api/dashboard/stats", headers=auth).json()

        assert after["open_issues"]["total"] == before["open_issues"]["total"] - 1
        assert after["resolved_issues"] == before["resolved_issues"] + 1

    def test_recent_projects(self, client, auth, project_id, analysis_id):
        [item] = client.get("/api/dashboard/recent-projects", headers=auth).json()["projects"]

        assert item["id"] == project_id
        assert item["latest_analysis_id"] == analysis_id
        assert item["scan_status"] == "completed"
        assert item["scan_progress"] is None
        assert item["previous_score"] is None

    def test_priority_issues_sorted_by_severity(self, client, auth, analysis_id):
        data = client.get("/api/dashboard/priority-issues?limit=100", headers=auth).json()
        ranks = {"critical": 0, "high": 1, "medium": 2}

        assert data["issues"]
        assert {i["severity"] for i in data["issues"]} <= set(ranks)
        assert [ranks[i["severity"]] for i in data["issues"]] == sorted(ranks[i["severity"]] for i in data["issues"])
        assert data["issues"][0]["project"]["name"] == "Example Gardens"
        assert all(i["status"] == "new" for i in data["issues"])

    def test_priority_issues_severity_filter(self, client, auth, analysis_id):
        data = client.get("/api/dashboard/priority-issues?severity=low", headers=auth).json()
        assert all(i["severity"] == "low" for i in data["issues"])

        response = client.get("/api/dashboard/priority-issues?severity=urgent", headers=auth)
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_recent_activity(self, client, auth, analysis_id):
        activities = client.get("/api/dashboard/recent-activity", headers=auth).json()["activities"]

        assert activities[0]["type"] in ("scan", "issue")
        assert any(a["title"] == "Scan completed" for a in activities)

    def test_other_users_projects_hidden(self, client, auth, analysis_id):
        stranger = register(client, email="eve@example.com")

        stats = client.get("/api/dashboard/stats", headers=stranger).json()
        issues = client.get("/api/dashboard/priority-issues", headers=stranger).json()

        assert stats["total_projects"] == 0
        assert issues["issues"] == []

    def test_requires_authentication(self, client):
        assert client.get("/api/dashboard/stats").status_code == 401
