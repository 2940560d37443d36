"""
API endpoint tests for the FastAPI Persona API

Uses FastAPI's TestClient with in-memory services: SQLite for the Remote
Store, a MemoryMedium for guest data and a stub provider client.
Tests cover search, history, favorites, account, guest mode, submissions,
error envelopes and health.
"""

import sys
from pathlib import Path
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, str(Path(__file__).parent.parent))

from api import server
from config_manager import ConfigManager
from conftest import StubProviderClient, john_doe_payloads

USER = {"X-User-Id": "user-123", "X-User-Email": "user@example.com"}
OTHER_USER = {"X-User-Id": "user-456", "X-User-Email": "other@example.com"}
REVIEWER = {"X-User-Id": "reviewer-1", "X-User-Email": "Reviewer@Example.com"}

JOHN_DOE = {"first_name": "John", "last_name": "Doe", "age": 35, "location": "New York, NY"}

SUBMISSION = {
    "first_name": "John",
    "last_name": "Doe",
    "addresses": [{"street": "1 Main St", "city": "New York", "is_current": True}],
    "past_names": ["Johnny Roe"],
    "proofs": [{"storage_path": "proofs/user-123/lease.pdf", "file_name": "lease.pdf"}],
}


@pytest.fixture
def config(tmp_path, monkeypatch):
    monkeypatch.delenv("PERSONA_VERIFIER_EMAILS", raising=False)
    config = ConfigManager(str(tmp_path / "absent.yaml"))
    config.api.verifier_emails = ["reviewer@example.com"]
    return config


@pytest.fixture
def services(config, db_provider, medium):
    return server.build_services(config, db_provider, StubProviderClient(john_doe_payloads()), medium)


@pytest.fixture
def client(services):
    """Create test client with in-memory services patched in."""
    with patch.object(server, '_services', services):
        yield TestClient(server.app)


def search(client, headers=USER, body=JOHN_DOE):
    response = client.post("/api/v1/search", json=body, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


# ============================================
# SEARCH & RESULTS
# ============================================

class TestSearch:

    def test_search_returns_scored_profile(self, client):
        data = search(client)
        assert data["confidence_score"] == 35
        assert data["search_query"]["user_id"] == "user-123"
        assert data["search_result"]["search_query_id"] == data["search_query"]["id"]
        profile = data["person_profile"]
        assert len(profile["addresses"]) == 1
        assert len(profile["social_media"]) == 1
        assert len(profile["relatives"]) == 1
        assert profile["phone_numbers"] == []

    def test_stored_result_reads_back(self, client):
        data = search(client)
        response = client.get(f"/api/v1/results/{data['search_query']['id']}", headers=USER)
        assert response.status_code == 200
        assert response.json()["confidence_score"] == 35
        assert response.json()["person_profile"]["id"] == data["person_profile"]["id"]

    def test_results_are_private(self, client):
        data = search(client)
        response = client.get(f"/api/v1/results/{data['search_query']['id']}", headers=OTHER_USER)
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_search_requires_sign_in(self, client):
        response = client.post("/api/v1/search", json=JOHN_DOE)
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTH_REQUIRED"

    @pytest.mark.parametrize("body,field", [
        ({"first_name": "  ", "last_name": "Doe"}, "first_name"),
        ({"first_name": "John"}, "last_name"),
        ({"first_name": "John", "last_name": "Doe", "age": -1}, "age"),
    ])
    def test_invalid_search_envelope(self, client, body, field):
        response = client.post("/api/v1/search", json=body, headers=USER)
        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["field"] == field
        assert "timestamp" in error

    def test_delete_query(self, client):
        query_id = search(client)["search_query"]["id"]
        assert client.delete(f"/api/v1/queries/{query_id}", headers=USER).json() == {"deleted": True, "count": None}
        assert client.get(f"/api/v1/results/{query_id}", headers=USER).status_code == 404
        assert client.delete(f"/api/v1/queries/{query_id}", headers=USER).status_code == 404

    def test_request_id_header(self, client):
        response = client.get("/api/v1/health", headers={"X-Request-ID": "abc-123"})
        assert response.headers["X-Request-ID"] == "abc-123"
        assert "X-Processing-Time-MS" in response.headers


# ============================================
# HISTORY
# ============================================

class TestHistory:

    def test_history_lists_searches(self, client):
        search(client)
        search(client, body={"first_name": "Jane", "last_name": "Roe"})
        history = client.get("/api/v1/history", headers=USER).json()
        assert len(history) == 2
        assert {h["search_query"]["first_name"] for h in history} == {"John", "Jane"}
        assert all(h["search_result"] is not None for h in history)

    def test_history_limit(self, client):
        search(client)
        search(client)
        assert len(client.get("/api/v1/history?limit=1", headers=USER).json()) == 1
        assert client.get("/api/v1/history?limit=0", headers=USER).status_code == 422

    def test_delete_entry_and_clear(self, client):
        search(client)
        search(client)
        history = client.get("/api/v1/history", headers=USER).json()

        response = client.delete(f"/api/v1/history/{history[0]['id']}", headers=USER)
        assert response.status_code == 200
        assert client.delete(f"/api/v1/history/{history[0]['id']}", headers=USER).status_code == 404

        cleared = client.delete("/api/v1/history", headers=USER).json()
        assert cleared == {"deleted": True, "count": 1}
        assert client.get("/api/v1/history", headers=USER).json() == []


# ============================================
# FAVORITES
# ============================================

class TestFavorites:

    def test_favorite_lifecycle(self, client):
        query_id = search(client)["search_query"]["id"]

        created = client.post("/api/v1/favorites", json={"search_query_id": query_id, "label": "John"}, headers=USER)
        assert created.status_code == 200
        favorite_id = created.json()["id"]

        again = client.post("/api/v1/favorites", json={"search_query_id": query_id}, headers=USER)
        assert again.json()["id"] == favorite_id

        status = client.get(f"/api/v1/favorites/status/{query_id}", headers=USER).json()
        assert status == {"search_query_id": query_id, "is_favorited": True}

        relabeled = client.patch(f"/api/v1/favorites/{favorite_id}", json={"label": "Johnny"}, headers=USER)
        assert relabeled.json()["label"] == "Johnny"

        favorites = client.get("/api/v1/favorites", headers=USER).json()
        assert len(favorites) == 1
        assert favorites[0]["search_result"]["confidence_score"] == 35

        assert client.delete(f"/api/v1/favorites/{favorite_id}", headers=USER).status_code == 200
        assert client.delete(f"/api/v1/favorites/{favorite_id}", headers=USER).status_code == 404
        assert client.get(f"/api/v1/favorites/status/{query_id}", headers=USER).json()["is_favorited"] is False

    def test_favorite_unknown_query(self, client):
        response = client.post("/api/v1/favorites", json={"search_query_id": "nope"}, headers=USER)
        assert response.status_code == 404

    def test_favorite_someone_elses_query(self, client):
        query_id = search(client)["search_query"]["id"]
        response = client.post("/api/v1/favorites", json={"search_query_id": query_id}, headers=OTHER_USER)
        assert response.status_code == 404


# ============================================
# ACCOUNT
# ============================================

class TestAccount:

    def test_profile_created_on_first_read(self, client):
        profile = client.get("/api/v1/profile", headers=USER).json()
        assert profile["id"] == "user-123"
        assert profile["email"] == "user@example.com"

    def test_update_name(self, client):
        client.get("/api/v1/profile", headers=USER)
        response = client.patch("/api/v1/profile", json={"first_name": "Casey"}, headers=USER)
        assert response.status_code == 200
        assert response.json()["first_name"] == "Casey"

    def test_only_name_is_updatable(self, client):
        response = client.patch("/api/v1/profile", json={"email": "new@example.com"}, headers=USER)
        assert response.status_code == 422

    def test_delete_account(self, client):
        query_id = search(client)["search_query"]["id"]
        assert client.delete("/api/v1/account", headers=USER).status_code == 200
        assert client.get("/api/v1/history", headers=USER).json() == []
        assert client.get(f"/api/v1/results/{query_id}", headers=USER).status_code == 404
        assert client.delete("/api/v1/account", headers=USER).status_code == 404


# ============================================
# GUEST MODE
# ============================================

class TestGuestMode:

    def test_guest_flow(self, client):
        assert client.get("/api/v1/guest").json() == {"guest_mode": False, "profile": None}

        enabled = client.post("/api/v1/guest/enable").json()
        assert enabled["guest_mode"] is True
        assert enabled["profile"]["email"] == "guest@persona.local"
        assert enabled["profile"]["id"].startswith("guest_")

        data = search(client, headers={})
        assert data["confidence_score"] == 35
        assert data["search_query"]["id"].startswith("query_")
        assert data["search_query"]["user_id"] == enabled["profile"]["id"]
        assert len(client.get("/api/v1/history").json()) == 1

        disabled = client.post("/api/v1/guest/disable").json()
        assert disabled["guest_mode"] is False
        assert client.get("/api/v1/history").status_code == 401

    def test_guest_data_is_separate_from_account(self, client):
        search(client)
        client.post("/api/v1/guest/enable")
        assert client.get("/api/v1/history", headers=USER).json() == []
        client.post("/api/v1/guest/disable")
        assert len(client.get("/api/v1/history", headers=USER).json()) == 1

    def test_deleting_guest_account_leaves_guest_mode(self, client):
        client.post("/api/v1/guest/enable")
        search(client, headers={})
        assert client.delete("/api/v1/account").status_code == 200
        assert client.get("/api/v1/guest").json()["guest_mode"] is False

    def test_guest_cannot_submit(self, client):
        client.post("/api/v1/guest/enable")
        response = client.post("/api/v1/submissions", json=SUBMISSION)
        assert response.status_code == 422
        assert response.json()["error"]["field"] == "mode"

    def test_health_reports_guest_mode(self, client):
        client.post("/api/v1/guest/enable")
        assert client.get("/api/v1/health").json()["guest_mode"] is True


# ============================================
# SUBMISSIONS
# ============================================

class TestSubmissions:

    def test_submit_and_review(self, client):
        created = client.post("/api/v1/submissions", json=SUBMISSION, headers=USER)
        assert created.status_code == 200
        submission_id = created.json()["id"]

        pending = client.get("/api/v1/submissions/pending", headers=REVIEWER).json()
        assert [p["id"] for p in pending] == [submission_id]

        reviewed = client.patch(
            f"/api/v1/submissions/{submission_id}",
            json={"status": "approved", "reviewer_notes": "Lease matches"},
            headers=REVIEWER,
        )
        assert reviewed.status_code == 200
        assert reviewed.json()["status"] == "approved"
        assert reviewed.json()["verified_by"] == "reviewer-1"

        approved = client.get("/api/v1/submissions/approved?first_name=John&last_name=Doe").json()
        assert len(approved) == 1
        assert approved[0]["proofs"][0]["file_name"] == "lease.pdf"
        assert approved[0]["past_names"][0]["name"] == "Johnny Roe"

        again = client.patch(f"/api/v1/submissions/{submission_id}", json={"status": "rejected"}, headers=REVIEWER)
        assert again.status_code == 422

    def test_proof_is_required(self, client):
        response = client.post("/api/v1/submissions", json={**SUBMISSION, "proofs": []}, headers=USER)
        assert response.status_code == 422
        assert response.json()["error"]["field"] == "proofs"

    def test_proof_path_must_be_relative(self, client):
        proofs = [{"storage_path": "../etc/passwd", "file_name": "x"}]
        response = client.post("/api/v1/submissions", json={**SUBMISSION, "proofs": proofs}, headers=USER)
        assert response.status_code == 422

    def test_submission_requires_sign_in(self, client):
        assert client.post("/api/v1/submissions", json=SUBMISSION).status_code == 401

    def test_review_requires_verifier(self, client):
        submission_id = client.post("/api/v1/submissions", json=SUBMISSION, headers=USER).json()["id"]
        assert client.get("/api/v1/submissions/pending", headers=USER).status_code == 403
        response = client.patch(f"/api/v1/submissions/{submission_id}", json={"status": "approved"}, headers=USER)
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "HTTP_403"
        assert client.get("/api/v1/submissions/pending").status_code == 401

    def test_review_unknown_submission(self, client):
        response = client.patch(
            "/api/v1/submissions/00000000-0000-0000-0000-000000000000",
            json={"status": "approved"},
            headers=REVIEWER,
        )
        assert response.status_code == 404

    def test_review_status_must_be_final(self, client):
        submission_id = client.post("/api/v1/submissions", json=SUBMISSION, headers=USER).json()["id"]
        response = client.patch(f"/api/v1/submissions/{submission_id}", json={"status": "pending"}, headers=REVIEWER)
        assert response.status_code == 422


# ============================================
# HEALTH
# ============================================

class TestHealth:

    def test_health(self, client):
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "ok"
        assert data["guest_mode"] is False
        assert data["version"] == server.API_VERSION

    def test_openapi_available(self, client):
        response = client.get("/api/openapi.json")
        assert response.status_code == 200
        assert "/api/v1/search" in response.json()["paths"]
