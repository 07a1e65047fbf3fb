"""
API endpoint tests for the FoodShare service.
"""

from dataclasses import replace
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from main import create_app
from schemas import utcnow


def auth(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def canteen_token(client, canteen_registration):
    return client.post("/register", json=canteen_registration).json()["token"]


@pytest.fixture
def other_canteen_token(client, canteen_registration):
    payload = {**canteen_registration, "email": "mess@example.com", "canteen_name": "Hostel Mess"}
    return client.post("/register", json=payload).json()["token"]


@pytest.fixture
def ngo_token(client, ngo_registration):
    return client.post("/register", json=ngo_registration).json()["token"]


@pytest.fixture
def other_ngo_token(client, ngo_registration):
    payload = {**ngo_registration, "email": "bank@example.com", "org_name": "Food Bank"}
    return client.post("/register", json=payload).json()["token"]


@pytest.fixture
def post_body():
    return {
        "canteen_name": "Campus Canteen",
        "items": "Rice, Dal",
        "portions": 40,
        "ready_by": (utcnow() + timedelta(hours=2)).isoformat(),
        "location": "Gate 3",
        "dietary": ["veg"],
        "contact": "+91-98765-43210",
    }


@pytest.fixture
def post_id(client, canteen_token, post_body):
    response = client.post("/posts", json=post_body, headers=auth(canteen_token))
    assert response.status_code == 201
    return response.json()["id"]


class TestHealth:

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json() == {"message": "FoodShare API running"}

    def test_database_check(self, client):
        data = client.get("/test").json()

        assert data["backend"] == "✅ Running"
        assert data["connection_status"] == "Connected"
        assert data["database_url"] == "✅ Set"
        assert data["database_name"] == "foodshare_test"

    def test_database_check_reports_injected_settings(self, settings, db, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "mongodb://elsewhere:27017")
        app = create_app(replace(settings, database_url=""), db)

        with TestClient(app) as test_client:
            data = test_client.get("/test").json()

        assert data["database_url"] == "❌ Not Set"


class TestAuthAPI:

    def test_register_returns_token(self, client, ngo_registration):
        response = client.post("/register", json=ngo_registration)

        assert response.status_code == 201
        data = response.json()
        assert data["token"]
        assert data["account"]["email"] == "hands@example.com"
        assert "password_hash" not in data["account"]

    def test_register_missing_role_fields(self, client, canteen_registration):
        payload = dict(canteen_registration)
        payload.pop("surplus_capacity")

        response = client.post("/register", json=payload)

        assert response.status_code == 400
        assert "surplus_capacity" in response.json()["detail"]

    def test_register_duplicate_email(self, client, ngo_registration):
        client.post("/register", json=ngo_registration)

        response = client.post("/register", json=ngo_registration)

        assert response.status_code == 400
        assert "already exists" in response.json()["detail"]

    def test_login(self, client, ngo_registration):
        client.post("/register", json=ngo_registration)

        response = client.post(
            "/login", json={"email": ngo_registration["email"], "password": ngo_registration["password"]}
        )

        assert response.status_code == 200
        assert response.json()["token"]

    def test_login_bad_credentials(self, client, ngo_registration):
        client.post("/register", json=ngo_registration)

        response = client.post("/login", json={"email": ngo_registration["email"], "password": "nope-nope"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid credentials"


class TestPostsAPI:

    def test_create_requires_token(self, client, post_body):
        response = client.post("/posts", json=post_body)

        assert response.status_code == 401

    def test_create_rejects_garbage_token(self, client, post_body):
        response = client.post("/posts", json=post_body, headers=auth("garbage"))

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid token."

    def test_ngo_cannot_create(self, client, ngo_token, post_body):
        response = client.post("/posts", json=post_body, headers=auth(ngo_token))

        assert response.status_code == 403

    def test_create_missing_fields(self, client, canteen_token, post_body):
        post_body.pop("items")

        response = client.post("/posts", json=post_body, headers=auth(canteen_token))

        assert response.status_code in (400, 422)

    def test_create_and_fetch(self, client, post_id, post_body):
        response = client.get(f"/posts/{post_id}")

        assert response.status_code == 200
        post = response.json()
        assert post["status"] == "open"
        assert post["claimed_by"] is None
        for key in ("canteen_name", "items", "portions", "location", "dietary", "contact"):
            assert post[key] == post_body[key]
        assert datetime.fromisoformat(post["ready_by"]) == datetime.fromisoformat(post_body["ready_by"])

    def test_get_unknown_post(self, client):
        assert client.get("/posts/5f0c8a9e1c9d440000a1b2c3").status_code == 404
        assert client.get("/posts/not-an-id").status_code == 404

    def test_list_filters(self, client, post_id):
        assert [p["id"] for p in client.get("/posts", params={"status": "open"}).json()] == [post_id]
        assert client.get("/posts", params={"status": "claimed"}).json() == []
        assert len(client.get("/posts", params={"dietary": "veg", "q": "gate"}).json()) == 1
        assert client.get("/posts", params={"q": "biryani"}).json() == []

    def test_list_invalid_status(self, client):
        assert client.get("/posts", params={"status": "archived"}).status_code == 422

    def test_canteen_cannot_claim(self, client, post_id, canteen_token):
        response = client.put(
            f"/posts/{post_id}/claim",
            json={"ngo_name": "Helping Hands", "phone": "+91-555"},
            headers=auth(canteen_token),
        )

        assert response.status_code == 403

    def test_non_owner_cannot_complete(self, client, post_id, ngo_token, other_canteen_token):
        client.put(
            f"/posts/{post_id}/claim",
            json={"ngo_name": "Helping Hands", "phone": "+91-555"},
            headers=auth(ngo_token),
        )

        response = client.put(f"/posts/{post_id}/complete", headers=auth(other_canteen_token))

        assert response.status_code == 403

    def test_non_owner_cannot_delete(self, client, post_id, other_canteen_token):
        response = client.delete(f"/posts/{post_id}", headers=auth(other_canteen_token))

        assert response.status_code == 403
        assert client.get(f"/posts/{post_id}").status_code == 200

    def test_full_scenario(self, client, post_id, canteen_token, ngo_token, other_ngo_token):
        claim = client.put(
            f"/posts/{post_id}/claim",
            json={"ngo_name": "Helping Hands", "phone": "+91-555"},
            headers=auth(ngo_token),
        )
        assert claim.status_code == 200
        assert claim.json()["status"] == "claimed"
        assert claim.json()["claimed_by"]["ngo_name"] == "Helping Hands"

        second = client.put(
            f"/posts/{post_id}/claim",
            json={"ngo_name": "Food Bank", "phone": "+91-777"},
            headers=auth(other_ngo_token),
        )
        assert second.status_code == 404

        complete = client.put(f"/posts/{post_id}/complete", headers=auth(canteen_token))
        assert complete.status_code == 200
        assert complete.json()["status"] == "completed"
        assert complete.json()["claimed_by"]["ngo_name"] == "Helping Hands"

        deleted = client.delete(f"/posts/{post_id}", headers=auth(canteen_token))
        assert deleted.status_code == 200
        assert deleted.json()["message"] == "Post deleted successfully."
        assert client.get(f"/posts/{post_id}").status_code == 404


class TestOverviewAPI:

    def test_counts(self, client, post_id, ngo_token):
        client.put(
            f"/posts/{post_id}/claim",
            json={"ngo_name": "Helping Hands", "phone": "+91-555"},
            headers=auth(ngo_token),
        )

        counts = client.get("/overview").json()

        assert counts["posts"] == 1
        assert counts["claimed"] == 1
        assert counts["open"] == 0
        assert counts["ngos"] == 1
        assert counts["canteens"] == 1
