"""API tests: routes, auth override, error mapping and middleware headers

Authentication is replaced through app.dependency_overrides; generation goes
through the FakeGateway installed with set_gateway().
"""

from __future__ import annotations

import itertools

import pytest
from fastapi.testclient import TestClient

from daper.api.app import app
from daper.api.middleware.user_auth import AuthenticatedUser, get_current_user
from daper.ideas.service import get_idea_service
from daper.observability.telemetry import get_counter, time_block
from daper.users.models import UserRole
from daper.users.repository import UserRepository
from daper.utils.error_sanitizer import GENERIC_MESSAGES

_ips = itertools.count(1)


@pytest.fixture
def client(fake_gateway):
    """Client signed in as user-a; each test gets its own rate-limit bucket."""
    n = next(_ips)
    test_client = TestClient(app, headers={"X-Forwarded-For": f"10.0.{n // 250}.{n % 250 + 1}"})
    sign_in("user-a")
    yield test_client
    app.dependency_overrides.clear()


def sign_in(uid: str) -> None:
    app.dependency_overrides[get_current_user] = lambda: AuthenticatedUser(
        id=uid, email=f"{uid}@example.com", name=uid.title(), picture=None
    )


def login(client: TestClient, uid: str = "user-a") -> dict:
    sign_in(uid)
    response = client.post("/api/users/me")
    assert response.status_code == 200
    return response.json()


def create_idea(client: TestClient, request_id: str = "req-1") -> dict:
    response = client.post(
        "/api/ideas",
        json={"idea": "A subscription box for rare teas", "language": "English", "request_id": request_id},
    )
    assert response.status_code == 201, response.text
    return response.json()


# ============================================================================
# Service endpoints
# ============================================================================


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert "ready" in body["llm"]


def test_root_lists_endpoints(client):
    assert client.get("/").json()["service"] == "Daper API"


def test_security_headers(client):
    response = client.get("/health")

    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["X-Content-Type-Options"] == "nosniff"


def test_unauthenticated_request_is_401(fake_gateway):
    app.dependency_overrides.clear()
    response = TestClient(app).get("/api/ideas")
    assert response.status_code == 401


def test_validation_errors_are_sanitized(client):
    login(client)

    response = client.post("/api/ideas", json={"idea": "A subscription box for rare teas"})

    assert response.status_code == 422
    assert response.json()["invalid_fields"] == ["request_id"]


# ============================================================================
# Users
# ============================================================================


def test_login_creates_user_from_token(client):
    user = login(client)

    assert user["uid"] == "user-a"
    assert user["email"] == "user-a@example.com"
    assert user["role"] == "free"


def test_login_accepts_profile_override(client):
    response = client.post("/api/users/me", json={"display_name": "Ada L."})
    assert response.json()["display_name"] == "Ada L."


def test_usage(client):
    login(client)
    create_idea(client)

    usage = client.get("/api/users/me/usage").json()

    assert usage == {"role": "free", "daily_left": 1, "ideas_left": 4}


def test_usage_for_paid_user(client):
    login(client)
    UserRepository.set_role("user-a", UserRole.PAID)

    usage = client.get("/api/users/me/usage").json()

    assert usage["daily_left"] is None
    assert usage["ideas_left"] is None


def test_usage_before_login_is_404(client):
    assert client.get("/api/users/me/usage").status_code == 404


# ============================================================================
# Ideas
# ============================================================================


def test_generate_and_read_idea(client):
    login(client)
    idea = create_idea(client)

    assert idea["title"] == "Smart Garden"
    assert idea["user_id"] == "user-a"

    fetched = client.get(f"/api/ideas/{idea['id']}").json()
    assert fetched["id"] == idea["id"]

    listing = client.get("/api/ideas").json()
    assert listing["count"] == 1


def test_duplicate_request_id_is_409(client):
    login(client)
    create_idea(client)

    response = client.post(
        "/api/ideas",
        json={"idea": "A subscription box for rare teas", "request_id": "req-1"},
    )

    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "duplicate_submission"


def test_short_idea_is_400(client):
    login(client)

    response = client.post("/api/ideas", json={"idea": "short", "request_id": "req-1"})

    assert response.status_code == 400
    assert "at least 10 characters" in response.json()["detail"]["message"]


def test_daily_quota_is_429_with_upgrade_url(client):
    login(client)
    create_idea(client, "req-1")
    create_idea(client, "req-2")

    response = client.post(
        "/api/ideas",
        json={"idea": "A subscription box for rare teas", "request_id": "req-3"},
    )

    assert response.status_code == 429
    detail = response.json()["detail"]
    assert detail["reason"] == "daily"
    assert detail["upgrade_url"].endswith("/upgrade")


def test_generation_failure_is_502(client, fake_gateway):
    login(client)
    fake_gateway.fail.add("summary")

    response = client.post(
        "/api/ideas",
        json={"idea": "A subscription box for rare teas", "request_id": "req-1"},
    )

    assert response.status_code == 502
    assert response.json()["detail"]["message"] == "Failed to generate idea. Please try again."


def test_other_users_idea_is_404(client):
    login(client)
    idea = create_idea(client)

    login(client, "user-b")

    assert client.get(f"/api/ideas/{idea['id']}").status_code == 404


def test_delete_by_other_user_is_403(client):
    login(client)
    idea = create_idea(client)

    login(client, "user-b")
    assert client.delete(f"/api/ideas/{idea['id']}").status_code == 403

    login(client)
    assert client.delete(f"/api/ideas/{idea['id']}").status_code == 204
    assert client.get(f"/api/ideas/{idea['id']}").status_code == 404


def test_favorites(client):
    login(client)
    idea = create_idea(client)

    response = client.put(f"/api/ideas/{idea['id']}/favorite", json={"favorited": True})
    assert response.json() == {"id": idea["id"], "favorited": True}

    favorites = client.get("/api/ideas/favorites").json()
    assert [i["id"] for i in favorites["ideas"]] == [idea["id"]]


def test_patch_idea(client):
    login(client)
    idea = create_idea(client)

    response = client.patch(f"/api/ideas/{idea['id']}", json={"outline": "1. New"})

    assert response.status_code == 200
    assert response.json()["outline"] == "1. New"
    assert client.patch(f"/api/ideas/{idea['id']}", json={}).status_code == 400


def test_suggestions_and_business_plan(client):
    login(client)
    idea = create_idea(client)

    suggestions = client.post(f"/api/ideas/{idea['id']}/suggestions")
    assert suggestions.status_code == 200
    assert suggestions.json()["feasibilityScore"] == 6

    refused = client.post(f"/api/ideas/{idea['id']}/business-plan")
    assert refused.status_code == 403
    assert refused.json()["detail"]["reason"] == "upgrade_required"

    UserRepository.set_role("user-a", UserRole.PAID)
    plan = client.post(f"/api/ideas/{idea['id']}/business-plan")
    assert plan.status_code == 200
    assert plan.json()["metadata"]["businessModel"] == "Subscription"


def test_share_link_public_read(client):
    login(client)
    idea = create_idea(client)

    share_id = client.post(f"/api/ideas/{idea['id']}/share").json()["share_id"]

    app.dependency_overrides.clear()
    response = client.get(f"/api/shared/{share_id}")
    assert response.status_code == 200
    body = response.json()
    assert body["title"] == idea["title"]
    assert body["id"] == idea["id"]
    assert "user_id" not in body
    assert "share_id" not in body
    assert "favorited" not in body


# ============================================================================
# Mind maps
# ============================================================================


def test_mind_map_editing_flow(client):
    login(client)
    idea = create_idea(client)
    base = f"/api/ideas/{idea['id']}/mindmap"

    tree = client.post(base, json={"summary": idea["summary"], "language": "English"}).json()
    assert tree["title"] == "Idea"

    tree = client.post(f"{base}/nodes", json={"parent_title": "Product", "title": "Pricing"}).json()
    product = next(c for c in tree["children"] if c["title"] == "Product")
    assert [c["title"] for c in product["children"]] == ["Pricing"]

    tree = client.patch(f"{base}/nodes", json={"path": "Idea>Product>Pricing", "new_title": "Plans"}).json()
    product = next(c for c in tree["children"] if c["title"] == "Product")
    assert [c["title"] for c in product["children"]] == ["Plans"]

    tree = client.delete(f"{base}/nodes", params={"path": "Idea>Product>Plans"}).json()
    product = next(c for c in tree["children"] if c["title"] == "Product")
    assert product["children"] == []

    stored = client.get(f"/api/ideas/{idea['id']}").json()["mind_map"]
    assert stored == tree


def test_mind_map_expand(client):
    login(client)
    idea = create_idea(client)
    base = f"/api/ideas/{idea['id']}/mindmap"
    client.post(base, json={"summary": idea["summary"]})

    response = client.post(
        f"{base}/expand",
        json={"idea_context": idea["summary"], "parent_title": "Marketing", "existing_children": ["Channels"]},
    )

    marketing = response.json()["children"][0]
    assert [c["title"] for c in marketing["children"]] == ["Channels", "Social", "Email"]


def test_mind_map_error_statuses(client):
    login(client)
    idea = create_idea(client)
    base = f"/api/ideas/{idea['id']}/mindmap"

    assert client.post(f"{base}/nodes", json={"parent_title": "Idea", "title": "X"}).status_code == 404

    client.post(base, json={"summary": idea["summary"]})

    root_delete = client.delete(f"{base}/nodes", params={"path": "Idea"})
    assert root_delete.status_code == 400
    assert root_delete.json()["detail"]["error"] == "cannot_delete_root"

    mismatch = client.patch(f"{base}/nodes", json={"path": "Other>Product", "new_title": "X"})
    assert mismatch.status_code == 400
    assert mismatch.json()["detail"]["error"] == "path_mismatch"


def test_startup_initializes_schema_and_purges_stale_locks(fake_gateway):
    from datetime import UTC, datetime, timedelta

    from daper.infrastructure import submission_lock

    submission_lock.try_acquire("old-req", "user-a", now=datetime.now(UTC) - timedelta(hours=2))

    with TestClient(app) as started:
        assert started.get("/health").status_code == 200

    assert submission_lock.get_status("old-req") is None


def test_health_reports_generation_latency(client):
    with time_block("llm.title.latency"):
        pass

    latency = client.get("/health").json()["llm"]["latency"]

    assert latency["title"]["count"] == 1
    assert latency["business_plan"]["count"] == 0


def test_unhandled_errors_are_generic_500(fake_gateway):
    class BrokenService:
        def list_archived_ideas(self, *args, **kwargs):
            raise RuntimeError("/srv/daper/daper.db: database disk image is malformed")

    sign_in("user-a")
    app.dependency_overrides[get_idea_service] = lambda: BrokenService()
    try:
        response = TestClient(app, raise_server_exceptions=False).get("/api/ideas")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 500
    assert response.json() == {"detail": GENERIC_MESSAGES[500]}
    assert get_counter("api.unhandled_errors") == 1
