"""API endpoint tests"""

import pytest
from fastapi.testclient import TestClient

from pagesync.api.deps import get_db
from pagesync.core.config import settings
from pagesync.main import app
from pagesync.policy import Policy, PolicyRegistry
from pagesync.services.sync_service import SyncService

SYNC_AUTH = {"Authorization": "Bearer sync-secret"}
WEBHOOK_AUTH = {"Authorization": "Bearer hook-secret"}


class TestAPI:
    """Test API endpoints"""

    @pytest.fixture
    def client(self, session_factory, source, monkeypatch):
        """Test client wired to in-memory SQLite and the in-memory source"""
        monkeypatch.setattr(settings, "SYNC_SECRET", "sync-secret")
        monkeypatch.setattr(settings, "WEBHOOK_SECRET", "hook-secret")

        registry = PolicyRegistry([
            Policy(data_source_id="db-blog", alias="blog", notion_token="test-token", tags_property="Tags"),
            Policy(data_source_id="db-docs", alias="docs", notion_token="test-token"),
        ])

        def override_db():
            db = session_factory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_db
        app.state.sync_service = SyncService(registry, session_factory, source_factory=lambda token: source)
        yield TestClient(app)
        app.dependency_overrides.clear()
        app.state.sync_service = None

    # -------------------------------------------------------------------------
    # Sync trigger
    # -------------------------------------------------------------------------
    def test_sync_requires_token(self, client):
        response = client.post("/sync")
        assert response.status_code == 401
        assert response.json()["error"] == "unauthorized"

    def test_sync_rejects_wrong_token(self, client):
        response = client.get("/sync", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_sync_all(self, client, source, make_page):
        source.add(make_page(1, title="Blog Post"))

        response = client.post("/sync", headers=SYNC_AUTH)

        assert response.status_code == 200
        body = response.json()
        assert body["since"] is None
        assert [(s["alias"], s["status"]) for s in body["summaries"]] == [("blog", "ok"), ("docs", "no-changes")]

    def test_sync_one_via_get(self, client, source, make_page):
        source.add(make_page(1, title="Blog Post"))

        response = client.get("/sync?dataSourceId=blog&full=true", headers=SYNC_AUTH)

        assert response.status_code == 200
        assert [s["data_source_id"] for s in response.json()["summaries"]] == ["db-blog"]

    def test_sync_with_body(self, client, source, make_page):
        source.add(make_page(1, title="Old", edited="2024-01-01T00:00:00Z"))

        response = client.post(
            "/sync",
            headers=SYNC_AUTH,
            json={"dataSourceId": "blog", "since": "2025-01-01T00:00:00Z"},
        )

        assert response.status_code == 200
        assert response.json()["summaries"][0]["status"] == "no-changes"

    def test_sync_error_is_500(self, client, source):
        source.fail_query_at = 1
        response = client.post("/sync", headers=SYNC_AUTH)
        assert response.status_code == 500
        assert all(s["status"] == "error" for s in response.json()["summaries"])

    def test_sync_unknown_data_source(self, client):
        response = client.post("/sync", headers=SYNC_AUTH, json={"dataSourceId": "nope"})
        assert response.status_code == 404
        assert response.json()["error"] == "unknown_data_source"

    # -------------------------------------------------------------------------
    # Webhook
    # -------------------------------------------------------------------------
    def test_webhook_requires_token(self, client, page_id):
        response = client.post("/sync/webhook", json={"documentId": page_id(1)})
        assert response.status_code == 401

    def test_webhook_syncs_page(self, client, source, make_page, page_id):
        source.add(make_page(1, title="Fresh From Notion"))

        response = client.post("/sync/webhook", headers=WEBHOOK_AUTH, json={"documentId": page_id(1)})

        assert response.status_code == 200
        assert response.json()["record"]["slug"] == "fresh-from-notion"

    def test_webhook_token_in_query(self, client, source, make_page, page_id):
        source.add(make_page(1, title="Query Token"))
        response = client.post("/sync/webhook?token=hook-secret", json={"documentId": page_id(1)})
        assert response.status_code == 200

    def test_webhook_unconfigured_data_source(self, client, source, make_page, page_id):
        source.add(make_page(1, title="Elsewhere", data_source_id="db-unknown"))
        response = client.post("/sync/webhook", headers=WEBHOOK_AUTH, json={"documentId": page_id(1)})
        assert response.status_code == 404

    def test_webhook_invalid_page(self, client, source, make_page, page_id):
        source.add(make_page(1, title=None))
        response = client.post("/sync/webhook", headers=WEBHOOK_AUTH, json={"documentId": page_id(1)})
        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"

    def test_webhook_source_failure(self, client):
        response = client.post("/sync/webhook", headers=WEBHOOK_AUTH, json={"documentId": "missing"})
        assert response.status_code == 502
        assert response.json()["error"] == "source_error"

    # -------------------------------------------------------------------------
    # Pages, health, stats
    # -------------------------------------------------------------------------
    def test_pages(self, client, source, make_page):
        source.add(
            make_page(1, title="Published One", tags=["python"]),
            make_page(2, title="Published Two"),
        )
        client.post("/sync", headers=SYNC_AUTH)

        listing = client.get("/pages/blog")
        assert listing.status_code == 200
        assert listing.json()["total_count"] == 2

        tagged = client.get("/pages/blog?tag=python")
        assert [p["slug"] for p in tagged.json()["data"]] == ["published-one"]
        assert tagged.json()["data"][0]["tags"] == ["python"]
        assert tagged.json()["total_count"] == 1

        assert client.get("/pages/db-blog/count").json()["count"] == 2
        assert client.get("/pages/blog/count?tag=python").json()["count"] == 1
        assert client.get("/pages/blog/count?tag=rust").json()["count"] == 0
        assert client.get("/pages/blog/published-two").json()["title"] == "Published Two"

    def test_page_not_found(self, client):
        assert client.get("/pages/blog/nope").status_code == 404

    def test_pages_unknown_data_source(self, client):
        assert client.get("/pages/nope").status_code == 404

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["database"] == "ok"

    def test_stats(self, client, source, make_page):
        source.add(make_page(1, title="Tracked"))
        client.post("/sync", headers=SYNC_AUTH)

        runs = client.get("/stats").json()
        assert {run["status"] for run in runs} == {"ok", "no-changes"}

        checkpoints = client.get("/stats/checkpoints").json()
        assert [cp["data_source_id"] for cp in checkpoints] == ["db-blog"]

        sources = client.get("/stats/sources").json()
        assert [s["pages"] for s in sources] == [1, 0]

    def test_invalid_endpoint(self, client):
        response = client.get("/invalid")
        assert response.status_code == 404
