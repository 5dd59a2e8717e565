"""Integration tests for usage tracking endpoints."""

import pytest


async def _issue(client, admin_headers) -> str:
    await client.post("/api/projects", json={"name": "Acme", "slug": "acme"}, headers=admin_headers)
    user = (await client.post(
        "/api/projects/acme/users", json={"email": "alice@example.com"}, headers=admin_headers,
    )).json()
    return (await client.post(
        f"/api/projects/acme/users/{user['id']}/keys", json={}, headers=admin_headers,
    )).json()["key"]


class TestTrackEndpoints:
    async def test_track(self, client, admin_headers):
        key = await _issue(client, admin_headers)
        resp = await client.post("/api/license/track", json={
            "license_key": key, "event_type": "feature_used", "event_name": "Export",
            "event_data": {"pages": 4},
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["usage_id"]

    async def test_track_unknown_key_is_404(self, client):
        resp = await client.post("/api/license/track", json={
            "license_key": "nope", "event_type": "custom", "event_name": "x",
        })
        assert resp.status_code == 404
        assert resp.json()["code"] == "INVALID_KEY"

    async def test_track_batch(self, client, admin_headers):
        key = await _issue(client, admin_headers)
        resp = await client.post("/api/license/track-batch", json={
            "license_key": key,
            "events": [{"type": "app_opened", "name": "Opened"}, {"name": "Defaulted"}],
            "metadata": {"app_version": "1.0"},
        })
        assert resp.status_code == 200
        assert resp.json()["tracked_count"] == 2

    async def test_empty_batch_is_422(self, client, admin_headers):
        key = await _issue(client, admin_headers)
        resp = await client.post("/api/license/track-batch", json={"license_key": key, "events": []})
        assert resp.status_code == 422


class TestUsageStatsEndpoint:
    async def test_stats(self, client, admin_headers):
        key = await _issue(client, admin_headers)
        for event_type in ("app_opened", "app_opened", "error_occurred"):
            await client.post("/api/license/track", json={
                "license_key": key, "event_type": event_type, "event_name": "e",
            })
        resp = await client.get("/api/license/usage-stats", params={"license_key": key, "period": "today"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["total_events"] == 3
        assert data["events_by_type"] == {"app_opened": 2, "error_occurred": 1}
        assert data["period"] == "today"

    async def test_bad_period_is_422(self, client, admin_headers):
        key = await _issue(client, admin_headers)
        resp = await client.get("/api/license/usage-stats", params={"license_key": key, "period": "year"})
        assert resp.status_code == 422

    async def test_unknown_key_is_404(self, client):
        resp = await client.get("/api/license/usage-stats", params={"license_key": "nope"})
        assert resp.status_code == 404
