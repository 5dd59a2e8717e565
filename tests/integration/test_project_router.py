"""Integration tests for project and licensee admin endpoints."""

import pytest


class TestAuth:
    async def test_missing_api_key(self, client):
        resp = await client.get("/api/projects")
        assert resp.status_code == 422

    async def test_wrong_api_key(self, client):
        resp = await client.get("/api/projects", headers={"X-Keyguard-Api-Key": "wrong"})
        assert resp.status_code == 403


class TestGenerators:
    async def test_list_generators(self, client, admin_headers):
        resp = await client.get("/api/projects/generators", headers=admin_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert [g["identifier"] for g in data] == ["opaque-hash.v1", "signed-payload.v2"]
        assert data[0]["format"] == "PFX-XXXXXX-XXXXXX-XXXXXX-XXXXXX"
        assert data[1]["class"].endswith("SignedPayloadGenerator")


class TestProjectEndpoints:
    async def test_create_project(self, client, admin_headers):
        resp = await client.post("/api/projects", json={
            "name": "Acme", "slug": "acme", "default_max_devices": 2,
        }, headers=admin_headers)
        assert resp.status_code == 201
        data = resp.json()
        assert data["slug"] == "acme"
        assert data["secret_key"]
        assert data["key_generator"] == "signed-payload.v2"
        assert data["default_max_devices"] == 2

    async def test_secret_not_returned_after_creation(self, client, admin_headers):
        await client.post("/api/projects", json={"name": "Acme", "slug": "acme"}, headers=admin_headers)
        resp = await client.get("/api/projects/acme", headers=admin_headers)
        assert resp.status_code == 200
        assert "secret_key" not in resp.json()

    async def test_duplicate_slug_is_409(self, client, admin_headers):
        await client.post("/api/projects", json={"name": "Acme", "slug": "acme"}, headers=admin_headers)
        resp = await client.post("/api/projects", json={"name": "Acme", "slug": "acme"}, headers=admin_headers)
        assert resp.status_code == 409

    async def test_unknown_generator_is_422(self, client, admin_headers):
        resp = await client.post("/api/projects", json={
            "name": "Acme", "slug": "acme", "key_generator": "nope",
        }, headers=admin_headers)
        assert resp.status_code == 422

    async def test_bad_slug_is_422(self, client, admin_headers):
        resp = await client.post("/api/projects", json={"name": "Acme", "slug": "Not A Slug"}, headers=admin_headers)
        assert resp.status_code == 422

    async def test_list_and_update(self, client, admin_headers):
        await client.post("/api/projects", json={"name": "A", "slug": "a"}, headers=admin_headers)
        await client.post("/api/projects", json={"name": "B", "slug": "b"}, headers=admin_headers)
        resp = await client.get("/api/projects", headers=admin_headers)
        assert len(resp.json()) == 2

        resp = await client.patch("/api/projects/a", json={
            "encryption_method": "aes-256-cbc-hkdf",
        }, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["encryption_method"] == "aes-256-cbc-hkdf"

    async def test_update_missing_is_404(self, client, admin_headers):
        resp = await client.patch("/api/projects/nope", json={"name": "x"}, headers=admin_headers)
        assert resp.status_code == 404

    async def test_get_missing_is_404(self, client, admin_headers):
        resp = await client.get("/api/projects/nope", headers=admin_headers)
        assert resp.status_code == 404


class TestUserEndpoints:
    async def test_create_and_list(self, client, admin_headers):
        await client.post("/api/projects", json={"name": "Acme", "slug": "acme"}, headers=admin_headers)
        resp = await client.post("/api/projects/acme/users", json={
            "email": "alice@example.com", "name": "Alice", "metadata": {"plan": "pro"},
        }, headers=admin_headers)
        assert resp.status_code == 201
        assert resp.json()["metadata"] == {"plan": "pro"}

        resp = await client.get("/api/projects/acme/users", headers=admin_headers)
        assert [u["email"] for u in resp.json()] == ["alice@example.com"]

    async def test_duplicate_email_is_409(self, client, admin_headers):
        await client.post("/api/projects", json={"name": "Acme", "slug": "acme"}, headers=admin_headers)
        body = {"email": "alice@example.com"}
        await client.post("/api/projects/acme/users", json=body, headers=admin_headers)
        resp = await client.post("/api/projects/acme/users", json=body, headers=admin_headers)
        assert resp.status_code == 409

    async def test_invalid_email_is_422(self, client, admin_headers):
        await client.post("/api/projects", json={"name": "Acme", "slug": "acme"}, headers=admin_headers)
        resp = await client.post("/api/projects/acme/users", json={"email": "nope"}, headers=admin_headers)
        assert resp.status_code == 422

    async def test_unknown_project_is_404(self, client, admin_headers):
        resp = await client.post("/api/projects/nope/users", json={
            "email": "alice@example.com",
        }, headers=admin_headers)
        assert resp.status_code == 404
