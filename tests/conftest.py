"""Shared test fixtures for Keyguard-Engine."""

import os
import pytest
from httpx import ASGITransport, AsyncClient


API_KEY = "test-admin-api-key"


@pytest.fixture
def api_key():
    return API_KEY


@pytest.fixture
def app():
    """Create a test app with in-memory DB."""
    os.environ["KEYGUARD_DB_URL"] = "sqlite+aiosqlite://"
    os.environ["KEYGUARD_API_KEY"] = API_KEY
    os.environ["KEYGUARD_ENVIRONMENT"] = "development"

    # Clear caches and singletons so new env vars take effect
    from keyguard_engine.common.config import get_settings
    get_settings.cache_clear()

    from keyguard_engine.deps import reset_singletons
    reset_singletons()

    from keyguard_engine.app import create_app
    return create_app()


@pytest.fixture
async def client(app):
    # Manually init DB since ASGITransport doesn't run lifespan
    from keyguard_engine.deps import get_db
    db = get_db()
    await db.init()
    await db.create_all()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await db.close()


@pytest.fixture
def admin_headers():
    return {"X-Keyguard-Api-Key": API_KEY}
