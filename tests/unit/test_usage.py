"""Tests for usage event tracking."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select, update

from keyguard_engine.common.config import KeyguardSettings
from keyguard_engine.common.database import DatabaseManager
from keyguard_engine.common.exceptions import InvalidKeyError
from keyguard_engine.keygen.registry import build_default_registry
from keyguard_engine.licensing.service import LicenseService
from keyguard_engine.projects.service import ProjectService
from keyguard_engine.usage.models import UsageEventModel
from keyguard_engine.usage.service import UsageService, period_start


def make_settings(**overrides) -> KeyguardSettings:
    defaults = {
        "db_url": "sqlite+aiosqlite://",
        "api_key": "test-admin-api-key",
    }
    defaults.update(overrides)
    return KeyguardSettings(**defaults)


@pytest.fixture
async def db():
    manager = DatabaseManager(make_settings())
    await manager.init()
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
def licensing():
    return LicenseService(make_settings(), build_default_registry())


@pytest.fixture
def svc(licensing):
    return UsageService(make_settings(), licensing)


async def _issue(db, licensing) -> str:
    projects = ProjectService(make_settings(), build_default_registry())
    async with db.get_session() as session:
        project = await projects.create_project(session, "Acme", "acme")
        user = await projects.create_user(session, project, "alice@example.com")
        key, _ = await licensing.generate_key(session, project, user)
        return key.key


class TestPeriodStart:
    NOW = datetime(2030, 5, 15, 13, 45, tzinfo=timezone.utc)  # a Wednesday

    def test_all(self):
        assert period_start("all", self.NOW) is None

    def test_today(self):
        assert period_start("today", self.NOW) == datetime(2030, 5, 15, tzinfo=timezone.utc)

    def test_week_starts_monday(self):
        assert period_start("week", self.NOW) == datetime(2030, 5, 13, tzinfo=timezone.utc)

    def test_month(self):
        assert period_start("month", self.NOW) == datetime(2030, 5, 1, tzinfo=timezone.utc)


class TestTrackUsage:
    async def test_track(self, db, svc, licensing):
        key = await _issue(db, licensing)
        async with db.get_session() as session:
            result = await svc.track_usage(
                session, key, "feature_used", "Export PDF",
                event_data={"pages": 3}, metadata={"app_version": "1.2"},
            )
        assert result["success"] is True
        assert result["usage_id"]
        async with db.get_session() as session:
            event = await session.get(UsageEventModel, result["usage_id"])
            assert event.event_data == {"pages": 3}
            assert event.metadata_ == {"app_version": "1.2"}

    async def test_unknown_key(self, db, svc):
        async with db.get_session() as session:
            with pytest.raises(InvalidKeyError):
                await svc.track_usage(session, "missing", "custom", "x")

    async def test_batch_merges_metadata(self, db, svc, licensing):
        key = await _issue(db, licensing)
        async with db.get_session() as session:
            result = await svc.track_usage_batch(
                session, key,
                [
                    {"type": "app_opened", "name": "Opened", "metadata": {"screen": "home"}},
                    {"name": "No type"},
                ],
                metadata={"app_version": "1.2", "screen": "default"},
            )
        assert result["tracked_count"] == 2
        async with db.get_session() as session:
            events = (await session.execute(
                select(UsageEventModel).order_by(UsageEventModel.event_name)
            )).scalars().all()
        by_name = {e.event_name: e for e in events}
        assert by_name["Opened"].metadata_ == {"app_version": "1.2", "screen": "home"}
        assert by_name["No type"].event_type == "custom"
        assert by_name["No type"].metadata_ == {"app_version": "1.2", "screen": "default"}


class TestUsageStats:
    async def test_counts_by_type(self, db, svc, licensing):
        key = await _issue(db, licensing)
        async with db.get_session() as session:
            await svc.track_usage(session, key, "app_opened", "Opened")
            await svc.track_usage(session, key, "app_opened", "Opened")
            await svc.track_usage(session, key, "feature_used", "Export")
        async with db.get_session() as session:
            stats = await svc.get_usage_stats(session, key)
        assert stats == {
            "total_events": 3,
            "events_by_type": {"app_opened": 2, "feature_used": 1},
            "period": "all",
        }

    async def test_period_filters_old_events(self, db, svc, licensing):
        key = await _issue(db, licensing)
        async with db.get_session() as session:
            old = await svc.track_usage(session, key, "app_opened", "Opened")
            await svc.track_usage(session, key, "app_opened", "Opened")
        async with db.get_session() as session:
            await session.execute(
                update(UsageEventModel)
                .where(UsageEventModel.id == old["usage_id"])
                .values(created_at=datetime.now(timezone.utc) - timedelta(days=40))
            )
        async with db.get_session() as session:
            assert (await svc.get_usage_stats(session, key, "today"))["total_events"] == 1
            assert (await svc.get_usage_stats(session, key, "all"))["total_events"] == 2

    async def test_unknown_period_falls_back_to_all(self, db, svc, licensing):
        key = await _issue(db, licensing)
        async with db.get_session() as session:
            stats = await svc.get_usage_stats(session, key, "decade")
        assert stats["period"] == "all"
