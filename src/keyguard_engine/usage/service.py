"""Usage service — record telemetry events and summarise them."""

from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from keyguard_engine.common.config import KeyguardSettings
from keyguard_engine.licensing.service import LicenseService
from keyguard_engine.usage.models import UsageEventModel

PERIODS = ("all", "today", "week", "month")


def period_start(period: str, now: datetime | None = None) -> datetime | None:
    """Start of the reporting window in UTC; None means no lower bound."""
    now = now or datetime.now(timezone.utc)
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "today":
        return today
    if period == "week":
        return today - timedelta(days=today.weekday())
    if period == "month":
        return today.replace(day=1)
    return None


class UsageService:
    """Usage event tracking operations."""

    def __init__(self, settings: KeyguardSettings, licensing: LicenseService):
        self.settings = settings
        self.licensing = licensing

    async def track_usage(
        self,
        session: AsyncSession,
        license_key: str,
        event_type: str,
        event_name: str,
        event_data: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> dict:
        key = await self.licensing.require_key(session, license_key)

        event = UsageEventModel(
            license_key_id=key.id,
            event_type=event_type,
            event_name=event_name,
            event_data=event_data or {},
            metadata_=metadata or {},
        )
        session.add(event)
        await session.flush()

        return {
            "success": True,
            "message": "Usage tracked successfully",
            "usage_id": event.id,
        }

    async def track_usage_batch(
        self,
        session: AsyncSession,
        license_key: str,
        events: list[dict[str, Any]],
        metadata: dict[str, Any] | None = None,
    ) -> dict:
        """Record several events at once; per-event metadata overrides the shared one."""
        key = await self.licensing.require_key(session, license_key)

        common = metadata or {}
        session.add_all([
            UsageEventModel(
                license_key_id=key.id,
                event_type=event.get("type") or "custom",
                event_name=event.get("name") or "Unknown Event",
                event_data=event.get("data") or {},
                metadata_={**common, **(event.get("metadata") or {})},
            )
            for event in events
        ])
        await session.flush()

        return {
            "success": True,
            "message": "Batch usage tracked successfully",
            "tracked_count": len(events),
        }

    async def get_usage_stats(
        self,
        session: AsyncSession,
        license_key: str,
        period: str = "all",
    ) -> dict:
        key = await self.licensing.require_key(session, license_key)
        if period not in PERIODS:
            period = "all"

        filters = [UsageEventModel.license_key_id == key.id]
        since = period_start(period)
        if since is not None:
            filters.append(UsageEventModel.created_at >= since)

        result = await session.execute(
            select(
                UsageEventModel.event_type,
                func.count(UsageEventModel.id).label("count"),
            )
            .where(*filters)
            .group_by(UsageEventModel.event_type)
        )
        events_by_type = {row.event_type: row.count for row in result}

        return {
            "total_events": sum(events_by_type.values()),
            "events_by_type": events_by_type,
            "period": period,
        }
