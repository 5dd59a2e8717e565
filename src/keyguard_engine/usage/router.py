"""Usage API router."""

from fastapi import APIRouter, Query

from keyguard_engine.common.exceptions import LicenseError
from keyguard_engine.licensing.router import license_error_response
from keyguard_engine.usage.schemas import (
    TrackBatchRequest,
    TrackBatchResponse,
    TrackRequest,
    TrackResponse,
    UsageStatsResponse,
)

router = APIRouter(prefix="/license")


def _get_service():
    from keyguard_engine.deps import get_usage_service
    return get_usage_service()


def _get_db():
    from keyguard_engine.deps import get_db
    return get_db()


@router.post("/track", response_model=TrackResponse)
async def track(body: TrackRequest):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            return await svc.track_usage(
                session,
                license_key=body.license_key,
                event_type=body.event_type,
                event_name=body.event_name,
                event_data=body.event_data,
                metadata=body.metadata,
            )
    except LicenseError as e:
        return license_error_response(e)


@router.post("/track-batch", response_model=TrackBatchResponse)
async def track_batch(body: TrackBatchRequest):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            return await svc.track_usage_batch(
                session,
                license_key=body.license_key,
                events=[event.model_dump() for event in body.events],
                metadata=body.metadata,
            )
    except LicenseError as e:
        return license_error_response(e)


@router.get("/usage-stats", response_model=UsageStatsResponse)
async def usage_stats(
    license_key: str = Query(..., min_length=1),
    period: str = Query("all", pattern="^(all|today|week|month)$"),
):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            return await svc.get_usage_stats(session, license_key, period=period)
    except LicenseError as e:
        return license_error_response(e)
