"""Key administration router — issue, revoke, reactivate, inspect."""

from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException

from keyguard_engine.common.exceptions import (
    InvalidKeyError,
    ProjectNotFoundError,
    UnknownGenerator,
    UserNotFoundError,
)
from keyguard_engine.common.security import require_api_key
from keyguard_engine.licensing.models import LicenseKeyModel
from keyguard_engine.licensing.schemas import (
    ActivationResponse,
    DeactivateDeviceRequest,
    KeyActionRequest,
    KeyActionResponse,
    KeyActivationsResponse,
    KeyDecodeResponse,
    KeyIssueRequest,
    KeyIssueResponse,
    KeyResponse,
)
from keyguard_engine.licensing.service import derive_state

router = APIRouter()


def _get_service():
    from keyguard_engine.deps import get_license_service
    return get_license_service()


def _get_projects():
    from keyguard_engine.deps import get_project_service
    return get_project_service()


def _get_db():
    from keyguard_engine.deps import get_db
    return get_db()


def _key_response(key: LicenseKeyModel) -> KeyResponse:
    return KeyResponse(
        id=key.id,
        key=key.key,
        key_version=key.key_version,
        key_format=key.key_format,
        user_id=key.user_id,
        max_devices=key.max_devices,
        features=key.features or [],
        start_date=key.start_date,
        expiry_date=key.expiry_date,
        is_active=key.is_active,
        validation_count=key.validation_count,
        created_at=key.created_at,
    )


@router.post(
    "/projects/{slug}/users/{user_id}/keys",
    response_model=KeyIssueResponse,
    status_code=201,
)
async def issue_key(
    slug: str, user_id: str, body: KeyIssueRequest, _=Depends(require_api_key)
):
    svc = _get_service()
    projects = _get_projects()
    db = _get_db()

    expiry_date = body.expiry_date
    if expiry_date is None and body.days_valid is not None:
        expiry_date = datetime.now(timezone.utc) + timedelta(days=body.days_valid)

    try:
        async with db.get_session() as session:
            project = await projects.require_by_slug(session, slug)
            user = await projects.require_user(session, project, user_id)
            key, generated = await svc.generate_key(
                session,
                project,
                user,
                max_devices=body.max_devices,
                features=body.features,
                expiry_date=expiry_date,
                start_date=body.start_date,
                options=body.options,
            )
            return KeyIssueResponse(
                **_key_response(key).model_dump(),
                metadata=generated.metadata,
            )
    except (ProjectNotFoundError, UserNotFoundError) as e:
        raise HTTPException(status_code=404, detail=e.message)
    except UnknownGenerator as e:
        raise HTTPException(status_code=422, detail=e.message)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.post("/keys/revoke", response_model=KeyActionResponse)
async def revoke_key(body: KeyActionRequest, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            await svc.revoke_key(session, body.license_key)
            return KeyActionResponse(success=True, message="License key revoked")
    except InvalidKeyError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.post("/keys/reactivate", response_model=KeyActionResponse)
async def reactivate_key(body: KeyActionRequest, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            await svc.reactivate_key(session, body.license_key)
            return KeyActionResponse(success=True, message="License key reactivated")
    except InvalidKeyError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.post("/keys/deactivate-device", response_model=KeyActionResponse)
async def deactivate_device(body: DeactivateDeviceRequest, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            found = await svc.deactivate_device(session, body.license_key, body.device_id)
    except InvalidKeyError as e:
        raise HTTPException(status_code=404, detail=e.message)
    if not found:
        return KeyActionResponse(success=False, message="Device was never activated")
    return KeyActionResponse(success=True, message="Device deactivated")


@router.get("/keys/{license_key:path}/activations", response_model=KeyActivationsResponse)
async def list_activations(license_key: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            key, activations = await svc.list_activations(session, license_key)
            items = [
                ActivationResponse(
                    id=a.id,
                    device_id=a.device_id,
                    device_info=a.device_info or {},
                    activated_at=a.activated_at,
                    is_active=a.is_active,
                    state=derive_state(key, a).value,
                )
                for a in activations
            ]
            return KeyActivationsResponse(
                license_key_id=key.id,
                max_devices=key.max_devices,
                active_devices=sum(1 for a in activations if a.is_active),
                activations=items,
            )
    except InvalidKeyError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.get("/keys/{license_key:path}/decode", response_model=KeyDecodeResponse)
async def decode_key(license_key: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            decoded = await svc.decode_key(session, license_key)
            return KeyDecodeResponse(valid_shape=decoded is not None, decoded=decoded)
    except InvalidKeyError as e:
        raise HTTPException(status_code=404, detail=e.message)
