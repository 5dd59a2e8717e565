"""Public license API router — activate and validate."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from keyguard_engine.common.exceptions import LicenseError
from keyguard_engine.common.schemas import ErrorResponse
from keyguard_engine.licensing.schemas import (
    ActivateResponse,
    LicenseRequest,
    ValidateResponse,
)

router = APIRouter(prefix="/license")

_ERRORS = {
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
}


def _get_service():
    from keyguard_engine.deps import get_license_service
    return get_license_service()


def _get_db():
    from keyguard_engine.deps import get_db
    return get_db()


def license_error_response(exc: LicenseError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(code=exc.code, message=exc.message).model_dump(),
    )


def _client_meta(request: Request) -> tuple[str | None, str | None]:
    ip_address = request.client.host if request.client else None
    return ip_address, request.headers.get("user-agent")


@router.post("/activate", response_model=ActivateResponse, responses=_ERRORS)
async def activate(body: LicenseRequest, request: Request):
    svc = _get_service()
    db = _get_db()
    ip_address, user_agent = _client_meta(request)
    # Rejections are handled inside the session so their audit record commits.
    async with db.get_session() as session:
        try:
            return await svc.activate(
                session,
                license_key=body.license_key,
                device_id=body.device_id,
                email=body.email,
                encrypted_device_info=body.encrypted_device_info,
                ip_address=ip_address,
                user_agent=user_agent,
            )
        except LicenseError as e:
            return license_error_response(e)


@router.post("/validate", response_model=ValidateResponse, responses=_ERRORS)
async def validate(body: LicenseRequest, request: Request):
    svc = _get_service()
    db = _get_db()
    ip_address, user_agent = _client_meta(request)
    async with db.get_session() as session:
        try:
            return await svc.validate(
                session,
                license_key=body.license_key,
                device_id=body.device_id,
                email=body.email,
                encrypted_device_info=body.encrypted_device_info,
                ip_address=ip_address,
                user_agent=user_agent,
            )
        except LicenseError as e:
            return license_error_response(e)
