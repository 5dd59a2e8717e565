"""License service — issue, activate, validate, revoke, deactivate."""

import enum
import hashlib
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from keyguard_engine.common.config import KeyguardSettings
from keyguard_engine.common.exceptions import (
    CodecError,
    DeviceMismatchError,
    DeviceNotActivatedError,
    InvalidKeyError,
    KeyInactiveError,
    LicenseError,
    LicenseExpiredError,
    MaxDevicesReachedError,
    StoreError,
)
from keyguard_engine.common.logging import get_logger
from keyguard_engine.crypto import codec
from keyguard_engine.keygen.base import GeneratedKey, KeyGenerator
from keyguard_engine.keygen.registry import GeneratorRegistry
from keyguard_engine.licensing.models import (
    ActivationModel,
    LicenseKeyModel,
    ValidationRecordModel,
    as_utc,
)
from keyguard_engine.projects.models import ProjectModel, ProjectUserModel

logger = get_logger("licensing")


class LicenseState(str, enum.Enum):
    """State of a (key, device) pair, derived from stored rows at request time."""

    ACTIVATABLE = "activatable"
    ACTIVE = "active"
    REVOKED_DEVICE = "revoked_device"
    REVOKED_KEY = "revoked_key"
    EXPIRED = "expired"


def derive_state(
    key: LicenseKeyModel,
    activation: Optional[ActivationModel] = None,
    now: Optional[datetime] = None,
) -> LicenseState:
    if not key.is_active:
        return LicenseState.REVOKED_KEY
    if key.is_expired(now):
        return LicenseState.EXPIRED
    if activation is None:
        return LicenseState.ACTIVATABLE
    return LicenseState.ACTIVE if activation.is_active else LicenseState.REVOKED_DEVICE


def key_ref(license_key: str) -> str:
    """Short, non-reversible reference to a key for log lines."""
    return hashlib.sha256(license_key.encode()).hexdigest()[:16]


def _iso(value: Optional[datetime]) -> Optional[str]:
    value = as_utc(value)
    return value.isoformat() if value else None


class LicenseService:
    """Core licensing operations."""

    def __init__(self, settings: KeyguardSettings, registry: GeneratorRegistry):
        self.settings = settings
        self.registry = registry

    # ── Generators ──

    def generator_for(
        self, project: ProjectModel, options: Optional[dict[str, Any]] = None
    ) -> KeyGenerator:
        merged = dict(project.generator_options or {})
        merged.update(options or {})
        return self.registry.make(project.key_generator, project, merged)

    # ── Issuance ──

    async def generate_key(
        self,
        session: AsyncSession,
        project: ProjectModel,
        user: ProjectUserModel,
        max_devices: int | None = None,
        features: list[str] | None = None,
        expiry_date: datetime | None = None,
        start_date: datetime | None = None,
        options: dict[str, Any] | None = None,
    ) -> tuple[LicenseKeyModel, GeneratedKey]:
        """Issue a key for ``user`` with the project's configured generator.

        ``max_devices`` and ``features`` default to the project's defaults.
        Returns (model, generator output).
        """
        if user.project_id != project.id:
            raise ValueError("User does not belong to this project")
        if max_devices is None:
            max_devices = project.default_max_devices
        if max_devices < 1:
            raise ValueError("max_devices must be at least 1")

        generated = self.generator_for(project, options).generate(user, options)

        license_obj = LicenseKeyModel(
            user=user,
            key=generated.key,
            key_version=generated.version,
            key_format=generated.format,
            key_metadata=generated.metadata,
            start_date=start_date,
            expiry_date=expiry_date,
            max_devices=max_devices,
            features=list(features) if features is not None else list(project.default_features or []),
            is_active=True,
            validation_count=0,
        )
        session.add(license_obj)
        await session.flush()

        logger.info(
            "license key issued",
            extra={"context": {
                "project": project.slug, "user_id": user.id,
                "key_ref": key_ref(generated.key), "generator": project.key_generator,
            }},
        )
        return license_obj, generated

    # ── Lookups ──

    async def get_key(
        self, session: AsyncSession, license_key: str, for_update: bool = False
    ) -> LicenseKeyModel | None:
        query = select(LicenseKeyModel).where(LicenseKeyModel.key == license_key)
        if for_update:
            query = query.with_for_update(of=LicenseKeyModel)
        result = await session.execute(query)
        return result.scalar_one_or_none()

    async def require_key(
        self, session: AsyncSession, license_key: str, for_update: bool = False
    ) -> LicenseKeyModel:
        key = await self.get_key(session, license_key, for_update=for_update)
        if key is None:
            raise InvalidKeyError("License key not found")
        return key

    async def find_activation(
        self, session: AsyncSession, key_id: str, device_id: str
    ) -> ActivationModel | None:
        result = await session.execute(
            select(ActivationModel).where(
                ActivationModel.license_key_id == key_id,
                ActivationModel.device_id == device_id,
            )
        )
        return result.scalar_one_or_none()

    async def count_active_activations(self, session: AsyncSession, key_id: str) -> int:
        result = await session.execute(
            select(func.count(ActivationModel.id)).where(
                ActivationModel.license_key_id == key_id,
                ActivationModel.is_active.is_(True),
            )
        )
        return result.scalar() or 0

    async def list_activations(
        self, session: AsyncSession, license_key: str
    ) -> tuple[LicenseKeyModel, list[ActivationModel]]:
        key = await self.require_key(session, license_key)
        result = await session.execute(
            select(ActivationModel)
            .where(ActivationModel.license_key_id == key.id)
            .order_by(ActivationModel.activated_at)
        )
        return key, list(result.scalars().all())

    async def decode_key(self, session: AsyncSession, license_key: str) -> dict[str, Any] | None:
        """Advisory decode with the owning project's generator; not a trust check."""
        key = await self.require_key(session, license_key)
        return self.generator_for(key.user.project).decode(license_key)

    # ── Device info ──

    def decrypt_device_info(self, encrypted_device_info: str, project: ProjectModel) -> dict[str, Any]:
        try:
            device_info = codec.decrypt(
                encrypted_device_info, project.secret_key, project.encryption_method
            )
        except CodecError as exc:
            raise DeviceMismatchError(
                f"Failed to decrypt device information: {exc.message}"
            ) from exc
        if not isinstance(device_info, dict):
            raise DeviceMismatchError("Failed to decrypt device information: expected a JSON object")
        return device_info

    # ── Activation / validation ──

    async def _authorize(
        self,
        session: AsyncSession,
        license_key: str,
        device_id: str,
        email: str,
        encrypted_device_info: str,
        for_update: bool = False,
    ) -> tuple[LicenseKeyModel, dict[str, Any]]:
        """Checks shared by activate and validate, in order."""
        key = await self.require_key(session, license_key, for_update=for_update)
        project = key.user.project

        device_info = self.decrypt_device_info(encrypted_device_info, project)
        if device_info.get("deviceId") != device_id:
            raise DeviceMismatchError("Device ID mismatch")
        if key.user.email != email:
            raise DeviceMismatchError("Email does not match license")

        if not key.is_active:
            raise KeyInactiveError()
        if key.is_expired():
            raise LicenseExpiredError()

        if not self.generator_for(project).validate(license_key, device_info):
            raise InvalidKeyError("Invalid key format")

        return key, device_info

    async def _record_validation(
        self,
        session: AsyncSession,
        activation: ActivationModel,
        validation_type: str,
        device_info: dict[str, Any],
        email: str,
        ip_address: str | None,
        user_agent: str | None,
    ) -> ValidationRecordModel:
        record = ValidationRecordModel(
            activation_id=activation.id,
            validation_type=validation_type,
            device_info=device_info,
            ip_address=ip_address,
            user_agent=user_agent,
            request_data={"email": email},
            response_status="success",
            validated_at=datetime.now(timezone.utc),
        )
        session.add(record)
        return record

    async def _reject(
        self,
        session: AsyncSession,
        operation: str,
        license_key: str,
        device_id: str,
        email: str,
        exc: LicenseError,
        ip_address: str | None,
        user_agent: str | None,
    ) -> None:
        """Log a refused attempt; record it too when the device is bound to the key.

        The record is only flushed; it persists if the caller commits.
        """
        logger.warning(
            "%s rejected: %s", operation, exc.code,
            extra={"context": {"key_ref": key_ref(license_key), "device_id": device_id}},
        )
        key = await self.get_key(session, license_key)
        if key is None:
            return
        activation = await self.find_activation(session, key.id, device_id)
        if activation is None:
            return
        session.add(ValidationRecordModel(
            activation_id=activation.id,
            validation_type=operation,
            device_info={},
            ip_address=ip_address,
            user_agent=user_agent,
            request_data={"email": email},
            response_status="failed",
            error_code=exc.code,
            validated_at=datetime.now(timezone.utc),
        ))
        await session.flush()

    async def activate(
        self,
        session: AsyncSession,
        license_key: str,
        device_id: str,
        email: str,
        encrypted_device_info: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> dict[str, Any]:
        """Bind a device to a key.

        Re-activating a device that is already bound succeeds without taking
        another slot; it only appends to the validation log.
        """
        try:
            # Row lock on the key serialises concurrent activations of it.
            key, device_info = await self._authorize(
                session, license_key, device_id, email, encrypted_device_info,
                for_update=True,
            )

            activation = await self.find_activation(session, key.id, device_id)
            if activation is not None and activation.is_active:
                await self._record_validation(
                    session, activation, "activate", device_info, email, ip_address, user_agent,
                )
                await session.flush()
                active = await self.count_active_activations(session, key.id)
                return self._activation_response(key, active, "Device already activated")

            active = await self.count_active_activations(session, key.id)
            if active >= key.max_devices:
                raise MaxDevicesReachedError(key.max_devices)
        except LicenseError as exc:
            await self._reject(
                session, "activate", license_key, device_id, email, exc, ip_address, user_agent,
            )
            raise

        now = datetime.now(timezone.utc)
        if activation is None:
            activation = ActivationModel(
                license_key_id=key.id,
                device_id=device_id,
                device_info=device_info,
                activated_at=now,
                is_active=True,
            )
            session.add(activation)
        else:
            activation.is_active = True
            activation.device_info = device_info
            activation.activated_at = now

        try:
            await session.flush()
        except IntegrityError as exc:
            raise StoreError("Activation conflicted with a concurrent write") from exc

        await self._record_validation(
            session, activation, "activate", device_info, email, ip_address, user_agent,
        )
        await session.flush()

        logger.info(
            "device activated",
            extra={"context": {"key_ref": key_ref(license_key), "device_id": device_id}},
        )
        return self._activation_response(key, active + 1, "License activated successfully")

    @staticmethod
    def _activation_response(key: LicenseKeyModel, active: int, message: str) -> dict[str, Any]:
        return {
            "success": True,
            "isValid": True,
            "expiryDate": _iso(key.expiry_date),
            "features": list(key.features or []),
            "maxDevices": key.max_devices,
            "activatedDevices": active,
            "message": message,
        }

    async def validate(
        self,
        session: AsyncSession,
        license_key: str,
        device_id: str,
        email: str,
        encrypted_device_info: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> dict[str, Any]:
        """Check that an activated device may keep using the key."""
        try:
            key, device_info = await self._authorize(
                session, license_key, device_id, email, encrypted_device_info,
            )
            activation = await self.find_activation(session, key.id, device_id)
            if activation is None or not activation.is_active:
                raise DeviceNotActivatedError()
        except LicenseError as exc:
            await self._reject(
                session, "validate", license_key, device_id, email, exc, ip_address, user_agent,
            )
            raise

        await self._record_validation(
            session, activation, "validate", device_info, email, ip_address, user_agent,
        )
        await session.execute(
            update(LicenseKeyModel)
            .where(LicenseKeyModel.id == key.id)
            .values(
                validation_count=LicenseKeyModel.validation_count + 1,
                last_validated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        await session.flush()
        await session.refresh(key, attribute_names=["validation_count", "last_validated_at"])

        logger.info(
            "license validated",
            extra={"context": {"key_ref": key_ref(license_key), "device_id": device_id}},
        )
        return {
            "success": True,
            "isValid": True,
            "expiryDate": _iso(key.expiry_date),
            "features": list(key.features or []),
            "maxDevices": key.max_devices,
            "validationCount": key.validation_count,
            "message": "License valid",
        }

    # ── Revocation ──

    async def revoke_key(self, session: AsyncSession, license_key: str) -> bool:
        """Disable the key and every device bound to it. Idempotent."""
        key = await self.require_key(session, license_key)
        key.is_active = False
        await session.execute(
            update(ActivationModel)
            .where(
                ActivationModel.license_key_id == key.id,
                ActivationModel.is_active.is_(True),
            )
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        await session.flush()
        logger.info("license key revoked", extra={"context": {"key_ref": key_ref(license_key)}})
        return True

    async def reactivate_key(self, session: AsyncSession, license_key: str) -> bool:
        """Lift the kill switch. Devices revoked with the key must activate again."""
        key = await self.require_key(session, license_key)
        key.is_active = True
        await session.flush()
        logger.info("license key reactivated", extra={"context": {"key_ref": key_ref(license_key)}})
        return True

    async def deactivate_device(
        self, session: AsyncSession, license_key: str, device_id: str
    ) -> bool:
        """Release one device's slot. Returns False when the device was never bound."""
        key = await self.require_key(session, license_key)
        activation = await self.find_activation(session, key.id, device_id)
        if activation is None:
            return False
        activation.is_active = False
        await session.flush()
        logger.info(
            "device deactivated",
            extra={"context": {"key_ref": key_ref(license_key), "device_id": device_id}},
        )
        return True
