"""SQLAlchemy models for license keys, activations and the validation log."""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from keyguard_engine.common.models import Base, TimestampMixin, generate_uuid, utcnow
from keyguard_engine.projects.models import ProjectUserModel


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class LicenseKeyModel(Base, TimestampMixin):
    __tablename__ = "license_keys"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("project_users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    key: Mapped[str] = mapped_column(String(1024), unique=True, nullable=False, index=True)
    key_version: Mapped[str] = mapped_column(String(50), nullable=False)
    key_format: Mapped[str] = mapped_column(String(255), nullable=False)
    key_metadata: Mapped[dict] = mapped_column(JSON, default=dict)

    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    expiry_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    max_devices: Mapped[int] = mapped_column(Integer, default=1)
    features: Mapped[list] = mapped_column(JSON, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    validation_count: Mapped[int] = mapped_column(Integer, default=0)
    last_validated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    user: Mapped["ProjectUserModel"] = relationship(lazy="joined", innerjoin=True)
    activations: Mapped[list["ActivationModel"]] = relationship(
        back_populates="license_key", passive_deletes=True
    )

    def is_expired(self, now: datetime | None = None) -> bool:
        expiry = as_utc(self.expiry_date)
        if expiry is None:
            return False
        return expiry <= (now or datetime.now(timezone.utc))


class ActivationModel(Base, TimestampMixin):
    __tablename__ = "activations"
    __table_args__ = (
        # One row per (key, device); deactivation flips is_active instead of
        # deleting, so this also caps active rows per pair at one.
        UniqueConstraint("license_key_id", "device_id", name="uq_activation_key_device"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    license_key_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("license_keys.id", ondelete="CASCADE"), nullable=False, index=True
    )
    device_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    device_info: Mapped[dict] = mapped_column(JSON, default=dict)
    activated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    license_key: Mapped["LicenseKeyModel"] = relationship(back_populates="activations")


class ValidationRecordModel(Base, TimestampMixin):
    """Append-only log of activate/validate attempts."""

    __tablename__ = "validation_records"
    __table_args__ = (
        Index("ix_validation_records_activation_time", "activation_id", "validated_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    activation_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("activations.id", ondelete="CASCADE"), nullable=False
    )
    validation_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    device_info: Mapped[dict] = mapped_column(JSON, default=dict)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    request_data: Mapped[dict] = mapped_column(JSON, default=dict)
    response_status: Mapped[str] = mapped_column(String(20), nullable=False)
    error_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    validated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True
    )
