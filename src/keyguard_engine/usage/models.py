"""SQLAlchemy models for usage tracking."""

from sqlalchemy import ForeignKey, Index, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from keyguard_engine.common.models import Base, TimestampMixin, generate_uuid


class UsageEventModel(Base, TimestampMixin):
    __tablename__ = "usage_events"
    __table_args__ = (
        Index("ix_usage_events_key_type", "license_key_id", "event_type"),
        Index("ix_usage_events_key_created", "license_key_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    license_key_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("license_keys.id", ondelete="CASCADE"), nullable=False, index=True
    )
    event_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    event_name: Mapped[str] = mapped_column(String(255), nullable=False)
    event_data: Mapped[dict] = mapped_column(JSON, default=dict)
    metadata_: Mapped[dict] = mapped_column("metadata", JSON, default=dict)
