"""SQLAlchemy models for projects and their licensees."""

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from keyguard_engine.common.models import Base, TimestampMixin, generate_uuid


class ProjectModel(Base, TimestampMixin):
    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, default="")

    # Never leaves the server except in the one-time creation response.
    secret_key: Mapped[str] = mapped_column(Text, nullable=False)
    # Reserved; no current generator reads it.
    encryption_key: Mapped[str] = mapped_column(Text, nullable=False)
    encryption_method: Mapped[str] = mapped_column(String(50), default="aes-256-cbc")

    key_generator: Mapped[str] = mapped_column(String(100), nullable=False)
    generator_options: Mapped[dict] = mapped_column(JSON, default=dict)

    default_max_devices: Mapped[int] = mapped_column(Integer, default=1)
    default_features: Mapped[list] = mapped_column(JSON, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    users: Mapped[list["ProjectUserModel"]] = relationship(back_populates="project")


class ProjectUserModel(Base, TimestampMixin):
    __tablename__ = "project_users"
    __table_args__ = (
        UniqueConstraint("project_id", "email", name="uq_project_user_email"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    project_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), default="")
    metadata_: Mapped[dict] = mapped_column("metadata", JSON, default=dict)

    project: Mapped["ProjectModel"] = relationship(back_populates="users", lazy="joined", innerjoin=True)
