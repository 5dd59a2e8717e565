"""Project and licensee management service."""

import secrets
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from keyguard_engine.common.config import KeyguardSettings
from keyguard_engine.common.exceptions import (
    ProjectNotFoundError,
    UnknownGenerator,
    UserNotFoundError,
)
from keyguard_engine.crypto.codec import SUPPORTED_METHODS
from keyguard_engine.keygen.registry import GeneratorRegistry
from keyguard_engine.projects.models import ProjectModel, ProjectUserModel


def generate_secret() -> str:
    return secrets.token_urlsafe(32)


class ProjectService:
    """Project (tenant) and user operations."""

    def __init__(self, settings: KeyguardSettings, registry: GeneratorRegistry):
        self.settings = settings
        self.registry = registry

    def _check_generator(self, identifier: str) -> None:
        if not self.registry.has(identifier):
            raise UnknownGenerator(identifier)

    @staticmethod
    def _check_encryption_method(method: str) -> None:
        if method not in SUPPORTED_METHODS:
            raise ValueError(
                f"Unsupported encryption method {method!r}; "
                f"expected one of {', '.join(SUPPORTED_METHODS)}"
            )

    # ── Projects ──

    async def create_project(
        self,
        session: AsyncSession,
        name: str,
        slug: str,
        key_generator: str | None = None,
        **kwargs: Any,
    ) -> ProjectModel:
        key_generator = key_generator or self.settings.default_generator
        self._check_generator(key_generator)
        encryption_method = kwargs.get("encryption_method") or self.settings.default_encryption_method
        self._check_encryption_method(encryption_method)

        max_devices = kwargs.get("default_max_devices")
        features = kwargs.get("default_features")
        project = ProjectModel(
            name=name,
            slug=slug,
            description=kwargs.get("description", ""),
            secret_key=kwargs.get("secret_key") or generate_secret(),
            encryption_key=generate_secret(),
            encryption_method=encryption_method,
            key_generator=key_generator,
            generator_options=kwargs.get("generator_options") or {},
            default_max_devices=max_devices if max_devices is not None else self.settings.default_max_devices,
            default_features=list(features) if features is not None else list(self.settings.default_features),
            is_active=True,
        )
        session.add(project)
        await session.flush()
        return project

    async def get_by_slug(self, session: AsyncSession, slug: str) -> ProjectModel | None:
        result = await session.execute(
            select(ProjectModel).where(ProjectModel.slug == slug)
        )
        return result.scalar_one_or_none()

    async def get_by_id(self, session: AsyncSession, project_id: str) -> ProjectModel | None:
        return await session.get(ProjectModel, project_id)

    async def require_by_slug(self, session: AsyncSession, slug: str) -> ProjectModel:
        project = await self.get_by_slug(session, slug)
        if project is None:
            raise ProjectNotFoundError(f"Project '{slug}' not found")
        return project

    async def list_projects(self, session: AsyncSession) -> list[ProjectModel]:
        result = await session.execute(select(ProjectModel).order_by(ProjectModel.created_at))
        return list(result.scalars().all())

    async def update_project(
        self, session: AsyncSession, slug: str, **updates: Any
    ) -> ProjectModel:
        project = await self.require_by_slug(session, slug)
        if updates.get("key_generator") is not None:
            self._check_generator(updates["key_generator"])
        if updates.get("encryption_method") is not None:
            self._check_encryption_method(updates["encryption_method"])

        for field in (
            "name", "description", "key_generator", "generator_options",
            "encryption_method", "default_max_devices", "default_features", "is_active",
        ):
            if field in updates and updates[field] is not None:
                setattr(project, field, updates[field])
        await session.flush()
        return project

    # ── Users ──

    async def create_user(
        self,
        session: AsyncSession,
        project: ProjectModel,
        email: str,
        name: str = "",
        metadata: dict | None = None,
    ) -> ProjectUserModel:
        user = ProjectUserModel(
            project_id=project.id,
            email=email,
            name=name,
            metadata_=metadata or {},
        )
        session.add(user)
        await session.flush()
        # populate the eager relationship for callers that issue keys right away
        await session.refresh(user, attribute_names=["project"])
        return user

    async def get_user(
        self, session: AsyncSession, project: ProjectModel, user_id: str
    ) -> ProjectUserModel | None:
        result = await session.execute(
            select(ProjectUserModel).where(
                ProjectUserModel.id == user_id,
                ProjectUserModel.project_id == project.id,
            )
        )
        return result.scalar_one_or_none()

    async def require_user(
        self, session: AsyncSession, project: ProjectModel, user_id: str
    ) -> ProjectUserModel:
        user = await self.get_user(session, project, user_id)
        if user is None:
            raise UserNotFoundError(f"User '{user_id}' not found in project '{project.slug}'")
        return user

    async def get_user_by_email(
        self, session: AsyncSession, project: ProjectModel, email: str
    ) -> ProjectUserModel | None:
        result = await session.execute(
            select(ProjectUserModel).where(
                ProjectUserModel.email == email,
                ProjectUserModel.project_id == project.id,
            )
        )
        return result.scalar_one_or_none()

    async def list_users(
        self, session: AsyncSession, project: ProjectModel
    ) -> list[ProjectUserModel]:
        result = await session.execute(
            select(ProjectUserModel)
            .where(ProjectUserModel.project_id == project.id)
            .order_by(ProjectUserModel.created_at)
        )
        return list(result.scalars().all())
