"""Project admin router — requires the admin API key."""

from types import SimpleNamespace

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError

from keyguard_engine.common.exceptions import ProjectNotFoundError, UnknownGenerator
from keyguard_engine.common.security import require_api_key
from keyguard_engine.projects.models import ProjectModel, ProjectUserModel
from keyguard_engine.projects.schemas import (
    GeneratorInfo,
    ProjectCreate,
    ProjectCreateResponse,
    ProjectResponse,
    ProjectUpdate,
    UserCreate,
    UserResponse,
)

router = APIRouter(prefix="/projects")


def _get_service():
    from keyguard_engine.deps import get_project_service
    return get_project_service()


def _get_registry():
    from keyguard_engine.deps import get_registry
    return get_registry()


def _get_db():
    from keyguard_engine.deps import get_db
    return get_db()


def _project_response(project: ProjectModel) -> ProjectResponse:
    return ProjectResponse.model_validate(project)


def _user_response(user: ProjectUserModel) -> UserResponse:
    return UserResponse(
        id=user.id,
        project_id=user.project_id,
        email=user.email,
        name=user.name,
        metadata=user.metadata_ or {},
        created_at=user.created_at,
    )


@router.get("/generators", response_model=list[GeneratorInfo])
async def list_generators(_=Depends(require_api_key)):
    registry = _get_registry()
    # formats depend only on options, so an empty project is enough to render them
    sample = SimpleNamespace(id="", slug="", secret_key="")
    return [
        GeneratorInfo(**registry.info(identifier, sample))
        for identifier in registry.available()
    ]


@router.post("", response_model=ProjectCreateResponse, status_code=201)
async def create_project(body: ProjectCreate, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            project = await svc.create_project(
                session,
                name=body.name,
                slug=body.slug,
                key_generator=body.key_generator,
                description=body.description,
                generator_options=body.generator_options,
                encryption_method=body.encryption_method,
                default_max_devices=body.default_max_devices,
                default_features=body.default_features,
            )
            return ProjectCreateResponse(
                **_project_response(project).model_dump(),
                secret_key=project.secret_key,
            )
    except UnknownGenerator as e:
        raise HTTPException(status_code=422, detail=e.message)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except IntegrityError:
        raise HTTPException(status_code=409, detail=f"Project '{body.slug}' already exists")


@router.get("", response_model=list[ProjectResponse])
async def list_projects(_=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        projects = await svc.list_projects(session)
        return [_project_response(p) for p in projects]


@router.get("/{slug}", response_model=ProjectResponse)
async def get_project(slug: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        project = await svc.get_by_slug(session, slug)
        if project is None:
            raise HTTPException(status_code=404, detail="Project not found")
        return _project_response(project)


@router.patch("/{slug}", response_model=ProjectResponse)
async def update_project(slug: str, body: ProjectUpdate, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            project = await svc.update_project(
                session, slug, **body.model_dump(exclude_none=True)
            )
            return _project_response(project)
    except ProjectNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except UnknownGenerator as e:
        raise HTTPException(status_code=422, detail=e.message)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


# ── Users ──

@router.post("/{slug}/users", response_model=UserResponse, status_code=201)
async def create_user(slug: str, body: UserCreate, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            project = await svc.require_by_slug(session, slug)
            user = await svc.create_user(
                session, project, body.email, name=body.name, metadata=body.metadata,
            )
            return _user_response(user)
    except ProjectNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except IntegrityError:
        raise HTTPException(status_code=409, detail=f"User '{body.email}' already exists")


@router.get("/{slug}/users", response_model=list[UserResponse])
async def list_users(slug: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            project = await svc.require_by_slug(session, slug)
            users = await svc.list_users(session, project)
            return [_user_response(u) for u in users]
    except ProjectNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
