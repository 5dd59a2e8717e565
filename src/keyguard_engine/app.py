"""FastAPI application factory for Keyguard-Engine."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from keyguard_engine.common.config import get_settings
from keyguard_engine.common.exceptions import GeneratorRegistryError, StoreError
from keyguard_engine.common.logging import get_logger, setup_logging
from keyguard_engine.common.schemas import ErrorResponse, HealthResponse

logger = get_logger("app")


def create_app() -> FastAPI:
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        setup_logging(settings.log_level)
        from keyguard_engine.deps import get_db, get_registry
        registry = get_registry()
        logger.info("key generators loaded: %s", ", ".join(registry.available()))
        db = get_db()
        await db.init()
        await db.create_all()
        yield
        # Shutdown
        await db.close()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StoreError)
    @app.exception_handler(GeneratorRegistryError)
    @app.exception_handler(SQLAlchemyError)
    async def internal_error_handler(request: Request, exc: Exception):
        logger.exception("internal failure on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(code="INTERNAL_ERROR", message="Internal server error").model_dump(),
        )

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(version=settings.api_version)

    # Mount routers
    from keyguard_engine.licensing.router import router as licensing_router
    from keyguard_engine.licensing.admin_router import router as keys_router
    from keyguard_engine.usage.router import router as usage_router
    from keyguard_engine.projects.router import router as project_router

    prefix = settings.api_prefix
    app.include_router(licensing_router, prefix=prefix, tags=["licensing"])
    app.include_router(usage_router, prefix=prefix, tags=["usage"])
    app.include_router(project_router, prefix=prefix, tags=["projects"])
    app.include_router(keys_router, prefix=prefix, tags=["keys"])

    return app
