"""Dependency injection singletons for Keyguard-Engine."""

from keyguard_engine.common.config import get_settings
from keyguard_engine.common.database import DatabaseManager
from keyguard_engine.keygen.registry import GeneratorRegistry, build_default_registry
from keyguard_engine.licensing.service import LicenseService
from keyguard_engine.projects.service import ProjectService
from keyguard_engine.usage.service import UsageService

_db: DatabaseManager | None = None
_registry: GeneratorRegistry | None = None
_licensing: LicenseService | None = None
_projects: ProjectService | None = None
_usage: UsageService | None = None


def get_db() -> DatabaseManager:
    global _db
    if _db is None:
        _db = DatabaseManager(get_settings())
    return _db


def get_registry() -> GeneratorRegistry:
    """Built once: built-in generators plus KEYGUARD_CUSTOM_GENERATORS, then sealed."""
    global _registry
    if _registry is None:
        _registry = build_default_registry(get_settings().custom_generator_paths)
    return _registry


def get_license_service() -> LicenseService:
    global _licensing
    if _licensing is None:
        _licensing = LicenseService(get_settings(), get_registry())
    return _licensing


def get_project_service() -> ProjectService:
    global _projects
    if _projects is None:
        _projects = ProjectService(get_settings(), get_registry())
    return _projects


def get_usage_service() -> UsageService:
    global _usage
    if _usage is None:
        _usage = UsageService(get_settings(), get_license_service())
    return _usage


def reset_singletons() -> None:
    """Reset all singletons (for testing)."""
    global _db, _registry, _licensing, _projects, _usage
    _db = None
    _registry = None
    _licensing = None
    _projects = None
    _usage = None
