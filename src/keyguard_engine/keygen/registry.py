"""
Key generator registry.

Maps an identifier (stored on each project) to a generator class and builds
generator instances bound to a project. The registry is filled during start-up
and then sealed; afterwards it is read-only and safe to share across requests.
"""

import importlib
import threading
from typing import Any, Optional

from keyguard_engine.common.exceptions import (
    DuplicateOrInvalidGenerator,
    RegistrySealedError,
    UnknownGenerator,
)
from keyguard_engine.common.logging import get_logger
from keyguard_engine.keygen.base import KeyGenerator, ProjectLike
from keyguard_engine.keygen.opaque import OpaqueHashGenerator
from keyguard_engine.keygen.signed import SignedPayloadGenerator

logger = get_logger("keygen.registry")

REQUIRED_METHODS = ("generate", "validate", "decode")
REQUIRED_ATTRIBUTES = ("version", "key_format")

BUILTIN_GENERATORS: dict[str, type] = {
    OpaqueHashGenerator.identifier: OpaqueHashGenerator,
    SignedPayloadGenerator.identifier: SignedPayloadGenerator,
}


def _satisfies_contract(generator_cls: Any) -> bool:
    if not isinstance(generator_cls, type):
        return False
    if not all(callable(getattr(generator_cls, name, None)) for name in REQUIRED_METHODS):
        return False
    return all(hasattr(generator_cls, name) for name in REQUIRED_ATTRIBUTES)


class GeneratorRegistry:
    """Identifier → generator class lookup."""

    def __init__(self):
        self._generators: dict[str, type] = {}
        self._lock = threading.Lock()
        self._sealed = False

    @property
    def sealed(self) -> bool:
        return self._sealed

    def register(self, identifier: str, generator_cls: type) -> None:
        """Register a generator class under ``identifier``.

        Raises:
            RegistrySealedError: called after start-up finished
            DuplicateOrInvalidGenerator: empty/taken identifier, or the class
                lacks callable generate/validate/decode or version/key_format
        """
        if not identifier:
            raise DuplicateOrInvalidGenerator("Generator identifier must not be empty")
        if not _satisfies_contract(generator_cls):
            raise DuplicateOrInvalidGenerator(
                f"{generator_cls!r} must be a class providing "
                f"{', '.join(REQUIRED_METHODS + REQUIRED_ATTRIBUTES)}"
            )
        with self._lock:
            if self._sealed:
                raise RegistrySealedError()
            if identifier in self._generators:
                raise DuplicateOrInvalidGenerator(
                    f"Generator '{identifier}' is already registered"
                )
            # copy-on-write so lock-free readers never see a dict mid-update
            generators = dict(self._generators)
            generators[identifier] = generator_cls
            self._generators = generators
        logger.debug("registered key generator %s", identifier)

    def seal(self) -> None:
        with self._lock:
            self._sealed = True

    def get(self, identifier: str) -> Optional[type]:
        return self._generators.get(identifier)

    def has(self, identifier: str) -> bool:
        return identifier in self._generators

    def make(
        self,
        identifier: str,
        project: ProjectLike,
        options: Optional[dict[str, Any]] = None,
    ) -> KeyGenerator:
        generator_cls = self.get(identifier)
        if generator_cls is None:
            raise UnknownGenerator(identifier)
        return generator_cls(project, options or {})

    def available(self) -> list[str]:
        """Registered identifiers in registration order."""
        return list(self._generators)

    def info(self, identifier: str, project: ProjectLike) -> Optional[dict[str, str]]:
        if not self.has(identifier):
            return None
        generator = self.make(identifier, project)
        return {
            "identifier": identifier,
            "class": f"{type(generator).__module__}.{type(generator).__qualname__}",
            "version": generator.version,
            "format": generator.key_format,
        }


def load_generator_class(path: str) -> type:
    """Import a generator class from a ``module:Class`` path."""
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise DuplicateOrInvalidGenerator(
            f"Generator path must look like 'package.module:Class', got {path!r}"
        )
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise DuplicateOrInvalidGenerator(f"Cannot import generator module {module_name!r}") from exc
    generator_cls = getattr(module, attr, None)
    if generator_cls is None:
        raise DuplicateOrInvalidGenerator(f"{module_name!r} has no attribute {attr!r}")
    return generator_cls


def build_default_registry(
    extra: Optional[dict[str, type | str]] = None,
    seal: bool = True,
) -> GeneratorRegistry:
    """Registry with the built-in variants plus any extra ones.

    ``extra`` values may be classes or ``module:Class`` import paths.
    """
    registry = GeneratorRegistry()
    for identifier, generator_cls in BUILTIN_GENERATORS.items():
        registry.register(identifier, generator_cls)
    for identifier, target in (extra or {}).items():
        generator_cls = load_generator_class(target) if isinstance(target, str) else target
        registry.register(identifier, generator_cls)
    if seal:
        registry.seal()
    return registry
