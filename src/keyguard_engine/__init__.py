"""Keyguard-Engine: license key issuance, device activation and validation server."""

from keyguard_engine.client import LicenseClient
from keyguard_engine.crypto.codec import decrypt, encrypt
from keyguard_engine.keygen.base import GeneratedKey, KeyGenerator
from keyguard_engine.keygen.registry import GeneratorRegistry, build_default_registry

__all__ = [
    "LicenseClient",
    "encrypt",
    "decrypt",
    "GeneratedKey",
    "KeyGenerator",
    "GeneratorRegistry",
    "build_default_registry",
]
__version__ = "0.1.0"
