"""Keyguard-Engine configuration via pydantic-settings."""

import json
import warnings
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_DEFAULTS = {
    "api_key": "insecure-admin-key-change-me",
}


class KeyguardSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="KEYGUARD_")

    environment: str = "development"
    log_level: str = "INFO"

    # Database
    db_url: str = "sqlite+aiosqlite:///./data/keyguard.db"

    # API
    api_title: str = "Keyguard-Engine"
    api_version: str = "0.1.0"
    api_key: str = "insecure-admin-key-change-me"
    host: str = "0.0.0.0"
    port: int = 8080
    api_prefix: str = "/api"
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]

    # Project defaults
    default_generator: str = "signed-payload.v2"
    default_encryption_method: str = "aes-256-cbc"
    default_max_devices: int = 1
    default_features: list[str] = []

    # Extra key generators as a JSON object of identifier to "module:Class".
    # e.g. '{"acme.v1": "acme_keys.generators:AcmeGenerator"}'
    custom_generators: str = ""

    @property
    def custom_generator_paths(self) -> dict[str, str]:
        """Return custom generators as {identifier: "module:Class"}."""
        if not self.custom_generators:
            return {}
        try:
            raw = json.loads(self.custom_generators)
        except (json.JSONDecodeError, TypeError) as exc:
            raise ValueError(
                "KEYGUARD_CUSTOM_GENERATORS must be valid JSON "
                f"(e.g. '{{\"acme.v1\": \"pkg.module:Class\"}}'), got: {self.custom_generators!r}"
            ) from exc
        if not isinstance(raw, dict):
            raise ValueError("KEYGUARD_CUSTOM_GENERATORS must be a JSON object")
        return {str(k): str(v) for k, v in raw.items()}

    def validate_for_production(self) -> None:
        """Raise if insecure defaults are used in non-development environments."""
        insecure_fields = [
            field
            for field, default in _INSECURE_DEFAULTS.items()
            if getattr(self, field) == default
        ]

        if self.environment != "development" and insecure_fields:
            env_vars = ", ".join(f"KEYGUARD_{f.upper()}" for f in insecure_fields)
            raise RuntimeError(
                f"Insecure default values detected in '{self.environment}' environment. "
                f"Set these environment variables to secure values: {env_vars}. "
                "Generate secrets with: python -c \"import secrets; print(secrets.token_urlsafe(48))\""
            )

        if insecure_fields:
            warnings.warn(
                "Using insecure default admin key — set KEYGUARD_API_KEY for production",
                UserWarning,
                stacklevel=2,
            )


@lru_cache
def get_settings() -> KeyguardSettings:
    settings = KeyguardSettings()
    settings.validate_for_production()
    return settings
