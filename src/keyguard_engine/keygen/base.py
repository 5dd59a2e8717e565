"""
Key generator interface shared by every algorithm variant.

A generator is any class constructed as ``Generator(project, options)`` that
exposes ``generate``, ``validate`` and ``decode``. Variants do not inherit
from a common base; the registry checks the shape when they are registered.
"""

import hashlib
import hmac
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

DEFAULT_PREFIX = "PFX"


class ProjectLike(Protocol):
    id: str
    slug: str
    secret_key: str


class UserLike(Protocol):
    id: str
    email: str


@dataclass
class GeneratedKey:
    """Output of a generator's ``generate`` call."""

    key: str
    version: str
    format: str
    metadata: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "version": self.version,
            "format": self.format,
            "metadata": self.metadata,
        }


class KeyGenerator(Protocol):
    identifier: str
    version: str
    key_format: str

    def generate(self, user: UserLike, options: Optional[dict[str, Any]] = None) -> GeneratedKey:
        ...

    def validate(self, key: str, device_info: Optional[dict[str, Any]] = None) -> bool:
        ...

    def decode(self, key: str) -> Optional[dict[str, Any]]:
        ...


def random_hex(num_bytes: int = 32) -> str:
    """Random bytes from the OS entropy source, hex-encoded."""
    return os.urandom(num_bytes).hex()


def hmac_sha256_hex(data: str, secret: str) -> str:
    return hmac.new(secret.encode(), data.encode(), hashlib.sha256).hexdigest()


def normalize_prefix(prefix: str | None, default: str = DEFAULT_PREFIX) -> str:
    """Uppercase alphanumeric prefix; falls back to the variant default."""
    if not prefix:
        return default
    cleaned = "".join(ch for ch in prefix.upper() if ch.isalnum())
    return cleaned or default


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
