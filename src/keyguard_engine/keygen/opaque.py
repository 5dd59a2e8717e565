"""
Opaque-hash license keys (v1).

Format: {PFX}-{XXXXXX}-{XXXXXX}-{XXXXXX}-{XXXXXX}
- 3-letter prefix
- 4 segments x 6 uppercase hex chars taken from SHA-256 over 32 random bytes

This variant is deliberately low-assurance: validation is a shape check only.
Nothing in the key binds it to a project or a user, so any string with the
right shape is accepted. Use it only where possession of a well-formed key is
enough; use signed-payload keys everywhere else.
"""

import hashlib
import os
import re
from typing import Any, Optional

from keyguard_engine.keygen.base import (
    DEFAULT_PREFIX,
    GeneratedKey,
    ProjectLike,
    UserLike,
    normalize_prefix,
    now_iso,
)

SEGMENTS = 4
SEGMENT_LEN = 6
RANDOM_BYTES = 32


class OpaqueHashGenerator:
    """Random, unsigned keys validated by shape alone."""

    identifier = "opaque-hash.v1"
    version = "v1"

    def __init__(self, project: ProjectLike, options: Optional[dict[str, Any]] = None):
        self.project = project
        self.options = options or {}
        self.prefix = normalize_prefix(self.options.get("prefix"), DEFAULT_PREFIX)
        self._pattern = re.compile(
            rf"{re.escape(self.prefix)}-[A-F0-9]{{{SEGMENT_LEN}}}(-[A-F0-9]{{{SEGMENT_LEN}}}){{{SEGMENTS - 1}}}"
        )

    @property
    def key_format(self) -> str:
        return "-".join([self.prefix] + ["X" * SEGMENT_LEN] * SEGMENTS)

    def generate(self, user: UserLike, options: Optional[dict[str, Any]] = None) -> GeneratedKey:
        digest = hashlib.sha256(os.urandom(RANDOM_BYTES)).hexdigest()
        segments = [
            digest[i * SEGMENT_LEN:(i + 1) * SEGMENT_LEN].upper()
            for i in range(SEGMENTS)
        ]
        key = "-".join([self.prefix] + segments)

        return GeneratedKey(
            key=key,
            version=self.version,
            format=self.key_format,
            metadata={
                "algorithm": "sha256",
                "segments": SEGMENTS,
                "segment_length": SEGMENT_LEN,
                "hash": digest,
                "generated_at": now_iso(),
            },
        )

    def validate(self, key: str, device_info: Optional[dict[str, Any]] = None) -> bool:
        if not isinstance(key, str):
            return False
        return self._pattern.fullmatch(key) is not None

    def decode(self, key: str) -> Optional[dict[str, Any]]:
        if not self.validate(key):
            return None
        parts = key.split("-")
        return {
            "version": self.version,
            "prefix": parts[0],
            "segments": parts[1:],
            "format": self.key_format,
        }
