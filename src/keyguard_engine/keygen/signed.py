"""
Signed-payload license keys (v2).

Format: {PFX2}-{BASE64_PAYLOAD}.{SIGNATURE}
- payload: compact JSON with project/user identity, issue time and a nonce
- signature: HMAC-SHA256 over the base64 payload with the project secret,
  truncated to 16 hex chars (64 bits)

Validation recomputes the MAC with the verifying project's secret, compares
in constant time, then rejects payloads issued for another project.
"""

import base64
import binascii
import hmac
import json
import re
import time
from typing import Any, Optional

from keyguard_engine.keygen.base import (
    DEFAULT_PREFIX,
    GeneratedKey,
    ProjectLike,
    UserLike,
    hmac_sha256_hex,
    normalize_prefix,
    now_iso,
    random_hex,
)

SIGNATURE_LEN = 16
NONCE_BYTES = 16
PAYLOAD_VERSION = "v2"


class SignedPayloadGenerator:
    """Keys that carry their own HMAC-signed claims."""

    identifier = "signed-payload.v2"
    version = PAYLOAD_VERSION

    def __init__(self, project: ProjectLike, options: Optional[dict[str, Any]] = None):
        self.project = project
        self.options = options or {}
        self.prefix = normalize_prefix(self.options.get("prefix"), DEFAULT_PREFIX) + "2"
        self._pattern = re.compile(
            rf"{re.escape(self.prefix)}-([A-Za-z0-9+/=]+)\.([a-f0-9]{{{SIGNATURE_LEN}}})"
        )

    @property
    def key_format(self) -> str:
        return f"{self.prefix}-{{BASE64_PAYLOAD}}.{{SIGNATURE}}"

    def _sign(self, encoded_payload: str) -> str:
        return hmac_sha256_hex(encoded_payload, self.project.secret_key)

    def _split(self, key: str) -> Optional[tuple[str, str]]:
        if not isinstance(key, str):
            return None
        match = self._pattern.fullmatch(key)
        if match is None:
            return None
        return match.group(1), match.group(2)

    @staticmethod
    def _load_payload(encoded_payload: str) -> Optional[dict[str, Any]]:
        try:
            payload = json.loads(base64.b64decode(encoded_payload, validate=True).decode("utf-8"))
        except (binascii.Error, ValueError, RecursionError):
            return None
        return payload if isinstance(payload, dict) else None

    def generate(self, user: UserLike, options: Optional[dict[str, Any]] = None) -> GeneratedKey:
        payload = {
            "project_id": str(self.project.id),
            "project_slug": self.project.slug,
            "user_id": str(user.id),
            "user_email": user.email,
            "version": PAYLOAD_VERSION,
            "timestamp": int(time.time()),
            "random": random_hex(NONCE_BYTES),
        }
        encoded = base64.b64encode(
            json.dumps(payload, separators=(",", ":")).encode("utf-8")
        ).decode("ascii")
        signature = self._sign(encoded)
        key = f"{self.prefix}-{encoded}.{signature[:SIGNATURE_LEN]}"

        return GeneratedKey(
            key=key,
            version=self.version,
            format=self.key_format,
            metadata={
                "algorithm": "hmac-sha256",
                "payload": payload,
                "signature_length": SIGNATURE_LEN,
                "full_signature": signature,
                "generated_at": now_iso(),
            },
        )

    def validate(self, key: str, device_info: Optional[dict[str, Any]] = None) -> bool:
        parts = self._split(key)
        if parts is None:
            return False
        encoded, provided = parts

        expected = self._sign(encoded)[:SIGNATURE_LEN]
        if not hmac.compare_digest(expected, provided):
            return False

        payload = self._load_payload(encoded)
        if payload is None or payload.get("version") != PAYLOAD_VERSION:
            return False
        return payload.get("project_id") == str(self.project.id)

    def decode(self, key: str) -> Optional[dict[str, Any]]:
        """Parse the key's claims. The signature is returned, not checked."""
        parts = self._split(key)
        if parts is None:
            return None
        encoded, signature = parts
        payload = self._load_payload(encoded)
        if payload is None:
            return None
        return {
            "version": self.version,
            "payload": payload,
            "signature": signature,
            "format": self.key_format,
            "project_id": payload.get("project_id"),
            "project_slug": payload.get("project_slug"),
            "user_id": payload.get("user_id"),
            "user_email": payload.get("user_email"),
            "timestamp": payload.get("timestamp"),
        }
