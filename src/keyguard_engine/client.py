"""
LicenseClient SDK — sync client for Keyguard-Engine.

Embedded in licensed applications to activate and validate a key on the
current machine and to report usage events.
"""

import hashlib
import json
import platform
import socket
import sys
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

import httpx

from keyguard_engine.crypto import codec

# uuid.getnode() sets this bit when it had to invent a random node id
_RANDOM_NODE_BIT = 1 << 40


@dataclass
class ClientLicenseResult:
    """Result of activate() and validate() calls."""

    success: bool
    valid: bool = False
    code: str = ""
    message: str = ""
    expiry_date: Optional[datetime] = None
    features: list[str] = field(default_factory=list)
    max_devices: int = 0
    activated_devices: Optional[int] = None
    validation_count: Optional[int] = None


@dataclass
class ClientUsageResult:
    """Result of track_usage() and track_usage_batch() calls."""

    success: bool
    code: str = ""
    message: str = ""
    usage_id: Optional[str] = None
    tracked_count: int = 0


class LicenseClient:
    """
    Synchronous HTTP client for Keyguard-Engine.

    ``secret_key`` is the project secret; it only encrypts the device
    fingerprint and is never sent to the server.
    """

    def __init__(
        self,
        server_url: str = "http://localhost:8080",
        secret_key: str = "",
        timeout: int = 30,
        max_retries: int = 3,
        retry_backoff_base: float = 0.5,
        encryption_method: str = codec.METHOD_PADDED,
        api_prefix: str = "/api",
    ):
        if encryption_method not in codec.SUPPORTED_METHODS:
            raise ValueError(f"Unsupported encryption method {encryption_method!r}")
        self.server_url = server_url.rstrip("/")
        self.secret_key = secret_key
        self.max_retries = max_retries
        self.retry_backoff_base = retry_backoff_base
        self.encryption_method = encryption_method
        self.api_prefix = api_prefix.rstrip("/")
        self._device_info: Optional[dict[str, Any]] = None
        self._http = httpx.Client(
            base_url=self.server_url,
            timeout=timeout,
        )

    def _request(
        self,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """Central HTTP method with retry and structured error handling.

        Retries on:
        - httpx.TimeoutException and other transport errors
        - 5xx status codes
        - 429 (rate limit)

        No retry on other 4xx errors; the server's error body is returned.
        """
        last_error = None
        for attempt in range(self.max_retries):
            try:
                resp = getattr(self._http, method)(f"{self.api_prefix}{path}", **kwargs)
                if resp.status_code >= 500 or resp.status_code == 429:
                    last_error = f"HTTP {resp.status_code}"
                    if attempt < self.max_retries - 1:
                        time.sleep(self.retry_backoff_base * (2 ** attempt))
                        continue
                    return {
                        "success": False,
                        "code": "SERVER_ERROR",
                        "message": f"Server error: {resp.status_code}",
                    }
                if resp.status_code >= 400:
                    return self._client_error(resp)
                return resp.json()
            except httpx.TimeoutException:
                last_error = "timeout"
                if attempt < self.max_retries - 1:
                    time.sleep(self.retry_backoff_base * (2 ** attempt))
                    continue
            except httpx.HTTPError as e:
                last_error = str(e)
                if attempt < self.max_retries - 1:
                    time.sleep(self.retry_backoff_base * (2 ** attempt))
                    continue
            except json.JSONDecodeError:
                return {"success": False, "code": "JSON_ERROR", "message": "Invalid JSON response"}

        return {
            "success": False,
            "code": "CONNECTION_ERROR",
            "message": f"All {self.max_retries} retries exhausted: {last_error}",
        }

    @staticmethod
    def _client_error(resp: httpx.Response) -> dict[str, Any]:
        try:
            body = resp.json()
        except json.JSONDecodeError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        message = body.get("message") or body.get("detail") or f"Client error: {resp.status_code}"
        return {
            "success": False,
            "code": body.get("code") or "CLIENT_ERROR",
            "message": message if isinstance(message, str) else json.dumps(message),
        }

    # ── Device fingerprint ──

    @staticmethod
    def get_device_id() -> str:
        """SHA-256 of the primary MAC address, or of hostname_platform without one."""
        node = uuid.getnode()
        if node & _RANDOM_NODE_BIT:
            source = f"{socket.gethostname()}_{platform.system()}"
        else:
            source = ":".join(f"{(node >> shift) & 0xFF:02x}" for shift in range(40, -1, -8))
        return hashlib.sha256(source.encode("utf-8")).hexdigest()

    def collect_device_info(self) -> dict[str, Any]:
        return {
            "deviceId": self.get_device_id(),
            "hostname": socket.gethostname(),
            "platform": platform.system(),
            "arch": platform.machine(),
            "pythonVersion": platform.python_version(),
            "timestamp": int(time.time() * 1000),
        }

    @property
    def device_info(self) -> dict[str, Any]:
        """Fingerprint collected once per client."""
        if self._device_info is None:
            self._device_info = self.collect_device_info()
        return self._device_info

    def encrypt_device_info(self, device_info: Optional[dict[str, Any]] = None) -> str:
        return codec.encrypt(
            device_info if device_info is not None else self.device_info,
            self.secret_key,
            self.encryption_method,
        )

    # ── Activation / validation ──

    def _license_body(self, license_key: str, email: str) -> dict[str, Any]:
        info = self.device_info
        return {
            "license_key": license_key,
            "device_id": info["deviceId"],
            "email": email,
            "encrypted_device_info": self.encrypt_device_info(info),
        }

    @staticmethod
    def _parse_result(data: dict[str, Any]) -> ClientLicenseResult:
        expiry_date = None
        if data.get("expiryDate"):
            try:
                expiry_date = datetime.fromisoformat(data["expiryDate"])
            except (ValueError, TypeError):
                pass

        return ClientLicenseResult(
            success=data.get("success", False),
            valid=data.get("isValid", False),
            code=data.get("code", ""),
            message=data.get("message", ""),
            expiry_date=expiry_date,
            features=data.get("features", []),
            max_devices=data.get("maxDevices", 0),
            activated_devices=data.get("activatedDevices"),
            validation_count=data.get("validationCount"),
        )

    def activate(self, license_key: str, email: str) -> ClientLicenseResult:
        """Bind this machine to the license key."""
        data = self._request("post", "/license/activate", json=self._license_body(license_key, email))
        return self._parse_result(data)

    def validate(self, license_key: str, email: str) -> ClientLicenseResult:
        """Check that this (already activated) machine may use the key."""
        data = self._request("post", "/license/validate", json=self._license_body(license_key, email))
        return self._parse_result(data)

    def is_valid(self, license_key: str, email: str) -> bool:
        result = self.validate(license_key, email)
        return result.success and result.valid

    def get_license_info(self, license_key: str, email: str) -> Optional[dict[str, Any]]:
        """Validate and return the license terms, or None when validation fails."""
        result = self.validate(license_key, email)
        if not result.success:
            return None
        return {
            "isValid": result.valid,
            "expiryDate": result.expiry_date,
            "features": result.features,
            "maxDevices": result.max_devices,
            "validationCount": result.validation_count or 0,
        }

    # ── Usage ──

    @staticmethod
    def _parse_usage(data: dict[str, Any]) -> ClientUsageResult:
        return ClientUsageResult(
            success=data.get("success", False),
            code=data.get("code", ""),
            message=data.get("message", ""),
            usage_id=data.get("usage_id"),
            tracked_count=data.get("tracked_count", 0),
        )

    def track_usage(
        self,
        license_key: str,
        event_type: str,
        event_name: str,
        event_data: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ClientUsageResult:
        body = {
            "license_key": license_key,
            "event_type": event_type,
            "event_name": event_name,
            "event_data": event_data or {},
            "metadata": metadata or {},
        }
        return self._parse_usage(self._request("post", "/license/track", json=body))

    def track_usage_batch(
        self,
        license_key: str,
        events: list[dict[str, Any]],
        metadata: dict[str, Any] | None = None,
    ) -> ClientUsageResult:
        """Send several events at once; each is ``{type, name, data, metadata}``."""
        body = {
            "license_key": license_key,
            "events": events,
            "metadata": metadata or {},
        }
        return self._parse_usage(self._request("post", "/license/track-batch", json=body))

    def track_app_opened(self, license_key: str, app_version: str = "1.0.0") -> ClientUsageResult:
        return self.track_usage(
            license_key, "app_opened", "Application Opened",
            metadata={"app_version": app_version, "python": sys.version.split()[0]},
        )

    def track_feature(
        self, license_key: str, feature_name: str, data: dict[str, Any] | None = None
    ) -> ClientUsageResult:
        return self.track_usage(license_key, "feature_used", feature_name, event_data=data)

    def track_error(
        self, license_key: str, error_message: str, data: dict[str, Any] | None = None
    ) -> ClientUsageResult:
        return self.track_usage(license_key, "error_occurred", error_message, event_data=data)

    def get_usage_stats(self, license_key: str, period: str = "all") -> dict[str, Any]:
        return self._request(
            "get", "/license/usage-stats",
            params={"license_key": license_key, "period": period},
        )

    # ── Lifecycle ──

    def close(self) -> None:
        """Close the HTTP client."""
        self._http.close()
