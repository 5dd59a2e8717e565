"""Keyguard-Engine exception hierarchy."""


class KeyguardError(Exception):
    """Base exception for all Keyguard errors."""

    def __init__(self, message: str = "", code: str = "KEYGUARD_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


# ── License domain (client-facing, never retried) ──


class LicenseError(KeyguardError):
    """A license request was refused; the caller must change its input."""

    status_code = 400

    def __init__(self, message: str = "License error occurred", code: str = "LICENSE_ERROR"):
        super().__init__(message, code=code)


class InvalidKeyError(LicenseError):
    """Raised when a key string is unknown or fails structural/signature validation."""

    status_code = 404

    def __init__(self, message: str = "Invalid license key"):
        super().__init__(message, code="INVALID_KEY")


class KeyInactiveError(LicenseError):
    """Raised when a key has been revoked by an administrator."""

    status_code = 403

    def __init__(self, message: str = "License key is inactive"):
        super().__init__(message, code="KEY_INACTIVE")


class LicenseExpiredError(LicenseError):
    """Raised when a key is past its expiry date."""

    status_code = 403

    def __init__(self, message: str = "License key has expired"):
        super().__init__(message, code="EXPIRED")


class DeviceMismatchError(LicenseError):
    """Raised when the decrypted fingerprint or email disagrees with the request."""

    status_code = 400

    def __init__(self, message: str = "Device information mismatch"):
        super().__init__(message, code="DEVICE_MISMATCH")


class DeviceNotActivatedError(LicenseError):
    """Raised when validating a device that holds no active activation."""

    status_code = 403

    def __init__(self, message: str = "Device not activated. Please activate first."):
        super().__init__(message, code="NOT_ACTIVATED")


class DeviceAlreadyActivatedError(LicenseError):
    """Raised when a device is already bound to the key."""

    status_code = 409

    def __init__(self, device_id: str = ""):
        super().__init__(
            f"Device '{device_id}' is already activated for this license key",
            code="DEVICE_ALREADY_ACTIVATED",
        )
        self.device_id = device_id


class MaxDevicesReachedError(LicenseError):
    """Raised when the key's device limit is exhausted."""

    status_code = 403

    def __init__(self, max_devices: int = 0):
        super().__init__(
            f"Maximum device limit ({max_devices}) reached",
            code="MAX_DEVICES_REACHED",
        )
        self.max_devices = max_devices


# ── Admin lookups ──


class ProjectNotFoundError(KeyguardError):
    def __init__(self, message: str = "Project not found"):
        super().__init__(message, code="PROJECT_NOT_FOUND")


class UserNotFoundError(KeyguardError):
    def __init__(self, message: str = "User not found"):
        super().__init__(message, code="USER_NOT_FOUND")


# ── Crypto codec ──


class CodecError(KeyguardError):
    """Base for device-info transport decoding failures."""

    def __init__(self, message: str = "Device info could not be decoded", code: str = "CODEC_ERROR"):
        super().__init__(message, code=code)


class MalformedTransport(CodecError):
    def __init__(self, message: str = "Invalid encrypted data format"):
        super().__init__(message, code="MALFORMED_TRANSPORT")


class DecryptionFailed(CodecError):
    def __init__(self, message: str = "Decryption failed - check secret key"):
        super().__init__(message, code="DECRYPTION_FAILED")


class PayloadNotJSON(CodecError):
    def __init__(self, message: str = "Invalid device info JSON"):
        super().__init__(message, code="PAYLOAD_NOT_JSON")


# ── Generator registry ──


class GeneratorRegistryError(KeyguardError):
    def __init__(self, message: str = "Generator registry error", code: str = "REGISTRY_ERROR"):
        super().__init__(message, code=code)


class DuplicateOrInvalidGenerator(GeneratorRegistryError):
    def __init__(self, message: str = "Generator is already registered or invalid"):
        super().__init__(message, code="INVALID_GENERATOR")


class UnknownGenerator(GeneratorRegistryError):
    def __init__(self, identifier: str = ""):
        super().__init__(f"Generator '{identifier}' is not registered", code="UNKNOWN_GENERATOR")
        self.identifier = identifier


class RegistrySealedError(GeneratorRegistryError):
    def __init__(self, message: str = "Generator registry is sealed; register generators at startup"):
        super().__init__(message, code="REGISTRY_SEALED")


# ── Infrastructure ──


class StoreError(KeyguardError):
    """Raised when the data store fails; never a license-domain outcome."""

    def __init__(self, message: str = "Internal storage error"):
        super().__init__(message, code="INTERNAL_ERROR")
