"""Pydantic schemas for licensing endpoints."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


# ── Public: activate / validate ──

class LicenseRequest(BaseModel):
    license_key: str = Field(..., min_length=1, max_length=1024)
    device_id: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., max_length=255)
    encrypted_device_info: str = Field(..., min_length=1)


class ActivateResponse(BaseModel):
    success: bool
    isValid: bool
    expiryDate: Optional[str] = None
    features: list[str] = Field(default_factory=list)
    maxDevices: int
    activatedDevices: int
    message: str


class ValidateResponse(BaseModel):
    success: bool
    isValid: bool
    expiryDate: Optional[str] = None
    features: list[str] = Field(default_factory=list)
    maxDevices: int
    validationCount: int
    message: str


# ── Admin: keys ──

class KeyIssueRequest(BaseModel):
    max_devices: Optional[int] = Field(default=None, ge=1)
    features: Optional[list[str]] = None
    start_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    days_valid: Optional[int] = Field(default=None, ge=1)
    options: dict[str, Any] = Field(default_factory=dict)


class KeyResponse(BaseModel):
    id: str
    key: str
    key_version: str
    key_format: str
    user_id: str
    max_devices: int
    features: list[str]
    start_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    is_active: bool
    validation_count: int
    created_at: datetime


class KeyIssueResponse(KeyResponse):
    metadata: dict[str, Any]


class KeyActionRequest(BaseModel):
    license_key: str = Field(..., min_length=1, max_length=1024)


class DeactivateDeviceRequest(KeyActionRequest):
    device_id: str = Field(..., min_length=1, max_length=255)


class KeyActionResponse(BaseModel):
    success: bool
    message: str = ""


class ActivationResponse(BaseModel):
    id: str
    device_id: str
    device_info: dict[str, Any]
    activated_at: datetime
    is_active: bool
    state: str


class KeyActivationsResponse(BaseModel):
    license_key_id: str
    max_devices: int
    active_devices: int
    activations: list[ActivationResponse]


class KeyDecodeResponse(BaseModel):
    valid_shape: bool
    decoded: Optional[dict[str, Any]] = None
