"""Shared Pydantic schemas for Keyguard-Engine."""

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    service: str = "keyguard-engine"


class ErrorResponse(BaseModel):
    success: bool = False
    code: str
    message: str = ""
