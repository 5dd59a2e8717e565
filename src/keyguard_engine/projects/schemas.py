"""Pydantic schemas for project endpoints."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=1, max_length=100, pattern=r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$")
    description: str = ""
    key_generator: Optional[str] = None
    generator_options: dict[str, Any] = Field(default_factory=dict)
    encryption_method: Optional[str] = None
    default_max_devices: Optional[int] = Field(default=None, ge=1)
    default_features: Optional[list[str]] = None


class ProjectUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    key_generator: Optional[str] = None
    generator_options: Optional[dict[str, Any]] = None
    encryption_method: Optional[str] = None
    default_max_devices: Optional[int] = Field(default=None, ge=1)
    default_features: Optional[list[str]] = None
    is_active: Optional[bool] = None


class ProjectResponse(BaseModel):
    id: str
    name: str
    slug: str
    description: str
    key_generator: str
    generator_options: dict[str, Any]
    encryption_method: str
    default_max_devices: int
    default_features: list[str]
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class ProjectCreateResponse(ProjectResponse):
    """Includes the project secret — only returned once at creation time."""
    secret_key: str


class UserCreate(BaseModel):
    email: EmailStr
    name: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)


class UserResponse(BaseModel):
    id: str
    project_id: str
    email: str
    name: str
    metadata: dict[str, Any]
    created_at: datetime


class GeneratorInfo(BaseModel):
    identifier: str
    version: str
    format: str
    class_path: str = Field(default="", alias="class")

    model_config = ConfigDict(populate_by_name=True)
