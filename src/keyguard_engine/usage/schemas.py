"""Pydantic schemas for usage endpoints."""

from typing import Any

from pydantic import BaseModel, Field


class TrackRequest(BaseModel):
    license_key: str = Field(..., min_length=1, max_length=1024)
    event_type: str = Field(..., min_length=1, max_length=100)
    event_name: str = Field(..., min_length=1, max_length=255)
    event_data: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)


class TrackResponse(BaseModel):
    success: bool
    message: str = ""
    usage_id: str


class BatchEvent(BaseModel):
    type: str = Field(default="custom", max_length=100)
    name: str = Field(default="Unknown Event", max_length=255)
    data: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)


class TrackBatchRequest(BaseModel):
    license_key: str = Field(..., min_length=1, max_length=1024)
    events: list[BatchEvent] = Field(..., min_length=1, max_length=500)
    metadata: dict[str, Any] = Field(default_factory=dict)


class TrackBatchResponse(BaseModel):
    success: bool
    message: str = ""
    tracked_count: int


class UsageStatsResponse(BaseModel):
    total_events: int
    events_by_type: dict[str, int]
    period: str
