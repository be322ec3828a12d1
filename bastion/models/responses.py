"""Common API response models."""

from __future__ import annotations

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    version: str


class IngestResponse(BaseModel):
    ingested: int


class ErrorResponse(BaseModel):
    detail: str
