"""GPU telemetry samples."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class GpuSample(BaseModel):
    """One utilization/memory reading for a node at an epoch second."""

    model_config = ConfigDict(frozen=True)

    node_id: str
    timestamp: int
    utilization: float
    memory_mb: int


class GpuSampleIn(BaseModel):
    """Request body for POST /gpu. Range checks happen in the store."""

    node_id: str
    timestamp: int
    utilization: float
    memory_mb: int
