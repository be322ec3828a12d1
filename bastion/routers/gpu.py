"""GPU telemetry endpoints: raw samples, push ingestion, chart rows."""

from __future__ import annotations

from typing import Any, Optional, Union

from fastapi import APIRouter, HTTPException

from bastion.errors import ValidationError
from bastion.models.gpu import GpuSample, GpuSampleIn
from bastion.models.responses import IngestResponse
from bastion.services.query_facade import query_facade
from bastion.services.telemetry_store import telemetry_store

router = APIRouter(prefix="/api/v1", tags=["gpu"])


@router.get("/gpu", response_model=list[GpuSample])
async def list_samples(
    since: Optional[int] = None,
    until: Optional[int] = None,
    node_id: Optional[str] = None,
) -> list[GpuSample]:
    return query_facade.gpu_samples(since=since, until=until, node_id=node_id)


@router.post("/gpu", response_model=IngestResponse)
async def ingest_samples(
    req: Union[GpuSampleIn, list[GpuSampleIn]],
) -> IngestResponse:
    """Accept one sample or a batch. A bad reading rejects the whole batch."""
    samples = req if isinstance(req, list) else [req]
    try:
        stored = telemetry_store.ingest_many(samples)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return IngestResponse(ingested=len(stored))


@router.get("/gpu/chart")
async def chart_rows(
    since: Optional[int] = None,
    until: Optional[int] = None,
) -> list[dict[str, Any]]:
    """One row per timestamp with ``<node>_util``/``<node>_mem`` columns."""
    return query_facade.gpu_chart(since=since, until=until)
