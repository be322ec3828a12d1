"""Dispatch and execution history endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from bastion.errors import NotFoundError
from bastion.models.executions import (
    Execution,
    ExecutionFilter,
    ExecutionStatus,
    ExecuteRequest,
)
from bastion.models.responses import ErrorResponse
from bastion.services.execution_coordinator import execution_coordinator
from bastion.services.query_facade import query_facade

router = APIRouter(prefix="/api/v1", tags=["executions"])


@router.post(
    "/execute",
    response_model=Execution,
    responses={404: {"model": ErrorResponse}},
)
async def execute(req: ExecuteRequest) -> Execution:
    """Run a command on a node.

    Unknown ids are a 404.  After that the call always succeeds: executor
    failures, non-zero exits and timeouts show up as a ``failed`` record.
    """
    try:
        return await execution_coordinator.dispatch(
            req.command_id, req.node_id, wait=req.wait,
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.get("/executions", response_model=list[Execution])
async def list_executions(
    command_id: Optional[str] = None,
    node_id: Optional[str] = None,
    status: Optional[ExecutionStatus] = None,
    limit: Optional[int] = Query(default=None, gt=0),
) -> list[Execution]:
    """Execution history, most recent first."""
    return query_facade.list_executions(
        ExecutionFilter(
            command_id=command_id,
            node_id=node_id,
            status=status,
            limit=limit,
        ),
    )


@router.get(
    "/executions/{execution_id}",
    response_model=Execution,
    responses={404: {"model": ErrorResponse}},
)
async def get_execution(execution_id: str) -> Execution:
    try:
        return query_facade.get_execution(execution_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
