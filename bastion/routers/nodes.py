"""Read-only node endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException

from bastion.errors import NotFoundError
from bastion.models.nodes import Node
from bastion.services.query_facade import query_facade

router = APIRouter(prefix="/api/v1", tags=["nodes"])


@router.get("/nodes", response_model=list[Node])
async def list_nodes() -> list[Node]:
    return query_facade.list_nodes()


@router.get("/nodes/{node_id}", response_model=Node)
async def get_node(node_id: str) -> Node:
    try:
        return query_facade.get_node(node_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
