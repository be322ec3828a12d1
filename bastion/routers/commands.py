"""Command CRUD endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Response, status

from bastion.errors import ConflictError, NotFoundError, ValidationError
from bastion.models.commands import Command, CommandCreateRequest, CommandPatchRequest
from bastion.models.responses import ErrorResponse
from bastion.services.command_registry import command_registry
from bastion.services.query_facade import query_facade

router = APIRouter(prefix="/api/v1", tags=["commands"])

_ERRORS = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ConflictError):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=422, detail=str(exc))


@router.get("/commands", response_model=list[Command])
async def list_commands() -> list[Command]:
    return query_facade.list_commands()


@router.get("/commands/{command_id}", response_model=Command, responses=_ERRORS)
async def get_command(command_id: str) -> Command:
    try:
        return query_facade.get_command(command_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.post(
    "/commands",
    response_model=Command,
    status_code=status.HTTP_201_CREATED,
    responses=_ERRORS,
)
async def create_command(req: CommandCreateRequest) -> Command:
    try:
        return command_registry.create(
            name=req.name,
            description=req.description,
            script=req.script,
            timeout_seconds=req.timeout_seconds,
        )
    except (ValidationError, ConflictError) as exc:
        raise _http_error(exc)


@router.put("/commands/{command_id}", response_model=Command, responses=_ERRORS)
async def replace_command(command_id: str, req: CommandCreateRequest) -> Command:
    """Replace name, description, script and (if given) timeout."""
    try:
        return command_registry.update(
            command_id,
            name=req.name,
            description=req.description,
            script=req.script,
            timeout_seconds=req.timeout_seconds,
        )
    except (NotFoundError, ValidationError, ConflictError) as exc:
        raise _http_error(exc)


@router.patch("/commands/{command_id}", response_model=Command, responses=_ERRORS)
async def patch_command(command_id: str, req: CommandPatchRequest) -> Command:
    """Like PUT, but omitted fields keep their current values."""
    try:
        current = command_registry.get(command_id)
        return command_registry.update(
            command_id,
            name=req.name if req.name is not None else current.name,
            description=(
                req.description if req.description is not None else current.description
            ),
            script=req.script if req.script is not None else current.script,
            timeout_seconds=req.timeout_seconds,
        )
    except (NotFoundError, ValidationError, ConflictError) as exc:
        raise _http_error(exc)


@router.delete(
    "/commands/{command_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=_ERRORS,
)
async def delete_command(command_id: str) -> Response:
    """Refused with 409 while a pending or running execution uses it."""
    try:
        command_registry.delete(command_id)
    except (NotFoundError, ConflictError) as exc:
        raise _http_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
