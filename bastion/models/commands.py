"""Command definitions and their request bodies."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from bastion.utils.ids import new_id, utcnow


class Command(BaseModel):
    """A named, reusable script with a timeout policy.

    Frozen: updates replace the stored value wholesale.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: new_id("cmd"))
    name: str
    description: str = ""
    script: str
    timeout_seconds: int = 300
    created_at: datetime = Field(default_factory=utcnow)


class CommandCreateRequest(BaseModel):
    """Request body for POST /commands and PUT /commands/{id}.

    Field rules (blank name/script, non-positive timeout) are enforced by the
    registry so that every caller gets the same errors.
    """

    name: str
    description: Optional[str] = ""
    script: str
    timeout_seconds: Optional[int] = None


class CommandPatchRequest(BaseModel):
    """Request body for PATCH /commands/{id}; omitted fields keep their value."""

    name: Optional[str] = None
    description: Optional[str] = None
    script: Optional[str] = None
    timeout_seconds: Optional[int] = None
