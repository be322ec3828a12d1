"""Node reference data."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from bastion.utils.ids import new_id


class Node(BaseModel):
    """A remote target. ``address`` is opaque to the core."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: new_id("node"))
    name: str
    address: str
