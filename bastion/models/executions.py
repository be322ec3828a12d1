"""Execution records and the executor result contract."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from bastion.utils.ids import new_id

# exit_code recorded when the coordinator abandons a call at its deadline
TIMEOUT_EXIT_CODE = -1


class ExecutionStatus(str, Enum):
    pending = "pending"
    running = "running"
    succeeded = "succeeded"
    failed = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ExecutionStatus.succeeded, ExecutionStatus.failed)


class Execution(BaseModel):
    """One dispatch of a Command to a Node.

    ``script`` and ``timeout_seconds`` are copied from the Command at dispatch
    time, so later edits to the Command never rewrite history.  ``exit_code``
    and ``duration_ms`` stay ``None`` until the record is terminal.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: new_id("exec"))
    command_id: str
    node_id: str
    status: ExecutionStatus = ExecutionStatus.pending
    script: str
    timeout_seconds: int
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    stdout: str = ""
    stderr: str = ""
    exit_code: Optional[int] = None
    duration_ms: Optional[int] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


class ExecResult(BaseModel):
    """What an executor returns for a finished script."""

    stdout: str = ""
    stderr: str = ""
    exit_code: int


class ExecuteRequest(BaseModel):
    """Request body for POST /execute."""

    command_id: str
    node_id: str
    wait: Optional[bool] = Field(
        default=None,
        description="Block until terminal; defaults to the configured dispatch mode",
    )


class ExecutionFilter(BaseModel):
    command_id: Optional[str] = None
    node_id: Optional[str] = None
    status: Optional[ExecutionStatus] = None
    limit: Optional[int] = Field(default=None, gt=0)
