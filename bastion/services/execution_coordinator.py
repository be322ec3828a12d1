"""Execution lifecycle: admission, dispatch, deadline, and finalization.

State machine::

    pending -> running -> succeeded | failed

Every status change is a compare-and-set against the expected current
status, applied under the execution table lock.  The timeout path and the
completion path both finalize through the same ``running -> terminal`` CAS,
so whichever gets there first wins and the other is dropped with an
``execution.transition_rejected`` warning.

The executor call itself is awaited without holding any lock.
"""

from __future__ import annotations

import asyncio
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from bastion.config import DispatchMode, Settings, settings
from bastion.errors import ExecutorUnreachableError, NotFoundError, TimeoutExceeded
from bastion.models.executions import (
    TIMEOUT_EXIT_CODE,
    ExecResult,
    Execution,
    ExecutionFilter,
    ExecutionStatus,
)
from bastion.models.nodes import Node
from bastion.services.command_registry import CommandRegistry, command_registry
from bastion.services.executor import Executor, http_executor
from bastion.services.node_registry import NodeRegistry, node_registry
from bastion.utils.ids import utcnow
from bastion.utils.logging import get_logger

log = get_logger(__name__)

_NOT_STARTED = datetime.max.replace(tzinfo=timezone.utc)

SHUTDOWN_MESSAGE = "dispatch abandoned: coordinator shut down"
CANCELLED_MESSAGE = "executor call cancelled before it answered"


class _ExecutionTable:
    """Execution rows plus the CAS primitive that guards every transition."""

    def __init__(self) -> None:
        self._rows: dict[str, Execution] = {}
        self._lock = threading.Lock()

    def insert(self, execution: Execution) -> None:
        with self._lock:
            self._rows[execution.id] = execution

    def get(self, execution_id: str) -> Execution:
        with self._lock:
            execution = self._rows.get(execution_id)
        if execution is None:
            raise NotFoundError("execution", execution_id)
        return execution

    def values(self) -> list[Execution]:
        with self._lock:
            return list(self._rows.values())

    def has_active(self, command_id: str) -> bool:
        with self._lock:
            return any(
                e.command_id == command_id and not e.is_terminal
                for e in self._rows.values()
            )

    def transition(
        self,
        execution_id: str,
        expected: ExecutionStatus,
        changes: Callable[[Execution], dict[str, Any]],
    ) -> Optional[Execution]:
        """Apply ``changes(current)`` only if the row is still ``expected``."""
        with self._lock:
            current = self._rows.get(execution_id)
            if current is None:
                raise NotFoundError("execution", execution_id)
            if current.status is expected:
                updated = current.model_copy(update=changes(current))
                self._rows[execution_id] = updated
                return updated
        log.warning(
            "execution.transition_rejected",
            execution_id=execution_id,
            expected=expected.value,
            actual=current.status.value,
        )
        return None


class ExecutionCoordinator:
    """Dispatches commands to nodes and owns every Execution record."""

    def __init__(
        self,
        commands: CommandRegistry,
        nodes: NodeRegistry,
        executor: Executor,
        cfg: Settings | None = None,
    ) -> None:
        self._cfg = cfg or settings
        self._commands = commands
        self._nodes = nodes
        self._executor = executor
        self._table = _ExecutionTable()
        self._tasks: dict[str, asyncio.Task] = {}
        commands.set_reference_guard(self.has_active)

    # ── public: dispatch ──────────────────────────────────────────────

    async def dispatch(
        self,
        command_id: str,
        node_id: str,
        *,
        wait: Optional[bool] = None,
    ) -> Execution:
        """Admit and start one Execution.

        Raises ``NotFoundError`` for an unknown command or node.  Once
        admitted, nothing the executor does makes this call fail: outcomes
        are recorded on the Execution.

        With ``wait`` (the default in ``sync`` dispatch mode) the terminal
        record is returned; otherwise the freshly admitted ``pending`` one.
        """
        execution, node = self._admit(command_id, node_id)

        task = asyncio.create_task(
            self._run(execution.id, node),
            name=f"dispatch-{execution.id}",
        )
        self._tasks[execution.id] = task
        task.add_done_callback(lambda _t, eid=execution.id: self._tasks.pop(eid, None))

        if wait is None:
            wait = self._cfg.bastion_dispatch_mode is DispatchMode.sync
        if not wait:
            return execution

        # A disconnecting caller must not take the run down with it.
        await asyncio.shield(task)
        return self.get(execution.id)

    def complete(self, execution_id: str, result: ExecResult) -> bool:
        """Record an executor result. Returns False if it lost the race."""
        status = (
            ExecutionStatus.succeeded if result.exit_code == 0 else ExecutionStatus.failed
        )
        finalized = self._finalize(
            execution_id,
            status,
            stdout=result.stdout,
            stderr=result.stderr,
            exit_code=result.exit_code,
        )
        if finalized is None:
            return False
        log.info(
            "execution.completed",
            execution_id=execution_id,
            status=finalized.status.value,
            exit_code=finalized.exit_code,
            duration_ms=finalized.duration_ms,
        )
        return True

    def cancel(self, execution_id: str) -> Execution:
        """Operator cancellation is not supported; the record is unchanged."""
        execution = self.get(execution_id)
        log.warning(
            "execution.cancel_unsupported",
            execution_id=execution_id,
            status=execution.status.value,
        )
        return execution

    # ── public: reads ─────────────────────────────────────────────────

    def get(self, execution_id: str) -> Execution:
        return self._table.get(execution_id)

    def list(self, filter: ExecutionFilter | None = None) -> list[Execution]:
        """Most recent first by ``started_at``; pending rows lead."""
        rows = self._table.values()
        if filter is not None:
            if filter.command_id is not None:
                rows = [e for e in rows if e.command_id == filter.command_id]
            if filter.node_id is not None:
                rows = [e for e in rows if e.node_id == filter.node_id]
            if filter.status is not None:
                rows = [e for e in rows if e.status is filter.status]
        rows.sort(key=lambda e: e.started_at or _NOT_STARTED, reverse=True)
        if filter is not None and filter.limit is not None:
            rows = rows[: filter.limit]
        return rows

    def has_active(self, command_id: str) -> bool:
        return self._table.has_active(command_id)

    # ── lifecycle ─────────────────────────────────────────────────────

    async def close(self) -> None:
        """Stop in-flight runs and fail whatever is still running."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        for execution in self._table.values():
            if execution.status is ExecutionStatus.running:
                self._finalize(
                    execution.id,
                    ExecutionStatus.failed,
                    stderr=SHUTDOWN_MESSAGE,
                )
        log.info("coordinator.closed", abandoned=len(tasks))

    # ── internals ─────────────────────────────────────────────────────

    def _admit(self, command_id: str, node_id: str) -> tuple[Execution, Node]:
        # Snapshot under the registry lock so a concurrent delete either sees
        # this pending row or wins outright.
        with self._commands.locked():
            command = self._commands.get(command_id)
            node = self._nodes.get(node_id)
            execution = Execution(
                command_id=command.id,
                node_id=node.id,
                script=command.script,
                timeout_seconds=command.timeout_seconds,
            )
            self._table.insert(execution)
        log.info(
            "execution.dispatched",
            execution_id=execution.id,
            command_id=command.id,
            node_id=node.id,
        )
        return execution, node

    async def _run(self, execution_id: str, node: Node) -> None:
        loop = asyncio.get_running_loop()

        running = self._table.transition(
            execution_id,
            ExecutionStatus.pending,
            lambda _cur: {"status": ExecutionStatus.running, "started_at": utcnow()},
        )
        if running is None:
            return
        # No await between the running transition and the invocation.
        call = asyncio.ensure_future(
            self._executor.execute(node, running.script, running.timeout_seconds),
        )
        deadline = loop.call_later(
            running.timeout_seconds, self._expire, execution_id, call,
        )
        log.info(
            "execution.running",
            execution_id=execution_id,
            node_id=node.id,
            timeout_seconds=running.timeout_seconds,
        )

        try:
            await asyncio.wait({call})
        except asyncio.CancelledError:
            call.cancel()
            raise
        finally:
            deadline.cancel()

        if call.cancelled():
            # Normally the deadline path, which has already finalized.
            if not self._table.get(execution_id).is_terminal:
                log.warning("execution.call_cancelled", execution_id=execution_id)
                self._finalize(
                    execution_id, ExecutionStatus.failed, stderr=CANCELLED_MESSAGE,
                )
            return
        exc = call.exception()
        if exc is None:
            self.complete(execution_id, call.result())
        else:
            self._fail(execution_id, exc)

    def _expire(self, execution_id: str, call: asyncio.Future) -> None:
        execution = self._table.get(execution_id)
        signal = TimeoutExceeded(execution_id, execution.timeout_seconds)
        finalized = self._finalize(
            execution_id,
            ExecutionStatus.failed,
            stderr=str(signal),
            exit_code=TIMEOUT_EXIT_CODE,
        )
        if finalized is not None:
            log.warning(
                "execution.timeout",
                execution_id=execution_id,
                timeout_seconds=execution.timeout_seconds,
            )
        # Best-effort cancellation signal to the executor; never awaited.
        if not call.done():
            call.cancel()

    def _fail(self, execution_id: str, exc: BaseException) -> None:
        if isinstance(exc, ExecutorUnreachableError):
            stderr = str(exc)
            log.warning("execution.executor_unreachable", execution_id=execution_id, error=stderr)
        else:
            stderr = f"executor error: {exc!r}"
            log.error(
                "execution.executor_crashed",
                execution_id=execution_id,
                error=repr(exc),
            )
        self._finalize(execution_id, ExecutionStatus.failed, stderr=stderr)

    def _finalize(
        self,
        execution_id: str,
        status: ExecutionStatus,
        *,
        stdout: str = "",
        stderr: str = "",
        exit_code: Optional[int] = None,
    ) -> Optional[Execution]:
        def changes(current: Execution) -> dict[str, Any]:
            completed_at = utcnow()
            started_at = current.started_at or completed_at
            elapsed = (completed_at - started_at).total_seconds() * 1000
            return {
                "status": status,
                "completed_at": completed_at,
                "stdout": stdout,
                "stderr": stderr,
                "exit_code": exit_code,
                "duration_ms": max(0, int(elapsed)),
            }

        return self._table.transition(execution_id, ExecutionStatus.running, changes)


# ── Singleton instance ────────────────────────────────────────────────────

execution_coordinator = ExecutionCoordinator(command_registry, node_registry, http_executor)
