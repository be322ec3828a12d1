"""Read-side aggregation for API consumers.

Records are returned with ids only; turning command/node ids into display
names is left to the client.
"""

from __future__ import annotations

from typing import Any, Optional

from bastion.models.commands import Command
from bastion.models.executions import Execution, ExecutionFilter
from bastion.models.gpu import GpuSample
from bastion.models.nodes import Node
from bastion.services.command_registry import CommandRegistry, command_registry
from bastion.services.execution_coordinator import (
    ExecutionCoordinator,
    execution_coordinator,
)
from bastion.services.node_registry import NodeRegistry, node_registry
from bastion.services.telemetry_store import TelemetryStore, telemetry_store


def build_chart_rows(samples: list[GpuSample]) -> list[dict[str, Any]]:
    """Bucket samples by exact timestamp.

    Each row carries ``<node>_util`` / ``<node>_mem`` only for nodes that
    reported at that timestamp; gaps are left as gaps.
    """
    rows: dict[int, dict[str, Any]] = {}
    for s in samples:
        row = rows.setdefault(s.timestamp, {"timestamp": s.timestamp})
        row[f"{s.node_id}_util"] = s.utilization
        row[f"{s.node_id}_mem"] = s.memory_mb
    return [rows[ts] for ts in sorted(rows)]


class QueryFacade:
    def __init__(
        self,
        commands: CommandRegistry,
        nodes: NodeRegistry,
        executions: ExecutionCoordinator,
        telemetry: TelemetryStore,
    ) -> None:
        self._commands = commands
        self._nodes = nodes
        self._executions = executions
        self._telemetry = telemetry

    def list_commands(self) -> list[Command]:
        return self._commands.list()

    def get_command(self, command_id: str) -> Command:
        return self._commands.get(command_id)

    def list_nodes(self) -> list[Node]:
        return self._nodes.list()

    def get_node(self, node_id: str) -> Node:
        return self._nodes.get(node_id)

    def list_executions(self, filter: ExecutionFilter | None = None) -> list[Execution]:
        return self._executions.list(filter)

    def get_execution(self, execution_id: str) -> Execution:
        return self._executions.get(execution_id)

    def gpu_samples(
        self,
        since: Optional[int] = None,
        until: Optional[int] = None,
        node_id: Optional[str] = None,
    ) -> list[GpuSample]:
        return self._telemetry.query(since=since, until=until, node_id=node_id)

    def gpu_chart(
        self,
        since: Optional[int] = None,
        until: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        return build_chart_rows(self._telemetry.query(since=since, until=until))


# ── Singleton instance ────────────────────────────────────────────────────

query_facade = QueryFacade(
    command_registry,
    node_registry,
    execution_coordinator,
    telemetry_store,
)
