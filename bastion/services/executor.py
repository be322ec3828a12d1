"""Executor capability: run a script on a node and report the outcome.

The coordinator only depends on the ``Executor`` protocol.  ``HttpExecutor``
talks to the node daemon's ``POST /api/v1/exec`` endpoint; tests plug in a
fake that can answer, hang, or crash on demand.
"""

from __future__ import annotations

from typing import Optional, Protocol

import httpx

from bastion.config import Settings, settings
from bastion.errors import ExecutorUnreachableError
from bastion.models.executions import ExecResult
from bastion.models.nodes import Node
from bastion.utils.logging import get_logger

log = get_logger(__name__)

EXEC_PATH = "/api/v1/exec"


class Executor(Protocol):
    async def execute(self, node: Node, script: str, timeout_seconds: int) -> ExecResult:
        """Return the script's result or raise ``ExecutorUnreachableError``."""
        ...


class HttpExecutor:
    """Executor backed by the per-node HTTP daemon."""

    def __init__(
        self,
        cfg: Settings | None = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._cfg = cfg or settings
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _ensure(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                transport=self._transport,
                headers={"Content-Type": "application/json"},
            )
        return self._client

    async def execute(self, node: Node, script: str, timeout_seconds: int) -> ExecResult:
        url = node.address.rstrip("/") + EXEC_PATH
        # The daemon enforces the script timeout itself; leave it room to answer.
        timeout = httpx.Timeout(
            timeout_seconds + self._cfg.bastion_executor_grace_seconds,
            connect=self._cfg.bastion_executor_connect_timeout,
        )
        client = self._ensure()
        log.debug("executor.request", node_id=node.id, url=url)
        try:
            response = await client.post(
                url,
                json={"script": script, "timeout_seconds": timeout_seconds},
                timeout=timeout,
            )
            response.raise_for_status()
            result = ExecResult.model_validate(response.json())
        except httpx.HTTPStatusError as exc:
            raise ExecutorUnreachableError(
                f"executor on {node.id} answered HTTP {exc.response.status_code}",
            ) from exc
        except httpx.HTTPError as exc:
            raise ExecutorUnreachableError(
                f"executor on {node.id} unreachable: {exc!r}",
            ) from exc
        except ValueError as exc:  # bad JSON or a body that does not fit ExecResult
            raise ExecutorUnreachableError(
                f"executor on {node.id} returned an invalid body: {exc}",
            ) from exc
        log.debug("executor.response", node_id=node.id, exit_code=result.exit_code)
        return result

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


# ── Singleton instance ────────────────────────────────────────────────────

http_executor = HttpExecutor()
