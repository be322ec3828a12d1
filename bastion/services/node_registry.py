"""In-memory node registry (read-mostly reference data)."""

from __future__ import annotations

import threading

from bastion.errors import ConflictError, NotFoundError, ValidationError
from bastion.models.nodes import Node
from bastion.utils.logging import get_logger

log = get_logger(__name__)


class NodeRegistry:
    """Known nodes in registration order.

    Registration and removal are administrative operations; dispatch only
    ever reads.
    """

    def __init__(self) -> None:
        self._nodes: dict[str, Node] = {}
        self._lock = threading.Lock()

    def register(self, node: Node) -> Node:
        if not node.name.strip():
            raise ValidationError("node name is required")
        if not node.address.strip():
            raise ValidationError("node address is required")
        with self._lock:
            for existing in self._nodes.values():
                if existing.name == node.name and existing.id != node.id:
                    raise ConflictError(f"node name {node.name!r} already exists")
            self._nodes[node.id] = node
        log.info("node.registered", node_id=node.id, address=node.address)
        return node

    def remove(self, node_id: str) -> None:
        with self._lock:
            if self._nodes.pop(node_id, None) is None:
                raise NotFoundError("node", node_id)
        log.info("node.removed", node_id=node_id)

    def get(self, node_id: str) -> Node:
        with self._lock:
            node = self._nodes.get(node_id)
        if node is None:
            raise NotFoundError("node", node_id)
        return node

    def list(self) -> list[Node]:
        with self._lock:
            return list(self._nodes.values())


# ── Singleton instance ────────────────────────────────────────────────────

node_registry = NodeRegistry()
