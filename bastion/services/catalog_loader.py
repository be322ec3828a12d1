"""Startup seeding of nodes and commands from settings and YAML files.

Seed files are YAML lists::

    # commands.yaml
    - name: Check GPU
      description: Print GPU info with nvidia-smi
      script: nvidia-smi
      timeout_seconds: 60

    # nodes.yaml
    - id: gpu-01
      name: GPU box 1
      address: http://10.0.0.11:9090
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from bastion.config import Settings, settings
from bastion.errors import BastionError, CatalogError
from bastion.models.nodes import Node
from bastion.services.command_registry import CommandRegistry
from bastion.services.node_registry import NodeRegistry
from bastion.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_COMMANDS: list[dict[str, Any]] = [
    {
        "name": "Check GPU",
        "description": "Print GPU info with nvidia-smi",
        "script": "nvidia-smi || echo 'nvidia-smi not available'",
        "timeout_seconds": 60,
    },
    {
        "name": "Docker ps",
        "description": "List running containers",
        "script": "docker ps",
        "timeout_seconds": 60,
    },
]


def _read_list(path: str) -> list[dict[str, Any]]:
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise CatalogError(f"read {path}: {exc}") from exc
    try:
        docs = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise CatalogError(f"parse {path}: {exc}") from exc
    if docs is None:
        return []
    if not isinstance(docs, list) or not all(isinstance(d, dict) for d in docs):
        raise CatalogError(f"{path}: expected a list of mappings")
    return docs


def load_commands_file(path: str, registry: CommandRegistry) -> int:
    """Create every command in *path*; returns how many were added.

    Entries that fail validation or whose name already exists are skipped.
    """
    added = 0
    for doc in _read_list(path):
        name = str(doc.get("name") or "")
        if name and registry.find_by_name(name) is not None:
            log.info("catalog.command_exists", name=name)
            continue
        try:
            registry.create(
                name=name,
                description=doc.get("description") or "",
                script=str(doc.get("script") or ""),
                timeout_seconds=doc.get("timeout_seconds"),
            )
            added += 1
        except BastionError as exc:
            log.warning("catalog.command_skipped", name=name, error=str(exc))
    return added


def load_nodes_file(path: str, registry: NodeRegistry) -> int:
    added = 0
    for doc in _read_list(path):
        fields = {k: str(v) for k, v in doc.items() if k in ("id", "name", "address")}
        try:
            registry.register(Node(**fields))
            added += 1
        except (BastionError, ValueError) as exc:
            log.warning("catalog.node_skipped", node=fields, error=str(exc))
    return added


def seed_catalog(
    commands: CommandRegistry,
    nodes: NodeRegistry,
    cfg: Settings | None = None,
) -> None:
    """Register the local daemon node, load seed files, add default commands."""
    _cfg = cfg or settings

    nodes.register(
        Node(
            id=_cfg.bastion_default_node_id,
            name=_cfg.bastion_default_node_name,
            address=_cfg.bastion_daemon_url,
        ),
    )

    # An unreadable seed file is logged and skipped; startup carries on.
    if _cfg.bastion_nodes_file:
        try:
            count = load_nodes_file(_cfg.bastion_nodes_file, nodes)
            log.info("catalog.nodes_loaded", path=_cfg.bastion_nodes_file, count=count)
        except CatalogError as exc:
            log.warning(
                "catalog.load_failed", path=_cfg.bastion_nodes_file, error=str(exc),
            )

    if _cfg.bastion_commands_file:
        try:
            count = load_commands_file(_cfg.bastion_commands_file, commands)
            log.info(
                "catalog.commands_loaded", path=_cfg.bastion_commands_file, count=count,
            )
        except CatalogError as exc:
            log.warning(
                "catalog.load_failed", path=_cfg.bastion_commands_file, error=str(exc),
            )

    if _cfg.bastion_seed_default_commands and len(commands) == 0:
        for doc in DEFAULT_COMMANDS:
            commands.create(**doc)
        log.info("catalog.defaults_seeded", count=len(DEFAULT_COMMANDS))
