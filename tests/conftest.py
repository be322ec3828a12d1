"""Shared pytest fixtures."""

from __future__ import annotations

import os

# Force settings to use test-safe defaults before any import
os.environ.setdefault("BASTION_DAEMON_URL", "http://127.0.0.1:9090")
os.environ.setdefault("BASTION_COMMANDS_FILE", "")
os.environ.setdefault("BASTION_NODES_FILE", "")
os.environ.setdefault("BASTION_DISPATCH_MODE", "sync")

import pytest
from httpx import ASGITransport, AsyncClient

from bastion.config import DispatchMode, Settings
from bastion.models.nodes import Node
from bastion.services.command_registry import CommandRegistry
from bastion.services.execution_coordinator import ExecutionCoordinator
from bastion.services.node_registry import NodeRegistry
from bastion.services.query_facade import QueryFacade
from bastion.services.telemetry_store import TelemetryStore
from tests.fake_executor import FakeExecutor


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def fake_executor():
    """Provide a fresh FakeExecutor."""
    return FakeExecutor()


@pytest.fixture
def commands():
    return CommandRegistry(default_timeout_seconds=300)


@pytest.fixture
def nodes():
    registry = NodeRegistry()
    registry.register(Node(id="n1", name="gpu-01", address="http://10.0.0.11:9090"))
    registry.register(Node(id="n2", name="gpu-02", address="http://10.0.0.12:9090"))
    return registry


@pytest.fixture
def telemetry():
    return TelemetryStore()


@pytest.fixture
async def coordinator(commands, nodes, fake_executor):
    coord = ExecutionCoordinator(
        commands,
        nodes,
        fake_executor,
        cfg=Settings(bastion_dispatch_mode=DispatchMode.sync),
    )
    yield coord
    await coord.close()


@pytest.fixture
def facade(commands, nodes, coordinator, telemetry):
    return QueryFacade(commands, nodes, coordinator, telemetry)


@pytest.fixture
async def client(commands, coordinator, telemetry, facade, monkeypatch):
    """Async test client with fresh services and the fake executor injected."""
    import bastion.routers.commands as rc
    import bastion.routers.executions as re_
    import bastion.routers.gpu as rg
    import bastion.routers.nodes as rn

    monkeypatch.setattr(rc, "command_registry", commands)
    monkeypatch.setattr(rc, "query_facade", facade)
    monkeypatch.setattr(rn, "query_facade", facade)
    monkeypatch.setattr(re_, "execution_coordinator", coordinator)
    monkeypatch.setattr(re_, "query_facade", facade)
    monkeypatch.setattr(rg, "telemetry_store", telemetry)
    monkeypatch.setattr(rg, "query_facade", facade)

    from bastion.main import app as fastapi_app

    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
