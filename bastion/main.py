"""FastAPI application entry-point."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bastion import __version__
from bastion.config import settings
from bastion.routers import commands, executions, gpu, health, nodes
from bastion.services.catalog_loader import seed_catalog
from bastion.services.command_registry import command_registry
from bastion.services.execution_coordinator import execution_coordinator
from bastion.services.executor import http_executor
from bastion.services.node_registry import node_registry
from bastion.utils.logging import get_logger, setup_logging

log = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown hooks."""
    setup_logging()
    seed_catalog(command_registry, node_registry)
    log.info(
        "bastion.started",
        commands=len(command_registry.list()),
        nodes=len(node_registry.list()),
        dispatch_mode=settings.bastion_dispatch_mode.value,
    )
    yield
    # Shutdown: fail in-flight executions, then drop the executor client
    await execution_coordinator.close()
    await http_executor.close()


app = FastAPI(
    title="Bastion",
    description="Command dispatch and GPU telemetry for a fleet of compute nodes",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.bastion_cors_origins,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type"],
)

app.include_router(health.router)
app.include_router(commands.router)
app.include_router(nodes.router)
app.include_router(executions.router)
app.include_router(gpu.router)
