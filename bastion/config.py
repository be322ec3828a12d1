"""Application settings loaded from environment variables."""

from __future__ import annotations

from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings


class DispatchMode(str, Enum):
    sync = "sync"
    async_ = "async"


class Settings(BaseSettings):
    """All configuration is driven by environment variables."""

    # Default node (the local daemon)
    bastion_daemon_url: str = "http://localhost:9090"
    bastion_default_node_id: str = "node-local"
    bastion_default_node_name: str = "Local Daemon"

    # Seed files (YAML lists)
    bastion_commands_file: str = ""
    bastion_nodes_file: str = ""
    bastion_seed_default_commands: bool = True

    # Execution
    bastion_default_timeout_seconds: int = Field(default=300, gt=0)
    bastion_dispatch_mode: DispatchMode = DispatchMode.sync

    # Executor HTTP client
    bastion_executor_connect_timeout: float = 10.0
    bastion_executor_grace_seconds: float = 5.0

    # HTTP
    bastion_cors_origins: list[str] = ["*"]

    # Logging
    bastion_log_level: str = "INFO"
    bastion_log_json: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Singleton – import this from anywhere
settings = Settings()
