"""In-memory command store with validation and reference checks."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from bastion.config import settings
from bastion.errors import ConflictError, NotFoundError, ValidationError
from bastion.models.commands import Command
from bastion.utils.logging import get_logger

log = get_logger(__name__)

# Returns True while a non-terminal Execution references the command id
ReferenceGuard = Callable[[str], bool]


def _validate(name: str, script: str, timeout_seconds: int) -> None:
    if not name or not name.strip():
        raise ValidationError("name is required")
    if not script or not script.strip():
        raise ValidationError("script is required")
    if (
        not isinstance(timeout_seconds, int)
        or isinstance(timeout_seconds, bool)
        or timeout_seconds <= 0
    ):
        raise ValidationError("timeout_seconds must be a positive integer")


class CommandRegistry:
    """Owns Command definitions, kept in creation order.

    The registry lock is re-entrant so the coordinator can hold it across
    ``get`` plus its own bookkeeping (see ``locked``) and so the reference
    guard may be consulted from inside ``delete``.
    """

    def __init__(self, default_timeout_seconds: int | None = None) -> None:
        self._default_timeout = (
            default_timeout_seconds or settings.bastion_default_timeout_seconds
        )
        self._commands: dict[str, Command] = {}
        self._lock = threading.RLock()
        self._reference_guard: Optional[ReferenceGuard] = None

    def set_reference_guard(self, guard: ReferenceGuard) -> None:
        self._reference_guard = guard

    @contextmanager
    def locked(self) -> Iterator[None]:
        """Hold the registry lock so a snapshot cannot race ``delete``."""
        with self._lock:
            yield

    # ── mutations ─────────────────────────────────────────────────────

    def create(
        self,
        name: str,
        description: Optional[str],
        script: str,
        timeout_seconds: Optional[int] = None,
    ) -> Command:
        timeout = self._default_timeout if timeout_seconds is None else timeout_seconds
        _validate(name, script, timeout)
        name = name.strip()
        with self._lock:
            if self._name_taken(name):
                raise ConflictError(f"command name {name!r} already exists")
            command = Command(
                name=name,
                description=description or "",
                script=script,
                timeout_seconds=timeout,
            )
            self._commands[command.id] = command
        log.info("command.created", command_id=command.id, name=name)
        return command

    def update(
        self,
        command_id: str,
        name: str,
        description: Optional[str],
        script: str,
        timeout_seconds: Optional[int] = None,
    ) -> Command:
        with self._lock:
            current = self.get(command_id)
            timeout = (
                current.timeout_seconds if timeout_seconds is None else timeout_seconds
            )
            _validate(name, script, timeout)
            name = name.strip()
            if self._name_taken(name, exclude=command_id):
                raise ConflictError(f"command name {name!r} already exists")
            updated = current.model_copy(
                update={
                    "name": name,
                    "description": description or "",
                    "script": script,
                    "timeout_seconds": timeout,
                },
            )
            # dict assignment to an existing key keeps its position
            self._commands[command_id] = updated
        log.info("command.updated", command_id=command_id)
        return updated

    def delete(self, command_id: str) -> None:
        with self._lock:
            if command_id not in self._commands:
                raise NotFoundError("command", command_id)
            if self._reference_guard is not None and self._reference_guard(command_id):
                raise ConflictError(
                    f"command {command_id} is referenced by a pending or running execution",
                )
            del self._commands[command_id]
        log.info("command.deleted", command_id=command_id)

    # ── reads ─────────────────────────────────────────────────────────

    def get(self, command_id: str) -> Command:
        with self._lock:
            command = self._commands.get(command_id)
        if command is None:
            raise NotFoundError("command", command_id)
        return command

    def find_by_name(self, name: str) -> Optional[Command]:
        with self._lock:
            for command in self._commands.values():
                if command.name == name.strip():
                    return command
        return None

    def list(self) -> list[Command]:
        with self._lock:
            return list(self._commands.values())

    def __len__(self) -> int:
        return len(self._commands)

    # ── helpers ───────────────────────────────────────────────────────

    def _name_taken(self, name: str, exclude: str | None = None) -> bool:
        return any(
            c.name == name and c.id != exclude for c in self._commands.values()
        )


# ── Singleton instance ────────────────────────────────────────────────────

command_registry = CommandRegistry()
