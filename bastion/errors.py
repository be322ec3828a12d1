"""Error taxonomy shared by the registries, coordinator and routers."""

from __future__ import annotations


class BastionError(Exception):
    """Base class for all control-plane errors."""


class ValidationError(BastionError):
    """Malformed input. Never retried."""


class NotFoundError(BastionError):
    """Unknown command, node or execution id."""

    def __init__(self, kind: str, ident: str) -> None:
        super().__init__(f"unknown {kind} {ident}")
        self.kind = kind
        self.ident = ident


class ConflictError(BastionError):
    """Uniqueness or reference-integrity violation."""


class ExecutorUnreachableError(BastionError):
    """The executor could not be reached or returned garbage.

    Recorded inside a failed Execution, never raised to API callers.
    """


class TimeoutExceeded(BastionError):
    """Drives the deadline finalize path of a running Execution."""

    def __init__(self, execution_id: str, timeout_seconds: int) -> None:
        super().__init__(
            f"execution timed out after {timeout_seconds}s; executor call abandoned",
        )
        self.execution_id = execution_id
        self.timeout_seconds = timeout_seconds


class CatalogError(BastionError):
    """A seed file could not be read or parsed."""
