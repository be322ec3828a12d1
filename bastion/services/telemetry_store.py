"""GPU telemetry store.

Samples are keyed by ``(node_id, timestamp)``: ingesting the same key again
replaces the previous reading instead of adding a second one.  Nothing is
ever deleted.
"""

from __future__ import annotations

import math
import threading
from typing import Iterable, Optional

from bastion.errors import ValidationError
from bastion.models.gpu import GpuSample, GpuSampleIn
from bastion.utils.logging import get_logger

log = get_logger(__name__)

_UTIL_MIN = 0.0
_UTIL_MAX = 100.0


def _build_sample(
    node_id: str,
    timestamp: int,
    utilization: float,
    memory_mb: int,
) -> GpuSample:
    if not node_id or not node_id.strip():
        raise ValidationError("node_id is required")
    if memory_mb < 0:
        raise ValidationError(f"memory_mb must be >= 0, got {memory_mb}")
    if not math.isfinite(utilization):
        raise ValidationError(f"utilization must be a finite number, got {utilization}")
    clamped = min(max(float(utilization), _UTIL_MIN), _UTIL_MAX)
    if clamped != utilization:
        log.debug(
            "gpu.utilization_clamped",
            node_id=node_id,
            raw=utilization,
            clamped=clamped,
        )
    return GpuSample(
        node_id=node_id,
        timestamp=int(timestamp),
        utilization=clamped,
        memory_mb=memory_mb,
    )


class TelemetryStore:
    """Append/replace store for GpuSample rows."""

    def __init__(self) -> None:
        self._samples: dict[tuple[str, int], GpuSample] = {}
        self._lock = threading.Lock()

    def ingest(
        self,
        node_id: str,
        timestamp: int,
        utilization: float,
        memory_mb: int,
    ) -> GpuSample:
        sample = _build_sample(node_id, timestamp, utilization, memory_mb)
        with self._lock:
            self._samples[(sample.node_id, sample.timestamp)] = sample
        return sample

    def ingest_many(self, samples: Iterable[GpuSampleIn]) -> list[GpuSample]:
        """Validate every reading first, then store them all."""
        built = [
            _build_sample(s.node_id, s.timestamp, s.utilization, s.memory_mb)
            for s in samples
        ]
        with self._lock:
            for sample in built:
                self._samples[(sample.node_id, sample.timestamp)] = sample
        log.debug("gpu.ingested", count=len(built))
        return built

    def query(
        self,
        since: Optional[int] = None,
        until: Optional[int] = None,
        node_id: Optional[str] = None,
    ) -> list[GpuSample]:
        """Samples within ``[since, until]``, by timestamp then node_id."""
        with self._lock:
            rows = list(self._samples.values())
        if since is not None:
            rows = [s for s in rows if s.timestamp >= since]
        if until is not None:
            rows = [s for s in rows if s.timestamp <= until]
        if node_id is not None:
            rows = [s for s in rows if s.node_id == node_id]
        rows.sort(key=lambda s: (s.timestamp, s.node_id))
        return rows

    def __len__(self) -> int:
        return len(self._samples)


# ── Singleton instance ────────────────────────────────────────────────────

telemetry_store = TelemetryStore()
