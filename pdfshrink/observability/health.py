"""
Health Check: can this process compress a PDF right now?

Four components, worst one wins:

    codecs            UNHEALTHY when no backend works, DEGRADED when one is missing
    scratch_dir       UNHEALTHY when the directory cannot be created or written
    circuit_breakers  DEGRADED while any codec circuit is open
    scratch_backlog   DEGRADED when unreleased scratch files pile up

``GET /health`` answers 503 only for UNHEALTHY; a DEGRADED service still
compresses with whatever backend is left.
"""

from __future__ import annotations

import os
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from ..codecs.registry import CodecRegistry
    from ..engine.scratch import ScratchManager
    from ..reliability.circuit_breaker import CircuitBreakerRegistry

SERVICE_NAME = "PDF Compression Server"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


SEVERITY = {HealthStatus.HEALTHY: 0, HealthStatus.DEGRADED: 1, HealthStatus.UNHEALTHY: 2}


@dataclass
class ComponentHealth:
    name: str
    status: HealthStatus
    message: str = ""
    latency_ms: Optional[float] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "message": self.message,
            "latency_ms": self.latency_ms,
            "details": self.details,
        }


@dataclass
class SystemHealth:
    """Aggregated report, serialised as the /health body."""

    status: HealthStatus
    timestamp: str
    uptime_seconds: float
    components: List[ComponentHealth]
    codecs: Dict[str, Any] = field(default_factory=dict)

    @property
    def healthy(self) -> bool:
        return self.status == HealthStatus.HEALTHY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "service": SERVICE_NAME,
            "timestamp": self.timestamp,
            "uptime_seconds": round(self.uptime_seconds, 1),
            "healthy": self.healthy,
            "codecs": self.codecs,
            "components": [c.to_dict() for c in self.components],
        }


class HealthChecker:
    """Runs the component checks against the live service objects."""

    def __init__(
        self,
        registry: "CodecRegistry",
        scratch: "ScratchManager",
        breakers: Optional["CircuitBreakerRegistry"] = None,
        backlog_threshold: int = 100,
    ):
        self.registry = registry
        self.scratch = scratch
        self.breakers = breakers
        self.backlog_threshold = backlog_threshold
        self._started = time.time()

    def check(self) -> SystemHealth:
        codecs = self.registry.describe()
        components = [
            self._codecs(codecs),
            self._scratch_dir(),
            self._circuits(),
            self._backlog(),
        ]
        worst = max((c.status for c in components), key=SEVERITY.__getitem__)
        return SystemHealth(
            status=worst,
            timestamp=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            uptime_seconds=time.time() - self._started,
            components=components,
            codecs=codecs,
        )

    def _codecs(self, codecs: Dict[str, Any]) -> ComponentHealth:
        up = sorted(n for n, info in codecs.items() if info["available"])
        down = sorted(n for n, info in codecs.items() if not info["available"])
        details = {"available": up, "missing": down}

        if not up:
            return ComponentHealth("codecs", HealthStatus.UNHEALTHY, "No compression backend available", details=details)
        if down:
            return ComponentHealth("codecs", HealthStatus.DEGRADED, f"Unavailable: {', '.join(down)}", details=details)
        return ComponentHealth("codecs", HealthStatus.HEALTHY, f"Available: {', '.join(up)}", details=details)

    def _scratch_dir(self) -> ComponentHealth:
        began = time.perf_counter()
        root = self.scratch.root
        try:
            root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return ComponentHealth("scratch_dir", HealthStatus.UNHEALTHY, f"Cannot create scratch directory ({e.strerror})")
        if not os.access(root, os.W_OK):
            return ComponentHealth("scratch_dir", HealthStatus.UNHEALTHY, "Scratch directory is not writable")
        return ComponentHealth(
            "scratch_dir",
            HealthStatus.HEALTHY,
            "Scratch directory writable",
            latency_ms=(time.perf_counter() - began) * 1000,
        )

    def _circuits(self) -> ComponentHealth:
        open_circuits = self.breakers.get_open_circuits() if self.breakers else []
        if open_circuits:
            return ComponentHealth(
                "circuit_breakers",
                HealthStatus.DEGRADED,
                f"Open circuits: {', '.join(open_circuits)}",
                details={"open": open_circuits},
            )
        return ComponentHealth("circuit_breakers", HealthStatus.HEALTHY, "All circuits closed")

    def _backlog(self) -> ComponentHealth:
        live = len(self.scratch.live_handles())
        details = {"live": live, "pending_releases": len(self.scratch.pending_releases())}
        status = HealthStatus.DEGRADED if live > self.backlog_threshold else HealthStatus.HEALTHY
        return ComponentHealth("scratch_backlog", status, f"{live} live scratch files", details=details)
