"""
Circuit Breaker: stop invoking a codec that keeps failing.

When Ghostscript is missing or crashing, every best-of request would pay
for three doomed subprocess spawns. After ``failure_threshold`` failures
inside ``failure_window_seconds`` the codec's circuit opens and its
presets are skipped until ``reset_timeout_seconds`` have passed; then a
half-open probe decides whether to close again.

Only infrastructure failures are recorded (tool unavailable, timeout,
crash). A PDF the codec rejects says nothing about the codec's health.

    closed ──(threshold failures in window)──▶ open
    open ──(reset timeout elapsed)──▶ half_open
    half_open ──(probe ok)──▶ closed
    half_open ──(probe fails)──▶ open
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitConfig:
    failure_threshold: int = 5
    failure_window_seconds: float = 60.0
    reset_timeout_seconds: float = 30.0
    # Successful probes needed before a half-open circuit closes
    success_threshold: int = 1


@dataclass
class CircuitStats:
    success_count: int = 0
    failure_count: int = 0
    rejected_count: int = 0
    last_failure_at: Optional[str] = None
    last_state_change_at: Optional[str] = None


def _utc_stamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class CircuitBreaker:
    """Breaker for one codec. Time comes from ``clock`` so tests can step it."""

    def __init__(
        self,
        name: str,
        config: Optional[CircuitConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.config = config or CircuitConfig()
        self._clock = clock
        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._opened_at = 0.0
        self._probe_successes = 0
        self._probing = False
        self._recent: Deque[float] = deque()
        self.stats = CircuitStats()

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._current()

    def allow_request(self) -> bool:
        """
        False while open. Half-open admits one probe at a time; the probe
        ends with record_success, record_failure or release_probe.
        """
        with self._lock:
            state = self._current()
            if state is CircuitState.CLOSED:
                return True
            if state is CircuitState.HALF_OPEN and not self._probing:
                self._probing = True
                return True
            self.stats.rejected_count += 1
        logger.debug(f"{self.name}: circuit {state.value}, call skipped")
        return False

    def release_probe(self) -> None:
        """End a half-open probe that produced no verdict on codec health."""
        with self._lock:
            self._probing = False

    def record_success(self) -> None:
        with self._lock:
            self._probing = False
            self.stats.success_count += 1
            if self._current() is CircuitState.HALF_OPEN:
                self._probe_successes += 1
                if self._probe_successes >= self.config.success_threshold:
                    self._move(CircuitState.CLOSED)

    def record_failure(self) -> None:
        with self._lock:
            self._probing = False
            self.stats.failure_count += 1
            self.stats.last_failure_at = _utc_stamp()
            state = self._current()
            if state is CircuitState.HALF_OPEN:
                self._move(CircuitState.OPEN)
            elif state is CircuitState.CLOSED:
                now = self._clock()
                self._recent.append(now)
                while self._recent and self._recent[0] <= now - self.config.failure_window_seconds:
                    self._recent.popleft()
                if len(self._recent) >= self.config.failure_threshold:
                    logger.warning(
                        f"{self.name}: {len(self._recent)} failures within "
                        f"{self.config.failure_window_seconds:.0f}s, opening circuit"
                    )
                    self._move(CircuitState.OPEN)

    def reset(self) -> None:
        with self._lock:
            self._state = CircuitState.CLOSED
            self._probe_successes = 0
            self._probing = False
            self._recent.clear()
            self.stats = CircuitStats()

    def get_stats(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "stats": asdict(self.stats),
            "config": asdict(self.config),
        }

    def _current(self) -> CircuitState:
        # Caller holds the lock. An expired open circuit becomes half-open lazily.
        if (
            self._state is CircuitState.OPEN
            and self._clock() - self._opened_at >= self.config.reset_timeout_seconds
        ):
            self._move(CircuitState.HALF_OPEN)
        return self._state

    def _move(self, new: CircuitState) -> None:
        old, self._state = self._state, new
        self._probe_successes = 0
        self.stats.last_state_change_at = _utc_stamp()
        if new is CircuitState.OPEN:
            self._opened_at = self._clock()
        elif new is CircuitState.CLOSED:
            self._recent.clear()
        logger.info(f"{self.name}: circuit {old.value} → {new.value}")


class CircuitBreakerRegistry:
    """Breakers keyed by codec name, created on first use."""

    def __init__(
        self,
        config: Optional[CircuitConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._config = config
        self._clock = clock
        self._lock = threading.Lock()
        self._breakers: Dict[str, CircuitBreaker] = {}

    def get(self, name: str) -> CircuitBreaker:
        with self._lock:
            breaker = self._breakers.get(name)
            if breaker is None:
                breaker = self._breakers[name] = CircuitBreaker(name, self._config, self._clock)
            return breaker

    def _snapshot(self) -> Dict[str, CircuitBreaker]:
        with self._lock:
            return dict(self._breakers)

    def get_open_circuits(self) -> List[str]:
        return [n for n, b in self._snapshot().items() if b.state is CircuitState.OPEN]

    def get_all_stats(self) -> Dict[str, Any]:
        return {n: b.get_stats() for n, b in self._snapshot().items()}

    def reset_all(self) -> None:
        for breaker in self._snapshot().values():
            breaker.reset()
