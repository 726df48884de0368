"""
Scratch Manager: ephemeral, uniquely named files with guaranteed cleanup.

Every intermediate file the service writes (Ghostscript input/output,
spooled candidates, download-mode results) is a ScratchHandle allocated
here. Handles are released:

- synchronously by their owner, on success and on every failure path
- by a deferred safety-net release after a grace period, for files handed
  to a streaming response that the transport may still be reading

Names are ``<owner>-<epoch ms>-<uuid4 hex><suffix>`` and never derive from
the upload filename, so concurrent requests cannot collide. Files are
created with O_EXCL; an invocation only ever removes names it allocated.

A handle can be pinned by readers. A release requested while a pin is
held is deferred until the last reader finishes, so the primary release
never races an in-progress read.

## Usage

    scratch = ScratchManager(Path("/tmp/pdfshrink"))
    handle = scratch.allocate(owner="codec")
    try:
        handle.write_bytes(data)
        ...
    finally:
        handle.release()

Deferred releases run from ``run_due()``. Production calls ``start()``
to sweep on a background timer; tests inject a clock and call
``run_due()`` themselves.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional
from uuid import uuid4

logger = logging.getLogger(__name__)

NAME_PATTERN = re.compile(r"^[a-z]+-\d{13}-[0-9a-f]{32}\.[a-z0-9]+$")


class ScratchHandle:
    """One uniquely named scratch file."""

    def __init__(self, manager: "ScratchManager", path: Path, owner: str):
        self.path = path
        self.owner = owner
        self.created_at = manager.clock()
        self._manager = manager
        self._lock = threading.Lock()
        self._readers = 0
        self._release_requested = False
        self._released = False

    def __repr__(self) -> str:
        state = "released" if self._released else "live"
        return f"<ScratchHandle {self.name} owner={self.owner} {state}>"

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def released(self) -> bool:
        return self._released

    @property
    def pinned(self) -> bool:
        return self._readers > 0

    def write_bytes(self, data: bytes) -> int:
        self.path.write_bytes(data)
        return len(data)

    def read_bytes(self) -> bytes:
        with self.reading() as path:
            return path.read_bytes()

    def size(self) -> int:
        try:
            return self.path.stat().st_size
        except OSError:
            return 0

    def pin(self) -> None:
        """Register a reader. Must be balanced by unpin()."""
        with self._lock:
            if self._released:
                raise FileNotFoundError(f"Scratch file already released: {self.name}")
            self._readers += 1

    def unpin(self) -> None:
        """Drop a reader; performs a pending release when the last one leaves."""
        with self._lock:
            self._readers = max(0, self._readers - 1)
            run_pending = self._readers == 0 and self._release_requested
        if run_pending:
            self._manager.release(self)

    @contextmanager
    def reading(self) -> Iterator[Path]:
        self.pin()
        try:
            yield self.path
        finally:
            self.unpin()

    def release(self) -> bool:
        return self._manager.release(self)


@dataclass
class ScheduledRelease:
    """A deferred release; cancellable until it fires."""

    handle: ScratchHandle
    due_at: float
    cancelled: bool = False
    fired: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class _SweepState:
    timer: Optional[threading.Timer] = None
    stopped: bool = True
    interval: float = 30.0
    runs: int = 0


class ScratchManager:
    """
    Allocates and releases scratch handles under one root directory.

    Thread-safe: the internal lock only guards bookkeeping and is never
    held while a codec runs.
    """

    def __init__(
        self,
        root: Path,
        grace_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.root = Path(root)
        self.grace_seconds = grace_seconds
        self.clock = clock
        self._lock = threading.Lock()
        self._live: Dict[str, ScratchHandle] = {}
        self._scheduled: List[ScheduledRelease] = []
        self._sweep = _SweepState()

    # ── Allocation ────────────────────────────────────────────

    def allocate(self, owner: str = "orchestrator", suffix: str = ".pdf") -> ScratchHandle:
        """Create a new, empty, uniquely named file and track it."""
        self.root.mkdir(parents=True, exist_ok=True)
        while True:
            name = f"{owner}-{int(time.time() * 1000):013d}-{uuid4().hex}{suffix}"
            path = self.root / name
            try:
                # O_EXCL: never reuse a name, even one left by another process
                with open(path, "xb"):
                    pass
                break
            except FileExistsError:
                continue

        handle = ScratchHandle(self, path, owner)
        with self._lock:
            self._live[name] = handle
        logger.debug(f"Allocated scratch {name}")
        return handle

    # ── Release ───────────────────────────────────────────────

    def release(self, handle: ScratchHandle) -> bool:
        """
        Remove a handle's file. Idempotent; never raises.

        Returns True if the file is gone after the call, False if the
        release was deferred because a reader still holds a pin.
        """
        with handle._lock:
            if handle._released:
                return True
            if handle._readers > 0:
                handle._release_requested = True
                logger.debug(f"Release of {handle.name} deferred until read completes")
                return False
            handle._released = True

        with self._lock:
            self._live.pop(handle.name, None)
            for entry in self._scheduled:
                if entry.handle is handle:
                    entry.cancelled = True
            self._scheduled = [e for e in self._scheduled if not e.cancelled]

        try:
            handle.path.unlink()
            logger.debug(f"Released scratch {handle.name}")
        except FileNotFoundError:
            logger.debug(f"Scratch {handle.name} already removed")
        except OSError as e:
            logger.warning(f"Failed to remove scratch {handle.name}: {e}")
        return True

    def release_all(self, handles: List[ScratchHandle]) -> None:
        for handle in handles:
            if handle is not None:
                self.release(handle)

    # ── Deferred release ──────────────────────────────────────

    def schedule_release(
        self,
        handle: ScratchHandle,
        delay: Optional[float] = None,
    ) -> ScheduledRelease:
        """Release the handle after ``delay`` seconds (default: grace period)."""
        delay = self.grace_seconds if delay is None else delay
        entry = ScheduledRelease(handle=handle, due_at=self.clock() + delay)
        with self._lock:
            self._scheduled.append(entry)
        logger.debug(f"Scheduled release of {handle.name} in {delay:.0f}s")
        return entry

    def run_due(self, now: Optional[float] = None) -> int:
        """Fire every scheduled release whose time has come. Returns the count."""
        now = self.clock() if now is None else now
        with self._lock:
            due = [e for e in self._scheduled if not e.cancelled and e.due_at <= now]
            self._scheduled = [
                e for e in self._scheduled if not e.cancelled and e.due_at > now
            ]

        for entry in due:
            entry.fired = True
            self.release(entry.handle)
        if due:
            logger.info(f"Deferred cleanup released {len(due)} scratch file(s)")
        return len(due)

    def pending_releases(self) -> List[ScheduledRelease]:
        with self._lock:
            return [e for e in self._scheduled if not e.cancelled]

    # ── Lookup / introspection ────────────────────────────────

    def lookup(self, name: str) -> Optional[ScratchHandle]:
        """Resolve a public token to a live handle. Rejects anything path-like."""
        if not NAME_PATTERN.match(name or ""):
            return None
        with self._lock:
            return self._live.get(name)

    def live_handles(self) -> List[ScratchHandle]:
        with self._lock:
            return list(self._live.values())

    def sweep_stale(self, max_age_seconds: float) -> int:
        """
        Remove untracked files older than ``max_age_seconds``.

        Catches leftovers from a previous process that died before its
        deferred releases fired. Live handles are never touched.
        """
        if not self.root.exists():
            return 0
        cutoff = time.time() - max_age_seconds
        with self._lock:
            live = set(self._live)
        removed = 0
        for path in self.root.iterdir():
            if path.name in live or not NAME_PATTERN.match(path.name):
                continue
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    removed += 1
            except OSError as e:
                logger.warning(f"Could not remove stale scratch {path.name}: {e}")
        if removed:
            logger.info(f"Swept {removed} stale scratch file(s) from {self.root}")
        return removed

    # ── Background sweep ──────────────────────────────────────

    def start(self, interval: float = 30.0) -> None:
        """Run ``run_due()`` every ``interval`` seconds on a daemon timer."""
        self._sweep.interval = interval
        self._sweep.stopped = False
        self._arm()

    def stop(self) -> None:
        self._sweep.stopped = True
        if self._sweep.timer is not None:
            self._sweep.timer.cancel()
            self._sweep.timer = None

    def _arm(self) -> None:
        if self._sweep.stopped:
            return
        timer = threading.Timer(self._sweep.interval, self._tick)
        timer.daemon = True
        self._sweep.timer = timer
        timer.start()

    def _tick(self) -> None:
        try:
            self.run_due()
            self._sweep.runs += 1
        except Exception as e:
            logger.exception(f"Deferred scratch cleanup failed: {e}")
        finally:
            self._arm()
