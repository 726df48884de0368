"""
Service wiring: build every shared component from one configuration.

The Flask app and the CLI both call ``build_service(config)`` and then
work only with the returned CompressionService, so nothing reads
process-wide state after startup.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, Optional

from ..codecs.registry import CodecRegistry, build_registry
from ..config.loader import CompressorConfig
from ..config.validator import require_valid
from ..observability.health import HealthChecker
from ..observability.metrics import MetricsRegistry, metrics as global_metrics
from ..presets.loader import load_presets
from ..presets.models import PresetTable
from ..reliability.circuit_breaker import CircuitBreakerRegistry
from .evaluator import CandidateEvaluator
from .orchestrator import CompressionOrchestrator
from .scratch import ScratchManager

logger = logging.getLogger(__name__)


@dataclass
class CompressionService:
    """Everything a request handler needs, built once per process."""

    config: CompressorConfig
    presets: PresetTable
    scratch: ScratchManager
    registry: CodecRegistry
    breakers: CircuitBreakerRegistry
    metrics: MetricsRegistry
    orchestrator: CompressionOrchestrator
    health: HealthChecker

    # Download token → original upload name, for the attachment filename.
    # Request threads share it, so every access holds the lock.
    _downloads: Dict[str, str] = field(default_factory=dict, init=False, repr=False)
    _downloads_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def remember_download(self, token: str, original_name: str) -> None:
        """Record a stored result, forgetting tokens whose files are gone."""
        with self._downloads_lock:
            for stale in [t for t in self._downloads if self.scratch.lookup(t) is None]:
                del self._downloads[stale]
            self._downloads[token] = original_name

    def original_name(self, token: str) -> Optional[str]:
        with self._downloads_lock:
            return self._downloads.get(token)

    def forget_download(self, token: str) -> None:
        with self._downloads_lock:
            self._downloads.pop(token, None)

    def start(self) -> None:
        """Start the background deferred-release sweep."""
        self.scratch.start(self.config.sweep_interval_seconds)

    def stop(self) -> None:
        self.scratch.stop()


def build_service(
    config: CompressorConfig,
    registry: Optional[CodecRegistry] = None,
    scratch: Optional[ScratchManager] = None,
    metrics: Optional[MetricsRegistry] = None,
) -> CompressionService:
    """
    Build the service for a configuration.

    ``registry`` and ``scratch`` can be supplied to inject fake codecs or
    a virtual clock; otherwise they are built from the config.

    Raises:
        ConfigError: the configuration has error-level issues
    """
    require_valid(config)
    metrics = metrics or global_metrics
    presets = load_presets(config.presets_file)
    scratch = scratch or ScratchManager(config.scratch_dir, config.release_grace_seconds)
    if registry is None:
        registry = build_registry(scratch, gs_binary=config.gs_binary, mock_mode=config.mock_codecs)
    breakers = CircuitBreakerRegistry()

    evaluator = CandidateEvaluator(registry, scratch, breakers, metrics)
    orchestrator = CompressionOrchestrator(config, presets, evaluator, scratch, metrics=metrics)
    health = HealthChecker(registry, scratch, breakers)

    logger.info(
        f"Service ready: strategy={config.strategy}, codecs={registry.names()}, "
        f"scratch={scratch.root}"
    )
    return CompressionService(
        config=config,
        presets=presets,
        scratch=scratch,
        registry=registry,
        breakers=breakers,
        metrics=metrics,
        orchestrator=orchestrator,
        health=health,
    )
