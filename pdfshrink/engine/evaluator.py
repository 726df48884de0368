"""
Candidate Evaluator: run one preset and report what happened.

The evaluator is the boundary between the orchestrator and the codecs.
Codec errors are turned into failed CandidateResults here and never
propagate further. The one exception is a codec timeout that was caused
by the request deadline rather than the per-codec limit: that becomes a
RequestTimeout so the orchestrator aborts the whole invocation.

Successful output is spooled to a fresh orchestrator-owned scratch
handle. The orchestrator then decides whether to keep it or release it.

## Usage

    evaluator = CandidateEvaluator(registry, scratch, breakers)
    result = evaluator.evaluate(data, presets.get("extreme"), timeout=120)

    if result.succeeded:
        print(result.size_bytes, result.handle.name)
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Optional

from ..codecs.base import CodecError, CodecTimeout, CodecUnavailable
from ..errors import RequestTimeout
from ..models.result import CandidateResult
from ..observability.metrics import MetricsRegistry, metrics as global_metrics
from ..presets.models import PresetSpec
from ..reliability.circuit_breaker import CircuitBreakerRegistry
from .scratch import ScratchManager

if TYPE_CHECKING:
    from ..codecs.registry import CodecRegistry

logger = logging.getLogger(__name__)

# Only infrastructure failures say anything about a codec's health.
BREAKER_ERRORS = (CodecUnavailable, CodecTimeout)


class CandidateEvaluator:
    """Evaluates presets against one input, one candidate per call."""

    def __init__(
        self,
        registry: "CodecRegistry",
        scratch: ScratchManager,
        breakers: Optional[CircuitBreakerRegistry] = None,
        metrics: Optional[MetricsRegistry] = None,
    ):
        self.registry = registry
        self.scratch = scratch
        self.breakers = breakers or CircuitBreakerRegistry()
        self.metrics = metrics or global_metrics

    def evaluate(
        self,
        data: bytes,
        preset: PresetSpec,
        timeout: float,
        deadline_bound: bool = False,
    ) -> CandidateResult:
        """
        Run ``preset`` against ``data``.

        Args:
            data: Input PDF bytes (never mutated)
            preset: The preset to apply
            timeout: Seconds the codec may run
            deadline_bound: True when ``timeout`` was cut short by the
                request deadline; a codec timeout then raises RequestTimeout

        Returns:
            CandidateResult; on success its handle owns the output file
        """
        try:
            codec = self.registry.get(preset.codec)
        except CodecUnavailable as e:
            result = CandidateResult.failed(preset.name, preset.codec, e.code, str(e))
            self._record(result)
            return result

        breaker = self.breakers.get(codec.name)
        if not breaker.allow_request():
            result = CandidateResult.skipped(preset.name, codec.name, "circuit_open")
            self._record(result)
            return result

        start = time.monotonic()
        logger.info(
            f"→ Trying preset {preset.name} [codec={codec.name}, timeout={timeout:.0f}s]",
            extra={"preset": preset.name, "codec": codec.name},
        )
        try:
            output = codec.compress(data, preset, timeout)
        except CodecTimeout as e:
            duration = time.monotonic() - start
            if deadline_bound:
                breaker.release_probe()
                logger.warning(f"  ✗ {preset.name}: request deadline reached after {duration:.1f}s")
                raise RequestTimeout(
                    f"Request deadline reached while running preset {preset.name}"
                ) from e
            breaker.record_failure()
            result = CandidateResult.failed(preset.name, codec.name, e.code, str(e), duration)
            self._record(result)
            return result
        except CodecError as e:
            duration = time.monotonic() - start
            if isinstance(e, BREAKER_ERRORS):
                breaker.record_failure()
            else:
                breaker.release_probe()
            result = CandidateResult.failed(preset.name, codec.name, e.code, str(e), duration)
            self._record(result)
            return result
        except Exception as e:
            duration = time.monotonic() - start
            logger.exception(f"Codec {codec.name} crashed on preset {preset.name}: {e}")
            breaker.record_failure()
            result = CandidateResult.failed(
                preset.name, codec.name, "codec_exception", str(e), duration
            )
            self._record(result)
            return result

        duration = time.monotonic() - start
        breaker.record_success()

        if not output:
            result = CandidateResult.failed(
                preset.name, codec.name, "output_invalid", "Codec produced empty output", duration
            )
            self._record(result)
            return result

        handle = self.scratch.allocate(owner="orchestrator")
        try:
            size = handle.write_bytes(output)
        except OSError as e:
            handle.release()
            result = CandidateResult.failed(
                preset.name, codec.name, "scratch_write_failed", str(e), duration
            )
            self._record(result)
            return result

        result = CandidateResult.ok(preset.name, codec.name, size, handle, duration)
        self._record(result)
        return result

    def _record(self, result: CandidateResult) -> None:
        labels = {"preset": result.preset, "status": result.status}
        self.metrics.increment("candidates_total", labels=labels)
        if result.status != "skipped":
            self.metrics.timing(
                "codec_duration_seconds", result.duration_seconds, labels={"codec": result.codec}
            )

        extra = {"preset": result.preset, "codec": result.codec}
        if result.succeeded:
            logger.info(
                f"  ✓ {result.preset}: {result.size_bytes:,} bytes "
                f"[{result.duration_seconds * 1000:.0f}ms]",
                extra=extra,
            )
        elif result.status == "skipped":
            logger.info(f"  ⊘ {result.preset}: SKIPPED [{result.error.code}]", extra=extra)
        else:
            logger.warning(
                f"  ✗ {result.preset}: FAILED [code={result.error.code}] {result.error.message}",
                extra=extra,
            )
