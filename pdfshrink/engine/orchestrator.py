"""
Compression Orchestrator: pick the smallest valid output for a request.

One invocation per request. The orchestrator:
1. Validates the request (before any scratch file exists)
2. Resolves the preset plan for the requested tier
3. Evaluates presets in declared order, keeping only the best-so-far
4. Applies the not-smaller policy to the winner
5. Reads the winner's bytes and releases every handle it owns

## Selection Rule

A candidate replaces the best-so-far only if it is strictly smaller.
Ties keep the earlier preset, so the outcome for a given input and
preset table is deterministic. A losing candidate is released as soon
as it has lost, so at most two candidate files are live at a time.

## Usage

    orchestrator = CompressionOrchestrator(config, presets, evaluator, scratch)
    outcome = orchestrator.compress(request)

    print(f"{outcome.preset}: {outcome.reduction_percent:.1f}% smaller")
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Tuple
from uuid import uuid4

from ..config.loader import CompressorConfig
from ..errors import AllPresetsFailed, InvalidInput, OutputNotSmaller, RequestTimeout
from ..models.request import PDF_MIME_TYPE, CompressionRequest, QualityTier
from ..models.result import CandidateResult, CandidateSummary, CompressionOutcome
from ..observability.metrics import MetricsRegistry, metrics as global_metrics
from ..presets.models import PresetSpec, PresetTable
from .evaluator import CandidateEvaluator
from .scratch import ScratchManager

logger = logging.getLogger(__name__)


class CompressionOrchestrator:
    """Runs the preset plan for one request at a time per call."""

    def __init__(
        self,
        config: CompressorConfig,
        presets: PresetTable,
        evaluator: CandidateEvaluator,
        scratch: ScratchManager,
        clock: Callable[[], float] = time.monotonic,
        metrics: Optional[MetricsRegistry] = None,
    ):
        self.config = config
        self.presets = presets
        self.evaluator = evaluator
        self.scratch = scratch
        self.clock = clock
        self.metrics = metrics or global_metrics

    # ── Request preparation ───────────────────────────────────

    def validate(self, request: CompressionRequest) -> None:
        """Raise InvalidInput if the request cannot be compressed."""
        if request.original_size == 0:
            raise InvalidInput("No PDF file uploaded", field="file")

        if request.original_size > self.config.max_upload_bytes:
            limit_mb = self.config.max_upload_bytes / (1024 * 1024)
            raise InvalidInput(
                f"File too large (limit {limit_mb:.0f} MB)",
                field="file",
                details={"size": request.original_size},
            )

        if request.content_type:
            mime = request.content_type.split(";")[0].strip().lower()
            if mime != PDF_MIME_TYPE:
                raise InvalidInput("Only PDF files are allowed", field="file")

        if not request.looks_like_pdf:
            raise InvalidInput("Uploaded file is not a PDF", field="file")

    def resolve_tier(self, raw: Optional[str]) -> QualityTier:
        """Map a client-supplied quality string to a tier."""
        default = QualityTier.parse(self.config.default_tier) or QualityTier.MEDIUM
        if raw is None or not str(raw).strip():
            return default

        tier = QualityTier.parse(raw)
        if tier is not None:
            return tier

        if self.config.strict_tier:
            valid = ", ".join(t.value for t in QualityTier)
            raise InvalidInput(f"Unknown quality '{raw}' (expected one of: {valid})", field="quality")

        logger.warning(f"Unknown quality '{raw}', using default '{default.value}'")
        return default

    def plan(self, tier: QualityTier) -> List[PresetSpec]:
        """The ordered preset list for a tier under the configured strategy."""
        if self.config.strategy == "single":
            return self.presets.single_plan(tier)
        return self.presets.best_of_plan(tier)

    # ── Compression ───────────────────────────────────────────

    def compress(
        self,
        request: CompressionRequest,
        request_id: Optional[str] = None,
    ) -> CompressionOutcome:
        """
        Compress a request and return the outcome.

        Raises:
            InvalidInput: the request failed validation
            AllPresetsFailed: no preset produced usable output
            OutputNotSmaller: nothing beat the input and policy is "error"
            RequestTimeout: the request deadline expired
        """
        request_id = request_id or uuid4().hex[:8]
        extra = {"request_id": request_id, "tier": request.tier.value}
        start = self.clock()

        try:
            self.validate(request)
        except InvalidInput:
            self.metrics.increment("requests_total", labels={"result": "invalid"})
            raise

        plan = self.plan(request.tier)
        logger.info(
            f"Compressing {request.filename} ({request.original_size:,} bytes) "
            f"tier={request.tier.value} plan={[p.name for p in plan]}",
            extra=extra,
        )

        try:
            if self.config.parallel_presets and len(plan) > 1:
                outcome = self._run_parallel(request, plan, start + self.config.request_timeout_seconds)
            else:
                outcome = self._run_sequential(request, plan, start + self.config.request_timeout_seconds)
        except AllPresetsFailed:
            self.metrics.increment("requests_total", labels={"result": "failed"})
            raise
        except OutputNotSmaller:
            self.metrics.increment("requests_total", labels={"result": "not_smaller"})
            raise
        except RequestTimeout:
            self.metrics.increment("requests_total", labels={"result": "timeout"})
            raise
        finally:
            self.metrics.timing("compress_duration_seconds", self.clock() - start)
            self.metrics.set_gauge("scratch_live_handles", len(self.scratch.live_handles()))

        result_label = "compressed" if outcome.compressed else "original"
        self.metrics.increment("requests_total", labels={"result": result_label})
        self.metrics.increment("bytes_in_total", outcome.original_size)
        self.metrics.increment("bytes_out_total", outcome.output_size)
        if outcome.compressed:
            self.metrics.increment("bytes_saved_total", outcome.original_size - outcome.output_size)

        logger.info(
            f"Done: {outcome.original_size:,} → {outcome.output_size:,} bytes "
            f"({outcome.reduction_percent:.1f}%) preset={outcome.preset or 'original'}",
            extra=extra,
        )
        return outcome

    def _timeout_for(self, deadline: float) -> Tuple[float, bool]:
        """Codec timeout for the next preset and whether the deadline bounds it."""
        remaining = deadline - self.clock()
        if remaining <= 0:
            raise RequestTimeout("Request deadline reached before all presets ran")
        if remaining < self.config.codec_timeout_seconds:
            return remaining, True
        return self.config.codec_timeout_seconds, False

    def _run_sequential(
        self,
        request: CompressionRequest,
        plan: List[PresetSpec],
        deadline: float,
    ) -> CompressionOutcome:
        best: Optional[CandidateResult] = None
        summaries: List[CandidateSummary] = []
        try:
            for preset in plan:
                timeout, bound = self._timeout_for(deadline)
                result = self.evaluator.evaluate(request.data, preset, timeout, deadline_bound=bound)
                summaries.append(result.summary())
                best = self._fold(best, result)
            return self._finalize(request, best, summaries)
        finally:
            if best is not None:
                self.scratch.release(best.handle)

    def _run_parallel(
        self,
        request: CompressionRequest,
        plan: List[PresetSpec],
        deadline: float,
    ) -> CompressionOutcome:
        timeout, bound = self._timeout_for(deadline)
        results: List[CandidateResult] = []
        timed_out: Optional[RequestTimeout] = None

        with ThreadPoolExecutor(max_workers=len(plan), thread_name_prefix="preset") as pool:
            futures = [
                pool.submit(self.evaluator.evaluate, request.data, preset, timeout, bound)
                for preset in plan
            ]
            # Collect every future so no handle is lost, even after a timeout.
            for future in futures:
                try:
                    results.append(future.result())
                except RequestTimeout as e:
                    timed_out = timed_out or e

        best: Optional[CandidateResult] = None
        try:
            if timed_out is not None:
                self.scratch.release_all([r.handle for r in results if r.succeeded])
                raise timed_out
            summaries = []
            for result in results:
                summaries.append(result.summary())
                best = self._fold(best, result)
            return self._finalize(request, best, summaries)
        finally:
            if best is not None:
                self.scratch.release(best.handle)

    def _fold(
        self,
        best: Optional[CandidateResult],
        result: CandidateResult,
    ) -> Optional[CandidateResult]:
        """Keep the strictly smaller of best and result; release the other."""
        if not result.succeeded:
            return best
        if best is None:
            return result
        if result.size_bytes < best.size_bytes:
            self.scratch.release(best.handle)
            return result
        self.scratch.release(result.handle)
        return best

    def _finalize(
        self,
        request: CompressionRequest,
        best: Optional[CandidateResult],
        summaries: List[CandidateSummary],
    ) -> CompressionOutcome:
        tier = request.tier.value
        if best is None:
            attempts = [s.model_dump() for s in summaries]
            logger.error(f"All {len(summaries)} preset(s) failed for {request.filename}")
            raise AllPresetsFailed("All presets failed", attempts=attempts)

        if best.size_bytes >= request.original_size:
            policy = self.config.not_smaller_policy
            logger.info(
                f"Best candidate {best.preset} ({best.size_bytes:,} bytes) is not smaller "
                f"than the input ({request.original_size:,} bytes), policy={policy}"
            )
            if policy == "error":
                raise OutputNotSmaller(request.original_size, best.size_bytes, best.preset)
            # Only an explicit "best" may hand back a file that is not smaller
            if policy != "best":
                return CompressionOutcome.build(
                    request.data, request.original_size, tier, None, summaries
                )

        data = best.handle.read_bytes()
        return CompressionOutcome.build(data, request.original_size, tier, best.preset, summaries)
