"""
Result Models: per-candidate results and the final outcome.

Every preset attempt produces a CandidateResult, whether it succeeded,
failed or was skipped. Only the CompressionOutcome leaves the
orchestrator.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class CandidateError(BaseModel):
    """Why a candidate did not produce usable output."""

    code: str
    message: str


class CandidateResult(BaseModel):
    """
    Result of one preset attempt.

    On success ``handle`` points at the scratch file holding the output.
    The orchestrator owns that handle until it either adopts the
    candidate as best-so-far or releases it.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    status: Literal["ok", "failed", "skipped"]
    preset: str
    codec: str
    size_bytes: int = 0
    handle: Optional[Any] = None
    error: Optional[CandidateError] = None
    duration_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.status == "ok"

    @classmethod
    def ok(
        cls,
        preset: str,
        codec: str,
        size_bytes: int,
        handle: Any,
        duration_seconds: float = 0.0,
    ) -> "CandidateResult":
        """Create a successful result."""
        return cls(
            status="ok",
            preset=preset,
            codec=codec,
            size_bytes=size_bytes,
            handle=handle,
            duration_seconds=duration_seconds,
        )

    @classmethod
    def failed(
        cls,
        preset: str,
        codec: str,
        error_code: str,
        error_message: str,
        duration_seconds: float = 0.0,
    ) -> "CandidateResult":
        """Create a failed result."""
        return cls(
            status="failed",
            preset=preset,
            codec=codec,
            error=CandidateError(code=error_code, message=error_message),
            duration_seconds=duration_seconds,
        )

    @classmethod
    def skipped(cls, preset: str, codec: str, reason: str) -> "CandidateResult":
        """Create a skipped result (codec not attempted)."""
        return cls(
            status="skipped",
            preset=preset,
            codec=codec,
            error=CandidateError(code=reason, message=f"skipped: {reason}"),
        )

    def summary(self) -> "CandidateSummary":
        return CandidateSummary(
            preset=self.preset,
            codec=self.codec,
            status=self.status,
            size_bytes=self.size_bytes if self.succeeded else None,
            error_code=self.error.code if self.error else None,
            duration_seconds=round(self.duration_seconds, 3),
        )


class CandidateSummary(BaseModel):
    """Buffer-free record of a candidate, kept on the outcome for diagnostics."""

    model_config = ConfigDict(frozen=True)

    preset: str
    codec: str
    status: str
    size_bytes: Optional[int] = None
    error_code: Optional[str] = None
    duration_seconds: float = 0.0


def reduction_percent(original_size: int, output_size: int) -> float:
    """(1 - output/original) * 100, computed from the two sizes only."""
    if original_size <= 0:
        return 0.0
    return (1 - output_size / original_size) * 100


class CompressionOutcome(BaseModel):
    """The final decision handed back to the request handler."""

    model_config = ConfigDict(frozen=True)

    data: bytes
    original_size: int
    output_size: int
    reduction_percent: float
    compressed: bool
    preset: Optional[str] = None
    tier: str
    candidates: List[CandidateSummary] = Field(default_factory=list)

    @classmethod
    def build(
        cls,
        data: bytes,
        original_size: int,
        tier: str,
        preset: Optional[str],
        candidates: List[CandidateSummary],
    ) -> "CompressionOutcome":
        output_size = len(data)
        return cls(
            data=data,
            original_size=original_size,
            output_size=output_size,
            reduction_percent=reduction_percent(original_size, output_size),
            compressed=output_size < original_size,
            preset=preset,
            tier=tier,
            candidates=candidates,
        )

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly metadata (no payload bytes)."""
        return {
            "original_size": self.original_size,
            "output_size": self.output_size,
            "reduction_percent": round(self.reduction_percent, 1),
            "compressed": self.compressed,
            "preset": self.preset,
            "tier": self.tier,
            "candidates": [c.model_dump() for c in self.candidates],
        }
