"""
Models: pydantic value types passed between the handler and the engine.
"""

from .request import PDF_MIME_TYPE, CompressionRequest, QualityTier
from .result import (
    CandidateError,
    CandidateResult,
    CandidateSummary,
    CompressionOutcome,
    reduction_percent,
)

__all__ = [
    "PDF_MIME_TYPE",
    "CompressionRequest",
    "QualityTier",
    "CandidateError",
    "CandidateResult",
    "CandidateSummary",
    "CompressionOutcome",
    "reduction_percent",
]
