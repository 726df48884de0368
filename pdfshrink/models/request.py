"""
Request Model: one inbound compression call.

A request is created per upload, owned by a single orchestrator
invocation and discarded when the response has been written.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


PDF_MIME_TYPE = "application/pdf"
PDF_MAGIC = b"%PDF-"


class QualityTier(str, Enum):
    """Requested output quality, from lightest to most aggressive."""

    STRUCTURAL = "structural"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EXTREME = "extreme"

    @classmethod
    def parse(cls, raw: Optional[str]) -> Optional["QualityTier"]:
        """Case-insensitive lookup, None when the value is not a known tier."""
        if raw is None:
            return None
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return None


class CompressionRequest(BaseModel):
    """Raw input bytes plus what the caller asked for."""

    model_config = ConfigDict(frozen=True)

    data: bytes
    filename: str = "document.pdf"
    tier: QualityTier = QualityTier.MEDIUM
    content_type: Optional[str] = None

    @property
    def original_size(self) -> int:
        return len(self.data)

    @property
    def looks_like_pdf(self) -> bool:
        # Some writers emit a few junk bytes before the header.
        return PDF_MAGIC in self.data[:1024]
