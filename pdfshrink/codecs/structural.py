"""
Structural Codec: lossless re-save of the PDF object graph with pikepdf.

Packs objects into compressed object streams, recompresses streams and
drops unreferenced resources. Image data is left untouched, so savings
are modest but quality is never affected. Runs entirely in memory.
"""

from __future__ import annotations

import io
import logging
from typing import Optional

from ..presets.models import PresetSpec
from .base import CodecAdapter, CodecInputRejected, CodecUnavailable

logger = logging.getLogger(__name__)


class StructuralCodec(CodecAdapter):
    """Codec backed by pikepdf (qpdf)."""

    @property
    def name(self) -> str:
        return "structural"

    def _pikepdf(self):
        try:
            import pikepdf
        except ImportError as e:
            raise CodecUnavailable("pikepdf is not installed") from e
        return pikepdf

    def is_available(self) -> bool:
        try:
            self._pikepdf()
        except CodecUnavailable:
            return False
        return True

    def version(self) -> Optional[str]:
        try:
            return self._pikepdf().__version__
        except CodecUnavailable:
            return None

    def compress(self, data: bytes, preset: PresetSpec, timeout: float) -> bytes:
        # qpdf cannot be interrupted; the timeout only bounds subprocess codecs.
        pikepdf = self._pikepdf()
        params = preset.params

        object_stream_mode = (
            pikepdf.ObjectStreamMode.generate
            if params.get("object_streams", True)
            else pikepdf.ObjectStreamMode.preserve
        )

        try:
            with pikepdf.open(io.BytesIO(data)) as pdf:
                if params.get("remove_unreferenced", True):
                    pdf.remove_unreferenced_resources()
                out = io.BytesIO()
                pdf.save(
                    out,
                    object_stream_mode=object_stream_mode,
                    compress_streams=True,
                    linearize=bool(params.get("linearize", False)),
                )
        except pikepdf.PasswordError as e:
            raise CodecInputRejected("PDF is encrypted") from e
        except pikepdf.PdfError as e:
            raise CodecInputRejected(f"pikepdf could not read the PDF: {e}") from e

        return out.getvalue()
