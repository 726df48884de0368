"""
Codec Base Class: interface for every compression backend.

A codec turns input PDF bytes into re-encoded PDF bytes for one preset.
It does not decide whether the result is good; that is the evaluator's
and orchestrator's job.

Contract:
- ``compress`` must not mutate its input and must be safe to call
  concurrently for independent inputs.
- Failures are signalled by raising a CodecError subclass.
- Codecs that need files allocate them from the ScratchManager they
  were built with and release them before returning or raising, so a
  failed call leaves nothing behind.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from ..presets.models import PresetSpec


class CodecError(Exception):
    """Base class for per-call codec failures. Never fatal to the process."""

    code = "codec_error"


class CodecUnavailable(CodecError):
    """The underlying tool or library is missing or crashed."""

    code = "codec_unavailable"


class CodecTimeout(CodecError):
    """The codec did not finish within its timeout."""

    code = "codec_timeout"


class CodecOutputInvalid(CodecError):
    """A nominally successful run produced empty or unreadable output."""

    code = "output_invalid"


class CodecInputRejected(CodecError):
    """The codec refused the input (malformed or encrypted PDF)."""

    code = "input_rejected"


class CodecAdapter(ABC):
    """
    Abstract base class for all codecs.

    Codecs perform the actual re-encoding and return bytes.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The codec identifier (e.g., 'ghostscript', 'structural')."""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the backing tool or library can be used."""
        pass

    def version(self) -> Optional[str]:
        """Version string of the backing tool, if it can be determined."""
        return None

    # Deterministic codecs give identical output sizes for identical input.
    deterministic: bool = True

    @abstractmethod
    def compress(self, data: bytes, preset: PresetSpec, timeout: float) -> bytes:
        """
        Re-encode ``data`` according to ``preset``.

        Raises CodecError on failure.
        """
        pass
