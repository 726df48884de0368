"""
Codecs: pluggable compression backends behind one interface.
"""

from .base import (
    CodecAdapter,
    CodecError,
    CodecInputRejected,
    CodecOutputInvalid,
    CodecTimeout,
    CodecUnavailable,
)
from .mock import MockCodec, fake_pdf
from .registry import CodecRegistry, build_registry

__all__ = [
    "CodecAdapter",
    "CodecError",
    "CodecInputRejected",
    "CodecOutputInvalid",
    "CodecTimeout",
    "CodecUnavailable",
    "CodecRegistry",
    "MockCodec",
    "build_registry",
    "fake_pdf",
]
