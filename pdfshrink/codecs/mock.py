"""
Mock Codecs: deterministic stand-ins for real compression backends.

These produce canned output sizes (or canned failures) per preset without
invoking any external tool. Used by the test suite and by ``--mock`` mode
of the CLI and server.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Union

from ..presets.models import PresetSpec
from .base import CodecAdapter, CodecError, CodecUnavailable

logger = logging.getLogger(__name__)

# Per-preset behaviour: an output size, a ratio of the input size,
# an exception to raise, or a callable producing output bytes.
Behaviour = Union[int, float, CodecError, Callable[[bytes], bytes]]


def fake_pdf(size: int) -> bytes:
    """A byte string of exactly ``size`` bytes that starts like a PDF."""
    header = b"%PDF-1.4\n"
    if size <= len(header):
        return header[:size]
    return header + b"0" * (size - len(header))


class MockCodec(CodecAdapter):
    """
    Codec with canned per-preset results.

    Ints are absolute output sizes; floats are ratios of the input size.
    Presets without an entry use ``default``.
    """

    def __init__(
        self,
        codec_name: str = "mock",
        behaviours: Optional[Dict[str, Behaviour]] = None,
        default: Behaviour = 0.5,
        available: bool = True,
    ):
        self._name = codec_name
        self.behaviours = dict(behaviours or {})
        self.default = default
        self.available = available
        self.calls: List[str] = []

    @property
    def name(self) -> str:
        return self._name

    def is_available(self) -> bool:
        return self.available

    def version(self) -> Optional[str]:
        return "mock" if self.available else None

    def compress(self, data: bytes, preset: PresetSpec, timeout: float) -> bytes:
        self.calls.append(preset.name)

        if not self.available:
            raise CodecUnavailable(f"{self._name} is not installed")

        behaviour = self.behaviours.get(preset.name, self.default)
        if isinstance(behaviour, CodecError):
            logger.info(f"[MOCK:{self._name}] {preset.name} → {behaviour.code}")
            raise behaviour
        if callable(behaviour):
            return behaviour(data)
        if isinstance(behaviour, float):
            size = int(len(data) * behaviour)
        else:
            size = int(behaviour)

        logger.info(f"[MOCK:{self._name}] {preset.name}: {len(data):,} → {size:,} bytes")
        return fake_pdf(size)
