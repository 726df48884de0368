"""
Codec Registry: lookup codecs by name.

Supports mock mode where every codec is a MockCodec, so the service can
run (and be demonstrated) without Ghostscript or pikepdf installed.
"""

from __future__ import annotations

import logging
from typing import Dict, List

from ..engine.scratch import ScratchManager
from .base import CodecAdapter, CodecUnavailable
from .mock import MockCodec

logger = logging.getLogger(__name__)


class CodecRegistry:
    """Registry for codec lookup by name."""

    def __init__(self):
        self.codecs: Dict[str, CodecAdapter] = {}

    def register(self, codec: CodecAdapter) -> None:
        """Register a codec, replacing any previous one with the same name."""
        self.codecs[codec.name] = codec
        logger.debug(f"Registered codec: {codec.name}")

    def get(self, name: str) -> CodecAdapter:
        """Get a codec by name. Raises CodecUnavailable if none is registered."""
        codec = self.codecs.get(name)
        if codec is None:
            raise CodecUnavailable(f"No codec registered for '{name}'")
        return codec

    def names(self) -> List[str]:
        return sorted(self.codecs)

    def describe(self) -> Dict[str, Dict[str, object]]:
        """Availability and version of every codec, for health output."""
        return {
            name: {
                "available": codec.is_available(),
                "version": codec.version(),
                "deterministic": codec.deterministic,
            }
            for name, codec in sorted(self.codecs.items())
        }


def build_registry(
    scratch: ScratchManager,
    gs_binary: str = "gs",
    mock_mode: bool = False,
) -> CodecRegistry:
    """
    Build the registry for a process.

    Real codecs are registered even when their backing tool is missing;
    they then fail per call with CodecUnavailable, which the evaluator
    records and the circuit breaker picks up.
    """
    registry = CodecRegistry()

    if mock_mode:
        registry.register(MockCodec("ghostscript"))
        registry.register(MockCodec("structural", default=0.9))
        logger.info("Using mock codecs")
        return registry

    from .ghostscript import GhostscriptCodec
    from .structural import StructuralCodec

    gs = GhostscriptCodec(scratch, binary=gs_binary)
    registry.register(gs)
    if gs.is_available():
        logger.info(f"Registered Ghostscript codec ({gs.version() or 'unknown version'})")
    else:
        logger.warning(f"Ghostscript binary '{gs_binary}' not found, ghostscript presets will fail")

    structural = StructuralCodec()
    registry.register(structural)
    if structural.is_available():
        logger.info(f"Registered structural codec (pikepdf {structural.version()})")
    else:
        logger.warning("pikepdf not available, structural preset will fail")

    return registry
