"""
Shared fixtures.

Provides a scratch manager on a temporary directory with a virtual clock,
mock codecs with canned per-preset sizes, and a Flask test app built
around them. Nothing here invokes a real Ghostscript.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from pdfshrink.codecs.mock import MockCodec, fake_pdf
from pdfshrink.codecs.registry import CodecRegistry
from pdfshrink.config.loader import CompressorConfig
from pdfshrink.engine.scratch import ScratchManager
from pdfshrink.observability.metrics import MetricsRegistry


class VirtualClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return VirtualClock()


@pytest.fixture
def scratch_dir(tmp_path: Path) -> Path:
    return tmp_path / "scratch"


@pytest.fixture
def scratch(scratch_dir: Path, clock):
    """Scratch manager on a temp dir, driven by the virtual clock."""
    return ScratchManager(scratch_dir, grace_seconds=300.0, clock=clock)


@pytest.fixture
def config(scratch_dir: Path):
    return CompressorConfig(scratch_dir=scratch_dir, mock_codecs=True)


@pytest.fixture
def test_metrics():
    """A private metrics registry so tests don't see each other's counts."""
    return MetricsRegistry()


@pytest.fixture
def pdf_bytes():
    """Factory for PDF-looking payloads of an exact size."""
    return fake_pdf


def build_mock_registry(gs=None, structural=None, gs_available=True, structural_available=True):
    """Registry with mock ghostscript/structural codecs and per-preset behaviours."""
    registry = CodecRegistry()
    registry.register(MockCodec("ghostscript", gs or {}, available=gs_available))
    registry.register(
        MockCodec("structural", structural or {}, default=0.9, available=structural_available)
    )
    return registry


@pytest.fixture
def make_registry():
    """Factory for mock codec registries."""
    return build_mock_registry


@pytest.fixture
def make_service(config, scratch, test_metrics):
    """
    Factory building a CompressionService around mock codecs.

    Usage:
        service = make_service(gs={"extreme": 4_000_000}, not_smaller_policy="best")
    """
    from pdfshrink.engine.service import build_service

    def _make(gs=None, structural=None, gs_available=True, structural_available=True, **overrides):
        registry = build_mock_registry(gs, structural, gs_available, structural_available)
        service_config = config.with_overrides(**overrides) if overrides else config
        return build_service(service_config, registry=registry, scratch=scratch, metrics=test_metrics)

    return _make


@pytest.fixture
def make_client(make_service):
    """Factory returning (client, service) for a Flask app around mock codecs."""
    pytest.importorskip("flask")
    from pdfshrink.server import create_app

    def _make(**kwargs):
        service = make_service(**kwargs)
        app = create_app(service=service)
        return app.test_client(), service

    return _make
