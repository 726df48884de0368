"""
Server shared helpers.

Functions used across the route blueprints.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from flask import current_app
from werkzeug.utils import secure_filename

if TYPE_CHECKING:
    from ..engine.service import CompressionService

SIZE_UNITS = ("Bytes", "KB", "MB", "GB")

# Response headers carrying compression metadata, exposed to browsers via CORS
METADATA_HEADERS = (
    "X-Original-Size",
    "X-Compressed-Size",
    "X-Reduction-Percent",
    "X-Compression-Preset",
)


def get_service() -> "CompressionService":
    """The CompressionService attached to the running app."""
    return current_app.extensions["pdfshrink"]


def format_file_size(size: int) -> str:
    """Human-readable size with up to two decimals: 1536 → '1.5 KB'."""
    if size <= 0:
        return "0 Bytes"
    value = float(size)
    i = 0
    while value >= 1024 and i < len(SIZE_UNITS) - 1:
        value /= 1024
        i += 1
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {SIZE_UNITS[i]}"


def download_name(original: str) -> str:
    """Attachment name for a compressed file: ``compressed-<original>``."""
    name = secure_filename(original or "") or "document.pdf"
    if not name.lower().endswith(".pdf"):
        name += ".pdf"
    return f"compressed-{name}"


def format_percent(value: float) -> str:
    """One-decimal percentage string: 60.0, -3.2."""
    return f"{value:.1f}"
