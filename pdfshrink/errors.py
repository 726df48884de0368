"""
Errors: the request-level failure taxonomy.

Only these exceptions cross the orchestrator boundary. Codec-level
failures (see ``pdfshrink.codecs.base``) are recovered inside the
evaluator and never reach a caller.

Each error carries the HTTP status the request handler maps it to and a
``public_message`` that is safe to show a client (no paths, no commands).

## Usage

    from pdfshrink.errors import PdfShrinkError

    try:
        outcome = orchestrator.compress(request)
    except PdfShrinkError as e:
        return jsonify({"success": False, "error": e.public_message}), e.http_status
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class PdfShrinkError(Exception):
    """Base class for errors surfaced to the request boundary."""

    http_status: int = 500
    code: str = "error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    @property
    def public_message(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "error": self.public_message, "code": self.code}


class InvalidInput(PdfShrinkError):
    """Missing upload, non-PDF payload, oversize payload or bad quality tier."""

    http_status = 400
    code = "invalid_input"

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.field = field
        super().__init__(message, details)


class CompressionFailed(PdfShrinkError):
    """Every preset in the plan failed."""

    http_status = 500
    code = "compression_failed"

    GENERIC_MESSAGE = (
        "Compression failed. Please try another file or ensure Ghostscript is installed."
    )

    def __init__(self, message: str, attempts: Optional[List[Dict[str, Any]]] = None):
        self.attempts = attempts or []
        super().__init__(message, {"attempts": self.attempts})

    @property
    def public_message(self) -> str:
        # Attempt reasons may contain scratch paths or tool output.
        return self.GENERIC_MESSAGE


AllPresetsFailed = CompressionFailed


class OutputNotSmaller(PdfShrinkError):
    """Best candidate did not beat the input and strict mode is on."""

    http_status = 422
    code = "output_not_smaller"

    def __init__(self, original_size: int, best_size: int, preset: str):
        self.original_size = original_size
        self.best_size = best_size
        self.preset = preset
        super().__init__(
            f"Compressed output ({best_size:,} bytes) is not smaller than the "
            f"original ({original_size:,} bytes)",
            {"original_size": original_size, "best_size": best_size, "preset": preset},
        )


class RequestTimeout(PdfShrinkError):
    """The request deadline expired while presets were still running."""

    http_status = 504
    code = "timeout"

    @property
    def public_message(self) -> str:
        return "Compression timed out"
