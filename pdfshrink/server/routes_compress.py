"""
Compression API: upload a PDF, get a smaller one back.

Blueprint: compress_bp
Routes:
    POST /compress          (alias /api/compress)
    GET  /download/<token>

Upload fields:
    file | pdf                  the PDF (multipart)
    quality | compressionLevel  structural, low, medium, high, extreme
    mode                        inline (PDF body) or download (JSON + link)
"""

from __future__ import annotations

import io
import logging
from uuid import uuid4

from flask import Blueprint, jsonify, request, send_file

from ..config.loader import RESPONSE_MODES
from ..errors import InvalidInput
from ..models.request import PDF_MIME_TYPE, CompressionRequest
from .helpers import download_name, format_file_size, format_percent, get_service

logger = logging.getLogger(__name__)

compress_bp = Blueprint("compress", __name__)


def _field(*names: str):
    for name in names:
        value = request.form.get(name) or request.args.get(name)
        if value:
            return value
    return None


@compress_bp.route("/compress", methods=["POST"])
@compress_bp.route("/api/compress", methods=["POST"])
def compress():
    """Compress an uploaded PDF."""
    service = get_service()
    config = service.config

    # ── Validate request ──

    upload = request.files.get("file") or request.files.get("pdf")
    if upload is None:
        raise InvalidInput("No PDF file uploaded", field="file")

    mode = (_field("mode") or config.response_mode).lower()
    if mode not in RESPONSE_MODES:
        raise InvalidInput(f"Invalid mode '{mode}'. Valid: {', '.join(RESPONSE_MODES)}", field="mode")

    tier = service.orchestrator.resolve_tier(_field("quality", "compressionLevel"))
    original_name = upload.filename or "document.pdf"

    compression_request = CompressionRequest(
        data=upload.read(),
        filename=original_name,
        tier=tier,
        content_type=upload.mimetype or None,
    )

    # ── Compress ──

    request_id = uuid4().hex[:8]
    outcome = service.orchestrator.compress(compression_request, request_id=request_id)

    headers = {
        "X-Original-Size": str(outcome.original_size),
        "X-Compressed-Size": str(outcome.output_size),
        "X-Reduction-Percent": format_percent(outcome.reduction_percent),
        "X-Compression-Preset": outcome.preset or "original",
        "X-Request-ID": request_id,
    }

    if mode == "inline":
        response = send_file(
            io.BytesIO(outcome.data),
            mimetype=PDF_MIME_TYPE,
            as_attachment=True,
            download_name=download_name(original_name),
        )
        response.headers.update(headers)
        return response

    # ── Download mode: keep the result for a later GET ──

    handle = service.scratch.allocate(owner="handler")
    try:
        handle.write_bytes(outcome.data)
    except OSError:
        handle.release()
        raise
    service.scratch.schedule_release(handle, config.release_grace_seconds)
    service.remember_download(handle.name, original_name)

    logger.info(f"Result for {original_name} stored as {handle.name}", extra={"request_id": request_id})

    response = jsonify({
        "success": True,
        "originalName": original_name,
        "originalSize": format_file_size(outcome.original_size),
        "compressedSize": format_file_size(outcome.output_size),
        "originalSizeBytes": outcome.original_size,
        "compressedSizeBytes": outcome.output_size,
        "reductionPercent": format_percent(outcome.reduction_percent),
        "compressed": outcome.compressed,
        "preset": outcome.preset,
        "downloadUrl": f"/download/{handle.name}",
    })
    response.headers.update(headers)
    return response


@compress_bp.route("/download/<token>")
def download(token: str):
    """Stream a stored result. The file stays pinned while it is being sent."""
    service = get_service()

    handle = service.scratch.lookup(token)
    if handle is None:
        return jsonify({"success": False, "error": "File not found"}), 404

    try:
        handle.pin()
    except FileNotFoundError:
        return jsonify({"success": False, "error": "File not found"}), 404

    try:
        response = send_file(
            handle.path,
            mimetype=PDF_MIME_TYPE,
            as_attachment=True,
            download_name=download_name(service.original_name(token) or "document.pdf"),
        )
    except OSError:
        handle.unpin()
        return jsonify({"success": False, "error": "File not found"}), 404

    # Passthrough responses skip close callbacks, and finish() drops the pin
    response.direct_passthrough = False

    finished = False

    def finish():
        nonlocal finished
        if finished:
            return
        finished = True
        if service.config.download_once:
            service.forget_download(token)
            handle.release()
        handle.unpin()

    response.call_on_close(finish)
    return response
