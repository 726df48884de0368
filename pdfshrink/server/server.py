"""
Compression Server: Flask application factory.

Serves the upload API, result downloads, health and metrics. Every
route reads the CompressionService attached to the app, so tests can
build an app around fake codecs and a virtual clock.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from flask import Flask, g, jsonify, request
from flask_cors import CORS

from ..config.loader import CompressorConfig, load_config
from ..engine.service import CompressionService, build_service
from ..errors import CompressionFailed, PdfShrinkError
from .helpers import METADATA_HEADERS
from .routes_compress import compress_bp
from .routes_core import core_bp

logger = logging.getLogger(__name__)


def create_app(
    config: Optional[CompressorConfig] = None,
    service: Optional[CompressionService] = None,
) -> Flask:
    """
    Create the Flask application.

    Args:
        config: Service configuration (default: from the environment)
        service: Prebuilt service (default: built from ``config``)
    """
    if service is None:
        service = build_service(config or load_config())
    config = service.config

    app = Flask(__name__)
    app.extensions["pdfshrink"] = service

    # Uploads above the limit are rejected by werkzeug before reaching a route
    app.config["MAX_CONTENT_LENGTH"] = config.max_upload_bytes

    CORS(
        app,
        origins=list(config.cors_origins),
        expose_headers=list(METADATA_HEADERS) + ["Content-Disposition"],
    )

    # ── Register Blueprints ───────────────────────────────────────
    app.register_blueprint(core_bp)        # /, /health, /metrics, /presets
    app.register_blueprint(compress_bp)    # /compress, /api/compress, /download/*

    # ── Error Handlers ────────────────────────────────────────────

    @app.errorhandler(PdfShrinkError)
    def pdfshrink_error(e: PdfShrinkError):
        if isinstance(e, CompressionFailed):
            logger.error(f"{request.method} {request.path}: {e.message} attempts={e.attempts}")
        else:
            logger.warning(f"{request.method} {request.path}: {e.message}")
        return jsonify(e.to_dict()), e.http_status

    @app.errorhandler(413)
    def request_entity_too_large(e):
        """Return JSON for 413 so API clients get a parseable response."""
        max_mb = config.max_upload_bytes / (1024 * 1024)
        return jsonify({
            "success": False,
            "error": f"File too large (max {max_mb:.0f} MB)",
            "code": "too_large",
        }), 413

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"success": False, "error": "Not found", "code": "not_found"}), 404

    @app.errorhandler(500)
    def internal_server_error(e):
        """Catch-all: JSON for any unhandled error, without internals."""
        original = getattr(e, "original_exception", None) or e
        logger.error(
            f"Unhandled 500 on {request.method} {request.path}: {original}",
            exc_info=original,
        )
        return jsonify({
            "success": False,
            "error": CompressionFailed.GENERIC_MESSAGE,
            "code": "internal_error",
        }), 500

    # ── Request Logging ───────────────────────────────────────────

    # Polled endpoints log at DEBUG
    quiet_paths = {"/health", "/metrics"}

    @app.before_request
    def start_timer():
        g.started = time.perf_counter()

    @app.after_request
    def log_request(response):
        elapsed_ms = (time.perf_counter() - g.get("started", time.perf_counter())) * 1000
        level = logging.DEBUG if request.path in quiet_paths else logging.INFO
        logger.log(
            level,
            f"{request.method} {request.path} → {response.status_code} ({elapsed_ms:.0f}ms)",
        )
        return response

    logger.info(
        f"Compression server initialized (max upload {config.max_upload_bytes // (1024 * 1024)} MB, "
        f"mode={config.response_mode})"
    )
    return app


def run_server(
    host: str = "127.0.0.1",
    port: int = 3000,
    debug: bool = False,
    config: Optional[CompressorConfig] = None,
) -> None:
    """
    Run the compression server.

    Args:
        host: Bind address
        port: Port to run on
        debug: Enable Flask debug mode
        config: Service configuration (default: from the environment)
    """
    # Our after_request logger already shows each request with its duration
    logging.getLogger("werkzeug").setLevel(logging.WARNING)

    service = build_service(config or load_config())
    service.start()
    app = create_app(service=service)

    url = f"http://{host}:{port}"
    print(f"""
╔══════════════════════════════════════════════════════════════╗
║                   PDF COMPRESSION SERVER                     ║
╠══════════════════════════════════════════════════════════════╣
║                                                              ║
║  → {url:<58}║
║  Codecs: {', '.join(service.registry.names()):<52}║
║                                                              ║
║  Press Ctrl+C to stop                                        ║
║                                                              ║
╚══════════════════════════════════════════════════════════════╝
""")

    try:
        # Reloader forks the process and would start a second sweep timer
        app.run(host=host, port=port, debug=debug, use_reloader=False)
    finally:
        service.stop()
