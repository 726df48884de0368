"""
Core API: service info, health, metrics and preset listing.

Blueprint: core_bp
Routes:
    /          (service info)
    /health
    /metrics   (Prometheus text)
    /presets
"""

from __future__ import annotations

from flask import Blueprint, Response, jsonify

from .. import __version__
from ..models.request import QualityTier
from ..observability.health import SERVICE_NAME, HealthStatus
from .helpers import get_service

core_bp = Blueprint("core", __name__)


@core_bp.route("/")
def index():
    """Describe the service and its endpoints."""
    service = get_service()
    return jsonify({
        "service": SERVICE_NAME,
        "version": __version__,
        "strategy": service.config.strategy,
        "response_mode": service.config.response_mode,
        "max_upload_bytes": service.config.max_upload_bytes,
        "endpoints": {
            "compress": "POST /compress",
            "download": "GET /download/<token>",
            "health": "GET /health",
            "metrics": "GET /metrics",
            "presets": "GET /presets",
        },
    })


@core_bp.route("/health")
def health():
    """Liveness plus codec availability. 503 only when nothing can compress."""
    status = get_service().health.check()
    code = 503 if status.status == HealthStatus.UNHEALTHY else 200
    return jsonify(status.to_dict()), code


@core_bp.route("/metrics")
def metrics():
    """Prometheus text exposition."""
    service = get_service()
    service.metrics.set_gauge("scratch_live_handles", len(service.scratch.live_handles()))
    return Response(
        service.metrics.export_prometheus(),
        mimetype="text/plain; version=0.0.4",
    )


@core_bp.route("/presets")
def presets():
    """Every preset plus the plan each tier runs under the current strategy."""
    service = get_service()
    plans = {
        tier.value: [p.name for p in service.orchestrator.plan(tier)]
        for tier in QualityTier
    }
    return jsonify({
        "strategy": service.config.strategy,
        "default_tier": service.config.default_tier,
        "presets": {
            name: spec.model_dump() for name, spec in service.presets.presets.items()
        },
        "plans": plans,
    })
