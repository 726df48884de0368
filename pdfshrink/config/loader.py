"""
Config Loader: build the immutable service configuration.

Supports two sources, layered over the built-in defaults:
1. Master JSON key: a single PDFSHRINK_CONFIG env var holding every setting
2. Individual keys: PDFSHRINK_* env vars (override the master JSON)

## Usage

    # Option 1: Master config
    export PDFSHRINK_CONFIG='{"strategy": "single", "max_upload_mb": 50}'

    # Option 2: Individual keys
    export PDFSHRINK_STRATEGY=single
    export PDFSHRINK_MAX_UPLOAD_MB=50

The resulting CompressorConfig is frozen and passed explicitly to the
orchestrator and the Flask app, so several independently configured
instances can live in one process (tests do this all the time).
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

MB = 1024 * 1024

STRATEGIES = ("best_of", "single")
NOT_SMALLER_POLICIES = ("original", "best", "error")
RESPONSE_MODES = ("inline", "download")


@dataclass(frozen=True)
class CompressorConfig:
    """Every tunable of the service in one place."""

    # Upload limits
    max_upload_bytes: int = 100 * MB

    # Timeouts (seconds)
    codec_timeout_seconds: float = 120.0
    request_timeout_seconds: float = 300.0

    # Orchestration policy
    strategy: str = "best_of"
    default_tier: str = "medium"
    strict_tier: bool = False
    not_smaller_policy: str = "original"
    parallel_presets: bool = False

    # Scratch files
    scratch_dir: Path = field(
        default_factory=lambda: Path(tempfile.gettempdir()) / "pdfshrink"
    )
    release_grace_seconds: float = 300.0
    sweep_interval_seconds: float = 30.0

    # HTTP surface
    response_mode: str = "inline"
    download_once: bool = False
    cors_origins: Tuple[str, ...] = ("*",)

    # Codecs
    gs_binary: str = "gs"
    mock_codecs: bool = False
    presets_file: Optional[Path] = None

    def with_overrides(self, **changes: Any) -> "CompressorConfig":
        """Return a copy with some fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Path):
                value = str(value)
            elif isinstance(value, tuple):
                value = list(value)
            result[f.name] = value
        return result


def _parse_bool(value: str) -> bool:
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _parse_mb(value: Any) -> int:
    return int(float(value) * MB)


def _parse_origins(value: Any) -> Tuple[str, ...]:
    if isinstance(value, (list, tuple)):
        return tuple(str(v) for v in value)
    return tuple(o.strip() for o in str(value).split(",") if o.strip())


def _parse_optional_path(value: Any) -> Optional[Path]:
    return Path(value) if value else None


# env var suffix → (field name, parser)
ENV_FIELDS = {
    "MAX_UPLOAD_MB": ("max_upload_bytes", _parse_mb),
    "CODEC_TIMEOUT": ("codec_timeout_seconds", float),
    "REQUEST_TIMEOUT": ("request_timeout_seconds", float),
    "STRATEGY": ("strategy", str),
    "DEFAULT_QUALITY": ("default_tier", str),
    "STRICT_QUALITY": ("strict_tier", _parse_bool),
    "NOT_SMALLER_POLICY": ("not_smaller_policy", str),
    "PARALLEL_PRESETS": ("parallel_presets", _parse_bool),
    "SCRATCH_DIR": ("scratch_dir", Path),
    "RELEASE_GRACE": ("release_grace_seconds", float),
    "SWEEP_INTERVAL": ("sweep_interval_seconds", float),
    "RESPONSE_MODE": ("response_mode", str),
    "DOWNLOAD_ONCE": ("download_once", _parse_bool),
    "CORS_ORIGINS": ("cors_origins", _parse_origins),
    "GS_BINARY": ("gs_binary", str),
    "MOCK_CODECS": ("mock_codecs", _parse_bool),
    "PRESETS_FILE": ("presets_file", _parse_optional_path),
}

# master JSON key → env var suffix
MASTER_KEYS = {
    "max_upload_mb": "MAX_UPLOAD_MB",
    "codec_timeout": "CODEC_TIMEOUT",
    "request_timeout": "REQUEST_TIMEOUT",
    "strategy": "STRATEGY",
    "default_quality": "DEFAULT_QUALITY",
    "strict_quality": "STRICT_QUALITY",
    "not_smaller_policy": "NOT_SMALLER_POLICY",
    "parallel_presets": "PARALLEL_PRESETS",
    "scratch_dir": "SCRATCH_DIR",
    "release_grace": "RELEASE_GRACE",
    "sweep_interval": "SWEEP_INTERVAL",
    "response_mode": "RESPONSE_MODE",
    "download_once": "DOWNLOAD_ONCE",
    "cors_origins": "CORS_ORIGINS",
    "gs_binary": "GS_BINARY",
    "mock_codecs": "MOCK_CODECS",
    "presets_file": "PRESETS_FILE",
}

ENV_PREFIX = "PDFSHRINK_"


def load_config(env: Optional[Mapping[str, str]] = None) -> CompressorConfig:
    """
    Load configuration from master key or individual env vars.

    Priority (highest last):
    1. Built-in defaults
    2. PDFSHRINK_CONFIG (master JSON)
    3. Individual PDFSHRINK_* variables

    Unparseable values are logged and ignored so a typo never prevents
    the service from starting with defaults.

    Args:
        env: Mapping to read from (defaults to os.environ)

    Returns:
        Frozen CompressorConfig
    """
    env = os.environ if env is None else env
    changes: Dict[str, Any] = {}

    master = env.get(f"{ENV_PREFIX}CONFIG")
    if master:
        try:
            data = json.loads(master)
            changes.update(_parse_master_config(data))
            logger.info("Loaded configuration from PDFSHRINK_CONFIG")
        except json.JSONDecodeError as e:
            logger.error(f"Invalid PDFSHRINK_CONFIG JSON: {e}")

    for suffix, (name, parser) in ENV_FIELDS.items():
        raw = env.get(f"{ENV_PREFIX}{suffix}")
        if raw is None or raw == "":
            continue
        try:
            changes[name] = parser(raw)
        except (TypeError, ValueError) as e:
            logger.error(f"Ignoring {ENV_PREFIX}{suffix}={raw!r}: {e}")

    return CompressorConfig(**changes)


def _parse_master_config(data: Dict[str, Any]) -> Dict[str, Any]:
    """Parse master config JSON into field values."""
    changes: Dict[str, Any] = {}
    for key, value in data.items():
        suffix = MASTER_KEYS.get(key.lower()) or (
            key.upper() if key.upper() in ENV_FIELDS else None
        )
        if suffix is None:
            logger.warning(f"Unknown key in PDFSHRINK_CONFIG: {key}")
            continue
        name, parser = ENV_FIELDS[suffix]
        try:
            if isinstance(value, bool) and parser is _parse_bool:
                changes[name] = value
            else:
                changes[name] = parser(value)
        except (TypeError, ValueError) as e:
            logger.error(f"Ignoring PDFSHRINK_CONFIG.{key}={value!r}: {e}")
    return changes
