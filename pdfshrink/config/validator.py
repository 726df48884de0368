"""
Configuration Validator: sanity-check a CompressorConfig before serving.

## Usage

    from pdfshrink.config.validator import validate_config

    for issue in validate_config(config):
        print(f"[{issue.level}] {issue.field}: {issue.message}")
"""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..models.request import QualityTier
from .loader import NOT_SMALLER_POLICIES, RESPONSE_MODES, STRATEGIES, CompressorConfig

logger = logging.getLogger(__name__)


@dataclass
class ConfigIssue:
    """A single configuration problem."""

    field: str
    message: str
    level: str = "error"  # "error" or "warning"
    guidance: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "field": self.field,
            "level": self.level,
            "message": self.message,
            "guidance": self.guidance,
        }


def validate_config(config: CompressorConfig) -> List[ConfigIssue]:
    """
    Validate a configuration.

    Errors make the service unusable; warnings describe degraded
    operation (e.g. Ghostscript missing, so only structural re-save works).
    """
    issues: List[ConfigIssue] = []

    if config.strategy not in STRATEGIES:
        issues.append(ConfigIssue(
            "strategy",
            f"Unknown strategy '{config.strategy}'",
            guidance=f"Use one of: {', '.join(STRATEGIES)}",
        ))

    if QualityTier.parse(config.default_tier) is None:
        issues.append(ConfigIssue(
            "default_tier",
            f"Unknown default quality '{config.default_tier}'",
            guidance=f"Use one of: {', '.join(t.value for t in QualityTier)}",
        ))

    if config.not_smaller_policy not in NOT_SMALLER_POLICIES:
        issues.append(ConfigIssue(
            "not_smaller_policy",
            f"Unknown policy '{config.not_smaller_policy}'",
            guidance=f"Use one of: {', '.join(NOT_SMALLER_POLICIES)}",
        ))

    if config.response_mode not in RESPONSE_MODES:
        issues.append(ConfigIssue(
            "response_mode",
            f"Unknown response mode '{config.response_mode}'",
            guidance=f"Use one of: {', '.join(RESPONSE_MODES)}",
        ))

    if config.max_upload_bytes <= 0:
        issues.append(ConfigIssue("max_upload_bytes", "Upload limit must be positive"))

    if config.codec_timeout_seconds <= 0:
        issues.append(ConfigIssue("codec_timeout_seconds", "Codec timeout must be positive"))

    if config.request_timeout_seconds < config.codec_timeout_seconds:
        issues.append(ConfigIssue(
            "request_timeout_seconds",
            "Request timeout is shorter than a single codec call",
            level="warning",
            guidance="Later presets in a best-of plan may never run",
        ))

    if config.release_grace_seconds <= 0:
        issues.append(ConfigIssue(
            "release_grace_seconds",
            "Deferred release grace period must be positive",
        ))

    scratch = config.scratch_dir
    if scratch.exists() and not os.access(scratch, os.W_OK):
        issues.append(ConfigIssue(
            "scratch_dir",
            f"Scratch directory is not writable: {scratch}",
        ))

    if config.presets_file is not None and not config.presets_file.exists():
        issues.append(ConfigIssue(
            "presets_file",
            f"Presets file not found: {config.presets_file}",
        ))

    if not config.mock_codecs and shutil.which(config.gs_binary) is None:
        issues.append(ConfigIssue(
            "gs_binary",
            f"Ghostscript binary '{config.gs_binary}' not found on PATH",
            level="warning",
            guidance="Install ghostscript; until then only the structural preset can succeed",
        ))

    for issue in issues:
        log_fn = logger.error if issue.level == "error" else logger.warning
        log_fn(f"Config {issue.field}: {issue.message}")

    return issues


def has_errors(issues: List[ConfigIssue]) -> bool:
    return any(i.level == "error" for i in issues)


class ConfigError(ValueError):
    """Raised when a configuration has error-level issues and cannot serve."""

    def __init__(self, issues: List[ConfigIssue]):
        self.issues = [i for i in issues if i.level == "error"]
        summary = "; ".join(f"{i.field}: {i.message}" for i in self.issues)
        super().__init__(f"Invalid configuration: {summary}")


def require_valid(config: CompressorConfig) -> List[ConfigIssue]:
    """Validate and raise ConfigError on errors; returns the remaining warnings."""
    issues = validate_config(config)
    if has_errors(issues):
        raise ConfigError(issues)
    return issues
