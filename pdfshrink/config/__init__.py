"""
Config: immutable service configuration and its validation.
"""

from .loader import CompressorConfig, load_config
from .validator import ConfigError, ConfigIssue, has_errors, require_valid, validate_config

__all__ = [
    "CompressorConfig",
    "ConfigError",
    "ConfigIssue",
    "has_errors",
    "load_config",
    "require_valid",
    "validate_config",
]
