"""
Presets: named codec configurations and per-tier candidate plans.
"""

from .loader import DEFAULT_PRESETS, default_presets, load_presets
from .models import PresetSpec, PresetTable

__all__ = [
    "DEFAULT_PRESETS",
    "PresetSpec",
    "PresetTable",
    "default_presets",
    "load_presets",
]
