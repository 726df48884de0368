"""
Preset Loader: built-in preset table and YAML overrides.

Ghostscript's PDFSETTINGS ladder, from lightest to heaviest:

    /prepress  → ~300 dpi images, colour preserved
    /printer   → ~300 dpi, print oriented
    /ebook     → ~150 dpi
    /screen    → ~72 dpi

The tier mapping below is the one the service has always shipped
(low → /printer, medium → /prepress, high → /ebook, extreme → /screen).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .models import PresetTable

logger = logging.getLogger(__name__)


DEFAULT_PRESETS: Dict[str, Any] = {
    "version": 1,
    "presets": {
        "structural": {
            "name": "structural",
            "codec": "structural",
            "label": "Lossless re-save (object streams)",
            "params": {"object_streams": True, "linearize": False},
        },
        "low": {
            "name": "low",
            "codec": "ghostscript",
            "label": "Light compression",
            "params": {"pdfsettings": "/printer", "compatibility_level": "1.4"},
        },
        "medium": {
            "name": "medium",
            "codec": "ghostscript",
            "label": "Medium compression",
            "params": {"pdfsettings": "/prepress", "compatibility_level": "1.4"},
        },
        "high": {
            "name": "high",
            "codec": "ghostscript",
            "label": "High compression",
            "params": {"pdfsettings": "/ebook", "compatibility_level": "1.4"},
        },
        "extreme": {
            "name": "extreme",
            "codec": "ghostscript",
            "label": "Maximum compression",
            "params": {"pdfsettings": "/screen", "compatibility_level": "1.4"},
        },
    },
    "plans": {
        "extreme": ["extreme", "high"],
        "high": ["extreme", "high", "medium"],
        "medium": ["high", "medium", "low"],
        "low": ["medium", "low", "structural"],
        "structural": ["structural"],
    },
}


def load_yaml(path: Path) -> Dict[str, Any]:
    """Load a YAML file and return its contents."""
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def default_presets() -> PresetTable:
    """The built-in table."""
    return PresetTable(**DEFAULT_PRESETS)


def load_presets(path: Optional[Path] = None) -> PresetTable:
    """
    Load the preset table.

    A YAML file may override individual presets or plans; anything it
    leaves out falls back to the built-in defaults. Preset names default
    to their mapping key.

    Args:
        path: Optional path to a presets.yaml file

    Returns:
        Validated, frozen PresetTable
    """
    if path is None:
        return default_presets()

    data = load_yaml(Path(path))

    presets = {k: dict(v) for k, v in DEFAULT_PRESETS["presets"].items()}
    for name, spec in (data.get("presets") or {}).items():
        merged = {**presets.get(name, {}), **(spec or {})}
        merged.setdefault("name", name)
        presets[name] = merged

    plans = dict(DEFAULT_PRESETS["plans"])
    plans.update(data.get("plans") or {})

    table = PresetTable(
        version=data.get("version", DEFAULT_PRESETS["version"]),
        presets=presets,
        plans=plans,
    )
    logger.info(f"Loaded {len(table.presets)} presets from {path}")
    return table
