"""
Preset Models: pydantic schemas for the preset table.

A preset is a named codec configuration. The table also holds the
best-of plans: for each quality tier, the ordered list of presets the
orchestrator tries.

The table is built once at startup and never mutated afterwards.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..models.request import QualityTier


class PresetSpec(BaseModel):
    """One named compression configuration."""

    model_config = ConfigDict(frozen=True)

    name: str
    codec: Literal["ghostscript", "structural", "mock"] = "ghostscript"
    label: str = ""
    params: Dict[str, Any] = Field(default_factory=dict)


class PresetTable(BaseModel):
    """The presets.yaml schema."""

    model_config = ConfigDict(frozen=True)

    version: int = 1
    presets: Dict[str, PresetSpec]
    plans: Dict[QualityTier, List[str]] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_references(self) -> "PresetTable":
        for tier in QualityTier:
            if tier.value not in self.presets:
                raise ValueError(f"No preset defined for tier '{tier.value}'")
        for tier, names in self.plans.items():
            if not names:
                raise ValueError(f"Plan for tier '{tier.value}' is empty")
            unknown = [n for n in names if n not in self.presets]
            if unknown:
                raise ValueError(
                    f"Plan for tier '{tier.value}' references unknown presets: {unknown}"
                )
        return self

    def get(self, name: str) -> PresetSpec:
        """Get a preset by name."""
        try:
            return self.presets[name]
        except KeyError:
            raise KeyError(f"Unknown preset: {name}") from None

    def single_plan(self, tier: QualityTier) -> List[PresetSpec]:
        """The one preset matching the tier."""
        return [self.get(tier.value)]

    def best_of_plan(self, tier: QualityTier) -> List[PresetSpec]:
        """The ordered candidate list for best-of mode."""
        names = self.plans.get(tier)
        if not names:
            return self.single_plan(tier)
        return [self.get(n) for n in names]
