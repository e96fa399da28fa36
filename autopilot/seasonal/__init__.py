"""
Seasonal Aggregator - cross-season memory and phase presets.
"""
from .service import SeasonalAggregator, season_of
from .phases import derive_phase_boundaries
from .models import (
    PHASES,
    CrossPeriodPattern,
    PeriodRecord,
    PhaseBoundaries,
    PhasePreset,
    RollupResult,
    default_presets,
)

__all__ = [
    "SeasonalAggregator",
    "season_of",
    "derive_phase_boundaries",
    "PHASES",
    "CrossPeriodPattern",
    "PeriodRecord",
    "PhaseBoundaries",
    "PhasePreset",
    "RollupResult",
    "default_presets",
]
