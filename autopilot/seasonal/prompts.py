"""
Advisor request for refreshing phase presets.
"""
from autopilot.advisor import AdvisorRequest
from .models import CrossPeriodPattern, PeriodRecord, PhaseBoundaries, PhasePreset


PROMPT_VERSION = "v1.0"

PHASE_PRESETS_CONTEXT = """Refresh the season-phase strategy presets for a fantasy football autopilot.
Seasons on record: {seasons}. Cross-season patterns: {pattern_count}.
Keep what the evidence supports; change a preset only when a pattern or a
phase's track record argues for it. Decision weights for a phase must sum to 1."""


def build_phase_presets_request(
    presets: dict[str, PhasePreset],
    patterns: list[CrossPeriodPattern],
    periods: list[PeriodRecord],
    boundaries: PhaseBoundaries,
) -> AdvisorRequest:
    context = PHASE_PRESETS_CONTEXT.format(
        seasons=", ".join(str(p.season) for p in periods) or "none",
        pattern_count=len(patterns),
    )
    return AdvisorRequest(
        task="phase_presets",
        context=context,
        data={
            "phase_weeks": boundaries.to_dict(),
            "current_presets": {phase: p.to_dict() for phase, p in presets.items()},
            "cross_period_patterns": [p.to_dict() for p in patterns],
            "periods": [p.to_dict() for p in periods],
        },
        max_suggestions=0,
    )
