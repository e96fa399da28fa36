"""
Season phase boundaries.
"""
from .models import PhaseBoundaries


EARLY_SHARE = 0.25
MID_SHARE = 0.60


def derive_phase_boundaries(period_length: int = 17, playoff_weeks: int = 3) -> PhaseBoundaries:
    """
    Split a season of `period_length` weeks into four phases.

    Early covers roughly the first quarter, mid runs to about 60% of the
    season, late runs to the end of the regular season and championship
    is the final `playoff_weeks` weeks.
    """
    if period_length < 4:
        raise ValueError(f"Season must have at least 4 weeks, got {period_length}")
    playoff_weeks = max(1, min(playoff_weeks, period_length - 3))
    regular_end = period_length - playoff_weeks

    early_end = max(1, round(period_length * EARLY_SHARE))
    early_end = min(early_end, regular_end - 2)
    mid_end = max(early_end + 1, round(period_length * MID_SHARE))
    mid_end = min(mid_end, regular_end - 1)

    return PhaseBoundaries(
        early=(1, early_end),
        mid=(early_end + 1, mid_end),
        late=(mid_end + 1, regular_end),
        championship=(regular_end + 1, period_length),
    )
