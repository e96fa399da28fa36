"""
Advisor request for urgent events.
"""
from autopilot.advisor import AdvisorRequest
from autopilot.data import Roster, normalize_name
from .models import Event


PROMPT_VERSION = "v1.1"

EVENT_CAPABILITIES = ["start", "bench", "add", "drop", "monitor"]

URGENT_EVENT_CONTEXT = """BREAKING: {description}
Player: {subject} | Severity: {severity} | Category: {category}
Source confidence: {confidence:.0%} | Time until lineup lock: {minutes:.0f} minutes
Affected leagues: {leagues}

Be decisive: this is a real-time decision under a hard deadline. Name a
concrete replacement from the bench when one exists."""


def _roster_rows(roster: Roster, subject: str) -> dict:
    key = normalize_name(subject)
    return {
        "league_id": roster.league_id,
        "team_id": roster.team_id,
        "affected_player": next(
            (p.to_dict() for p in roster.players if normalize_name(p.name) == key), None
        ),
        "bench": [p.to_dict() for p in roster.bench],
    }


def build_urgent_event_request(
    event: Event,
    affected: list[Roster],
    model: str | None = None,
    max_suggestions: int = 3,
) -> AdvisorRequest:
    """Event facts plus every affected roster, as one structured request."""
    context = URGENT_EVENT_CONTEXT.format(
        description=event.description,
        subject=event.subject_name,
        severity=event.severity,
        category=event.category,
        confidence=event.source_confidence,
        minutes=event.time_to_deadline.total_seconds() / 60,
        leagues=", ".join(r.league_id for r in affected),
    )
    return AdvisorRequest(
        task="urgent_event",
        context=context,
        data={
            "event": event.to_dict(),
            "rosters": [_roster_rows(r, event.subject_name) for r in affected],
        },
        capabilities=EVENT_CAPABILITIES,
        model=model,
        max_suggestions=max_suggestions,
    )
