"""
Advisor request for the weekly lineup analysis.
"""
from autopilot.advisor import AdvisorRequest
from autopilot.data import LeagueSnapshot
from autopilot.seasonal import PhasePreset


PROMPT_VERSION = "v1.0"

LINEUP_CAPABILITIES = ["start", "bench", "add", "drop", "hold"]

LINEUP_ANALYSIS_CONTEXT = """Week {week} lineup review for league {league_id}, team {team_id}.
Season phase: {phase} (risk tolerance: {risk_tolerance})
Phase focus: {focus}
Key tactics: {tactics}
Roster source: {source}{stale}

Compare each starter with the bench and with the expert consensus ranks.
Only propose a change when it is expected to gain points this week."""


def _player_rows(snapshot: LeagueSnapshot) -> list[dict]:
    rows = []
    for player in snapshot.roster.players:
        row = player.to_dict()
        row.update(snapshot.expert_context(player.name))
        rows.append(row)
    return rows


def build_lineup_request(
    snapshot: LeagueSnapshot,
    week: int,
    preset: PhasePreset,
    model: str | None = None,
    max_suggestions: int = 5,
) -> AdvisorRequest:
    """Roster, expert ranks and the phase preset, as one structured request."""
    context = LINEUP_ANALYSIS_CONTEXT.format(
        week=week,
        league_id=snapshot.league_id,
        team_id=snapshot.team_id,
        phase=preset.phase,
        risk_tolerance=preset.risk_tolerance,
        focus=", ".join(preset.primary_focus) or "none",
        tactics=", ".join(preset.key_tactics) or "none",
        source=snapshot.roster.source,
        stale=" (STALE snapshot)" if snapshot.roster.stale else "",
    )
    return AdvisorRequest(
        task="lineup_analysis",
        context=context,
        data={
            "week": week,
            "projected_total": snapshot.roster.projected_total,
            "players": _player_rows(snapshot),
            "ranked_positions": sorted(snapshot.rankings),
            "decision_weights": preset.decision_weights,
        },
        capabilities=LINEUP_CAPABILITIES,
        model=model,
        max_suggestions=max_suggestions,
    )
