"""
ESPN Fantasy Football roster client.

Reads the league endpoint with the `mRoster` view. Private leagues need
the `espn_s2` and `SWID` cookies from a logged-in browser session.
"""
import logging
from typing import Any

from autopilot.config import config
from autopilot.errors import DataUnavailable
from .fetcher import HttpFetcher
from .models import Roster, RosterPlayer


logger = logging.getLogger(__name__)

POSITION_NAMES = {1: "QB", 2: "RB", 3: "WR", 4: "TE", 5: "K", 16: "D/ST"}

LINEUP_SLOT_NAMES = {
    0: "QB", 2: "RB", 3: "RB/WR", 4: "WR", 5: "WR/TE", 6: "TE", 7: "OP",
    16: "D/ST", 17: "K", 20: "BE", 21: "IR", 23: "FLEX",
}

# statSourceId 1 = projections; statSplitTypeId 1 = single scoring period
PROJECTION_SOURCE_ID = 1
WEEKLY_SPLIT_TYPE_ID = 1


def _weekly_projection(stats: list[dict[str, Any]], week: int | None) -> float:
    for stat in stats:
        if stat.get("statSourceId") != PROJECTION_SOURCE_ID:
            continue
        if week is not None and stat.get("scoringPeriodId") != week:
            continue
        if stat.get("statSplitTypeId", WEEKLY_SPLIT_TYPE_ID) != WEEKLY_SPLIT_TYPE_ID:
            continue
        return round(float(stat.get("appliedTotal") or 0.0), 2)
    return 0.0


def parse_roster(data: dict, league_id: str, team_id: str, week: int | None = None) -> Roster:
    """
    Parse an `mRoster` response into a Roster.

    Raises:
        DataUnavailable: Team missing or roster empty
    """
    team = next(
        (t for t in data.get("teams") or [] if str(t.get("id")) == str(team_id)),
        None,
    )
    if team is None:
        raise DataUnavailable(
            f"Team {team_id} not found in league {league_id}",
            source="espn",
            retryable=False,
        )

    players = []
    for entry in (team.get("roster") or {}).get("entries") or []:
        player = (entry.get("playerPoolEntry") or {}).get("player") or {}
        if not player.get("fullName"):
            continue
        players.append(RosterPlayer(
            player_id=str(player.get("id") or entry.get("playerId") or player["fullName"]),
            name=player["fullName"],
            position=POSITION_NAMES.get(player.get("defaultPositionId"), "UNKNOWN"),
            team=str(player.get("proTeamId") or "FA"),
            status=str(player.get("injuryStatus") or "ACTIVE").upper(),
            projected_points=_weekly_projection(player.get("stats") or [], week),
            lineup_slot=LINEUP_SLOT_NAMES.get(entry.get("lineupSlotId"), "BE"),
        ))

    if not players:
        raise DataUnavailable(
            f"Empty roster for team {team_id} in league {league_id}",
            source="espn",
        )

    return Roster(league_id=league_id, team_id=str(team_id), players=players, source="espn")


class EspnRosterClient:
    """ESPN fantasy API v3 roster reader."""

    def __init__(
        self,
        fetcher: HttpFetcher | None = None,
        base_url: str | None = None,
        season: int | None = None,
        espn_s2: str | None = None,
        swid: str | None = None,
    ):
        self.fetcher = fetcher or HttpFetcher(source="espn")
        self.base_url = (base_url or config.data.espn_base_url).rstrip("/")
        self.season = season or config.data.season
        self.espn_s2 = espn_s2 if espn_s2 is not None else config.data.espn_s2
        self.swid = swid if swid is not None else config.data.espn_swid

    def _headers(self) -> dict[str, str]:
        if self.espn_s2 and self.swid:
            return {"Cookie": f"espn_s2={self.espn_s2}; SWID={self.swid}"}
        return {}

    async def get_roster(self, league_id: str, team_id: str, week: int | None = None) -> Roster:
        """
        Fetch one team's roster.

        Raises:
            DataUnavailable: Request failed, team missing or roster empty
        """
        url = f"{self.base_url}/seasons/{self.season}/segments/0/leagues/{league_id}"
        params: dict[str, Any] = {"view": "mRoster"}
        if week is not None:
            params["scoringPeriodId"] = week

        data = await self.fetcher.get_json(url, params=params, headers=self._headers())
        if not isinstance(data, dict):
            raise DataUnavailable(f"Unexpected ESPN payload for league {league_id}", source="espn")

        roster = parse_roster(data, league_id, team_id, week)
        logger.info(f"ESPN roster for {league_id}/{team_id}: {len(roster.players)} players")
        return roster
