"""
Static roster source.

Loads a YAML snapshot of rosters, used when the live provider is
unreachable. Data served from here is always marked stale.

Expected layout:

    leagues:
      "123456":
        team_id: "7"
        fetched_at: "2026-09-20T12:00:00+00:00"
        players:
          - name: Bijan Robinson
            position: RB
            team: ATL
            lineup_slot: RB
            projected_points: 17.5
"""
import logging
from pathlib import Path

import yaml

from autopilot.config import config
from autopilot.errors import DataUnavailable
from .models import Roster, RosterPlayer


logger = logging.getLogger(__name__)


class StaticRosterSource:
    """
    YAML-backed roster snapshot.

    Example:
        source = StaticRosterSource("config/rosters.yaml")
        roster = source.get_roster("123456", "7")
    """

    def __init__(self, yaml_path: str | Path | None = None):
        yaml_path = yaml_path or config.data.static_roster_path
        self.yaml_path = Path(yaml_path) if yaml_path else None
        self._leagues: dict[str, dict] | None = None

    @property
    def configured(self) -> bool:
        return self.yaml_path is not None

    def _load(self) -> dict[str, dict]:
        if self._leagues is not None:
            return self._leagues
        if self.yaml_path is None:
            raise DataUnavailable("No static roster file configured", source="static", retryable=False)
        if not self.yaml_path.exists():
            raise DataUnavailable(f"Static roster file not found: {self.yaml_path}", source="static", retryable=False)

        logger.info(f"Loading static rosters from YAML: {self.yaml_path}")
        try:
            with open(self.yaml_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise DataUnavailable(f"Static roster file is invalid: {e}", source="static", retryable=False) from e

        self._leagues = {str(k): v for k, v in (data.get("leagues") or {}).items()}
        return self._leagues

    def get_roster(self, league_id: str, team_id: str) -> Roster:
        """
        Raises:
            DataUnavailable: No snapshot for this league/team
        """
        league = self._load().get(str(league_id))
        if not league or str(league.get("team_id", team_id)) != str(team_id):
            raise DataUnavailable(
                f"No static roster for team {team_id} in league {league_id}",
                source="static",
                retryable=False,
            )

        players = [RosterPlayer.from_dict(p) for p in league.get("players") or []]
        if not players:
            raise DataUnavailable(f"Static roster for league {league_id} is empty", source="static", retryable=False)

        roster = Roster(
            league_id=str(league_id),
            team_id=str(team_id),
            players=players,
            source="static",
            stale=True,
        )
        if league.get("fetched_at"):
            roster.fetched_at = str(league["fetched_at"])
        return roster
