"""
League data provider.

Fetches everything a decision cycle needs for one league: the roster
and expert rankings, concurrently. A failed roster fetch falls back to
the static snapshot; failed rankings only degrade the snapshot.
"""
import asyncio
import logging

from autopilot.config import LeagueConfig, config
from autopilot.errors import DataUnavailable
from .espn_client import EspnRosterClient
from .models import LeagueSnapshot, Rankings, Roster
from .rankings_client import RankingsClient
from .static_source import StaticRosterSource


logger = logging.getLogger(__name__)

RANKING_POSITIONS = ("QB", "RB", "WR", "TE")


class LeagueDataProvider:
    """
    Roster and rankings for managed leagues.

    Usage:
        provider = LeagueDataProvider()
        snapshot = await provider.fetch_snapshot(league, week=5)
    """

    def __init__(
        self,
        roster_client: EspnRosterClient | None = None,
        rankings_client: RankingsClient | None = None,
        static_source: StaticRosterSource | None = None,
        scoring_format: str | None = None,
        ranking_positions: tuple[str, ...] = RANKING_POSITIONS,
    ):
        self.roster_client = roster_client or EspnRosterClient()
        self.rankings_client = rankings_client or RankingsClient()
        self.static_source = static_source or StaticRosterSource()
        self.scoring_format = scoring_format or config.data.scoring_format
        self.ranking_positions = ranking_positions

    async def get_roster(self, league_id: str, team_id: str, week: int | None = None) -> tuple[Roster, str | None]:
        """
        Live roster, or the static snapshot when the provider fails.

        Returns:
            (roster, degradation message or None)

        Raises:
            DataUnavailable: Live fetch failed and no static snapshot exists
        """
        try:
            return await self.roster_client.get_roster(league_id, team_id, week=week), None
        except DataUnavailable as e:
            logger.warning(f"Live roster unavailable for {league_id}: {e}")
            if not self.static_source.configured:
                raise
            try:
                roster = self.static_source.get_roster(league_id, team_id)
            except DataUnavailable as static_error:
                raise DataUnavailable(
                    f"Roster unavailable for league {league_id}: {e}; static fallback: {static_error}",
                    source="roster",
                    retryable=e.retryable,
                ) from e
            return roster, f"Used static roster snapshot from {roster.fetched_at} ({e})"

    async def _get_rankings(self, position: str) -> Rankings:
        return await self.rankings_client.get_rankings(position, self.scoring_format)

    async def fetch_snapshot(self, league: LeagueConfig, week: int | None = None) -> LeagueSnapshot:
        """
        Fetch roster and rankings concurrently.

        Raises:
            DataUnavailable: Roster unavailable from every source
        """
        roster_result, *ranking_results = await asyncio.gather(
            self.get_roster(league.league_id, league.team_id, week=week),
            *(self._get_rankings(p) for p in self.ranking_positions),
            return_exceptions=True,
        )

        if isinstance(roster_result, BaseException):
            raise roster_result
        roster, roster_degradation = roster_result

        degradations = [roster_degradation] if roster_degradation else []
        rankings: dict[str, Rankings] = {}
        failed_positions = []
        for position, result in zip(self.ranking_positions, ranking_results):
            if isinstance(result, DataUnavailable):
                failed_positions.append(position)
                logger.warning(f"Rankings unavailable for {position}: {result}")
            elif isinstance(result, BaseException):
                raise result
            else:
                rankings[position] = result

        if failed_positions and not rankings:
            degradations.append("Ran without expert rankings")
        elif failed_positions:
            degradations.append(f"Ran without expert rankings for {', '.join(failed_positions)}")

        return LeagueSnapshot(
            league_id=league.league_id,
            team_id=league.team_id,
            roster=roster,
            rankings=rankings,
            degradations=degradations,
        )

    async def close(self) -> None:
        await self.roster_client.fetcher.close()
        await self.rankings_client.fetcher.close()
