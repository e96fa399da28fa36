"""
Expert consensus rankings client.

Scrapes the FantasyPros cheat-sheet page, which embeds the rankings as
a JavaScript `ecrData` object. Results are cached per
(position, scoring format) for a short TTL.
"""
import json
import logging
import re
import time

from autopilot.config import config
from autopilot.errors import DataUnavailable
from .fetcher import HttpFetcher
from .models import RankedPlayer, Rankings


logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 30 * 60
PLAYERS_PER_TIER = 12

POSITION_PAGES = {
    "QB": "/nfl/rankings/qb-cheatsheets.php",
    "RB": "/nfl/rankings/rb-cheatsheets.php",
    "WR": "/nfl/rankings/wr-cheatsheets.php",
    "TE": "/nfl/rankings/te-cheatsheets.php",
    "K": "/nfl/rankings/k-cheatsheets.php",
    "DST": "/nfl/rankings/dst-cheatsheets.php",
}
OVERALL_PAGE = "/nfl/rankings/{format}-cheatsheets.php"

_ECR_DATA = re.compile(r"var\s+ecrData\s*=\s*(\{.*?\});", re.DOTALL)


def parse_ecr_data(html: str, position: str, scoring_format: str) -> Rankings:
    """
    Extract rankings from a cheat-sheet page.

    Raises:
        DataUnavailable: ecrData missing, malformed or empty
    """
    match = _ECR_DATA.search(html)
    if not match:
        raise DataUnavailable("ecrData variable not found", source="fantasypros", retryable=False)

    try:
        data = json.loads(match.group(1))
    except json.JSONDecodeError as e:
        raise DataUnavailable(f"ecrData is not valid JSON: {e}", source="fantasypros", retryable=False) from e

    raw_players = data.get("players") or []
    wanted = position.upper()
    if wanted not in ("ALL", "OVERALL"):
        raw_players = [p for p in raw_players if str(p.get("player_position_id", "")).upper() == wanted]

    total = len(raw_players)
    players = []
    for index, raw in enumerate(raw_players):
        rank = int(raw.get("rank_ecr") or index + 1)
        tier = int(raw.get("tier") or (rank - 1) // PLAYERS_PER_TIER + 1)
        projected = raw.get("r2p_pts") or raw.get("player_points")
        players.append(RankedPlayer(
            name=raw.get("player_name") or f"Unknown Player {index + 1}",
            position=raw.get("player_position_id") or wanted,
            rank=rank,
            tier=tier,
            percentile=round((total - rank + 1) / total * 100, 1) if total else 0.0,
            projected_points=float(projected) if projected not in (None, "") else None,
        ))

    if not players:
        raise DataUnavailable(f"No {position} rankings on page", source="fantasypros")

    return Rankings(position=wanted, scoring_format=scoring_format, players=players)


class RankingsClient:
    """FantasyPros rankings reader with a TTL cache."""

    def __init__(
        self,
        fetcher: HttpFetcher | None = None,
        base_url: str | None = None,
        cache_ttl: float = CACHE_TTL_SECONDS,
    ):
        self.fetcher = fetcher or HttpFetcher(source="fantasypros")
        self.base_url = (base_url or config.data.rankings_base_url).rstrip("/")
        self.cache_ttl = cache_ttl
        self._cache: dict[tuple[str, str], tuple[float, Rankings]] = {}

    def _url(self, position: str, scoring_format: str) -> tuple[str, dict]:
        fmt = scoring_format.lower()
        page = POSITION_PAGES.get(position.upper())
        if page is None:
            return self.base_url + OVERALL_PAGE.format(format=fmt), {}
        return self.base_url + page, ({} if fmt == "ppr" else {"scoring": fmt.upper()})

    async def get_rankings(self, position: str, scoring_format: str | None = None) -> Rankings:
        """
        Fetch consensus rankings for a position.

        Raises:
            DataUnavailable: Request failed or page had no usable rankings
        """
        scoring_format = (scoring_format or config.data.scoring_format).lower()
        key = (position.upper(), scoring_format)

        cached = self._cache.get(key)
        if cached and time.monotonic() - cached[0] < self.cache_ttl:
            return cached[1]

        url, params = self._url(position, scoring_format)
        html = await self.fetcher.get_text(url, params=params or None)
        rankings = parse_ecr_data(html, position, scoring_format)

        self._cache[key] = (time.monotonic(), rankings)
        logger.info(f"Rankings {key[0]}/{scoring_format}: {len(rankings.players)} players")
        return rankings

    def clear_cache(self) -> None:
        self._cache.clear()
