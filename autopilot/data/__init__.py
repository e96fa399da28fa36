# Roster and rankings data package

from autopilot.data.fetcher import HttpFetcher, FetcherConfig
from autopilot.data.espn_client import EspnRosterClient, parse_roster
from autopilot.data.rankings_client import RankingsClient, parse_ecr_data
from autopilot.data.static_source import StaticRosterSource
from autopilot.data.provider import LeagueDataProvider
from autopilot.data.names import normalize_name, roster_contains
from autopilot.data.models import (
    LeagueSnapshot,
    RankedPlayer,
    Rankings,
    Roster,
    RosterPlayer,
)

__all__ = [
    "HttpFetcher",
    "FetcherConfig",
    "EspnRosterClient",
    "parse_roster",
    "RankingsClient",
    "parse_ecr_data",
    "StaticRosterSource",
    "LeagueDataProvider",
    "normalize_name",
    "roster_contains",
    # Models
    "LeagueSnapshot",
    "RankedPlayer",
    "Rankings",
    "Roster",
    "RosterPlayer",
]
