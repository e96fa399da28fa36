"""
Data models for roster and rankings data.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone

from .names import normalize_name


STARTER_SLOTS = {"QB", "RB", "WR", "TE", "FLEX", "RB/WR", "WR/TE", "OP", "D/ST", "K"}


@dataclass
class RosterPlayer:
    """A player on a managed fantasy roster."""
    player_id: str
    name: str
    position: str
    team: str = "FA"
    status: str = "ACTIVE"  # ACTIVE, QUESTIONABLE, DOUBTFUL, OUT, IR
    projected_points: float = 0.0
    lineup_slot: str = "BE"

    @property
    def is_starter(self) -> bool:
        return self.lineup_slot in STARTER_SLOTS

    def to_dict(self) -> dict:
        return {
            "player_id": self.player_id,
            "name": self.name,
            "position": self.position,
            "team": self.team,
            "status": self.status,
            "projected_points": self.projected_points,
            "lineup_slot": self.lineup_slot,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RosterPlayer":
        return cls(
            player_id=str(data.get("player_id") or data["name"]),
            name=data["name"],
            position=data.get("position", "UNKNOWN"),
            team=data.get("team", "FA"),
            status=str(data.get("status", "ACTIVE")).upper(),
            projected_points=float(data.get("projected_points", 0.0)),
            lineup_slot=data.get("lineup_slot", "BE"),
        )


@dataclass
class Roster:
    """One team's roster as fetched from a provider."""
    league_id: str
    team_id: str
    players: list[RosterPlayer]
    fetched_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    source: str = "espn"
    stale: bool = False

    @property
    def starters(self) -> list[RosterPlayer]:
        return [p for p in self.players if p.is_starter]

    @property
    def bench(self) -> list[RosterPlayer]:
        return [p for p in self.players if not p.is_starter]

    @property
    def projected_total(self) -> float:
        return round(sum(p.projected_points for p in self.starters), 2)

    def to_dict(self) -> dict:
        return {
            "league_id": self.league_id,
            "team_id": self.team_id,
            "players": [p.to_dict() for p in self.players],
            "fetched_at": self.fetched_at,
            "source": self.source,
            "stale": self.stale,
        }


@dataclass
class RankedPlayer:
    """Expert consensus ranking for one player."""
    name: str
    position: str
    rank: int
    tier: int
    percentile: float  # 0-100, higher is better
    projected_points: float | None = None


@dataclass
class Rankings:
    """Expert consensus rankings for one position and scoring format."""
    position: str
    scoring_format: str
    players: list[RankedPlayer]
    source: str = "fantasypros"
    fetched_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def lookup(self, name: str) -> RankedPlayer | None:
        key = normalize_name(name)
        for player in self.players:
            if normalize_name(player.name) == key:
                return player
        return None


@dataclass
class LeagueSnapshot:
    """Everything fetched for one league before a decision cycle."""
    league_id: str
    team_id: str
    roster: Roster
    rankings: dict[str, Rankings] = field(default_factory=dict)
    degradations: list[str] = field(default_factory=list)

    @property
    def data_sources(self) -> set[str]:
        sources = {self.roster.source}
        sources.update(r.source for r in self.rankings.values())
        return sources

    def expert_context(self, player_name: str) -> dict:
        """Expert ranking factors for a player, empty when unranked."""
        for rankings in self.rankings.values():
            ranked = rankings.lookup(player_name)
            if ranked is not None:
                return {
                    "expert_rank": ranked.rank,
                    "expert_tier": ranked.tier,
                    "expert_percentile": ranked.percentile,
                }
        return {}
