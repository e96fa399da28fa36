"""
Pytest fixtures for Fantasy Autopilot tests.
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from autopilot.advisor import AdvisorResponse, AdvisorService, Suggestion
from autopilot.config import (
    Config,
    CostLimits,
    DataConfig,
    EngineConfig,
    ExperimentConfig,
    LeagueConfig,
    LearningConfig,
    LLMConfig,
    SafetyConfig,
    SeasonConfig,
    StorageConfig,
    SupabaseConfig,
)
from autopilot.data import LeagueSnapshot, Roster, RosterPlayer
from autopilot.errors import AdvisorFailure
from autopilot.ledger import Outcome, RecommendationDraft, RecommendationLedger
from autopilot.storage import JsonFileStore


def make_draft(
    kind: str = "lineup",
    period: int = 5,
    league_id: str = "L1",
    confidence: float = 75.0,
    advisor_used: bool = False,
    context: dict | None = None,
    **kwargs,
) -> RecommendationDraft:
    """Build a recommendation draft with sensible defaults."""
    return RecommendationDraft(
        kind=kind,  # type: ignore
        period=period,
        league_id=league_id,
        team_id=kwargs.pop("team_id", "T1"),
        payload=kwargs.pop("payload", {"actions": []}),
        confidence=confidence,
        advisor_used=advisor_used,
        context=context or {},
        **kwargs,
    )


def resolve(ledger: RecommendationLedger, rec_id: str, success: bool, actual: float = 20.0, projected: float = 18.0):
    """Record an outcome for a tracked recommendation."""
    return ledger.record_outcome(Outcome(
        recommendation_id=rec_id,
        success=success,
        actual_value=actual,
        projected_value=projected,
    ))


def make_roster(league_id: str = "L1", team_id: str = "T1", players: list[RosterPlayer] | None = None) -> Roster:
    if players is None:
        players = [
            RosterPlayer("1", "Patrick Mahomes", "QB", "KC", "ACTIVE", 22.0, "QB"),
            RosterPlayer("2", "Christian McCaffrey", "RB", "SF", "ACTIVE", 18.5, "RB"),
            RosterPlayer("3", "Justin Jefferson", "WR", "MIN", "ACTIVE", 17.0, "WR"),
            RosterPlayer("4", "Travis Kelce", "TE", "KC", "ACTIVE", 12.0, "TE"),
            RosterPlayer("5", "Jaylen Warren", "RB", "PIT", "ACTIVE", 9.5, "BE"),
            RosterPlayer("6", "Rome Odunze", "WR", "CHI", "ACTIVE", 8.0, "BE"),
        ]
    return Roster(league_id=league_id, team_id=team_id, players=players)


@pytest.fixture
def store(tmp_path) -> JsonFileStore:
    """JSON store in a temporary data directory."""
    return JsonFileStore(tmp_path / "data")


@pytest.fixture
def ledger(store) -> RecommendationLedger:
    return RecommendationLedger(store)


@pytest.fixture
def offline_advisor() -> MagicMock:
    """Advisor that always fails, forcing rule-based fallback."""
    advisor = MagicMock(spec=AdvisorService)
    advisor.consult = AsyncMock(side_effect=AdvisorFailure("Advisor is not configured"))
    advisor.identity = "rule_based"
    advisor.available = False
    return advisor


@pytest.fixture
def advisor_factory():
    """Build an advisor mock returning a fixed structured response."""
    def factory(
        suggestions: list[Suggestion] | None = None,
        assessment: dict | None = None,
        confidence: float | None = 0.8,
        cost: float = 0.01,
    ) -> MagicMock:
        advisor = MagicMock(spec=AdvisorService)
        advisor.consult = AsyncMock(return_value=AdvisorResponse(
            summary="Advisor summary",
            suggestions=suggestions or [],
            assessment=assessment or {},
            confidence=confidence,
            model="test-model",
            cost=cost,
        ))
        advisor.identity = "test-model"
        advisor.available = True
        return advisor
    return factory


@pytest.fixture
def learning_config() -> LearningConfig:
    return LearningConfig()


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig()


@pytest.fixture
def season_config() -> SeasonConfig:
    return SeasonConfig(period_length=17, playoff_weeks=3)


@pytest.fixture
def leagues() -> list[LeagueConfig]:
    return [
        LeagueConfig(league_id="L1", team_id="T1", name="Work League"),
        LeagueConfig(league_id="L2", team_id="T2", name="Family League"),
    ]


@pytest.fixture
def roster() -> Roster:
    return make_roster()


@pytest.fixture
def snapshot(roster) -> LeagueSnapshot:
    return LeagueSnapshot(league_id=roster.league_id, team_id=roster.team_id, roster=roster)


def make_config(leagues: list[LeagueConfig] | None = None, **kwargs) -> Config:
    """Default configuration, independent of the environment."""
    return Config(
        llm=kwargs.pop("llm", LLMConfig()),
        supabase=kwargs.pop("supabase", SupabaseConfig()),
        storage=kwargs.pop("storage", StorageConfig()),
        data=kwargs.pop("data", DataConfig()),
        engine=kwargs.pop("engine", EngineConfig()),
        learning=kwargs.pop("learning", LearningConfig()),
        experiments=kwargs.pop("experiments", ExperimentConfig()),
        season=kwargs.pop("season", SeasonConfig()),
        costs=kwargs.pop("costs", CostLimits()),
        safety=kwargs.pop("safety", SafetyConfig()),
        leagues=leagues if leagues is not None else [],
        **kwargs,
    )


@pytest.fixture
def app_config(leagues) -> Config:
    return make_config(leagues)
