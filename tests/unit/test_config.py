"""
Tests for configuration loading and validation.
"""
import pytest

from autopilot.config import (
    CostLimits,
    DataConfig,
    EngineConfig,
    ExperimentConfig,
    LeagueConfig,
    LLMConfig,
    SafetyConfig,
    StorageConfig,
    load_config,
    load_leagues,
    validate_config,
)

from conftest import make_config


@pytest.fixture
def clean_env(monkeypatch):
    """Remove league and tuning variables a developer .env may have set."""
    for i in range(1, 11):
        for suffix in ("ID", "TEAM_ID", "NAME", "PLATFORM"):
            monkeypatch.delenv(f"LEAGUE_{i}_{suffix}", raising=False)
    for name in ("MIN_SOURCE_CONFIDENCE", "DRY_RUN", "EXPERIMENT_SIGNIFICANCE", "STORAGE_BACKEND", "LLM_PROVIDER"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


# ─── Loading ───────────────────────────────────────────────


class TestLoadLeagues:

    def test_reads_numbered_leagues(self, clean_env):
        clean_env.setenv("LEAGUE_1_ID", "123456")
        clean_env.setenv("LEAGUE_1_TEAM_ID", "7")
        clean_env.setenv("LEAGUE_1_NAME", "Work League")
        clean_env.setenv("LEAGUE_3_ID", "987654")

        leagues = load_leagues()

        assert leagues == [
            LeagueConfig(league_id="123456", team_id="7", name="Work League"),
            LeagueConfig(league_id="987654", team_id="", name="League 3"),
        ]

    def test_no_leagues(self, clean_env):
        assert load_leagues() == []


class TestLoadConfig:

    def test_numeric_overrides(self, clean_env):
        clean_env.setenv("MIN_SOURCE_CONFIDENCE", "0.75")
        clean_env.setenv("EXPERIMENT_SIGNIFICANCE", "95")
        clean_env.setenv("DRY_RUN", "false")

        cfg = load_config()

        assert cfg.engine.min_source_confidence == 0.75
        assert cfg.experiments.significance_level == 95.0
        assert cfg.safety.dry_run is False

    def test_unparseable_number_keeps_default(self, clean_env):
        clean_env.setenv("MIN_SOURCE_CONFIDENCE", "high")
        assert load_config().engine.min_source_confidence == 0.6


# ─── Validation ────────────────────────────────────────────


class TestValidateConfig:

    def test_valid_config(self, leagues):
        cfg = make_config(
            leagues,
            llm=LLMConfig(gemini_api_key="key"),
            data=DataConfig(espn_s2="s2", espn_swid="{SWID}"),
        )

        errors, warnings = validate_config(cfg)

        assert errors == []
        assert warnings == []

    def test_no_leagues_is_an_error(self):
        errors, _ = validate_config(make_config([]))
        assert errors == ["No leagues configured (set LEAGUE_1_ID and LEAGUE_1_TEAM_ID)"]

    def test_league_problems(self):
        cfg = make_config([
            LeagueConfig(league_id="L1", team_id="T1"),
            LeagueConfig(league_id="L1", team_id=""),
        ])

        errors, _ = validate_config(cfg)

        assert "Duplicate league id: L1" in errors
        assert "League L1 has no team id" in errors

    @pytest.mark.parametrize("kwargs,message", [
        ({"llm": LLMConfig(provider="claude")}, "Unsupported LLM provider: claude"),
        ({"storage": StorageConfig(backend="sqlite")}, "Unsupported storage backend: sqlite"),
        ({"storage": StorageConfig(backend="supabase")}, "STORAGE_BACKEND=supabase requires SUPABASE_URL"),
        ({"engine": EngineConfig(min_severity="urgent")}, "Unknown minimum severity: urgent"),
        ({"engine": EngineConfig(min_source_confidence=1.5)}, "MIN_SOURCE_CONFIDENCE must be within [0, 1]"),
        ({"experiments": ExperimentConfig(significance_level=100.0)}, "EXPERIMENT_SIGNIFICANCE must be within (0, 100)"),
        ({"safety": SafetyConfig(max_concurrent_leagues=0)}, "MAX_CONCURRENT_LEAGUES must be at least 1"),
    ])
    def test_errors(self, leagues, kwargs, message):
        errors, _ = validate_config(make_config(leagues, **kwargs))
        assert errors == [message]

    def test_warnings(self, leagues):
        cfg = make_config(
            leagues,
            safety=SafetyConfig(dry_run=False),
            costs=CostLimits(per_analysis=0.5, daily=0.1),
        )

        errors, warnings = validate_config(cfg)

        assert errors == []
        assert "GEMINI_API_KEY not set; advisor runs in rule-based fallback mode" in warnings
        assert "ESPN_S2/ESPN_SWID not set; private leagues will be unreachable" in warnings
        assert "DRY_RUN disabled; critical decisions will execute roster moves through the supplied executor" in warnings
        assert "Daily cost limit is below the per-analysis limit" in warnings

    def test_openai_needs_model(self, leagues):
        _, warnings = validate_config(make_config(leagues, llm=LLMConfig(provider="openai")))
        assert "OPENAI_MODEL not set; advisor runs in rule-based fallback mode" in warnings
