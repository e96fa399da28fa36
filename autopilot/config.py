"""
Fantasy Autopilot - Configuration Management

Centralized configuration using environment variables.
"""
import os
from dataclasses import dataclass, field
from typing import Literal

from dotenv import load_dotenv

# Load environment variables from .env file (does NOT override existing vars)
load_dotenv(override=False)


LLMProvider = Literal["gemini", "openai"]
StorageBackend = Literal["json", "supabase"]

MAX_LEAGUES = 10
SEVERITY_LEVELS = ("low", "medium", "high", "critical")


@dataclass
class LLMConfig:
    """Advisor (LLM) configuration."""
    provider: LLMProvider = "gemini"
    model: str = "gemini-2.5-flash"
    gemini_api_key: str | None = None
    openai_base_url: str = "https://api.openai.com/v1"
    openai_api_key: str | None = None
    openai_model: str | None = None
    timeout_seconds: float = 45.0
    max_retries: int = 3
    base_backoff: float = 2.0
    cost_per_1k_tokens: float = 0.0004  # USD, blended input/output


@dataclass
class SupabaseConfig:
    """Supabase configuration."""
    url: str | None = None
    anon_key: str | None = None
    service_role_key: str | None = None


@dataclass
class StorageConfig:
    """Where durable state lives."""
    backend: StorageBackend = "json"
    data_dir: str = "data"


@dataclass
class DataConfig:
    """Roster and rankings providers."""
    espn_base_url: str = "https://lm-api-reads.fantasy.espn.com/apis/v3/games/ffl"
    espn_s2: str | None = None
    espn_swid: str | None = None
    season: int = 2026
    rankings_base_url: str = "https://www.fantasypros.com"
    scoring_format: str = "ppr"
    static_roster_path: str | None = None
    timeout_seconds: float = 30.0
    max_retries: int = 3
    base_backoff: float = 1.0
    max_concurrent: int = 10


@dataclass
class LeagueConfig:
    """A single managed league/team."""
    league_id: str
    team_id: str
    name: str = ""
    platform: str = "espn"


@dataclass
class EngineConfig:
    """Real-time decision engine thresholds."""
    min_severity: str = "medium"
    min_source_confidence: float = 0.6
    auto_execute_confidence: float = 0.8
    critical_window_hours: float = 2.0
    safety_margin_minutes: int = 30
    fallback_confidence_factor: float = 0.6
    history_limit: int = 100


@dataclass
class LearningConfig:
    """Pattern miner thresholds."""
    lookback_days: int = 14
    min_decisions: int = 5
    min_pattern_examples: int = 3
    min_anti_pattern_examples: int = 2
    success_improvement_floor: float = 3.0
    failure_improvement_floor: float = -2.0
    initial_confidence_cap: float = 70.0
    evolution_success_rate: float = 70.0
    evolution_min_improvement: float = 2.0
    retire_success_rate: float = 0.4
    retire_min_applications: int = 5


@dataclass
class ExperimentConfig:
    """Experiment analysis defaults."""
    significance_level: float = 90.0
    min_samples_per_variant: int = 10


@dataclass
class SeasonConfig:
    """Season shape used to derive phases."""
    period_length: int = 17
    playoff_weeks: int = 3


@dataclass
class CostLimits:
    """Advisor spend limits in USD."""
    per_analysis: float = 0.05
    daily: float = 1.0
    weekly: float = 5.0
    monthly: float = 15.0


@dataclass
class SafetyConfig:
    """Guard rails for batch cycles."""
    max_concurrent_leagues: int = 5
    dry_run: bool = True
    max_cycle_seconds: int = 1800


@dataclass
class Config:
    """Main configuration class."""
    llm: LLMConfig
    supabase: SupabaseConfig
    storage: StorageConfig
    data: DataConfig
    engine: EngineConfig
    learning: LearningConfig
    experiments: ExperimentConfig
    season: SeasonConfig
    costs: CostLimits
    safety: SafetyConfig
    leagues: list[LeagueConfig] = field(default_factory=list)
    alert_webhook_url: str | None = None
    debug: bool = False


def _get_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _get_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.lower() in ("1", "true", "yes")


def load_leagues() -> list[LeagueConfig]:
    """Read LEAGUE_{i}_ID / LEAGUE_{i}_TEAM_ID / LEAGUE_{i}_NAME for i in 1..10."""
    leagues = []
    for i in range(1, MAX_LEAGUES + 1):
        league_id = os.getenv(f"LEAGUE_{i}_ID")
        if not league_id:
            continue
        leagues.append(LeagueConfig(
            league_id=league_id,
            team_id=os.getenv(f"LEAGUE_{i}_TEAM_ID", ""),
            name=os.getenv(f"LEAGUE_{i}_NAME", f"League {i}"),
            platform=os.getenv(f"LEAGUE_{i}_PLATFORM", "espn"),
        ))
    return leagues


def load_config() -> Config:
    """Load configuration from environment variables."""
    provider = os.getenv("LLM_PROVIDER", "gemini")
    backend = os.getenv("STORAGE_BACKEND", "json")

    return Config(
        llm=LLMConfig(
            provider=provider,  # type: ignore
            model=os.getenv("ADVISOR_MODEL", "gemini-2.5-flash"),
            gemini_api_key=os.getenv("GEMINI_API_KEY"),
            openai_base_url=os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1"),
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            openai_model=os.getenv("OPENAI_MODEL"),
            timeout_seconds=_get_float("ADVISOR_TIMEOUT_SECONDS", 45.0),
            max_retries=_get_int("ADVISOR_MAX_RETRIES", 3),
            cost_per_1k_tokens=_get_float("ADVISOR_COST_PER_1K_TOKENS", 0.0004),
        ),
        supabase=SupabaseConfig(
            url=os.getenv("SUPABASE_URL"),
            anon_key=os.getenv("SUPABASE_ANON_KEY"),
            service_role_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY"),
        ),
        storage=StorageConfig(
            backend=backend,  # type: ignore
            data_dir=os.getenv("DATA_DIR", "data"),
        ),
        data=DataConfig(
            espn_s2=os.getenv("ESPN_S2"),
            espn_swid=os.getenv("ESPN_SWID"),
            season=_get_int("SEASON", 2026),
            scoring_format=os.getenv("SCORING_FORMAT", "ppr"),
            static_roster_path=os.getenv("STATIC_ROSTER_PATH"),
            timeout_seconds=_get_float("DATA_TIMEOUT_SECONDS", 30.0),
        ),
        engine=EngineConfig(
            min_severity=os.getenv("MIN_EVENT_SEVERITY", "medium"),
            min_source_confidence=_get_float("MIN_SOURCE_CONFIDENCE", 0.6),
            auto_execute_confidence=_get_float("AUTO_EXECUTE_CONFIDENCE", 0.8),
            safety_margin_minutes=_get_int("DEADLINE_SAFETY_MARGIN_MINUTES", 30),
        ),
        learning=LearningConfig(),
        experiments=ExperimentConfig(
            significance_level=_get_float("EXPERIMENT_SIGNIFICANCE", 90.0),
            min_samples_per_variant=_get_int("EXPERIMENT_MIN_SAMPLES", 10),
        ),
        season=SeasonConfig(
            period_length=_get_int("SEASON_PERIOD_LENGTH", 17),
            playoff_weeks=_get_int("SEASON_PLAYOFF_WEEKS", 3),
        ),
        costs=CostLimits(
            per_analysis=_get_float("COST_LIMIT_PER_ANALYSIS", 0.05),
            daily=_get_float("COST_LIMIT_DAILY", 1.0),
            weekly=_get_float("COST_LIMIT_WEEKLY", 5.0),
            monthly=_get_float("COST_LIMIT_MONTHLY", 15.0),
        ),
        safety=SafetyConfig(
            max_concurrent_leagues=_get_int("MAX_CONCURRENT_LEAGUES", 5),
            dry_run=_get_bool("DRY_RUN", True),
            max_cycle_seconds=_get_int("MAX_CYCLE_SECONDS", 1800),
        ),
        leagues=load_leagues(),
        alert_webhook_url=os.getenv("ALERT_WEBHOOK_URL") or None,
        debug=os.getenv("DEBUG", "false").lower() == "true",
    )


def validate_config(cfg: Config) -> tuple[list[str], list[str]]:
    """
    Check a configuration before running a cycle.

    Returns:
        (errors, warnings). Any error means the cycle must not start.
    """
    errors: list[str] = []
    warnings: list[str] = []

    if not cfg.leagues:
        errors.append("No leagues configured (set LEAGUE_1_ID and LEAGUE_1_TEAM_ID)")

    seen: set[str] = set()
    for league in cfg.leagues:
        if league.league_id in seen:
            errors.append(f"Duplicate league id: {league.league_id}")
        seen.add(league.league_id)
        if not league.team_id:
            errors.append(f"League {league.league_id} has no team id")

    if cfg.llm.provider not in ("gemini", "openai"):
        errors.append(f"Unsupported LLM provider: {cfg.llm.provider}")
    if cfg.storage.backend not in ("json", "supabase"):
        errors.append(f"Unsupported storage backend: {cfg.storage.backend}")
    if cfg.storage.backend == "supabase" and not cfg.supabase.url:
        errors.append("STORAGE_BACKEND=supabase requires SUPABASE_URL")
    if cfg.engine.min_severity not in SEVERITY_LEVELS:
        errors.append(f"Unknown minimum severity: {cfg.engine.min_severity}")
    if not 0.0 <= cfg.engine.min_source_confidence <= 1.0:
        errors.append("MIN_SOURCE_CONFIDENCE must be within [0, 1]")
    if not 0.0 < cfg.experiments.significance_level < 100.0:
        errors.append("EXPERIMENT_SIGNIFICANCE must be within (0, 100)")
    if cfg.safety.max_concurrent_leagues < 1:
        errors.append("MAX_CONCURRENT_LEAGUES must be at least 1")

    if cfg.llm.provider == "gemini" and not cfg.llm.gemini_api_key:
        warnings.append("GEMINI_API_KEY not set; advisor runs in rule-based fallback mode")
    if cfg.llm.provider == "openai" and not cfg.llm.openai_model:
        warnings.append("OPENAI_MODEL not set; advisor runs in rule-based fallback mode")
    if not (cfg.data.espn_s2 and cfg.data.espn_swid):
        warnings.append("ESPN_S2/ESPN_SWID not set; private leagues will be unreachable")
    if not cfg.safety.dry_run:
        warnings.append("DRY_RUN disabled; critical decisions will execute roster moves through the supplied executor")
    if cfg.costs.daily < cfg.costs.per_analysis:
        warnings.append("Daily cost limit is below the per-analysis limit")

    return errors, warnings


# Global config instance
config = load_config()
