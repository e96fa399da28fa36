"""
Service wiring.

Every service is constructed once per process (or per tenant) and
passed by reference; nothing here is a module-level singleton.
"""
import logging
from dataclasses import dataclass

from autopilot.advisor import AdvisorService, UsageBudget
from autopilot.config import Config, config as default_config
from autopilot.cycle_logger import CycleLogger
from autopilot.data import (
    EspnRosterClient,
    FetcherConfig,
    HttpFetcher,
    LeagueDataProvider,
    RankingsClient,
    StaticRosterSource,
)
from autopilot.errors import ConfigurationError
from autopilot.experiments import ExperimentCoordinator
from autopilot.learning import PatternMiner
from autopilot.ledger import RecommendationLedger
from autopilot.llm import get_llm_client
from autopilot.monitoring import LogSink, NotificationSink, WebhookSink
from autopilot.realtime import ActionExecutor, DecisionEngine, DryRunExecutor
from autopilot.seasonal import SeasonalAggregator
from autopilot.storage import RecordStore, get_record_store


logger = logging.getLogger(__name__)


@dataclass
class AutopilotServices:
    """Explicitly constructed services shared by one deployment."""
    config: Config
    store: RecordStore
    ledger: RecommendationLedger
    coordinator: ExperimentCoordinator
    miner: PatternMiner
    advisor: AdvisorService
    data_provider: LeagueDataProvider
    engine: DecisionEngine
    seasonal: SeasonalAggregator
    cycle_logger: CycleLogger
    sink: NotificationSink

    def session_budget(self, session_limit: float | None = None) -> UsageBudget:
        """Fresh advisor budget for one session (cycle or CLI run)."""
        return UsageBudget(
            per_analysis_limit=self.config.costs.per_analysis,
            session_limit=session_limit if session_limit is not None else self.config.costs.daily,
        )

    async def close(self) -> None:
        await self.data_provider.close()


def _build_advisor(cfg: Config) -> AdvisorService:
    try:
        llm_client = get_llm_client(cfg.llm.provider)
    except ValueError as e:
        logger.warning(f"Advisor unavailable, using rule-based fallback: {e}")
        llm_client = None

    model = cfg.llm.openai_model if cfg.llm.provider == "openai" else cfg.llm.model
    advisor = AdvisorService(
        llm_client=llm_client,
        model=model,
        timeout_seconds=cfg.llm.timeout_seconds,
        max_retries=cfg.llm.max_retries,
        base_backoff=cfg.llm.base_backoff,
        cost_per_1k_tokens=cfg.llm.cost_per_1k_tokens,
    )
    # None means rule-based mode, not "use the global provider"
    advisor.llm_client = llm_client
    return advisor


def _build_data_provider(cfg: Config) -> LeagueDataProvider:
    fetch_config = FetcherConfig(
        max_concurrent=cfg.data.max_concurrent,
        timeout_seconds=cfg.data.timeout_seconds,
        max_retries=cfg.data.max_retries,
        base_backoff=cfg.data.base_backoff,
    )
    return LeagueDataProvider(
        roster_client=EspnRosterClient(
            fetcher=HttpFetcher(fetch_config, source="espn"),
            base_url=cfg.data.espn_base_url,
            season=cfg.data.season,
            espn_s2=cfg.data.espn_s2 or "",
            swid=cfg.data.espn_swid or "",
        ),
        rankings_client=RankingsClient(
            fetcher=HttpFetcher(fetch_config, source="fantasypros"),
            base_url=cfg.data.rankings_base_url,
        ),
        static_source=StaticRosterSource(cfg.data.static_roster_path),
        scoring_format=cfg.data.scoring_format,
    )


def _select_executor(cfg: Config, executor: ActionExecutor | None) -> ActionExecutor:
    """DRY_RUN wins over a supplied executor; disabling it requires one."""
    if cfg.safety.dry_run:
        if executor is not None:
            logger.warning(f"DRY_RUN enabled; ignoring {type(executor).__name__}")
        return DryRunExecutor()
    if executor is None:
        raise ConfigurationError(
            "DRY_RUN=false requires a live ActionExecutor; none was supplied"
        )
    return executor


def build_services(
    cfg: Config | None = None,
    store: RecordStore | None = None,
    advisor: AdvisorService | None = None,
    data_provider: LeagueDataProvider | None = None,
    sink: NotificationSink | None = None,
    executor: ActionExecutor | None = None,
) -> AutopilotServices:
    """
    Construct the full service graph for one configuration.

    Any collaborator can be injected (tests pass fakes); the rest are
    built from `cfg`. Roster moves go through `executor` only when
    DRY_RUN is disabled.

    Raises:
        ConfigurationError: DRY_RUN disabled without a live executor
    """
    cfg = cfg or default_config
    executor = _select_executor(cfg, executor)
    store = store or get_record_store(cfg)
    advisor = advisor or _build_advisor(cfg)
    data_provider = data_provider or _build_data_provider(cfg)
    if sink is None:
        sink = WebhookSink(cfg.alert_webhook_url) if cfg.alert_webhook_url else LogSink()

    ledger = RecommendationLedger(store)
    coordinator = ExperimentCoordinator(
        ledger,
        store,
        significance_level=cfg.experiments.significance_level,
        min_samples_per_variant=cfg.experiments.min_samples_per_variant,
    )
    miner = PatternMiner(store, advisor, learning_config=cfg.learning)
    engine = DecisionEngine(
        ledger,
        miner,
        advisor=advisor,
        data_provider=data_provider,
        coordinator=coordinator,
        sink=sink,
        executor=executor,
        store=store,
        leagues=cfg.leagues,
        engine_config=cfg.engine,
    )
    seasonal = SeasonalAggregator(ledger, advisor, store, season_config=cfg.season)

    logger.info(
        f"Services ready: storage={cfg.storage.backend}, advisor={advisor.identity}, "
        f"leagues={len(cfg.leagues)}, dry_run={cfg.safety.dry_run}"
    )
    return AutopilotServices(
        config=cfg,
        store=store,
        ledger=ledger,
        coordinator=coordinator,
        miner=miner,
        advisor=advisor,
        data_provider=data_provider,
        engine=engine,
        seasonal=seasonal,
        cycle_logger=CycleLogger(store),
        sink=sink,
    )
