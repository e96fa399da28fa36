# Durable state package

from autopilot.storage.base import RecordStore
from autopilot.storage.collection import Collection
from autopilot.storage.json_store import JsonFileStore
from autopilot.storage.supabase_store import SupabaseStore
from autopilot.storage.factory import get_record_store

# Collection names (one per entity class)
RECOMMENDATIONS = "recommendations"
OUTCOMES = "outcomes"
PATTERNS = "patterns"
ANTI_PATTERNS = "anti_patterns"
STRATEGY_PROFILES = "strategy_profiles"
EXPERIMENTS = "experiments"
EXPERIMENT_RESULTS = "experiment_results"
DECISIONS = "decisions"
SEASONAL_INTELLIGENCE = "seasonal_intelligence"
CYCLE_RUNS = "cycle_runs"

__all__ = [
    "RecordStore",
    "Collection",
    "JsonFileStore",
    "SupabaseStore",
    "get_record_store",
    "RECOMMENDATIONS",
    "OUTCOMES",
    "PATTERNS",
    "ANTI_PATTERNS",
    "STRATEGY_PROFILES",
    "EXPERIMENTS",
    "EXPERIMENT_RESULTS",
    "DECISIONS",
    "SEASONAL_INTELLIGENCE",
    "CYCLE_RUNS",
]
