"""Record store factory."""
from autopilot.config import Config, config as default_config
from .base import RecordStore


def get_record_store(cfg: Config | None = None) -> RecordStore:
    """
    Build the record store selected by STORAGE_BACKEND.

    Raises:
        ValueError: If the backend is not supported
    """
    cfg = cfg or default_config
    backend = cfg.storage.backend

    if backend == "json":
        from .json_store import JsonFileStore
        return JsonFileStore(cfg.storage.data_dir)
    elif backend == "supabase":
        from .supabase_store import SupabaseStore
        return SupabaseStore()
    else:
        raise ValueError(f"Unsupported storage backend: {backend}")
