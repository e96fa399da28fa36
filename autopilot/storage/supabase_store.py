"""
Supabase record store.

Each collection maps to a table with two columns:
    id   text primary key
    data jsonb
"""
import logging
from typing import Any

from supabase import create_client, Client

from autopilot.config import config
from autopilot.errors import PersistenceFailure
from .base import RecordStore


logger = logging.getLogger(__name__)


class SupabaseStore(RecordStore):
    """Record store backed by Supabase tables."""

    def __init__(self, client: Any | None = None, table_prefix: str = "autopilot_"):
        if client is None:
            url = config.supabase.url
            key = config.supabase.service_role_key or config.supabase.anon_key

            if not url or not key:
                raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")

            client = create_client(url, key)

        self._client: Client = client
        self.table_prefix = table_prefix

    def _table(self, collection: str) -> str:
        return f"{self.table_prefix}{collection}"

    def load(self, collection: str) -> dict[str, dict]:
        try:
            result = self._client.table(self._table(collection)).select("id, data").execute()
        except Exception as e:
            raise PersistenceFailure(f"Failed to load {collection}: {e}") from e

        return {row["id"]: row["data"] for row in (result.data or [])}

    def persist(
        self,
        collection: str,
        records: dict[str, dict],
        changed_ids: list[str],
    ) -> None:
        rows = [
            {"id": record_id, "data": records[record_id]}
            for record_id in changed_ids
            if record_id in records
        ]
        if not rows:
            return

        try:
            self._client.table(self._table(collection)).upsert(rows).execute()
        except Exception as e:
            logger.error(f"Failed to upsert {len(rows)} rows into {collection}: {e}")
            raise PersistenceFailure(f"Failed to persist {collection}: {e}") from e
