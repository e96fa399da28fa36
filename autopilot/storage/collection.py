"""
In-memory index over one persisted collection.

All writers go through the collection lock, so a read-modify-write on a
given id is atomic and concurrent updates cannot be lost. Readers get a
deep-copied snapshot, so a multi-step aggregation never sees a write
that lands halfway through it.
"""
import copy
import logging
import threading
from typing import Callable

from .base import RecordStore


logger = logging.getLogger(__name__)


class Collection:
    """A keyed collection of JSON-serializable records."""

    def __init__(self, store: RecordStore, name: str):
        self.store = store
        self.name = name
        self._lock = threading.RLock()
        self._records: dict[str, dict] | None = None

    @property
    def lock(self) -> threading.RLock:
        """Collection lock, for readers that must span several collections."""
        return self._lock

    def _index(self) -> dict[str, dict]:
        if self._records is None:
            self._records = self.store.load(self.name)
            logger.debug(f"Loaded {self.name}: {len(self._records)} records")
        return self._records

    def reload(self) -> None:
        """Drop the in-memory index so the next access reads the store."""
        with self._lock:
            self._records = None

    def get(self, record_id: str) -> dict | None:
        with self._lock:
            record = self._index().get(record_id)
            return copy.deepcopy(record) if record is not None else None

    def snapshot(self) -> list[dict]:
        """Point-in-time copy of every record."""
        with self._lock:
            return copy.deepcopy(list(self._index().values()))

    def ids(self) -> list[str]:
        with self._lock:
            return list(self._index().keys())

    def put(self, record_id: str, record: dict) -> None:
        self.put_many({record_id: record})

    def put_many(self, records: dict[str, dict]) -> None:
        """Insert or replace several records in one durable write."""
        if not records:
            return
        with self._lock:
            current = self._index()
            updated = dict(current)
            for record_id, record in records.items():
                updated[record_id] = copy.deepcopy(record)

            # Index is swapped only after the store accepted the write
            self.store.persist(self.name, updated, list(records.keys()))
            self._records = updated

    def update(
        self,
        record_id: str,
        mutate: Callable[[dict | None], dict],
    ) -> dict:
        """
        Atomic read-modify-write of a single record.

        Args:
            record_id: Record key
            mutate: Receives a copy of the current record (or None) and
                returns the new record

        Returns:
            The stored record
        """
        with self._lock:
            current = self._index().get(record_id)
            new_record = mutate(copy.deepcopy(current) if current is not None else None)
            self.put(record_id, new_record)
            return copy.deepcopy(new_record)

    def __contains__(self, record_id: object) -> bool:
        with self._lock:
            return record_id in self._index()

    def __len__(self) -> int:
        with self._lock:
            return len(self._index())
