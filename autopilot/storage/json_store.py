"""
Flat-file JSON store.

One <collection>.json file per entity class. Every write goes to a
temporary file in the same directory and is swapped in with os.replace,
so a crash mid-write leaves the previous file intact.
"""
import json
import logging
import os
import tempfile
from pathlib import Path

from autopilot.errors import PersistenceFailure
from .base import RecordStore


logger = logging.getLogger(__name__)


class JsonFileStore(RecordStore):
    """Record store backed by JSON files in a data directory."""

    def __init__(self, data_dir: str | Path = "data"):
        self.data_dir = Path(data_dir)

    def _path(self, collection: str) -> Path:
        return self.data_dir / f"{collection}.json"

    def load(self, collection: str) -> dict[str, dict]:
        path = self._path(collection)
        if not path.exists():
            return {}

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceFailure(f"Failed to read {path}: {e}") from e

        if not isinstance(data, dict):
            raise PersistenceFailure(f"Unexpected content in {path}: expected an object keyed by id")
        return data

    def persist(
        self,
        collection: str,
        records: dict[str, dict],
        changed_ids: list[str],
    ) -> None:
        path = self._path(collection)
        tmp_name = None
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            payload = json.dumps(records, ensure_ascii=False, indent=2, default=str)

            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{collection}.", suffix=".tmp", dir=self.data_dir
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())

            os.replace(tmp_name, path)
            tmp_name = None
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to persist {collection}: {e}")
            raise PersistenceFailure(f"Failed to write {path}: {e}") from e
        finally:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)

        logger.debug(f"Persisted {collection}: {len(records)} records ({len(changed_ids)} changed)")
