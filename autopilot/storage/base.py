"""Record store interface."""
from abc import ABC, abstractmethod


class RecordStore(ABC):
    """
    Keyed record persistence, one collection per entity class.

    Implementations must never leave a collection partially written:
    either every change in a persist call lands, or none does and
    PersistenceFailure is raised.
    """

    @abstractmethod
    def load(self, collection: str) -> dict[str, dict]:
        """Load every record of a collection, keyed by id."""
        pass

    @abstractmethod
    def persist(
        self,
        collection: str,
        records: dict[str, dict],
        changed_ids: list[str],
    ) -> None:
        """
        Persist a collection.

        Args:
            collection: Collection name
            records: Full post-change contents of the collection
            changed_ids: Ids whose records changed in this call
        """
        pass
