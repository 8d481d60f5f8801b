"""Latest fetched collections, one per resource type."""

import time
from typing import Any, Callable, Dict, List, Optional

Snapshot = Dict[str, Any]


class SnapshotStore:
    """
    Holds the most recent successful fetch of every resource.

    Each resource is replaced wholesale by ``replace``; records are never
    merged. Two refreshes that overlap both write here and the later write
    wins, which is safe because every write is a full replacement.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._data: Snapshot = {}
        self._updated_at: Dict[str, float] = {}

    def replace(self, resource: str, records: Any) -> None:
        self._data[resource] = records
        self._updated_at[resource] = self._clock()

    def replace_many(self, fetched: Snapshot) -> None:
        for resource, records in fetched.items():
            self.replace(resource, records)

    def get(self, resource: str, default: Any = None) -> Any:
        return self._data.get(resource, default)

    def records(self, resource: str) -> List[Any]:
        """Return the records of a collection resource, or an empty list."""
        value = self._data.get(resource)
        return list(value) if isinstance(value, list) else []

    @property
    def last_updated(self) -> Optional[float]:
        """Time of the most recent write to any resource."""
        return max(self._updated_at.values(), default=None)

    def clear(self) -> None:
        self._data.clear()
        self._updated_at.clear()
