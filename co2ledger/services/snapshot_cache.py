"""
In-process snapshot cache for the full emission table.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Tuple

from co2ledger.models.emission import EmissionRecordRead


@dataclass(frozen=True)
class Snapshot:
    """Point-in-time copy of all emission records."""
    records: Tuple[EmissionRecordRead, ...]
    captured_at: float


class SnapshotCache:
    """
    Holds one snapshot and the time it was captured.

    Readers take no lock: they see whichever Snapshot object is current.
    Replace, patch and invalidate share a single lock. Every invalidation bumps
    a generation counter so a refresh that started earlier cannot install its
    result afterwards.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = asyncio.Lock()
        self._snapshot: Optional[Snapshot] = None
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def snapshot(self) -> Optional[Snapshot]:
        """Current snapshot regardless of age."""
        return self._snapshot

    def age(self) -> Optional[float]:
        snapshot = self._snapshot
        if snapshot is None:
            return None
        return self._clock() - snapshot.captured_at

    def fresh(self) -> Optional[Snapshot]:
        """Current snapshot if it is younger than the TTL, else None."""
        snapshot = self._snapshot
        if snapshot is None:
            return None
        if self._clock() - snapshot.captured_at >= self.ttl_seconds:
            return None
        return snapshot

    async def replace(
        self,
        records: Iterable[EmissionRecordRead],
        expected_generation: Optional[int] = None
    ) -> bool:
        """
        Swap in a new snapshot with the current time.

        Returns False without touching the cache when ``expected_generation``
        is given and an invalidation happened since it was read.
        """
        async with self._lock:
            if expected_generation is not None and expected_generation != self._generation:
                return False
            self._snapshot = Snapshot(records=tuple(records), captured_at=self._clock())
            return True

    async def patch(self, record: EmissionRecordRead) -> bool:
        """
        Replace the entry with the same id, keeping the capture time.

        Returns False when there is no snapshot or no entry with that id.
        """
        if record.id is None:
            return False

        async with self._lock:
            snapshot = self._snapshot
            if snapshot is None:
                return False

            records = list(snapshot.records)
            for index, existing in enumerate(records):
                if existing.id is not None and existing.id == record.id:
                    records[index] = record
                    self._snapshot = Snapshot(records=tuple(records), captured_at=snapshot.captured_at)
                    return True
            return False

    async def invalidate(self) -> None:
        async with self._lock:
            self._snapshot = None
            self._generation += 1

    def status(self) -> str:
        """Human-readable cache state."""
        snapshot = self._snapshot
        if snapshot is None:
            return "Cache is empty"

        age = self._clock() - snapshot.captured_at
        remaining = max(self.ttl_seconds - age, 0)
        return (
            f"Cache: {len(snapshot.records)} records, "
            f"Age: {int(age)} seconds, Remaining: {int(remaining)} seconds"
        )
