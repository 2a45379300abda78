"""
In-memory trip store.

The store owns the canonical, ordered list of trips. Every mutation bumps a
monotonically increasing version counter which query caches compare against,
so two same-size mutations (delete + duplicate) still count as a change.
"""
from __future__ import annotations

import json
import logging
import uuid
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, Optional

from .config import MAX_PLAUSIBLE_SPEED_MPS
from .export_handler import write_atomic
from .models import TripRecord

logger = logging.getLogger(__name__)

COPY_SUFFIX = " (Copy)"


class TripStore:
    """Ordered trip collection with a mutation version counter."""

    def __init__(
        self,
        trips: Optional[Iterable[TripRecord]] = None,
        max_plausible_speed: float = MAX_PLAUSIBLE_SPEED_MPS
    ):
        self._trips: list[TripRecord] = []
        self._version = 0
        self._listeners: list[Callable[[int], None]] = []
        self.max_plausible_speed = max_plausible_speed

        if trips:
            self.extend(trips)

    def __len__(self) -> int:
        return len(self._trips)

    def list(self) -> tuple[TripRecord, ...]:
        """Snapshot of the trips in store order."""
        return tuple(self._trips)

    def version(self) -> int:
        """Current mutation counter."""
        return self._version

    def get(self, trip_id: uuid.UUID) -> Optional[TripRecord]:
        """Get a trip by ID."""
        for trip in self._trips:
            if trip.id == trip_id:
                return trip
        return None

    def append(self, record: TripRecord) -> None:
        """Add a trip at the end of the store."""
        if self._index_of(record.id) is not None:
            raise ValueError(f"Trip {record.id} is already stored")
        self._trips.append(record)
        self._bump()

    def extend(self, records: Iterable[TripRecord]) -> None:
        """Add several trips with a single version bump."""
        new = list(records)
        known = {t.id for t in self._trips}
        for record in new:
            if record.id in known:
                raise ValueError(f"Trip {record.id} is already stored")
            known.add(record.id)
        if new:
            self._trips.extend(new)
            self._bump()

    def update(self, record: TripRecord) -> None:
        """Replace the stored trip that has the same ID."""
        index = self._index_of(record.id)
        if index is None:
            raise KeyError(record.id)
        self._trips[index] = record
        self._bump()

    def remove(self, ids: Iterable[uuid.UUID]) -> int:
        """
        Remove trips by ID.

        Returns:
            Number of trips removed
        """
        doomed = set(ids)
        kept = [t for t in self._trips if t.id not in doomed]
        removed = len(self._trips) - len(kept)
        if removed:
            self._trips = kept
            self._bump()
        return removed

    def move(self, trip_id: uuid.UUID, new_index: int) -> None:
        """Reorder a trip within the store."""
        index = self._index_of(trip_id)
        if index is None:
            raise KeyError(trip_id)
        trip = self._trips.pop(index)
        self._trips.insert(new_index, trip)
        self._bump()

    def merge(self, records: Iterable[TripRecord]) -> tuple[int, int]:
        """
        Upsert trips: known IDs are replaced in place, new ones appended.

        Returns:
            (added, updated) counts
        """
        added = 0
        updated = 0
        positions = {t.id: i for i, t in enumerate(self._trips)}
        for record in records:
            index = positions.get(record.id)
            if index is None:
                positions[record.id] = len(self._trips)
                self._trips.append(record)
                added += 1
            else:
                self._trips[index] = record
                updated += 1
        if added or updated:
            self._bump()
        return added, updated

    def is_plausible(self, record: TripRecord) -> bool:
        """Check the recorded average speed against the sanity limit."""
        if record.average_speed is None:
            return True
        return record.average_speed <= self.max_plausible_speed

    def duplicate(self, trip_id: uuid.UUID, now: Optional[datetime] = None) -> TripRecord:
        """
        Store a copy of a trip as a new trip starting now.

        The copy gets a fresh ID, keeps the original duration, drops media
        and the recovered flag.

        Raises:
            KeyError: Unknown trip ID
            ValueError: The trip's average speed is implausible
        """
        source = self.get(trip_id)
        if source is None:
            raise KeyError(trip_id)
        if not self.is_plausible(source):
            raise ValueError(
                f"Trip {trip_id} has an implausible average speed "
                f"({source.average_speed:.1f} m/s); refusing to duplicate"
            )

        now = now or datetime.now().astimezone()
        copy = replace(
            source,
            id=uuid.uuid4(),
            date=now,
            start_time=now,
            end_time=now + source.duration,
            notes=source.notes + COPY_SUFFIX,
            audio_notes=(),
            photo_urls=(),
            is_recovered=False,
        )
        self.append(copy)
        return copy

    def rename_reason(self, old: str, new: str) -> int:
        """
        Retag every trip whose reason is `old`.

        Returns:
            Number of trips retagged
        """
        changed = 0
        for i, trip in enumerate(self._trips):
            if trip.reason == old:
                self._trips[i] = replace(trip, reason=new)
                changed += 1
        if changed:
            self._bump()
        return changed

    def save(self, path: Path | str) -> None:
        """Persist all trips, including route data, as JSON. The write is atomic."""
        payload = [t.to_dict(include_route=True) for t in self._trips]
        write_atomic(Path(path), json.dumps(payload, indent=2, sort_keys=True))

    @classmethod
    def load(cls, path: Path | str, **kwargs) -> TripStore:
        """Load a store saved with save(); a missing file gives an empty store."""
        path = Path(path)
        if not path.exists():
            return cls(**kwargs)
        data = json.loads(path.read_text(encoding="utf-8"))
        return cls((TripRecord.from_dict(item) for item in data), **kwargs)

    def add_listener(self, callback: Callable[[int], None]) -> None:
        """Add a listener called with the new version after each mutation."""
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[int], None]) -> None:
        """Remove a listener callback."""
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _index_of(self, trip_id: uuid.UUID) -> Optional[int]:
        for i, trip in enumerate(self._trips):
            if trip.id == trip_id:
                return i
        return None

    def _bump(self) -> None:
        self._version += 1
        for listener in self._listeners:
            listener(self._version)
