"""
Filtering, sorting and memoization of the trip log.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Hashable, Optional, Sequence

import numpy as np
import pandas as pd

from .models import QueryParams, SortOption, TripRecord, TripSummary, ensure_aware
from .store import TripStore

logger = logging.getLogger(__name__)

ALL_REASONS = "All"

SORT_COLUMNS = {
    SortOption.DATE_DESC: "start",
    SortOption.DATE_ASC: "start",
    SortOption.DISTANCE_DESC: "distance",
    SortOption.DISTANCE_ASC: "distance",
    SortOption.DURATION_DESC: "duration",
    SortOption.DURATION_ASC: "duration",
}


def build_frame(records: Sequence[TripRecord]) -> pd.DataFrame:
    """Tabulate the sortable and filterable fields, indexed by input position."""
    return pd.DataFrame({
        "start": np.array([r.start_time.timestamp() for r in records], dtype=float),
        "distance": np.array([r.distance for r in records], dtype=float),
        "duration": np.array([r.duration.total_seconds() for r in records], dtype=float),
        "notes": pd.Series([r.notes for r in records], dtype=object),
        "reason": pd.Series([r.reason for r in records], dtype=object),
        "pay": pd.Series([r.pay for r in records], dtype=object),
    })


def sort_frame(frame: pd.DataFrame, option: SortOption) -> pd.DataFrame:
    """Stable sort; ties keep their input order in both directions."""
    keys = frame[SORT_COLUMNS[option]].to_numpy(dtype=float)
    order = np.argsort(-keys if option.descending else keys, kind="stable")
    return frame.iloc[order]


def filter_mask(
    frame: pd.DataFrame,
    params: QueryParams,
    window: Optional[tuple[datetime, datetime]]
) -> pd.Series:
    """
    Combine the text, date, reason and distance filters into one mask.

    Args:
        frame: Frame from build_frame()
        params: Query parameters
        window: Resolved date interval, or None for no date filter

    Returns:
        Boolean mask aligned with frame
    """
    mask = pd.Series(True, index=frame.index)

    # Text search: notes OR reason, case-insensitive substring
    text = params.search_text.strip()
    if text:
        mask &= (
            frame["notes"].str.contains(text, case=False, regex=False)
            | frame["reason"].str.contains(text, case=False, regex=False)
        )

    if window is not None:
        start, end = window
        mask &= (frame["start"] >= start.timestamp()) & (frame["start"] <= end.timestamp())

    if params.reason_filter != ALL_REASONS:
        mask &= frame["reason"] == params.reason_filter

    min_km, max_km = params.distance_range_km
    distance_km = frame["distance"] / 1000.0
    mask &= (distance_km >= min_km) & (distance_km <= max_km)

    return mask


def query_trips(
    records: Sequence[TripRecord],
    params: QueryParams,
    now: Optional[datetime] = None,
    first_weekday: int = 0
) -> tuple[TripRecord, ...]:
    """
    Sort then filter a collection of trips. Pure; input records are untouched.

    Args:
        records: Trips in store order
        params: Query parameters
        now: Reference moment for date windows (default: current local time)
        first_weekday: Weekday that starts a week (0 = Monday)

    Returns:
        Matching trips in display order
    """
    now = ensure_aware(now or datetime.now())
    return _run(records, params, params.date_range.resolve(now, first_weekday))


def _run(
    records: Sequence[TripRecord],
    params: QueryParams,
    window: Optional[tuple[datetime, datetime]]
) -> tuple[TripRecord, ...]:
    if not records:
        return ()
    frame = sort_frame(build_frame(records), params.sort_option)
    mask = filter_mask(frame, params, window)
    return tuple(records[i] for i in frame.index[mask.to_numpy()])


class QueryEngine:
    """
    Memoizes the last query over a TripStore.

    The cache key is the full parameter tuple, the store version and the
    resolved start of the date window, so the result is recomputed when a
    parameter changes, the store is mutated, or "today" rolls over.
    """

    def __init__(
        self,
        store: TripStore,
        clock: Optional[Callable[[], datetime]] = None,
        first_weekday: int = 0
    ):
        self.store = store
        self.first_weekday = first_weekday
        self._clock = clock or (lambda: datetime.now().astimezone())
        self._cache_key: Optional[Hashable] = None
        self._cache_result: tuple[TripRecord, ...] = ()
        self.recompute_count = 0

    def query(self, params: QueryParams) -> tuple[TripRecord, ...]:
        """Return the ordered, filtered trips, reusing the cached result when valid."""
        now = ensure_aware(self._clock())
        window = params.date_range.resolve(now, self.first_weekday)
        key = (params, self.store.version(), window[0] if window else None)

        if key == self._cache_key:
            return self._cache_result

        self._cache_result = _run(self.store.list(), params, window)
        self._cache_key = key
        self.recompute_count += 1
        logger.debug(
            "Recomputed trip query (version %d): %d rows",
            self.store.version(), len(self._cache_result)
        )
        return self._cache_result

    def invalidate(self) -> None:
        """Drop the cached result."""
        self._cache_key = None
        self._cache_result = ()


def available_reasons(records: Sequence[TripRecord]) -> list[str]:
    """Choices for the reason filter: the sentinel followed by used reasons."""
    reasons = {r.reason for r in records if r.reason}
    return [ALL_REASONS] + sorted(reasons)


def summarize(records: Sequence[TripRecord]) -> TripSummary:
    """Totals for distance, duration and earnings (pay values that parse as numbers)."""
    if not records:
        return TripSummary()

    frame = build_frame(records)
    earnings = pd.to_numeric(frame["pay"].str.strip(), errors="coerce").dropna()

    return TripSummary(
        count=len(frame),
        total_distance_m=float(frame["distance"].sum()),
        total_duration_s=float(frame["duration"].sum()),
        total_earnings=float(earnings.sum()),
    )
