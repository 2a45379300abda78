"""
Filter management for the trip log view.
"""
from __future__ import annotations

import math
from dataclasses import replace
from typing import Callable, Optional

from PySide6.QtCore import QObject, Signal

from .models import DateRangeFilter, QueryParams, SortOption, TripRecord
from .query_engine import QueryEngine

MAX_RECENT_SEARCHES = 10


class TripFilterManager(QObject):
    """
    Holds the current query parameters for the trip log.

    Emits signals when a parameter or the underlying store changes so the
    view can re-query.
    """

    # Signal emitted with the new QueryParams when a parameter changes
    params_changed = Signal(object)

    # Signal emitted when the displayed rows may be different
    results_invalidated = Signal()

    def __init__(self, engine: QueryEngine, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.engine = engine
        self._params = QueryParams()
        self._recent_searches: list[str] = []
        self._listeners: list[Callable[[QueryParams], None]] = []

        engine.store.add_listener(self._on_store_changed)

    @property
    def params(self) -> QueryParams:
        return self._params

    @property
    def recent_searches(self) -> list[str]:
        return list(self._recent_searches)

    def results(self) -> tuple[TripRecord, ...]:
        """Rows for the current parameters."""
        return self.engine.query(self._params)

    def set_search_text(self, search_text: str) -> None:
        """Set the free-text search."""
        self._update(search_text=search_text)

    def set_sort_option(self, option: SortOption) -> None:
        """Set the row ordering."""
        self._update(sort_option=option)

    def set_date_range(self, date_range: DateRangeFilter) -> None:
        """Set the calendar window."""
        self._update(date_range=date_range)

    def set_reason_filter(self, reason: str) -> None:
        """Set the reason filter ("All" disables it)."""
        self._update(reason_filter=reason)

    def set_distance_range(self, min_km: Optional[float], max_km: Optional[float]) -> None:
        """Set the distance window in kilometers; None leaves that side open."""
        low = 0.0 if min_km is None else min_km
        high = math.inf if max_km is None else max_km
        if low > high:
            raise ValueError(f"Minimum distance {low} exceeds maximum {high}")
        self._update(distance_range_km=(low, high))

    def reset_filters(self) -> None:
        """Clear all filters, keeping the sort order."""
        self._update(
            search_text="",
            date_range=DateRangeFilter.ALL,
            reason_filter="All",
            distance_range_km=(0.0, math.inf),
        )

    def add_recent_search(self, search_text: str) -> None:
        """Remember a search, newest first, without duplicates."""
        trimmed = search_text.strip()
        if not trimmed:
            return
        searches = [s for s in self._recent_searches if s != trimmed]
        searches.insert(0, trimmed)
        self._recent_searches = searches[:MAX_RECENT_SEARCHES]

    def _update(self, **changes) -> None:
        new_params = replace(self._params, **changes)
        if new_params == self._params:
            return
        self._params = new_params
        self._emit_change()

    def _on_store_changed(self, version: int) -> None:
        self.results_invalidated.emit()

    def _emit_change(self) -> None:
        """Emit parameter change signals."""
        self.params_changed.emit(self._params)
        self.results_invalidated.emit()

        # Notify listeners
        for listener in self._listeners:
            listener(self._params)

    def add_listener(self, callback: Callable[[QueryParams], None]) -> None:
        """Add a listener callback for parameter changes."""
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[QueryParams], None]) -> None:
        """Remove a listener callback."""
        if callback in self._listeners:
            self._listeners.remove(callback)
