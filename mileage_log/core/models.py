"""
Core data models for the Mileage Log application.
"""
from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Optional

import pandas as pd


def ensure_aware(value: datetime) -> datetime:
    """Attach the local timezone to naive datetimes."""
    if value.tzinfo is None:
        return value.astimezone()
    return value


def start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


class SortOption(Enum):
    """Orderings available for the trip log."""
    DATE_DESC = "Date (Newest)"
    DATE_ASC = "Date (Oldest)"
    DISTANCE_DESC = "Distance (Longest)"
    DISTANCE_ASC = "Distance (Shortest)"
    DURATION_DESC = "Time (Longest)"
    DURATION_ASC = "Time (Shortest)"

    @property
    def descending(self) -> bool:
        return self in (SortOption.DATE_DESC, SortOption.DISTANCE_DESC, SortOption.DURATION_DESC)


class DateRangeFilter(Enum):
    """Calendar windows for the trip log date filter."""
    ALL = "All Time"
    TODAY = "Today"
    THIS_WEEK = "This Week"
    THIS_MONTH = "This Month"
    LAST_MONTH = "Last Month"
    LAST_3_MONTHS = "Last 3 Months"
    LAST_6_MONTHS = "Last 6 Months"
    THIS_YEAR = "This Year"

    def resolve(
        self,
        now: datetime,
        first_weekday: int = 0
    ) -> Optional[tuple[datetime, datetime]]:
        """
        Resolve the window to a closed [start, end] interval.

        Args:
            now: Reference moment, local time
            first_weekday: Weekday that starts a week (0 = Monday)

        Returns:
            (start, end) tuple, or None for ALL
        """
        now = ensure_aware(now)
        today = start_of_day(now)

        if self is DateRangeFilter.ALL:
            return None
        if self is DateRangeFilter.TODAY:
            return (today, now)
        if self is DateRangeFilter.THIS_WEEK:
            days_back = (today.weekday() - first_weekday) % 7
            return (today - timedelta(days=days_back), now)
        if self is DateRangeFilter.THIS_MONTH:
            return (today.replace(day=1), now)
        if self is DateRangeFilter.LAST_MONTH:
            this_month = today.replace(day=1)
            last_month = (pd.Timestamp(this_month) - pd.DateOffset(months=1)).to_pydatetime()
            return (last_month, this_month - timedelta(microseconds=1))
        if self is DateRangeFilter.LAST_3_MONTHS:
            return ((pd.Timestamp(now) - pd.DateOffset(months=3)).to_pydatetime(), now)
        if self is DateRangeFilter.LAST_6_MONTHS:
            return ((pd.Timestamp(now) - pd.DateOffset(months=6)).to_pydatetime(), now)
        return (today.replace(month=1, day=1), now)


class ExportFormat(Enum):
    """Exchange file formats."""
    CSV = "csv"
    JSON = "json"

    @property
    def suffix(self) -> str:
        return f".{self.value}"


@dataclass(frozen=True)
class Coordinate:
    """A latitude/longitude pair in decimal degrees."""
    latitude: float
    longitude: float

    def to_text(self) -> str:
        """Render as "lat,lon"."""
        return f"{self.latitude!r},{self.longitude!r}"

    @classmethod
    def parse(cls, text: str) -> Optional[Coordinate]:
        """Parse "lat,lon"; malformed input gives None."""
        parts = text.split(",")
        if len(parts) != 2:
            return None
        try:
            lat = float(parts[0].strip())
            lon = float(parts[1].strip())
        except ValueError:
            return None
        if not (math.isfinite(lat) and math.isfinite(lon)):
            return None
        return cls(latitude=lat, longitude=lon)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {"latitude": self.latitude, "longitude": self.longitude}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Coordinate:
        """Deserialize from dictionary, rejecting non-numeric and non-finite values."""
        return cls(
            latitude=_expect_number(data["latitude"], "latitude"),
            longitude=_expect_number(data["longitude"], "longitude"),
        )


@dataclass(frozen=True)
class TripRecord:
    """
    One logged trip.

    Records are never mutated in place; edits produce a new record with
    dataclasses.replace(). Distances are meters, speeds meters/second.
    """
    date: datetime
    start_time: datetime
    end_time: datetime
    distance: float = 0.0
    notes: str = ""
    pay: str = ""
    reason: str = ""
    audio_notes: tuple[str, ...] = ()
    photo_urls: tuple[str, ...] = ()
    start_coordinate: Optional[Coordinate] = None
    end_coordinate: Optional[Coordinate] = None
    route_coordinates: tuple[Coordinate, ...] = ()
    is_recovered: bool = False
    average_speed: Optional[float] = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    def __post_init__(self):
        # Normalize containers and timestamps on the frozen instance
        object.__setattr__(self, "date", ensure_aware(self.date))
        object.__setattr__(self, "start_time", ensure_aware(self.start_time))
        object.__setattr__(self, "end_time", ensure_aware(self.end_time))
        object.__setattr__(self, "audio_notes", tuple(self.audio_notes))
        object.__setattr__(self, "photo_urls", tuple(self.photo_urls))
        object.__setattr__(self, "route_coordinates", tuple(self.route_coordinates))
        if isinstance(self.id, str):
            object.__setattr__(self, "id", uuid.UUID(self.id))

        if not math.isfinite(self.distance) or self.distance < 0:
            raise ValueError(f"distance must be a non-negative number, got {self.distance!r}")
        if self.end_time < self.start_time:
            raise ValueError("end_time must not be earlier than start_time")
        if self.average_speed is not None and (
            not math.isfinite(self.average_speed) or self.average_speed < 0
        ):
            raise ValueError(f"average_speed must be non-negative, got {self.average_speed!r}")

    @property
    def duration(self) -> timedelta:
        """Elapsed time between start and end."""
        return self.end_time - self.start_time

    @property
    def distance_km(self) -> float:
        return self.distance / 1000.0

    def to_dict(self, include_route: bool = True) -> dict[str, Any]:
        """
        Serialize to the exchange dictionary (camelCase keys, ISO-8601 dates).

        Absent optional values are omitted rather than written as null.
        """
        data: dict[str, Any] = {
            "id": str(self.id).upper(),
            "date": self.date.isoformat(),
            "distance": self.distance,
            "notes": self.notes,
            "pay": self.pay,
            "audioNotes": list(self.audio_notes),
            "photoURLs": list(self.photo_urls),
            "startTime": self.start_time.isoformat(),
            "endTime": self.end_time.isoformat(),
            "reason": self.reason,
            "isRecovered": self.is_recovered,
        }
        if self.start_coordinate is not None:
            data["startCoordinate"] = self.start_coordinate.to_dict()
        if self.end_coordinate is not None:
            data["endCoordinate"] = self.end_coordinate.to_dict()
        if include_route:
            data["routeCoordinates"] = [c.to_dict() for c in self.route_coordinates]
        if self.average_speed is not None:
            data["averageSpeed"] = self.average_speed
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TripRecord:
        """
        Strictly deserialize from the exchange dictionary.

        Raises:
            KeyError: A required key is missing
            TypeError: A value has the wrong JSON type
            ValueError: A value is malformed or breaks a record invariant
        """
        if not isinstance(data, dict):
            raise TypeError(f"Trip entry must be an object, got {type(data).__name__}")

        def coordinate(key: str) -> Optional[Coordinate]:
            value = data.get(key)
            if value is None:
                return None
            return Coordinate.from_dict(_expect(value, dict, key))

        average_speed = data.get("averageSpeed")
        if average_speed is not None:
            average_speed = _expect_number(average_speed, "averageSpeed")

        return cls(
            id=uuid.UUID(_expect(data["id"], str, "id")),
            date=datetime.fromisoformat(_expect(data["date"], str, "date")),
            distance=_expect_number(data["distance"], "distance"),
            notes=_expect(data["notes"], str, "notes"),
            pay=_expect(data["pay"], str, "pay"),
            audio_notes=_string_list(data["audioNotes"], "audioNotes"),
            photo_urls=_string_list(data["photoURLs"], "photoURLs"),
            start_coordinate=coordinate("startCoordinate"),
            end_coordinate=coordinate("endCoordinate"),
            route_coordinates=tuple(
                Coordinate.from_dict(_expect(c, dict, "routeCoordinates"))
                for c in _expect(data.get("routeCoordinates", []), list, "routeCoordinates")
            ),
            start_time=datetime.fromisoformat(_expect(data["startTime"], str, "startTime")),
            end_time=datetime.fromisoformat(_expect(data["endTime"], str, "endTime")),
            reason=_expect(data["reason"], str, "reason"),
            is_recovered=_expect(data.get("isRecovered", False), bool, "isRecovered"),
            average_speed=average_speed,
        )


def _expect(value: Any, kind: type, key: str) -> Any:
    if not isinstance(value, kind):
        raise TypeError(f"{key}: expected {kind.__name__}, got {type(value).__name__}")
    return value


def _expect_number(value: Any, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{key}: expected number, got {type(value).__name__}")
    try:
        number = float(value)
    except OverflowError as exc:
        raise ValueError(f"{key}: number is out of range") from exc
    if not math.isfinite(number):
        raise ValueError(f"{key}: expected a finite number, got {number!r}")
    return number


def _string_list(value: Any, key: str) -> tuple[str, ...]:
    items = _expect(value, list, key)
    return tuple(_expect(item, str, key) for item in items)


@dataclass(frozen=True)
class QueryParams:
    """Full parameter tuple for a trip log query."""
    search_text: str = ""
    sort_option: SortOption = SortOption.DATE_DESC
    date_range: DateRangeFilter = DateRangeFilter.ALL
    reason_filter: str = "All"
    distance_range_km: tuple[float, float] = (0.0, math.inf)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "search_text": self.search_text,
            "sort_option": self.sort_option.name,
            "date_range": self.date_range.name,
            "reason_filter": self.reason_filter,
            "distance_range_km": list(self.distance_range_km),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QueryParams:
        """Deserialize from dictionary."""
        min_km, max_km = data.get("distance_range_km", (0.0, math.inf))
        return cls(
            search_text=data.get("search_text", ""),
            sort_option=SortOption[data.get("sort_option", "DATE_DESC")],
            date_range=DateRangeFilter[data.get("date_range", "ALL")],
            reason_filter=data.get("reason_filter", "All"),
            distance_range_km=(float(min_km), float(max_km)),
        )


@dataclass(frozen=True)
class TripSummary:
    """Totals over a set of trips."""
    count: int = 0
    total_distance_m: float = 0.0
    total_duration_s: float = 0.0
    total_earnings: float = 0.0

    @property
    def total_distance_km(self) -> float:
        return self.total_distance_m / 1000.0
