"""
Trip import: CSV and JSON parsing, format detection and header reconciliation.

The two formats fail differently on purpose:

- CSV is best-effort interchange with spreadsheets. Rows with a bad
  mandatory field are dropped and the rest are kept.
- JSON is exact backup/restore. Any invalid element aborts the whole
  import and nothing is returned.
"""
from __future__ import annotations

import csv
import io
import json
import logging
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

from rapidfuzz import fuzz

from .errors import ErrorCode, TripImportError
from .export_handler import CSV_COLUMNS, LIST_SEPARATOR
from .models import Coordinate, ExportFormat, TripRecord

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ["id", "date", "distance", "startTime", "endTime"]

# Older exports wrote timestamps like "2025-06-26 14:03:00 +0000"
LEGACY_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S %z"

TRUE_VALUES = {"true", "1", "yes"}

# Route columns can exceed the default 128 KiB field limit
csv.field_size_limit(max(csv.field_size_limit(), 64 * 1024 * 1024))


@dataclass
class HeaderDiff:
    """Differences between the expected CSV columns and a file's header."""
    missing: list[str] = field(default_factory=list)    # Expected but not in file
    extra: list[str] = field(default_factory=list)      # In file but not expected
    matched: list[str] = field(default_factory=list)    # Exact matches
    fuzzy_matches: dict[str, str] = field(default_factory=dict)  # file_header -> expected column

    @property
    def has_differences(self) -> bool:
        """Check if there are any differences."""
        return bool(self.missing or self.extra)

    def get_summary(self) -> str:
        """Get a human-readable summary of differences."""
        parts = []
        if self.missing:
            parts.append(f"Missing {len(self.missing)} columns: {', '.join(self.missing)}")
        if self.extra:
            parts.append(f"Extra {len(self.extra)} columns: {', '.join(self.extra)}")
        if self.fuzzy_matches:
            renames = ", ".join(f"{k} -> {v}" for k, v in self.fuzzy_matches.items())
            parts.append(f"Renamed: {renames}")
        return "; ".join(parts) if parts else "Columns match exactly"


def compute_header_diff(
    expected: list[str],
    file_headers: list[str],
    fuzzy_threshold: int = 80
) -> HeaderDiff:
    """
    Compare a file's header row with the expected columns.

    Args:
        expected: Canonical column names
        file_headers: Header cells from the file
        fuzzy_threshold: Minimum similarity score for a rename (0-100)

    Returns:
        HeaderDiff with missing, extra, matched and fuzzy matches
    """
    expected_set = set(expected)
    file_set = set(file_headers)

    matched = [h for h in expected if h in file_set]
    missing = [h for h in expected if h not in file_set]
    extra = [h for h in file_headers if h not in expected_set]

    fuzzy_matches: dict[str, str] = {}
    unclaimed = list(missing)

    for extra_h in extra:
        best_match = None
        best_score = 0.0

        for missing_h in unclaimed:
            score = fuzz.token_sort_ratio(extra_h.lower(), missing_h.lower())
            if score > best_score and score >= fuzzy_threshold:
                best_score = score
                best_match = missing_h

        if best_match:
            fuzzy_matches[extra_h] = best_match
            unclaimed.remove(best_match)

    return HeaderDiff(
        missing=missing,
        extra=extra,
        matched=matched,
        fuzzy_matches=fuzzy_matches
    )


def resolve_columns(header: list[str]) -> dict[str, int]:
    """
    Map canonical column names to positions in a file's rows.

    Exact names win, then fuzzy renames. A header with no recognisable
    names at all is assumed to follow the canonical column order.
    """
    cleaned = [h.strip() for h in header]
    diff = compute_header_diff(CSV_COLUMNS, cleaned)

    if not diff.matched and not diff.fuzzy_matches:
        logger.warning("CSV header not recognised, assuming standard column order")
        return {name: i for i, name in enumerate(CSV_COLUMNS)}

    if diff.has_differences:
        logger.info("CSV header differs from the standard layout: %s", diff.get_summary())

    positions: dict[str, int] = {}
    for i, name in enumerate(cleaned):
        canonical = name if name in CSV_COLUMNS else diff.fuzzy_matches.get(name)
        if canonical is not None and canonical not in positions:
            positions[canonical] = i
    return positions


def parse_timestamp(text: str) -> datetime:
    """Parse an ISO-8601 timestamp, or the legacy "YYYY-MM-DD HH:MM:SS +ZZZZ" form."""
    text = text.strip()
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return datetime.strptime(text, LEGACY_TIMESTAMP_FORMAT)


def split_list(text: str) -> tuple[str, ...]:
    return tuple(part for part in text.split(LIST_SEPARATOR) if part.strip())


def parse_route(text: str) -> tuple[Coordinate, ...]:
    """Parse "lat,lon;lat,lon"; malformed samples are dropped."""
    route = (Coordinate.parse(part) for part in split_list(text))
    return tuple(c for c in route if c is not None)


def parse_optional_speed(text: str) -> Optional[float]:
    try:
        speed = float(text)
    except ValueError:
        return None
    if not math.isfinite(speed) or speed < 0:
        return None
    return speed


def _parse_row(row: list[str], columns: dict[str, int]) -> Optional[TripRecord]:
    """Build a trip from one CSV row, or None if a mandatory field is bad."""

    def cell(name: str) -> str:
        index = columns.get(name)
        if index is None or index >= len(row):
            return ""
        return row[index]

    try:
        trip_id = uuid.UUID(cell("id").strip())
        date = parse_timestamp(cell("date"))
        distance = float(cell("distance"))
        start_time = parse_timestamp(cell("startTime"))
        end_time = parse_timestamp(cell("endTime"))

        return TripRecord(
            id=trip_id,
            date=date,
            distance=distance,
            notes=cell("notes"),
            pay=cell("pay"),
            audio_notes=split_list(cell("audioNotes")),
            photo_urls=split_list(cell("photoURLs")),
            start_coordinate=Coordinate.parse(cell("startCoordinate")),
            end_coordinate=Coordinate.parse(cell("endCoordinate")),
            route_coordinates=parse_route(cell("routeCoordinates")),
            start_time=start_time,
            end_time=end_time,
            reason=cell("reason"),
            is_recovered=cell("isRecovered").strip().lower() in TRUE_VALUES,
            average_speed=parse_optional_speed(cell("averageSpeed")),
        )
    except ValueError:
        return None


def from_csv(data: bytes) -> list[TripRecord]:
    """
    Parse CSV bytes into trips, skipping rows that cannot be parsed.

    The first row is the header. A row is dropped when it is shorter than
    the mandatory columns require, when id/date/distance/startTime/endTime
    does not parse, or when its id repeats an earlier row. Malformed
    coordinates become None instead of dropping the row.

    Raises:
        TripImportError: INVALID_ENCODING, EMPTY_FILE or NO_VALID_RECORDS
    """
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise TripImportError(
            f"CSV is not valid UTF-8: {exc}", code=ErrorCode.INVALID_ENCODING, cause=exc
        ) from exc

    rows = list(csv.reader(io.StringIO(text, newline="")))
    data_rows = [row for row in rows[1:] if any(cell.strip() for cell in row)]
    if not data_rows:
        raise TripImportError("CSV has no data rows", code=ErrorCode.EMPTY_FILE)

    columns = resolve_columns(rows[0])
    if any(name not in columns for name in REQUIRED_COLUMNS):
        missing = [name for name in REQUIRED_COLUMNS if name not in columns]
        raise TripImportError(
            f"CSV header lacks required columns: {', '.join(missing)}",
            code=ErrorCode.NO_VALID_RECORDS
        )
    min_columns = max(columns[name] for name in REQUIRED_COLUMNS) + 1

    records: list[TripRecord] = []
    seen: set[uuid.UUID] = set()
    for row in data_rows:
        if len(row) < min_columns:
            continue
        record = _parse_row(row, columns)
        if record is None or record.id in seen:
            continue
        seen.add(record.id)
        records.append(record)

    skipped = len(data_rows) - len(records)
    if not records:
        raise TripImportError(
            f"None of {len(data_rows)} CSV rows could be parsed",
            code=ErrorCode.NO_VALID_RECORDS
        )
    if skipped:
        logger.warning("Skipped %d of %d CSV rows that could not be parsed", skipped, len(data_rows))
    return records


def from_json(data: bytes) -> list[TripRecord]:
    """
    Parse a JSON array of exported trips. All or nothing.

    Raises:
        TripImportError: DECODING_FAILED if the document or any element is
            invalid (no element is returned in that case), EMPTY_FILE for
            an empty array
    """
    try:
        payload = json.loads(data)
    except (ValueError, RecursionError) as exc:
        raise TripImportError(
            f"JSON could not be decoded: {exc}", code=ErrorCode.DECODING_FAILED, cause=exc
        ) from exc

    if not isinstance(payload, list):
        raise TripImportError(
            f"Expected a JSON array of trips, got {type(payload).__name__}",
            code=ErrorCode.DECODING_FAILED
        )
    if not payload:
        raise TripImportError("JSON array is empty", code=ErrorCode.EMPTY_FILE)

    records: list[TripRecord] = []
    seen: set[uuid.UUID] = set()
    for index, item in enumerate(payload):
        try:
            record = TripRecord.from_dict(item)
        except (KeyError, TypeError, ValueError) as exc:
            raise TripImportError(
                f"Trip #{index + 1} is invalid: {exc!r}",
                code=ErrorCode.DECODING_FAILED,
                cause=exc
            ) from exc
        if record.id in seen:
            raise TripImportError(
                f"Trip #{index + 1} repeats id {record.id}",
                code=ErrorCode.DECODING_FAILED
            )
        seen.add(record.id)
        records.append(record)
    return records


def detect_format(path: Path | str) -> ExportFormat:
    """Choose the import format from the file extension."""
    suffix = Path(path).suffix.lower()
    for export_format in ExportFormat:
        if suffix == export_format.suffix:
            return export_format
    raise TripImportError(
        f"Unsupported file extension {suffix!r}", code=ErrorCode.UNSUPPORTED_FORMAT
    )


def parse_bytes(data: bytes, export_format: ExportFormat) -> list[TripRecord]:
    """Parse a byte stream in the declared format."""
    if export_format is ExportFormat.CSV:
        return from_csv(data)
    return from_json(data)


def read_trips_file(path: Path | str) -> list[TripRecord]:
    """Detect the format, read the file and parse it. Blocks on disk I/O."""
    path = Path(path)
    export_format = detect_format(path)
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise TripImportError(
            f"Could not read {path}: {exc}", code=ErrorCode.FILE_READ_FAILED, cause=exc
        ) from exc
    return parse_bytes(data, export_format)
