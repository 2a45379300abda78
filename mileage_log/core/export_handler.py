"""
Trip export: CSV and JSON text builders.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable, Sequence

from .errors import ErrorCode, TripExportError
from .models import Coordinate, ExportFormat, TripRecord

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    "id",
    "date",
    "distance",
    "notes",
    "pay",
    "audioNotes",
    "photoURLs",
    "startCoordinate",
    "endCoordinate",
    "routeCoordinates",
    "startTime",
    "endTime",
    "reason",
    "isRecovered",
    "averageSpeed",
]

LIST_SEPARATOR = ";"

METERS_PER_MILE = 1609.344


def quote_field(value: str) -> str:
    """Wrap in double quotes, doubling any embedded quote."""
    return '"' + value.replace('"', '""') + '"'


def join_list(values: Iterable[str]) -> str:
    return LIST_SEPARATOR.join(values)


def join_coordinates(coordinates: Iterable[Coordinate]) -> str:
    return LIST_SEPARATOR.join(c.to_text() for c in coordinates)


def format_number(value: float) -> str:
    return f"{value:.4f}"


def csv_row(record: TripRecord) -> str:
    """Render one trip as a CSV line (no trailing newline)."""
    fields = [
        str(record.id).upper(),
        record.date.isoformat(),
        format_number(record.distance),
        quote_field(record.notes),
        quote_field(record.pay),
        quote_field(join_list(record.audio_notes)),
        quote_field(join_list(record.photo_urls)),
        quote_field(record.start_coordinate.to_text() if record.start_coordinate else ""),
        quote_field(record.end_coordinate.to_text() if record.end_coordinate else ""),
        quote_field(join_coordinates(record.route_coordinates)),
        record.start_time.isoformat(),
        record.end_time.isoformat(),
        quote_field(record.reason),
        "true" if record.is_recovered else "false",
        format_number(record.average_speed) if record.average_speed is not None else "",
    ]
    return ",".join(fields)


def to_csv(selected: Sequence[TripRecord]) -> str:
    """
    Build CSV text for the selected trips.

    Text-bearing columns are always quoted; list columns join their
    elements with ';'; coordinates are written "lat,lon"; timestamps are
    ISO-8601 with offset.

    Args:
        selected: Trips to export, in output order

    Returns:
        Header line followed by one line per trip
    """
    try:
        rows = [csv_row(record) for record in selected]
    except (TypeError, ValueError, AttributeError) as exc:
        raise TripExportError(f"CSV encoding failed: {exc}", code=ErrorCode.ENCODING_FAILED, cause=exc) from exc
    return "\n".join([",".join(CSV_COLUMNS)] + rows)


def to_json(selected: Sequence[TripRecord], include_route: bool = False) -> str:
    """
    Build pretty-printed JSON for the selected trips.

    Args:
        selected: Trips to export, in output order
        include_route: Whether each object carries routeCoordinates

    Returns:
        A JSON array with sorted keys and ISO-8601 dates
    """
    try:
        payload = [record.to_dict(include_route=include_route) for record in selected]
        return json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise TripExportError(f"JSON encoding failed: {exc}", code=ErrorCode.ENCODING_FAILED, cause=exc) from exc


def serialize(
    selected: Sequence[TripRecord],
    export_format: ExportFormat,
    include_route: bool = False
) -> str:
    """Dispatch to the builder for the given format."""
    if export_format is ExportFormat.CSV:
        return to_csv(selected)
    return to_json(selected, include_route=include_route)


def format_share_text(record: TripRecord, use_kilometers: bool = False) -> str:
    """Short human-readable summary of one trip for sharing."""
    if use_kilometers:
        distance = f"{record.distance / 1000.0:.2f} km"
    else:
        distance = f"{record.distance / METERS_PER_MILE:.2f} mi"

    return "\n".join([
        "Trip Details:",
        f"Date: {record.start_time.strftime('%b %d, %Y at %H:%M')}",
        f"Distance: {distance}",
        f"Category: {record.reason}",
        f"Notes: {record.notes}",
    ])


def _default_file_mode() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def write_atomic(target: Path, text: str) -> None:
    """
    Write UTF-8 text through a temporary file and rename it into place.

    The parent directory is created if needed. A failed write leaves any
    existing file at target untouched. The result gets the same permissions
    a plain open() would give it.
    """
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(text)
        os.chmod(tmp_name, _default_file_mode())
        os.replace(tmp_name, target)
    except OSError:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
