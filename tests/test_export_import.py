"""
Tests for CSV/JSON export and import.
"""
import json
import logging
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from mileage_log.core import (
    CSV_COLUMNS,
    Coordinate,
    ErrorCode,
    ExportFormat,
    TripExportError,
    TripImportError,
    TripRecord,
    detect_format,
    format_share_text,
    from_csv,
    from_json,
    parse_bytes,
    read_trips_file,
    serialize,
    to_csv,
    to_json,
)
from mileage_log.core.import_handler import parse_timestamp

TRIP_ID = "6F9619FF-8B86-D011-B42D-00C04FC964FF"
START = "2025-06-18T09:00:00+02:00"
END = "2025-06-18T09:30:00+02:00"


def csv_line(**overrides):
    """Build one canonical CSV data line from column overrides."""
    values = {
        "id": TRIP_ID,
        "date": START,
        "distance": "1000.0000",
        "notes": '""',
        "pay": '""',
        "audioNotes": '""',
        "photoURLs": '""',
        "startCoordinate": '""',
        "endCoordinate": '""',
        "routeCoordinates": '""',
        "startTime": START,
        "endTime": END,
        "reason": '"Business"',
        "isRecovered": "false",
        "averageSpeed": "",
    }
    values.update(overrides)
    return ",".join(values[name] for name in CSV_COLUMNS)


def csv_bytes(*lines):
    return "\n".join([",".join(CSV_COLUMNS), *lines]).encode("utf-8")


class TestCsvExport:
    """Tests for the CSV builder."""

    def test_header(self):
        """Test the exact header line."""
        text = to_csv([])

        assert text == (
            "id,date,distance,notes,pay,audioNotes,photoURLs,startCoordinate,"
            "endCoordinate,routeCoordinates,startTime,endTime,reason,isRecovered,averageSpeed"
        )

    def test_row_layout(self, make_trip):
        """Test quoting, list joining, coordinates and number formatting."""
        trip = make_trip(
            id=uuid.UUID(TRIP_ID),
            distance=1234.5,
            notes="Client, lunch",
            pay="20",
            photo_urls=["file:///a.jpg", "file:///b.jpg"],
            start_coordinate=Coordinate(37.5, -122.25),
            route_coordinates=[Coordinate(1.5, 2.5), Coordinate(3.5, 4.5)],
            average_speed=13.0,
        )

        row = to_csv([trip]).split("\n")[1]

        assert row.startswith(f"{TRIP_ID},{trip.date.isoformat()},1234.5000,")
        assert '"Client, lunch"' in row
        assert '"file:///a.jpg;file:///b.jpg"' in row
        assert '"37.5,-122.25"' in row
        assert '"1.5,2.5;3.5,4.5"' in row
        assert row.endswith(',"Business",false,13.0000')

    def test_absent_values_render_empty(self, make_trip):
        """Test missing coordinates and speed are empty fields."""
        row = to_csv([make_trip(reason="Personal")]).split("\n")[1]

        assert ',"","",""' in row
        assert row.endswith(',"Personal",false,')

    def test_embedded_quotes_are_doubled(self, make_trip):
        """Test a double quote inside notes is escaped by doubling."""
        row = to_csv([make_trip(notes='He said "hi"')]).split("\n")[1]

        assert '"He said ""hi"""' in row

    def test_one_line_per_trip(self, make_trip):
        """Test there is no trailing newline."""
        text = to_csv([make_trip(), make_trip()])

        assert len(text.split("\n")) == 3
        assert not text.endswith("\n")


class TestCsvImport:
    """Tests for the row-tolerant CSV parser."""

    def test_round_trip(self, make_trip):
        """Test exported CSV imports back to equal trips."""
        trips = [
            make_trip(
                notes='He said "hi", then left',
                pay="12.50",
                audio_notes=["file:///a.m4a", "file:///b.m4a"],
                start_coordinate=Coordinate(37.123456789, -122.5),
                end_coordinate=Coordinate(37.8, -122.4),
                route_coordinates=[Coordinate(37.2, -122.1), Coordinate(37.3, -122.2)],
                is_recovered=True,
                average_speed=12.25,
            ),
            make_trip(start=datetime(2024, 12, 31, 23, 59, tzinfo=timezone.utc), distance=0.0, reason=""),
        ]

        imported = from_csv(to_csv(trips).encode("utf-8"))

        assert imported == trips

    def test_quote_regression(self, make_trip):
        """Test doubled quotes are un-doubled on import."""
        trip = make_trip(notes='He said "hi"')

        (imported,) = from_csv(to_csv([trip]).encode("utf-8"))

        assert imported.notes == 'He said "hi"'

    def test_bad_rows_are_skipped(self, caplog):
        """Test rows with a bad mandatory field are dropped, the rest kept."""
        good_id = str(uuid.uuid4())
        data = csv_bytes(
            csv_line(id=good_id),
            csv_line(id=str(uuid.uuid4()), distance="n/a"),
            csv_line(id="not-a-uuid"),
            csv_line(id=str(uuid.uuid4()), startTime="yesterday"),
            f"{uuid.uuid4()},{START}",
        )

        with caplog.at_level(logging.WARNING):
            records = from_csv(data)

        assert [str(r.id) for r in records] == [good_id]
        assert "Skipped 4 of 5" in caplog.text

    def test_duplicate_ids_keep_first(self):
        """Test a repeated id inside one file is skipped."""
        data = csv_bytes(csv_line(notes='"first"'), csv_line(notes='"second"'))

        records = from_csv(data)

        assert len(records) == 1
        assert records[0].notes == "first"

    def test_malformed_coordinate_becomes_none(self):
        """Test a bad coordinate does not drop the row."""
        data = csv_bytes(csv_line(startCoordinate='"north-ish"', routeCoordinates='"1,2;oops;3,4"'))

        (record,) = from_csv(data)

        assert record.start_coordinate is None
        assert record.route_coordinates == (Coordinate(1.0, 2.0), Coordinate(3.0, 4.0))

    def test_bad_speed_becomes_none(self):
        """Test an unparsable average speed is dropped."""
        (record,) = from_csv(csv_bytes(csv_line(averageSpeed="fast")))

        assert record.average_speed is None

    def test_header_only_is_empty(self):
        """Test a file without data rows."""
        with pytest.raises(TripImportError) as exc_info:
            from_csv(csv_bytes())

        assert exc_info.value.code == ErrorCode.EMPTY_FILE

    def test_blank_rows_only_is_empty(self):
        """Test whitespace rows do not count as data."""
        with pytest.raises(TripImportError) as exc_info:
            from_csv(csv_bytes("", " , ", ""))

        assert exc_info.value.code == ErrorCode.EMPTY_FILE

    def test_zero_bytes_is_empty(self):
        """Test a zero-length file."""
        with pytest.raises(TripImportError) as exc_info:
            from_csv(b"")

        assert exc_info.value.code == ErrorCode.EMPTY_FILE

    def test_no_valid_rows(self):
        """Test every row failing gives NO_VALID_RECORDS."""
        with pytest.raises(TripImportError) as exc_info:
            from_csv(csv_bytes(csv_line(distance="x"), csv_line(date="never")))

        assert exc_info.value.code == ErrorCode.NO_VALID_RECORDS

    def test_invalid_encoding(self):
        """Test non-UTF-8 bytes."""
        with pytest.raises(TripImportError) as exc_info:
            from_csv(b"id,date\n\xff\xfe\xfa,1")

        assert exc_info.value.code == ErrorCode.INVALID_ENCODING
        assert isinstance(exc_info.value.cause, UnicodeDecodeError)

    def test_byte_order_mark_is_ignored(self):
        """Test a UTF-8 BOM in front of the header."""
        records = from_csv(b"\xef\xbb\xbf" + csv_bytes(csv_line()))

        assert len(records) == 1

    def test_legacy_header_without_route(self):
        """Test the older 14-column layout imports."""
        columns = [c for c in CSV_COLUMNS if c != "routeCoordinates"]
        values = dict(zip(CSV_COLUMNS, csv_line().split(",")))
        line = ",".join(values[c] for c in columns)
        data = "\n".join([",".join(columns), line]).encode("utf-8")

        (record,) = from_csv(data)

        assert record.id == uuid.UUID(TRIP_ID)
        assert record.route_coordinates == ()

    def test_legacy_timestamps(self):
        """Test "YYYY-MM-DD HH:MM:SS +ZZZZ" timestamps."""
        data = csv_bytes(csv_line(
            date="2025-06-26 14:03:00 +0000",
            startTime="2025-06-26 14:03:00 +0000",
            endTime="2025-06-26 14:33:00 +0000",
        ))

        (record,) = from_csv(data)

        assert record.start_time == datetime(2025, 6, 26, 14, 3, tzinfo=timezone.utc)
        assert record.duration == timedelta(minutes=30)

    def test_renamed_headers_are_reconciled(self):
        """Test spreadsheet-style headers map onto the standard columns."""
        data = "\n".join([
            "ID,date,distance,notes,start_time,end_time",
            f'{TRIP_ID},{START},2500,"Coffee run",{START},{END}',
        ]).encode("utf-8")

        (record,) = from_csv(data)

        assert record.notes == "Coffee run"
        assert record.distance == 2500.0
        assert record.duration == timedelta(minutes=30)

    def test_missing_required_column(self):
        """Test a header without endTime cannot produce records."""
        data = "\n".join(["id,date,distance,startTime", f"{TRIP_ID},{START},1,{START}"]).encode("utf-8")

        with pytest.raises(TripImportError) as exc_info:
            from_csv(data)

        assert exc_info.value.code == ErrorCode.NO_VALID_RECORDS

    def test_parse_timestamp_formats(self):
        """Test both accepted timestamp styles."""
        assert parse_timestamp(START) == datetime.fromisoformat(START)
        assert parse_timestamp("2025-01-02 03:04:05 -0500") == datetime(
            2025, 1, 2, 8, 4, 5, tzinfo=timezone.utc
        )


class TestJsonExport:
    """Tests for the JSON builder."""

    def test_pretty_printed_sorted_keys(self, make_trip):
        """Test indentation and key order."""
        text = to_json([make_trip(average_speed=5.0)])
        keys = list(json.loads(text)[0].keys())

        assert text.startswith("[\n  {")
        assert keys == sorted(keys)

    def test_route_excluded_by_default(self, make_trip):
        """Test routeCoordinates is only written on request."""
        trip = make_trip(route_coordinates=[Coordinate(1.0, 2.0)])

        without = json.loads(to_json([trip]))[0]
        with_route = json.loads(to_json([trip], include_route=True))[0]

        assert "routeCoordinates" not in without
        assert with_route["routeCoordinates"] == [{"latitude": 1.0, "longitude": 2.0}]

    def test_serialize_dispatch(self, make_trip):
        """Test the format switch."""
        trips = [make_trip()]

        assert serialize(trips, ExportFormat.CSV) == to_csv(trips)
        assert serialize(trips, ExportFormat.JSON) == to_json(trips)

    def test_unencodable_value(self, make_trip):
        """Test encoding failures are reported with ENCODING_FAILED."""
        trip = make_trip(start_coordinate=Coordinate(float("nan"), 1.0))

        with pytest.raises(TripExportError) as exc_info:
            to_json([trip])

        assert exc_info.value.code == ErrorCode.ENCODING_FAILED


class TestJsonImport:
    """Tests for the all-or-nothing JSON parser."""

    def test_round_trip_with_route(self, make_trip):
        """Test a full backup restores every field."""
        trips = [
            make_trip(route_coordinates=[Coordinate(1.0, 2.0)], average_speed=3.5),
            make_trip(notes="ü and ✓", end_coordinate=Coordinate(-33.9, 151.2)),
        ]

        assert from_json(to_json(trips, include_route=True).encode("utf-8")) == trips

    def test_route_less_export_imports(self, make_trip):
        """Test JSON written without routes still imports."""
        trip = make_trip()

        assert from_json(to_json([trip]).encode("utf-8")) == [trip]

    def test_one_bad_element_rejects_everything(self, make_trip):
        """Test element 3 of 5 being invalid fails the whole file."""
        payload = [make_trip().to_dict() for _ in range(5)]
        payload[2]["distance"] = "far"

        with pytest.raises(TripImportError) as exc_info:
            from_json(json.dumps(payload).encode("utf-8"))

        assert exc_info.value.code == ErrorCode.DECODING_FAILED
        assert "Trip #3" in exc_info.value.message

    @pytest.mark.parametrize("field", ["distance", "averageSpeed"])
    def test_number_too_large_for_float_rejects(self, make_trip, field):
        """Test an integer beyond float range fails the import instead of crashing."""
        payload = [make_trip(average_speed=1.0).to_dict() for _ in range(3)]
        payload[1][field] = 10 ** 400

        with pytest.raises(TripImportError) as exc_info:
            from_json(json.dumps(payload).encode("utf-8"))

        assert exc_info.value.code == ErrorCode.DECODING_FAILED
        assert "Trip #2" in exc_info.value.message

    def test_huge_coordinate_rejects(self, make_trip):
        """Test an out-of-range coordinate component."""
        payload = [make_trip().to_dict()]
        payload[0]["startCoordinate"] = {"latitude": 10 ** 400, "longitude": 1.0}

        with pytest.raises(TripImportError) as exc_info:
            from_json(json.dumps(payload).encode("utf-8"))

        assert exc_info.value.code == ErrorCode.DECODING_FAILED

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_coordinate_rejects(self, make_trip, value):
        """Test NaN/Infinity tokens in a coordinate fail the import."""
        payload = [make_trip().to_dict(), make_trip().to_dict()]
        payload[1]["endCoordinate"] = {"latitude": value, "longitude": 1.0}
        data = json.dumps(payload).encode("utf-8")

        with pytest.raises(TripImportError) as exc_info:
            from_json(data)

        assert exc_info.value.code == ErrorCode.DECODING_FAILED

    def test_non_finite_route_sample_rejects(self, make_trip):
        """Test a NaN inside routeCoordinates."""
        payload = [make_trip().to_dict()]
        payload[0]["routeCoordinates"] = [{"latitude": 1.0, "longitude": float("nan")}]

        with pytest.raises(TripImportError):
            from_json(json.dumps(payload).encode("utf-8"))

    def test_deeply_nested_document_rejects(self):
        """Test a document too deep for the JSON decoder."""
        data = b"[" * 100000 + b"]" * 100000

        with pytest.raises(TripImportError) as exc_info:
            from_json(data)

        assert exc_info.value.code == ErrorCode.DECODING_FAILED

    def test_missing_key_rejects(self, make_trip):
        """Test a missing required key."""
        payload = [make_trip().to_dict()]
        del payload[0]["startTime"]

        with pytest.raises(TripImportError) as exc_info:
            from_json(json.dumps(payload).encode("utf-8"))

        assert exc_info.value.code == ErrorCode.DECODING_FAILED

    def test_duplicate_id_rejects(self, make_trip):
        """Test a repeated id fails the import."""
        item = make_trip().to_dict()

        with pytest.raises(TripImportError) as exc_info:
            from_json(json.dumps([item, item]).encode("utf-8"))

        assert exc_info.value.code == ErrorCode.DECODING_FAILED

    @pytest.mark.parametrize("data", [b"{", b"{}", b'"trips"', b"\xff"])
    def test_not_a_trip_array(self, data):
        """Test malformed documents."""
        with pytest.raises(TripImportError) as exc_info:
            from_json(data)

        assert exc_info.value.code == ErrorCode.DECODING_FAILED

    def test_empty_array(self):
        """Test an empty array."""
        with pytest.raises(TripImportError) as exc_info:
            from_json(b"[]")

        assert exc_info.value.code == ErrorCode.EMPTY_FILE


class TestFiles:
    """Tests for format detection and file reading."""

    @pytest.mark.parametrize("name,expected", [
        ("TripLogs.csv", ExportFormat.CSV),
        ("backup.JSON", ExportFormat.JSON),
    ])
    def test_detect_format(self, name, expected):
        """Test extension based detection is case-insensitive."""
        assert detect_format(name) is expected

    @pytest.mark.parametrize("name", ["trips.txt", "trips", "trips.xlsx"])
    def test_unsupported_format(self, name):
        """Test other extensions are refused."""
        with pytest.raises(TripImportError) as exc_info:
            detect_format(name)

        assert exc_info.value.code == ErrorCode.UNSUPPORTED_FORMAT

    def test_read_file(self, tmp_path, make_trip):
        """Test reading a CSV file from disk."""
        trip = make_trip()
        path = tmp_path / "TripLogs.csv"
        path.write_text(to_csv([trip]), encoding="utf-8")

        assert read_trips_file(path) == [trip]

    def test_read_missing_file(self, tmp_path):
        """Test an unreadable file."""
        with pytest.raises(TripImportError) as exc_info:
            read_trips_file(tmp_path / "missing.json")

        assert exc_info.value.code == ErrorCode.FILE_READ_FAILED

    def test_parse_bytes(self, make_trip):
        """Test the explicit-format entry point."""
        trip = make_trip()

        assert parse_bytes(to_json([trip]).encode("utf-8"), ExportFormat.JSON) == [trip]


class TestShareText:
    """Tests for the share summary."""

    def setup_method(self):
        """Set up a 16.09 km trip."""
        start = datetime(2025, 3, 4, 8, 5, tzinfo=timezone.utc)
        self.trip = TripRecord(
            date=start,
            start_time=start,
            end_time=start + timedelta(minutes=20),
            distance=16093.44,
            notes="Airport",
            reason="Uber",
        )

    def test_miles(self):
        """Test the default unit."""
        text = format_share_text(self.trip)

        assert text.split("\n") == [
            "Trip Details:",
            "Date: Mar 04, 2025 at 08:05",
            "Distance: 10.00 mi",
            "Category: Uber",
            "Notes: Airport",
        ]

    def test_kilometers(self):
        """Test the metric unit."""
        assert "Distance: 16.09 km" in format_share_text(self.trip, use_kilometers=True)
