"""
Exceptions raised by trip import and export.

Every failure carries an ErrorCode so the UI can show a fixed, user-facing
message without leaking internal details.

Usage:
    from mileage_log.core.errors import TripImportError, ErrorCode

    raise TripImportError("no rows after header", code=ErrorCode.EMPTY_FILE)

CSV import is row-tolerant: a malformed row is dropped and never raises on
its own. JSON import is all-or-nothing: one bad element raises
DECODING_FAILED for the whole file.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Error codes for import/export failures."""

    # Import errors
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
    INVALID_ENCODING = "INVALID_ENCODING"
    EMPTY_FILE = "EMPTY_FILE"
    NO_VALID_RECORDS = "NO_VALID_RECORDS"
    DECODING_FAILED = "DECODING_FAILED"
    FILE_READ_FAILED = "FILE_READ_FAILED"

    # Export errors
    ENCODING_FAILED = "ENCODING_FAILED"
    FILE_WRITE_FAILED = "FILE_WRITE_FAILED"
    NO_RECORDS_SELECTED = "NO_RECORDS_SELECTED"


USER_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.UNSUPPORTED_FORMAT: "This file type is not supported. Choose a .csv or .json file.",
    ErrorCode.INVALID_ENCODING: "The file is not valid UTF-8 text.",
    ErrorCode.EMPTY_FILE: "The file contains no trips.",
    ErrorCode.NO_VALID_RECORDS: "No valid trips were found in the file.",
    ErrorCode.DECODING_FAILED: "The backup file is damaged or has an unexpected layout. Nothing was imported.",
    ErrorCode.FILE_READ_FAILED: "The file could not be read.",
    ErrorCode.ENCODING_FAILED: "The selected trips could not be converted for export.",
    ErrorCode.FILE_WRITE_FAILED: "The export file could not be saved.",
    ErrorCode.NO_RECORDS_SELECTED: "Select at least one trip first.",
}


class ExchangeError(Exception):
    """Base exception for trip import/export."""

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        cause: Optional[BaseException] = None
    ):
        self.message = message
        self.code = code
        self.cause = cause
        super().__init__(message)

    @property
    def user_message(self) -> str:
        return USER_MESSAGES[self.code]


class TripImportError(ExchangeError):
    """Reading or parsing an import source failed."""

    pass


class TripExportError(ExchangeError):
    """Serializing or writing an export failed."""

    pass
