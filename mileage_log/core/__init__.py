"""
Core module for the Mileage Log application.
Contains data models, the trip store, query engine and import/export handlers.
"""

from .models import (
    Coordinate,
    DateRangeFilter,
    ExportFormat,
    QueryParams,
    SortOption,
    TripRecord,
    TripSummary,
)
from .errors import (
    USER_MESSAGES,
    ErrorCode,
    ExchangeError,
    TripExportError,
    TripImportError,
)
from .store import TripStore
from .categories import CategoryManager, OTHER_CATEGORY
from .query_engine import (
    QueryEngine,
    available_reasons,
    query_trips,
    summarize,
)
from .filter_manager import TripFilterManager
from .export_handler import (
    CSV_COLUMNS,
    format_share_text,
    serialize,
    to_csv,
    to_json,
)
from .import_handler import (
    HeaderDiff,
    compute_header_diff,
    detect_format,
    from_csv,
    from_json,
    parse_bytes,
    read_trips_file,
)

__all__ = [
    # Models
    "Coordinate",
    "DateRangeFilter",
    "ExportFormat",
    "QueryParams",
    "SortOption",
    "TripRecord",
    "TripSummary",
    # Errors
    "USER_MESSAGES",
    "ErrorCode",
    "ExchangeError",
    "TripExportError",
    "TripImportError",
    # Store
    "TripStore",
    "CategoryManager",
    "OTHER_CATEGORY",
    # Query
    "QueryEngine",
    "TripFilterManager",
    "available_reasons",
    "query_trips",
    "summarize",
    # Export
    "CSV_COLUMNS",
    "format_share_text",
    "serialize",
    "to_csv",
    "to_json",
    # Import
    "HeaderDiff",
    "compute_header_diff",
    "detect_format",
    "from_csv",
    "from_json",
    "parse_bytes",
    "read_trips_file",
]
