"""
Import/export orchestration for the Mileage Log application.

Imports read and parse the file on a QThreadPool worker and hand the result
back to the coordinator's thread through queued signals. Exports and
clipboard copies work on an already selected list of trips and run
synchronously on the caller's thread.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Sequence

from PySide6.QtCore import QObject, QRunnable, QThreadPool, Signal, Slot

from ..core.config import get_config
from ..core.errors import ErrorCode, ExchangeError, TripExportError, TripImportError
from ..core.export_handler import serialize, write_atomic
from ..core.import_handler import detect_format, read_trips_file
from ..core.models import ExportFormat, TripRecord
from ..core.store import TripStore

logger = logging.getLogger(__name__)

EXPORT_BASENAME = "TripLogs"


@dataclass(frozen=True)
class ImportResult:
    """Outcome of a completed import."""
    path: Path
    export_format: ExportFormat
    added: int
    updated: int

    @property
    def total(self) -> int:
        return self.added + self.updated


class ImportWorkerSignals(QObject):
    """Signals for ImportWorker; QRunnable cannot emit on its own."""
    finished = Signal(int, object)  # session, list[TripRecord]
    failed = Signal(int, object)    # session, ExchangeError


class ImportWorker(QRunnable):
    """Reads and parses one import file off the UI thread."""

    def __init__(self, session: int, path: Path):
        super().__init__()
        # The coordinator keeps the worker alive until its result is handled
        self.setAutoDelete(False)
        self.session = session
        self.path = path
        self.signals = ImportWorkerSignals()

    def run(self) -> None:
        try:
            records = read_trips_file(self.path)
        except ExchangeError as exc:
            self.signals.failed.emit(self.session, exc)
            return
        except Exception as exc:
            # Every session must end with finished or failed
            logger.exception("Import #%d crashed reading %s", self.session, self.path)
            self.signals.failed.emit(self.session, TripImportError(
                f"Unexpected error importing {self.path}: {exc!r}",
                code=ErrorCode.DECODING_FAILED,
                cause=exc
            ))
            return
        self.signals.finished.emit(self.session, records)


def system_clipboard_writer() -> Callable[[str], None]:
    """Writer for the Qt application clipboard (needs a QGuiApplication)."""
    from PySide6.QtGui import QGuiApplication

    clipboard = QGuiApplication.clipboard()
    return clipboard.setText


class ExchangeCoordinator(QObject):
    """
    Runs imports in the background and exports in the foreground.

    Results and errors are reported through signals emitted on the
    coordinator's thread.
    """

    import_started = Signal(str)        # path
    import_finished = Signal(object)    # ImportResult
    import_failed = Signal(object)      # ExchangeError
    export_written = Signal(str)        # path
    copied = Signal(str)                # format name

    def __init__(
        self,
        store: TripStore,
        export_dir: Optional[Path] = None,
        include_route_in_json: Optional[bool] = None,
        clipboard_writer: Optional[Callable[[str], None]] = None,
        thread_pool: Optional[QThreadPool] = None,
        parent: Optional[QObject] = None
    ):
        super().__init__(parent)
        config = get_config()
        self.store = store
        self.export_dir = Path(export_dir) if export_dir else config.export_dir
        self.include_route_in_json = (
            config.include_route_in_json if include_route_in_json is None else include_route_in_json
        )
        self._clipboard_writer = clipboard_writer
        self.thread_pool = thread_pool or QThreadPool.globalInstance()

        self._session = 0
        self._pending: dict[int, tuple[Path, ExportFormat, ImportWorker]] = {}

    @property
    def import_in_progress(self) -> bool:
        return self._session in self._pending

    def import_file(self, path: Path | str) -> Optional[int]:
        """
        Start a background import of a .csv or .json file.

        An unsupported extension is reported through import_failed right
        away. Starting a new import abandons any import still running.

        Returns:
            Session number of the started import, or None
        """
        path = Path(path)
        try:
            export_format = detect_format(path)
        except TripImportError as exc:
            self.import_failed.emit(exc)
            return None

        self._session += 1
        session = self._session
        worker = ImportWorker(session, path)
        worker.signals.finished.connect(self._on_worker_finished)
        worker.signals.failed.connect(self._on_worker_failed)
        self._pending[session] = (path, export_format, worker)

        logger.info("Import #%d started: %s", session, path)
        self.import_started.emit(str(path))
        self.thread_pool.start(worker)
        return session

    def cancel_import(self) -> None:
        """Abandon the running import; its result is discarded on arrival."""
        if self.import_in_progress:
            logger.info("Import #%d cancelled", self._session)
        self._session += 1

    @Slot(int, object)
    def _on_worker_finished(self, session: int, records: list) -> None:
        entry = self._pending.pop(session, None)
        if entry is None or session != self._session:
            logger.info("Discarding result of abandoned import #%d", session)
            return

        path, export_format, _ = entry
        added, updated = self.store.merge(records)
        result = ImportResult(path=path, export_format=export_format, added=added, updated=updated)
        logger.info("Import #%d finished: %d added, %d updated", session, added, updated)
        self.import_finished.emit(result)

    @Slot(int, object)
    def _on_worker_failed(self, session: int, error: ExchangeError) -> None:
        entry = self._pending.pop(session, None)
        if entry is None or session != self._session:
            logger.info("Discarding failure of abandoned import #%d", session)
            return

        logger.warning("Import #%d failed (%s): %s", session, error.code.value, error.message)
        self.import_failed.emit(error)

    def _render(
        self,
        selected: Sequence[TripRecord],
        export_format: ExportFormat,
        include_route: Optional[bool]
    ) -> str:
        if not selected:
            raise TripExportError("No trips selected", code=ErrorCode.NO_RECORDS_SELECTED)
        if include_route is None:
            include_route = self.include_route_in_json
        return serialize(selected, export_format, include_route=include_route)

    def export_file(
        self,
        selected: Sequence[TripRecord],
        export_format: ExportFormat,
        include_route: Optional[bool] = None,
        directory: Optional[Path] = None
    ) -> Path:
        """
        Write the selected trips to TripLogs.csv / TripLogs.json.

        Args:
            selected: Trips to export
            export_format: CSV or JSON
            include_route: Override for routeCoordinates in JSON output
            directory: Target directory (default: the configured export dir)

        Returns:
            Path of the written file, ready for a share sheet

        Raises:
            TripExportError: NO_RECORDS_SELECTED, ENCODING_FAILED or FILE_WRITE_FAILED
        """
        text = self._render(selected, export_format, include_route)
        target_dir = Path(directory) if directory else self.export_dir
        target = target_dir / f"{EXPORT_BASENAME}{export_format.suffix}"

        try:
            write_atomic(target, text)
        except OSError as exc:
            raise TripExportError(
                f"Could not write {target}: {exc}", code=ErrorCode.FILE_WRITE_FAILED, cause=exc
            ) from exc

        logger.info("Exported %d trips to %s", len(selected), target)
        self.export_written.emit(str(target))
        return target

    def copy_to_clipboard(
        self,
        selected: Sequence[TripRecord],
        export_format: ExportFormat,
        include_route: Optional[bool] = None
    ) -> str:
        """
        Put the selected trips on the clipboard as CSV or JSON.

        Returns:
            The copied text
        """
        text = self._render(selected, export_format, include_route)
        writer = self._clipboard_writer or system_clipboard_writer()
        writer(text)
        self.copied.emit(export_format.name)
        return text

