from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime
import logging
from typing import Any

from PySide6.QtCore import QObject, QTimer, Signal

from .autosave import (
    DEFAULT_DEBOUNCE_MS,
    DEFAULT_PERIODIC_MS,
    REASON_LEAVE,
    REASON_MANUAL,
    AutoSaveController,
)
from .report import Report, empty_report, prepare_for_save, serialize_report
from .runner import ImmediateRunner, PersistenceRunner
from .storage import ReportStore, StoreError

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY_MS = 5000

ReportChange = Report | Mapping[str, Any] | Callable[[Report], Report]


class ReportSession(QObject):
    """Editing session for the report of one project on one date.

    Owns the in-memory report, the snapshot of the last persisted state, the
    save lock with its single pending slot and the retry counter. One
    instance per opened report; ``close()`` ends it.
    """

    report_changed = Signal(object)
    dirty_changed = Signal(bool)
    saving_changed = Signal(bool)
    saved = Signal(object)
    error_changed = Signal(str)
    save_failed = Signal(str)

    def __init__(
        self,
        store: ReportStore,
        project_id: str,
        date: str,
        nom_chantier: str = "",
        runner: PersistenceRunner | None = None,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        periodic_ms: int = DEFAULT_PERIODIC_MS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay_ms: int = DEFAULT_RETRY_DELAY_MS,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self.store = store
        self.project_id = project_id
        self.date = date
        self.nom_chantier = nom_chantier
        self.runner: PersistenceRunner = runner or ImmediateRunner()
        self.max_retries = max(0, max_retries)

        self.report = empty_report(project_id, date, nom_chantier)
        self.heures_reference: float | None = None
        self.loaded = False
        self.error: str | None = None
        self.last_saved_at: datetime | None = None
        self.retry_count = 0

        self._snapshot = serialize_report(self.report)
        self._saving = False
        self._pending: Report | None = None
        self._closed = False

        self.autosave = AutoSaveController(debounce_ms=debounce_ms, periodic_ms=periodic_ms, parent=self)
        self.autosave.save_requested.connect(self._on_autosave_requested)
        self.autosave.dirty_changed.connect(self.dirty_changed)

        self._retry_timer = QTimer(self)
        self._retry_timer.setSingleShot(True)
        self._retry_timer.setInterval(max(1, retry_delay_ms))
        self._retry_timer.timeout.connect(self._on_retry_timeout)

    @property
    def dirty(self) -> bool:
        return self.autosave.dirty

    @property
    def saving(self) -> bool:
        return self._saving

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> Report | None:
        return self._pending

    @property
    def snapshot(self) -> str:
        return self._snapshot

    @property
    def retry_scheduled(self) -> bool:
        return self._retry_timer.isActive()

    def load(self) -> Report:
        self._set_error(None)
        heures_reference: float | None = None
        try:
            heures_reference = self.store.get_reference_hours(self.project_id, self.date)
            stored = self.store.load_report(self.project_id, self.date)
        except StoreError as exc:
            logger.error("Loading report %s/%s failed: %s", self.project_id, self.date, exc)
            self._set_error(str(exc))
            stored = None

        self.heures_reference = heures_reference
        if stored is None:
            report = empty_report(self.project_id, self.date, self.nom_chantier, heures_reference)
        else:
            report = stored.with_changes(
                nom_chantier=stored.nom_chantier or self.nom_chantier,
                heures_reference=heures_reference,
            )

        self.report = report
        self._snapshot = serialize_report(report)
        self.loaded = True
        self.autosave.clear_dirty()
        self.report_changed.emit(report)
        return report

    def refresh_reference_hours(self) -> float | None:
        try:
            hours = self.store.get_reference_hours(self.project_id, self.date)
        except StoreError as exc:
            logger.warning("Reference hours of %s/%s unavailable: %s", self.project_id, self.date, exc)
            self._set_error(str(exc))
            return self.heures_reference

        self.heures_reference = hours
        self.report = self.report.with_changes(heures_reference=hours)
        self.report_changed.emit(self.report)
        return hours

    def update_report(self, change: ReportChange) -> Report:
        if callable(change):
            next_report = change(self.report)
        elif isinstance(change, Report):
            next_report = change
        else:
            next_report = self.report.with_changes(**dict(change))

        self.report = next_report
        self.report_changed.emit(next_report)
        if self._closed:
            return next_report

        if serialize_report(next_report) != self._snapshot:
            self.autosave.mark_dirty()
        else:
            self.autosave.clear_dirty()
        return next_report

    def save_now(self) -> None:
        self.autosave.flush_now(REASON_MANUAL)

    def request_save(self, report: Report) -> None:
        if self._closed:
            return
        if self._saving:
            self._pending = report
            return

        if serialize_report(report) == self._snapshot:
            logger.debug("No change for %s/%s, save skipped", self.project_id, self.date)
            return

        self._set_saving(True)
        payload = prepare_for_save(report, self.heures_reference)
        self.runner.submit(
            lambda: self.store.save_report(self.project_id, payload),
            lambda saved: self._on_save_succeeded(report, saved),
            lambda exc: self._on_save_failed(report, exc),
        )

    def confirm_leave(self, ask: Callable[[], bool]) -> bool:
        """Ask before leaving a dirty report; on confirmation fire one last save.

        The save is not awaited. When another save is still in flight it only
        takes the pending slot, and ``close()`` drops that slot.
        """
        if not self.dirty:
            return True
        if not ask():
            return False
        self.autosave.flush_now(REASON_LEAVE)
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.autosave.stop()
        self._retry_timer.stop()
        self._pending = None

    def _on_autosave_requested(self, reason: str) -> None:
        logger.debug("Save requested (%s) for %s/%s", reason, self.project_id, self.date)
        self.request_save(self.report)

    def _on_save_succeeded(self, sent: Report, saved: Report) -> None:
        self._set_saving(False)
        self.last_saved_at = datetime.now()
        self.retry_count = 0
        self._retry_timer.stop()

        saved_id = saved.id if isinstance(saved, Report) and saved.id else sent.id
        self._snapshot = serialize_report(sent.with_changes(id=saved_id))
        if self.report.id != saved_id:
            self.report = self.report.with_changes(id=saved_id)
        self._set_error(None)
        logger.info("Report %s/%s saved", self.project_id, self.date)

        if self._closed:
            return

        if serialize_report(self.report) == self._snapshot:
            self.autosave.clear_dirty()
        self.saved.emit(self.report)

        if self._pending is not None:
            pending, self._pending = self._pending, None
            self.request_save(pending.with_changes(id=saved_id))

    def _on_save_failed(self, sent: Report, exc: Exception) -> None:
        self._set_saving(False)
        message = str(exc) or exc.__class__.__name__
        self._set_error(message)

        if self._closed:
            logger.warning("Save of %s/%s failed after close: %s", self.project_id, self.date, message)
            return

        if self.retry_count < self.max_retries:
            logger.warning(
                "Save of %s/%s failed (%s), retry %d/%d scheduled",
                self.project_id,
                self.date,
                message,
                self.retry_count + 1,
                self.max_retries,
            )
            # the retry sends the in-memory report, which supersedes the pending slot
            self._pending = None
            self._retry_timer.start()
            return

        logger.error(
            "Save of %s/%s failed, retries exhausted (%d/%d): %s",
            self.project_id,
            self.date,
            self.retry_count,
            self.max_retries,
            message,
        )
        self.autosave.stop()
        self.save_failed.emit(message)

        if self._pending is not None:
            pending, self._pending = self._pending, None
            self.request_save(pending)

    def _on_retry_timeout(self) -> None:
        if self._closed:
            return
        self.retry_count += 1
        self.request_save(self.report)

    def _set_saving(self, saving: bool) -> None:
        if self._saving != saving:
            self._saving = saving
            self.saving_changed.emit(saving)

    def _set_error(self, message: str | None) -> None:
        if self.error != message:
            self.error = message
            self.error_changed.emit(message or "")
