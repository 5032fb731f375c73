from __future__ import annotations

from datetime import date as Date, timedelta
import logging

from PySide6.QtCore import QDate, Qt
from PySide6.QtGui import QAction, QKeySequence
from PySide6.QtWidgets import (
    QComboBox,
    QDateEdit,
    QInputDialog,
    QLabel,
    QMainWindow,
    QMessageBox,
    QStatusBar,
    QToolBar,
    QVBoxLayout,
    QWidget,
)

from ..core.autosave import REASON_MANUAL
from ..core.report import Report, validate_report
from ..core.runner import ImmediateRunner, PersistenceRunner, ThreadPoolRunner
from ..core.session import ReportSession
from ..core.site import events_for_date, merge_members_into_report, upcoming_events
from ..core.storage import LocalReportStore, ReportStore, StoreError
from ..settings import AppSettings, build_store
from .events_dialog import EventsDialog
from .members_dialog import MembersDialog
from .recap_dialog import RecapDialog
from .report_form import ReportForm

logger = logging.getLogger(__name__)


class MainWindow(QMainWindow):
    def __init__(self, settings: AppSettings | None = None, store: ReportStore | None = None) -> None:
        super().__init__()

        self.settings = settings or AppSettings.load()
        self.store: ReportStore | None = store
        self.session: ReportSession | None = None
        self._store_error: str | None = None

        if self.store is None:
            try:
                self.store = build_store(self.settings)
            except StoreError as exc:
                logger.error("Backend unavailable: %s", exc)
                self._store_error = str(exc)

        self.runner: PersistenceRunner = (
            ImmediateRunner() if isinstance(self.store, LocalReportStore) else ThreadPoolRunner(parent=self)
        )

        self.setWindowTitle("BatiSync - Rapport journalier[*]")
        self.setMinimumSize(1080, 760)

        self._create_actions()
        self._build_ui()
        self._connect_signals()

        if self._store_error:
            QMessageBox.critical(self, "Backend indisponible", f"Impossible d'initialiser le stockage :\n{self._store_error}")
        elif self.settings.last_project_id:
            self._open_report()

    def _create_actions(self) -> None:
        self.open_action = QAction("Ouvrir le rapport", self)
        self.open_action.setShortcut(QKeySequence("Ctrl+O"))
        self.open_action.triggered.connect(lambda: self._open_report())

        self.previous_day_action = QAction("Jour précédent", self)
        self.previous_day_action.setShortcut(QKeySequence("Alt+Left"))
        self.previous_day_action.triggered.connect(lambda: self._shift_day(-1))

        self.next_day_action = QAction("Jour suivant", self)
        self.next_day_action.setShortcut(QKeySequence("Alt+Right"))
        self.next_day_action.triggered.connect(lambda: self._shift_day(1))

        self.save_action = QAction("Enregistrer", self)
        self.save_action.setShortcut(QKeySequence.Save)
        self.save_action.triggered.connect(self._save)

        self.reference_hours_action = QAction("Heures de référence", self)
        self.reference_hours_action.triggered.connect(self._add_reference_hours)

        self.recap_action = QAction("Récapitulatif", self)
        self.recap_action.setShortcut(QKeySequence("Ctrl+R"))
        self.recap_action.triggered.connect(self._show_recap)

        self.events_action = QAction("Calendrier", self)
        self.events_action.triggered.connect(self._show_events)

        self.members_action = QAction("Personnel du projet", self)
        self.members_action.triggered.connect(self._show_members)

    def _build_ui(self) -> None:
        toolbar = QToolBar("Rapport")
        toolbar.setMovable(False)

        toolbar.addWidget(QLabel("Projet "))
        self.project_combo = QComboBox()
        self.project_combo.setEditable(True)
        self.project_combo.setMinimumWidth(220)
        self.project_combo.addItems(self.settings.recent_projects)
        self.project_combo.setCurrentText(self.settings.last_project_id)
        toolbar.addWidget(self.project_combo)

        toolbar.addWidget(QLabel("  Date "))
        self.date_edit = QDateEdit(QDate.currentDate())
        self.date_edit.setCalendarPopup(True)
        self.date_edit.setDisplayFormat("dd.MM.yyyy")
        toolbar.addWidget(self.date_edit)

        toolbar.addSeparator()
        toolbar.addAction(self.previous_day_action)
        toolbar.addAction(self.open_action)
        toolbar.addAction(self.next_day_action)
        toolbar.addSeparator()
        toolbar.addAction(self.save_action)
        self.addToolBar(toolbar)

        project_toolbar = QToolBar("Projet")
        project_toolbar.setMovable(False)
        project_toolbar.addAction(self.recap_action)
        project_toolbar.addAction(self.events_action)
        project_toolbar.addAction(self.members_action)
        project_toolbar.addAction(self.reference_hours_action)
        self.addToolBar(project_toolbar)

        root = QWidget(self)
        root_layout = QVBoxLayout(root)
        root_layout.setContentsMargins(12, 12, 12, 12)
        root_layout.setSpacing(10)

        self.error_banner = QLabel()
        self.error_banner.setWordWrap(True)
        self.error_banner.setStyleSheet(
            "QLabel { background: #fdecea; color: #8a1c12; border: 1px solid #f5c2bc; border-radius: 6px; padding: 6px; }"
        )
        self.error_banner.hide()
        root_layout.addWidget(self.error_banner)

        self.form = ReportForm(self)
        self.form.setEnabled(False)
        root_layout.addWidget(self.form, 1)

        self.setCentralWidget(root)
        self._build_status_bar()

    def _build_status_bar(self) -> None:
        status_bar = QStatusBar(self)
        self.setStatusBar(status_bar)

        self.report_status_label = QLabel("Rapport : aucun")
        self.autosave_status_label = QLabel("Sauvegarde auto : ✓")
        self.last_saved_label = QLabel("Dernière sauvegarde : -")

        status_bar.addWidget(self.report_status_label, 1)
        status_bar.addPermanentWidget(self.autosave_status_label)
        status_bar.addPermanentWidget(self.last_saved_label)

    def _connect_signals(self) -> None:
        self.form.content_changed.connect(self._on_form_changed)
        self.form.import_personnel_requested.connect(self._import_personnel)
        self.project_combo.lineEdit().returnPressed.connect(lambda: self._open_report())

    def _current_selection(self) -> tuple[str, str]:
        project_id = self.project_combo.currentText().strip()
        return project_id, self.date_edit.date().toString(Qt.DateFormat.ISODate)

    def _current_project(self) -> str | None:
        project_id = self._current_selection()[0]
        if self.store is None or not project_id:
            self.statusBar().showMessage("Choisissez un projet", 4000)
            return None
        return project_id

    def _set_autosave_status(self, text: str) -> None:
        self.autosave_status_label.setText(text)

    def _show_error_banner(self, message: str) -> None:
        if message:
            self.error_banner.setText(message)
            self.error_banner.show()
        else:
            self.error_banner.hide()

    def _shift_day(self, days: int) -> None:
        current = Date.fromisoformat(self._current_selection()[1])
        target = current + timedelta(days=days)
        if not self._ensure_can_leave():
            return
        self.date_edit.setDate(QDate(target.year, target.month, target.day))
        self._open_report(guarded=False)

    def _open_report(self, guarded: bool = True) -> None:
        if self.store is None:
            return
        project_id, report_date = self._current_selection()
        if not project_id:
            self.statusBar().showMessage("Choisissez un projet", 4000)
            return
        if guarded and not self._ensure_can_leave():
            return

        self._close_session()
        session = ReportSession(
            store=self.store,
            project_id=project_id,
            date=report_date,
            runner=self.runner,
            debounce_ms=self.settings.autosave_debounce_ms,
            periodic_ms=self.settings.autosave_periodic_ms,
            max_retries=self.settings.save_max_retries,
            retry_delay_ms=self.settings.save_retry_delay_ms,
            parent=self,
        )
        session.dirty_changed.connect(self.setWindowModified)
        session.dirty_changed.connect(self._on_dirty_changed)
        session.saving_changed.connect(self._on_saving_changed)
        session.saved.connect(self._on_saved)
        session.error_changed.connect(self._on_error_changed)
        session.save_failed.connect(self._on_save_failed)
        self.session = session

        report = session.load()
        self.form.load_report(report)
        self.form.setEnabled(True)
        self.setWindowModified(False)
        self._set_autosave_status("Sauvegarde auto : ✓")
        self.last_saved_label.setText("Dernière sauvegarde : -")
        self.report_status_label.setText(f"Rapport : {project_id} du {report_date}")
        if session.error:
            self.statusBar().showMessage(f"Erreur de chargement : {session.error}", 8000)
        self._refresh_day_events()

        self.settings.touch_recent_project(project_id)
        self.settings.save()
        if self.project_combo.findText(project_id) < 0:
            self.project_combo.insertItem(0, project_id)

    def _close_session(self) -> None:
        if self.session is None:
            return
        session, self.session = self.session, None
        session.close()
        if session.saving:
            session.saving_changed.connect(lambda _saving, s=session: s.deleteLater())
        else:
            session.deleteLater()

    def _refresh_day_events(self) -> None:
        session = self.session
        if session is None or self.store is None:
            return
        tomorrow = (Date.fromisoformat(session.date) + timedelta(days=1)).isoformat()
        try:
            events = self.store.list_events(session.project_id, session.date, tomorrow)
        except StoreError as exc:
            logger.warning("Events of %s/%s unavailable: %s", session.project_id, session.date, exc)
            events = []
        self.form.set_day_events(events_for_date(events, session.date))
        upcoming = upcoming_events(events, session.date)
        if upcoming:
            self.statusBar().showMessage(f"{len(upcoming)} événement(s) prévu(s) aujourd'hui et demain", 6000)

    def _on_form_changed(self) -> None:
        if self.session is None:
            return
        report = self.session.update_report(self.form.apply_to)
        messages = validate_report(report)
        if messages:
            self.statusBar().showMessage(messages[0], 6000)

    def _import_personnel(self) -> None:
        session = self.session
        if session is None or self.store is None:
            return
        try:
            members = self.store.list_project_members(session.project_id)
        except StoreError as exc:
            QMessageBox.warning(self, "Personnel", f"Impossible de charger le personnel du projet :\n{exc}")
            return

        before = len(session.report.personnel)
        # flush pending cell edits before merging
        session.update_report(self.form.apply_to)
        report = session.update_report(lambda current: merge_members_into_report(current, members))
        self.form.load_report(report)
        added = len(report.personnel) - before
        self.statusBar().showMessage(f"{added} personne(s) ajoutée(s) au rapport", 4000)

    def _add_reference_hours(self) -> None:
        project_id = self._current_project()
        if project_id is None:
            return
        report_date = self._current_selection()[1]
        hours, accepted = QInputDialog.getDouble(
            self,
            "Heures de référence",
            f"Heures de référence à partir du {self.date_edit.date().toString('dd.MM.yyyy')} :",
            8.0,
            0.5,
            24.0,
            1,
        )
        if not accepted:
            return
        try:
            self.store.add_reference_hours(project_id, hours, report_date)
        except StoreError as exc:
            QMessageBox.critical(self, "Heures de référence", f"Impossible d'enregistrer :\n{exc}")
            return

        session = self.session
        if session is not None and session.project_id == project_id:
            self.form.set_reference_hours(session.refresh_reference_hours())

    def _show_recap(self) -> None:
        project_id = self._current_project()
        if project_id is None:
            return
        day = self.date_edit.date()
        start = QDate(day.year(), day.month(), 1)
        RecapDialog(self.store, project_id, start, start.addMonths(1).addDays(-1), self).exec()

    def _show_events(self) -> None:
        project_id = self._current_project()
        if project_id is None:
            return
        dialog = EventsDialog(self.store, project_id, self.date_edit.date(), self)
        dialog.events_changed.connect(self._refresh_day_events)
        dialog.exec()

    def _show_members(self) -> None:
        project_id = self._current_project()
        if project_id is None:
            return
        MembersDialog(self.store, project_id, self).exec()

    def _on_error_changed(self, message: str) -> None:
        if self.sender() is self.session:
            self._show_error_banner(message)

    def _on_dirty_changed(self, dirty: bool) -> None:
        if dirty:
            self._set_autosave_status("Sauvegarde auto : en attente...")

    def _on_saving_changed(self, saving: bool) -> None:
        session = self.session
        if session is None or not saving or self.sender() is not session:
            return
        if session.autosave.last_reason == REASON_MANUAL:
            self._set_autosave_status("Enregistrement...")
        else:
            self._set_autosave_status("Sauvegarde auto...")

    def _on_saved(self, _report: Report) -> None:
        session = self.session
        if session is None:
            return
        if not session.dirty:
            self._set_autosave_status("Sauvegarde auto : ✓")
        if session.last_saved_at is not None:
            self.last_saved_label.setText(f"Dernière sauvegarde : {session.last_saved_at.strftime('%H:%M:%S')}")

    def _on_save_failed(self, message: str) -> None:
        session = self.session
        if session is None:
            return
        self._set_autosave_status("Sauvegarde auto : erreur")
        self.statusBar().showMessage(f"Échec de la sauvegarde : {message}", 8000)
        if session.autosave.last_reason == REASON_MANUAL:
            QMessageBox.critical(self, "Erreur de sauvegarde", f"Impossible d'enregistrer le rapport :\n{message}")

    def _save(self) -> None:
        if self.session is None:
            return
        # outcome arrives through saved / save_failed
        self.session.save_now()

    def _ask_leave(self) -> bool:
        answer = QMessageBox.question(
            self,
            "Modifications non sauvegardées",
            "Vous avez des modifications non sauvegardées. Voulez-vous vraiment quitter ?",
            QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
            QMessageBox.StandardButton.No,
        )
        return answer == QMessageBox.StandardButton.Yes

    def _ensure_can_leave(self) -> bool:
        if self.session is None:
            return True
        return self.session.confirm_leave(self._ask_leave)

    def closeEvent(self, event) -> None:  # type: ignore[override]
        if not self._ensure_can_leave():
            event.ignore()
            return
        self._close_session()
        if isinstance(self.runner, ThreadPoolRunner):
            self.runner.wait_for_done(5000)
        if self.store is not None:
            self.store.close()
        event.accept()
