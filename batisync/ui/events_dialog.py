from __future__ import annotations

import logging

from PySide6.QtCore import QDate, Qt, Signal
from PySide6.QtWidgets import (
    QAbstractItemView,
    QComboBox,
    QDateEdit,
    QDialog,
    QDialogButtonBox,
    QFormLayout,
    QGroupBox,
    QHBoxLayout,
    QHeaderView,
    QLineEdit,
    QMessageBox,
    QPushButton,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

from ..core.site import EVENT_PRIORITIES, EVENT_STATUSES, EVENT_TYPES, SiteEvent, validate_event
from ..core.storage import ReportStore, StoreError

logger = logging.getLogger(__name__)

EVENT_COLUMNS = ["Date", "Heure", "Titre", "Type", "Priorité", "Statut"]


def _label(choices: list[tuple[str, str]], value: str) -> str:
    return dict(choices).get(value, value)


class EventsDialog(QDialog):
    events_changed = Signal()

    def __init__(self, store: ReportStore, project_id: str, day: QDate, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.store = store
        self.project_id = project_id
        self.events: list[SiteEvent] = []
        self._month = QDate(day.year(), day.month(), 1)

        self.setWindowTitle(f"Calendrier du chantier - {project_id}")
        self.resize(860, 600)

        root = QVBoxLayout(self)

        navigation = QHBoxLayout()
        previous_button = QPushButton("< Mois précédent")
        previous_button.clicked.connect(lambda: self._shift_month(-1))
        navigation.addWidget(previous_button)
        self.month_label = QLineEdit()
        self.month_label.setReadOnly(True)
        self.month_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        navigation.addWidget(self.month_label, 1)
        next_button = QPushButton("Mois suivant >")
        next_button.clicked.connect(lambda: self._shift_month(1))
        navigation.addWidget(next_button)
        root.addLayout(navigation)

        self.table = QTableWidget(0, len(EVENT_COLUMNS))
        self.table.setHorizontalHeaderLabels(EVENT_COLUMNS)
        self.table.horizontalHeader().setSectionResizeMode(QHeaderView.ResizeMode.Stretch)
        self.table.setEditTriggers(QAbstractItemView.EditTrigger.NoEditTriggers)
        self.table.setSelectionBehavior(QAbstractItemView.SelectionBehavior.SelectRows)
        root.addWidget(self.table, 1)

        delete_button = QPushButton("Supprimer l'événement sélectionné")
        delete_button.clicked.connect(self._delete_selected)
        root.addWidget(delete_button, 0, Qt.AlignmentFlag.AlignRight)

        root.addWidget(self._build_editor(day))

        buttons = QDialogButtonBox(QDialogButtonBox.StandardButton.Close)
        buttons.rejected.connect(self.reject)
        root.addWidget(buttons)

        self.refresh()

    def _build_editor(self, day: QDate) -> QGroupBox:
        group = QGroupBox("Nouvel événement")
        form = QFormLayout(group)

        self.title_edit = QLineEdit()
        form.addRow("Titre *", self.title_edit)

        self.type_combo = QComboBox()
        for value, label in EVENT_TYPES:
            self.type_combo.addItem(label, value)
        form.addRow("Type", self.type_combo)

        self.date_edit = QDateEdit(day)
        self.date_edit.setCalendarPopup(True)
        self.date_edit.setDisplayFormat("dd.MM.yyyy")
        form.addRow("Date", self.date_edit)

        times = QHBoxLayout()
        self.start_time_edit = QLineEdit()
        self.start_time_edit.setPlaceholderText("HH:MM")
        self.start_time_edit.setInputMask("99:99;_")
        times.addWidget(self.start_time_edit)
        self.end_time_edit = QLineEdit()
        self.end_time_edit.setPlaceholderText("HH:MM")
        self.end_time_edit.setInputMask("99:99;_")
        times.addWidget(self.end_time_edit)
        form.addRow("Début / fin", times)

        self.priority_combo = QComboBox()
        for value, label in EVENT_PRIORITIES:
            self.priority_combo.addItem(label, value)
        self.priority_combo.setCurrentIndex(self.priority_combo.findData("medium"))
        form.addRow("Priorité", self.priority_combo)

        self.description_edit = QLineEdit()
        form.addRow("Description", self.description_edit)

        add_button = QPushButton("Ajouter")
        add_button.clicked.connect(self._add_event)
        form.addRow(add_button)
        return group

    def _shift_month(self, months: int) -> None:
        self._month = self._month.addMonths(months)
        self.refresh()

    def refresh(self) -> None:
        start = self._month.toString(Qt.DateFormat.ISODate)
        end = self._month.addMonths(1).addDays(-1).toString(Qt.DateFormat.ISODate)
        self.month_label.setText(self._month.toString("MMMM yyyy"))
        try:
            self.events = self.store.list_events(self.project_id, start, end)
        except StoreError as exc:
            logger.error("Loading events of %s failed: %s", self.project_id, exc)
            QMessageBox.warning(self, "Calendrier", f"Impossible de charger les événements :\n{exc}")
            self.events = []

        self.table.setRowCount(0)
        for event in self.events:
            row = self.table.rowCount()
            self.table.insertRow(row)
            hours = "-".join(part for part in (event.start_time, event.end_time) if part)
            values = [
                event.date,
                hours,
                event.title,
                _label(EVENT_TYPES, event.type),
                _label(EVENT_PRIORITIES, event.priority),
                _label(EVENT_STATUSES, event.status),
            ]
            for column, value in enumerate(values):
                self.table.setItem(row, column, QTableWidgetItem(value))

    def _time(self, edit: QLineEdit) -> str:
        text = edit.text()
        return "" if text.strip(":_ ") == "" else text

    def _add_event(self) -> None:
        event = SiteEvent(
            title=self.title_edit.text().strip(),
            date=self.date_edit.date().toString(Qt.DateFormat.ISODate),
            type=str(self.type_combo.currentData()),
            description=self.description_edit.text().strip(),
            start_time=self._time(self.start_time_edit),
            end_time=self._time(self.end_time_edit),
            priority=str(self.priority_combo.currentData()),
        )
        messages = validate_event(event)
        if messages:
            QMessageBox.warning(self, "Événement", "\n".join(messages))
            return
        try:
            self.store.save_event(self.project_id, event)
        except StoreError as exc:
            QMessageBox.critical(self, "Événement", f"Impossible d'enregistrer l'événement :\n{exc}")
            return

        self.title_edit.clear()
        self.description_edit.clear()
        self.refresh()
        self.events_changed.emit()

    def _delete_selected(self) -> None:
        rows = sorted({index.row() for index in self.table.selectedIndexes()})
        if not rows:
            return
        try:
            for row in rows:
                self.store.delete_event(self.project_id, self.events[row].id)
        except StoreError as exc:
            QMessageBox.critical(self, "Événement", f"Erreur lors de la suppression de l'événement :\n{exc}")
        self.refresh()
        self.events_changed.emit()
