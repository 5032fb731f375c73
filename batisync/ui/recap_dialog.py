from __future__ import annotations

import logging

from PySide6.QtCore import QDate, Qt
from PySide6.QtWidgets import (
    QAbstractItemView,
    QDateEdit,
    QDialog,
    QDialogButtonBox,
    QHBoxLayout,
    QHeaderView,
    QLabel,
    QPushButton,
    QTableWidget,
    QTableWidgetItem,
    QTabWidget,
    QVBoxLayout,
    QWidget,
)

from ..core.recap import period_machine_hours, personnel_days, personnel_recap, task_totals, voucher_summary
from ..core.report import Report
from ..core.storage import ReportStore, StoreError

logger = logging.getLogger(__name__)

CATEGORY_LABELS = {
    "apport": "Apport",
    "evacuation": "Évacuation",
    "beton": "Béton",
    "materiaux": "Matériaux",
}


def _read_only_table(headers: list[str]) -> QTableWidget:
    table = QTableWidget(0, len(headers))
    table.setHorizontalHeaderLabels(headers)
    table.horizontalHeader().setSectionResizeMode(QHeaderView.ResizeMode.Stretch)
    table.setEditTriggers(QAbstractItemView.EditTrigger.NoEditTriggers)
    table.setSelectionBehavior(QAbstractItemView.SelectionBehavior.SelectRows)
    return table


def _fill(table: QTableWidget, rows: list[list[str]]) -> None:
    table.setRowCount(0)
    for values in rows:
        row = table.rowCount()
        table.insertRow(row)
        for column, value in enumerate(values):
            table.setItem(row, column, QTableWidgetItem(value))


class RecapDialog(QDialog):
    def __init__(
        self,
        store: ReportStore,
        project_id: str,
        start: QDate,
        end: QDate,
        parent: QWidget | None = None,
    ) -> None:
        super().__init__(parent)
        self.store = store
        self.project_id = project_id
        self.reports: list[Report] = []

        self.setWindowTitle(f"Récapitulatif - {project_id}")
        self.resize(900, 560)

        root = QVBoxLayout(self)

        period = QHBoxLayout()
        period.addWidget(QLabel("Du"))
        self.start_edit = QDateEdit(start)
        self.start_edit.setCalendarPopup(True)
        self.start_edit.setDisplayFormat("dd.MM.yyyy")
        period.addWidget(self.start_edit)
        period.addWidget(QLabel("au"))
        self.end_edit = QDateEdit(end)
        self.end_edit.setCalendarPopup(True)
        self.end_edit.setDisplayFormat("dd.MM.yyyy")
        period.addWidget(self.end_edit)
        refresh_button = QPushButton("Actualiser")
        refresh_button.clicked.connect(self.refresh)
        period.addWidget(refresh_button)
        period.addStretch(1)
        root.addLayout(period)

        self.summary_label = QLabel()
        root.addWidget(self.summary_label)

        tabs = QTabWidget()
        self.personnel_table = _read_only_table(["Matricule", "Nom", "Présence (h)", "Tâches (h)", "Écart (h)"])
        tabs.addTab(self.personnel_table, "Personnel")
        self.tasks_table = _read_only_table(["Date", "Tâche", "Heures"])
        tabs.addTab(self.tasks_table, "Tâches")
        self.machines_table = _read_only_table(["N° matériel", "Heures"])
        tabs.addTab(self.machines_table, "Machines")
        self.vouchers_table = _read_only_table(["Catégorie", "Fournisseur", "Unité", "Quantité", "Montant", "Bons"])
        tabs.addTab(self.vouchers_table, "Bons")
        root.addWidget(tabs, 1)

        buttons = QDialogButtonBox(QDialogButtonBox.StandardButton.Close)
        buttons.rejected.connect(self.reject)
        root.addWidget(buttons)

        self.refresh()

    def refresh(self) -> None:
        start = self.start_edit.date().toString(Qt.DateFormat.ISODate)
        end = self.end_edit.date().toString(Qt.DateFormat.ISODate)
        try:
            self.reports = self.store.list_reports(self.project_id, start, end)
        except StoreError as exc:
            logger.error("Recap of %s failed: %s", self.project_id, exc)
            self.summary_label.setText(f"Erreur de chargement : {exc}")
            self.reports = []
        else:
            presence = sum(personnel_days(self.reports).values())
            self.summary_label.setText(f"{len(self.reports)} rapport(s) sur la période, {presence:g} h de présence")

        _fill(
            self.personnel_table,
            [
                [line.matricule, line.nom, f"{line.presence:g}", f"{line.taches:g}", f"{line.ecart:g}"]
                for line in personnel_recap(self.reports)
            ],
        )
        _fill(
            self.tasks_table,
            [[report.date, key, f"{hours:g}"] for report in self.reports for key, hours in task_totals(report)],
        )
        _fill(
            self.machines_table,
            [[numero, f"{hours:g}"] for numero, hours in sorted(period_machine_hours(self.reports).items())],
        )
        _fill(
            self.vouchers_table,
            [
                [
                    CATEGORY_LABELS[line.category],
                    line.fournisseur,
                    line.unite,
                    f"{line.quantite:g}",
                    f"{line.montant:.2f}" if line.montant else "",
                    str(line.count),
                ]
                for line in voucher_summary(self.reports)
            ],
        )
