from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Any

from PySide6.QtCore import Qt, Signal
from PySide6.QtWidgets import (
    QAbstractItemView,
    QHBoxLayout,
    QHeaderView,
    QPushButton,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

from ..core.report import TacheMachine, TachePersonnel

SOURCE_ROLE = Qt.ItemDataRole.UserRole


@dataclass(frozen=True, slots=True)
class Column:
    name: str
    label: str
    kind: str = "text"


def format_number(value: float | None) -> str:
    if value is None:
        return ""
    text = f"{value:g}"
    return text if float(text) == value else repr(float(value))


def parse_number(text: str, fallback: float | None) -> float | None:
    cleaned = text.strip().replace(",", ".")
    if not cleaned:
        return None
    try:
        return float(cleaned)
    except ValueError:
        return fallback


def format_allocations(entries: list[Any], key: str) -> str:
    return "; ".join(f"{getattr(entry, key)}={format_number(entry.heures) or 0}" for entry in entries)


def parse_allocations(text: str) -> list[tuple[str, float]]:
    """Parse ``"M1=4; M2=2,5"`` into ``[("M1", 4.0), ("M2", 2.5)]``."""
    entries: list[tuple[str, float]] = []
    for chunk in text.split(";"):
        if not chunk.strip():
            continue
        name, _, hours = chunk.partition("=")
        entries.append((name.strip(), parse_number(hours, 0.0) or 0.0))
    return entries


class RecordTable(QWidget):
    """Editable table of dataclass rows.

    Each row keeps the object it was loaded from, so fields without a column
    survive an edit of the visible ones.
    """

    changed = Signal()

    def __init__(
        self,
        columns: list[Column],
        factory: Callable[[], Any],
        add_label: str = "Ajouter une ligne",
        parent: QWidget | None = None,
    ) -> None:
        super().__init__(parent)
        self.columns = columns
        self._factory = factory
        self._updating = False

        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)

        self.table = QTableWidget(0, len(columns))
        self.table.setHorizontalHeaderLabels([column.label for column in columns])
        self.table.horizontalHeader().setSectionResizeMode(QHeaderView.ResizeMode.Stretch)
        self.table.setSelectionBehavior(QAbstractItemView.SelectionBehavior.SelectRows)
        self.table.setMinimumHeight(160)
        self.table.itemChanged.connect(self._on_item_changed)
        layout.addWidget(self.table)

        buttons = QHBoxLayout()
        buttons.addStretch(1)
        self.add_button = QPushButton(add_label)
        self.add_button.clicked.connect(self.add_row)
        buttons.addWidget(self.add_button)
        self.remove_button = QPushButton("Supprimer la sélection")
        self.remove_button.clicked.connect(self.remove_selected)
        buttons.addWidget(self.remove_button)
        layout.addLayout(buttons)

    def load(self, records: list[Any]) -> None:
        self._updating = True
        self.table.setRowCount(0)
        for record in records:
            self._append(record)
        self._updating = False

    def records(self) -> list[Any]:
        return [self._row_record(row) for row in range(self.table.rowCount())]

    def add_row(self) -> None:
        self._updating = True
        self._append(self._factory())
        self._updating = False
        self.changed.emit()

    def remove_selected(self) -> None:
        rows = sorted({index.row() for index in self.table.selectedIndexes()}, reverse=True)
        if not rows:
            return
        for row in rows:
            self.table.removeRow(row)
        self.changed.emit()

    def _append(self, record: Any) -> None:
        row = self.table.rowCount()
        self.table.insertRow(row)
        for column_index, column in enumerate(self.columns):
            item = QTableWidgetItem(self._format(column, getattr(record, column.name)))
            if column_index == 0:
                item.setData(SOURCE_ROLE, record)
            self.table.setItem(row, column_index, item)

    def _row_record(self, row: int) -> Any:
        first = self.table.item(row, 0)
        source = first.data(SOURCE_ROLE) if first is not None else None
        if source is None:
            source = self._factory()

        values: dict[str, Any] = {}
        for column_index, column in enumerate(self.columns):
            item = self.table.item(row, column_index)
            text = item.text() if item is not None else ""
            values[column.name] = self._parse(column, text, getattr(source, column.name))
        return replace(source, **values)

    @staticmethod
    def _format(column: Column, value: Any) -> str:
        if column.kind in ("number", "optional_number"):
            return format_number(value)
        if column.kind == "integer":
            return str(value) if value else ""
        if column.kind == "task_personnel":
            return format_allocations(value, "matricule")
        if column.kind == "task_machines":
            return format_allocations(value, "numero_materiel")
        return "" if value is None else str(value)

    @staticmethod
    def _parse(column: Column, text: str, previous: Any) -> Any:
        if column.kind == "number":
            value = parse_number(text, previous)
            return 0.0 if value is None else value
        if column.kind == "optional_number":
            return parse_number(text, previous)
        if column.kind == "integer":
            if not text.strip():
                return 0
            try:
                return int(text.strip())
            except ValueError:
                return previous
        if column.kind == "task_personnel":
            return [TachePersonnel(matricule=name, heures=hours) for name, hours in parse_allocations(text)]
        if column.kind == "task_machines":
            known = {machine.numero_materiel: machine for machine in previous}
            machines: list[TacheMachine] = []
            for name, hours in parse_allocations(text):
                base = known.get(name)
                machines.append(
                    replace(base, heures=hours) if base is not None else TacheMachine(numero_materiel=name, heures=hours)
                )
            return machines
        return text

    def _on_item_changed(self, _item: QTableWidgetItem) -> None:
        if not self._updating:
            self.changed.emit()
