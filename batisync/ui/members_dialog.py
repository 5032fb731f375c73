from __future__ import annotations

from PySide6.QtWidgets import (
    QAbstractItemView,
    QDialog,
    QDialogButtonBox,
    QFormLayout,
    QGroupBox,
    QHeaderView,
    QLineEdit,
    QMessageBox,
    QPushButton,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

from ..core.site import DEFAULT_ENTREPRISE, ProjectMember
from ..core.storage import ReportStore, StoreError

MEMBER_FIELDS: list[tuple[str, str]] = [
    ("nom", "Nom"),
    ("prenom", "Prénom"),
    ("matricule", "Matricule"),
    ("intitule_fonction", "Fonction"),
    ("entreprise", "Entreprise"),
    ("equipe", "Équipe"),
    ("zone", "Zone"),
]


class MembersDialog(QDialog):
    def __init__(self, store: ReportStore, project_id: str, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.store = store
        self.project_id = project_id
        self.members: list[ProjectMember] = []

        self.setWindowTitle(f"Personnel du projet - {project_id}")
        self.resize(820, 560)

        root = QVBoxLayout(self)

        self.table = QTableWidget(0, len(MEMBER_FIELDS))
        self.table.setHorizontalHeaderLabels([label for _, label in MEMBER_FIELDS])
        self.table.horizontalHeader().setSectionResizeMode(QHeaderView.ResizeMode.Stretch)
        self.table.setEditTriggers(QAbstractItemView.EditTrigger.NoEditTriggers)
        self.table.setSelectionBehavior(QAbstractItemView.SelectionBehavior.SelectRows)
        root.addWidget(self.table, 1)

        remove_button = QPushButton("Retirer du projet")
        remove_button.clicked.connect(self._deactivate_selected)
        root.addWidget(remove_button)

        group = QGroupBox("Ajouter ou réactiver une personne")
        form = QFormLayout(group)
        self.field_edits: dict[str, QLineEdit] = {}
        for name, label in MEMBER_FIELDS:
            edit = QLineEdit()
            self.field_edits[name] = edit
            form.addRow(label, edit)
        self.field_edits["entreprise"].setText(DEFAULT_ENTREPRISE)
        add_button = QPushButton("Enregistrer")
        add_button.clicked.connect(self._save_member)
        form.addRow(add_button)
        root.addWidget(group)

        buttons = QDialogButtonBox(QDialogButtonBox.StandardButton.Close)
        buttons.rejected.connect(self.reject)
        root.addWidget(buttons)

        self.refresh()

    def refresh(self) -> None:
        try:
            self.members = self.store.list_project_members(self.project_id)
        except StoreError as exc:
            QMessageBox.warning(self, "Personnel", f"Impossible de charger le personnel :\n{exc}")
            self.members = []

        self.table.setRowCount(0)
        for member in self.members:
            row = self.table.rowCount()
            self.table.insertRow(row)
            for column, (name, _) in enumerate(MEMBER_FIELDS):
                self.table.setItem(row, column, QTableWidgetItem(getattr(member, name)))

    def _save_member(self) -> None:
        values = {name: edit.text().strip() for name, edit in self.field_edits.items()}
        if not values["nom"] and not values["matricule"]:
            QMessageBox.warning(self, "Personnel", "Indiquez au moins un nom ou un matricule.")
            return
        try:
            self.store.save_project_member(self.project_id, ProjectMember(**values))
        except StoreError as exc:
            QMessageBox.critical(self, "Personnel", f"Impossible d'enregistrer :\n{exc}")
            return

        for name, edit in self.field_edits.items():
            edit.setText(DEFAULT_ENTREPRISE if name == "entreprise" else "")
        self.refresh()

    def _deactivate_selected(self) -> None:
        rows = sorted({index.row() for index in self.table.selectedIndexes()})
        try:
            for row in rows:
                self.store.deactivate_project_member(self.project_id, self.members[row].id)
        except StoreError as exc:
            QMessageBox.critical(self, "Personnel", f"Impossible de retirer la personne :\n{exc}")
        self.refresh()
