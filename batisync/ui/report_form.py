from __future__ import annotations

from PySide6.QtCore import Qt, Signal
from PySide6.QtWidgets import (
    QCheckBox,
    QComboBox,
    QDoubleSpinBox,
    QFormLayout,
    QFrame,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QPlainTextEdit,
    QPushButton,
    QScrollArea,
    QTabWidget,
    QVBoxLayout,
    QWidget,
)

from ..core.report import (
    METEO_CONDITIONS,
    BonApport,
    BonBeton,
    BonEvacuation,
    BonMateriaux,
    EvenementsParticuliers,
    Machine,
    Meteo,
    Personnel,
    Report,
    Tache,
    Tiers,
)
from ..core.site import SiteEvent
from .record_table import Column, RecordTable

EVENT_LABELS: list[tuple[str, str]] = [
    ("betonnage", "Bétonnage"),
    ("essais", "Essais"),
    ("pose_enrobe", "Pose d'enrobé"),
    ("controle_ext_int", "Contrôle ext./int."),
    ("reception", "Réception"),
]
PERSONNEL_COLUMNS = [
    Column("nom", "Nom"),
    Column("role", "Fonction"),
    Column("matricule", "Matricule"),
    Column("entreprise", "Entreprise"),
    Column("equipe", "Équipe"),
    Column("zone", "Zone"),
    Column("heures_presence", "Heures", "number"),
]
TACHE_COLUMNS = [
    Column("zone", "Zone *"),
    Column("description", "Description"),
    Column("personnel", "Personnel (matricule=h; ...)", "task_personnel"),
    Column("machines", "Machines (n°=h; ...)", "task_machines"),
]
MACHINE_COLUMNS = [
    Column("nom", "Nom"),
    Column("type", "Type"),
    Column("numero_materiel", "N° matériel"),
    Column("entreprise", "Entreprise"),
    Column("quantite", "Quantité", "integer"),
    Column("remarques", "Remarques"),
]
_VOUCHER_BASE = [
    Column("fournisseur", "Fournisseur"),
    Column("numero_bon", "N° bon"),
    Column("quantite", "Quantité", "number"),
    Column("unite", "Unité"),
    Column("prix_unitaire", "Prix unitaire", "optional_number"),
]
_TRANSPORT = [
    Column("materiaux", "Matériaux"),
    Column("lieu_chargement", "Chargement"),
    Column("lieu_dechargement", "Déchargement"),
    Column("type_camion", "Camion"),
]
VOUCHER_TABS: list[tuple[str, str, list[Column], type]] = [
    ("bons_apport", "Apport", _VOUCHER_BASE + _TRANSPORT, BonApport),
    ("bons_evacuation", "Évacuation", _VOUCHER_BASE + _TRANSPORT, BonEvacuation),
    (
        "bons_beton",
        "Béton",
        _VOUCHER_BASE + [Column("articles", "Articles"), Column("type_fourniture", "Fourniture"), Column("type_camion", "Camion")],
        BonBeton,
    ),
    ("bons_materiaux", "Matériaux", _VOUCHER_BASE + [Column("fournitures", "Fournitures")], BonMateriaux),
]
TIERS_COLUMNS = [
    Column("entreprise", "Entreprise"),
    Column("activite", "Activité"),
    Column("nombre_personnes", "Personnes", "integer"),
    Column("heures_presence", "Heures", "number"),
    Column("zone", "Zone"),
]


class ReportForm(QWidget):
    content_changed = Signal()
    import_personnel_requested = Signal()

    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._updating = False
        self._temperature = 20.0

        self.tabs = QTabWidget(self)
        self.tabs.addTab(self._build_general_tab(), "Rapport")
        self.tabs.addTab(self._build_personnel_tab(), "Personnel")

        self.taches_table = RecordTable(TACHE_COLUMNS, Tache, "Ajouter une tâche")
        self.taches_table.changed.connect(self._emit_changed)
        self.tabs.addTab(self.taches_table, "Tâches")

        self.machines_table = RecordTable(MACHINE_COLUMNS, Machine, "Ajouter une machine")
        self.machines_table.changed.connect(self._emit_changed)
        self.tabs.addTab(self.machines_table, "Machines")

        self.tabs.addTab(self._build_vouchers_tab(), "Bons")

        self.tiers_table = RecordTable(TIERS_COLUMNS, Tiers, "Ajouter une entreprise")
        self.tiers_table.changed.connect(self._emit_changed)
        self.tabs.addTab(self.tiers_table, "Tiers")

        root = QVBoxLayout(self)
        root.setContentsMargins(0, 0, 0, 0)
        root.addWidget(self.tabs)

    def _build_general_tab(self) -> QWidget:
        content = QWidget()
        layout = QVBoxLayout(content)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(12)
        layout.addWidget(self._build_header_group())
        layout.addWidget(self._build_events_group())
        layout.addWidget(self._build_remarks_group())
        layout.addStretch(1)

        scroll = QScrollArea()
        scroll.setWidgetResizable(True)
        scroll.setFrameShape(QFrame.Shape.NoFrame)
        scroll.setHorizontalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        scroll.setWidget(content)
        return scroll

    def _build_header_group(self) -> QGroupBox:
        group = QGroupBox("Chantier et météo")
        form = QFormLayout(group)

        self.nom_chantier_edit = QLineEdit()
        self.nom_chantier_edit.setPlaceholderText("Nom du chantier")
        self.nom_chantier_edit.textChanged.connect(self._emit_changed)
        form.addRow("Chantier", self.nom_chantier_edit)

        self.meteo_combo = QComboBox()
        for value, label in METEO_CONDITIONS:
            self.meteo_combo.addItem(label, value)
        self.meteo_combo.currentIndexChanged.connect(self._emit_changed)
        form.addRow("Météo", self.meteo_combo)

        self.temperature_spin = QDoubleSpinBox()
        self.temperature_spin.setRange(-40, 60)
        self.temperature_spin.setDecimals(1)
        self.temperature_spin.setSuffix(" °C")
        self.temperature_spin.valueChanged.connect(self._emit_changed)
        form.addRow("Température", self.temperature_spin)

        self.reference_label = QLabel("Heures de référence : -")
        form.addRow(self.reference_label)
        self.day_events_label = QLabel("Événements du jour : aucun")
        self.day_events_label.setWordWrap(True)
        form.addRow(self.day_events_label)
        return group

    def _build_events_group(self) -> QGroupBox:
        group = QGroupBox("Événements particuliers")
        row = QHBoxLayout(group)
        self.event_checks: dict[str, QCheckBox] = {}
        for name, label in EVENT_LABELS:
            check = QCheckBox(label)
            check.toggled.connect(self._emit_changed)
            self.event_checks[name] = check
            row.addWidget(check)
        row.addStretch(1)
        return group

    def _build_personnel_tab(self) -> QWidget:
        page = QWidget()
        layout = QVBoxLayout(page)

        self.personnel_table = RecordTable(PERSONNEL_COLUMNS, Personnel, "Ajouter une personne")
        self.personnel_table.changed.connect(self._emit_changed)
        layout.addWidget(self.personnel_table)

        self.import_personnel_button = QPushButton("Importer le personnel du projet")
        self.import_personnel_button.clicked.connect(self.import_personnel_requested)
        layout.addWidget(self.import_personnel_button, 0, Qt.AlignmentFlag.AlignLeft)
        return page

    def _build_vouchers_tab(self) -> QWidget:
        tabs = QTabWidget()
        self.voucher_tables: dict[str, RecordTable] = {}
        for attribute, label, columns, factory in VOUCHER_TABS:
            table = RecordTable(columns, factory, "Ajouter un bon")
            table.changed.connect(self._emit_changed)
            self.voucher_tables[attribute] = table
            tabs.addTab(table, label)
        return tabs

    def _build_remarks_group(self) -> QGroupBox:
        group = QGroupBox("Remarques")
        layout = QVBoxLayout(group)

        self.remarques_edit = QPlainTextEdit()
        self.remarques_edit.setPlaceholderText("Remarques du jour...")
        self.remarques_edit.setMinimumHeight(110)
        self.remarques_edit.textChanged.connect(self._emit_changed)
        layout.addWidget(self.remarques_edit)

        layout.addWidget(QLabel("Remarques du contremaître"))
        self.remarques_contremaitre_edit = QPlainTextEdit()
        self.remarques_contremaitre_edit.setMinimumHeight(80)
        self.remarques_contremaitre_edit.textChanged.connect(self._emit_changed)
        layout.addWidget(self.remarques_contremaitre_edit)

        self.visa_check = QCheckBox("Visa contremaître")
        self.visa_check.toggled.connect(self._emit_changed)
        layout.addWidget(self.visa_check)
        return group

    def load_report(self, report: Report) -> None:
        self._updating = True
        self.nom_chantier_edit.setText(report.nom_chantier)

        condition = report.meteo.condition
        if self.meteo_combo.findData(condition) < 0:
            self.meteo_combo.addItem(condition, condition)
        self.meteo_combo.setCurrentIndex(self.meteo_combo.findData(condition))
        self._temperature = report.meteo.temperature
        self.temperature_spin.setValue(report.meteo.temperature)

        for name, check in self.event_checks.items():
            check.setChecked(bool(getattr(report.evenements_particuliers, name)))

        self.personnel_table.load(report.personnel)
        self.taches_table.load(report.taches)
        self.machines_table.load(report.machines)
        for attribute, table in self.voucher_tables.items():
            table.load(getattr(report, attribute))
        self.tiers_table.load(report.tiers)

        self.remarques_edit.setPlainText(report.remarques)
        self.remarques_contremaitre_edit.setPlainText(report.remarques_contremaitre)
        self.visa_check.setChecked(report.visa_contremaitre)
        self.set_reference_hours(report.heures_reference)
        self._updating = False

    def set_reference_hours(self, hours: float | None) -> None:
        self.reference_label.setText(
            "Heures de référence : -" if hours is None else f"Heures de référence : {hours:g} h"
        )

    def set_day_events(self, events: list[SiteEvent]) -> None:
        if not events:
            self.day_events_label.setText("Événements du jour : aucun")
            return
        parts = [f"{event.start_time} {event.title}".strip() for event in events]
        self.day_events_label.setText("Événements du jour : " + ", ".join(parts))

    def apply_to(self, report: Report) -> Report:
        temperature = self.temperature_spin.value()
        # the spin box rounds; an untouched value keeps its stored precision
        if temperature == round(self._temperature, self.temperature_spin.decimals()):
            temperature = self._temperature

        changes = {
            "nom_chantier": self.nom_chantier_edit.text(),
            "meteo": Meteo(
                condition=str(self.meteo_combo.currentData() or "ensoleille"),
                temperature=temperature,
            ),
            "evenements_particuliers": EvenementsParticuliers(
                **{name: check.isChecked() for name, check in self.event_checks.items()}
            ),
            "personnel": self.personnel_table.records(),
            "taches": self.taches_table.records(),
            "machines": self.machines_table.records(),
            "tiers": self.tiers_table.records(),
            "remarques": self.remarques_edit.toPlainText(),
            "remarques_contremaitre": self.remarques_contremaitre_edit.toPlainText(),
            "visa_contremaitre": self.visa_check.isChecked(),
        }
        for attribute, table in self.voucher_tables.items():
            changes[attribute] = table.records()
        return report.with_changes(**changes)

    def _emit_changed(self, *_args) -> None:
        if self._updating:
            return
        self.content_changed.emit()
