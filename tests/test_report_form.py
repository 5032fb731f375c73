from batisync.core.report import (
    BonApport,
    Meteo,
    Personnel,
    Report,
    Tache,
    TacheMachine,
    TachePersonnel,
)
from batisync.core.session import ReportSession
from batisync.ui.report_form import ReportForm

PROJECT = "P-200"
DAY = "2024-06-03"


def make_bound_form(store) -> tuple[ReportForm, ReportSession]:
    session = ReportSession(store, PROJECT, DAY, nom_chantier="Échangeur Nord", debounce_ms=10_000, periodic_ms=60_000)
    form = ReportForm()
    form.content_changed.connect(lambda: session.update_report(form.apply_to))
    form.load_report(session.load())
    return form, session


def test_toggling_a_field_back_leaves_report_clean(qapp, store) -> None:
    form, session = make_bound_form(store)

    form.visa_check.setChecked(True)
    assert session.dirty is True
    form.visa_check.setChecked(False)
    assert session.dirty is False

    form.event_checks["betonnage"].setChecked(True)
    form.event_checks["betonnage"].setChecked(False)
    assert session.dirty is False
    assert store.attempts == 0


def test_untouched_form_reproduces_stored_report(qapp, store) -> None:
    stored = Report.from_record(
        {
            "date": DAY,
            "nom_chantier": "  Échangeur Nord ",
            "meteo": {"condition": "brouillard_givrant", "temperature": 20},
            "personnel": [{"nom": "Anna Muller", "matricule": "M7", "heures_presence": 8}],
            "bons_apport": [{"fournisseur": "Holcim", "quantite": 12, "prix_unitaire": 0}],
        },
        project_id=PROJECT,
    )
    store.reports[(PROJECT, DAY)] = stored
    form, session = make_bound_form(store)

    assert form.apply_to(session.report) == session.report

    form.temperature_spin.setValue(21.0)
    form.temperature_spin.setValue(20.0)
    form.nom_chantier_edit.setText("Échangeur")
    form.nom_chantier_edit.setText("  Échangeur Nord ")
    assert session.dirty is False


def test_fractional_temperature_survives_spin_box_rounding(qapp) -> None:
    form = ReportForm()
    report = Report(project_id=PROJECT, date=DAY, meteo=Meteo(condition="nuageux", temperature=12.34))
    form.load_report(report)

    assert form.apply_to(report).meteo.temperature == 12.34


def test_editing_visible_voucher_cell_keeps_hidden_fields(qapp) -> None:
    form = ReportForm()
    report = Report(
        project_id=PROJECT,
        date=DAY,
        bons_apport=[
            BonApport(
                fournisseur="Holcim",
                numero_bon="B-12",
                quantite=18.5,
                unite="t",
                materiaux="Grave 0/45",
                lieu_chargement="Carrière",
                lieu_dechargement="Zone B",
            )
        ],
    )
    form.load_report(report)

    table = form.voucher_tables["bons_apport"].table
    table.item(0, 0).setText("Vigier")
    table.item(0, 2).setText("20,5")
    voucher = form.apply_to(report).bons_apport[0]

    assert voucher.fournisseur == "Vigier"
    assert voucher.quantite == 20.5
    assert voucher.lieu_chargement == "Carrière"
    assert voucher.lieu_dechargement == "Zone B"


def test_task_allocations_parse_and_keep_machine_details(qapp) -> None:
    form = ReportForm()
    report = Report(
        project_id=PROJECT,
        date=DAY,
        taches=[
            Tache(
                zone="Zone A",
                description="Coffrage",
                personnel=[TachePersonnel(matricule="M7", heures=4)],
                machines=[TacheMachine(numero_materiel="PEL-3", entreprise="Loxam", heures=2, remarques="location")],
            )
        ],
    )
    form.load_report(report)

    table = form.taches_table.table
    assert table.item(0, 2).text() == "M7=4"
    table.item(0, 2).setText("M7=4; M9=3,5")
    table.item(0, 3).setText("PEL-3=6; CAM-1=1")
    tache = form.apply_to(report).taches[0]

    assert tache.personnel == [TachePersonnel("M7", 4.0), TachePersonnel("M9", 3.5)]
    assert tache.machines[0] == TacheMachine("PEL-3", "Loxam", 6.0, "location")
    assert tache.machines[1] == TacheMachine(numero_materiel="CAM-1", heures=1.0)


def test_added_and_removed_rows_reach_the_report(qapp, store) -> None:
    form, session = make_bound_form(store)

    form.personnel_table.add_row()
    assert session.report.personnel == [Personnel()]
    assert session.dirty is True

    form.personnel_table.table.selectRow(0)
    form.personnel_table.remove_selected()
    assert session.report.personnel == []
    assert session.dirty is False


def test_day_events_and_reference_hours_are_displayed(qapp) -> None:
    from batisync.core.site import SiteEvent

    form = ReportForm()
    form.set_reference_hours(8.5)
    form.set_day_events([SiteEvent(title="Livraison acier", date=DAY, start_time="07:30")])

    assert "8.5 h" in form.reference_label.text()
    assert "07:30 Livraison acier" in form.day_events_label.text()
