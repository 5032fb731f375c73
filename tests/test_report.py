import pytest

from batisync.core.report import (
    DEFAULT_PRESENCE_HOURS,
    BonApport,
    BonBeton,
    Meteo,
    Personnel,
    Report,
    Tache,
    TachePersonnel,
    Tiers,
    empty_report,
    prepare_for_save,
    serialize_report,
    validate_report,
)


def test_from_record_reads_table_columns_and_front_end_keys() -> None:
    record = {
        "id": "abc",
        "project_id": "P-1",
        "date": "2024-03-04",
        "nom_chantier": "Gare de Sion",
        "meteo": {"condition": "pluvieux", "temperature": 7},
        "evenements_particuliers": {"betonnage": True, "poseEnrobe": True},
        "personnel": [{"nom": "Favre", "matricule": "M7", "heuresPresence": 8.5}],
        "taches": [
            {
                "zone": "Culée nord",
                "description": "Coffrage",
                "personnel": [{"matricule": "M7", "heures": 4}],
                "machines": [{"numeroMateriel": "PEL-3", "heures": 2.5}],
            }
        ],
        "bons_beton": [{"fournisseur": "Holcim", "numeroBon": "B-12", "quantite": "6", "prixUnitaire": 180}],
        "photos": [{"name": "coffrage.jpg", "url": "https://x/y.jpg", "type": "video"}],
        "visa_contremaitre": True,
    }

    report = Report.from_record(record)

    assert report.id == "abc"
    assert report.meteo.condition == "pluvieux"
    assert report.evenements_particuliers.betonnage is True
    assert report.evenements_particuliers.pose_enrobe is True
    assert report.evenements_particuliers.essais is False
    assert report.personnel[0].heures_presence == 8.5
    assert report.taches[0].personnel[0].heures == 4.0
    assert report.taches[0].machines[0].numero_materiel == "PEL-3"
    assert report.bons_beton == [BonBeton(fournisseur="Holcim", numero_bon="B-12", quantite=6.0, prix_unitaire=180.0)]
    assert report.photos[0].id
    assert report.photos[0].type == "image"
    assert report.visa_contremaitre is True


def test_from_record_falls_back_to_defaults() -> None:
    report = Report.from_record({"meteo": None, "personnel": "oops"}, project_id="P-2", date="2024-01-02")

    assert report == empty_report("P-2", "2024-01-02")


def test_to_record_omits_empty_id_and_reference_hours() -> None:
    report = empty_report("P-1", "2024-03-04", heures_reference=8.0)

    record = report.to_record()

    assert "id" not in record
    assert "heures_reference" not in record
    assert record["meteo"] == {"condition": "ensoleille", "temperature": 20}
    assert record["bons_apport"] == []


def test_serialize_report_detects_nested_changes() -> None:
    base = empty_report("P-1", "2024-03-04")
    changed = base.with_changes(taches=[Tache(zone="A", description="Fouilles")])

    assert serialize_report(base) == serialize_report(empty_report("P-1", "2024-03-04"))
    assert serialize_report(base) != serialize_report(changed)


def test_with_changes_rejects_unknown_fields() -> None:
    with pytest.raises(TypeError):
        empty_report("P-1", "2024-03-04").with_changes(unknown_field=1)


def test_prepare_for_save_fills_missing_presence_hours() -> None:
    report = empty_report("P-1", "2024-03-04").with_changes(
        personnel=[Personnel(matricule="M1"), Personnel(matricule="M2", heures_presence=6)]
    )

    with_reference = prepare_for_save(report, 8.0)
    without_reference = prepare_for_save(report, None)

    assert [person.heures_presence for person in with_reference.personnel] == [8.0, 6]
    assert without_reference.personnel[0].heures_presence == DEFAULT_PRESENCE_HOURS
    assert report.personnel[0].heures_presence == 0.0


def test_validate_report_requires_task_zone_and_matricule() -> None:
    report = empty_report("P-1", "2024-03-04").with_changes(
        taches=[Tache(zone="", description="Nettoyage")],
        personnel=[Personnel(nom="Sans matricule")],
    )

    messages = validate_report(report)

    assert len(messages) == 2
    assert "zone" in messages[0]
    assert "matricule" in messages[1]


def test_numeric_fields_are_stored_as_floats() -> None:
    assert Meteo(temperature=20).temperature == 20.0
    assert isinstance(Meteo(temperature=20).temperature, float)
    assert isinstance(Personnel(heures_presence=8).heures_presence, float)
    assert isinstance(TachePersonnel("M1", 3).heures, float)
    assert isinstance(Tiers(heures_presence=4).heures_presence, float)

    voucher = BonApport(quantite=12, prix_unitaire=3)
    assert (voucher.quantite, voucher.prix_unitaire) == (12.0, 3.0)
    assert isinstance(voucher.quantite, float)
    assert BonApport(quantite=12).prix_unitaire is None


def test_integer_and_float_records_serialize_identically() -> None:
    from_ints = Report.from_record({"meteo": {"temperature": 20}, "personnel": [{"heures_presence": 8}]}, "P-1", "2024-03-04")
    from_floats = Report.from_record(
        {"meteo": {"temperature": 20.0}, "personnel": [{"heures_presence": 8.0}]}, "P-1", "2024-03-04"
    )

    assert serialize_report(from_ints) == serialize_report(from_floats)


def test_serialize_report_ignores_reference_hours() -> None:
    base = empty_report("P-1", "2024-03-04")

    assert serialize_report(base) == serialize_report(base.with_changes(heures_reference=7.5))
