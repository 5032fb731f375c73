from dataclasses import replace
import json
from pathlib import Path

import pytest

from batisync.core.report import Personnel, empty_report
from batisync.core.site import ProjectMember, SiteEvent
from batisync.core.storage import LocalReportStore, StoreError


def test_save_assigns_id_once_and_overwrites_same_day(tmp_path: Path) -> None:
    store = LocalReportStore(tmp_path)
    report = empty_report("P-1", "2024-06-03", nom_chantier="Tunnel")

    first = store.save_report("P-1", report)
    second = store.save_report("P-1", report.with_changes(remarques="Reprise"))

    assert first.id
    assert second.id == first.id
    loaded = store.load_report("P-1", "2024-06-03")
    assert loaded is not None
    assert loaded.remarques == "Reprise"
    assert loaded.project_id == "P-1"
    assert len(list((tmp_path / "P-1").glob("*.json"))) == 1


def test_load_missing_report_returns_none(tmp_path: Path) -> None:
    assert LocalReportStore(tmp_path).load_report("P-1", "2024-06-03") is None


def test_load_malformed_file_raises_store_error(tmp_path: Path) -> None:
    store = LocalReportStore(tmp_path)
    path = store.report_path("P-1", "2024-06-03")
    path.parent.mkdir(parents=True)
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(StoreError):
        store.load_report("P-1", "2024-06-03")


def test_missing_project_or_bad_date_is_rejected(tmp_path: Path) -> None:
    store = LocalReportStore(tmp_path)

    with pytest.raises(StoreError):
        store.load_report("", "2024-06-03")
    with pytest.raises(StoreError):
        store.load_report("P-1", "03.06.2024")


def test_list_reports_returns_period_in_date_order(tmp_path: Path) -> None:
    store = LocalReportStore(tmp_path)
    for day in ("2024-06-05", "2024-06-01", "2024-06-03", "2024-07-01"):
        store.save_report("P-1", empty_report("P-1", day).with_changes(personnel=[Personnel(matricule="M1")]))
    (tmp_path / "P-1" / "notes.json").write_text("{}", encoding="utf-8")

    reports = store.list_reports("P-1", "2024-06-01", "2024-06-30")

    assert [report.date for report in reports] == ["2024-06-01", "2024-06-03", "2024-06-05"]
    assert store.list_reports("P-unknown", "2024-06-01", "2024-06-30") == []


def test_reference_hours_latest_covering_period_wins(tmp_path: Path) -> None:
    store = LocalReportStore(tmp_path)
    store.add_reference_hours("P-1", 8.0, "2024-01-01")
    store.add_reference_hours("P-1", 9.0, "2024-06-01", "2024-08-31")

    assert store.get_reference_hours("P-1", "2023-12-31") is None
    assert store.get_reference_hours("P-1", "2024-03-15") == 8.0
    assert store.get_reference_hours("P-1", "2024-07-01") == 9.0
    assert store.get_reference_hours("P-1", "2024-09-01") == 8.0

    stored = json.loads((tmp_path / "P-1" / "reference_hours.json").read_text(encoding="utf-8"))
    assert len(stored) == 2


def test_reference_hours_must_be_positive(tmp_path: Path) -> None:
    with pytest.raises(StoreError):
        LocalReportStore(tmp_path).add_reference_hours("P-1", 0, "2024-01-01")


def test_events_are_filtered_by_period_and_replaced_by_id(tmp_path: Path) -> None:
    store = LocalReportStore(tmp_path)
    first = store.save_event("P-1", SiteEvent(title="Livraison", date="2024-06-03", start_time="08:00"))
    store.save_event("P-1", SiteEvent(title="Réception", date="2024-06-20"))
    store.save_event("P-1", SiteEvent(title="Juillet", date="2024-07-01"))

    store.save_event("P-1", replace(first, status="completed"))
    june = store.list_events("P-1", "2024-06-01", "2024-06-30")

    assert first.id
    assert [event.title for event in june] == ["Livraison", "Réception"]
    assert june[0].status == "completed"
    assert june[0].project_id == "P-1"


def test_delete_event_removes_only_that_event(tmp_path: Path) -> None:
    store = LocalReportStore(tmp_path)
    kept = store.save_event("P-1", SiteEvent(title="Grue", date="2024-06-03"))
    dropped = store.save_event("P-1", SiteEvent(title="Pompe", date="2024-06-03"))

    store.delete_event("P-1", dropped.id)
    store.delete_event("P-1", "missing")

    assert [event.id for event in store.list_events("P-1", "2024-06-03", "2024-06-03")] == [kept.id]


def test_project_member_reactivation_keeps_id_and_start_date(tmp_path: Path) -> None:
    store = LocalReportStore(tmp_path)
    member = store.save_project_member(
        "P-1", ProjectMember(nom="Muller", prenom="Anna", matricule="M7", zone="A", date_debut="2024-01-08")
    )
    store.save_project_member("P-1", ProjectMember(nom="Berra", prenom="Marco", matricule="M3"))

    store.deactivate_project_member("P-1", member.id)
    assert [m.nom for m in store.list_project_members("P-1")] == ["Berra"]
    inactive = [m for m in store.list_project_members("P-1", include_inactive=True) if not m.active]
    assert inactive[0].date_fin

    again = store.save_project_member("P-1", ProjectMember(nom="Muller", prenom="Anna", matricule="M7"))

    assert again.id == member.id
    assert again.active is True
    assert again.zone == "A"
    assert again.date_debut == "2024-01-08"
    assert again.date_fin == ""
    assert [m.nom for m in store.list_project_members("P-1")] == ["Berra", "Muller"]


def test_deactivating_unknown_member_raises(tmp_path: Path) -> None:
    with pytest.raises(StoreError):
        LocalReportStore(tmp_path).deactivate_project_member("P-1", "nobody")


def test_side_files_are_not_listed_as_reports(tmp_path: Path) -> None:
    store = LocalReportStore(tmp_path)
    store.save_report("P-1", empty_report("P-1", "2024-06-03"))
    store.add_reference_hours("P-1", 8.0, "2024-06-01")
    store.save_event("P-1", SiteEvent(title="Grue", date="2024-06-03"))
    store.save_project_member("P-1", ProjectMember(nom="Berra", matricule="M3"))

    assert [report.date for report in store.list_reports("P-1", "2024-01-01", "2024-12-31")] == ["2024-06-03"]
