from __future__ import annotations

from dataclasses import dataclass
from datetime import date as Date
import json
import logging
import os
from pathlib import Path
import re
from typing import Any, Protocol
from uuid import uuid4

from .report import Report
from .site import STATUT_ACTIF, STATUT_INACTIF, ProjectMember, SiteEvent

logger = logging.getLogger(__name__)

REFERENCE_HOURS_FILENAME = "reference_hours.json"
EVENTS_FILENAME = "events.json"
MEMBERS_FILENAME = "personnel.json"
_UNSAFE_NAME_RE = re.compile(r"[\\/:*?\"<>|]+")


class StoreError(Exception):
    pass


class ReportStore(Protocol):
    def load_report(self, project_id: str, date: str) -> Report | None: ...

    def save_report(self, project_id: str, report: Report) -> Report: ...

    def list_reports(self, project_id: str, start_date: str, end_date: str) -> list[Report]: ...

    def get_reference_hours(self, project_id: str, date: str) -> float | None: ...

    def add_reference_hours(
        self,
        project_id: str,
        heures: float,
        date_debut: str,
        date_fin: str | None = None,
    ) -> None: ...

    def list_events(self, project_id: str, start_date: str, end_date: str) -> list[SiteEvent]: ...

    def save_event(self, project_id: str, event: SiteEvent) -> SiteEvent: ...

    def delete_event(self, project_id: str, event_id: str) -> None: ...

    def list_project_members(self, project_id: str, include_inactive: bool = False) -> list[ProjectMember]: ...

    def save_project_member(self, project_id: str, member: ProjectMember) -> ProjectMember: ...

    def deactivate_project_member(self, project_id: str, member_id: str) -> None: ...

    def close(self) -> None: ...


@dataclass(slots=True)
class ReferenceHours:
    heures: float
    date_debut: str
    date_fin: str | None = None

    def covers(self, date: str) -> bool:
        if date < self.date_debut:
            return False
        return self.date_fin is None or date <= self.date_fin


def require_project_and_date(project_id: str, date: str) -> None:
    if not project_id or not date:
        raise StoreError("project id and date are required")


def validate_iso_date(value: str) -> str:
    try:
        return Date.fromisoformat(value).isoformat()
    except ValueError as exc:
        raise StoreError(f"invalid date: {value!r}") from exc


def pick_reference_hours(entries: list[ReferenceHours], date: str) -> float | None:
    covering = [entry for entry in entries if entry.covers(date)]
    if not covering:
        return None
    covering.sort(key=lambda entry: entry.date_debut)
    return covering[-1].heures


def atomic_write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_name = f".{path.name}.{os.getpid()}.{uuid4().hex}.tmp"
    temp_path = path.parent / temp_name

    try:
        with temp_path.open("w", encoding="utf-8", newline="\n") as file:
            file.write(text)
            file.flush()
            os.fsync(file.fileno())
        os.replace(temp_path, path)
    finally:
        if temp_path.exists():
            try:
                temp_path.unlink()
            except OSError:
                pass


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise StoreError(f"cannot read {path}: {exc}") from exc


class LocalReportStore:
    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def project_dir(self, project_id: str) -> Path:
        safe = _UNSAFE_NAME_RE.sub("_", project_id).strip(". ") or "_"
        return self.root / safe

    def report_path(self, project_id: str, date: str) -> Path:
        return self.project_dir(project_id) / f"{validate_iso_date(date)}.json"

    def load_report(self, project_id: str, date: str) -> Report | None:
        require_project_and_date(project_id, date)
        path = self.report_path(project_id, date)
        if not path.exists():
            return None

        data = _read_json(path)
        if not isinstance(data, dict):
            raise StoreError(f"malformed report file: {path}")
        return Report.from_record(data, project_id=project_id, date=date)

    def save_report(self, project_id: str, report: Report) -> Report:
        require_project_and_date(project_id, report.date)
        path = self.report_path(project_id, report.date)

        record = report.to_record()
        record["project_id"] = project_id
        if not record.get("id"):
            existing = self.load_report(project_id, report.date)
            record["id"] = existing.id if existing and existing.id else str(uuid4())

        try:
            atomic_write_text(path, json.dumps(record, ensure_ascii=False, indent=2))
        except OSError as exc:
            raise StoreError(f"cannot write {path}: {exc}") from exc

        logger.debug("Report %s/%s written to %s", project_id, report.date, path)
        return Report.from_record(record, project_id=project_id, date=report.date)

    def list_reports(self, project_id: str, start_date: str, end_date: str) -> list[Report]:
        if not project_id or not start_date or not end_date:
            raise StoreError("project id, start date and end date are required")
        start = validate_iso_date(start_date)
        end = validate_iso_date(end_date)

        directory = self.project_dir(project_id)
        if not directory.is_dir():
            return []

        reports: list[Report] = []
        for file_path in sorted(directory.glob("*.json")):
            stem = file_path.stem
            if file_path.name in (REFERENCE_HOURS_FILENAME, EVENTS_FILENAME, MEMBERS_FILENAME) or not start <= stem <= end:
                continue
            try:
                Date.fromisoformat(stem)
            except ValueError:
                continue
            report = self.load_report(project_id, stem)
            if report is not None:
                reports.append(report)
        return reports

    def _read_reference_hours(self, project_id: str) -> list[ReferenceHours]:
        path = self.project_dir(project_id) / REFERENCE_HOURS_FILENAME
        if not path.exists():
            return []

        data = _read_json(path)
        entries: list[ReferenceHours] = []
        for item in data if isinstance(data, list) else []:
            if not isinstance(item, dict):
                continue
            try:
                entries.append(
                    ReferenceHours(
                        heures=float(item["heures"]),
                        date_debut=str(item["date_debut"]),
                        date_fin=item.get("date_fin") or None,
                    )
                )
            except (KeyError, TypeError, ValueError):
                continue
        return entries

    def get_reference_hours(self, project_id: str, date: str) -> float | None:
        require_project_and_date(project_id, date)
        return pick_reference_hours(self._read_reference_hours(project_id), validate_iso_date(date))

    def add_reference_hours(
        self,
        project_id: str,
        heures: float,
        date_debut: str,
        date_fin: str | None = None,
    ) -> None:
        require_project_and_date(project_id, date_debut)
        if heures <= 0:
            raise StoreError("reference hours must be positive")

        entries = self._read_reference_hours(project_id)
        entries.append(
            ReferenceHours(
                heures=float(heures),
                date_debut=validate_iso_date(date_debut),
                date_fin=validate_iso_date(date_fin) if date_fin else None,
            )
        )
        payload = [
            {"heures": entry.heures, "date_debut": entry.date_debut, "date_fin": entry.date_fin}
            for entry in entries
        ]
        path = self.project_dir(project_id) / REFERENCE_HOURS_FILENAME
        try:
            atomic_write_text(path, json.dumps(payload, ensure_ascii=False, indent=2))
        except OSError as exc:
            raise StoreError(f"cannot write {path}: {exc}") from exc

    def _read_records(self, project_id: str, filename: str) -> list[dict[str, Any]]:
        path = self.project_dir(project_id) / filename
        if not path.exists():
            return []
        data = _read_json(path)
        if not isinstance(data, list):
            raise StoreError(f"malformed file: {path}")
        return [item for item in data if isinstance(item, dict)]

    def _write_records(self, project_id: str, filename: str, records: list[dict[str, Any]]) -> None:
        path = self.project_dir(project_id) / filename
        try:
            atomic_write_text(path, json.dumps(records, ensure_ascii=False, indent=2))
        except OSError as exc:
            raise StoreError(f"cannot write {path}: {exc}") from exc

    def list_events(self, project_id: str, start_date: str, end_date: str) -> list[SiteEvent]:
        if not project_id or not start_date or not end_date:
            raise StoreError("project id, start date and end date are required")
        start = validate_iso_date(start_date)
        end = validate_iso_date(end_date)
        events = [
            SiteEvent.from_record(record, project_id=project_id)
            for record in self._read_records(project_id, EVENTS_FILENAME)
        ]
        return sorted(
            (event for event in events if start <= event.date <= end),
            key=lambda event: (event.date, event.start_time or "99:99"),
        )

    def save_event(self, project_id: str, event: SiteEvent) -> SiteEvent:
        require_project_and_date(project_id, event.date)
        validate_iso_date(event.date)
        record = event.to_record()
        record["project_id"] = project_id
        record["id"] = event.id or str(uuid4())

        records = [item for item in self._read_records(project_id, EVENTS_FILENAME) if item.get("id") != record["id"]]
        records.append(record)
        self._write_records(project_id, EVENTS_FILENAME, records)
        return SiteEvent.from_record(record, project_id=project_id)

    def delete_event(self, project_id: str, event_id: str) -> None:
        if not project_id or not event_id:
            raise StoreError("project id and event id are required")
        records = self._read_records(project_id, EVENTS_FILENAME)
        remaining = [item for item in records if item.get("id") != event_id]
        if len(remaining) == len(records):
            logger.warning("Event %s not found in project %s", event_id, project_id)
            return
        self._write_records(project_id, EVENTS_FILENAME, remaining)

    def list_project_members(self, project_id: str, include_inactive: bool = False) -> list[ProjectMember]:
        if not project_id:
            raise StoreError("project id is required")
        members = [
            ProjectMember.from_record(record, project_id=project_id)
            for record in self._read_records(project_id, MEMBERS_FILENAME)
        ]
        return sorted(
            (member for member in members if include_inactive or member.active),
            key=lambda member: (member.nom.casefold(), member.prenom.casefold()),
        )

    def save_project_member(self, project_id: str, member: ProjectMember) -> ProjectMember:
        if not project_id:
            raise StoreError("project id is required")
        records = self._read_records(project_id, MEMBERS_FILENAME)
        existing = _find_member(records, member)

        if existing is not None:
            previous = ProjectMember.from_record(existing, project_id=project_id)
            record = member.to_record()
            record.update(
                id=previous.id,
                zone=member.zone or previous.zone,
                equipe=member.equipe or previous.equipe,
                date_debut=previous.date_debut or member.date_debut,
                date_fin=None,
            )
            records.remove(existing)
        else:
            record = member.to_record()
            record["id"] = member.id or str(uuid4())
            record["date_debut"] = member.date_debut or Date.today().isoformat()
        record["project_id"] = project_id
        record["statut"] = STATUT_ACTIF

        records.append(record)
        self._write_records(project_id, MEMBERS_FILENAME, records)
        return ProjectMember.from_record(record, project_id=project_id)

    def deactivate_project_member(self, project_id: str, member_id: str) -> None:
        if not project_id or not member_id:
            raise StoreError("project id and member id are required")
        records = self._read_records(project_id, MEMBERS_FILENAME)
        for record in records:
            if record.get("id") == member_id:
                record["statut"] = STATUT_INACTIF
                record["date_fin"] = Date.today().isoformat()
                self._write_records(project_id, MEMBERS_FILENAME, records)
                return
        raise StoreError(f"unknown project member: {member_id}")

    def close(self) -> None:
        logger.debug("Local store at %s closed", self.root)


def _find_member(records: list[dict[str, Any]], member: ProjectMember) -> dict[str, Any] | None:
    for record in records:
        if member.id and record.get("id") == member.id:
            return record
    if member.matricule.strip():
        for record in records:
            if str(record.get("matricule") or "").strip() == member.matricule.strip():
                return record
    return None
