"""Site calendar events and the personnel inventory of a project."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import asdict, dataclass, replace
from datetime import date as Date, timedelta
from typing import Any

from .report import Personnel, Report

EVENT_TYPES: list[tuple[str, str]] = [
    ("livraison", "Livraison"),
    ("intervention", "Intervention"),
    ("autre", "Autre"),
]
EVENT_STATUSES: list[tuple[str, str]] = [
    ("pending", "En attente"),
    ("completed", "Terminé"),
    ("cancelled", "Annulé"),
]
EVENT_PRIORITIES: list[tuple[str, str]] = [
    ("low", "Basse"),
    ("medium", "Moyenne"),
    ("high", "Haute"),
]
STATUT_ACTIF = "actif"
STATUT_INACTIF = "inactif"
DEFAULT_ENTREPRISE = "PFSA"


def _choice(value: Any, choices: list[tuple[str, str]], default: str) -> str:
    text = "" if value is None else str(value)
    return text if text in {key for key, _ in choices} else default


def _text(value: Any) -> str:
    return "" if value is None else str(value)


@dataclass(slots=True)
class SiteEvent:
    title: str
    date: str
    type: str = "autre"
    description: str = ""
    start_time: str = ""
    end_time: str = ""
    status: str = "pending"
    priority: str = "medium"
    id: str = ""
    project_id: str = ""

    @classmethod
    def from_record(cls, record: dict[str, Any], project_id: str = "") -> "SiteEvent":
        return cls(
            id=_text(record.get("id")),
            project_id=_text(record.get("project_id")) or project_id,
            title=_text(record.get("title")),
            date=_text(record.get("date")),
            type=_choice(record.get("type"), EVENT_TYPES, "autre"),
            description=_text(record.get("description")),
            start_time=_text(record.get("start_time")),
            end_time=_text(record.get("end_time")),
            status=_choice(record.get("status"), EVENT_STATUSES, "pending"),
            priority=_choice(record.get("priority"), EVENT_PRIORITIES, "medium"),
        )

    def to_record(self) -> dict[str, Any]:
        record = asdict(self)
        if not record["id"]:
            del record["id"]
        for name in ("start_time", "end_time"):
            if not record[name]:
                record[name] = None
        return record


@dataclass(slots=True)
class ProjectMember:
    nom: str = ""
    prenom: str = ""
    matricule: str = ""
    intitule_fonction: str = ""
    entreprise: str = DEFAULT_ENTREPRISE
    equipe: str = ""
    zone: str = ""
    date_debut: str = ""
    date_fin: str = ""
    statut: str = STATUT_ACTIF
    id: str = ""
    project_id: str = ""

    @property
    def active(self) -> bool:
        return self.statut == STATUT_ACTIF

    @property
    def display_name(self) -> str:
        return " ".join(part for part in (self.prenom.strip(), self.nom.strip()) if part)

    @classmethod
    def from_record(cls, record: dict[str, Any], project_id: str = "") -> "ProjectMember":
        linked = record.get("personnel") if isinstance(record.get("personnel"), dict) else {}
        return cls(
            id=_text(record.get("id")),
            project_id=_text(record.get("project_id")) or project_id,
            nom=_text(record.get("nom")) or _text(linked.get("nom")),
            prenom=_text(record.get("prenom")) or _text(linked.get("prenom")),
            matricule=_text(record.get("matricule")) or _text(linked.get("matricule")),
            intitule_fonction=_text(record.get("intitule_fonction")),
            entreprise=_text(record.get("entreprise")) or DEFAULT_ENTREPRISE,
            equipe=_text(record.get("equipe")),
            zone=_text(record.get("zone")),
            date_debut=_text(record.get("date_debut")),
            date_fin=_text(record.get("date_fin")),
            statut=_text(record.get("statut")) or STATUT_ACTIF,
        )

    def to_record(self) -> dict[str, Any]:
        record = asdict(self)
        if not record["id"]:
            del record["id"]
        if not record["date_fin"]:
            record["date_fin"] = None
        return record

    def to_personnel(self) -> Personnel:
        return Personnel(
            nom=self.display_name,
            role=self.intitule_fonction,
            matricule=self.matricule,
            entreprise=self.entreprise,
            equipe=self.equipe,
            zone=self.zone,
        )


def validate_event(event: SiteEvent) -> list[str]:
    messages: list[str] = []
    if not event.title.strip():
        messages.append("Le titre de l'événement est obligatoire.")
    try:
        Date.fromisoformat(event.date)
    except ValueError:
        messages.append("La date de l'événement est invalide.")
    if event.start_time and event.end_time and event.end_time < event.start_time:
        messages.append("L'heure de fin précède l'heure de début.")
    return messages


def events_for_date(events: Iterable[SiteEvent], date: str) -> list[SiteEvent]:
    return sorted(
        (event for event in events if event.date == date),
        key=lambda event: (event.start_time or "99:99", event.title.casefold()),
    )


def upcoming_events(events: Iterable[SiteEvent], today: str) -> list[SiteEvent]:
    tomorrow = (Date.fromisoformat(today) + timedelta(days=1)).isoformat()
    return [
        event
        for event in sorted(events, key=lambda event: (event.date, event.start_time or "99:99"))
        if event.date in (today, tomorrow) and event.status != "cancelled"
    ]


def merge_members_into_report(report: Report, members: Iterable[ProjectMember]) -> Report:
    """Append active project members missing from the report's personnel.

    Members are matched on matricule, or on name when no matricule is set.
    """
    known = {
        (person.matricule.strip() or person.nom.strip().casefold())
        for person in report.personnel
    }
    personnel = list(report.personnel)
    for member in members:
        if not member.active:
            continue
        key = member.matricule.strip() or member.display_name.casefold()
        if not key or key in known:
            continue
        known.add(key)
        personnel.append(member.to_personnel())
    if len(personnel) == len(report.personnel):
        return report
    return replace(report, personnel=personnel)
