from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from .report import Report

VOUCHER_CATEGORIES: list[tuple[str, str]] = [
    ("apport", "bons_apport"),
    ("evacuation", "bons_evacuation"),
    ("beton", "bons_beton"),
    ("materiaux", "bons_materiaux"),
]


@dataclass(slots=True)
class VoucherLine:
    category: str
    fournisseur: str
    unite: str
    quantite: float = 0.0
    montant: float = 0.0
    count: int = 0


def task_hours_by_person(report: Report) -> dict[str, float]:
    totals: dict[str, float] = {person.matricule: 0.0 for person in report.personnel}
    for tache in report.taches:
        for entry in tache.personnel:
            totals[entry.matricule] = totals.get(entry.matricule, 0.0) + entry.heures
    return totals


def task_totals(report: Report) -> list[tuple[str, float]]:
    return [(tache.key, sum(entry.heures for entry in tache.personnel)) for tache in report.taches]


def machine_hours(report: Report) -> dict[str, float]:
    totals: dict[str, float] = {}
    for tache in report.taches:
        for machine in tache.machines:
            totals[machine.numero_materiel] = totals.get(machine.numero_materiel, 0.0) + machine.heures
    return totals


def voucher_summary(reports: Iterable[Report]) -> list[VoucherLine]:
    lines: dict[tuple[str, str, str], VoucherLine] = {}
    for report in reports:
        for category, attribute in VOUCHER_CATEGORIES:
            for bon in getattr(report, attribute):
                key = (category, bon.fournisseur.strip(), bon.unite.strip())
                line = lines.get(key)
                if line is None:
                    line = VoucherLine(category=category, fournisseur=key[1], unite=key[2])
                    lines[key] = line
                line.quantite += bon.quantite
                if bon.prix_unitaire is not None:
                    line.montant += bon.quantite * bon.prix_unitaire
                line.count += 1

    order = {category: index for index, (category, _) in enumerate(VOUCHER_CATEGORIES)}
    return sorted(
        lines.values(),
        key=lambda line: (order[line.category], line.fournisseur.casefold(), line.unite.casefold()),
    )


def personnel_days(reports: Iterable[Report]) -> dict[str, float]:
    totals: dict[str, float] = {}
    for report in reports:
        for person in report.personnel:
            totals[person.matricule] = totals.get(person.matricule, 0.0) + person.heures_presence
    return totals


@dataclass(slots=True)
class PersonnelLine:
    matricule: str
    nom: str = ""
    presence: float = 0.0
    taches: float = 0.0

    @property
    def ecart(self) -> float:
        return self.presence - self.taches


def personnel_recap(reports: Iterable[Report]) -> list[PersonnelLine]:
    lines: dict[str, PersonnelLine] = {}
    for report in reports:
        for person in report.personnel:
            line = lines.setdefault(person.matricule, PersonnelLine(matricule=person.matricule))
            line.nom = line.nom or person.nom
            line.presence += person.heures_presence
        for matricule, hours in task_hours_by_person(report).items():
            line = lines.setdefault(matricule, PersonnelLine(matricule=matricule))
            line.taches += hours
    return sorted(lines.values(), key=lambda line: (line.nom.casefold(), line.matricule))


def period_machine_hours(reports: Iterable[Report]) -> dict[str, float]:
    totals: dict[str, float] = {}
    for report in reports:
        for numero, hours in machine_hours(report).items():
            totals[numero] = totals.get(numero, 0.0) + hours
    return totals
