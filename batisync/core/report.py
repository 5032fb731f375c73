from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields, replace
import json
import re
from typing import Any
from uuid import uuid4

METEO_CONDITIONS: list[tuple[str, str]] = [
    ("ensoleille", "Ensoleillé"),
    ("nuageux", "Nuageux"),
    ("pluvieux", "Pluvieux"),
    ("orageux", "Orageux"),
]
DEFAULT_PRESENCE_HOURS = 7.5

_CAMEL_RE = re.compile(r"_([a-z])")


def _camel(name: str) -> str:
    return _CAMEL_RE.sub(lambda match: match.group(1).upper(), name)


def _pick(data: dict[str, Any], name: str, default: Any = None) -> Any:
    if name in data and data[name] is not None:
        return data[name]
    camel = _camel(name)
    if camel in data and data[camel] is not None:
        return data[camel]
    return default


def _as_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_str(value: Any) -> str:
    return "" if value is None else str(value)


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> list[Any]:
    return [item for item in value if isinstance(item, dict)] if isinstance(value, list) else []


def _floats(instance: Any, *names: str) -> None:
    for name in names:
        value = getattr(instance, name)
        if value is not None:
            setattr(instance, name, float(value))


@dataclass(slots=True)
class Meteo:
    condition: str = "ensoleille"
    temperature: float = 20.0

    def __post_init__(self) -> None:
        _floats(self, "temperature")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Meteo":
        condition = _as_str(data.get("condition")) or "ensoleille"
        return cls(condition=condition, temperature=_as_float(data.get("temperature"), 20.0))


@dataclass(slots=True)
class EvenementsParticuliers:
    betonnage: bool = False
    essais: bool = False
    pose_enrobe: bool = False
    controle_ext_int: bool = False
    reception: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EvenementsParticuliers":
        return cls(**{item.name: bool(_pick(data, item.name, False)) for item in fields(cls)})


@dataclass(slots=True)
class Personnel:
    nom: str = ""
    role: str = ""
    matricule: str = ""
    entreprise: str = ""
    equipe: str = ""
    zone: str = ""
    heures_presence: float = 0.0

    def __post_init__(self) -> None:
        _floats(self, "heures_presence")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Personnel":
        return cls(
            nom=_as_str(data.get("nom")),
            role=_as_str(data.get("role")),
            matricule=_as_str(data.get("matricule")),
            entreprise=_as_str(data.get("entreprise")),
            equipe=_as_str(data.get("equipe")),
            zone=_as_str(data.get("zone")),
            heures_presence=_as_float(_pick(data, "heures_presence")),
        )


@dataclass(slots=True)
class TachePersonnel:
    matricule: str = ""
    heures: float = 0.0

    def __post_init__(self) -> None:
        _floats(self, "heures")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TachePersonnel":
        return cls(matricule=_as_str(data.get("matricule")), heures=_as_float(data.get("heures")))


@dataclass(slots=True)
class TacheMachine:
    numero_materiel: str = ""
    entreprise: str = ""
    heures: float = 0.0
    remarques: str = ""

    def __post_init__(self) -> None:
        _floats(self, "heures")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TacheMachine":
        return cls(
            numero_materiel=_as_str(_pick(data, "numero_materiel")),
            entreprise=_as_str(data.get("entreprise")),
            heures=_as_float(data.get("heures")),
            remarques=_as_str(data.get("remarques")),
        )


@dataclass(slots=True)
class Tache:
    zone: str = ""
    description: str = ""
    personnel: list[TachePersonnel] = field(default_factory=list)
    machines: list[TacheMachine] = field(default_factory=list)

    @property
    def key(self) -> str:
        return f"{self.zone}-{self.description}"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Tache":
        return cls(
            zone=_as_str(data.get("zone")),
            description=_as_str(data.get("description")),
            personnel=[TachePersonnel.from_dict(item) for item in _as_list(data.get("personnel"))],
            machines=[TacheMachine.from_dict(item) for item in _as_list(data.get("machines"))],
        )


@dataclass(slots=True)
class Machine:
    nom: str = ""
    type: str = ""
    numero_materiel: str = ""
    entreprise: str = ""
    quantite: int = 1
    remarques: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Machine":
        return cls(
            nom=_as_str(data.get("nom")),
            type=_as_str(data.get("type")),
            numero_materiel=_as_str(_pick(data, "numero_materiel")),
            entreprise=_as_str(data.get("entreprise")),
            quantite=_as_int(data.get("quantite"), 1),
            remarques=_as_str(data.get("remarques")),
        )


@dataclass(slots=True)
class BonApport:
    fournisseur: str = ""
    numero_bon: str = ""
    quantite: float = 0.0
    unite: str = ""
    prix_unitaire: float | None = None
    materiaux: str = ""
    lieu_chargement: str = ""
    lieu_dechargement: str = ""
    type_camion: str = ""

    def __post_init__(self) -> None:
        _floats(self, "quantite", "prix_unitaire")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BonApport":
        return cls(**_voucher_kwargs(cls, data))


@dataclass(slots=True)
class BonEvacuation:
    fournisseur: str = ""
    numero_bon: str = ""
    quantite: float = 0.0
    unite: str = ""
    prix_unitaire: float | None = None
    materiaux: str = ""
    lieu_chargement: str = ""
    lieu_dechargement: str = ""
    type_camion: str = ""

    def __post_init__(self) -> None:
        _floats(self, "quantite", "prix_unitaire")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BonEvacuation":
        return cls(**_voucher_kwargs(cls, data))


@dataclass(slots=True)
class BonBeton:
    fournisseur: str = ""
    numero_bon: str = ""
    quantite: float = 0.0
    unite: str = ""
    prix_unitaire: float | None = None
    articles: str = ""
    type_fourniture: str = ""
    type_camion: str = ""

    def __post_init__(self) -> None:
        _floats(self, "quantite", "prix_unitaire")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BonBeton":
        return cls(**_voucher_kwargs(cls, data))


@dataclass(slots=True)
class BonMateriaux:
    fournisseur: str = ""
    numero_bon: str = ""
    quantite: float = 0.0
    unite: str = ""
    prix_unitaire: float | None = None
    fournitures: str = ""

    def __post_init__(self) -> None:
        _floats(self, "quantite", "prix_unitaire")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BonMateriaux":
        return cls(**_voucher_kwargs(cls, data))


def _voucher_kwargs(cls: type, data: dict[str, Any]) -> dict[str, Any]:
    kwargs: dict[str, Any] = {}
    for item in fields(cls):
        value = _pick(data, item.name)
        if item.name == "quantite":
            kwargs[item.name] = _as_float(value)
        elif item.name == "prix_unitaire":
            kwargs[item.name] = None if value in (None, "") else _as_float(value)
        else:
            kwargs[item.name] = _as_str(value)
    return kwargs


@dataclass(slots=True)
class Tiers:
    entreprise: str = ""
    activite: str = ""
    nombre_personnes: int = 0
    heures_presence: float = 0.0
    zone: str = ""

    def __post_init__(self) -> None:
        _floats(self, "heures_presence")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Tiers":
        return cls(
            entreprise=_as_str(data.get("entreprise")),
            activite=_as_str(data.get("activite")),
            nombre_personnes=_as_int(_pick(data, "nombre_personnes")),
            heures_presence=_as_float(_pick(data, "heures_presence")),
            zone=_as_str(data.get("zone")),
        )


@dataclass(slots=True)
class Photo:
    id: str = ""
    name: str = ""
    url: str = ""
    thumbnail_url: str = ""
    type: str = "image"
    size: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Photo":
        photo_type = _as_str(data.get("type"))
        return cls(
            id=_as_str(data.get("id")) or str(uuid4()),
            name=_as_str(data.get("name")),
            url=_as_str(data.get("url")),
            thumbnail_url=_as_str(_pick(data, "thumbnail_url")),
            type=photo_type if photo_type in ("image", "pdf") else "image",
            size=_as_int(data.get("size")),
        )


@dataclass(slots=True)
class Report:
    project_id: str
    date: str
    id: str = ""
    nom_chantier: str = ""
    heures_reference: float | None = None
    meteo: Meteo = field(default_factory=Meteo)
    evenements_particuliers: EvenementsParticuliers = field(default_factory=EvenementsParticuliers)
    personnel: list[Personnel] = field(default_factory=list)
    taches: list[Tache] = field(default_factory=list)
    machines: list[Machine] = field(default_factory=list)
    bons_apport: list[BonApport] = field(default_factory=list)
    bons_evacuation: list[BonEvacuation] = field(default_factory=list)
    bons_beton: list[BonBeton] = field(default_factory=list)
    bons_materiaux: list[BonMateriaux] = field(default_factory=list)
    tiers: list[Tiers] = field(default_factory=list)
    remarques: str = ""
    photos: list[Photo] = field(default_factory=list)
    remarques_contremaitre: str = ""
    visa_contremaitre: bool = False

    @classmethod
    def from_record(cls, record: dict[str, Any], project_id: str = "", date: str = "") -> "Report":
        heures_reference = _pick(record, "heures_reference")
        return cls(
            project_id=_as_str(record.get("project_id")) or project_id,
            date=_as_str(record.get("date")) or date,
            id=_as_str(record.get("id")),
            nom_chantier=_as_str(_pick(record, "nom_chantier")),
            heures_reference=None if heures_reference is None else _as_float(heures_reference),
            meteo=Meteo.from_dict(_as_dict(record.get("meteo"))),
            evenements_particuliers=EvenementsParticuliers.from_dict(
                _as_dict(_pick(record, "evenements_particuliers"))
            ),
            personnel=[Personnel.from_dict(item) for item in _as_list(record.get("personnel"))],
            taches=[Tache.from_dict(item) for item in _as_list(record.get("taches"))],
            machines=[Machine.from_dict(item) for item in _as_list(record.get("machines"))],
            bons_apport=[BonApport.from_dict(item) for item in _as_list(_pick(record, "bons_apport"))],
            bons_evacuation=[BonEvacuation.from_dict(item) for item in _as_list(_pick(record, "bons_evacuation"))],
            bons_beton=[BonBeton.from_dict(item) for item in _as_list(_pick(record, "bons_beton"))],
            bons_materiaux=[BonMateriaux.from_dict(item) for item in _as_list(_pick(record, "bons_materiaux"))],
            tiers=[Tiers.from_dict(item) for item in _as_list(record.get("tiers"))],
            remarques=_as_str(record.get("remarques")),
            photos=[Photo.from_dict(item) for item in _as_list(record.get("photos"))],
            remarques_contremaitre=_as_str(_pick(record, "remarques_contremaitre")),
            visa_contremaitre=bool(_pick(record, "visa_contremaitre", False)),
        )

    def to_record(self) -> dict[str, Any]:
        record = asdict(self)
        if not record["id"]:
            del record["id"]
        del record["heures_reference"]
        return record

    def with_changes(self, **changes: Any) -> "Report":
        return replace(self, **changes)


def empty_report(
    project_id: str,
    date: str,
    nom_chantier: str = "",
    heures_reference: float | None = None,
) -> Report:
    return Report(
        project_id=project_id,
        date=date,
        nom_chantier=nom_chantier,
        heures_reference=heures_reference,
    )


def serialize_report(report: Report) -> str:
    data = asdict(report)
    # display-only, never persisted
    del data["heures_reference"]
    return json.dumps(data, sort_keys=True, ensure_ascii=False)


def prepare_for_save(report: Report, heures_reference: float | None) -> Report:
    default_hours = heures_reference or DEFAULT_PRESENCE_HOURS
    personnel = [
        replace(person, heures_presence=person.heures_presence or default_hours)
        for person in report.personnel
    ]
    return replace(report, personnel=personnel)


def validate_report(report: Report) -> list[str]:
    messages: list[str] = []
    for index, tache in enumerate(report.taches, start=1):
        if not tache.zone.strip():
            messages.append(f"Tâche {index} : la zone est obligatoire.")
    for index, person in enumerate(report.personnel, start=1):
        if not person.matricule.strip():
            messages.append(f"Personnel {index} : le matricule est obligatoire.")
    return messages
