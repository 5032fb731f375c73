"""Report store backed by a Supabase project (PostgREST over HTTP)."""

from __future__ import annotations

from datetime import date as Date
import logging
from typing import Any

import httpx

from .report import Report
from .site import STATUT_ACTIF, STATUT_INACTIF, ProjectMember, SiteEvent
from .storage import StoreError, require_project_and_date

logger = logging.getLogger(__name__)

REPORTS_TABLE = "daily_reports"
REFERENCE_HOURS_TABLE = "project_reference_hours"
REFERENCE_HOURS_RPC = "get_reference_hours"
EVENTS_TABLE = "events"
MEMBERS_TABLE = "project_personnel"


class SupabaseReportStore:
    """PostgREST client for the ``daily_reports`` table.

    Saves are plain upserts on ``(project_id, date)``: the last writer wins and
    no concurrency token is sent.
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        client: httpx.Client | None = None,
        timeout: float = 30.0,
    ) -> None:
        if not url or not api_key:
            raise StoreError("Supabase url and key are required")
        self.base_url = url.rstrip("/") + "/rest/v1"
        self.api_key = api_key
        self._client = client or httpx.Client(timeout=timeout)

    def _headers(self, **extra: str) -> dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        headers.update(extra)
        return headers

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = self._client.request(method, f"{self.base_url}/{path}", **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error("Supabase %s %s failed: %s", method, path, exc.response.status_code)
            raise StoreError(f"{method} {path}: HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            logger.error("Supabase %s %s failed: %s", method, path, exc)
            raise StoreError(f"{method} {path}: {exc}") from exc

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise StoreError(f"{method} {path}: invalid JSON response") from exc

    def close(self) -> None:
        self._client.close()

    def load_report(self, project_id: str, date: str) -> Report | None:
        require_project_and_date(project_id, date)
        rows = self._request(
            "GET",
            REPORTS_TABLE,
            params={"select": "*", "project_id": f"eq.{project_id}", "date": f"eq.{date}", "limit": "1"},
            headers=self._headers(),
        )
        if not rows:
            return None
        return Report.from_record(rows[0], project_id=project_id, date=date)

    def save_report(self, project_id: str, report: Report) -> Report:
        require_project_and_date(project_id, report.date)
        record = report.to_record()
        record["project_id"] = project_id

        rows = self._request(
            "POST",
            REPORTS_TABLE,
            params={"on_conflict": "project_id,date"},
            json=record,
            headers=self._headers(Prefer="resolution=merge-duplicates,return=representation"),
        )
        if not rows:
            raise StoreError("save returned no row")
        return Report.from_record(rows[0], project_id=project_id, date=report.date)

    def list_reports(self, project_id: str, start_date: str, end_date: str) -> list[Report]:
        if not project_id or not start_date or not end_date:
            raise StoreError("project id, start date and end date are required")
        rows = self._request(
            "GET",
            REPORTS_TABLE,
            params=[
                ("select", "*"),
                ("project_id", f"eq.{project_id}"),
                ("date", f"gte.{start_date}"),
                ("date", f"lte.{end_date}"),
                ("order", "date.asc"),
            ],
            headers=self._headers(),
        )
        return [Report.from_record(row, project_id=project_id) for row in rows or []]

    def get_reference_hours(self, project_id: str, date: str) -> float | None:
        require_project_and_date(project_id, date)
        value = self._request(
            "POST",
            f"rpc/{REFERENCE_HOURS_RPC}",
            json={"p_project_id": project_id, "p_date": date},
            headers=self._headers(),
        )
        if value is None:
            return None
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise StoreError(f"unexpected reference hours value: {value!r}") from exc

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
        self._request(
            "POST",
            REFERENCE_HOURS_TABLE,
            json={"project_id": project_id, "heures": heures, "date_debut": date_debut, "date_fin": date_fin},
            headers=self._headers(Prefer="return=minimal"),
        )

    def list_events(self, project_id: str, start_date: str, end_date: str) -> list[SiteEvent]:
        if not project_id or not start_date or not end_date:
            raise StoreError("project id, start date and end date are required")
        rows = self._request(
            "GET",
            EVENTS_TABLE,
            params=[
                ("select", "*"),
                ("project_id", f"eq.{project_id}"),
                ("date", f"gte.{start_date}"),
                ("date", f"lte.{end_date}"),
                ("order", "date.asc"),
            ],
            headers=self._headers(),
        )
        return [SiteEvent.from_record(row, project_id=project_id) for row in rows or []]

    def save_event(self, project_id: str, event: SiteEvent) -> SiteEvent:
        require_project_and_date(project_id, event.date)
        record = event.to_record()
        record["project_id"] = project_id
        rows = self._request(
            "POST",
            EVENTS_TABLE,
            json=record,
            headers=self._headers(Prefer="resolution=merge-duplicates,return=representation"),
        )
        if not rows:
            raise StoreError("event save returned no row")
        return SiteEvent.from_record(rows[0], project_id=project_id)

    def delete_event(self, project_id: str, event_id: str) -> None:
        if not project_id or not event_id:
            raise StoreError("project id and event id are required")
        self._request(
            "DELETE",
            EVENTS_TABLE,
            params={"id": f"eq.{event_id}", "project_id": f"eq.{project_id}"},
            headers=self._headers(),
        )

    def list_project_members(self, project_id: str, include_inactive: bool = False) -> list[ProjectMember]:
        if not project_id:
            raise StoreError("project id is required")
        params = [("select", "*,personnel:personnel_id(*)"), ("project_id", f"eq.{project_id}")]
        if not include_inactive:
            params.append(("statut", f"eq.{STATUT_ACTIF}"))
        params.append(("order", "nom.asc"))
        rows = self._request("GET", MEMBERS_TABLE, params=params, headers=self._headers())
        return [ProjectMember.from_record(row, project_id=project_id) for row in rows or []]

    def save_project_member(self, project_id: str, member: ProjectMember) -> ProjectMember:
        if not project_id:
            raise StoreError("project id is required")
        prefer = self._headers(Prefer="return=representation")

        if member.id:
            # blank zone or team keeps the stored value
            changes: dict[str, Any] = {"statut": STATUT_ACTIF, "date_fin": None}
            for name in ("nom", "prenom", "intitule_fonction", "entreprise", "zone", "equipe"):
                value = getattr(member, name)
                if value:
                    changes[name] = value
            rows = self._request(
                "PATCH",
                MEMBERS_TABLE,
                params={"id": f"eq.{member.id}", "project_id": f"eq.{project_id}"},
                json=changes,
                headers=prefer,
            )
        else:
            record = member.to_record()
            # matricule belongs to the linked base personnel row
            record.pop("matricule", None)
            record.update(
                project_id=project_id,
                statut=STATUT_ACTIF,
                date_debut=member.date_debut or Date.today().isoformat(),
            )
            rows = self._request("POST", MEMBERS_TABLE, json=record, headers=prefer)

        if not rows:
            raise StoreError("member save returned no row")
        saved = ProjectMember.from_record(rows[0], project_id=project_id)
        if not saved.matricule:
            saved.matricule = member.matricule
        return saved

    def deactivate_project_member(self, project_id: str, member_id: str) -> None:
        if not project_id or not member_id:
            raise StoreError("project id and member id are required")
        self._request(
            "PATCH",
            MEMBERS_TABLE,
            params={"id": f"eq.{member_id}", "project_id": f"eq.{project_id}"},
            json={"statut": STATUT_INACTIF, "date_fin": Date.today().isoformat()},
            headers=self._headers(Prefer="return=minimal"),
        )
