from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
import os
import time
from typing import Any

import pytest
from PySide6.QtCore import QCoreApplication
from PySide6.QtWidgets import QApplication

from batisync.core.report import Report
from batisync.core.site import STATUT_INACTIF, ProjectMember, SiteEvent
from batisync.core.storage import StoreError

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


@pytest.fixture(scope="session")
def qapp() -> QApplication:
    return QApplication.instance() or QApplication([])


def _pump(duration_ms: int) -> None:
    deadline = time.monotonic() + duration_ms / 1000
    while time.monotonic() < deadline:
        QCoreApplication.processEvents()
        time.sleep(0.002)
    QCoreApplication.processEvents()


def _wait_until(predicate: Callable[[], bool], timeout_ms: int = 2000) -> bool:
    deadline = time.monotonic() + timeout_ms / 1000
    while time.monotonic() < deadline:
        QCoreApplication.processEvents()
        if predicate():
            return True
        time.sleep(0.002)
    return predicate()


@pytest.fixture
def pump(qapp: QCoreApplication) -> Callable[[int], None]:
    return _pump


@pytest.fixture
def wait_until(qapp: QCoreApplication) -> Callable[..., bool]:
    return _wait_until


class MemoryStore:
    def __init__(self, fail_times: int = 0) -> None:
        self.fail_times = fail_times
        self.attempts = 0
        self.saved: list[Report] = []
        self.reports: dict[tuple[str, str], Report] = {}
        self.reference_hours: float | None = None
        self.load_error: str | None = None
        self.events: list[SiteEvent] = []
        self.members: list[ProjectMember] = []
        self.closed = False

    def load_report(self, project_id: str, date: str) -> Report | None:
        if self.load_error:
            raise StoreError(self.load_error)
        return self.reports.get((project_id, date))

    def save_report(self, project_id: str, report: Report) -> Report:
        self.attempts += 1
        if self.fail_times < 0 or self.attempts <= self.fail_times:
            raise StoreError("backend unavailable")
        stored = report.with_changes(id=report.id or f"rep-{project_id}-{report.date}")
        self.saved.append(stored)
        self.reports[(project_id, report.date)] = stored
        return stored

    def list_reports(self, project_id: str, start_date: str, end_date: str) -> list[Report]:
        return sorted(
            (report for (pid, day), report in self.reports.items() if pid == project_id and start_date <= day <= end_date),
            key=lambda report: report.date,
        )

    def get_reference_hours(self, project_id: str, date: str) -> float | None:
        if self.load_error:
            raise StoreError(self.load_error)
        return self.reference_hours

    def add_reference_hours(self, project_id: str, heures: float, date_debut: str, date_fin: str | None = None) -> None:
        self.reference_hours = heures

    def list_events(self, project_id: str, start_date: str, end_date: str) -> list[SiteEvent]:
        return sorted(
            (event for event in self.events if event.project_id == project_id and start_date <= event.date <= end_date),
            key=lambda event: (event.date, event.start_time),
        )

    def save_event(self, project_id: str, event: SiteEvent) -> SiteEvent:
        stored = replace(event, id=event.id or f"evt-{len(self.events) + 1}", project_id=project_id)
        self.events = [existing for existing in self.events if existing.id != stored.id] + [stored]
        return stored

    def delete_event(self, project_id: str, event_id: str) -> None:
        self.events = [event for event in self.events if event.id != event_id]

    def list_project_members(self, project_id: str, include_inactive: bool = False) -> list[ProjectMember]:
        return [member for member in self.members if include_inactive or member.active]

    def save_project_member(self, project_id: str, member: ProjectMember) -> ProjectMember:
        stored = replace(member, id=member.id or f"mem-{len(self.members) + 1}", project_id=project_id)
        self.members.append(stored)
        return stored

    def deactivate_project_member(self, project_id: str, member_id: str) -> None:
        self.members = [
            replace(member, statut=STATUT_INACTIF) if member.id == member_id else member for member in self.members
        ]

    def close(self) -> None:
        self.closed = True


class DeferredRunner:
    def __init__(self) -> None:
        self.jobs: list[tuple[Callable[[], Any], Callable[[Any], None], Callable[[Exception], None]]] = []

    @property
    def in_flight(self) -> int:
        return len(self.jobs)

    def submit(self, job: Callable[[], Any], on_success: Callable[[Any], None], on_failure: Callable[[Exception], None]) -> None:
        self.jobs.append((job, on_success, on_failure))

    def complete(self) -> None:
        job, on_success, on_failure = self.jobs.pop(0)
        try:
            result = job()
        except Exception as exc:
            on_failure(exc)
            return
        on_success(result)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def deferred_runner() -> DeferredRunner:
    return DeferredRunner()
