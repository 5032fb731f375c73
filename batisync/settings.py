from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
import os
from pathlib import Path
import sys

from .core.storage import LocalReportStore, ReportStore
from .core.supabase_store import SupabaseReportStore

logger = logging.getLogger(__name__)

APP_NAME = "BatiSync"
SETTINGS_FILENAME = "settings.json"
BACKENDS = ("local", "supabase")
SUPABASE_URL_ENV = "BATISYNC_SUPABASE_URL"
SUPABASE_KEY_ENV = "BATISYNC_SUPABASE_KEY"


def get_config_dir(app_name: str = APP_NAME) -> Path:
    home = Path.home()
    if os.name == "nt":
        base = Path(os.environ.get("APPDATA", home / "AppData" / "Roaming"))
        return base / app_name
    if sys.platform == "darwin":
        return home / "Library" / "Application Support" / app_name
    base = Path(os.environ.get("XDG_CONFIG_HOME", home / ".config"))
    return base / app_name.lower()


def get_data_dir(app_name: str = APP_NAME) -> Path:
    home = Path.home()
    if os.name == "nt":
        base = Path(os.environ.get("APPDATA", home / "AppData" / "Roaming"))
        return base / app_name
    if sys.platform == "darwin":
        return home / "Library" / "Application Support" / app_name
    base = Path(os.environ.get("XDG_DATA_HOME", home / ".local" / "share"))
    return base / app_name.lower()


def _int_in_range(value: object, minimum: int, maximum: int | None = None) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    if value < minimum or (maximum is not None and value > maximum):
        return None
    return value


@dataclass(slots=True)
class AppSettings:
    backend: str = "local"
    data_directory: str = ""
    supabase_url: str = ""
    supabase_key: str = ""
    autosave_debounce_ms: int = 1000
    autosave_periodic_ms: int = 30000
    save_max_retries: int = 3
    save_retry_delay_ms: int = 5000
    last_project_id: str = ""
    recent_projects: list[str] = field(default_factory=list)
    ui_theme: str = "light"

    @classmethod
    def load(cls, path: Path | None = None) -> "AppSettings":
        path = path or get_config_dir() / SETTINGS_FILENAME
        settings = cls()
        data: dict = {}
        if path.exists():
            try:
                loaded = json.loads(path.read_text(encoding="utf-8"))
            except (json.JSONDecodeError, OSError) as exc:
                logger.warning("Ignoring unreadable settings file %s: %s", path, exc)
                loaded = {}
            data = loaded if isinstance(loaded, dict) else {}

        if data.get("backend") in BACKENDS:
            settings.backend = str(data["backend"])
        for name in ("data_directory", "supabase_url", "supabase_key", "last_project_id"):
            if isinstance(data.get(name), str):
                setattr(settings, name, data[name])

        recent_projects = data.get("recent_projects")
        if isinstance(recent_projects, list):
            settings.recent_projects = [str(item) for item in recent_projects if isinstance(item, str)]

        debounce = _int_in_range(data.get("autosave_debounce_ms"), 100)
        if debounce is not None:
            settings.autosave_debounce_ms = debounce
        periodic = _int_in_range(data.get("autosave_periodic_ms"), 1000)
        if periodic is not None:
            settings.autosave_periodic_ms = periodic
        retries = _int_in_range(data.get("save_max_retries"), 0, 10)
        if retries is not None:
            settings.save_max_retries = retries
        retry_delay = _int_in_range(data.get("save_retry_delay_ms"), 100)
        if retry_delay is not None:
            settings.save_retry_delay_ms = retry_delay

        if data.get("ui_theme") in ("dark", "light"):
            settings.ui_theme = str(data["ui_theme"])

        settings.supabase_url = os.environ.get(SUPABASE_URL_ENV, settings.supabase_url)
        settings.supabase_key = os.environ.get(SUPABASE_KEY_ENV, settings.supabase_key)
        return settings

    def save(self, path: Path | None = None) -> None:
        path = path or get_config_dir() / SETTINGS_FILENAME
        path.parent.mkdir(parents=True, exist_ok=True)

        payload = {
            "backend": self.backend,
            "data_directory": self.data_directory,
            "supabase_url": self.supabase_url,
            "supabase_key": self.supabase_key,
            "autosave_debounce_ms": self.autosave_debounce_ms,
            "autosave_periodic_ms": self.autosave_periodic_ms,
            "save_max_retries": self.save_max_retries,
            "save_retry_delay_ms": self.save_retry_delay_ms,
            "last_project_id": self.last_project_id,
            "recent_projects": self.recent_projects[:20],
            "ui_theme": self.ui_theme,
        }
        path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")

    def touch_recent_project(self, project_id: str, max_items: int = 10) -> None:
        normalized = project_id.strip()
        if not normalized:
            return
        if normalized in self.recent_projects:
            self.recent_projects.remove(normalized)
        self.recent_projects.insert(0, normalized)
        self.recent_projects = self.recent_projects[:max_items]
        self.last_project_id = normalized

    def reports_directory(self) -> Path:
        if self.data_directory:
            return Path(self.data_directory)
        return get_data_dir() / "reports"


def build_store(settings: AppSettings) -> ReportStore:
    if settings.backend == "supabase":
        return SupabaseReportStore(settings.supabase_url, settings.supabase_key)
    return LocalReportStore(settings.reports_directory())
