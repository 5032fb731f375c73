import json
from pathlib import Path

import pytest

from batisync.core.storage import LocalReportStore, StoreError
from batisync.settings import SUPABASE_KEY_ENV, SUPABASE_URL_ENV, AppSettings, build_store


@pytest.fixture(autouse=True)
def clear_supabase_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(SUPABASE_URL_ENV, raising=False)
    monkeypatch.delenv(SUPABASE_KEY_ENV, raising=False)


def test_missing_file_gives_defaults(tmp_path: Path) -> None:
    settings = AppSettings.load(tmp_path / "settings.json")

    assert settings.backend == "local"
    assert settings.autosave_debounce_ms == 1000
    assert settings.autosave_periodic_ms == 30000
    assert settings.save_max_retries == 3
    assert settings.recent_projects == []


def test_invalid_values_fall_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(
        json.dumps(
            {
                "backend": "ftp",
                "autosave_debounce_ms": 5,
                "autosave_periodic_ms": "often",
                "save_max_retries": 50,
                "save_retry_delay_ms": True,
                "ui_theme": "neon",
                "recent_projects": ["P-1", 4, "P-2"],
            }
        ),
        encoding="utf-8",
    )

    settings = AppSettings.load(path)

    assert settings.backend == "local"
    assert settings.autosave_debounce_ms == 1000
    assert settings.autosave_periodic_ms == 30000
    assert settings.save_max_retries == 3
    assert settings.save_retry_delay_ms == 5000
    assert settings.ui_theme == "light"
    assert settings.recent_projects == ["P-1", "P-2"]


def test_unreadable_file_is_ignored(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{broken", encoding="utf-8")

    assert AppSettings.load(path).backend == "local"


def test_save_and_load_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "settings.json"
    settings = AppSettings(backend="supabase", supabase_url="https://x.supabase.co", save_max_retries=5)
    settings.touch_recent_project("P-1")
    settings.touch_recent_project("P-2")
    settings.touch_recent_project("P-1")
    settings.save(path)

    loaded = AppSettings.load(path)

    assert loaded.backend == "supabase"
    assert loaded.supabase_url == "https://x.supabase.co"
    assert loaded.save_max_retries == 5
    assert loaded.recent_projects == ["P-1", "P-2"]
    assert loaded.last_project_id == "P-1"


def test_environment_overrides_supabase_credentials(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(SUPABASE_URL_ENV, "https://env.supabase.co")
    monkeypatch.setenv(SUPABASE_KEY_ENV, "env-key")

    settings = AppSettings.load(tmp_path / "settings.json")

    assert settings.supabase_url == "https://env.supabase.co"
    assert settings.supabase_key == "env-key"


def test_build_store_uses_data_directory(tmp_path: Path) -> None:
    store = build_store(AppSettings(data_directory=str(tmp_path)))

    assert isinstance(store, LocalReportStore)
    assert store.root == tmp_path


def test_build_store_requires_supabase_credentials() -> None:
    with pytest.raises(StoreError):
        build_store(AppSettings(backend="supabase"))
