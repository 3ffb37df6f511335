from pathlib import Path

import pytest

from lifemap.src.services import config as config_module


@pytest.fixture(autouse=True)
def restore_config_cache(monkeypatch, tmp_path: Path):
    """
    Ensure configuration cache is cleared between tests.
    """
    monkeypatch.setenv("LIFEMAP_DB_PATH", str(tmp_path / "data" / "lifemap.db"))
    config_module.get_config.cache_clear()
    yield
    config_module.get_config.cache_clear()


def test_defaults(monkeypatch, tmp_path: Path) -> None:
    for key in ("SAVE_DEBOUNCE_SECONDS", "DEFAULT_TAGS", "LIFEMAP_API_URL", "LOCAL_USER_ID"):
        monkeypatch.delenv(key, raising=False)

    cfg = config_module.reload_config()

    assert cfg.save_debounce_seconds == 1.5
    assert cfg.default_tags == ("#idea", "#todo", "#goal", "#urgent")
    assert cfg.api_url == "http://localhost:8000"
    assert cfg.local_user_id == "local-dev"
    assert cfg.db_path == (tmp_path / "data" / "lifemap.db").resolve()
    assert cfg.db_path.parent.is_dir()


def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv("SAVE_DEBOUNCE_SECONDS", "0.25")
    monkeypatch.setenv("DEFAULT_TAGS", " #a, #b ,,#a")
    monkeypatch.setenv("LIFEMAP_API_URL", "https://plans.example.com/")

    cfg = config_module.reload_config()

    assert cfg.save_debounce_seconds == 0.25
    assert cfg.default_tags == ("#a", "#b")
    assert cfg.api_url == "https://plans.example.com"


def test_get_config_is_cached() -> None:
    assert config_module.get_config() is config_module.get_config()


def test_rejects_non_positive_debounce(monkeypatch) -> None:
    monkeypatch.setenv("SAVE_DEBOUNCE_SECONDS", "0")

    with pytest.raises(ValueError):
        config_module.reload_config()


def test_rejects_non_http_api_url(monkeypatch) -> None:
    monkeypatch.setenv("LIFEMAP_API_URL", "ftp://plans")

    with pytest.raises(ValueError):
        config_module.reload_config()
