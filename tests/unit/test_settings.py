import json
from pathlib import Path

from nanoflow.core.settings import EngineSettings, load_settings, save_settings


def test_defaults():
    settings = EngineSettings()
    assert settings.use_cache is True
    assert settings.cache_max_entries == 50
    assert settings.cache_ttl_seconds == 24 * 60 * 60
    assert settings.default_provider == "gemini"


def test_missing_file_gives_defaults(tmp_path):
    assert load_settings(tmp_path / "nope.json") == EngineSettings()


def test_partial_file_keeps_other_defaults(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"use_cache": False, "cache_path": "~/somewhere/cache.json"}))

    settings = load_settings(path)

    assert settings.use_cache is False
    assert settings.cache_path == Path("~/somewhere/cache.json").expanduser()
    assert settings.provider_timeout == EngineSettings().provider_timeout


def test_corrupt_file_gives_defaults(tmp_path, caplog):
    path = tmp_path / "settings.json"
    path.write_text("{not json")
    assert load_settings(path) == EngineSettings()
    assert "Failed to load settings" in caplog.text


def test_save_and_load(tmp_path):
    settings = EngineSettings(
        cache_path=tmp_path / "c.json",
        cache_max_entries=10,
        provider_timeout=30.0,
    )
    path = save_settings(settings, tmp_path / "nested" / "settings.json")

    assert path.exists()
    assert load_settings(path) == settings
