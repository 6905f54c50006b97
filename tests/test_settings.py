"""Settings manager and env > settings.json > default precedence"""
import json

from config import conf, conf_bool
from settings import SettingsManager


def test_defaults_without_file(tmp_path):
    manager = SettingsManager(settings_file=tmp_path / "settings.json")

    assert manager.get("server.port") == 9012
    assert manager.get("listenbrainz.user") == "p0ntus"
    assert manager.get("unknown.key", "fallback") == "fallback"
    assert not (tmp_path / "settings.json").exists()


def test_loads_and_converts_saved_values(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({
        "server.port": "9100",
        "providers.lastfm.enabled": "false",
        "custom.extra": 3,
    }))

    manager = SettingsManager(settings_file=path)

    assert manager.get("server.port") == 9100
    assert manager.get("providers.lastfm.enabled") is False
    assert manager.get("custom.extra") == 3


def test_corrupted_file_is_backed_up_and_reset(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not valid json")

    manager = SettingsManager(settings_file=path)

    assert manager.get("server.port") == 9012
    assert (tmp_path / "settings.json.corrupted").exists()
    assert json.loads(path.read_text())["server.port"] == 9012


def test_env_overrides_settings(monkeypatch):
    monkeypatch.setenv("LISTENBRAINZ_USER", "someone-else")
    assert conf("listenbrainz.user", "p0ntus") == "someone-else"

    monkeypatch.delenv("LISTENBRAINZ_USER")
    assert conf("listenbrainz.user", "ignored") == "p0ntus"
    assert conf("nothing.defined.here", "default") == "default"


def test_conf_bool_parses_env_strings(monkeypatch):
    monkeypatch.setenv("PROVIDERS_LASTFM_ENABLED", "false")
    assert conf_bool("providers.lastfm.enabled", True) is False

    monkeypatch.setenv("PROVIDERS_LASTFM_ENABLED", "1")
    assert conf_bool("providers.lastfm.enabled", False) is True
