import json

import pytest

from worldgraph.utils import settings
from worldgraph.utils.settings import TranslatorSettings, get_settings, reload_settings


@pytest.fixture
def isolated(monkeypatch, tmp_path):
    """No real config files or WORLDGRAPH_* variables; cache restored afterwards."""
    monkeypatch.setitem(settings._SETTINGS_CACHE, "settings", None)
    monkeypatch.delenv("APPDATA", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    for name in ("MAX_DEPTH", "CURVE_PRECISION", "ID_SEED", "LOG_LEVEL"):
        monkeypatch.delenv(f"WORLDGRAPH_{name}", raising=False)
    return tmp_path


def _write_config(root, data):
    path = root / "xdg" / "worldgraph" / "config.json"
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps(data) if not isinstance(data, str) else data, encoding="utf-8")
    return path

# -------------------------
# Precedence
# -------------------------

def test_defaults(isolated):
    assert reload_settings() == TranslatorSettings()

def test_config_file_layer(isolated):
    _write_config(isolated, {"curve_precision": 5, "id_seed": 11})
    s = reload_settings()
    assert s.curve_precision == 5
    assert s.id_seed == 11

def test_env_overrides_config(isolated, monkeypatch):
    _write_config(isolated, {"max_depth": 100})
    monkeypatch.setenv("WORLDGRAPH_MAX_DEPTH", "40")
    assert reload_settings().max_depth == 40

def test_explicit_overrides_win(isolated, monkeypatch):
    monkeypatch.setenv("WORLDGRAPH_MAX_DEPTH", "40")
    reload_settings()
    assert get_settings(max_depth=9).max_depth == 9
    # Overrides are per call, never cached
    assert get_settings().max_depth == 40

def test_settings_are_cached_until_reload(isolated, monkeypatch):
    first = reload_settings()
    monkeypatch.setenv("WORLDGRAPH_CURVE_PRECISION", "1")
    assert get_settings() is first
    assert reload_settings().curve_precision == 1


# -------------------------
# Invalid values fall back
# -------------------------

@pytest.mark.parametrize(
    "env, value",
    [
        ("WORLDGRAPH_MAX_DEPTH", "deep"),
        ("WORLDGRAPH_MAX_DEPTH", "0"),
        ("WORLDGRAPH_CURVE_PRECISION", "-2"),
        ("WORLDGRAPH_LOG_LEVEL", "LOUD"),
    ],
)
def test_invalid_env_values_use_defaults(isolated, monkeypatch, env, value):
    monkeypatch.setenv(env, value)
    assert reload_settings() == TranslatorSettings()

def test_log_level_is_normalised(isolated, monkeypatch):
    monkeypatch.setenv("WORLDGRAPH_LOG_LEVEL", "debug")
    assert reload_settings().log_level == "DEBUG"

def test_unreadable_config_is_ignored(isolated):
    _write_config(isolated, "{not json")
    assert reload_settings() == TranslatorSettings()

def test_non_object_config_is_ignored(isolated):
    _write_config(isolated, [1, 2, 3])
    assert reload_settings() == TranslatorSettings()
