import json
import os

import pytest

from config import ConfigManager
from errors import ConfigError


def test_ensure_config_writes_defaults(tmp_path):
    path = tmp_path / "config.json"
    cfg_mgr = ConfigManager(str(path))

    cfg_mgr.ensure_config()

    data = json.loads(path.read_text())
    assert data["speaking_rate"] == 0.8
    assert data["pause_ms"] == 500
    assert data["model_name"] == "gemini-2.0-flash"
    assert data["refresh_token_on_unauthorized"] is True


def test_ensure_config_keeps_secrets_out_of_the_file(tmp_path, monkeypatch):
    monkeypatch.setenv("GOOGLE_TTS_CREDENTIALS", "/secure/sa.json")
    monkeypatch.setenv("GEMINI_API_KEY", "env-key")
    path = tmp_path / "config.json"
    cfg_mgr = ConfigManager(str(path))

    cfg_mgr.ensure_config()

    data = json.loads(path.read_text())
    assert data["credentials_path"] == ""
    assert data["gemini_api_key"] == ""
    assert "env-key" not in path.read_text()

    cfg = cfg_mgr.load()
    assert cfg["credentials_path"] == "/secure/sa.json"
    assert cfg["gemini_api_key"] == "env-key"


def test_load_merges_defaults_and_resolves_paths(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"tables_dir": "lessons", "request_timeout": 15}))

    cfg = ConfigManager(str(path)).load()

    assert cfg["tables_dir"] == os.path.join(str(tmp_path), "lessons")
    assert cfg["output_dir"] == os.path.join(str(tmp_path), "output")
    assert cfg["request_timeout"] == 15
    assert cfg["speaking_rate"] == 0.8


def test_empty_settings_fall_back_to_env(tmp_path, monkeypatch):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"credentials_path": "", "gemini_api_key": ""}))
    monkeypatch.setenv("GOOGLE_TTS_CREDENTIALS", "/secure/sa.json")
    monkeypatch.setenv("GEMINI_API_KEY", "env-key")

    cfg = ConfigManager(str(path)).load()

    assert cfg["credentials_path"] == "/secure/sa.json"
    assert cfg["gemini_api_key"] == "env-key"


def test_invalid_json_is_config_error(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{broken")

    with pytest.raises(ConfigError):
        ConfigManager(str(path)).load()


def test_require():
    cfg = {"credentials_path": "", "gemini_api_key": "k", "tables_dir": None}

    assert ConfigManager.require(cfg, "gemini_api_key") == "k"
    with pytest.raises(ConfigError, match="GOOGLE_TTS_CREDENTIALS"):
        ConfigManager.require(cfg, "credentials_path")
    with pytest.raises(ConfigError, match="tables_dir"):
        ConfigManager.require(cfg, "tables_dir")
