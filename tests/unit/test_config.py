"""Tests for settings.json handling and directory resolution."""

import json
from pathlib import Path

import pytest

from lohncalc.sdk.config import (
    SettingsError,
    get_config_dir,
    get_default_scheme,
    get_rates_dir,
    get_setting,
    get_settings_path,
    load_settings,
    set_setting,
)
from lohncalc.sdk.errors import PayrollError


class TestConfigDir:

    def test_env_var(self, isolated_config):
        assert get_config_dir() == isolated_config
        assert get_settings_path() == isolated_config / "settings.json"

    def test_xdg_fallback(self, tmp_path, monkeypatch):
        monkeypatch.delenv("LOHN_CALC_CONFIG_PATH")
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
        assert get_config_dir() == tmp_path / "lohn-calc"


class TestSettings:

    def test_missing_file_is_empty(self):
        assert load_settings() == {}
        assert get_setting("rates_dir", "fallback") == "fallback"

    def test_set_and_get(self, isolated_config):
        path = set_setting("default_scheme", "nursing")
        assert path == isolated_config / "settings.json"
        assert json.loads(path.read_text()) == {"default_scheme": "nursing"}
        assert get_default_scheme() == "nursing"

    def test_none_removes_key(self):
        set_setting("default_scheme", "nursing")
        set_setting("default_scheme", None)
        assert load_settings() == {}
        assert get_default_scheme() == "general"

    def test_invalid_json(self, isolated_config):
        (isolated_config / "settings.json").write_text("{not json")
        with pytest.raises(SettingsError, match="Invalid settings file") as exc_info:
            load_settings()
        assert isinstance(exc_info.value, PayrollError)
        assert exc_info.value.code == "configuration"


class TestRatesDir:

    def test_none_by_default(self):
        assert get_rates_dir() is None

    def test_from_settings(self, tmp_path):
        set_setting("rates_dir", str(tmp_path))
        assert get_rates_dir() == tmp_path

    def test_home_is_expanded(self):
        set_setting("rates_dir", "~/rates")
        assert get_rates_dir() == Path.home() / "rates"

    def test_env_var_wins(self, tmp_path, monkeypatch):
        set_setting("rates_dir", str(tmp_path / "from-settings"))
        monkeypatch.setenv("LOHN_CALC_RATES_PATH", str(tmp_path / "from-env"))
        assert get_rates_dir() == tmp_path / "from-env"
