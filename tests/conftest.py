"""Shared fixtures: every test runs against an empty config directory."""

import pytest

from lohncalc.sdk.overtime import reset_scheme_registry
from lohncalc.sdk.rates import reset_provider


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point config at a temp dir and reload rate tables and schemes per test."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    monkeypatch.setenv("LOHN_CALC_CONFIG_PATH", str(config_dir))
    monkeypatch.delenv("LOHN_CALC_RATES_PATH", raising=False)
    reset_provider()
    reset_scheme_registry()
    yield config_dir
    reset_provider()
    reset_scheme_registry()
