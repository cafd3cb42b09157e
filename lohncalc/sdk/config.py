"""Configuration management for Lohn Calc.

Configuration lives in a single settings.json in the config directory:
   - rates_dir: extra directory of <year>.yaml rate tables
   - default_scheme: surcharge scheme used when none is given

Config directory resolution:
1. LOHN_CALC_CONFIG_PATH environment variable (if set)
2. ~/.config/lohn-calc/ (XDG_CONFIG_HOME fallback)

Rates directory resolution:
1. LOHN_CALC_RATES_PATH environment variable (if set)
2. settings.json "rates_dir" key
3. None (only the packaged tables are used)
"""

import json
import os
from pathlib import Path
from typing import Any, Optional

from .errors import ConfigurationError

APP_NAME = "lohn-calc"
SETTINGS_FILENAME = "settings.json"
DEFAULT_SCHEME = "general"


class SettingsError(ConfigurationError):
    """Raised when settings.json exists but cannot be read."""
    pass


def get_config_dir() -> Path:
    """Get the configuration directory path.

    Resolution order:
    1. LOHN_CALC_CONFIG_PATH environment variable
    2. ~/.config/lohn-calc/ (XDG_CONFIG_HOME)
    """
    env_path = os.environ.get("LOHN_CALC_CONFIG_PATH")
    if env_path:
        return Path(env_path)

    xdg_config_home = os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")
    return Path(xdg_config_home) / APP_NAME


def get_settings_path() -> Path:
    """Get the path to settings.json (may not exist yet)."""
    return get_config_dir() / SETTINGS_FILENAME


def load_settings() -> dict:
    """Load settings from settings.json.

    Returns:
        Settings dictionary (empty dict if file doesn't exist)

    Raises:
        SettingsError: If the file exists but is not valid JSON
    """
    settings_file = get_settings_path()

    if not settings_file.exists():
        return {}

    try:
        with open(settings_file, "r") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise SettingsError(f"Invalid settings file {settings_file}: {e}") from e


def save_settings(settings: dict) -> Path:
    """Save settings to settings.json.

    Returns:
        Path to the saved settings file
    """
    config_dir = get_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)

    settings_file = config_dir / SETTINGS_FILENAME

    with open(settings_file, "w") as f:
        json.dump(settings, f, indent=2)

    return settings_file


def get_setting(key: str, default: Any = None) -> Any:
    """Get a setting value from settings.json."""
    settings = load_settings()
    return settings.get(key, default)


def set_setting(key: str, value: Any) -> Path:
    """Set a setting value in settings.json.

    A value of None removes the key.
    """
    settings = load_settings()
    if value is None:
        settings.pop(key, None)
    else:
        settings[key] = value
    return save_settings(settings)


def get_rates_dir() -> Optional[Path]:
    """Get the extra rate-table directory, if one is configured."""
    env_path = os.environ.get("LOHN_CALC_RATES_PATH")
    if env_path:
        return Path(env_path)

    configured = get_setting("rates_dir")
    if configured:
        return Path(configured).expanduser()

    return None


def get_default_scheme() -> str:
    """Get the surcharge scheme name used when none is given."""
    return get_setting("default_scheme", DEFAULT_SCHEME)
