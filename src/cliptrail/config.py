"""
Configuration management for Cliptrail.

Uses XDG base directories:
- Config: ~/.config/cliptrail/config.toml
- Data: ~/.local/share/cliptrail/ (history.json, settings.json, app_copy.json)
"""

from datetime import timedelta
from pathlib import Path
from typing import Any
import os

from cliptrail.models import HistoryConfig, Rule

# XDG defaults
DEFAULT_CONFIG_HOME = Path.home() / ".config"
DEFAULT_DATA_HOME = Path.home() / ".local" / "share"


def get_config_dir() -> Path:
    """Get the config directory (XDG_CONFIG_HOME/cliptrail)."""
    base = Path(os.environ.get("XDG_CONFIG_HOME", DEFAULT_CONFIG_HOME))
    return base / "cliptrail"


def get_cliptrail_home() -> Path:
    """Get the data directory (XDG_DATA_HOME/cliptrail or CLIPTRAIL_HOME)."""
    if env_home := os.environ.get("CLIPTRAIL_HOME"):
        return Path(env_home)
    base = Path(os.environ.get("XDG_DATA_HOME", DEFAULT_DATA_HOME))
    return base / "cliptrail"


def get_config_path() -> Path:
    """Get the path to config.toml."""
    return get_config_dir() / "config.toml"


def get_history_path() -> Path:
    """Get the path to history.json."""
    return get_cliptrail_home() / "history.json"


def get_settings_path() -> Path:
    """Get the path to settings.json (runtime overrides)."""
    return get_cliptrail_home() / "settings.json"


def get_app_copy_path() -> Path:
    """Get the path to app_copy.json (text last restored to the clipboard)."""
    return get_cliptrail_home() / "app_copy.json"


def ensure_dirs() -> None:
    """Ensure all required directories exist."""
    get_config_dir().mkdir(parents=True, exist_ok=True)
    get_cliptrail_home().mkdir(parents=True, exist_ok=True)


def load_config() -> dict[str, Any]:
    """
    Load configuration from config.toml.

    Returns default config if file doesn't exist. Missing sections in the
    file fall back to their defaults.
    """
    config_path = get_config_path()

    if not config_path.exists():
        return get_default_config()

    # Lazy import tomli only when needed
    import tomli

    with open(config_path, "rb") as f:
        loaded = tomli.load(f)

    config = get_default_config()
    for section, values in loaded.items():
        if isinstance(values, dict) and isinstance(config.get(section), dict):
            config[section].update(values)
        else:
            config[section] = values
    return config


def get_default_config() -> dict[str, Any]:
    """Return default configuration."""
    return {
        "cliptrail": {
            "home": str(get_cliptrail_home()),
        },
        "history": {
            "limit": 100,
            "min_text_length": 3,
            "dedup_window_minutes": 5,
            "persistence_enabled": True,
            "monitoring_enabled": True,
        },
        "capture": {
            "poll_interval_ms": 500,
            "screenshot_window_seconds": 5,
        },
        "events": {
            "desktop_notifications": True,
            "webhook_url": "",
        },
        "rules": [],
    }


def history_config_from(config: dict[str, Any]) -> HistoryConfig:
    """Build a validated HistoryConfig from the [history] section."""
    section = config.get("history", {})
    return HistoryConfig(
        limit=section.get("limit", 100),
        min_text_length=section.get("min_text_length", 3),
        dedup_window=timedelta(minutes=section.get("dedup_window_minutes", 5)),
        persistence_enabled=section.get("persistence_enabled", True),
        monitoring_enabled=section.get("monitoring_enabled", True),
    )


def rules_from(config: dict[str, Any]) -> list[Rule]:
    """Build Rule objects from the [[rules]] array."""
    return [Rule(**rule) for rule in config.get("rules", [])]


def poll_interval_from(config: dict[str, Any]) -> float:
    """Polling interval in seconds."""
    return config.get("capture", {}).get("poll_interval_ms", 500) / 1000
