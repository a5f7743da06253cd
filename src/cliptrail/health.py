"""
Health check module for Cliptrail.

Reports system status across all components.
"""

import platform
import shutil
from typing import Any

from cliptrail.config import get_config_path, get_default_config, get_history_path, load_config


def check_config() -> tuple[str, str]:
    """Check config.toml parses and holds valid settings."""
    config_path = get_config_path()
    if not config_path.exists():
        return "-", "Using defaults"

    try:
        from cliptrail.config import history_config_from, rules_from
        config = load_config()
        history_config_from(config)
        rules = rules_from(config)
        return "✓", f"OK ({len(rules)} rules)"
    except Exception as e:
        return "✗", f"Error: {e}"


def check_history() -> tuple[str, str]:
    """Check history file status."""
    history_path = get_history_path()
    if not history_path.exists():
        return "✓", "Empty (no history yet)"

    try:
        from cliptrail.storage import HistoryFile
        entries = HistoryFile(history_path).load()
        pinned = sum(1 for entry in entries if entry.pinned)
        return "✓", f"OK ({len(entries)} entries, {pinned} pinned)"
    except Exception as e:
        return "✗", f"Error: {e}"


def check_clipboard() -> tuple[str, str]:
    """Check the primary and secondary clipboard paths."""
    from cliptrail.clipboard import ClipboardUnavailable, CommandClipboard, SystemClipboard

    try:
        SystemClipboard().read_text()
        primary = True
    except ClipboardUnavailable:
        primary = False

    fallbacks = CommandClipboard().available()

    if primary:
        return "✓", "OK (pyperclip)"
    elif fallbacks:
        return "!", f"pyperclip unavailable, using {fallbacks[0]}"
    else:
        return "✗", "No clipboard backend"


def check_window_titles() -> tuple[str, str]:
    """Check foreground window introspection (screenshot tool detection)."""
    if platform.system() != "Linux":
        return "-", "Size heuristic only"
    if shutil.which("xdotool"):
        return "✓", "OK (xdotool)"
    return "!", "xdotool not found, size heuristic only"


def check_notifications(config: dict[str, Any]) -> tuple[str, str]:
    """Check desktop notifications."""
    if not config.get("events", {}).get("desktop_notifications", True):
        return "-", "Disabled"
    if shutil.which("notify-send"):
        return "✓", "OK (notify-send)"
    return "!", "notify-send not found"


def check_webhook(config: dict[str, Any]) -> tuple[str, str]:
    """Check webhook configuration."""
    url = config.get("events", {}).get("webhook_url")
    if not url:
        return "-", "Not configured"
    if not url.startswith(("http://", "https://")):
        return "✗", f"Invalid URL: {url}"
    return "✓", f"OK ({url})"


def run_health_check() -> dict[str, tuple[str, str]]:
    """Run all health checks."""
    try:
        config = load_config()
    except (OSError, ValueError):
        # check_config reports the error; the rest run against defaults
        config = get_default_config()

    return {
        "Config": check_config(),
        "History": check_history(),
        "Clipboard": check_clipboard(),
        "Window Titles": check_window_titles(),
        "Notifications": check_notifications(config),
        "Webhook": check_webhook(config),
    }


def format_health_report(checks: dict[str, tuple[str, str]]) -> str:
    """Format health check results."""
    lines = ["Cliptrail Health Check", "-" * 40]

    for name, (status, message) in checks.items():
        lines.append(f"{status} {name}: {message}")

    return "\n".join(lines)
