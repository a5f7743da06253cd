"""
Surfacing module for Cliptrail.

Formats clipboard history and settings for the terminal.
"""

import os
from datetime import datetime, timezone

from cliptrail.models import CaptureEntry, CaptureType, HistoryConfig, Rule


# ANSI color codes
class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    # Bright foreground colors
    BRIGHT_BLACK = "\033[90m"  # Gray
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_YELLOW = "\033[93m"
    BRIGHT_BLUE = "\033[94m"
    BRIGHT_MAGENTA = "\033[95m"
    BRIGHT_CYAN = "\033[96m"

    @classmethod
    def enabled(cls) -> bool:
        """Check if colors should be enabled."""
        # Disable if NO_COLOR is set
        if os.environ.get("NO_COLOR"):
            return False
        return True


def c(text: str, *codes: str) -> str:
    """Apply color codes to text if colors are enabled."""
    if not Colors.enabled():
        return text
    return "".join(codes) + text + Colors.RESET


# Capture type colors
TYPE_COLORS = {
    CaptureType.TEXT: Colors.BRIGHT_CYAN,
    CaptureType.LINK: Colors.BRIGHT_BLUE,
    CaptureType.CODE: Colors.BRIGHT_GREEN,
}


def format_id(entry_id: str) -> str:
    """Format entry ID with hyphens for readability (4-3-3-3 pattern)."""
    # Remove any existing hyphens first
    clean = entry_id.replace("-", "")
    # Format as 4-3-3-3 (e.g., 1768-427-187-928)
    if len(clean) >= 13:
        return f"{clean[:4]}-{clean[4:7]}-{clean[7:10]}-{clean[10:]}"
    elif len(clean) >= 10:
        return f"{clean[:4]}-{clean[4:7]}-{clean[7:]}"
    elif len(clean) >= 7:
        return f"{clean[:4]}-{clean[4:]}"
    return clean


def preview(text: str, width: int = 60) -> str:
    """Single-line preview of captured text."""
    flat = " ".join(text.split())
    if len(flat) <= width:
        return flat
    return flat[: width - 1] + "…"


def format_age(timestamp: datetime, now: datetime | None = None) -> str:
    """Compact relative age: 12s, 5m, 3h, 2d."""
    now = now or datetime.now(timezone.utc)
    seconds = max(0, int((now - timestamp).total_seconds()))
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m"
    if seconds < 86400:
        return f"{seconds // 3600}h"
    return f"{seconds // 86400}d"


def format_entry(entry: CaptureEntry, now: datetime | None = None) -> str:
    """One line per entry: pin marker, id, type, age, preview, tags."""
    pin = c("*", Colors.BRIGHT_YELLOW) if entry.pinned else " "
    entry_id = c(format_id(entry.id), Colors.BRIGHT_BLACK)
    type_label = c(f"{entry.capture_type.value:4}", TYPE_COLORS.get(entry.capture_type, ""))
    age = c(f"{format_age(entry.timestamp, now):>4}", Colors.DIM)

    line = f"{pin} {entry_id}  {type_label}  {age}  {preview(entry.text)}"
    if entry.tags:
        line += "  " + c(" ".join(f"#{tag}" for tag in entry.tags), Colors.BRIGHT_MAGENTA)
    return line


def format_history(
    entries: list[CaptureEntry],
    capture_type: str | None = None,
    pinned_only: bool = False,
    limit: int | None = None,
) -> str:
    """Format history with optional filters."""
    if capture_type:
        entries = [e for e in entries if e.capture_type.value == capture_type]
    if pinned_only:
        entries = [e for e in entries if e.pinned]

    if not entries:
        return "No clipboard history."

    shown = entries[:limit] if limit else entries
    lines = [format_entry(entry) for entry in shown]

    if len(entries) > len(shown):
        lines.append(c(f"... and {len(entries) - len(shown)} more", Colors.DIM))

    return "\n".join(lines)


def format_config(config: HistoryConfig, rules: list[Rule]) -> str:
    """Format settings and rules."""
    minutes = config.dedup_window.total_seconds() / 60
    lines = [
        c("Cliptrail Settings", Colors.BOLD),
        "-" * 30,
        f"limit:               {config.limit}",
        f"min_text_length:     {config.min_text_length}",
        f"dedup_window:        {minutes:g} min",
        f"monitoring_enabled:  {config.monitoring_enabled}",
        f"persistence_enabled: {config.persistence_enabled}",
        "",
        c(f"Rules ({len(rules)})", Colors.BOLD),
    ]

    if not rules:
        lines.append("  (none)")
    for i, rule in enumerate(rules, 1):
        target = f" -> {rule.tag}" if rule.tag else ""
        lines.append(f"  {i}. {rule.field}~/{rule.pattern}/ {rule.action}{target}")

    return "\n".join(lines)
