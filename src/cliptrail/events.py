"""
Event delivery for Cliptrail.

The capture pipeline emits named events with a JSON-able payload:
- clipboard-changed: {text, from_app}
- screenshot-available: {image_data, width, height}
- history-updated: {count}

Sinks forward them to the desktop, a webhook, or the log.
"""

import logging
import subprocess
from typing import Any, Protocol

import httpx

logger = logging.getLogger(__name__)

CLIPBOARD_CHANGED = "clipboard-changed"
SCREENSHOT_AVAILABLE = "screenshot-available"
HISTORY_UPDATED = "history-updated"


class EventSink(Protocol):
    def emit(self, event_name: str, payload: dict[str, Any]) -> None: ...


def send_notification(title: str, body: str = "") -> None:
    """Send desktop notification via notify-send."""
    try:
        cmd = ["notify-send", title]
        if body:
            cmd.append(body)
        subprocess.run(cmd, check=False, capture_output=True)
    except OSError as e:
        # Notifications are best-effort
        logger.debug("notify-send failed: %s", e)


class LogSink:
    """Writes every event to the log."""

    def emit(self, event_name: str, payload: dict[str, Any]) -> None:
        summary = {k: v for k, v in payload.items() if k != "image_data"}
        logger.info("%s %s", event_name, summary)


class DesktopSink:
    """Desktop notifications for screenshots."""

    def emit(self, event_name: str, payload: dict[str, Any]) -> None:
        if event_name == SCREENSHOT_AVAILABLE:
            send_notification(
                "Cliptrail: Screenshot captured",
                f"{payload.get('width')}x{payload.get('height')}",
            )


class WebhookSink:
    """POSTs events as JSON to a webhook URL."""

    def __init__(self, url: str, timeout: float = 5.0, client: httpx.Client | None = None):
        self.url = url
        self.client = client or httpx.Client(timeout=timeout)

    def emit(self, event_name: str, payload: dict[str, Any]) -> None:
        try:
            response = self.client.post(self.url, json={"event": event_name, "payload": payload})
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Webhook delivery of %s failed: %s", event_name, e)


class FanoutSink:
    """Delivers each event to every child sink; one failing sink does not stop the rest."""

    def __init__(self, sinks: list[EventSink]):
        self.sinks = sinks

    def emit(self, event_name: str, payload: dict[str, Any]) -> None:
        for sink in self.sinks:
            try:
                sink.emit(event_name, payload)
            except Exception:
                logger.exception("Event sink %s failed on %s", type(sink).__name__, event_name)


def build_sink(config: dict[str, Any]) -> FanoutSink:
    """Assemble sinks from the [events] config section."""
    events_config = config.get("events", {})
    sinks: list[EventSink] = [LogSink()]

    if events_config.get("desktop_notifications", True):
        sinks.append(DesktopSink())

    if url := events_config.get("webhook_url"):
        sinks.append(WebhookSink(url))

    return FanoutSink(sinks)
