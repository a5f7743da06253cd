"""
Capture pipeline for Cliptrail.

Polls the clipboard on a fixed interval and turns each qualifying change
into a history entry:

    read -> classify -> length filter -> hash -> rules -> insert -> persist -> emit

Command handlers (pin, delete, clear, restore, settings) run concurrently
with the poller. Each shared resource has its own lock; the history store
synchronizes itself.

A `cliptrail` command and a running watcher are separate pipelines over
the same data directory. Before every history change a pipeline reloads
history.json and settings.json if the other process saved them, and text
restored by one process is marked in app_copy.json for the other's poller.
"""

import logging
import threading
import time
from datetime import datetime, timedelta
from typing import Any, Callable, Iterable

from pydantic import ValidationError

from cliptrail.classifier import auto_tags, classify
from cliptrail.clipboard import (
    ClipboardReader,
    ClipboardUnavailable,
    CommandClipboard,
    NullWindowInspector,
    SystemClipboard,
    WindowInspector,
    default_window_inspector,
    encode_png,
)
from cliptrail.config import history_config_from, load_config, poll_interval_from, rules_from
from cliptrail.events import (
    CLIPBOARD_CHANGED,
    HISTORY_UPDATED,
    SCREENSHOT_AVAILABLE,
    EventSink,
    LogSink,
    build_sink,
)
from cliptrail.history import HistoryStore
from cliptrail.models import CaptureEntry, CaptureType, HistoryConfig, ImageData, Rule, utcnow
from cliptrail.normalizer import bytes_hash, content_hash
from cliptrail.rules import evaluate
from cliptrail.screenshot import ScreenshotDetector
from cliptrail.storage import AppCopyFile, HistoryFile, SettingsFile

logger = logging.getLogger(__name__)

# Types that bypass the minimum length filter
ALWAYS_KEEP_TYPES = (CaptureType.CODE, CaptureType.LINK)


class CapturePipeline:
    """Clipboard poller and the command surface over the history."""

    def __init__(
        self,
        clipboard: ClipboardReader,
        store: HistoryStore | None = None,
        sink: EventSink | None = None,
        window: WindowInspector | None = None,
        persistence: HistoryFile | None = None,
        settings_file: SettingsFile | None = None,
        app_copies: AppCopyFile | None = None,
        config: HistoryConfig | None = None,
        rules: Iterable[Rule] | None = None,
        fallback_clipboard: ClipboardReader | None = None,
        detector: ScreenshotDetector | None = None,
        poll_interval: float = 0.5,
        clock: Callable[[], datetime] = utcnow,
        image_encoder: Callable[[ImageData], str] = encode_png,
    ):
        if config is None:
            config = HistoryConfig() if store is None else HistoryConfig(
                limit=store.limit, dedup_window=store.dedup_window
            )
        if store is None:
            store = HistoryStore(limit=config.limit, dedup_window=config.dedup_window)
        else:
            store.set_limit(config.limit)
            store.set_dedup_window(config.dedup_window)

        self.clipboard = clipboard
        self.fallback_clipboard = fallback_clipboard
        self.store = store
        self.sink = sink or LogSink()
        self.window = window or NullWindowInspector()
        self.persistence = persistence
        self.settings_file = settings_file
        self.app_copies = app_copies
        self.detector = detector or ScreenshotDetector()
        self.poll_interval = poll_interval
        self.clock = clock
        self.image_encoder = image_encoder

        # Settings not owned by the store
        self._settings_lock = threading.Lock()
        self._min_text_length = config.min_text_length
        self._monitoring_enabled = config.monitoring_enabled
        self._persistence_enabled = config.persistence_enabled

        self._rules_lock = threading.Lock()
        self._rules: list[Rule] = list(rules or [])

        # What the poller has already seen
        self._state_lock = threading.Lock()
        self._last_text: str | None = None
        self._last_app_copy: str | None = None
        self._last_image_hash: str | None = None

        self._update_lock = threading.Lock()
        self._persist_lock = threading.Lock()
        self._thread: threading.Thread | None = None

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    @property
    def limit(self) -> int:
        return self.store.limit

    @property
    def dedup_window(self) -> timedelta:
        return self.store.dedup_window

    @property
    def min_text_length(self) -> int:
        with self._settings_lock:
            return self._min_text_length

    @property
    def monitoring_enabled(self) -> bool:
        with self._settings_lock:
            return self._monitoring_enabled

    @property
    def persistence_enabled(self) -> bool:
        with self._settings_lock:
            return self._persistence_enabled

    @property
    def rules(self) -> list[Rule]:
        with self._rules_lock:
            return [rule.model_copy() for rule in self._rules]

    def get_config(self) -> HistoryConfig:
        """Snapshot of the current settings."""
        with self._settings_lock:
            min_text_length = self._min_text_length
            monitoring_enabled = self._monitoring_enabled
            persistence_enabled = self._persistence_enabled
        return HistoryConfig(
            limit=self.store.limit,
            min_text_length=min_text_length,
            dedup_window=self.store.dedup_window,
            monitoring_enabled=monitoring_enabled,
            persistence_enabled=persistence_enabled,
        )

    def update_config(self, **changes: Any) -> HistoryConfig:
        """
        Change several settings at once.

        All values are validated together first; a pydantic ValidationError
        (a ValueError) leaves every setting unchanged.
        """
        with self._update_lock:
            self._sync_settings()
            current = self.get_config()
            config = HistoryConfig.model_validate({**current.model_dump(), **changes})

            self._apply_config(config)
            if config.limit != current.limit or (
                config.persistence_enabled and not current.persistence_enabled
            ):
                # Eviction or re-enabled persistence changes what belongs on disk
                self._mutate(lambda: None)
            self._save_settings()
        return config

    def set_limit(self, limit: int) -> None:
        """Change capacity. Raises ValueError for limit < 1, leaving state unchanged."""
        self.update_config(limit=limit)

    def set_min_text_length(self, length: int) -> None:
        self.update_config(min_text_length=length)

    def set_dedup_window(self, window: timedelta) -> None:
        self.update_config(dedup_window=window)

    def set_monitoring_enabled(self, enabled: bool) -> None:
        """Pause or resume capture. Takes effect on the next tick."""
        self.update_config(monitoring_enabled=enabled)

    def set_persistence_enabled(self, enabled: bool) -> None:
        self.update_config(persistence_enabled=enabled)

    def _apply_config(self, config: HistoryConfig) -> None:
        self.store.set_limit(config.limit)
        self.store.set_dedup_window(config.dedup_window)
        with self._settings_lock:
            self._min_text_length = config.min_text_length
            self._monitoring_enabled = config.monitoring_enabled
            self._persistence_enabled = config.persistence_enabled

    def set_rules(self, rules: Iterable[Rule | dict[str, Any]]) -> None:
        """
        Replace the rule set.

        Raises pydantic.ValidationError if any rule is malformed; the
        previous rules stay in effect.
        """
        validated = [
            rule if isinstance(rule, Rule) else Rule.model_validate(rule)
            for rule in rules
        ]
        with self._update_lock:
            self._sync_settings()
            with self._rules_lock:
                self._rules = validated
            self._save_settings()

    # ------------------------------------------------------------------
    # Entry operations
    # ------------------------------------------------------------------

    def list(self) -> list[CaptureEntry]:
        self._refresh()
        return self.store.list()

    def get(self, entry_id: str) -> CaptureEntry | None:
        self._refresh()
        return self.store.get(entry_id)

    def pin(self, entry_id: str) -> bool:
        return self._mutate(lambda: self.store.set_pinned(entry_id, True))

    def unpin(self, entry_id: str) -> bool:
        return self._mutate(lambda: self.store.set_pinned(entry_id, False))

    def delete(self, entry_id: str) -> bool:
        return self._mutate(lambda: self.store.delete(entry_id))

    def clear(self, keep_pinned: bool = False) -> int:
        return self._mutate(lambda: self.store.clear(keep_pinned=keep_pinned))

    def restore(self, text: str) -> None:
        """
        Put text back on the system clipboard.

        The text is remembered as app-originated, here and in app_copy.json
        for a poller running in another process, so it is not captured again
        as a foreign copy.
        """
        with self._state_lock:
            self._last_app_copy = text
        if self.app_copies is not None:
            try:
                self.app_copies.record(text)
            except OSError as e:
                logger.warning("Failed to record restored text: %s", e)
        self.clipboard.write_text(text)

    def restore_entry(self, entry_id: str) -> bool:
        entry = self.get(entry_id)
        if entry is None:
            return False
        self.restore(entry.text)
        return True

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def tick(self) -> CaptureEntry | None:
        """
        Run one polling step.

        Returns the entry inserted for a new text capture, if any.
        """
        title = self._foreground_title()
        self.detector.observe(title)

        self._sync_settings()
        if not self.monitoring_enabled:
            return None

        entry = self._capture_text(title)
        self._capture_image(title)
        return entry

    def run(self) -> None:
        """Poll forever. Nothing raised by a tick stops the loop."""
        logger.info("Clipboard capture started (every %.2fs)", self.poll_interval)
        while True:
            try:
                self.tick()
            except Exception:
                logger.exception("Capture tick failed")
            time.sleep(self.poll_interval)

    def start(self) -> threading.Thread:
        """Run the poller on a daemon thread for the rest of the process."""
        if self._thread is None or not self._thread.is_alive():
            self._thread = threading.Thread(target=self.run, name="cliptrail-capture", daemon=True)
            self._thread.start()
        return self._thread

    def _foreground_title(self) -> str | None:
        try:
            return self.window.foreground_window_title()
        except OSError as e:
            logger.debug("Window title unavailable: %s", e)
            return None

    def _foreground_app(self) -> str | None:
        try:
            return self.window.foreground_app()
        except OSError as e:
            logger.debug("Foreground app unavailable: %s", e)
            return None

    def _read_text(self) -> str | None:
        """Primary reader, then the secondary one. None if both fail."""
        for reader in (self.clipboard, self.fallback_clipboard):
            if reader is None:
                continue
            try:
                return reader.read_text()
            except (ClipboardUnavailable, OSError) as e:
                logger.debug("Clipboard read failed via %s: %s", type(reader).__name__, e)
        logger.debug("Clipboard unreadable, skipping tick")
        return None

    def _capture_text(self, title: str | None) -> CaptureEntry | None:
        text = self._read_text()
        if not text:
            return None

        with self._state_lock:
            if text == self._last_text:
                return None
            self._last_text = text
            from_app = text == self._last_app_copy
            if not from_app:
                self._last_app_copy = None

        if not from_app:
            from_app = self._restored_elsewhere(text)

        if from_app:
            self._emit(CLIPBOARD_CHANGED, {"text": text, "from_app": True})
            return None

        trimmed = text.strip()
        if not trimmed:
            return None

        capture_type = classify(trimmed)
        if len(trimmed) < self.min_text_length and capture_type not in ALWAYS_KEEP_TYPES:
            logger.debug("Dropping %d-char capture below minimum length", len(trimmed))
            return None

        candidate = CaptureEntry(
            text=text,
            timestamp=self.clock(),
            source_app=self._foreground_app(),
            window_title=title,
            source_url=trimmed if capture_type == CaptureType.LINK else None,
            capture_type=capture_type,
            content_hash=content_hash(trimmed),
        )

        outcome = evaluate(candidate, self.rules)
        if outcome.ignore:
            logger.debug("Capture ignored by rule")
            return None
        if outcome.merge:
            logger.debug("Merge requested for capture %s", candidate.id)

        candidate.tags = list(dict.fromkeys(outcome.tags + auto_tags(candidate.source_url)))
        entry = self._mutate(lambda: self.store.insert(candidate))
        self._emit(CLIPBOARD_CHANGED, {"text": text, "from_app": False})
        return entry

    def _capture_image(self, title: str | None) -> None:
        try:
            image = self.clipboard.read_image()
        except (ClipboardUnavailable, OSError) as e:
            logger.debug("Clipboard image read failed: %s", e)
            return
        if image is None:
            return

        digest = bytes_hash(image.pixel_bytes)
        with self._state_lock:
            if digest == self._last_image_hash:
                return
            self._last_image_hash = digest

        if not self.detector.is_probable(image.width, image.height, title):
            logger.debug("Ignoring %dx%d bitmap copy", image.width, image.height)
            return

        self._emit(SCREENSHOT_AVAILABLE, {
            "image_data": self.image_encoder(image),
            "width": image.width,
            "height": image.height,
        })

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    def _sync_settings(self) -> None:
        """Pick up settings another process saved to settings.json."""
        if self.settings_file is None or not self.settings_file.changed():
            return
        saved = self.settings_file.load()
        if saved is None:
            return
        config, rules = saved
        logger.debug("Settings changed on disk, reloading")
        self._apply_config(config)
        with self._rules_lock:
            self._rules = list(rules)

    def _mutate(self, operation: Callable[[], Any]) -> Any:
        """
        Run a history change and save the result.

        An operation that returns False changed nothing: nothing is saved
        or announced.
        """
        result = self._synced(operation, save=True)
        if result is not False:
            self._emit(HISTORY_UPDATED, {"count": len(self.store)})
        return result

    def _refresh(self) -> None:
        self._synced(lambda: None, save=False)

    def _synced(self, operation: Callable[[], Any], save: bool) -> Any:
        """
        Run operation against the history as last saved by any process.

        With persistence on, the history file stays locked from reload to
        save so a `cliptrail` command and a running watcher cannot overwrite
        each other. Storage failures are logged, never raised.
        """
        self._sync_settings()
        with self._persist_lock:
            if self.persistence is None or not self.persistence_enabled:
                return operation()

            outcome = []
            try:
                with self.persistence.transaction() as saved:
                    if saved is not None:
                        logger.debug("History changed on disk, reloading %d entries", len(saved))
                        self.store.replace_all(saved)
                    outcome.append(operation())
                    if save and outcome[0] is not False:
                        self.persistence.save(self.store.list())
            except OSError as e:
                logger.warning("Failed to save history: %s", e)
            if not outcome:
                outcome.append(operation())
            return outcome[0]

    def _restored_elsewhere(self, text: str) -> bool:
        """True if another Cliptrail process just restored this text."""
        if self.app_copies is None:
            return False
        try:
            if self.app_copies.matches(text):
                return True
            self.app_copies.forget()
        except OSError as e:
            logger.debug("App copy marker unreadable: %s", e)
        return False

    def _save_settings(self) -> None:
        if self.settings_file is None:
            return
        try:
            self.settings_file.save(self.get_config(), self.rules)
        except OSError as e:
            logger.warning("Failed to save settings: %s", e)

    def _emit(self, event_name: str, payload: dict[str, Any]) -> None:
        try:
            self.sink.emit(event_name, payload)
        except Exception:
            logger.exception("Failed to emit %s", event_name)


def load_settings(
    config: dict[str, Any], settings_file: SettingsFile | None = None
) -> tuple[HistoryConfig, list[Rule]]:
    """Runtime settings from settings.json, falling back to config.toml."""
    settings_file = settings_file or SettingsFile()
    saved = settings_file.load()
    if saved is not None:
        return saved
    try:
        return history_config_from(config), rules_from(config)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration: {e}") from e


def build_pipeline(
    config: dict[str, Any] | None = None,
    clipboard: ClipboardReader | None = None,
    window: WindowInspector | None = None,
    sink: EventSink | None = None,
) -> CapturePipeline:
    """Wire a pipeline to the real clipboard, the data directory and configured sinks."""
    config = config or load_config()
    settings_file = SettingsFile()
    history_config, rules = load_settings(config, settings_file)

    persistence = HistoryFile()
    store = HistoryStore(
        limit=history_config.limit,
        dedup_window=history_config.dedup_window,
        entries=persistence.load(),
    )

    capture_config = config.get("capture", {})
    return CapturePipeline(
        clipboard=clipboard or SystemClipboard(),
        fallback_clipboard=CommandClipboard(),
        store=store,
        sink=sink or build_sink(config),
        window=window or default_window_inspector(),
        persistence=persistence,
        settings_file=settings_file,
        app_copies=AppCopyFile(),
        config=history_config,
        rules=rules,
        detector=ScreenshotDetector(
            recent_window=capture_config.get("screenshot_window_seconds", 5),
        ),
        poll_interval=poll_interval_from(config),
    )
