import pytest
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

from cliptrail.clipboard import ClipboardUnavailable
from cliptrail.models import CaptureEntry, HistoryConfig, ImageData
from cliptrail.normalizer import content_hash

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClipboard:
    """Scriptable clipboard. Set .text / .image; set .fail to simulate errors."""

    def __init__(self, text: str = "", image: ImageData | None = None):
        self.text = text
        self.image = image
        self.fail = False
        self.written: list[str] = []

    def read_text(self) -> str:
        if self.fail:
            raise ClipboardUnavailable("clipboard busy")
        return self.text

    def read_image(self) -> ImageData | None:
        return self.image

    def write_text(self, text: str) -> None:
        self.written.append(text)
        self.text = text


class FakeWindow:
    def __init__(self, title: str | None = None, app: str | None = None):
        self.title = title
        self.app = app

    def foreground_window_title(self) -> str | None:
        return self.title

    def foreground_app(self) -> str | None:
        return self.app


class RecordingSink:
    def __init__(self):
        self.events: list[tuple[str, dict]] = []

    def emit(self, event_name: str, payload: dict) -> None:
        self.events.append((event_name, payload))

    def named(self, event_name: str) -> list[dict]:
        return [payload for name, payload in self.events if name == event_name]


class MemoryPersistence:
    def __init__(self, fail: bool = False):
        self.saved: list[list[CaptureEntry]] = []
        self.fail = fail

    def save(self, entries: list[CaptureEntry]) -> None:
        if self.fail:
            raise OSError("disk full")
        self.saved.append(entries)

    def load(self) -> list[CaptureEntry]:
        return self.saved[-1] if self.saved else []

    @contextmanager
    def transaction(self):
        # Nothing else writes to memory
        yield None


class Clock:
    """Manually advanced clock."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_entry(text: str, minutes: float = 0, pinned: bool = False, **kwargs) -> CaptureEntry:
    """Entry captured `minutes` after T0."""
    return CaptureEntry(
        text=text,
        timestamp=T0 + timedelta(minutes=minutes),
        pinned=pinned,
        content_hash=content_hash(text),
        **kwargs,
    )


@pytest.fixture
def clipboard():
    return FakeClipboard()


@pytest.fixture
def window():
    return FakeWindow()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def persistence():
    return MemoryPersistence()


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def make_pipeline(clipboard, window, sink, persistence, clock):
    """Factory for pipelines wired to fakes."""
    from cliptrail.pipeline import CapturePipeline

    def _make(**overrides):
        options = {
            "clipboard": clipboard,
            "window": window,
            "sink": sink,
            "persistence": persistence,
            "config": HistoryConfig(limit=10, min_text_length=3, dedup_window=timedelta(minutes=3)),
            "clock": clock,
            "image_encoder": lambda image: f"png:{image.width}x{image.height}",
        }
        options.update(overrides)
        return CapturePipeline(**options)

    return _make


@pytest.fixture
def make_disk_pipeline(tmp_path, clock):
    """Factory for pipelines sharing one data directory, like the CLI and the watcher."""
    from cliptrail.history import HistoryStore
    from cliptrail.pipeline import CapturePipeline
    from cliptrail.storage import AppCopyFile, HistoryFile, SettingsFile

    def _make(clipboard: FakeClipboard, sink: RecordingSink | None = None):
        persistence = HistoryFile(tmp_path / "history.json")
        settings_file = SettingsFile(tmp_path / "settings.json")
        saved = settings_file.load()
        config = saved[0] if saved else HistoryConfig(limit=10, min_text_length=3)
        return CapturePipeline(
            clipboard=clipboard,
            store=HistoryStore(config.limit, config.dedup_window, entries=persistence.load()),
            window=FakeWindow(),
            sink=sink or RecordingSink(),
            persistence=persistence,
            settings_file=settings_file,
            app_copies=AppCopyFile(tmp_path / "app_copy.json"),
            config=config,
            clock=clock,
        )

    return _make


@pytest.fixture
def isolated_home(tmp_path, monkeypatch):
    """Point config and data directories at a temp dir."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("CLIPTRAIL_HOME", str(tmp_path / "data"))
    monkeypatch.setenv("NO_COLOR", "1")
    return tmp_path
