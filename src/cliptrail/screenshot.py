"""
Screenshot heuristic for Cliptrail.

Raw bitmap copies are common and noisy; only images that probably came from
a screenshot tool are surfaced.
"""

import threading
import time
from typing import Callable

# Window-title fragments of screenshot tools (lower-case, substring match).
# Add new tools or locales here.
SCREENSHOT_TOOLS = {
    "snipping tool": True,
    "snip & sketch": True,
    "snip and sketch": True,
    "screen snip": True,
    "screenshot": True,
    "screen shot": True,
    "screen clip": True,
    "flameshot": True,
    "spectacle": True,
    "ksnip": True,
    "shutter": True,
    "greenshot": True,
    "sharex": True,
    "lightshot": True,
    "shottr": True,
    "cleanshot": True,
    "skitch": True,
    # Localized variants
    "ausschneiden und skizzieren": True,  # de
    "bildschirmfoto": True,  # de
    "capture d'écran": True,  # fr
    "outil capture": True,  # fr
    "captura de pantalla": True,  # es
    "recortes": True,  # es
    "recorte": True,  # pt
    "cattura schermo": True,  # it
    "strumento di cattura": True,  # it
    "スクリーンショット": True,  # ja
    "切り取り": True,  # ja
    "截图": True,  # zh
    "截屏": True,  # zh
    "屏幕截图": True,  # zh
    "스크린샷": True,  # ko
    "캡처 도구": True,  # ko
    "снимок экрана": True,  # ru
    "ножницы": True,  # ru
}

MIN_SCREENSHOT_WIDTH = 800
MIN_SCREENSHOT_HEIGHT = 600
MIN_SCREENSHOT_PIXELS = 400_000

# How long after a screenshot tool was foregrounded an image may borrow its verdict
DEFAULT_RECENT_WINDOW = 5.0


def is_screenshot_tool(title: str | None) -> bool:
    """Case-insensitive substring match against known screenshot tools."""
    if not title:
        return False
    lowered = title.lower()
    return any(fragment in lowered for fragment, enabled in SCREENSHOT_TOOLS.items() if enabled)


def is_screenshot_size(width: int, height: int) -> bool:
    """Size fallback: both dimensions exceed the minimum, or enough pixels overall."""
    if width > MIN_SCREENSHOT_WIDTH and height > MIN_SCREENSHOT_HEIGHT:
        return True
    return width * height > MIN_SCREENSHOT_PIXELS


class ScreenshotDetector:
    """
    Decides whether a clipboard image is a probable screenshot.

    Keeps a "recent snip" marker: the last instant the foreground window
    matched a screenshot tool. The pipeline samples the title every tick,
    whether or not an image arrives.
    """

    def __init__(
        self,
        recent_window: float = DEFAULT_RECENT_WINDOW,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.recent_window = recent_window
        self._clock = clock
        self._lock = threading.Lock()
        self._last_snip: float | None = None

    def observe(self, title: str | None, now: float | None = None) -> bool:
        """Record the foreground title. Returns True if it is a screenshot tool."""
        if not is_screenshot_tool(title):
            return False
        with self._lock:
            self._last_snip = self._clock() if now is None else now
        return True

    def recent_snip(self, now: float | None = None) -> bool:
        with self._lock:
            last = self._last_snip
        if last is None:
            return False
        now = self._clock() if now is None else now
        return now - last <= self.recent_window

    def is_probable(
        self,
        width: int,
        height: int,
        title: str | None = None,
        now: float | None = None,
    ) -> bool:
        """
        Title signal first (current title or a recent snip), then size.

        Platforms without window introspection pass title=None and never
        set the marker, so only the size fallback applies there.
        """
        if is_screenshot_tool(title) or self.recent_snip(now):
            return True
        return is_screenshot_size(width, height)
