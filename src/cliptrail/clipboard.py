"""
Clipboard and window capabilities for Cliptrail.

The capture pipeline only depends on the protocols below. The default
implementations are best-effort: pyperclip for text, Pillow for images,
clipboard CLIs as a secondary text path and xdotool for window titles.
"""

import logging
import platform
import shutil
import subprocess
from pathlib import Path
from typing import Any, Protocol

from cliptrail.models import ImageData

logger = logging.getLogger(__name__)


class ClipboardUnavailable(RuntimeError):
    """Raised when the clipboard cannot be read."""


class ClipboardReader(Protocol):
    def read_text(self) -> str: ...

    def read_image(self) -> ImageData | None: ...

    def write_text(self, text: str) -> None: ...


class WindowInspector(Protocol):
    def foreground_window_title(self) -> str | None: ...

    def foreground_app(self) -> str | None: ...


class SystemClipboard:
    """Primary clipboard access via pyperclip and Pillow."""

    def read_text(self) -> str:
        import pyperclip

        try:
            return pyperclip.paste()
        except pyperclip.PyperclipException as e:
            raise ClipboardUnavailable(str(e)) from e

    def read_image(self) -> ImageData | None:
        from PIL import Image, ImageGrab

        try:
            grabbed = ImageGrab.grabclipboard()
        except (OSError, NotImplementedError) as e:
            logger.debug("Clipboard image read failed: %s", e)
            return None

        if not isinstance(grabbed, Image.Image):
            # None, or a list of file paths
            return None

        rgba = grabbed.convert("RGBA")
        return ImageData(width=rgba.width, height=rgba.height, pixel_bytes=rgba.tobytes())

    def write_text(self, text: str) -> None:
        import pyperclip

        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException as e:
            raise ClipboardUnavailable(str(e)) from e


# Secondary text readers, tried in order
CLIPBOARD_COMMANDS = [
    ["wl-paste", "--no-newline"],
    ["xclip", "-selection", "clipboard", "-o"],
    ["xsel", "--clipboard", "--output"],
    ["pbpaste"],
]


class CommandClipboard:
    """Secondary text path through clipboard command-line tools."""

    def __init__(self, commands: list[list[str]] | None = None, timeout: float = 2.0):
        self.commands = commands if commands is not None else CLIPBOARD_COMMANDS
        self.timeout = timeout

    def available(self) -> list[str]:
        return [cmd[0] for cmd in self.commands if shutil.which(cmd[0])]

    def read_text(self) -> str:
        for cmd in self.commands:
            if not shutil.which(cmd[0]):
                continue
            try:
                result = subprocess.run(
                    cmd,
                    capture_output=True,
                    text=True,
                    timeout=self.timeout,
                )
            except (OSError, subprocess.TimeoutExpired) as e:
                logger.debug("%s failed: %s", cmd[0], e)
                continue
            if result.returncode == 0:
                return result.stdout
        raise ClipboardUnavailable("No clipboard command succeeded")

    def read_image(self) -> ImageData | None:
        return None

    def write_text(self, text: str) -> None:
        raise ClipboardUnavailable("Command clipboard is read-only")


class NullWindowInspector:
    """For platforms without window-title introspection."""

    def foreground_window_title(self) -> str | None:
        return None

    def foreground_app(self) -> str | None:
        return None


class XdotoolWindowInspector:
    """Foreground window introspection on X11 via xdotool."""

    def __init__(self, timeout: float = 1.0):
        self.timeout = timeout

    def _run(self, *args: str) -> str | None:
        try:
            result = subprocess.run(
                ["xdotool", *args],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired):
            return None
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def foreground_window_title(self) -> str | None:
        return self._run("getactivewindow", "getwindowname")

    def foreground_app(self) -> str | None:
        pid = self._run("getactivewindow", "getwindowpid")
        if not pid or not pid.isdigit():
            return None
        try:
            return Path(f"/proc/{pid}/comm").read_text(encoding="utf-8").strip() or None
        except OSError:
            return None


def default_window_inspector() -> Any:
    """Pick the best window inspector for this platform."""
    if platform.system() == "Linux" and shutil.which("xdotool"):
        return XdotoolWindowInspector()
    return NullWindowInspector()


def encode_png(image: ImageData) -> str:
    """Encode RGBA pixels as a base64 PNG string."""
    import base64
    import io

    from PIL import Image

    buffer = io.BytesIO()
    Image.frombytes("RGBA", (image.width, image.height), image.pixel_bytes).save(
        buffer, format="PNG"
    )
    return base64.b64encode(buffer.getvalue()).decode("ascii")
