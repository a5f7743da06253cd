"""
Persistence for Cliptrail.

JSON files under the data directory. Writes are atomic (temp file +
rename) and serialized across processes with an advisory lock.

The CLI and a running `cliptrail watch` share these files. Each file
remembers the stamp (inode, size, mtime) it last read or wrote, so a
process can tell when another one saved in the meantime and reload
before writing over it.
"""

import fcntl
import json
import logging
import os
from contextlib import contextmanager, nullcontext
from pathlib import Path
from typing import Any, ContextManager, Iterator

from pydantic import ValidationError

from cliptrail.config import get_app_copy_path, get_history_path, get_settings_path
from cliptrail.models import CaptureEntry, HistoryConfig, Rule
from cliptrail.normalizer import bytes_hash

logger = logging.getLogger(__name__)

FileStamp = tuple[int, int, int]


@contextmanager
def _locked(path: Path) -> Iterator[None]:
    """Hold an exclusive lock on <path>.lock for the duration."""
    path.parent.mkdir(parents=True, exist_ok=True)
    lock_path = path.with_name(path.name + ".lock")
    with open(lock_path, "a", encoding="utf-8") as lock_file:
        fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)


def file_stamp(path: Path) -> FileStamp | None:
    """Identity of the file's current content, or None if it does not exist."""
    try:
        st = path.stat()
    except FileNotFoundError:
        return None
    # os.replace gives every save a fresh inode
    return st.st_ino, st.st_size, st.st_mtime_ns


def write_json_atomic(path: Path, data: Any) -> None:
    """
    Write JSON durably. Caller holds the lock.

    The file is either the old content or the new content, never a
    partial write.
    """
    tmp_path = path.with_name(path.name + ".tmp")
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
        f.flush()
        os.fsync(f.fileno())  # Ensure durability
    os.replace(tmp_path, path)


class JsonFile:
    """A locked JSON file that notices writes made by other processes."""

    def __init__(self, path: Path):
        self.path = path
        self._stamp: FileStamp | None = None
        self._held = False

    def changed(self) -> bool:
        """True if the file was written by someone else since our last read or write."""
        return file_stamp(self.path) != self._stamp

    @contextmanager
    def locked(self) -> Iterator[None]:
        """Hold the file lock; reads and writes inside reuse it."""
        with _locked(self.path):
            self._held = True
            try:
                yield
            finally:
                self._held = False

    def _guard(self) -> ContextManager[None]:
        return nullcontext() if self._held else _locked(self.path)

    def read(self) -> Any | None:
        """
        Parsed content, or None if the file does not exist.

        Raises json.JSONDecodeError for a corrupt file.
        """
        with self._guard():
            self._stamp = file_stamp(self.path)
            if self._stamp is None:
                return None
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f)

    def write(self, data: Any) -> None:
        with self._guard():
            write_json_atomic(self.path, data)
            self._stamp = file_stamp(self.path)


class HistoryFile(JsonFile):
    """Persistence sink for the clipboard history (history.json)."""

    def __init__(self, path: Path | None = None):
        super().__init__(path or get_history_path())

    def save(self, entries: list[CaptureEntry]) -> None:
        self.write([entry.model_dump(mode="json") for entry in entries])

    def load(self) -> list[CaptureEntry]:
        """Load entries in stored order. Unreadable records are skipped."""
        try:
            raw = self.read()
        except json.JSONDecodeError as e:
            logger.warning("History file %s is not valid JSON: %s", self.path, e)
            return []
        return self._parse(raw)

    @contextmanager
    def transaction(self) -> Iterator[list[CaptureEntry] | None]:
        """
        Lock the history for a read-modify-write.

        Yields the entries on disk if another process saved since our last
        load or save, else None. save() inside the block reuses the lock.
        """
        with self.locked():
            yield self._reload() if self.changed() else None

    def _reload(self) -> list[CaptureEntry] | None:
        try:
            raw = self.read()
        except json.JSONDecodeError as e:
            logger.warning("History file %s is not valid JSON, keeping history in memory: %s",
                           self.path, e)
            return None
        return self._parse(raw)

    def _parse(self, raw: Any) -> list[CaptureEntry]:
        if raw is None:
            return []
        if not isinstance(raw, list):
            logger.warning("History file %s does not hold a list, ignoring", self.path)
            return []

        entries = []
        for record in raw:
            try:
                entries.append(CaptureEntry.model_validate(record))
            except ValidationError as e:
                logger.warning("Skipping unreadable history record: %s", e)
        return entries


class SettingsFile(JsonFile):
    """Runtime overrides for HistoryConfig and rules (settings.json)."""

    def __init__(self, path: Path | None = None):
        super().__init__(path or get_settings_path())

    def save(self, config: HistoryConfig, rules: list[Rule]) -> None:
        self.write({
            "history": config.model_dump(mode="json"),
            "rules": [rule.model_dump(mode="json") for rule in rules],
        })

    def load(self) -> tuple[HistoryConfig, list[Rule]] | None:
        """Return saved settings, or None if nothing usable is stored."""
        try:
            raw = self.read()
        except json.JSONDecodeError as e:
            logger.warning("Settings file %s is not valid JSON: %s", self.path, e)
            return None

        if not isinstance(raw, dict):
            return None

        try:
            config = HistoryConfig.model_validate(raw.get("history", {}))
            rules = [Rule.model_validate(rule) for rule in raw.get("rules", [])]
        except ValidationError as e:
            logger.warning("Ignoring invalid settings file %s: %s", self.path, e)
            return None
        return config, rules


def _text_digest(text: str) -> str:
    return bytes_hash(text.encode("utf-8"))


class AppCopyFile(JsonFile):
    """
    The text Cliptrail itself last put on the clipboard (app_copy.json).

    `cliptrail restore` records it here so the poller in another process
    recognizes it. Only a digest is stored.
    """

    def __init__(self, path: Path | None = None):
        super().__init__(path or get_app_copy_path())
        self._digest: str | None = None

    def record(self, text: str) -> None:
        digest = _text_digest(text)
        self.write({"digest": digest})
        self._digest = digest

    def current(self) -> str | None:
        """Digest of the recorded text, if any."""
        if self.changed():
            try:
                raw = self.read()
            except json.JSONDecodeError:
                raw = None
            self._digest = raw.get("digest") if isinstance(raw, dict) else None
        return self._digest

    def matches(self, text: str) -> bool:
        digest = self.current()
        return digest is not None and digest == _text_digest(text)

    def forget(self) -> None:
        if self.current() is not None:
            self.write({})
            self._digest = None
