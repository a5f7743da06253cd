"""
History store for Cliptrail.

The single source of truth for retained clipboard entries. Owns the
dedup and eviction invariants:

- at most one entry per content hash (newest kept)
- pinned entries are never evicted; at most `limit` non-pinned entries
- pinned first, then newest first

Dedup happens in two stages. Stage A runs on insert and only removes
same-hash entries captured within the dedup window. Stage B runs after
every mutation and collapses same-hash entries across the whole history,
caps the non-pinned partition and re-sorts.
"""

import threading
from datetime import timedelta
from typing import Iterable

from cliptrail.models import CaptureEntry


class HistoryStore:
    """Ordered, capacity- and pin-aware collection of capture entries."""

    def __init__(
        self,
        limit: int = 100,
        dedup_window: timedelta = timedelta(minutes=5),
        entries: Iterable[CaptureEntry] | None = None,
    ):
        if limit <= 0:
            raise ValueError(f"History limit must be at least 1, got {limit}")
        self._lock = threading.RLock()
        self._limit = limit
        self._dedup_window = dedup_window
        self._entries: list[CaptureEntry] = []
        if entries is not None:
            self.replace_all(entries)

    @property
    def limit(self) -> int:
        with self._lock:
            return self._limit

    @property
    def dedup_window(self) -> timedelta:
        with self._lock:
            return self._dedup_window

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def list(self) -> list[CaptureEntry]:
        """Entries in display order (copies, safe to hand to other threads)."""
        with self._lock:
            return [entry.model_copy(deep=True) for entry in self._entries]

    def get(self, entry_id: str) -> CaptureEntry | None:
        with self._lock:
            for entry in self._entries:
                if entry.id == entry_id:
                    return entry.model_copy(deep=True)
        return None

    def insert(self, entry: CaptureEntry) -> CaptureEntry:
        """Insert a new capture at the most-recent position."""
        entry = entry.model_copy(deep=True)
        with self._lock:
            # Stage A: drop same-content entries captured within the window
            if entry.content_hash is not None:
                self._entries = [
                    existing
                    for existing in self._entries
                    if not (
                        existing.content_hash == entry.content_hash
                        and entry.timestamp - existing.timestamp <= self._dedup_window
                    )
                ]
            self._entries.insert(0, entry)
            self._normalize()
            return entry.model_copy(deep=True)

    def delete(self, entry_id: str) -> bool:
        """Delete an entry. Returns False if the ID is unknown."""
        with self._lock:
            remaining = [entry for entry in self._entries if entry.id != entry_id]
            if len(remaining) == len(self._entries):
                return False
            self._entries = remaining
            self._normalize()
            return True

    def set_pinned(self, entry_id: str, pinned: bool) -> bool:
        """Pin or unpin an entry. Returns False if the ID is unknown."""
        with self._lock:
            for entry in self._entries:
                if entry.id == entry_id:
                    entry.pinned = pinned
                    self._normalize()
                    return True
            return False

    def clear(self, keep_pinned: bool = False) -> int:
        """Remove entries, optionally keeping pinned ones. Returns the count removed."""
        with self._lock:
            before = len(self._entries)
            if keep_pinned:
                self._entries = [entry for entry in self._entries if entry.pinned]
            else:
                self._entries = []
            self._normalize()
            return before - len(self._entries)

    def set_limit(self, limit: int) -> None:
        """Change capacity. Rejected before any mutation if not positive."""
        if limit <= 0:
            raise ValueError(f"History limit must be at least 1, got {limit}")
        with self._lock:
            self._limit = limit
            self._normalize()

    def set_dedup_window(self, window: timedelta) -> None:
        if window < timedelta(0):
            raise ValueError("Dedup window cannot be negative")
        with self._lock:
            self._dedup_window = window

    def replace_all(self, entries: Iterable[CaptureEntry]) -> None:
        """Load entries wholesale (e.g. from disk), then normalize."""
        with self._lock:
            self._entries = [entry.model_copy(deep=True) for entry in entries]
            self._normalize()

    def _normalize(self) -> None:
        """Stage B. Caller must hold the lock."""
        # 1. Dedup across everything, first occurrence in current order wins
        seen: set[str] = set()
        unique: list[CaptureEntry] = []
        for entry in self._entries:
            key = entry.identity
            if key in seen:
                continue
            seen.add(key)
            unique.append(entry)

        # 2. Cap non-pinned entries (most recent kept), keeping every pinned one
        unpinned = sorted(
            (entry for entry in unique if not entry.pinned),
            key=lambda entry: entry.timestamp,
            reverse=True,
        )
        retained = {id(entry) for entry in unpinned[: self._limit]}
        kept = [entry for entry in unique if entry.pinned or id(entry) in retained]

        # 3. Pinned first, then newest first
        kept.sort(key=lambda entry: entry.timestamp, reverse=True)
        kept.sort(key=lambda entry: not entry.pinned)
        self._entries = kept
