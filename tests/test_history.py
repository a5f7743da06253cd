import threading
from datetime import timedelta

import pytest

from cliptrail.history import HistoryStore
from cliptrail.models import CaptureEntry

from conftest import T0, make_entry


def texts(store: HistoryStore) -> list[str]:
    return [entry.text for entry in store.list()]


def test_insert_puts_newest_first():
    store = HistoryStore(limit=10)
    store.insert(make_entry("first", minutes=0))
    store.insert(make_entry("second", minutes=1))
    assert texts(store) == ["second", "first"]


def test_repeat_within_window_keeps_only_newer_copy():
    store = HistoryStore(limit=10, dedup_window=timedelta(minutes=3))
    old = store.insert(make_entry("C", minutes=0))
    new = store.insert(make_entry("C", minutes=1))

    entries = store.list()
    assert len(entries) == 1
    assert entries[0].id == new.id
    assert entries[0].id != old.id


def test_repeat_after_window_collapses_to_newest_in_stage_b():
    # Stage A leaves the stale copy (outside the window); Stage B's
    # full-history dedup then keeps only the first in order, the newest.
    store = HistoryStore(limit=10, dedup_window=timedelta(minutes=3))
    store.insert(make_entry("C", minutes=0))
    new = store.insert(make_entry("C", minutes=5))

    entries = store.list()
    assert len(entries) == 1
    assert entries[0].id == new.id
    assert entries[0].timestamp == T0 + timedelta(minutes=5)


def test_hash_dedup_ignores_case_and_whitespace():
    store = HistoryStore(limit=10)
    store.insert(make_entry("Hello   World", minutes=0))
    store.insert(make_entry("hello world", minutes=1))
    assert texts(store) == ["hello world"]


def test_legacy_entries_without_hash_dedup_by_text():
    store = HistoryStore(limit=10)
    store.replace_all([
        CaptureEntry(text="same", timestamp=T0 + timedelta(minutes=2)),
        CaptureEntry(text="same", timestamp=T0),
        CaptureEntry(text="other", timestamp=T0 + timedelta(minutes=1)),
    ])
    entries = store.list()
    assert [e.text for e in entries] == ["same", "other"]
    assert entries[0].timestamp == T0 + timedelta(minutes=2)


def test_capacity_evicts_oldest_unpinned():
    store = HistoryStore(limit=2)
    store.insert(make_entry("a", minutes=0))
    store.insert(make_entry("b", minutes=1))
    store.insert(make_entry("c", minutes=2))
    assert texts(store) == ["c", "b"]


def test_pinning_oldest_prevents_its_eviction():
    store = HistoryStore(limit=2)
    a = store.insert(make_entry("a", minutes=0))
    store.insert(make_entry("b", minutes=1))
    assert store.set_pinned(a.id, True)
    store.insert(make_entry("c", minutes=2))

    assert texts(store) == ["a", "c", "b"]


def test_pinned_entries_do_not_count_against_limit():
    store = HistoryStore(limit=1)
    for i in range(3):
        entry = store.insert(make_entry(f"pinned {i}", minutes=i))
        store.set_pinned(entry.id, True)
    store.insert(make_entry("loose", minutes=10))
    assert len(store) == 4


def test_ordering_pinned_by_recency_then_unpinned():
    store = HistoryStore(limit=10)
    store.replace_all([
        make_entry("A", minutes=1, pinned=True),
        make_entry("B", minutes=5),
        make_entry("C", minutes=2, pinned=True),
    ])
    assert texts(store) == ["C", "A", "B"]


def test_delete_and_pin_report_unknown_ids():
    store = HistoryStore(limit=10)
    entry = store.insert(make_entry("x"))

    assert not store.delete("nope")
    assert not store.set_pinned("nope", True)
    assert store.delete(entry.id)
    assert len(store) == 0


def test_clear_can_keep_pinned():
    store = HistoryStore(limit=10)
    keep = store.insert(make_entry("keep", minutes=0))
    store.insert(make_entry("drop", minutes=1))
    store.set_pinned(keep.id, True)

    assert store.clear(keep_pinned=True) == 1
    assert texts(store) == ["keep"]

    assert store.clear() == 1
    assert texts(store) == []


def test_set_limit_zero_is_rejected_and_state_unchanged():
    store = HistoryStore(limit=3)
    for i in range(3):
        store.insert(make_entry(f"e{i}", minutes=i))

    with pytest.raises(ValueError):
        store.set_limit(0)

    assert store.limit == 3
    assert len(store) == 3


def test_constructor_rejects_zero_limit():
    with pytest.raises(ValueError):
        HistoryStore(limit=0)


def test_lowering_limit_evicts_immediately():
    store = HistoryStore(limit=5)
    for i in range(5):
        store.insert(make_entry(f"e{i}", minutes=i))
    store.set_limit(2)
    assert texts(store) == ["e4", "e3"]


def test_list_returns_copies():
    store = HistoryStore(limit=5)
    store.insert(make_entry("x"))
    store.list()[0].pinned = True
    assert not store.list()[0].pinned


def test_inserted_entry_is_copied():
    store = HistoryStore(limit=5)
    entry = make_entry("x")
    store.insert(entry)
    entry.text = "mutated"
    assert texts(store) == ["x"]


def test_concurrent_inserts_keep_invariants():
    store = HistoryStore(limit=50, dedup_window=timedelta(minutes=3))

    def worker(offset: int) -> None:
        for i in range(100):
            store.insert(make_entry(f"item {i % 30}", minutes=offset + i / 1000))

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    entries = store.list()
    hashes = [entry.content_hash for entry in entries]
    assert len(hashes) == len(set(hashes))
    assert len(entries) <= 50
    timestamps = [entry.timestamp for entry in entries]
    assert timestamps == sorted(timestamps, reverse=True)
