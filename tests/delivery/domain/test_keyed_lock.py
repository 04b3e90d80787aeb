"""Tests for per-delivery write serialization."""

import threading
import time

import pytest
from delivery.locks import KeyedLock


def _run(lock, keys, hold_for=0.05):
    active = {}
    peak = {}
    guard = threading.Lock()

    def work(key):
        with lock.hold(key):
            with guard:
                active[key] = active.get(key, 0) + 1
                peak[key] = max(peak.get(key, 0), active[key])
            time.sleep(hold_for)
            with guard:
                active[key] -= 1

    threads = [threading.Thread(target=work, args=(k,)) for k in keys]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return peak


class TestKeyedLock:
    def test_same_key_runs_one_at_a_time(self):
        peak = _run(KeyedLock(), ["dlv-1"] * 5)
        assert peak["dlv-1"] == 1

    def test_different_keys_run_together(self):
        lock = KeyedLock()
        started = time.monotonic()
        _run(lock, ["dlv-1", "dlv-2", "dlv-3"], hold_for=0.2)
        assert time.monotonic() - started < 0.5

    def test_entries_are_released(self):
        lock = KeyedLock()
        _run(lock, ["dlv-1", "dlv-1", "dlv-2"], hold_for=0.01)
        assert len(lock) == 0

    def test_lock_is_released_on_error(self):
        lock = KeyedLock()
        with pytest.raises(RuntimeError):
            with lock.hold("dlv-1"):
                raise RuntimeError("boom")
        with lock.hold("dlv-1"):
            assert len(lock) == 1
        assert len(lock) == 0
