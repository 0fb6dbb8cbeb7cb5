"""Tests for per-key locks."""

import threading
import time

from storefront.locking import KeyedLocks


class TestKeyedLocks:
    def test_same_key_is_serialized(self):
        locks = KeyedLocks()
        inside = []
        overlaps = []

        def worker():
            with locks.hold("order-1"):
                inside.append(1)
                if len(inside) > 1:
                    overlaps.append(True)
                time.sleep(0.01)
                inside.pop()

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert overlaps == []

    def test_different_keys_do_not_block(self):
        locks = KeyedLocks()
        with locks.hold("order-1"):
            acquired = threading.Event()

            def worker():
                with locks.hold("order-2"):
                    acquired.set()

            thread = threading.Thread(target=worker)
            thread.start()
            assert acquired.wait(timeout=1)
            thread.join()

    def test_entries_are_released(self):
        locks = KeyedLocks()
        with locks.hold("a"), locks.hold("b"):
            assert len(locks) == 2
        assert len(locks) == 0
