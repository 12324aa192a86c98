"""Unit tests for KeyedLock."""
import threading
import time

from apkdeploy.cache.locks import KeyedLock


class TestKeyedLock:
    """Test per-key mutual exclusion."""

    def test_slot_released_after_use(self):
        guard = KeyedLock()

        with guard.acquire('a'):
            assert len(guard) == 1

        assert len(guard) == 0

    def test_slot_released_when_body_raises(self):
        guard = KeyedLock()

        try:
            with guard.acquire('a'):
                raise RuntimeError('boom')
        except RuntimeError:
            pass

        assert len(guard) == 0
        with guard.acquire('a'):
            pass

    def test_same_key_is_serialized(self):
        guard = KeyedLock()
        inside = []
        overlaps = []

        def worker():
            with guard.acquire('bundle'):
                inside.append(1)
                if len(inside) > 1:
                    overlaps.append(True)
                time.sleep(0.01)
                inside.pop()

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert overlaps == []
        assert len(guard) == 0

    def test_different_keys_do_not_block(self):
        guard = KeyedLock()
        entered = threading.Event()

        def other():
            with guard.acquire('b'):
                entered.set()

        with guard.acquire('a'):
            t = threading.Thread(target=other)
            t.start()
            assert entered.wait(timeout=2)
            t.join()
