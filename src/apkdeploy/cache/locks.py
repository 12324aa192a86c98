"""Per-key mutual exclusion."""
import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class _Slot:
    __slots__ = ('lock', 'users')

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class KeyedLock:
    """Map of lightweight locks keyed by arbitrary strings.

    Locks are created on first use and dropped as soon as no thread holds
    or waits for them, so the map only grows with concurrent keys.

    Example:
        guard = KeyedLock()
        with guard.acquire('/tmp/app.apks'):
            ...  # at most one thread per key in here
    """

    def __init__(self):
        self._slots: Dict[str, _Slot] = {}
        self._mutex = threading.Lock()

    @contextmanager
    def acquire(self, key: str) -> Iterator[None]:
        with self._mutex:
            slot = self._slots.get(key)
            if slot is None:
                slot = self._slots[key] = _Slot()
            slot.users += 1
        slot.lock.acquire()
        try:
            yield
        finally:
            slot.lock.release()
            with self._mutex:
                slot.users -= 1
                if slot.users == 0:
                    del self._slots[key]

    def __len__(self) -> int:
        with self._mutex:
            return len(self._slots)
