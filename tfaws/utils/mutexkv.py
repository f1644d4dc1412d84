import contextlib
import logging
import threading
from collections.abc import Generator

from tfaws.utils.retry import RetryCancelledError

# how often a cancellable lock() checks its cancel event, in seconds
LOCK_POLL_INTERVAL = 0.05


class MutexKV:
    """
    A simple key/value store of mutexes, used to serialize operations
    scoped by a key (e.g. an AWS region). Locks are created on first use
    and kept for the lifetime of the instance.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._store: dict[str, threading.Lock] = {}

    def _get(self, key: str) -> threading.Lock:
        with self._lock:
            mutex = self._store.get(key)
            if mutex is None:
                mutex = threading.Lock()
                self._store[key] = mutex
            return mutex

    def lock(self, key: str, cancel: threading.Event | None = None) -> None:
        """Acquire the lock for key. When cancel is given and gets set
        while waiting, RetryCancelledError is raised without the lock."""
        logging.debug(f"Locking {key!r}")
        mutex = self._get(key)
        if cancel is None:
            mutex.acquire()
        else:
            while not mutex.acquire(timeout=LOCK_POLL_INTERVAL):
                if cancel.is_set():
                    raise RetryCancelledError(f"cancelled waiting for lock {key!r}")
        logging.debug(f"Locked {key!r}")

    def unlock(self, key: str) -> None:
        logging.debug(f"Unlocking {key!r}")
        self._get(key).release()
        logging.debug(f"Unlocked {key!r}")

    @contextlib.contextmanager
    def locked(
        self, key: str, cancel: threading.Event | None = None
    ) -> Generator[None, None, None]:
        self.lock(key, cancel=cancel)
        try:
            yield
        finally:
            self.unlock(key)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._store)
