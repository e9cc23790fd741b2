"""
SingletonGuard — at most one agent per machine.

A named mutex is probed with a zero timeout so a running instance is
detected immediately. A mutex abandoned by a crashed holder is granted
to the next waiter by the OS; that counts as a successful acquire.
"""

import threading

from .config import log
from .constants import MUTEX_NAME
from .platform_win import LOCK_ABANDONED, LOCK_ACQUIRED


class SingletonGuard:
    # Named mutexes are recursive for the owning thread, so a second
    # guard in this process would otherwise succeed.
    _held_names = set()
    _held_lock = threading.Lock()

    def __init__(self, name=MUTEX_NAME, mutex_api=None):
        self.name = name
        self._api = mutex_api
        self._handle = None

    @property
    def held(self):
        return self._handle is not None

    def _get_api(self):
        if self._api is None:
            from .platform_win import Win32MutexApi
            self._api = Win32MutexApi()
        return self._api

    def try_acquire(self) -> bool:
        """Non-blocking. True if this guard now holds the lease."""
        if self.held:
            return True

        with SingletonGuard._held_lock:
            if self.name in SingletonGuard._held_names:
                log.info("Lease %s already held in this process", self.name)
                return False

            api = self._get_api()
            handle = api.open(self.name)
            status = api.try_lock(handle)
            if status not in (LOCK_ACQUIRED, LOCK_ABANDONED):
                api.close(handle)
                log.info("Lease %s held by another instance", self.name)
                return False

            if status == LOCK_ABANDONED:
                log.warning("Recovered abandoned lease %s (previous instance exited uncleanly)", self.name)
            self._handle = handle
            SingletonGuard._held_names.add(self.name)

        log.info("Acquired lease %s", self.name)
        return True

    def release(self):
        """Release the lease if held. Further calls are no-ops."""
        with SingletonGuard._held_lock:
            if self._handle is None:
                return
            handle, self._handle = self._handle, None
            SingletonGuard._held_names.discard(self.name)

        api = self._get_api()
        try:
            api.unlock(handle)
        finally:
            api.close(handle)
        log.info("Released lease %s", self.name)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False
