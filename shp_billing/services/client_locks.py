"""
Per-client serialization of usage updates.

Reading a client's usage, evaluating an entry and storing the new usage
must happen as one step per client. Different clients never block each
other.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator

logger = logging.getLogger(__name__)


class ClientLockRegistry:
    """Hands out one lock per client id.

    Example:
        >>> locks = ClientLockRegistry()
        >>> with locks.lock("client-1"):
        ...     pass
    """

    def __init__(self):
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def get_lock(self, client_id: str) -> threading.Lock:
        """Return the lock for ``client_id``, creating it on first use."""
        with self._registry_lock:
            lock = self._locks.get(client_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[client_id] = lock
            return lock

    @contextmanager
    def lock(self, client_id: str) -> Iterator[None]:
        """Hold the client's lock for the duration of the block."""
        client_lock = self.get_lock(client_id)
        if not client_lock.acquire(blocking=False):
            logger.debug(f"Waiting for usage lock of client {client_id}")
            client_lock.acquire()
        try:
            yield
        finally:
            client_lock.release()

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)
