# semaphore_engine/locks/gate.py
"""Gate lock serializing admission attempts within a scope.

Only the gate holder scans the slots. Every other waiter sleeps in the
kernel inside flock(2) until the holder is admitted or dies, so a freed
slot goes to the longest-blocked waiter instead of whichever poller wakes
first. Ordering among blocked waiters is whatever the kernel lock manager
provides; on Linux this is close to arrival order but it is not a contract.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from semaphore_engine.locks.flock import lock, open_lock_file, try_lock, unlock_and_close

logger = logging.getLogger(__name__)


class GateLock:
    def __init__(self, path: Path):
        self.path = Path(path)
        self._fd: Optional[int] = None

    @property
    def is_held(self) -> bool:
        return self._fd is not None

    def acquire_in_order(self) -> None:
        """Block until this process holds the gate.

        A ticket-based queue could replace the kernel ordering behind this
        call without touching callers.
        """
        if self._fd is not None:
            return

        fd = open_lock_file(self.path)
        try:
            logger.debug(f"[gate] waiting for {self.path}")
            lock(fd)
        except BaseException:
            os.close(fd)
            raise

        self._fd = fd
        logger.debug("[gate] acquired")

    def try_acquire(self) -> bool:
        """Non-blocking variant, used for inspection."""
        if self._fd is not None:
            return True

        fd = open_lock_file(self.path)
        try:
            acquired = try_lock(fd)
        except BaseException:
            os.close(fd)
            raise

        if not acquired:
            os.close(fd)
            return False
        self._fd = fd
        return True

    def release(self) -> None:
        fd, self._fd = self._fd, None
        if fd is None:
            return
        unlock_and_close(fd)
        logger.debug("[gate] released")
