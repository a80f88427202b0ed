# semaphore_engine/locks/slots.py

"""Slot locks: one advisory lock per unit of concurrency."""

import logging
import os
from pathlib import Path
from typing import List, Optional

from semaphore_engine.core.models import ScopeLayout
from semaphore_engine.locks.flock import open_lock_file, try_lock, unlock_and_close

logger = logging.getLogger(__name__)


class SlotLock:
    """Represents a single concurrency slot backed by ``<index>.sem``."""

    def __init__(self, index: int, path: Path):
        self.index = index
        self.path = Path(path)
        self._fd: Optional[int] = None

    @property
    def is_held(self) -> bool:
        """Check if this process holds the slot."""
        return self._fd is not None

    def try_acquire(self) -> bool:
        """
        Try to claim the slot without blocking.

        Returns:
            True if acquired, False if another process holds it (busy)
        """
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
        logger.debug(f"[slot {self.index}] acquired")
        return True

    def release(self) -> None:
        """Release slot. Safe to call when not held."""
        fd, self._fd = self._fd, None
        if fd is None:
            return
        unlock_and_close(fd)
        logger.debug(f"[slot {self.index}] released")

    def fileno(self) -> int:
        """Descriptor holding the lock, for handing to the command."""
        if self._fd is None:
            raise ValueError(f"Slot {self.index} is not held")
        return self._fd

    def __repr__(self) -> str:
        status = "held" if self.is_held else "not held"
        return f"<SlotLock(index={self.index}, {status})>"


class SlotLockSet:
    """The N slot locks of one scope, in ascending index order."""

    def __init__(self, layout: ScopeLayout):
        self._slots = [SlotLock(i, layout.slot_path(i)) for i in layout.slot_indices()]

    def __iter__(self):
        return iter(self._slots)

    def __len__(self) -> int:
        return len(self._slots)

    def held_slots(self) -> List[SlotLock]:
        return [s for s in self._slots if s.is_held]

    def release_all(self) -> None:
        for slot in self._slots:
            slot.release()

    def __repr__(self) -> str:
        return (
            f"<SlotLockSet(total={len(self._slots)}, "
            f"held={[s.index for s in self.held_slots()]})>"
        )
