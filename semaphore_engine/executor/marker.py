# semaphore_engine/executor/marker.py
"""Ran markers: per-waiter files proving the waiter was admitted.

An attempt reports a single exit status, and status 1 can mean either
"no slot was free" or "the command ran and exited 1". The marker, created
after a slot is claimed and before the command starts, tells the two apart.

The owner keeps an exclusive flock on its marker until ``remove()``, so a
marker is stale exactly when nobody holds its lock. Names carry the pid,
process start time and a random token, so two waiters never share one.
"""

import logging
import os
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import psutil

from semaphore_engine.core.errors import SemaphoreEnvironmentError
from semaphore_engine.core.models import MARKER_FILE_SUFFIX
from semaphore_engine.locks.flock import open_lock_file, try_lock, unlock_and_close

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessIdentity:
    pid: int
    started: int
    token: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

    @classmethod
    def current(cls) -> "ProcessIdentity":
        process = psutil.Process()
        return cls(pid=process.pid, started=int(process.create_time() * 1000))

    @property
    def marker_name(self) -> str:
        return f"{self.pid}-{self.started}-{self.token}{MARKER_FILE_SUFFIX}"


def _same_file(path: Path, fd: int) -> bool:
    try:
        on_disk = os.stat(path)
    except FileNotFoundError:
        return False
    held = os.fstat(fd)
    return (on_disk.st_dev, on_disk.st_ino) == (held.st_dev, held.st_ino)


class RanMarker:
    """Admission marker of the current waiter."""

    def __init__(self, scope_dir: Path, identity: Optional[ProcessIdentity] = None):
        self.identity = identity or ProcessIdentity.current()
        self.path = Path(scope_dir) / self.identity.marker_name
        self._fd: Optional[int] = None

    @property
    def is_held(self) -> bool:
        return self._fd is not None

    def create(self) -> None:
        if self._fd is not None:
            return

        # A sweeper may lock and unlink the file between open and flock.
        for _ in range(3):
            fd = open_lock_file(self.path)
            if try_lock(fd) and _same_file(self.path, fd):
                self._fd = fd
                logger.debug(f"[marker] created {self.path.name}")
                return
            os.close(fd)

        raise SemaphoreEnvironmentError(f"Cannot create marker {self.path}")

    def was_admitted(self) -> bool:
        """True once this waiter has claimed a slot and started its command."""
        return self.path.exists()

    def remove(self) -> None:
        fd, self._fd = self._fd, None
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        else:
            logger.debug(f"[marker] removed {self.path.name}")
        finally:
            if fd is not None:
                unlock_and_close(fd)


def sweep_stale_markers(scope_dir: Path) -> List[str]:
    """
    Delete markers that no live waiter holds locked.

    Only SIGKILL or power loss leave markers behind; any later waiter in the
    scope cleans them up.

    Returns:
        Names of removed markers
    """
    removed = []
    for path in Path(scope_dir).glob(f"*{MARKER_FILE_SUFFIX}"):
        try:
            fd = os.open(path, os.O_RDWR)
        except (FileNotFoundError, PermissionError):
            continue

        if not try_lock(fd):
            os.close(fd)
            continue

        try:
            if _same_file(path, fd):
                path.unlink()
                removed.append(path.name)
        finally:
            unlock_and_close(fd)

    if removed:
        logger.info(f"[marker] Swept {len(removed)} stale marker(s): {removed}")
    return removed
