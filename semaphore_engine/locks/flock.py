# semaphore_engine/locks/flock.py
"""Thin helpers around flock(2) on scope lock files."""

import fcntl
import os
from pathlib import Path

from semaphore_engine.core.errors import SemaphoreEnvironmentError


def open_lock_file(path: Path) -> int:
    """Open (creating if needed) a lock file and return its descriptor."""
    try:
        return os.open(path, os.O_RDWR | os.O_CREAT, 0o666)
    except OSError as e:
        raise SemaphoreEnvironmentError(f"Cannot open lock file {path}: {e}") from e


def try_lock(fd: int) -> bool:
    """Non-blocking exclusive lock. False means another holder has it."""
    try:
        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
    except BlockingIOError:
        return False
    return True


def lock(fd: int) -> None:
    fcntl.flock(fd, fcntl.LOCK_EX)


def unlock_and_close(fd: int) -> None:
    try:
        fcntl.flock(fd, fcntl.LOCK_UN)
    finally:
        os.close(fd)
