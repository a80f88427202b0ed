"""Core domain models for the semaphore engine."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List

from semaphore_engine.core.errors import SemaphoreConfigError


GATE_FILE_NAME = "serialize.lock"
SLOT_FILE_SUFFIX = ".sem"
MARKER_FILE_SUFFIX = ".ran"

# Status returned by an attempt that could not claim a slot.
NOT_ADMITTED_STATUS = 1

ENVIRONMENT_FAILURE_STATUS = 125
COMMAND_NOT_EXECUTABLE_STATUS = 126
COMMAND_NOT_FOUND_STATUS = 127
SIGNAL_STATUS_BASE = 128


class WaiterState(Enum):
    """Waiter state machine."""

    WAIT_GATE = "WAIT_GATE"
    SCAN = "SCAN"
    SLEEP = "SLEEP"
    RUN = "RUN"
    DONE = "DONE"


@dataclass(frozen=True)
class ScopeLayout:
    """Where the lock objects of one semaphore scope live."""

    scope_dir: Path
    max_concurrency: int

    def __post_init__(self):
        if self.max_concurrency < 1:
            raise SemaphoreConfigError("max_concurrency must be at least 1")

    @property
    def gate_path(self) -> Path:
        return self.scope_dir / GATE_FILE_NAME

    def slot_path(self, index: int) -> Path:
        """Path of slot ``index`` (1-based)."""
        if not 1 <= index <= self.max_concurrency:
            raise ValueError(f"Slot index {index} outside 1..{self.max_concurrency}")
        return self.scope_dir / f"{index}{SLOT_FILE_SUFFIX}"

    def slot_indices(self) -> range:
        return range(1, self.max_concurrency + 1)

    def existing_slot_count(self) -> int:
        """Highest slot index with a file on disk (0 if none)."""
        indices = [
            int(p.stem) for p in self.scope_dir.glob(f"*{SLOT_FILE_SUFFIX}")
            if p.stem.isdigit() and int(p.stem) >= 1
        ]
        return max(indices, default=0)

    def marker_paths(self) -> List[Path]:
        return sorted(self.scope_dir.glob(f"*{MARKER_FILE_SUFFIX}"))


@dataclass
class ScopeStatus:
    """Snapshot of a scope's lock state."""

    scope_dir: Path
    max_concurrency: int
    held_slots: List[int] = field(default_factory=list)
    gate_held: bool = False
    markers: List[str] = field(default_factory=list)

    @property
    def free_slots(self) -> int:
        return self.max_concurrency - len(self.held_slots)

    def __repr__(self) -> str:
        return (
            f"<ScopeStatus(dir={self.scope_dir}, "
            f"held={self.held_slots}, "
            f"free={self.free_slots}, "
            f"gate_held={self.gate_held})>"
        )
