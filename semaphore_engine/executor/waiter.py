# semaphore_engine/executor/waiter.py
"""Waiter - queues on the gate, claims a slot and runs the command."""

import logging
import signal
import time
from pathlib import Path
from typing import Callable, Optional, Sequence

from semaphore_engine.core.errors import SemaphoreConfigError, WaiterTerminated
from semaphore_engine.core.models import (
    NOT_ADMITTED_STATUS,
    SIGNAL_STATUS_BASE,
    ScopeLayout,
)
from semaphore_engine.executor.cleanup import terminate_on_signals
from semaphore_engine.executor.command_runner import CommandRunner
from semaphore_engine.executor.marker import RanMarker, sweep_stale_markers
from semaphore_engine.executor.poller import PollScheduler
from semaphore_engine.executor.scanner import AdmissionScanner
from semaphore_engine.infrastructure.scope import ensure_scope
from semaphore_engine.locks.gate import GateLock
from semaphore_engine.locks.slots import SlotLockSet

logger = logging.getLogger(__name__)


class SemaphoreWaiter:
    """
    One process waiting to run a command under a scope's semaphore.

    Lifecycle:
    - Block on the gate (best-effort FIFO among waiters)
    - Scan slots; sleep and rescan while all are busy, still holding the gate
    - On admission release the gate, mark admission, run the command with
      the slot held, and report the command's status
    """

    def __init__(
        self,
        layout: ScopeLayout,
        command: Sequence[str],
        *,
        poll_interval: float = 5.0,
        runner: Optional[CommandRunner] = None,
        sleep: Callable[[float], None] = time.sleep,
        marker: Optional[RanMarker] = None,
    ):
        if not command:
            raise SemaphoreConfigError("command must not be empty")
        if poll_interval <= 0:
            raise SemaphoreConfigError("poll_interval must be positive")

        self.layout = layout
        self.command = list(command)
        self.runner = runner or CommandRunner()

        self.slots = SlotLockSet(layout)
        self.gate = GateLock(layout.gate_path)
        self.scanner = AdmissionScanner(self.slots)
        self.marker = marker or RanMarker(layout.scope_dir)
        self.scheduler = PollScheduler(
            gate=self.gate,
            attempt=self._attempt,
            marker=self.marker,
            poll_interval=poll_interval,
            sleep=sleep,
        )

    def run(self) -> int:
        """
        Wait for admission and run the command.

        Returns:
            The command's exit status, or 128+N if the waiter itself was
            terminated by signal N
        """
        sweep_stale_markers(self.layout.scope_dir)

        try:
            with terminate_on_signals():
                return self.scheduler.run()
        except WaiterTerminated as e:
            logger.warning(f"[waiter] Terminated by signal {e.signum}")
            return SIGNAL_STATUS_BASE + e.signum
        except KeyboardInterrupt:
            logger.warning("[waiter] Interrupted")
            return SIGNAL_STATUS_BASE + signal.SIGINT
        finally:
            self.marker.remove()
            self.slots.release_all()
            self.gate.release()

    def _attempt(self) -> int:
        """
        One admission attempt.

        Returns:
            NOT_ADMITTED_STATUS when no slot was free, otherwise the
            command's exit status; callers tell the two apart with
            ``marker.was_admitted()``
        """
        slot = self.scanner.scan()
        if slot is None:
            return NOT_ADMITTED_STATUS

        try:
            self.scheduler.enter_run()
            self.marker.create()
            return self.runner.run(self.command, pass_fds=(slot.fileno(),))
        finally:
            slot.release()


def run_under_semaphore(
    scope_dir: Path,
    max_concurrency: int,
    poll_interval: float,
    command: Sequence[str],
    *,
    runner: Optional[CommandRunner] = None,
) -> int:
    """
    Run ``command`` once at most ``max_concurrency`` other holders of the
    same scope directory are running.

    Raises:
        SemaphoreConfigError: invalid concurrency, interval or command
        SemaphoreEnvironmentError: scope directory or lock files unusable
    """
    layout = ensure_scope(ScopeLayout(Path(scope_dir), max_concurrency))
    waiter = SemaphoreWaiter(
        layout,
        command,
        poll_interval=poll_interval,
        runner=runner,
    )
    return waiter.run()
