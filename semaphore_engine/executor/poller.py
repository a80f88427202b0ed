#semaphore_engine/executor/poller.py

import logging
import time
from typing import Callable

from semaphore_engine.core.models import WaiterState
from semaphore_engine.core.state_machine import WaiterStateMachine
from semaphore_engine.executor.marker import RanMarker
from semaphore_engine.locks.gate import GateLock

logger = logging.getLogger(__name__)


class PollScheduler:
    """
    Drives one waiter from the gate queue to admission.

    The gate is held from the first scan until the attempt enters RUN, so
    at most one process per scope is polling while the rest block in the
    kernel. There is no retry cap; the loop ends on admission or when the
    process is terminated.
    """

    def __init__(
        self,
        *,
        gate: GateLock,
        attempt: Callable[[], int],
        marker: RanMarker,
        poll_interval: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._gate = gate
        self._attempt = attempt
        self._marker = marker
        self.poll_interval = poll_interval
        self._sleep = sleep
        self.machine = WaiterStateMachine()
        self.polls = 0

    def enter_run(self) -> None:
        """Called by the attempt on admission; lets the next waiter scan."""
        self.machine.transition(WaiterState.RUN)
        self._gate.release()

    def run(self) -> int:
        """
        Poll until admitted.

        Returns:
            Exit status of the admitted command
        """
        try:
            logger.info("[poll] Waiting for gate")
            self._gate.acquire_in_order()
            self.machine.transition(WaiterState.SCAN)

            while True:
                self.polls += 1
                status = self._attempt()

                if status == 0 or self._marker.was_admitted():
                    return status

                if self.machine.state is WaiterState.RUN:
                    logger.warning("[poll] Admitted but marker is missing; reporting command status")
                    return status

                logger.info(
                    f"[poll] No free slot (poll {self.polls}), "
                    f"retrying in {self.poll_interval}s"
                )
                self.machine.transition(WaiterState.SLEEP)
                self._sleep(self.poll_interval)
                self.machine.transition(WaiterState.SCAN)
        finally:
            self._gate.release()
            if self.machine.state is not WaiterState.DONE:
                self.machine.transition(WaiterState.DONE)
