# semaphore_engine/core/state_machine.py

import logging
from collections import deque

from semaphore_engine.core.models import WaiterState

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS = {
    WaiterState.WAIT_GATE: {
        WaiterState.SCAN,
        WaiterState.DONE,
    },
    WaiterState.SCAN: {
        WaiterState.RUN,
        WaiterState.SLEEP,
        WaiterState.DONE,
    },
    WaiterState.SLEEP: {
        WaiterState.SCAN,
        WaiterState.DONE,
    },
    WaiterState.RUN: {
        WaiterState.DONE,
    },
}


class InvalidStateTransition(Exception):
    pass


class WaiterStateMachine:
    """Tracks a waiter through WAIT_GATE -> SCAN -> {RUN, SLEEP -> SCAN} -> DONE."""

    def __init__(self, initial: WaiterState = WaiterState.WAIT_GATE):
        self.state = initial
        self.history = deque([initial], maxlen=64)

    def transition(self, new_state: WaiterState) -> WaiterState:
        current = self.state

        allowed = ALLOWED_TRANSITIONS.get(current, set())
        if new_state not in allowed:
            raise InvalidStateTransition(
                f"Cannot transition from {current.value} to {new_state.value}"
            )

        logger.debug(f"[waiter] {current.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)
        return new_state
