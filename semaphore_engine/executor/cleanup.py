# semaphore_engine/executor/cleanup.py
"""Turn termination signals into exceptions so cleanup runs on every exit path."""

import logging
import signal
import threading
from contextlib import contextmanager

from semaphore_engine.core.errors import WaiterTerminated

logger = logging.getLogger(__name__)

TERMINATION_SIGNALS = (signal.SIGTERM, signal.SIGHUP)


def _signal_handler(signum, frame):
    """Handle termination signals."""
    logger.info(f"[waiter] Received signal {signum}, cleaning up...")
    raise WaiterTerminated(signum)


@contextmanager
def terminate_on_signals():
    """
    While active, SIGTERM and SIGHUP raise WaiterTerminated.

    Handlers can only be installed from the main thread; elsewhere this is a
    no-op and the caller relies on the kernel releasing its locks.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    previous = {}
    for signum in TERMINATION_SIGNALS:
        previous[signum] = signal.signal(signum, _signal_handler)
    try:
        yield
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)
