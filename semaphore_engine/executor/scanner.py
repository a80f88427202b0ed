#semaphore_engine/executor/scanner.py

import logging
from typing import Optional

from semaphore_engine.locks.slots import SlotLock, SlotLockSet

logger = logging.getLogger(__name__)


class AdmissionScanner:
    """Claims the first free slot, trying slots 1..N in fixed order.

    Callers must hold the gate. Low slot numbers win when several are
    free; which slot is claimed has no bearing on fairness.
    """

    def __init__(self, slots: SlotLockSet):
        self._slots = slots

    def scan(self) -> Optional[SlotLock]:
        """
        Try every slot once without blocking.

        Returns:
            The claimed slot (admission), or None if all slots are busy
        """
        for slot in self._slots:
            if slot.try_acquire():
                logger.info(f"[scan] ✅ Admitted on slot {slot.index}")
                return slot

        logger.debug(f"[scan] All {len(self._slots)} slot(s) busy")
        return None
