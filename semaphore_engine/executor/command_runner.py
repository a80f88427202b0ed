# semaphore_engine/executor/command_runner.py
"""Command runner - executes the admitted command as a child process."""

import logging
import subprocess
from typing import Sequence

from semaphore_engine.core.models import (
    COMMAND_NOT_EXECUTABLE_STATUS,
    COMMAND_NOT_FOUND_STATUS,
    SIGNAL_STATUS_BASE,
)

logger = logging.getLogger(__name__)


class CommandRunner:
    """
    Runs a command synchronously and reports its exit status the way a
    shell would.
    """

    def run(self, command: Sequence[str], pass_fds: Sequence[int] = ()) -> int:
        """
        Run a command to completion.

        Args:
            command: Executable and arguments
            pass_fds: Descriptors the child must inherit (the held slot lock)

        Returns:
            Exit code; 128+N when killed by signal N, 127 when the
            executable is missing, 126 when it cannot be executed
        """
        logger.info(f"[run] Starting: {' '.join(command)}")

        try:
            completed = subprocess.run(list(command), pass_fds=tuple(pass_fds))
        except FileNotFoundError as e:
            logger.error(f"[run] ❌ Command not found: {e}")
            return COMMAND_NOT_FOUND_STATUS
        except PermissionError as e:
            logger.error(f"[run] ❌ Command not executable: {e}")
            return COMMAND_NOT_EXECUTABLE_STATUS
        except OSError as e:
            logger.error(f"[run] ❌ Cannot execute command: {e}")
            return COMMAND_NOT_EXECUTABLE_STATUS

        status = completed.returncode
        if status < 0:
            status = SIGNAL_STATUS_BASE - status

        logger.info(f"[run] Finished with status {status}")
        return status
