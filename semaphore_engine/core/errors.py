# semaphore_engine/core/errors.py

# -----------------------------
# Base Errors
# -----------------------------

class SemaphoreError(Exception):
    """Base class for all semaphore engine errors."""
    pass


# -----------------------------
# Configuration Errors
# -----------------------------

class SemaphoreConfigError(SemaphoreError):
    """Invalid concurrency, poll interval or command."""
    pass


# -----------------------------
# Environment Errors
# -----------------------------

class SemaphoreEnvironmentError(SemaphoreError):
    """Scope directory or lock files cannot be created or opened."""
    pass


# -----------------------------
# Termination
# -----------------------------

class WaiterTerminated(SemaphoreError):
    """Raised in the waiter when a termination signal arrives."""

    def __init__(self, signum: int):
        super().__init__(f"terminated by signal {signum}")
        self.signum = signum
