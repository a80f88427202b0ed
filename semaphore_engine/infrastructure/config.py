#semaphore_engine\infrastructure\config.py

import os
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from semaphore_engine.core.errors import SemaphoreConfigError


def _default_base_dir() -> Path:
    return Path(tempfile.gettempdir()) / f"semaphore-engine-{os.getuid()}"


class SemaphoreSettings(BaseSettings):
    """Semaphore configuration from SEM_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SEM_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Scope
    scope_id: Optional[str] = None
    base_dir: Path = Field(default_factory=_default_base_dir)

    # Admission
    max_concurrency: int = Field(default=1, ge=1)
    poll_interval: float = Field(default=5.0, gt=0)

    # Logging
    verbose: int = Field(default=0, ge=0)


def load_settings(**overrides) -> SemaphoreSettings:
    """
    Build settings from the environment, with explicit overrides on top.

    Overrides set to None are ignored so unset CLI flags fall through to the
    environment.
    """
    values = {k: v for k, v in overrides.items() if v is not None}
    try:
        return SemaphoreSettings(**values)
    except ValidationError as e:
        raise SemaphoreConfigError(str(e)) from e
