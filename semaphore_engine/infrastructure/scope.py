# semaphore_engine/infrastructure/scope.py
"""Scope resolution, creation and inspection."""

import hashlib
import logging
import os
from pathlib import Path
from typing import Optional, Sequence

from semaphore_engine.core.errors import SemaphoreConfigError, SemaphoreEnvironmentError
from semaphore_engine.core.models import ScopeLayout, ScopeStatus
from semaphore_engine.locks.flock import open_lock_file
from semaphore_engine.locks.gate import GateLock
from semaphore_engine.locks.slots import SlotLockSet

logger = logging.getLogger(__name__)


def resolve_scope_dir(
    scope_id: Optional[str],
    base_dir: Path,
    command: Sequence[str] = (),
) -> Path:
    """
    Map a scope identifier to its directory.

    Args:
        scope_id: Identifier; used as a directory when it contains a path
            separator, otherwise a name under ``base_dir``
        base_dir: Parent directory for plain and unnamed scopes
        command: Command line, used to name the scope when no id is given

    Returns:
        Scope directory path (not created)
    """
    if scope_id:
        if os.sep in scope_id or (os.altsep and os.altsep in scope_id):
            return Path(scope_id).expanduser()
        if scope_id in (".", ".."):
            raise SemaphoreConfigError(f"Invalid scope id: {scope_id!r}")
        return Path(base_dir).expanduser() / scope_id

    if not command:
        raise SemaphoreConfigError("Either a scope id or a command is required")

    digest = hashlib.sha1("\0".join(command).encode("utf-8")).hexdigest()[:12]
    name = os.path.basename(command[0]) or "cmd"
    return Path(base_dir).expanduser() / f"cmd-{name}-{digest}"


def ensure_scope(layout: ScopeLayout) -> ScopeLayout:
    """Create the scope directory, gate file and slot files if missing."""
    try:
        layout.scope_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise SemaphoreEnvironmentError(
            f"Cannot create scope directory {layout.scope_dir}: {e}"
        ) from e

    paths = [layout.gate_path] + [layout.slot_path(i) for i in layout.slot_indices()]
    for path in paths:
        if not path.exists():
            os.close(open_lock_file(path))

    logger.debug(f"[scope] Ready: {layout.scope_dir} ({layout.max_concurrency} slot(s))")
    return layout


def inspect_scope(layout: ScopeLayout) -> ScopeStatus:
    """
    Report which locks of a scope are held by other processes.

    Each lock is probed with a non-blocking try and released at once. A
    waiter scanning at the same moment may see a probed slot as busy and
    simply poll again.

    Slot files already on disk are probed too, so a scope created with a
    larger N is reported in full.
    """
    if not layout.scope_dir.is_dir():
        return ScopeStatus(scope_dir=layout.scope_dir, max_concurrency=layout.max_concurrency)

    layout = ScopeLayout(
        layout.scope_dir,
        max(layout.max_concurrency, layout.existing_slot_count()),
    )
    status = ScopeStatus(
        scope_dir=layout.scope_dir,
        max_concurrency=layout.max_concurrency,
    )

    for slot in SlotLockSet(layout):
        if slot.try_acquire():
            slot.release()
        else:
            status.held_slots.append(slot.index)

    gate = GateLock(layout.gate_path)
    if gate.try_acquire():
        gate.release()
    else:
        status.gate_held = True

    status.markers = [p.name for p in layout.marker_paths()]
    return status
