#tests\conftest.py

"""Pytest configuration and fixtures."""

import os
import subprocess
import sys
import time
from pathlib import Path

import pytest

from semaphore_engine.core.models import ScopeLayout
from semaphore_engine.infrastructure.scope import ensure_scope
from semaphore_engine.locks.gate import GateLock


REPO_ROOT = Path(__file__).resolve().parents[1]

HOLD_SCRIPT = '''
import sys, time
log, name, seconds, code = sys.argv[1], sys.argv[2], float(sys.argv[3]), int(sys.argv[4])

def note(event):
    with open(log, "a") as f:
        f.write(f"{event} {name} {time.time()}\\n")

note("start")
time.sleep(seconds)
note("end")
sys.exit(code)
'''


class FakeRunner:
    """Command runner returning canned statuses and recording calls."""

    def __init__(self, *statuses, on_run=None):
        self.statuses = list(statuses) or [0]
        self.calls = []
        self.on_run = on_run

    def run(self, command, pass_fds=()):
        self.calls.append((list(command), tuple(pass_fds)))
        if self.on_run:
            self.on_run()
        return self.statuses[min(len(self.calls), len(self.statuses)) - 1]


class RecordingSleep:
    """Replacement for time.sleep that runs a hook instead of sleeping."""

    def __init__(self, hook=None):
        self.calls = []
        self.hook = hook

    def __call__(self, seconds):
        self.calls.append(seconds)
        if self.hook:
            self.hook(len(self.calls))


def wait_for(predicate, timeout=15.0, interval=0.05):
    """Poll until predicate() is true."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return False


def gate_is_held(layout):
    """Probe whether another process holds the gate."""
    probe = GateLock(layout.gate_path)
    if probe.try_acquire():
        probe.release()
        return False
    return True


def read_events(log_path):
    """Parse lines written by the hold script into (event, name, time)."""
    if not log_path.exists():
        return []
    events = []
    for line in log_path.read_text().splitlines():
        event, name, at = line.split()
        events.append((event, name, float(at)))
    return events


def max_overlap(events):
    """Largest number of commands running at the same instant."""
    deltas = sorted(
        (at, 0 if event == "end" else 1) for event, _, at in events
    )
    running = peak = 0
    for _, kind in deltas:
        running += 1 if kind == 1 else -1
        peak = max(peak, running)
    return peak


@pytest.fixture
def scope_dir(tmp_path):
    return tmp_path / "scope"


@pytest.fixture
def layout(scope_dir):
    """Two-slot scope with its lock files created."""
    return ensure_scope(ScopeLayout(scope_dir, 2))


@pytest.fixture
def hold_script(tmp_path):
    path = tmp_path / "hold.py"
    path.write_text(HOLD_SCRIPT)
    return path


@pytest.fixture
def event_log(tmp_path):
    return tmp_path / "events.log"


@pytest.fixture
def spawn_waiter(hold_script, event_log):
    """Start a semrun process running the hold script; killed on teardown.

    With ``log_path`` the waiter runs with -vv and its stderr goes there.
    """
    procs = []
    logs = []
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(
        p for p in (str(REPO_ROOT), env.get("PYTHONPATH")) if p
    )

    def spawn(layout, name, seconds=0.5, code=0, poll=0.1, log_path=None):
        cmd = [
            sys.executable, "-m", "semaphore_engine.run_semaphore",
            *(["-vv"] if log_path else []),
            "-i", str(layout.scope_dir),
            "-j", str(layout.max_concurrency),
            "-p", str(poll),
            "--",
            sys.executable, str(hold_script), str(event_log), name, str(seconds), str(code),
        ]
        stderr = None
        if log_path:
            stderr = open(log_path, "w")
            logs.append(stderr)
        proc = subprocess.Popen(cmd, env=env, stderr=stderr, start_new_session=True)
        procs.append(proc)
        return proc

    yield spawn

    for proc in procs:
        if proc.poll() is None:
            try:
                os.killpg(proc.pid, 9)
            except ProcessLookupError:
                pass
            proc.wait()
    for log in logs:
        log.close()
