#tests\test_integration.py

"""Integration tests - real waiter processes contending on one scope."""

import os
import signal
import sys
import time

import pytest

from semaphore_engine.core.models import ScopeLayout
from semaphore_engine.infrastructure.scope import ensure_scope, inspect_scope

from conftest import gate_is_held, max_overlap, read_events, wait_for

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="flock(2) required")

TIMEOUT = 30


def starts(events):
    return [name for event, name, _ in events if event == "start"]


def started(event_log, name):
    return lambda: name in starts(read_events(event_log))


@pytest.fixture
def single(scope_dir):
    return ensure_scope(ScopeLayout(scope_dir, 1))


@pytest.fixture
def pair(scope_dir):
    return ensure_scope(ScopeLayout(scope_dir, 2))


class TestConcurrencyLimit:
    """Test at most N commands run at once."""

    def test_two_slots_three_waiters(self, pair, spawn_waiter, event_log):
        """Test two admitted at once, the third once a slot frees."""
        procs = [spawn_waiter(pair, name, seconds=1.0) for name in ("a", "b", "c")]

        statuses = [p.wait(TIMEOUT) for p in procs]

        assert statuses == [0, 0, 0]
        events = read_events(event_log)
        assert max_overlap(events) == 2

        start_times = sorted(at for event, _, at in events if event == "start")
        assert start_times[1] - start_times[0] < 0.9
        assert start_times[2] - start_times[0] >= 0.8

    @pytest.mark.parametrize("n", [1, 3])
    def test_max_overlap_never_exceeds_n(self, scope_dir, spawn_waiter, event_log, n):
        layout = ensure_scope(ScopeLayout(scope_dir, n))
        procs = [spawn_waiter(layout, f"w{i}", seconds=0.3) for i in range(6)]

        assert [p.wait(TIMEOUT) for p in procs] == [0] * 6
        assert max_overlap(read_events(event_log)) <= n
        assert len(starts(read_events(event_log))) == 6


class TestExitStatus:

    @pytest.mark.parametrize("code", [0, 1, 7, 42])
    def test_status_passes_through(self, single, spawn_waiter, code):
        proc = spawn_waiter(single, "w", seconds=0, code=code)

        assert proc.wait(TIMEOUT) == code

    def test_failed_command_under_contention(self, single, spawn_waiter, event_log):
        """Test a queued waiter's status 1 is its command's, not a lock artifact."""
        first = spawn_waiter(single, "first", seconds=0.5, code=0)
        assert wait_for(started(event_log, "first"))
        second = spawn_waiter(single, "second", seconds=0, code=1)

        assert first.wait(TIMEOUT) == 0
        assert second.wait(TIMEOUT) == 1
        assert starts(read_events(event_log)) == ["first", "second"]


class TestFairness:

    def test_admission_follows_arrival(self, single, spawn_waiter, event_log):
        """Test waiters launched A, B, C with N=1 are admitted A, B, C."""
        a = spawn_waiter(single, "a", seconds=1.0)
        assert wait_for(started(event_log, "a"))

        b = spawn_waiter(single, "b", seconds=0.3)
        assert wait_for(lambda: gate_is_held(single))

        c = spawn_waiter(single, "c", seconds=0.3)
        time.sleep(0.5)

        assert [p.wait(TIMEOUT) for p in (a, b, c)] == [0, 0, 0]
        assert starts(read_events(event_log)) == ["a", "b", "c"]


class TestCrashSafety:
    """Test killed waiters never leave the semaphore stuck."""

    def test_dead_gate_holder_does_not_block_queue(self, single, spawn_waiter, event_log):
        running = spawn_waiter(single, "running", seconds=3.0)
        assert wait_for(started(event_log, "running"))

        gate_holder = spawn_waiter(single, "gate-holder", seconds=0)
        assert wait_for(lambda: gate_is_held(single))
        queued = spawn_waiter(single, "queued", seconds=0)
        time.sleep(0.3)

        os.killpg(gate_holder.pid, signal.SIGKILL)
        gate_holder.wait(TIMEOUT)

        assert queued.wait(TIMEOUT) == 0
        assert running.wait(TIMEOUT) == 0
        assert "gate-holder" not in starts(read_events(event_log))
        assert "queued" in starts(read_events(event_log))

    def test_killed_slot_holder_frees_slot(self, single, spawn_waiter, event_log):
        victim = spawn_waiter(single, "victim", seconds=60)
        assert wait_for(started(event_log, "victim"))

        os.killpg(victim.pid, signal.SIGKILL)
        victim.wait(TIMEOUT)

        survivor = spawn_waiter(single, "survivor", seconds=0)
        assert survivor.wait(TIMEOUT) == 0

    def test_terminated_waiter_cleans_up(self, single, spawn_waiter, event_log):
        """Test SIGTERM to the waiter stops its command and releases everything."""
        victim = spawn_waiter(single, "victim", seconds=60)
        assert wait_for(started(event_log, "victim"))
        assert inspect_scope(single).held_slots == [1]
        assert len(inspect_scope(single).markers) == 1

        victim.send_signal(signal.SIGTERM)

        assert victim.wait(TIMEOUT) == 128 + signal.SIGTERM
        status = inspect_scope(single)
        assert status.held_slots == []
        assert status.gate_held is False
        assert status.markers == []

    def test_terminated_while_queued(self, single, spawn_waiter, event_log, tmp_path):
        """Test SIGTERM while blocked on the gate or sleeping with it held."""
        running = spawn_waiter(single, "running", seconds=60)
        assert wait_for(started(event_log, "running"))

        polling_log = tmp_path / "polling.log"
        polling = spawn_waiter(single, "polling", seconds=0, log_path=polling_log)
        assert wait_for(lambda: "[poll] No free slot" in polling_log.read_text())

        queued_log = tmp_path / "queued.log"
        queued = spawn_waiter(single, "queued", seconds=0, log_path=queued_log)
        assert wait_for(lambda: "[gate] waiting for" in queued_log.read_text())

        queued.send_signal(signal.SIGTERM)
        assert queued.wait(TIMEOUT) == 128 + signal.SIGTERM
        assert gate_is_held(single)

        polling.send_signal(signal.SIGTERM)
        assert polling.wait(TIMEOUT) == 128 + signal.SIGTERM
        assert not gate_is_held(single)

        status = inspect_scope(single)
        assert status.held_slots == [1]
        assert len(status.markers) == 1

        os.killpg(running.pid, signal.SIGKILL)
        running.wait(TIMEOUT)
        assert starts(read_events(event_log)) == ["running"]

    def test_crashed_waiters_leave_no_markers(self, pair, spawn_waiter, event_log):
        """Test markers of SIGKILLed waiters are swept by the next waiter."""
        victims = [spawn_waiter(pair, f"victim{i}", seconds=60) for i in range(2)]
        assert wait_for(lambda: len(starts(read_events(event_log))) == 2)
        for victim in victims:
            os.killpg(victim.pid, signal.SIGKILL)
            victim.wait(TIMEOUT)
        assert len(inspect_scope(pair).markers) == 2

        assert spawn_waiter(pair, "next", seconds=0).wait(TIMEOUT) == 0

        status = inspect_scope(pair)
        assert status.markers == []
        assert status.held_slots == []
