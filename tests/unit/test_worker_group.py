"""
Unit tests for WorkerGroup.
"""

import threading
import time

import pytest

from tcpserver.core.connection import Connection
from tcpserver.core.worker_group import WorkerGroup, WorkerState


def wait_until(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class TestSpawn:

    def test_spawn_runs_task(self):
        group = WorkerGroup()
        done = threading.Event()

        worker = group.spawn(done.set)

        assert done.wait(5.0)
        worker.join(5.0)
        assert worker.state == WorkerState.FINISHED

    def test_spawn_passes_args(self):
        group = WorkerGroup()
        results = []

        group.spawn(lambda a, b=0: results.append(a + b), args=(1,), kwargs={"b": 2})
        group.join_all(timeout=5.0)

        assert results == [3]

    def test_thread_names(self):
        group = WorkerGroup(name="conn")

        first = group.spawn(lambda: None)
        named = group.spawn(lambda: None, name="conn-abc")
        group.join_all(timeout=5.0)

        assert first.name == "conn-0"
        assert named.name == "conn-abc"

    def test_spawn_after_close_raises(self):
        group = WorkerGroup()
        group.close()

        assert group.closed
        with pytest.raises(RuntimeError):
            group.spawn(lambda: None)

    def test_failing_task_is_logged_and_counted(self, caplog):
        group = WorkerGroup()

        def boom():
            raise ValueError("boom")

        worker = group.spawn(boom)
        group.join_all(timeout=5.0)

        assert worker.state == WorkerState.FAILED
        assert group.stats["tasks"]["failed"] == 1
        assert "boom" in caplog.text


class TestReap:

    def test_reap_drops_finished_workers(self):
        group = WorkerGroup()
        release = threading.Event()

        group.spawn(lambda: None)
        group.spawn(release.wait)

        assert wait_until(lambda: group.active == 1)
        assert group.reap() == 1
        assert len(group) == 1

        release.set()
        assert wait_until(lambda: group.active == 0)
        assert group.reap() == 1
        assert len(group) == 0

    def test_reap_does_not_block(self):
        group = WorkerGroup()
        release = threading.Event()
        group.spawn(release.wait)

        start = time.monotonic()
        assert group.reap() == 0
        assert time.monotonic() - start < 1.0

        release.set()
        group.join_all(timeout=5.0)


class TestJoinAll:

    def test_join_all_waits_and_clears(self):
        group = WorkerGroup()
        finished = []

        for i in range(5):
            group.spawn(lambda i=i: (time.sleep(0.05), finished.append(i)))

        assert group.join_all() is True
        assert sorted(finished) == [0, 1, 2, 3, 4]
        assert len(group) == 0
        assert group.stats["tasks"] == {"spawned": 5, "completed": 5, "failed": 0}

    def test_join_all_timeout_keeps_stragglers(self):
        group = WorkerGroup()
        release = threading.Event()
        group.spawn(release.wait)

        assert group.join_all(timeout=0.05) is False
        assert len(group) == 1

        release.set()
        assert group.join_all(timeout=5.0) is True
        assert len(group) == 0

    def test_join_all_timeout_ignores_wall_clock_jumps(self, monkeypatch):
        """The timeout is measured on the monotonic clock."""
        group = WorkerGroup()
        group.spawn(time.sleep, args=(0.2,))

        wall_clock = iter(range(0, 10 ** 9, 3600))
        monkeypatch.setattr(time, "time", lambda: float(next(wall_clock)))

        assert group.join_all(timeout=5.0) is True
        assert len(group) == 0


class TestInterruptAll:

    def test_interrupt_all_unblocks_readers(self, tcp_pair):
        server_side, _client = tcp_pair
        conn = Connection(socket=server_side, address=("127.0.0.1", 1))
        group = WorkerGroup()
        results = []

        group.spawn(lambda: results.append(conn.receive()), connection=conn)
        time.sleep(0.1)  # Let the worker block in recv()

        group.interrupt_all()

        assert group.join_all(timeout=5.0) is True
        assert results == [b""]
        conn.close()

    def test_interrupt_all_skips_workers_without_connection(self):
        group = WorkerGroup()
        group.spawn(lambda: None)

        group.interrupt_all()
        assert group.join_all(timeout=5.0) is True


class TestStats:

    def test_stats_shape(self):
        stats = WorkerGroup().stats

        assert stats == {
            "workers": {"tracked": 0, "running": 0},
            "tasks": {"spawned": 0, "completed": 0, "failed": 0},
        }
