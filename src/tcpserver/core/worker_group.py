"""
=============================================================================
WORKER GROUP: ONE THREAD PER CONNECTION, SUPERVISED
=============================================================================

The server runs every accepted connection on its own thread. The simple
way to do that is a list of threads plus a "remove the finished ones"
scan in the accept loop. This module packages that bookkeeping into one
object with a join primitive, so the server code only says what it means:

    group.spawn(handler.handle, args=(conn,), connection=conn)
    group.reap()        # drop finished workers (non-blocking)
    group.close()       # no more spawns
    group.interrupt_all()
    group.join_all()    # wait for everyone

=============================================================================
WHY NOT A FIXED POOL?
=============================================================================

A pool with N workers would serve at most N clients at once; client N+1
would sit in the queue while an echo session on another thread never
ends. Echo sessions are long-lived, so each one gets a dedicated thread
and the group only supervises them.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         WorkerGroup                                  │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   accept loop ──spawn()──► Worker-1 ──► handler(conn-1)              │
    │               ──spawn()──► Worker-2 ──► handler(conn-2)              │
    │               ──spawn()──► Worker-3 ──► handler(conn-3)              │
    │                                                                      │
    │   _workers: [W1, W2, W3]        protected by _lock                  │
    │                                                                      │
    │   stop() ──close()──────────► new spawns raise RuntimeError          │
    │          ──interrupt_all()──► conn.shutdown_read() on each           │
    │          ──join_all()───────► W.join() on each, then clear          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The accept loop and stop() run on different threads, so every access to
the worker list goes through the lock.

=============================================================================
"""

import threading
import time
import logging
from typing import Callable, Optional, Any, List
from enum import Enum

from .connection import Connection


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    """Worker thread states, used for monitoring and stats."""
    RUNNING = "running"   # Task executing
    FINISHED = "finished"  # Task returned normally
    FAILED = "failed"     # Task raised


class Worker(threading.Thread):
    """
    Thread that runs exactly one task and records how it ended.

    Exceptions from the task are logged and swallowed here so a broken
    connection never takes the process down with an unhandled thread
    exception.
    """

    def __init__(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[dict] = None,
        worker_id: int = 0,
        name: Optional[str] = None,
        connection: Optional[Connection] = None,
    ):
        super().__init__(name=name or f"Worker-{worker_id}", daemon=True)

        self.func = func
        self.args = args
        self.kwargs = kwargs or {}
        self.worker_id = worker_id
        self.connection = connection

        self.state = WorkerState.RUNNING
        self.started_at = 0.0
        self.elapsed = 0.0

    def run(self):
        self.started_at = time.time()
        logger.debug(f"Worker {self.worker_id} started")

        try:
            self.func(*self.args, **self.kwargs)
            self.state = WorkerState.FINISHED
        except Exception as e:
            self.state = WorkerState.FAILED
            logger.exception(f"Worker {self.worker_id} task failed: {e}")
        finally:
            self.elapsed = time.time() - self.started_at
            logger.debug(
                f"Worker {self.worker_id} stopped after {self.elapsed:.3f}s"
            )


class WorkerGroup:
    """
    Tracks the threads spawned for accepted connections.

    Usage:
        group = WorkerGroup()
        group.spawn(handle, args=(conn,), connection=conn)
        ...
        group.close()
        group.interrupt_all()
        group.join_all()
    """

    def __init__(self, name: str = "conn"):
        self.name = name

        self._workers: List[Worker] = []
        self._lock = threading.Lock()  # Protects _workers and _closed
        self._closed = False
        self._next_worker_id = 0

        # Totals for workers already reaped
        self._completed = 0
        self._failed = 0

    def spawn(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[dict] = None,
        name: Optional[str] = None,
        connection: Optional[Connection] = None,
    ) -> Worker:
        """
        Start ``func(*args, **kwargs)`` on a new tracked thread.

        Args:
            func: The task to run.
            args: Positional arguments for the task.
            kwargs: Keyword arguments for the task.
            name: Thread name; defaults to "<group>-<id>".
            connection: Connection served by this task, so that
                        interrupt_all() can unblock its reads.

        Returns:
            The started Worker.

        Raises:
            RuntimeError: If the group has been closed.
        """
        with self._lock:
            if self._closed:
                raise RuntimeError("Worker group is closed")

            worker_id = self._next_worker_id
            self._next_worker_id += 1

            worker = Worker(
                func,
                args=args,
                kwargs=kwargs,
                worker_id=worker_id,
                name=name or f"{self.name}-{worker_id}",
                connection=connection,
            )
            self._workers.append(worker)
            # Started under the lock so join_all() never sees an
            # unstarted thread.
            worker.start()
            return worker

    def reap(self) -> int:
        """
        Drop finished workers without blocking.

        Returns:
            Number of workers removed.
        """
        with self._lock:
            alive = []
            for worker in self._workers:
                if worker.is_alive():
                    alive.append(worker)
                else:
                    worker.join()  # Already finished, returns immediately
                    self._count(worker)

            reaped = len(self._workers) - len(alive)
            self._workers = alive

        if reaped:
            logger.debug(f"Reaped {reaped} finished worker(s)")
        return reaped

    def close(self) -> None:
        """Refuse further spawn() calls."""
        with self._lock:
            self._closed = True

    def interrupt_all(self) -> None:
        """Shut down the read side of every tracked connection."""
        with self._lock:
            connections = [w.connection for w in self._workers if w.connection]

        for conn in connections:
            conn.shutdown_read()

    def join_all(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for every tracked worker to finish, then clear the group.

        Args:
            timeout: Overall time limit in seconds. None = wait forever.

        Returns:
            True if every worker finished, False if some are still running
            after the timeout (those stay tracked).
        """
        with self._lock:
            workers = list(self._workers)

        deadline = None if timeout is None else time.monotonic() + timeout

        for worker in workers:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            worker.join(remaining)

        with self._lock:
            still_running = []
            for worker in self._workers:
                if worker.is_alive():
                    still_running.append(worker)
                else:
                    self._count(worker)
            self._workers = still_running

        if still_running:
            logger.warning(f"{len(still_running)} worker(s) still running after join")
            return False
        return True

    def _count(self, worker: Worker) -> None:
        if worker.state == WorkerState.FAILED:
            self._failed += 1
        else:
            self._completed += 1

    # =========================================================================
    # MONITORING
    # =========================================================================

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def active(self) -> int:
        """Number of tracked workers still running."""
        with self._lock:
            return sum(1 for w in self._workers if w.is_alive())

    def __len__(self) -> int:
        """Number of tracked (not yet reaped) workers."""
        with self._lock:
            return len(self._workers)

    @property
    def stats(self) -> dict:
        """Worker and task counts for logs and tests."""
        with self._lock:
            tracked = len(self._workers)
            running = sum(1 for w in self._workers if w.is_alive())
            return {
                "workers": {
                    "tracked": tracked,
                    "running": running,
                },
                "tasks": {
                    "spawned": self._next_worker_id,
                    "completed": self._completed,
                    "failed": self._failed,
                },
            }
