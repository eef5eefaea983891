"""
=============================================================================
BOUNDED THREAD POOL
=============================================================================

Each accepted connection becomes a task; a fixed set of worker threads
pulls tasks off a bounded queue.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   accept loop ──submit()──►  ┌───┬───┬───┬─────────┐                 │
    │                              │ T │ T │ T │ ...     │ queue_size      │
    │                              └─┬─┴───┴───┴─────────┘                 │
    │                                │ get()                               │
    │                  ┌─────────────┼─────────────┐                       │
    │                  ▼             ▼             ▼                       │
    │              Worker-0      Worker-1  ...  Worker-N   (≤ max_workers) │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
BACKPRESSURE
=============================================================================

submit(block=False) returns False instead of waiting when the queue is
full. The server answers those connections with 503 and closes them, so
a burst of clients can never grow memory or threads without bound.

=============================================================================
SCALING
=============================================================================

min_workers threads start with the pool. When every worker is busy and
tasks are waiting, one more is added, up to max_workers. Workers are not
retired when load drops.

=============================================================================
SHUTDOWN
=============================================================================

    shutdown(wait=True, timeout=30)
        1. refuse new tasks
        2. wait until every queued and running task finishes, or timeout
        3. pull whatever never started off the queue (returned to caller)
        4. poison pill (None) per worker, then join

=============================================================================
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    IDLE = "idle"        # Waiting for a task
    BUSY = "busy"        # Running a task
    STOPPED = "stopped"  # Thread exited


@dataclass
class Task:
    """
    A deferred call: func(*args, **kwargs).

    Attributes:
        func: The function to execute.
        args: Positional arguments.
        kwargs: Keyword arguments.
        submitted_at: When the task entered the queue.
    """

    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    submitted_at: float = field(default_factory=time.time)


class Worker(threading.Thread):
    """
    Worker thread: take a task, run it, repeat.

        get() ──► None? ──yes──► exit
                    │
                    no
                    ▼
                 run task (exceptions logged, never fatal)
                    │
                    ▼
                 task_done() ──► back to get()
    """

    def __init__(
        self,
        task_queue: queue.Queue,
        worker_id: int,
        idle_timeout: float = 1.0
    ):
        # daemon: a stuck task must not keep the process alive on exit
        super().__init__(name=f"Worker-{worker_id}", daemon=True)
        self.task_queue = task_queue
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout

        self.state = WorkerState.IDLE
        self._shutdown = threading.Event()

        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")

        while not self._shutdown.is_set():
            try:
                task = self.task_queue.get(timeout=self.idle_timeout)
            except queue.Empty:
                continue  # no work; recheck shutdown

            try:
                if task is None:
                    break  # poison pill
                self._execute_task(task)
            finally:
                self.task_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute_task(self, task: Task):
        self.state = WorkerState.BUSY
        start_time = time.time()

        try:
            task.func(*task.args, **task.kwargs)
            elapsed = time.time() - start_time
            logger.debug(f"Worker {self.worker_id} completed task in {elapsed:.3f}s")
            self.tasks_completed += 1

        except Exception as e:
            elapsed = time.time() - start_time
            logger.exception(
                f"Worker {self.worker_id} task failed after {elapsed:.3f}s: {e}"
            )
            self.tasks_failed += 1

        finally:
            self.state = WorkerState.IDLE

    def shutdown(self):
        """Signal the worker to stop after its current task."""
        self._shutdown.set()


class ThreadPool:
    """
    Bounded pool of worker threads.

    Usage:
        pool = ThreadPool(min_workers=4, max_workers=16, queue_size=100)
        pool.start()

        if not pool.submit(handler.process, args=(conn,), block=False):
            ...  # queue full, turn the client away

        abandoned = pool.shutdown(wait=True, timeout=30.0)
    """

    def __init__(
        self,
        min_workers: int = 4,
        max_workers: int = 16,
        queue_size: int = 100,
        idle_timeout: float = 1.0
    ):
        """
        Args:
            min_workers: Threads started with the pool.
            max_workers: Upper bound on threads.
            queue_size: Tasks allowed to wait for a worker.
            idle_timeout: How often an idle worker rechecks for shutdown.
        """
        if min_workers < 1 or max_workers < min_workers:
            raise ValueError("Need 1 <= min_workers <= max_workers")

        self.min_workers = min_workers
        self.max_workers = max_workers
        self.max_queue_size = queue_size
        self.idle_timeout = idle_timeout

        self._task_queue: queue.Queue[Optional[Task]] = queue.Queue(maxsize=queue_size)

        self._workers: list[Worker] = []
        self._lock = threading.Lock()  # guards _workers
        self._started = False
        self._shutdown = False
        self._next_worker_id = 0

    def start(self):
        """Start min_workers threads. Calling twice is a no-op."""
        if self._started:
            return

        logger.info(f"Starting thread pool with {self.min_workers} workers")
        self._shutdown = False
        for _ in range(self.min_workers):
            self._add_worker()
        self._started = True

    def _add_worker(self) -> Worker:
        with self._lock:
            if len(self._workers) >= self.max_workers:
                raise RuntimeError("Maximum workers reached")

            worker = Worker(
                task_queue=self._task_queue,
                worker_id=self._next_worker_id,
                idle_timeout=self.idle_timeout
            )
            self._next_worker_id += 1
            self._workers.append(worker)
            worker.start()
            return worker

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[dict] = None,
        block: bool = True,
        queue_timeout: Optional[float] = None
    ) -> bool:
        """
        Queue func(*args, **kwargs) for a worker.

        Args:
            func: The function to execute.
            args: Positional arguments.
            kwargs: Keyword arguments.
            block: Wait for queue space when full.
            queue_timeout: How long to wait when blocking.

        Returns:
            True if queued, False if the queue was full.

        Raises:
            RuntimeError: If the pool is not started or is shutting down.
        """
        if not self._started:
            raise RuntimeError("Thread pool not started")
        if self._shutdown:
            raise RuntimeError("Thread pool is shutting down")

        task = Task(func=func, args=args, kwargs=kwargs or {})

        try:
            self._task_queue.put(task, block=block, timeout=queue_timeout)
        except queue.Full:
            return False

        self._maybe_scale_up()
        return True

    def _maybe_scale_up(self):
        """Add a worker if all are busy, work is waiting, and there's room."""
        with self._lock:
            busy = sum(1 for w in self._workers if w.state == WorkerState.BUSY)
            if busy < len(self._workers) or len(self._workers) >= self.max_workers:
                return
            if self._task_queue.qsize() == 0:
                return
            logger.debug(
                f"Scaling up: {len(self._workers)} -> {len(self._workers) + 1} workers"
            )

        self._add_worker()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None) -> list[Task]:
        """
        Stop the pool.

        Args:
            wait: Let queued and running tasks finish first.
            timeout: Upper bound on that wait, in seconds. None waits
                     as long as it takes.

        Returns:
            Tasks that were still queued and never ran. The caller owns
            whatever resources they carry (e.g. sockets to close).
        """
        if not self._started:
            return []

        logger.info("Shutting down thread pool...")
        self._shutdown = True

        if wait:
            deadline = time.time() + timeout if timeout is not None else None
            while self._task_queue.unfinished_tasks:
                if deadline is not None and time.time() > deadline:
                    logger.warning(
                        f"Shutdown timeout, {self._task_queue.unfinished_tasks} tasks unfinished"
                    )
                    break
                time.sleep(0.05)

        abandoned = self._drain_queue()

        for worker in self._workers:
            worker.shutdown()
        for _ in self._workers:
            try:
                self._task_queue.put(None, block=False)
            except queue.Full:
                pass  # workers also watch their shutdown event

        for worker in self._workers:
            worker.join(timeout=2.0)

        self._workers.clear()
        self._started = False
        logger.info("Thread pool shutdown complete")
        return abandoned

    def _drain_queue(self) -> list[Task]:
        abandoned = []
        while True:
            try:
                task = self._task_queue.get_nowait()
            except queue.Empty:
                break
            self._task_queue.task_done()
            if task is not None:
                abandoned.append(task)
        return abandoned

    # =========================================================================
    # MONITORING
    # =========================================================================

    @property
    def started(self) -> bool:
        return self._started

    @property
    def worker_count(self) -> int:
        return len(self._workers)

    @property
    def busy_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.BUSY)

    @property
    def queued(self) -> int:
        """Tasks waiting for a worker."""
        return self._task_queue.qsize()

    @property
    def stats(self) -> dict:
        return {
            "workers": {
                "total": len(self._workers),
                "busy": self.busy_workers,
            },
            "tasks": {
                "queued": self._task_queue.qsize(),
                "completed": sum(w.tasks_completed for w in self._workers),
                "failed": sum(w.tasks_failed for w in self._workers),
            },
        }
