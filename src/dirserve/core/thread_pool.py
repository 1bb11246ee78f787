"""
=============================================================================
THREAD POOL
=============================================================================

A bounded pool of worker threads serving accepted connections.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   accept loop ──submit(conn)──► ┌──────────────┐                    │
    │                                 │  task queue  │ (bounded)          │
    │                                 └──────┬───────┘                    │
    │                       ┌────────────────┼────────────────┐           │
    │                       ▼                ▼                ▼           │
    │                  ┌─────────┐      ┌─────────┐      ┌─────────┐      │
    │                  │Worker-0 │      │Worker-1 │  ... │Worker-N │      │
    │                  └─────────┘      └─────────┘      └─────────┘      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    min_workers   started up front, always running
    max_workers   upper bound; one more worker is added whenever every
                  worker is busy and tasks are waiting
    queue_size    when the queue is full, submit(block=False) returns
                  False and the caller answers 503

Shutdown uses the poison-pill pattern: one ``None`` per worker is queued
and each worker exits when it takes one.

=============================================================================
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


@dataclass
class Task:
    """
    A deferred function call.

    Attributes:
        func: The function to execute.
        args: Positional arguments for the function.
        kwargs: Keyword arguments for the function.
        submitted_at: Submission time, for the queue-wait log.
    """

    func: Callable[..., Any]
    args: tuple = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)
    submitted_at: float = field(default_factory=time.monotonic)


class Worker(threading.Thread):
    """
    Worker thread that pulls tasks from the queue until it gets a poison pill.

    A task that raises is logged and counted; the worker carries on.
    """

    def __init__(self, task_queue: "queue.Queue[Optional[Task]]", worker_id: int, idle_timeout: float = 60.0):
        super().__init__(name=f"dirserve-worker-{worker_id}", daemon=True)
        self.task_queue = task_queue
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout

        self.state = WorkerState.IDLE
        self._shutdown = threading.Event()

        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        logger.debug("Worker %d started", self.worker_id)

        while not self._shutdown.is_set():
            try:
                task = self.task_queue.get(timeout=self.idle_timeout)
            except queue.Empty:
                continue

            try:
                if task is None:
                    break
                self._execute_task(task)
            finally:
                self.task_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug("Worker %d stopped", self.worker_id)

    def _execute_task(self, task: Task):
        self.state = WorkerState.BUSY
        start_time = time.monotonic()
        waited = start_time - task.submitted_at
        if waited > 1.0:
            logger.debug("Task waited %.2fs in queue", waited)

        try:
            task.func(*task.args, **task.kwargs)
            self.tasks_completed += 1
        except Exception:
            elapsed = time.monotonic() - start_time
            logger.exception("Worker %d task failed after %.3fs", self.worker_id, elapsed)
            self.tasks_failed += 1
        finally:
            self.state = WorkerState.IDLE

    def shutdown(self):
        """Ask the worker to exit after its current task."""
        self._shutdown.set()


class ThreadPool:
    """
    Thread pool for concurrent connection handling.

    Usage:
        pool = ThreadPool(min_workers=4, max_workers=16)
        pool.start()
        if not pool.submit(handle_connection, args=(conn,), block=False):
            reject(conn)
        pool.shutdown()
    """

    def __init__(
        self,
        min_workers: int = 4,
        max_workers: int = 16,
        queue_size: int = 100,
        idle_timeout: float = 60.0
    ):
        self.min_workers = min_workers
        self.max_workers = max_workers
        self.queue_size = queue_size
        self.idle_timeout = idle_timeout

        self._task_queue: "queue.Queue[Optional[Task]]" = queue.Queue(maxsize=queue_size)
        self._workers: List[Worker] = []
        # Reentrant: scale-up adds a worker while already holding it
        self._lock = threading.RLock()
        self._started = False
        self._shutdown = False
        self._next_worker_id = 0

    def start(self):
        """Start the pool with ``min_workers`` workers."""
        with self._lock:
            if self._started:
                return
            logger.info("Starting thread pool with %d workers", self.min_workers)
            for _ in range(self.min_workers):
                self._add_worker()
            self._started = True

    def _add_worker(self) -> Worker:
        with self._lock:
            if len(self._workers) >= self.max_workers:
                raise RuntimeError("Maximum workers reached")
            worker = Worker(self._task_queue, self._next_worker_id, self.idle_timeout)
            self._next_worker_id += 1
            self._workers.append(worker)
            worker.start()
            return worker

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[Dict[str, Any]] = None,
        block: bool = True,
        queue_timeout: Optional[float] = None
    ) -> bool:
        """
        Queue ``func(*args, **kwargs)`` for a worker.

        Returns:
            True if the task was queued, False if the queue was full.

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
        """Add a worker when every worker is busy and work is waiting."""
        with self._lock:
            if len(self._workers) >= self.max_workers:
                return
            busy = sum(1 for w in self._workers if w.state is WorkerState.BUSY)
            if busy == len(self._workers) and self._task_queue.qsize() > 0:
                logger.debug("Scaling up: %d -> %d workers", len(self._workers), len(self._workers) + 1)
                self._add_worker()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop the pool.

        Args:
            wait: Let queued tasks finish first.
            timeout: Upper bound on the wait, in seconds.
        """
        with self._lock:
            if not self._started:
                return
            self._shutdown = True
            workers = list(self._workers)

        logger.info("Shutting down thread pool...")

        if wait:
            deadline = time.monotonic() + timeout if timeout else None
            while not self._task_queue.empty():
                if deadline is not None and time.monotonic() > deadline:
                    logger.warning("Shutdown timeout, forcing stop")
                    break
                time.sleep(0.05)

        for worker in workers:
            worker.shutdown()
            try:
                self._task_queue.put(None, block=False)
            except queue.Full:
                # the worker sees its shutdown flag after idle_timeout instead
                pass

        for worker in workers:
            worker.join(timeout=2.0)

        with self._lock:
            self._workers.clear()
            self._started = False
        logger.info("Thread pool shutdown complete")

    @property
    def stats(self) -> Dict[str, Any]:
        """Worker and queue counters, for debugging."""
        with self._lock:
            workers = list(self._workers)
        return {
            "workers": {
                "total": len(workers),
                "busy": sum(1 for w in workers if w.state is WorkerState.BUSY),
                "idle": sum(1 for w in workers if w.state is WorkerState.IDLE),
            },
            "queue": {"size": self._task_queue.qsize(), "max": self.queue_size},
            "tasks": {
                "completed": sum(w.tasks_completed for w in workers),
                "failed": sum(w.tasks_failed for w in workers),
            },
        }
