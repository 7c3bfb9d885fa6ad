"""
=============================================================================
WORKER POOL
=============================================================================

Runs accepted connections concurrently on a bounded set of threads.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                     │
    │   accept thread                                                     │
    │        │ submit(process, conn)                                      │
    │        ▼                                                            │
    │   ┌──────────────────────────────┐    full?  → submit() == False   │
    │   │ queue.Queue(maxsize=N)       │            → caller sends 503    │
    │   └──────────────────────────────┘                                  │
    │        │        │        │                                          │
    │        ▼        ▼        ▼                                          │
    │   Worker-0  Worker-1  Worker-2 ... (min_workers..max_workers)       │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

Workers are daemon threads. Shutdown pushes one None ("poison pill") per
worker after the queue drains, so every queued connection still gets an
answer.

Request handling is I/O bound (socket reads, database round trips), so
threads release the GIL while they wait and a pool of them scales fine.

=============================================================================
"""

import threading
import queue
import time
import logging
from typing import Callable, Optional, Any
from dataclasses import dataclass, field
from enum import Enum


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
        args: Positional arguments.
        kwargs: Keyword arguments.
        submitted_at: When the task was queued.
    """
    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    submitted_at: float = field(default_factory=time.time)


class Worker(threading.Thread):
    """
    Pulls tasks off the shared queue until it receives None.

    An exception raised by a task is logged and counted; it never kills
    the thread.
    """

    def __init__(self, task_queue: queue.Queue, worker_id: int, idle_timeout: float = 60.0):
        super().__init__(name=f"Worker-{worker_id}", daemon=True)

        self.task_queue = task_queue
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout

        self.state = WorkerState.IDLE
        self._shutdown = threading.Event()

        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        logger.debug("Worker %s started", self.worker_id)

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
        logger.debug("Worker %s stopped", self.worker_id)

    def _execute_task(self, task: Task):
        self.state = WorkerState.BUSY
        start_time = time.time()

        try:
            task.func(*task.args, **task.kwargs)
            self.tasks_completed += 1
            logger.debug(
                "Worker %s completed task in %.3fs (queued %.3fs)",
                self.worker_id,
                time.time() - start_time,
                start_time - task.submitted_at,
            )
        except Exception:
            self.tasks_failed += 1
            logger.exception(
                "Worker %s task failed after %.3fs",
                self.worker_id, time.time() - start_time,
            )
        finally:
            self.state = WorkerState.IDLE

    def shutdown(self):
        self._shutdown.set()


class ThreadPool:
    """
    Bounded thread pool.

        pool = ThreadPool(min_workers=4, max_workers=16, queue_size=100)
        pool.start()

        if not pool.submit(handle, args=(conn,)):
            ...  # saturated

        pool.shutdown(wait=True)

    Starts with min_workers threads and adds one whenever every worker
    is busy and tasks are waiting, up to max_workers.
    """

    def __init__(
        self,
        min_workers: int = 4,
        max_workers: int = 16,
        queue_size: int = 100,
        idle_timeout: float = 1.0
    ):
        self.min_workers = min_workers
        self.max_workers = max_workers
        self.max_queue_size = queue_size
        self.idle_timeout = idle_timeout

        self._task_queue: queue.Queue[Optional[Task]] = queue.Queue(maxsize=queue_size)

        self._workers: list[Worker] = []
        self._lock = threading.Lock()
        self._started = False
        self._shutdown = False
        self._next_worker_id = 0

    def start(self):
        if self._started:
            return

        logger.info("Starting thread pool with %d workers", self.min_workers)
        self._shutdown = False
        for _ in range(self.min_workers):
            self._add_worker()
        self._started = True

    def _add_worker(self) -> Worker:
        with self._lock:
            return self._add_worker_locked()

    def _add_worker_locked(self) -> Worker:
        if len(self._workers) >= self.max_workers:
            raise RuntimeError("Maximum workers reached")

        worker = Worker(
            task_queue=self._task_queue,
            worker_id=self._next_worker_id,
            idle_timeout=self.idle_timeout,
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
        block: bool = False,
        queue_timeout: Optional[float] = None
    ) -> bool:
        """
        Queue a task.

        Returns:
            True if queued, False if the queue was full.

        Raises:
            RuntimeError: If the pool is not running.
        """
        if not self._started:
            raise RuntimeError("Thread pool not started")
        if self._shutdown:
            raise RuntimeError("Thread pool is shutting down")

        task = Task(func=func, args=args, kwargs=kwargs or {})

        try:
            self._task_queue.put(task, block=block, timeout=queue_timeout)
        except queue.Full:
            logger.warning("Task queue full (%d queued)", self._task_queue.qsize())
            return False

        self._maybe_scale_up()
        return True

    def _maybe_scale_up(self):
        """Add a worker when all are busy and tasks are waiting."""
        with self._lock:
            busy_count = sum(1 for w in self._workers if w.state == WorkerState.BUSY)

            if busy_count == len(self._workers) and len(self._workers) < self.max_workers:
                if self._task_queue.qsize() > 0:
                    logger.debug(
                        "Scaling up: %d -> %d workers",
                        len(self._workers), len(self._workers) + 1,
                    )
                    self._add_worker_locked()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop the pool.

        Args:
            wait: Let queued tasks finish first.
            timeout: Upper bound on the wait, in seconds.
        """
        if not self._started:
            return

        logger.info("Shutting down thread pool...")
        self._shutdown = True

        if wait:
            deadline = time.time() + timeout if timeout else None
            while self._task_queue.unfinished_tasks:
                if deadline and time.time() > deadline:
                    logger.warning("Shutdown timeout, forcing stop")
                    break
                time.sleep(0.05)

        for worker in self._workers:
            worker.shutdown()
            try:
                self._task_queue.put(None, block=False)
            except queue.Full:
                pass  # Worker will see the shutdown flag instead

        for worker in self._workers:
            worker.join(timeout=2.0)

        completed = sum(w.tasks_completed for w in self._workers)
        failed = sum(w.tasks_failed for w in self._workers)
        self._workers.clear()
        self._started = False
        logger.info(
            "Thread pool shutdown complete (%d tasks completed, %d failed)",
            completed, failed,
        )

    @property
    def worker_count(self) -> int:
        return len(self._workers)
