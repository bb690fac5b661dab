"""Task registry and async runner for long generation runs.

A caller hands :meth:`TaskRunner.submit` a coroutine function; the runner
records a ``pending`` task, schedules the coroutine on the running event loop
and returns the task id straight away.  The coroutine receives a
``report(progress, message)`` callable it uses to publish progress.  Pollers
read immutable :class:`TaskSnapshot` copies from the :class:`TaskRegistry`.

State machine::

    pending -> running -> completed
                       -> failed

Terminal tasks are never mutated again.  The registry is guarded by a lock so
status reads from other threads (e.g. a web server's thread pool) are safe.
"""

from __future__ import annotations

import asyncio
import collections
import logging
import threading
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import Any

from pydantic import BaseModel

from mock_iot.errors import InvalidTransitionError
from mock_iot.models import GenerationTask, TaskSnapshot, TaskStatus, utcnow

__all__ = ["ProgressReporter", "TaskBody", "TaskRegistry", "TaskRunner"]

logger = logging.getLogger("mock_iot.tasks")

ProgressReporter = Callable[[int, str], None]
TaskBody = Callable[[ProgressReporter], Awaitable[Any]]
TaskListener = Callable[[TaskSnapshot], None]

# Progress stays below 100 until the task actually completes.
_MAX_RUNNING_PROGRESS = 99


class TaskRegistry:
    """Thread-safe store of every task submitted in this process.

    Parameters:
        max_tasks:
            Upper bound on retained tasks.  When reached, the oldest
            *terminal* task is evicted to make room.  Pending and running
            tasks are never evicted.  ``None`` disables the bound.
        ttl_s:
            Terminal tasks whose ``end_time`` is older than this are swept
            on every :meth:`create`.  ``None`` keeps them forever.
        clock:
            Returns the current aware datetime (injectable for tests).
    """

    def __init__(
        self,
        *,
        max_tasks: int | None = 1000,
        ttl_s: float | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.max_tasks = max_tasks
        self.ttl_s = ttl_s
        self._clock = clock
        self._tasks: collections.OrderedDict[str, GenerationTask] = collections.OrderedDict()
        self._lock = threading.RLock()
        self._listeners: list[TaskListener] = []

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_status(self, task_id: str) -> TaskSnapshot | None:
        """Snapshot of one task, or ``None`` if the id is unknown (or evicted)."""
        with self._lock:
            task = self._tasks.get(task_id)
            return _snapshot(task) if task is not None else None

    def list_all(self) -> list[TaskSnapshot]:
        """Snapshots of every retained task, oldest first."""
        with self._lock:
            return [_snapshot(t) for t in self._tasks.values()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        with self._lock:
            return task_id in self._tasks

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: TaskListener) -> None:
        """Call *listener* with a snapshot after every task change."""
        self._listeners.append(listener)

    def remove_listener(self, listener: TaskListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ------------------------------------------------------------------
    # Mutations (used by TaskRunner)
    # ------------------------------------------------------------------

    def create(self, kind: str, *, task_id: str | None = None, message: str = "Task created, waiting to run") -> TaskSnapshot:
        """Register a new ``pending`` task and return its snapshot."""
        task_id = task_id or str(uuid.uuid4())
        with self._lock:
            if task_id in self._tasks:
                raise ValueError(f"Task {task_id} already exists")
            self._evict()
            task = GenerationTask(task_id=task_id, kind=kind, message=message, start_time=self._clock())
            self._tasks[task_id] = task
            snap = _snapshot(task)
        self._notify(snap)
        return snap

    def mark_running(self, task_id: str, message: str | None = None) -> TaskSnapshot:
        return self._transition(task_id, TaskStatus.RUNNING, message=message)

    def update_progress(self, task_id: str, progress: int, message: str | None = None) -> TaskSnapshot:
        """Raise a running task's progress; lower values are ignored."""
        with self._lock:
            task = self._require(task_id)
            if task.status is not TaskStatus.RUNNING:
                raise InvalidTransitionError(f"Task {task_id} is {task.status}, cannot report progress")
            progress = min(int(progress), _MAX_RUNNING_PROGRESS)
            task.progress = max(task.progress, progress)
            if message is not None:
                task.message = message
            snap = _snapshot(task)
        self._notify(snap)
        return snap

    def complete(self, task_id: str, result: dict[str, Any] | None, message: str | None = None) -> TaskSnapshot:
        return self._transition(task_id, TaskStatus.COMPLETED, message=message or "Task completed", result=result)

    def fail(self, task_id: str, error: str, message: str | None = None) -> TaskSnapshot:
        return self._transition(task_id, TaskStatus.FAILED, message=message or f"Task failed: {error}", error=error)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    _ALLOWED: dict[TaskStatus, tuple[TaskStatus, ...]] = {
        TaskStatus.PENDING: (TaskStatus.RUNNING,),
        TaskStatus.RUNNING: (TaskStatus.COMPLETED, TaskStatus.FAILED),
        TaskStatus.COMPLETED: (),
        TaskStatus.FAILED: (),
    }

    def _transition(
        self,
        task_id: str,
        status: TaskStatus,
        *,
        message: str | None = None,
        result: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> TaskSnapshot:
        with self._lock:
            task = self._require(task_id)
            if status not in self._ALLOWED[task.status]:
                raise InvalidTransitionError(f"Task {task_id}: {task.status} -> {status} is not allowed")
            task.status = status
            if message is not None:
                task.message = message
            if status is TaskStatus.COMPLETED:
                task.progress = 100
                task.result = result
            elif status is TaskStatus.FAILED:
                task.error = error
            if status.is_terminal:
                task.end_time = self._clock()
            snap = _snapshot(task)
        self._notify(snap)
        return snap

    def _require(self, task_id: str) -> GenerationTask:
        task = self._tasks.get(task_id)
        if task is None:
            raise KeyError(task_id)
        return task

    def _evict(self) -> None:
        """Drop expired terminal tasks, then the oldest terminal ones if full."""
        if self.ttl_s is not None:
            cutoff = self._clock() - timedelta(seconds=self.ttl_s)
            expired = [
                tid
                for tid, t in self._tasks.items()
                if t.status.is_terminal and t.end_time is not None and t.end_time < cutoff
            ]
            for tid in expired:
                del self._tasks[tid]
            if expired:
                logger.debug("Swept %d expired tasks", len(expired))

        if self.max_tasks is None:
            return
        while len(self._tasks) >= self.max_tasks:
            victim = next((tid for tid, t in self._tasks.items() if t.status.is_terminal), None)
            if victim is None:
                logger.warning(
                    "Task registry holds %d unfinished tasks (max_tasks=%d) - growing past the limit",
                    len(self._tasks),
                    self.max_tasks,
                )
                return
            del self._tasks[victim]
            logger.debug("Evicted task %s", victim)

    def _notify(self, snap: TaskSnapshot) -> None:
        for listener in list(self._listeners):
            try:
                listener(snap)
            except Exception:
                logger.exception("Task listener %r raised", listener)


def _snapshot(task: GenerationTask) -> TaskSnapshot:
    return TaskSnapshot.model_validate(task.model_dump())


# -----------------------------------------------------------------------
# Runner
# -----------------------------------------------------------------------


class TaskRunner:
    """Runs task bodies in the background and records their outcome.

    Each submitted body runs as its own :class:`asyncio.Task` on the event
    loop that is running when :meth:`submit` is called.  There is no
    cancellation or timeout: a task runs until it completes or fails.
    """

    def __init__(self, registry: TaskRegistry | None = None) -> None:
        self.registry = registry if registry is not None else TaskRegistry()
        self._handles: dict[str, asyncio.Task[None]] = {}

    def submit(self, kind: str, body: TaskBody) -> str:
        """Create a task for *body*, schedule it, and return the task id.

        Must be called with an event loop running in the current thread.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as exc:
            raise RuntimeError("TaskRunner.submit() requires a running event loop") from exc

        task_id = self.registry.create(kind).task_id
        handle = loop.create_task(self._execute(task_id, kind, body), name=f"{kind}-{task_id[:8]}")
        self._handles[task_id] = handle
        handle.add_done_callback(lambda _h, tid=task_id: self._handles.pop(tid, None))
        logger.info("Submitted %s task %s", kind, task_id)
        return task_id

    async def wait(self, task_id: str, timeout: float | None = None) -> TaskSnapshot | None:
        """Wait until *task_id* reaches a terminal state and return its snapshot."""
        handle = self._handles.get(task_id)
        if handle is not None:
            await asyncio.wait_for(asyncio.shield(handle), timeout)
        return self.registry.get_status(task_id)

    async def wait_all(self) -> None:
        """Wait for every task still running."""
        handles = list(self._handles.values())
        if handles:
            await asyncio.gather(*handles, return_exceptions=True)

    @property
    def active_count(self) -> int:
        return len(self._handles)

    async def _execute(self, task_id: str, kind: str, body: TaskBody) -> None:
        self.registry.mark_running(task_id, message=f"Running {kind}")

        def report(progress: int, message: str) -> None:
            self.registry.update_progress(task_id, progress, message)

        try:
            result = await body(report)
        except asyncio.CancelledError:
            self.registry.fail(task_id, "cancelled")
            raise
        except Exception as exc:
            logger.exception("Task %s (%s) failed", task_id, kind)
            self.registry.fail(task_id, str(exc) or type(exc).__name__)
            return

        self.registry.complete(task_id, _as_result(result), message=_result_message(result))
        logger.info("Task %s (%s) completed", task_id, kind)


def _as_result(result: Any) -> dict[str, Any] | None:
    if result is None:
        return None
    if isinstance(result, BaseModel):
        return result.model_dump(mode="json")
    if isinstance(result, dict):
        return result
    return {"value": result}


def _result_message(result: Any) -> str | None:
    message = getattr(result, "message", None)
    return message if isinstance(message, str) and message else None
