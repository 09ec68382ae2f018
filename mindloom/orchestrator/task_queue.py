"""
Task Queue

Ordered holding area for submitted tasks awaiting processing.

Ordering is FIFO by enqueue time; the task priority is carried but does not
reorder the queue. Dequeue is at-most-once: a task handed to one caller is
gone for every other caller. When a path is given the queue is persisted to
JSON after every change, so pending work survives a restart.
"""

import json
import logging
import threading
from collections import deque
from pathlib import Path
from typing import Deque, List, Optional

from ..common.schemas import Task, TaskStatus

logger = logging.getLogger("mindloom.orchestrator.task_queue")


class QueueError(Exception):
    """Backing store for the queue is unavailable."""


class TaskQueue:
    """
    FIFO task queue.

    Workflow:
    1. submit_task enqueues a pending task
    2. The orchestration loop dequeues one task per tick
    3. If no agent is free, the task is put back at the head
    """

    def __init__(self, queue_path: Optional[Path] = None):
        """
        Initialize task queue.

        Args:
            queue_path: JSON file backing the queue (None → in-memory only)
        """
        self._queue_path = Path(queue_path) if queue_path else None
        self._lock = threading.Lock()
        self._queue: Deque[Task] = deque()
        self._load_queue()

    def _load_queue(self) -> None:
        """Load queue from disk"""
        if self._queue_path is None or not self._queue_path.exists():
            return

        try:
            with open(self._queue_path) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning("Failed to load queue from %s: %s", self._queue_path, e)
            return
        except OSError as e:
            raise QueueError(f"Cannot read task queue: {e}") from e

        self._queue = deque(Task.model_validate(item) for item in data)
        logger.info("Loaded %d pending task(s) from %s", len(self._queue), self._queue_path)

    def _save_queue(self) -> None:
        """Save queue to disk"""
        if self._queue_path is None:
            return

        data = [task.model_dump(mode="json") for task in self._queue]
        try:
            self._queue_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._queue_path.with_suffix(".tmp")
            with open(tmp_path, "w") as f:
                json.dump(data, f, indent=2, default=str)
            tmp_path.replace(self._queue_path)
        except OSError as e:
            raise QueueError(f"Cannot write task queue: {e}") from e

    def enqueue(self, task: Task) -> None:
        """Add a pending task at the tail."""
        if task.status != TaskStatus.PENDING:
            raise ValueError(f"Only pending tasks can be queued, got {task.status.value}")

        with self._lock:
            self._queue.append(task)
            try:
                self._save_queue()
            except QueueError:
                self._queue.pop()
                raise

    def dequeue(self) -> Optional[Task]:
        """Remove and return the head task, or None if the queue is empty."""
        with self._lock:
            if not self._queue:
                return None
            task = self._queue.popleft()
            try:
                self._save_queue()
            except QueueError:
                self._queue.appendleft(task)
                raise
            return task

    def requeue(self, task: Task) -> None:
        """Put a task back at the head so the next tick sees it first."""
        with self._lock:
            self._queue.appendleft(task)
            try:
                self._save_queue()
            except QueueError:
                self._queue.popleft()
                raise

    @property
    def path(self) -> Optional[Path]:
        return self._queue_path

    def pending_ids(self) -> List[str]:
        with self._lock:
            return [task.id for task in self._queue]

    def __len__(self) -> int:
        with self._lock:
            return len(self._queue)
