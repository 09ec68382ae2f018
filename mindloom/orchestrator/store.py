"""
Task and Context Stores

Durable records behind the orchestrator:
- TaskStore: per-task CRUD, per-user history and metrics
- ContextStore: per-user interests and interaction history

Both keep everything in memory and, when given a path, write a JSON snapshot
after every change. Task status changes are checked against the lifecycle
(pending → processing → completed | failed).
"""

import json
import logging
import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..common.schemas import Task, TaskResult, TaskStatus, UserContext, utc_now

logger = logging.getLogger("mindloom.orchestrator.store")


class StoreError(Exception):
    """Backing store is unavailable or a write was rejected."""


class InvalidTransition(StoreError):
    """Requested status change would move a task backwards."""


class _JsonSnapshot:
    """Whole-file JSON persistence for a dict of records."""

    def __init__(self, path: Optional[Path]):
        self._path = Path(path) if path else None

    def load(self) -> Dict[str, Any]:
        if self._path is None or not self._path.exists():
            return {}
        try:
            with open(self._path) as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            logger.warning("Failed to load %s: %s", self._path, e)
            return {}
        except OSError as e:
            raise StoreError(f"Cannot read {self._path}: {e}") from e

    def save(self, data: Dict[str, Any]) -> None:
        if self._path is None:
            return
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(".tmp")
            with open(tmp_path, "w") as f:
                json.dump(data, f, indent=2, default=str)
            tmp_path.replace(self._path)
        except OSError as e:
            raise StoreError(f"Cannot write {self._path}: {e}") from e


class TaskStore:
    """Task records keyed by id."""

    def __init__(self, path: Optional[Path] = None):
        self._lock = threading.Lock()
        self._snapshot = _JsonSnapshot(path)
        self._tasks: Dict[str, Task] = {
            task_id: Task.model_validate(raw) for task_id, raw in self._snapshot.load().items()
        }

    def _save(self) -> None:
        self._snapshot.save({task_id: t.model_dump(mode="json") for task_id, t in self._tasks.items()})

    def create(self, task: Task) -> Task:
        with self._lock:
            if task.id in self._tasks:
                raise StoreError(f"Task already exists: {task.id}")
            self._tasks[task.id] = task
            try:
                self._save()
            except StoreError:
                del self._tasks[task.id]
                raise
        return task

    def delete(self, task_id: str) -> None:
        """Drop a record that never made it into the queue."""
        with self._lock:
            removed = self._tasks.pop(task_id, None)
            if removed is None:
                return
            try:
                self._save()
            except StoreError:
                self._tasks[task_id] = removed
                raise

    def get(self, task_id: str) -> Optional[Task]:
        with self._lock:
            task = self._tasks.get(task_id)
            return task.model_copy(deep=True) if task else None

    def with_status(self, status: TaskStatus) -> List[Task]:
        """Oldest first."""
        with self._lock:
            tasks = [t for t in self._tasks.values() if t.status == status]
        tasks.sort(key=lambda t: t.created_at)
        return [t.model_copy(deep=True) for t in tasks]

    def transition(
        self,
        task_id: str,
        status: TaskStatus,
        *,
        result: Optional[TaskResult] = None,
        error: Optional[str] = None,
    ) -> Task:
        """Move a task forward in its lifecycle, stamping updated_at."""
        with self._lock:
            current = self._tasks.get(task_id)
            if current is None:
                raise StoreError(f"Unknown task: {task_id}")
            if not current.status.can_transition_to(status):
                raise InvalidTransition(
                    f"Task {task_id}: {current.status.value} → {status.value} not allowed"
                )

            updates: Dict[str, Any] = {"status": status, "updated_at": utc_now()}
            if result is not None:
                updates["result"] = result
            if error is not None:
                updates["error"] = error
            updated = current.model_copy(update=updates)

            self._tasks[task_id] = updated
            try:
                self._save()
            except StoreError:
                self._tasks[task_id] = current
                raise
            return updated.model_copy(deep=True)

    def list_for_user(self, user_id: str, limit: int = 50) -> List[Task]:
        """Newest first."""
        with self._lock:
            tasks = [t for t in self._tasks.values() if t.user_id == user_id]
        tasks.sort(key=lambda t: t.created_at, reverse=True)
        return [t.model_copy(deep=True) for t in tasks[:limit]]

    def metrics(self, user_id: str, days: int = 30, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Completion counts and timing for a user's recent tasks."""
        since = (now or utc_now()) - timedelta(days=days)
        with self._lock:
            tasks = [t for t in self._tasks.values() if t.user_id == user_id and t.created_at >= since]

        total = len(tasks)
        completed = sum(1 for t in tasks if t.status == TaskStatus.COMPLETED)
        failed = sum(1 for t in tasks if t.status == TaskStatus.FAILED)
        durations = [(t.updated_at - t.created_at).total_seconds() for t in tasks]

        return {
            "total_tasks": total,
            "completed_tasks": completed,
            "failed_tasks": failed,
            "success_rate": round(completed / total * 100, 2) if total else 0.0,
            "avg_processing_time": round(sum(durations) / len(durations), 2) if durations else 0.0,
        }


class ContextStore:
    """User contexts keyed by user id."""

    def __init__(self, path: Optional[Path] = None):
        self._lock = threading.Lock()
        self._snapshot = _JsonSnapshot(path)
        self._contexts: Dict[str, UserContext] = {
            user_id: UserContext.model_validate(raw) for user_id, raw in self._snapshot.load().items()
        }

    def get(self, user_id: str) -> Optional[UserContext]:
        with self._lock:
            ctx = self._contexts.get(user_id)
            return ctx.model_copy(deep=True) if ctx else None

    def put(self, context: UserContext) -> None:
        with self._lock:
            previous = self._contexts.get(context.user_id)
            self._contexts[context.user_id] = context
            try:
                self._snapshot.save({uid: c.model_dump(mode="json") for uid, c in self._contexts.items()})
            except StoreError:
                if previous is None:
                    del self._contexts[context.user_id]
                else:
                    self._contexts[context.user_id] = previous
                raise
