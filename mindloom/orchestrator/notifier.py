"""
Notifier

Per-user push channel for task events. Events go only to subscribers of the
submitting user's channel.

Events:
- task-progress: {taskId, status: "completed", result, agent}
- task-error: {taskId, error}
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List

logger = logging.getLogger("mindloom.orchestrator.notifier")

TASK_PROGRESS = "task-progress"
TASK_ERROR = "task-error"


def channel_name(user_id: str) -> str:
    return f"user-{user_id}"


class Notifier(ABC):
    """Publish interface used by the orchestrator."""

    @abstractmethod
    async def publish(self, user_id: str, event: str, payload: Dict[str, Any]) -> None:
        ...


class EventBroker(Notifier):
    """
    In-process publish/subscribe keyed by user channel.

    Each subscriber gets its own asyncio.Queue of ``{"event", "data"}``
    messages. A full subscriber queue drops the message for that subscriber
    only.
    """

    def __init__(self, max_queue_size: int = 100):
        self._max_queue_size = max_queue_size
        self._subscribers: Dict[str, List[asyncio.Queue]] = {}

    def subscribe(self, user_id: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queue_size)
        self._subscribers.setdefault(channel_name(user_id), []).append(queue)
        return queue

    def unsubscribe(self, user_id: str, queue: asyncio.Queue) -> None:
        channel = channel_name(user_id)
        queues = self._subscribers.get(channel, [])
        if queue in queues:
            queues.remove(queue)
        if not queues:
            self._subscribers.pop(channel, None)

    def subscriber_count(self, user_id: str) -> int:
        return len(self._subscribers.get(channel_name(user_id), []))

    async def publish(self, user_id: str, event: str, payload: Dict[str, Any]) -> None:
        message = {"event": event, "data": payload}
        for queue in list(self._subscribers.get(channel_name(user_id), [])):
            try:
                queue.put_nowait(message)
            except asyncio.QueueFull:
                logger.warning("Dropping %s for %s: subscriber queue full", event, channel_name(user_id))
