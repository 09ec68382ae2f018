"""
Context Builder

Assembles what we know about a user (interests, interaction count, recent
prompts) into a UserContext for one task, and folds new interests back in
after the task completes.
"""

import logging
from datetime import datetime
from typing import Iterable, Optional

from ..common.schemas import UserContext
from .store import ContextStore, TaskStore

logger = logging.getLogger("mindloom.orchestrator.context_builder")


class ContextBuilder:
    """
    Reads and updates per-user context.

    Args:
        store: Durable per-user context store
        task_store: Optional task store used to attach recent prompts
        history_limit: How many recent prompts to attach
    """

    def __init__(
        self,
        store: ContextStore,
        task_store: Optional[TaskStore] = None,
        history_limit: int = 5,
    ):
        self._store = store
        self._task_store = task_store
        self._history_limit = history_limit

    def build_context(self, user_id: str, prompt: str) -> UserContext:
        """Stored context for the user, or an empty one for a new user."""
        context = self._store.get(user_id) or UserContext(user_id=user_id)

        if self._task_store is not None:
            recent = [
                t.prompt
                for t in self._task_store.list_for_user(user_id, limit=self._history_limit + 1)
                if t.prompt != prompt
            ]
            if recent:
                context.context_data["recent_prompts"] = recent[: self._history_limit]

        return context

    def update_user_context(
        self,
        user_id: str,
        interests: Iterable[str],
        last_interaction: Optional[datetime] = None,
    ) -> UserContext:
        """Union new interests into the stored set and count one more interaction."""
        current = self._store.get(user_id) or UserContext(user_id=user_id)
        updated = current.merged_with(list(interests), last_interaction=last_interaction)
        self._store.put(updated)
        logger.debug(
            "Updated context for %s: %d interest(s), %d interaction(s)",
            user_id, len(updated.interests), updated.interaction_count,
        )
        return updated
