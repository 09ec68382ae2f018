"""
Mindloom Schemas

Task, knowledge and user-context models shared across the orchestrator.
"""

from .models import (
    Task,
    TaskStatus,
    TaskResult,
    AgentStatus,
    KnowledgeItem,
    KnowledgeEntry,
    UserContext,
    generate_task_id,
    utc_now,
)

__all__ = [
    "Task",
    "TaskStatus",
    "TaskResult",
    "AgentStatus",
    "KnowledgeItem",
    "KnowledgeEntry",
    "UserContext",
    "generate_task_id",
    "utc_now",
]
