"""
Mindloom Core Schemas

Tasks move through a one-way lifecycle: pending → processing → completed | failed.
Knowledge items are immutable once synthesized.
Agents live in the orchestrator (mutable runtime state), not here.
"""

import random
import string
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Enums
# ============================================================================

class TaskStatus(str, Enum):
    """Task lifecycle status"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)

    def can_transition_to(self, target: "TaskStatus") -> bool:
        """Transitions only move forward; terminal states are final."""
        return target in _ALLOWED_TRANSITIONS[self]


_ALLOWED_TRANSITIONS = {
    TaskStatus.PENDING: {TaskStatus.PROCESSING},
    TaskStatus.PROCESSING: {TaskStatus.COMPLETED, TaskStatus.FAILED},
    TaskStatus.COMPLETED: set(),
    TaskStatus.FAILED: set(),
}


class AgentStatus(str, Enum):
    """Agent availability"""
    IDLE = "idle"
    BUSY = "busy"
    LEARNING = "learning"


# ============================================================================
# Task
# ============================================================================

class TaskResult(BaseModel):
    """Final payload produced for a completed task"""
    content: str
    agent_id: str
    agent_name: str
    knowledge_topics: List[str] = Field(default_factory=list)
    knowledge_confidence: float = Field(ge=0.0, le=1.0, default=0.0)
    generated_at: datetime = Field(default_factory=utc_now)


class Task(BaseModel):
    """A unit of user work"""
    id: str = Field(..., description="Externally visible id: task-<millis>-<random>")
    user_id: str
    prompt: str
    context: Dict[str, Any] = Field(default_factory=dict, description="Caller-supplied structured context")
    priority: int = Field(default=1, description="Higher is more urgent; not used for ordering")
    status: TaskStatus = Field(default=TaskStatus.PENDING)
    result: Optional[TaskResult] = None
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


def generate_task_id(now_ms: Optional[int] = None) -> str:
    """Generate a task id: task-<epoch millis>-<9 base36 chars>"""
    millis = now_ms if now_ms is not None else int(time.time() * 1000)
    alphabet = string.digits + string.ascii_lowercase
    suffix = "".join(random.choices(alphabet, k=9))
    return f"task-{millis}-{suffix}"


# ============================================================================
# Knowledge
# ============================================================================

class KnowledgeItem(BaseModel):
    """
    A scored, synthesized answer to one retrieval query.

    Immutable: agents store copies stamped with their own ingestion time.
    """
    model_config = ConfigDict(frozen=True)

    query: str
    topic: str
    content: str
    source: str = "Multi-source synthesis"
    confidence: float = Field(ge=0.0, le=1.0, default=0.1)
    timestamp: datetime = Field(default_factory=utc_now)
    related_topics: List[str] = Field(default_factory=list)


class KnowledgeEntry(BaseModel):
    """A knowledge item as held in an agent's private knowledge mapping"""
    item: KnowledgeItem
    ingested_at: datetime = Field(default_factory=utc_now)
    confidence: float = Field(ge=0.0, le=1.0, default=0.8)


# ============================================================================
# User context
# ============================================================================

class UserContext(BaseModel):
    """Accumulated per-user interests and interaction history"""
    user_id: str
    interests: List[str] = Field(default_factory=list, description="Set semantics, insertion ordered")
    interaction_count: int = Field(default=0, ge=0)
    last_interaction: Optional[datetime] = None
    context_data: Dict[str, Any] = Field(default_factory=dict)

    @property
    def has_history(self) -> bool:
        return self.interaction_count > 0

    def merged_with(
        self,
        interests: List[str],
        last_interaction: Optional[datetime] = None,
        context_data: Optional[Dict[str, Any]] = None,
    ) -> "UserContext":
        """
        Return a copy with interests unioned and the interaction count bumped.

        Never removes interests and never decreases the interaction count.
        """
        merged = list(dict.fromkeys([*self.interests, *(i.strip() for i in interests if i and i.strip())]))
        data = dict(self.context_data)
        if context_data:
            data.update(context_data)
        return UserContext(
            user_id=self.user_id,
            interests=merged,
            interaction_count=self.interaction_count + 1,
            last_interaction=last_interaction or utc_now(),
            context_data=data,
        )
