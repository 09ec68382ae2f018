"""
Orchestrator - Task lifecycle and agent selection

Accepts user tasks, queues them, picks the best-suited idle agent, gathers
knowledge, produces a result, updates the user's context and notifies the
user's channel.

Key Components:
- TaskQueue: FIFO holding area with at-most-once dequeue
- AgentPool / AgentSelector: Agent state and score-based claiming
- TaskStore / ContextStore: Task records and per-user context
- ContextBuilder: Per-task user context
- TaskProcessor: Final text generation
- EventBroker: Per-user event channels
- Orchestrator: One task per tick, driven by PeriodicScheduler
"""

from .agents import AGENT_PROFILES, Agent, AgentPool, AgentProfile, AgentSelector, Personality, score_agent
from .task_queue import QueueError, TaskQueue
from .store import ContextStore, InvalidTransition, StoreError, TaskStore
from .context_builder import ContextBuilder
from .notifier import TASK_ERROR, TASK_PROGRESS, EventBroker, Notifier, channel_name
from .processor import TaskProcessor, build_system_prompt
from .scheduler import PeriodicScheduler
from .orchestrator import Orchestrator, TickOutcome

__all__ = [
    "AGENT_PROFILES",
    "Agent",
    "AgentPool",
    "AgentProfile",
    "AgentSelector",
    "Personality",
    "score_agent",
    "QueueError",
    "TaskQueue",
    "ContextStore",
    "InvalidTransition",
    "StoreError",
    "TaskStore",
    "ContextBuilder",
    "TASK_ERROR",
    "TASK_PROGRESS",
    "EventBroker",
    "Notifier",
    "channel_name",
    "TaskProcessor",
    "build_system_prompt",
    "PeriodicScheduler",
    "Orchestrator",
    "TickOutcome",
]
