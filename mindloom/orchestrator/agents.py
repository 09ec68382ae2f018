"""
Agent Pool & Selector

A fixed set of agents created once at startup. The pool owns all mutable
agent state (status, current task, knowledge) and serializes every change
behind one lock, so an agent can only be claimed by one task at a time.

Scoring:
    score = 0.3 * curiosity + 0.2 * learning_rate + 0.5 * matches
where ``matches`` counts specialization tags that contain at least one
lowercase, whitespace-delimited token of the prompt. Ties go to the agent
configured first.
"""

import logging
import threading
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Tuple

from ..common.schemas import AgentStatus, KnowledgeEntry, KnowledgeItem, Task, utc_now

logger = logging.getLogger("mindloom.orchestrator.agents")

CURIOSITY_WEIGHT = 0.3
LEARNING_RATE_WEIGHT = 0.2
SPECIALIZATION_WEIGHT = 0.5
DEFAULT_KNOWLEDGE_CONFIDENCE = 0.8


@dataclass(frozen=True)
class Personality:
    """Descriptive trait tags; no behavior of their own."""
    traits: Tuple[str, ...]

    def __str__(self) -> str:
        return ", ".join(self.traits)


@dataclass(frozen=True)
class AgentProfile:
    """Static configuration for one agent"""
    name: str
    personality: Personality
    specialization: Tuple[str, ...]
    curiosity_level: float
    learning_rate: float


AGENT_PROFILES: Tuple[AgentProfile, ...] = (
    AgentProfile(
        name="Aria",
        personality=Personality(("curious", "analytical", "thorough")),
        specialization=("research", "analysis", "data-mining"),
        curiosity_level=0.9,
        learning_rate=0.8,
    ),
    AgentProfile(
        name="Zephyr",
        personality=Personality(("creative", "intuitive", "innovative")),
        specialization=("creative-writing", "brainstorming", "ideation"),
        curiosity_level=0.95,
        learning_rate=0.7,
    ),
    AgentProfile(
        name="Sage",
        personality=Personality(("wise", "methodical", "comprehensive")),
        specialization=("knowledge-synthesis", "education", "explanation"),
        curiosity_level=0.8,
        learning_rate=0.9,
    ),
    AgentProfile(
        name="Nova",
        personality=Personality(("energetic", "quick", "adaptive")),
        specialization=("real-time-processing", "quick-responses", "multitasking"),
        curiosity_level=0.85,
        learning_rate=0.85,
    ),
)


@dataclass
class Agent:
    """A stateful worker. Mutate only through AgentPool."""
    id: str
    name: str
    personality: Personality
    specialization: List[str]
    curiosity_level: float
    learning_rate: float
    status: AgentStatus = AgentStatus.IDLE
    current_task: Optional[str] = None
    knowledge_base: Dict[str, KnowledgeEntry] = field(default_factory=dict)

    @classmethod
    def from_profile(cls, profile: AgentProfile) -> "Agent":
        return cls(
            id=f"agent-{profile.name.lower()}",
            name=profile.name,
            personality=profile.personality,
            specialization=list(profile.specialization),
            curiosity_level=profile.curiosity_level,
            learning_rate=profile.learning_rate,
        )

    @property
    def is_idle(self) -> bool:
        return self.status == AgentStatus.IDLE

    def copy(self) -> "Agent":
        return replace(
            self,
            specialization=list(self.specialization),
            knowledge_base=dict(self.knowledge_base),
        )

    def snapshot(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status.value,
            "specialization": list(self.specialization),
            "knowledgeBaseSize": len(self.knowledge_base),
            "curiosityLevel": self.curiosity_level,
        }


class AgentPool:
    """
    Owns the agent table.

    Every read returns copies or plain values; every write happens under the
    pool lock.
    """

    def __init__(self, profiles: Iterable[AgentProfile] = AGENT_PROFILES):
        self._lock = threading.Lock()
        self._agents: Dict[str, Agent] = {}
        for profile in profiles:
            agent = Agent.from_profile(profile)
            self._agents[agent.id] = agent
            logger.info("Initialized agent: %s", agent.name)

    def __len__(self) -> int:
        return len(self._agents)

    def ids(self) -> List[str]:
        return list(self._agents)

    def get(self, agent_id: str) -> Agent:
        with self._lock:
            return self._agents[agent_id].copy()

    def idle_agents(self) -> List[Agent]:
        with self._lock:
            return [a.copy() for a in self._agents.values() if a.is_idle]

    def try_acquire(self, agent_id: str, task_id: str) -> bool:
        """Compare-and-set idle → busy. False if the agent is not idle."""
        with self._lock:
            agent = self._agents[agent_id]
            if agent.status != AgentStatus.IDLE:
                return False
            agent.status = AgentStatus.BUSY
            agent.current_task = task_id
            return True

    def release(self, agent_id: str) -> None:
        with self._lock:
            agent = self._agents[agent_id]
            agent.status = AgentStatus.IDLE
            agent.current_task = None

    def begin_learning(self, agent_id: str) -> None:
        with self._lock:
            self._agents[agent_id].status = AgentStatus.LEARNING

    def end_learning(self, agent_id: str) -> None:
        """Back to busy while a task is held, otherwise idle."""
        with self._lock:
            agent = self._agents[agent_id]
            agent.status = AgentStatus.BUSY if agent.current_task else AgentStatus.IDLE

    def force_status(self, agent_id: str, status: AgentStatus, task_id: Optional[str] = None) -> None:
        """Operator override, e.g. taking an agent out of rotation."""
        with self._lock:
            agent = self._agents[agent_id]
            agent.status = status
            agent.current_task = task_id if status == AgentStatus.BUSY else None

    def merge_knowledge(
        self,
        agent_id: str,
        items: Iterable[KnowledgeItem],
        default_confidence: float = DEFAULT_KNOWLEDGE_CONFIDENCE,
    ) -> int:
        """Store items under their topic (or query), newest wins. Returns count merged."""
        count = 0
        with self._lock:
            knowledge = self._agents[agent_id].knowledge_base
            for item in items:
                key = item.topic or item.query
                knowledge[key] = KnowledgeEntry(
                    item=item,
                    ingested_at=utc_now(),
                    confidence=item.confidence or default_confidence,
                )
                count += 1
        return count

    def recent_knowledge(self, agent_id: str, limit: int = 5) -> List[KnowledgeEntry]:
        with self._lock:
            entries = list(self._agents[agent_id].knowledge_base.values())
        # Same-instant ingests keep merge order (later merges first)
        ranked = sorted(enumerate(entries), key=lambda pair: (pair[1].ingested_at, pair[0]), reverse=True)
        return [entry for _, entry in ranked[:limit]]

    def snapshot(self) -> List[Dict]:
        """Point-in-time status of every agent, in configuration order."""
        with self._lock:
            return [agent.snapshot() for agent in self._agents.values()]


def count_specialization_matches(agent: Agent, prompt: str) -> int:
    tokens = prompt.lower().split()
    return sum(1 for tag in agent.specialization if any(token in tag for token in tokens))


def score_agent(agent: Agent, prompt: str) -> float:
    score = 0.0
    score += agent.curiosity_level * CURIOSITY_WEIGHT
    score += agent.learning_rate * LEARNING_RATE_WEIGHT
    score += count_specialization_matches(agent, prompt) * SPECIALIZATION_WEIGHT
    return score


class AgentSelector:
    """Picks the best idle agent for a task and claims it atomically."""

    def __init__(self, pool: AgentPool):
        self._pool = pool

    def rank(self, task: Task) -> List[Tuple[Agent, float]]:
        """Idle agents with scores, best first; ties keep configuration order."""
        scored = [(agent, score_agent(agent, task.prompt)) for agent in self._pool.idle_agents()]
        scored.sort(key=lambda pair: pair[1], reverse=True)
        return scored

    def select_agent(self, task: Task) -> Optional[Agent]:
        """
        Claim the highest-scoring idle agent for ``task``.

        Returns None when no agent is idle. If another worker claims the
        best candidate first, the next one is tried.
        """
        for agent, score in self.rank(task):
            if self._pool.try_acquire(agent.id, task.id):
                logger.debug("Selected %s for %s (score %.2f)", agent.name, task.id, score)
                return agent
        return None
