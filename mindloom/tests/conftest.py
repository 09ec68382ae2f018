"""Shared fixtures: a scripted LLM, stub sources and a wired orchestrator."""

import json
import random
from typing import Dict, List, Optional, Set

import pytest

from mindloom.common import analyst as prompts


class FakeLLM:
    """
    Stand-in for LLMClient that answers by prompt kind.

    ``fail_on`` holds kinds ("concepts", "insights", "synthesis", "topic",
    "related", "interests", "answer") that raise instead of answering.
    """

    def __init__(
        self,
        concepts: Optional[List[str]] = None,
        interests: Optional[List[str]] = None,
        related: Optional[List[str]] = None,
        answer: str = "Quantum entanglement links the states of two particles.",
        fail_on: Optional[Set[str]] = None,
        available: bool = True,
    ):
        self.concepts = concepts if concepts is not None else ["quantum entanglement"]
        self.interests = interests if interests is not None else ["quantum physics"]
        self.related = related if related is not None else ["bell inequality"]
        self.answer = answer
        self.fail_on = fail_on or set()
        self.is_available = available
        self.calls: List[Dict] = []

    def _kind(self, system: Optional[str]) -> str:
        return {
            prompts.CONCEPTS_SYSTEM: "concepts",
            prompts.INTERESTS_SYSTEM: "interests",
            prompts.RELATED_SYSTEM: "related",
            prompts.TOPIC_SYSTEM: "topic",
            prompts.INSIGHTS_SYSTEM: "insights",
            prompts.SYNTHESIS_SYSTEM: "synthesis",
        }.get(system, "answer")

    def generate(self, prompt, *, system=None, model_hint=None, max_tokens=2000, temperature=0.7, timeout=60.0):
        kind = self._kind(system)
        self.calls.append({"kind": kind, "prompt": prompt, "system": system, "model_hint": model_hint})
        if kind in self.fail_on:
            raise RuntimeError(f"{kind} generation failed")

        if kind == "concepts":
            return json.dumps(self.concepts)
        if kind == "interests":
            return json.dumps(self.interests)
        if kind == "related":
            return json.dumps(self.related)
        if kind == "topic":
            # Topic prompt quotes the query; echo it back as the topic
            return prompt.rsplit('"', 2)[-2]
        if kind == "insights":
            return "Deep insights and current trends."
        if kind == "synthesis":
            return "Synthesized overview from several sources."
        return self.answer

    def calls_of(self, kind: str) -> List[Dict]:
        return [c for c in self.calls if c["kind"] == kind]


class StubEncyclopedia:
    """Encyclopedia lookup that returns one record, nothing, or raises."""

    def __init__(self, found: bool = True, error: Optional[Exception] = None):
        self.found = found
        self.error = error
        self.queries: List[str] = []

    async def lookup(self, query):
        from mindloom.retriever.sources import SourceRecord

        self.queries.append(query)
        if self.error is not None:
            raise self.error
        if not self.found:
            return []
        return [SourceRecord(title=query, content=f"Encyclopedia entry for {query}", source="Wikipedia")]


class RecordingNotifier:
    """Notifier that keeps every published event."""

    def __init__(self):
        self.events: List[Dict] = []

    async def publish(self, user_id, event, payload):
        self.events.append({"user_id": user_id, "event": event, "payload": payload})

    def of(self, event: str) -> List[Dict]:
        return [e for e in self.events if e["event"] == event]


class FixedRandom(random.Random):
    """random() always returns ``value``; forces the curiosity branch."""

    def __init__(self, value: float):
        super().__init__(0)
        self.value = value
        self.draws = 0

    def random(self):
        self.draws += 1
        return self.value


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def analyst(fake_llm):
    from mindloom.common.analyst import LLMAnalyst
    return LLMAnalyst(fake_llm, model="main-model", fast_model="fast-model", timeout=5.0)


@pytest.fixture
def encyclopedia():
    return StubEncyclopedia()


@pytest.fixture
def seeker(analyst, encyclopedia):
    from mindloom.retriever import InsightSource, KnowledgeSeeker, KnowledgeSynthesizer, PlaceholderWebSearch
    return KnowledgeSeeker(
        encyclopedia=encyclopedia,
        web_search=PlaceholderWebSearch(top_k=3),
        insight=InsightSource(analyst),
        synthesizer=KnowledgeSynthesizer(analyst),
    )


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def make_orchestrator(analyst, seeker, notifier):
    """Factory for an in-memory orchestrator; ``rng`` defaults to never exploring."""
    from mindloom.orchestrator import (
        AgentPool, ContextBuilder, ContextStore, Orchestrator, TaskProcessor, TaskQueue, TaskStore,
    )
    from mindloom.retriever import QueryBuilder

    def _make(rng=None, **overrides):
        task_store = TaskStore()
        parts = dict(
            pool=AgentPool(),
            queue=TaskQueue(),
            task_store=task_store,
            context_builder=ContextBuilder(ContextStore(), task_store),
            query_builder=QueryBuilder(analyst, max_concepts=1),
            seeker=seeker,
            processor=TaskProcessor(analyst),
            analyst=analyst,
            notifier=notifier,
            rng=rng or FixedRandom(1.0),
        )
        parts.update(overrides)
        return Orchestrator(**parts)

    return _make
