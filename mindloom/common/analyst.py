"""
LLM Analyst

Prompt-level operations on top of LLMClient: concept/topic/interest extraction,
insight generation, multi-source synthesis and final answers.

Extraction calls are best-effort: a failure is logged and an empty (or
pass-through) value is returned. Generation calls (insights, synthesis,
answers) propagate errors so the caller can decide how to degrade.

LLMClient is synchronous; every call here runs in a worker thread under a
bounded timeout so a stalled provider cannot block the event loop forever.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from .llm_client import LLMClient
from .llm_utils import parse_llm_list

logger = logging.getLogger("mindloom.common.analyst")


CONCEPTS_SYSTEM = "You are a concept extraction expert. Return only valid JSON."
CONCEPTS_PROMPT = (
    'Extract the main concepts and topics from this text. '
    'Return only a JSON array of strings: "{text}"'
)

INTERESTS_SYSTEM = "You are an interest analysis expert. Return only valid JSON."
INTERESTS_PROMPT = """Based on this user prompt and AI response, extract the user's interests and preferences. Return a JSON array of strings.

User Prompt: {prompt}
AI Response: {result}"""

RELATED_SYSTEM = "You are a topic extraction expert. Return only valid JSON."
RELATED_PROMPT = 'Extract related topics and concepts from this content. Return a JSON array of strings: "{content}"'

TOPIC_SYSTEM = "You are a topic identification expert."
TOPIC_PROMPT = 'What is the main topic or subject of this query? Return only the topic name: "{query}"'

INSIGHTS_SYSTEM = "You are an expert analyst providing deep insights on various topics."
INSIGHTS_PROMPT = (
    "Provide deep insights and analysis about: {topic}. "
    "Include current trends, implications, and connections to other fields."
)

SYNTHESIS_SYSTEM = "You are an expert information synthesizer. Provide accurate, comprehensive responses."
SYNTHESIS_PROMPT = """Synthesize information from multiple sources to answer this query: "{query}"

Sources:
{sources}

Provide a comprehensive, well-structured response that combines insights from all sources."""


class LLMAnalyst:
    """
    Async facade over the text-generation capability.

    Args:
        llm: Configured LLMClient (or any object with ``generate`` and ``is_available``)
        model: Main model hint for synthesis and answers (None → client default)
        fast_model: Model hint for cheap extraction calls (None → client default)
        timeout: Seconds allowed per call
    """

    def __init__(
        self,
        llm: LLMClient,
        model: Optional[str] = None,
        fast_model: Optional[str] = None,
        timeout: float = 60.0,
    ):
        self._llm = llm
        self._model = model
        self._fast_model = fast_model
        self._timeout = timeout

    @property
    def is_available(self) -> bool:
        return bool(getattr(self._llm, "is_available", False))

    async def generate(
        self,
        prompt: str,
        system: Optional[str] = None,
        model_hint: Optional[str] = None,
        max_tokens: int = 2000,
    ) -> str:
        """Run one text-generation call with a bounded timeout."""
        return await asyncio.wait_for(
            asyncio.to_thread(
                self._llm.generate,
                prompt,
                system=system,
                model_hint=model_hint or self._model,
                max_tokens=max_tokens,
                timeout=self._timeout,
            ),
            timeout=self._timeout,
        )

    async def _extract_list(self, prompt: str, system: str, what: str) -> List[str]:
        try:
            raw = await self.generate(prompt, system=system, model_hint=self._fast_model, max_tokens=256)
        except Exception as e:
            logger.error("%s extraction error: %s", what, e)
            return []
        return parse_llm_list(raw)

    async def extract_concepts(self, text: str) -> List[str]:
        return await self._extract_list(CONCEPTS_PROMPT.format(text=text), CONCEPTS_SYSTEM, "Concept")

    async def extract_interests(self, prompt: str, result: Any) -> List[str]:
        payload = result if isinstance(result, str) else json.dumps(result, default=str)
        return await self._extract_list(
            INTERESTS_PROMPT.format(prompt=prompt, result=payload), INTERESTS_SYSTEM, "Interest"
        )

    async def extract_related_topics(self, content: str) -> List[str]:
        return await self._extract_list(RELATED_PROMPT.format(content=content), RELATED_SYSTEM, "Related topics")

    async def extract_main_topic(self, query: str) -> str:
        """Main topic label for a query; the query itself on failure."""
        try:
            topic = await self.generate(
                TOPIC_PROMPT.format(query=query), system=TOPIC_SYSTEM, model_hint=self._fast_model, max_tokens=64
            )
        except Exception as e:
            logger.error("Main topic extraction error: %s", e)
            return query
        topic = topic.strip().strip('"').strip()
        return topic or query

    async def generate_insights(self, topic: str) -> str:
        return await self.generate(INSIGHTS_PROMPT.format(topic=topic), system=INSIGHTS_SYSTEM)

    async def synthesize_information(self, query: str, sources: Iterable[Dict[str, Any]]) -> str:
        numbered = "\n\n".join(
            f"{i}. {s.get('title', '')}: {s.get('content', '')}" for i, s in enumerate(sources, 1)
        )
        return await self.generate(SYNTHESIS_PROMPT.format(query=query, sources=numbered), system=SYNTHESIS_SYSTEM)
