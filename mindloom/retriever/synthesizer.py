"""
Knowledge Synthesizer

Merges the records retrieved for one query into a single scored KnowledgeItem.

Confidence is a coarse step function of how many usable sources went in:
    0 → 0.1, 1 → 0.6, 2 → 0.8, 3+ → 0.95
"""

import logging
from typing import List, Sequence

from ..common.analyst import LLMAnalyst
from ..common.schemas import KnowledgeItem
from .sources import SourceRecord

logger = logging.getLogger("mindloom.retriever.synthesizer")


SYNTHESIS_SOURCE_LABEL = "Multi-source synthesis"

FALLBACK_TEMPLATE = """## Sources for: "{query}"

Found {count} source(s):

{formatted_results}

---
**Note**: This is a direct listing without LLM synthesis.
Configure an LLM API key for synthesized answers.
"""


def calculate_confidence(source_count: int) -> float:
    """Step function of usable source count."""
    if source_count <= 0:
        return 0.1
    if source_count == 1:
        return 0.6
    if source_count == 2:
        return 0.8
    return 0.95


class KnowledgeSynthesizer:
    """
    Synthesizes one KnowledgeItem per query.

    Steps are sequential: the narrative comes first, related topics are
    extracted from it, and the main topic from the query. Synthesis errors
    propagate; the seeker drops that query.
    Falls back to a plain listing when no LLM is configured.
    """

    def __init__(self, analyst: LLMAnalyst):
        self._analyst = analyst

    @property
    def has_llm(self) -> bool:
        return self._analyst.is_available

    async def synthesize(self, query: str, records: Sequence[SourceRecord]) -> KnowledgeItem:
        valid = [r for r in records if r is not None and r.is_usable]

        if self.has_llm:
            content = await self._analyst.synthesize_information(query, [r.as_prompt_source() for r in valid])
            related_topics = await self._analyst.extract_related_topics(content)
            topic = await self._analyst.extract_main_topic(query)
        else:
            logger.debug("No LLM configured, listing %d source(s) for %r", len(valid), query)
            content = self._synthesize_fallback(query, valid)
            related_topics = []
            topic = query

        return KnowledgeItem(
            query=query,
            topic=topic,
            content=content,
            source=SYNTHESIS_SOURCE_LABEL,
            confidence=calculate_confidence(len(valid)),
            related_topics=related_topics,
        )

    def _synthesize_fallback(self, query: str, records: List[SourceRecord]) -> str:
        formatted_results = []
        for i, r in enumerate(records[:5], 1):
            formatted_results.append(
                f"### {i}. {r.title} ({r.source})\n\n"
                f"{r.content[:500]}{'...' if len(r.content) > 500 else ''}\n"
            )

        return FALLBACK_TEMPLATE.format(
            query=query,
            count=len(records),
            formatted_results="\n".join(formatted_results),
        )
