"""
Knowledge Seeker

Retrieves and synthesizes knowledge for a batch of queries.

Pipeline per query:
1. Encyclopedia lookup
2. Web search (top-k)
3. Generative insight
4. Synthesis into one KnowledgeItem

Queries run concurrently and fail independently: a failing query is logged
and omitted, the rest of the batch still comes back. Within a query, a
failing source contributes zero records and only lowers confidence.
"""

import asyncio
import logging
from typing import Awaitable, List, Optional, Sequence

from ..common.analyst import LLMAnalyst
from ..common.schemas import KnowledgeItem
from .query_builder import QueryBuilder
from .sources import (
    EncyclopediaSource,
    InsightSource,
    SourceRecord,
    WebSearchSource,
    build_web_search,
)
from .synthesizer import KnowledgeSynthesizer

logger = logging.getLogger("mindloom.retriever.seeker")


class KnowledgeSeeker:
    """
    Multi-source knowledge retrieval.

    Args:
        encyclopedia: Encyclopedic title lookup
        web_search: Generic web search
        insight: Generative insight source
        synthesizer: Merges records into KnowledgeItems
        expansion_depth: Max recursion levels for expand_knowledge
        expansion_fanout: Max related topics followed per item
    """

    def __init__(
        self,
        encyclopedia: EncyclopediaSource,
        web_search: WebSearchSource,
        insight: InsightSource,
        synthesizer: KnowledgeSynthesizer,
        expansion_depth: int = 1,
        expansion_fanout: int = 3,
    ):
        self._encyclopedia = encyclopedia
        self._web_search = web_search
        self._insight = insight
        self._synthesizer = synthesizer
        self.expansion_depth = expansion_depth
        self.expansion_fanout = expansion_fanout

    @classmethod
    def from_config(cls, knowledge_config, analyst: LLMAnalyst) -> "KnowledgeSeeker":
        return cls(
            encyclopedia=EncyclopediaSource(
                endpoint=knowledge_config.encyclopedia_endpoint,
                timeout=knowledge_config.request_timeout,
            ),
            web_search=build_web_search(knowledge_config),
            insight=InsightSource(analyst, confidence=knowledge_config.insight_confidence),
            synthesizer=KnowledgeSynthesizer(analyst),
            expansion_depth=knowledge_config.expansion_depth,
            expansion_fanout=knowledge_config.expansion_fanout,
        )

    async def seek_knowledge(self, queries: Sequence[str]) -> List[KnowledgeItem]:
        """
        One KnowledgeItem per successful query, in input order.

        Never raises for a single query's failure.
        """
        if not queries:
            return []

        outcomes = await asyncio.gather(
            *(self._seek_one(q) for q in queries),
            return_exceptions=True,
        )

        items: List[KnowledgeItem] = []
        for query, outcome in zip(queries, outcomes):
            if isinstance(outcome, BaseException):
                logger.error("Error seeking knowledge for query %r: %s", query, outcome)
                continue
            items.append(outcome)
        return items

    async def _seek_one(self, query: str) -> KnowledgeItem:
        wiki, web, insight = await asyncio.gather(
            self._safe_lookup("Encyclopedia", query, self._encyclopedia.lookup(query)),
            self._safe_lookup("Web search", query, self._web_search.search(query)),
            self._safe_lookup("Insight", query, self._insight.lookup(query)),
        )
        return await self._synthesizer.synthesize(query, [*web, *wiki, *insight])

    async def _safe_lookup(
        self, name: str, query: str, lookup: Awaitable[List[SourceRecord]]
    ) -> List[SourceRecord]:
        try:
            return list(await lookup)
        except Exception as e:
            logger.warning("%s lookup failed for %r: %s", name, query, e)
            return []

    async def expand_knowledge(
        self,
        items: Sequence[KnowledgeItem],
        depth: Optional[int] = None,
        fanout: Optional[int] = None,
    ) -> List[KnowledgeItem]:
        """
        Follow related topics outward from ``items``.

        Each level asks how every related topic relates to its item's topic,
        at most ``fanout`` topics per item, for at most ``depth`` levels.
        A query already asked is never asked again.
        """
        depth = self.expansion_depth if depth is None else depth
        fanout = self.expansion_fanout if fanout is None else fanout

        expanded: List[KnowledgeItem] = []
        asked = {item.query for item in items}
        frontier = list(items)

        for _ in range(max(depth, 0)):
            queries = []
            for item in frontier:
                for related in item.related_topics[:fanout]:
                    query = QueryBuilder.relation_query(related, item.topic)
                    if query not in asked:
                        asked.add(query)
                        queries.append(query)
            if not queries:
                break

            frontier = await self.seek_knowledge(queries)
            expanded.extend(frontier)

        return expanded
