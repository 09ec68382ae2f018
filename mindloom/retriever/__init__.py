"""
Knowledge Retriever - Multi-source knowledge gathering

Gathers background knowledge for a task and synthesizes it using an LLM.

Key Components:
- QueryBuilder: Derives knowledge queries from a prompt
- Sources: Encyclopedia, web search, and generative insight lookups
- KnowledgeSynthesizer: Merges records into one scored KnowledgeItem
- KnowledgeSeeker: Runs the pipeline for a batch of queries

Pipeline:
1. Extract concepts from the prompt and expand them into queries
2. Look each query up in every source (failures isolated per source)
3. Synthesize one KnowledgeItem per query (failures isolated per query)
4. Optionally expand along related topics, bounded by depth and fan-out
"""

from .query_builder import QueryBuilder
from .sources import (
    SourceRecord,
    EncyclopediaSource,
    WebSearchSource,
    PlaceholderWebSearch,
    DuckDuckGoSearch,
    InsightSource,
    build_web_search,
)
from .synthesizer import KnowledgeSynthesizer, calculate_confidence
from .seeker import KnowledgeSeeker

__all__ = [
    "QueryBuilder",
    "SourceRecord",
    "EncyclopediaSource",
    "WebSearchSource",
    "PlaceholderWebSearch",
    "DuckDuckGoSearch",
    "InsightSource",
    "build_web_search",
    "KnowledgeSynthesizer",
    "calculate_confidence",
    "KnowledgeSeeker",
]
