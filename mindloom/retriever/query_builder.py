"""
Query Builder

Turns a task prompt into knowledge queries.

Concepts come from the text-generation capability; each concept expands to
three variants (definition, relation to the user's interests, latest
developments). When no concepts come back, prompt keywords stand in.
Also builds the follow-up queries used by curious exploration and by
knowledge expansion.
"""

import re
from typing import List, Optional, Sequence

from ..common.analyst import LLMAnalyst
from ..common.schemas import KnowledgeItem


class QueryBuilder:
    """
    Builds retrieval queries for the orchestrator.

    Responsibilities:
    1. Extract concepts from the prompt (LLM, keyword fallback)
    2. Expand each concept into definition / relation / latest-developments queries
    3. Build curiosity follow-ups and relation queries for expansion
    """

    # Stop words to filter from keywords
    STOP_WORDS = {
        "the", "a", "an", "is", "are", "was", "were", "be", "been", "being",
        "have", "has", "had", "do", "does", "did", "will", "would", "could",
        "should", "may", "might", "must", "shall", "can", "need", "dare",
        "ought", "used", "to", "of", "in", "for", "on", "with", "at", "by",
        "from", "up", "about", "into", "over", "after", "we", "our", "us",
        "i", "me", "my", "you", "your", "it", "its", "they", "them", "their",
        "this", "that", "these", "those", "what", "which", "who", "whom",
        "when", "where", "why", "how", "and", "or", "but", "if", "because",
        "as", "until", "while", "although", "though", "even", "just", "also",
        "explain", "describe", "tell", "please", "give", "show",
    }

    def __init__(self, analyst: Optional[LLMAnalyst] = None, max_concepts: int = 5):
        """
        Args:
            analyst: Source of LLM concept extraction (None → keywords only)
            max_concepts: Upper bound on concepts expanded per prompt
        """
        self._analyst = analyst
        self._max_concepts = max_concepts

    async def derive_queries(self, prompt: str, interests: Sequence[str] = ()) -> List[str]:
        """Concepts from the prompt, each expanded into three query variants."""
        concepts: List[str] = []
        if self._analyst is not None and self._analyst.is_available:
            concepts = await self._analyst.extract_concepts(prompt)
        if not concepts:
            concepts = self.extract_keywords(prompt)
        return self.build_concept_queries(concepts[: self._max_concepts], interests)

    def build_concept_queries(self, concepts: Sequence[str], interests: Sequence[str] = ()) -> List[str]:
        interest_text = ", ".join(interests) if interests else "related fields"
        queries = []
        for concept in concepts:
            queries.append(f"What is {concept}?")
            queries.append(f"How does {concept} relate to {interest_text}?")
            queries.append(f"Latest developments in {concept}")
        return queries

    def follow_up_queries(self, items: Sequence[KnowledgeItem]) -> List[str]:
        """One curiosity follow-up per freshly ingested item."""
        return [f"Tell me more about {item.topic} and its implications" for item in items]

    @staticmethod
    def relation_query(related_topic: str, topic: str) -> str:
        return f"How does {related_topic} relate to {topic}?"

    def extract_keywords(self, text: str) -> List[str]:
        """Extract important keywords from text"""
        words = re.findall(r"\b\w+\b", text.lower())

        keywords = [
            w for w in words
            if w not in self.STOP_WORDS and len(w) > 2
        ]

        # Deduplicate and return
        return list(dict.fromkeys(keywords))[:15]
