"""Tests for query derivation."""

import pytest
from unittest.mock import AsyncMock, Mock

from mindloom.common.schemas import KnowledgeItem
from mindloom.retriever.query_builder import QueryBuilder


class TestDeriveQueries:
    @pytest.mark.asyncio
    async def test_concepts_expand_to_three_variants(self, analyst):
        builder = QueryBuilder(analyst)

        queries = await builder.derive_queries("Explain quantum entanglement", ["physics", "math"])

        assert queries == [
            "What is quantum entanglement?",
            "How does quantum entanglement relate to physics, math?",
            "Latest developments in quantum entanglement",
        ]

    @pytest.mark.asyncio
    async def test_no_interests_uses_related_fields(self, analyst):
        queries = await QueryBuilder(analyst).derive_queries("Explain quantum entanglement")

        assert queries[1] == "How does quantum entanglement relate to related fields?"

    @pytest.mark.asyncio
    async def test_concept_extraction_uses_fast_model(self, analyst, fake_llm):
        await QueryBuilder(analyst).derive_queries("Explain quantum entanglement")

        assert fake_llm.calls_of("concepts")[0]["model_hint"] == "fast-model"

    @pytest.mark.asyncio
    async def test_keyword_fallback_when_no_concepts(self, analyst, fake_llm):
        fake_llm.concepts = []

        queries = await QueryBuilder(analyst).derive_queries("Please explain photosynthesis")

        assert queries[0] == "What is photosynthesis?"
        assert len(queries) == 3

    @pytest.mark.asyncio
    async def test_keyword_fallback_when_extraction_fails(self, analyst, fake_llm):
        fake_llm.fail_on = {"concepts"}

        queries = await QueryBuilder(analyst).derive_queries("Describe black holes")

        assert "What is black?" in queries
        assert "What is holes?" in queries

    @pytest.mark.asyncio
    async def test_without_analyst_uses_keywords(self):
        queries = await QueryBuilder().derive_queries("tell me about volcanoes")

        assert queries == [
            "What is volcanoes?",
            "How does volcanoes relate to related fields?",
            "Latest developments in volcanoes",
        ]

    @pytest.mark.asyncio
    async def test_concepts_are_capped(self):
        analyst = Mock(is_available=True)
        analyst.extract_concepts = AsyncMock(return_value=[f"c{i}" for i in range(10)])

        queries = await QueryBuilder(analyst, max_concepts=2).derive_queries("anything")

        assert len(queries) == 6


class TestFollowUps:
    def test_follow_up_per_item(self):
        items = [
            KnowledgeItem(query="q1", topic="Entanglement", content="c"),
            KnowledgeItem(query="q2", topic="Superposition", content="c"),
        ]

        assert QueryBuilder().follow_up_queries(items) == [
            "Tell me more about Entanglement and its implications",
            "Tell me more about Superposition and its implications",
        ]

    def test_relation_query(self):
        assert QueryBuilder.relation_query("Bell test", "Entanglement") == "How does Bell test relate to Entanglement?"

    def test_extract_keywords_filters_stop_words(self):
        keywords = QueryBuilder().extract_keywords("What is the role of the mitochondria in the cell?")

        assert keywords == ["role", "mitochondria", "cell"]
