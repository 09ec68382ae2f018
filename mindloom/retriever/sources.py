"""
Knowledge Sources

Raw material for one query, from three independent places:
- Encyclopedia: exact/near-exact title lookup (Wikipedia REST summary API)
- Web search: pluggable, returns up to ``top_k`` results
- Insight: one generative record from the text-generation capability

Sources raise on transport or provider failure. Isolating those failures is
the seeker's job, so each source stays easy to test on its own.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from ..common.analyst import LLMAnalyst

logger = logging.getLogger("mindloom.retriever.sources")


@dataclass
class SourceRecord:
    """A single {title, content} record returned by a source"""
    title: str
    content: str
    source: str
    url: Optional[str] = None
    confidence: Optional[float] = None

    @property
    def is_usable(self) -> bool:
        return bool(self.content and self.content.strip())

    def as_prompt_source(self) -> Dict[str, Any]:
        return {"title": self.title, "content": self.content, "source": self.source}


class EncyclopediaSource:
    """
    Wikipedia page-summary lookup.

    A missing page (404) or a summary without an extract yields zero records,
    not an error.
    """

    def __init__(
        self,
        endpoint: str = "https://en.wikipedia.org/api/rest_v1/page/summary/",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._endpoint = endpoint if endpoint.endswith("/") else endpoint + "/"
        self._timeout = timeout
        self._transport = transport

    async def lookup(self, query: str) -> List[SourceRecord]:
        url = self._endpoint + quote(query, safe="")
        async with httpx.AsyncClient(timeout=httpx.Timeout(self._timeout), transport=self._transport) as client:
            resp = await client.get(url, headers={"Accept": "application/json"})
            if resp.status_code == 404:
                return []
            resp.raise_for_status()
            data = resp.json()

        extract = data.get("extract") if isinstance(data, dict) else None
        if not extract:
            return []

        page_url = ((data.get("content_urls") or {}).get("desktop") or {}).get("page")
        return [
            SourceRecord(
                title=data.get("title") or query,
                content=extract,
                source="Wikipedia",
                url=page_url,
            )
        ]


class WebSearchSource(ABC):
    """Generic web-style search; implementations return ranked results."""

    def __init__(self, top_k: int = 3):
        self.top_k = top_k

    async def search(self, query: str) -> List[SourceRecord]:
        results = await self._search(query)
        return results[: self.top_k]

    @abstractmethod
    async def _search(self, query: str) -> List[SourceRecord]:
        ...


class PlaceholderWebSearch(WebSearchSource):
    """Deterministic stand-in until a real search API is configured."""

    async def _search(self, query: str) -> List[SourceRecord]:
        return [
            SourceRecord(
                title=f"Search result for: {query}",
                content=f"Relevant information about {query} from web sources.",
                source="Web Search",
                url="https://example.com",
            )
        ]


class DuckDuckGoSearch(WebSearchSource):
    """DuckDuckGo Instant Answer API (abstract + related topics)."""

    def __init__(
        self,
        top_k: int = 3,
        endpoint: str = "https://api.duckduckgo.com/",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(top_k)
        self._endpoint = endpoint
        self._timeout = timeout
        self._transport = transport

    async def _search(self, query: str) -> List[SourceRecord]:
        params = {"q": query, "format": "json", "no_html": "1", "skip_disambig": "1"}
        async with httpx.AsyncClient(timeout=httpx.Timeout(self._timeout), transport=self._transport) as client:
            resp = await client.get(self._endpoint, params=params)
            resp.raise_for_status()
            data = resp.json()

        results: List[SourceRecord] = []
        if data.get("AbstractText"):
            results.append(
                SourceRecord(
                    title=data.get("Heading") or query,
                    content=data["AbstractText"],
                    source="DuckDuckGo",
                    url=data.get("AbstractURL") or None,
                )
            )

        for topic in _flatten_related(data.get("RelatedTopics") or []):
            text = topic.get("Text")
            if not text:
                continue
            results.append(
                SourceRecord(
                    title=text.split(" - ")[0][:120],
                    content=text,
                    source="DuckDuckGo",
                    url=topic.get("FirstURL"),
                )
            )
        return results


def _flatten_related(topics: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    # Grouped entries carry a "Topics" list instead of "Text"
    flat = []
    for topic in topics:
        if "Topics" in topic:
            flat.extend(t for t in topic["Topics"] if isinstance(t, dict))
        else:
            flat.append(topic)
    return flat


class InsightSource:
    """One generative-insight record per query, tagged with a fixed confidence."""

    def __init__(self, analyst: LLMAnalyst, confidence: float = 0.8):
        self._analyst = analyst
        self._confidence = confidence

    async def lookup(self, query: str) -> List[SourceRecord]:
        if not self._analyst.is_available:
            return []
        insights = await self._analyst.generate_insights(query)
        if not insights:
            return []
        return [
            SourceRecord(
                title=f"AI Insights: {query}",
                content=insights,
                source="AI Analysis",
                confidence=self._confidence,
            )
        ]


def build_web_search(knowledge_config) -> WebSearchSource:
    """Pick the web search provider named in the knowledge config."""
    provider = (knowledge_config.web_search_provider or "placeholder").lower()
    if provider == "duckduckgo":
        return DuckDuckGoSearch(
            top_k=knowledge_config.web_topk,
            endpoint=knowledge_config.web_search_endpoint,
            timeout=knowledge_config.request_timeout,
        )
    if provider != "placeholder":
        logger.warning("Unknown web search provider %r, using placeholder", provider)
    return PlaceholderWebSearch(top_k=knowledge_config.web_topk)
