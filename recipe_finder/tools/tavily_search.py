from __future__ import annotations

from typing import Any

from tavily import AsyncTavilyClient

from recipe_finder.config import settings
from recipe_finder.recipe_core.models.interfaces import SearchHit


def _to_hit(raw: dict[str, Any]) -> SearchHit:
    return SearchHit(
        title=str(raw.get("title") or ""),
        url=str(raw.get("url") or ""),
        snippet=str(raw.get("content") or ""),
        raw_score=float(raw.get("score") or 0.0),
        published_date=raw.get("published_date") or None,
    )


async def search(
    query: str,
    *,
    search_depth: str = "basic",
    max_results: int = 10,
) -> list[SearchHit]:
    """Execute a Tavily web search and return search hits."""
    if not settings.tavily_api_key:
        raise ValueError("TAVILY_API_KEY not configured")
    client = AsyncTavilyClient(api_key=settings.tavily_api_key)

    kwargs: dict[str, Any] = {
        "query": query,
        "search_depth": search_depth,
        "max_results": max_results,
        "topic": "general",
        "include_raw_content": False,
    }
    response = await client.search(**kwargs)
    return [_to_hit(r) for r in response.get("results", []) if r.get("url")]
