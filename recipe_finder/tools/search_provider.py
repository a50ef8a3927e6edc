from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from recipe_finder.config import settings
from recipe_finder.recipe_core.models.interfaces import SearchHit
from recipe_finder.tools import jina_search, tavily_search

SUPPORTED_PROVIDERS = ("tavily", "jina")


@dataclass
class SearchResponse:
    hits: list[SearchHit]
    provider: str
    fallback_from: str | None = None
    fallback_reason: str | None = None


async def _search_with(provider: str, query: str, *, search_depth: str, max_results: int) -> list[SearchHit]:
    if provider == "tavily":
        return await tavily_search.search(query, search_depth=search_depth, max_results=max_results)
    if provider == "jina":
        return await jina_search.search(query, max_results=max_results)
    raise ValueError(f"Unsupported SEARCH_PROVIDER: {provider}")


def _fallback_for(provider: str) -> str | None:
    if not settings.search_fallback_enabled:
        return None
    if provider == "tavily" and settings.jina_api_key:
        return "jina"
    if provider == "jina" and settings.tavily_api_key:
        return "tavily"
    return None


async def search(
    query: str,
    *,
    search_depth: str = "basic",
    max_results: int = 10,
) -> SearchResponse:
    """Search with the configured provider, falling back on error or zero hits.

    An empty hit list is a valid answer when no fallback is available.
    """
    provider = settings.search_provider.lower().strip()
    if provider not in SUPPORTED_PROVIDERS:
        raise ValueError(f"Unsupported SEARCH_PROVIDER: {settings.search_provider}")
    fallback = _fallback_for(provider)

    try:
        hits = await _search_with(provider, query, search_depth=search_depth, max_results=max_results)
        if hits or fallback is None:
            return SearchResponse(hits=hits, provider=provider)
        reason = f"{provider} returned zero results"
    except Exception as e:
        if fallback is None:
            raise
        reason = str(e)

    logger.warning(f"Search provider {provider} fell back to {fallback}: {reason}")
    fallback_hits = await _search_with(fallback, query, search_depth=search_depth, max_results=max_results)
    return SearchResponse(
        hits=fallback_hits,
        provider=fallback,
        fallback_from=provider,
        fallback_reason=reason,
    )
