from __future__ import annotations

import re
from urllib.parse import quote

import httpx

from recipe_finder.config import settings
from recipe_finder.recipe_core.models.interfaces import SearchHit

RESULT_PATTERN = re.compile(
    r"\[(\d+)\]\s+(Title|URL Source|Description|Published Time):\s*(.*?)(?=\[\d+\]|$)",
    re.DOTALL,
)


def parse_search_response(text: str, max_results: int = 10) -> list[SearchHit]:
    """Parse Jina's plain-text search response.

    Format::

        [1] Title: ...
        [1] URL Source: ...
        [1] Description: ...
    """
    blocks: dict[int, dict[str, str]] = {}
    for index_str, field, value in RESULT_PATTERN.findall(text):
        blocks.setdefault(int(index_str), {})[field] = value.strip()

    hits: list[SearchHit] = []
    for index in sorted(blocks):
        block = blocks[index]
        url = block.get("URL Source", "")
        if not url:
            continue
        hits.append(
            SearchHit(
                title=block.get("Title", ""),
                url=url,
                snippet=block.get("Description", ""),
                raw_score=0.0,
                published_date=block.get("Published Time") or None,
            )
        )
        if len(hits) >= max_results:
            break
    return hits


async def search(query: str, *, max_results: int = 10) -> list[SearchHit]:
    """GET https://s.jina.ai/?q=<query> with ``X-Respond-With: no-content``."""
    api_key = settings.jina_api_key
    if not api_key:
        raise ValueError("JINA_API_KEY not configured")

    url = f"https://s.jina.ai/?q={quote(query, safe='')}"
    async with httpx.AsyncClient() as client:
        response = await client.get(
            url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "X-Respond-With": "no-content",
            },
            timeout=30.0,
        )
        response.raise_for_status()
        return parse_search_response(response.text, max_results)
