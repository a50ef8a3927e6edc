from __future__ import annotations

from unittest.mock import patch

import pytest

from recipe_finder.recipe_core.models.interfaces import SearchHit
from recipe_finder.tools import jina_search, search_provider, tavily_search
from recipe_finder.tools.jina_search import parse_search_response

HIT = SearchHit(title="Jollof Rice Recipe", url="https://example.com/jollof", snippet="ingredients")


def _configure(mock_settings, provider: str, *, fallback: bool = True, jina_key: str = "j", tavily_key: str = "t"):
    mock_settings.search_provider = provider
    mock_settings.search_fallback_enabled = fallback
    mock_settings.jina_api_key = jina_key
    mock_settings.tavily_api_key = tavily_key


@pytest.mark.asyncio
async def test_search_provider_uses_jina_when_configured(monkeypatch):
    async def fake_jina(query, *, max_results=10):
        return [HIT]

    monkeypatch.setattr(jina_search, "search", fake_jina)
    with patch("recipe_finder.tools.search_provider.settings") as mock_settings:
        _configure(mock_settings, "jina")
        result = await search_provider.search("jollof", max_results=3)

    assert result.provider == "jina"
    assert result.hits == [HIT]
    assert result.fallback_from is None


@pytest.mark.asyncio
async def test_search_provider_raises_when_provider_unsupported():
    with patch("recipe_finder.tools.search_provider.settings") as mock_settings:
        _configure(mock_settings, "unknown-provider")
        with pytest.raises(ValueError):
            await search_provider.search("query")


@pytest.mark.asyncio
async def test_tavily_error_falls_back_to_jina(monkeypatch):
    async def broken_tavily(query, *, search_depth="basic", max_results=10):
        raise RuntimeError("tavily 502")

    async def fake_jina(query, *, max_results=10):
        return [HIT]

    monkeypatch.setattr(tavily_search, "search", broken_tavily)
    monkeypatch.setattr(jina_search, "search", fake_jina)
    with patch("recipe_finder.tools.search_provider.settings") as mock_settings:
        _configure(mock_settings, "tavily")
        result = await search_provider.search("jollof")

    assert result.provider == "jina"
    assert result.fallback_from == "tavily"
    assert "tavily 502" in result.fallback_reason


@pytest.mark.asyncio
async def test_empty_result_without_fallback_is_returned(monkeypatch):
    async def empty_tavily(query, *, search_depth="basic", max_results=10):
        return []

    monkeypatch.setattr(tavily_search, "search", empty_tavily)
    with patch("recipe_finder.tools.search_provider.settings") as mock_settings:
        _configure(mock_settings, "tavily", fallback=False)
        result = await search_provider.search("jollof")

    assert result.provider == "tavily"
    assert result.hits == []


@pytest.mark.asyncio
async def test_error_without_fallback_propagates(monkeypatch):
    async def broken_jina(query, *, max_results=10):
        raise RuntimeError("jina down")

    monkeypatch.setattr(jina_search, "search", broken_jina)
    with patch("recipe_finder.tools.search_provider.settings") as mock_settings:
        _configure(mock_settings, "jina", tavily_key="")
        with pytest.raises(RuntimeError):
            await search_provider.search("jollof")


def test_parse_jina_search_response():
    text = (
        "[1] Title: Nigerian Jollof Rice\n"
        "[1] URL Source: https://example.com/jollof\n"
        "[1] Description: Smoky party rice with ingredients and steps\n"
        "[1] Published Time: 2025-04-01T00:00:00Z\n"
        "[2] Title: No URL here\n"
        "[3] Title: Ghanaian Jollof\n"
        "[3] URL Source: https://example.org/ghana-jollof\n"
    )
    hits = parse_search_response(text, max_results=5)
    assert [hit.url for hit in hits] == ["https://example.com/jollof", "https://example.org/ghana-jollof"]
    assert hits[0].published_date == "2025-04-01T00:00:00Z"
    assert hits[1].snippet == ""
    assert len(parse_search_response(text, max_results=1)) == 1
