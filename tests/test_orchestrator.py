from __future__ import annotations

import asyncio
from dataclasses import replace

import pytest

from recipe_finder.agents.orchestrator import RecipeSearchOrchestrator
from recipe_finder.models.errors import NoUrlsFound, RecipeSearchError
from recipe_finder.models.events import EventType
from recipe_finder.recipe_core.discovery.service import DiscoveryResult
from recipe_finder.recipe_core.extract.cascade import ExtractionCascade
from recipe_finder.recipe_core.models.interfaces import (
    Ingredient,
    Instruction,
    RecipeDraft,
    RecipeMetadata,
    SearchOptions,
    SearchRequest,
)
from recipe_finder.services.circuit_breaker import CircuitBreakerRegistry


def _good(title: str, cuisine: str | None = None) -> RecipeDraft:
    return RecipeDraft(
        title=title,
        description=f"A hearty {title.lower()} for weeknights.",
        ingredients=(
            Ingredient(name="red lentils", amount="2", unit="cups", alt_names=("masoor dal",)),
            Ingredient(name="onion", amount="1", unit=""),
            Ingredient(name="berbere", amount="2", unit="tbsp"),
        ),
        instructions=(
            Instruction(step=1, text="Cook the onion for 10 minutes."),
            Instruction(step=2, text="Add the lentils and simmer for 25 minutes."),
        ),
        metadata=RecipeMetadata(servings="4", total_time_minutes="PT40M"),
        images=("https://img.example/stew.jpg",),
        cultural_context="A staple of home cooking, served with flatbread or rice.",
        cuisine=cuisine,
    )


class FakeDiscovery:
    """Returns scripted URL batches; an empty batch or exception raises."""

    def __init__(self, batches: list):
        self.batches = list(batches)
        self.calls: list[dict] = []

    async def discover(self, query: str, *, max_results: int, relaxed: bool = False, exclude=()):
        self.calls.append({"query": query, "relaxed": relaxed, "exclude": set(exclude)})
        batch = self.batches.pop(0) if self.batches else []
        if isinstance(batch, Exception):
            raise batch
        if not batch:
            raise NoUrlsFound(query)
        return DiscoveryResult(urls=list(batch), scored=[], query=query, attempts=1)


class ScriptedProvider:
    def __init__(self, name: str, results: dict[str, RecipeDraft], delay: float = 0.0, stall: tuple[str, ...] = ()):
        self.name = name
        self.results = results
        self.delay = delay
        self.stall = stall
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def extract(self, url: str) -> RecipeDraft:
        self.calls.append(url)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if url in self.stall:
                await asyncio.sleep(1.0)
            if self.delay:
                await asyncio.sleep(self.delay)
            if url not in self.results:
                raise RuntimeError(f"{self.name} could not read {url}")
            return self.results[url]
        finally:
            self.in_flight -= 1


class SleepRecorder:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def _orchestrator(discovery, *providers, sleep=None, **kwargs) -> RecipeSearchOrchestrator:
    cascade = ExtractionCascade(list(providers), breakers=CircuitBreakerRegistry(), timeout_ms=5000)
    return RecipeSearchOrchestrator(discovery, cascade, sleep=sleep or SleepRecorder(), **kwargs)


URLS = [f"https://site{i}.example/recipes/stew-{i}" for i in range(1, 6)]


def _scenario_a():
    jsonld = ScriptedProvider(
        "jsonld",
        {
            URLS[0]: _good("Misir Wot"),
            URLS[1]: _good("Shiro Wat"),
            URLS[3]: _good("Atakilt Wat"),
        },
    )
    perplexity = ScriptedProvider("perplexity", {URLS[2]: _good("Kik Alicha")})
    return FakeDiscovery([URLS]), jsonld, perplexity


@pytest.mark.asyncio
async def test_search_extracts_and_reports_skipped_urls():
    discovery, jsonld, perplexity = _scenario_a()
    orchestrator = _orchestrator(discovery, jsonld, perplexity)

    response = await orchestrator.search(SearchRequest(query="ethiopian lentil stew", max_results=4))

    assert response.source == "two-stage"
    assert response.attempts == 1
    assert response.total_found == 4
    assert {recipe.title for recipe in response.recipes} == {"Misir Wot", "Shiro Wat", "Kik Alicha", "Atakilt Wat"}
    assert all(recipe.quality_score and recipe.quality_score >= 70 for recipe in response.recipes)
    assert all(recipe.provenance == "extracted" for recipe in response.recipes)

    assert len(response.errors) == 1
    assert response.errors[0].startswith(URLS[4])
    # URL 3 recovered via perplexity; URL 5 failed on both providers.
    assert len(response.provider_errors) == 3
    assert any(error.startswith(URLS[2]) and "jsonld" in error for error in response.provider_errors)
    assert perplexity.calls == [URLS[2], URLS[4]]


@pytest.mark.asyncio
async def test_timed_out_provider_recovers_and_short_recipe_is_rejected():
    one_step = replace(_good("Atakilt Wat"), instructions=(Instruction(step=1, text="Cook everything together."),))
    jsonld = ScriptedProvider(
        "jsonld",
        {
            URLS[0]: _good("Misir Wot"),
            URLS[1]: _good("Shiro Wat"),
            URLS[2]: _good("Kik Alicha"),
            URLS[3]: one_step,
            URLS[4]: _good("Never Returned"),
        },
        stall=(URLS[4],),
    )
    perplexity = ScriptedProvider("perplexity", {URLS[4]: _good("Gomen")})
    cascade = ExtractionCascade([jsonld, perplexity], breakers=CircuitBreakerRegistry(), timeout_ms=50)
    orchestrator = RecipeSearchOrchestrator(FakeDiscovery([URLS]), cascade, sleep=SleepRecorder())

    response = await orchestrator.search(SearchRequest(query="ethiopian lentil stew", max_results=5))

    assert response.source == "two-stage"
    assert response.attempts == 1
    assert {recipe.title for recipe in response.recipes} == {"Misir Wot", "Shiro Wat", "Kik Alicha", "Gomen"}
    assert len(response.errors) == 1
    assert response.errors[0].startswith(URLS[3])
    assert "instructions" in response.errors[0]
    assert perplexity.calls == [URLS[4]]
    assert len(response.provider_errors) == 1
    assert "jsonld [extraction_timeout]" in response.provider_errors[0]


@pytest.mark.asyncio
async def test_search_falls_back_when_discovery_finds_nothing():
    sleep = SleepRecorder()
    discovery = FakeDiscovery([[], []])
    orchestrator = _orchestrator(discovery, ScriptedProvider("jsonld", {}), sleep=sleep)

    response = await orchestrator.search(SearchRequest(query="chicken dinner", max_results=3))

    assert response.source == "fallback"
    assert len(response.recipes) == 3
    assert all(recipe.provenance == "fallback" for recipe in response.recipes)
    assert response.attempts == 2
    assert sleep.delays == [1.0]
    assert any(error.startswith("discovery:") for error in response.errors)


@pytest.mark.asyncio
async def test_search_retries_broadened_then_supplements():
    urls = URLS[:2]
    discovery = FakeDiscovery([urls, urls])
    jsonld = ScriptedProvider(
        "jsonld",
        {urls[0]: _good("Misir Wot", "Ethiopian"), urls[1]: _good("Shiro Wat", "Ethiopian")},
    )
    orchestrator = _orchestrator(discovery, jsonld)
    request = SearchRequest(
        query="lentil stew", cultural_context="Ethiopian", dietary_restrictions=["vegan"], max_results=3
    )

    response = await orchestrator.search(request)

    assert response.source == "two-stage+fallback"
    assert [recipe.title for recipe in response.recipes][-1] == "Ethiopian Red Lentil Stew"
    assert len(response.recipes) == 3
    assert response.attempts == 2

    first, second = discovery.calls
    assert not first["relaxed"]
    assert "-gallery" in first["query"]
    assert second["relaxed"]
    assert "-gallery" not in second["query"]
    assert len(second["exclude"]) == 2
    # URLs already extracted on the first attempt are not extracted again.
    assert len(jsonld.calls) == 2


@pytest.mark.asyncio
async def test_progress_events_are_ordered():
    discovery, jsonld, perplexity = _scenario_a()
    events = []

    async def on_progress(event):
        events.append(event)

    await _orchestrator(discovery, jsonld, perplexity).search(
        SearchRequest(query="ethiopian lentil stew", max_results=4), on_progress=on_progress
    )

    assert events[0].event == EventType.STATE_CHANGED
    assert events[0].data["state"] == "discovering"
    assert events[-1].event == EventType.SEARCH_COMPLETE
    assert events[-1].data["recipes"] == 4
    urls_event = next(event for event in events if event.event == EventType.URLS_FOUND)
    assert urls_event.data["urls"] == URLS
    states = [event.data["state"] for event in events if event.event == EventType.STATE_CHANGED]
    assert states == ["discovering", "extracting", "validating", "complete"]


@pytest.mark.asyncio
async def test_failing_progress_callback_is_ignored():
    discovery, jsonld, perplexity = _scenario_a()

    def on_progress(event):
        raise RuntimeError("client went away")

    response = await _orchestrator(discovery, jsonld, perplexity).search(
        SearchRequest(query="ethiopian lentil stew", max_results=4), on_progress=on_progress
    )
    assert response.total_found == 4


@pytest.mark.asyncio
async def test_no_urls_without_fallback_raises():
    events = []
    orchestrator = _orchestrator(
        FakeDiscovery([[]]), ScriptedProvider("jsonld", {}), max_retries=0, fallback_enabled=False
    )
    with pytest.raises(RecipeSearchError) as excinfo:
        await orchestrator.search(SearchRequest(query="unicorn stew"), on_progress=events.append)

    assert any(error.startswith("discovery:") for error in excinfo.value.errors)
    assert events[-1].event == EventType.ERROR


@pytest.mark.asyncio
async def test_empty_query_is_rejected():
    orchestrator = _orchestrator(FakeDiscovery([]), ScriptedProvider("jsonld", {}))
    with pytest.raises(ValueError):
        await orchestrator.search(SearchRequest(query="   "))


@pytest.mark.asyncio
async def test_item_timeout_is_recorded():
    slow = ScriptedProvider("jsonld", {URLS[0]: _good("Misir Wot")}, delay=1.0)
    orchestrator = _orchestrator(FakeDiscovery([URLS[:1]]), slow, max_retries=0)

    response = await orchestrator.search(
        SearchRequest(query="misir wot", max_results=1), SearchOptions(timeout_ms=20)
    )
    assert response.source == "fallback"
    assert any("extraction_timeout" in error for error in response.errors)


@pytest.mark.asyncio
async def test_concurrency_is_bounded():
    provider = ScriptedProvider("jsonld", {url: _good(f"Stew {i}") for i, url in enumerate(URLS)}, delay=0.01)
    orchestrator = _orchestrator(FakeDiscovery([URLS]), provider)

    response = await orchestrator.search(
        SearchRequest(query="stew", max_results=5), SearchOptions(max_concurrent=2)
    )
    assert provider.max_in_flight == 2
    assert response.total_found == 5
