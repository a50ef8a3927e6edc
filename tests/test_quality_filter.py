from __future__ import annotations

import random
import string
from datetime import datetime, timezone

import pytest

from recipe_finder.recipe_core.models.interfaces import ScoredUrl, SearchHit
from recipe_finder.recipe_core.quality.filter import (
    MAX_SCORE,
    QualityFilterConfig,
    diversify,
    filter_hits,
    rejection_reason,
    score_hit,
)

NOW = datetime(2026, 6, 1, tzinfo=timezone.utc)
SNIPPET = (
    "Ingredients and step by step instructions for a weeknight dinner. "
    "Prep time 10 minutes, cook time 30 minutes, servings 4."
)


def _hit(url: str, title: str = "Spicy Lentil Soup Recipe", snippet: str = SNIPPET, **kwargs) -> SearchHit:
    return SearchHit(title=title, url=url, snippet=snippet, **kwargs)


@pytest.mark.parametrize(
    "hit,reason",
    [
        (_hit("not a url"), "invalid_url"),
        (_hit("https://www.youtube.com/watch?v=abc"), "blocked_platform"),
        (_hit("https://m.tiktok.com/@chef/video/1"), "blocked_platform"),
        (_hit("https://example.com/collections/soups"), "collection_page"),
        (_hit("https://example.com/best-soup-recipes"), "collection_page"),
        (_hit("https://example.com/soup", title="Soup"), "title_too_short"),
        (_hit("https://example.com/soup", snippet="Too short."), "content_too_short"),
        (_hit("https://example.com/soup", snippet="Ingredients: lentils."), "content_too_short"),
        (_hit("https://example.com/soup", title="Grandma's lentil soup", snippet="x" * 120), "no_recipe_indicators"),
    ],
)
def test_rejection_reasons(hit, reason):
    assert rejection_reason(hit, QualityFilterConfig()) == reason


def test_relaxed_config_keeps_hits_without_recipe_indicators():
    hit = _hit("https://example.com/collections/soup", title="Grandma's lentil soup", snippet="short")
    assert rejection_reason(hit, QualityFilterConfig()) is not None
    assert rejection_reason(hit, QualityFilterConfig().relaxed()) is None


def test_relaxed_config_still_blocks_video_platforms():
    hit = _hit("https://youtube.com/watch?v=1")
    assert rejection_reason(hit, QualityFilterConfig().relaxed()) == "blocked_platform"


@pytest.mark.parametrize("config", [QualityFilterConfig(), QualityFilterConfig().relaxed()])
def test_no_short_titles_survive_random_hits(config):
    rng = random.Random(7)
    hits = []
    for index in range(200):
        length = rng.randint(0, 30)
        title = "".join(rng.choice(string.ascii_letters + " ") for _ in range(length))
        if rng.random() < 0.5:
            title = f"{title} recipe"
        hits.append(_hit(f"https://site{index % 17}.com/recipe/{index}", title=title))

    for item in filter_hits(hits, config, now=NOW):
        assert len(item.title.strip()) >= config.min_title_length


def test_filter_hits_sorted_and_domain_capped():
    hits = [
        _hit("https://www.seriouseats.com/recipe/lentil-soup", title="Lentil Soup Recipe with Cumin"),
        _hit("https://seriouseats.com/recipe/another-lentil", title="Another Red Lentil Recipe Here"),
        _hit("https://smallblog.net/lentil", title="My favorite lentil soup recipe"),
        _hit("https://allrecipes.com/recipe/1/soup", title="Allrecipes Lentil Soup Recipe"),
    ]
    result = filter_hits(hits, QualityFilterConfig(), domain_cap=1, now=NOW)

    scores = [item.quality_score for item in result]
    assert scores == sorted(scores, reverse=True)
    domains = [item.domain for item in result]
    assert len(domains) == len(set(domains))
    assert "seriouseats.com" in domains


def test_score_hit_is_clamped():
    hit = _hit("https://seriouseats.com/recipe/x", title="How to make the recipe ingredients", raw_score=10)
    assert score_hit(hit, now=NOW) == MAX_SCORE

    collection = _hit("https://example.com/x", title="Top 10 best soup collection roundup compilation")
    assert score_hit(collection, now=NOW) >= 0.0


def test_authority_site_outscores_collection_style_title():
    individual = _hit("https://www.seriouseats.com/recipe/lentil-soup", title="Red Lentil Soup Recipe")
    roundup = _hit("https://example.com/soups", title="Top 25 best soup recipes collection")
    assert score_hit(individual, now=NOW) > score_hit(roundup, now=NOW)


def test_recent_publication_gets_a_small_bonus():
    old = _hit("https://example.com/a", published_date="2001-01-01")
    fresh = _hit("https://example.com/a", published_date="2026-05-01T00:00:00Z")
    assert score_hit(fresh, now=NOW) > score_hit(old, now=NOW)


def test_diversify_backfills_from_capped_domains():
    def scored(url: str, title: str, score: float) -> ScoredUrl:
        return ScoredUrl(hit=_hit(url, title=title), quality_score=score, domain=url.split("/")[2])

    items = [
        scored("https://a.com/1", "Lentil Soup", 1.5),
        scored("https://a.com/2", "Chickpea Curry", 1.2),
        scored("https://b.com/1", "Bean Chili", 1.0),
        scored("https://a.com/3", "Lentil Soup Recipe", 0.9),
    ]

    capped = diversify(items, domain_cap=1)
    assert [item.url for item in capped] == ["https://a.com/1", "https://b.com/1"]

    backfilled = diversify(items, domain_cap=1, min_count=3)
    # The near-duplicate "Lentil Soup Recipe" title is never backfilled.
    assert [item.url for item in backfilled] == ["https://a.com/1", "https://a.com/2", "https://b.com/1"]
