"""Pure scoring and filtering of raw search hits. No I/O."""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import datetime, timezone

from recipe_finder.recipe_core.models.interfaces import ScoredUrl, SearchHit
from recipe_finder.tools.web_utils import extract_domain

BLOCKED_PLATFORMS = (
    "youtube.com",
    "youtu.be",
    "tiktok.com",
    "vimeo.com",
    "dailymotion.com",
    "instagram.com",
    "facebook.com",
    "twitter.com",
    "x.com",
    "pinterest.com",
    "snapchat.com",
    "reddit.com",
)

COLLECTION_PATH_PATTERNS = (
    "/category/",
    "/categories/",
    "/collection/",
    "/collections/",
    "/gallery/",
    "/galleries/",
    "/roundup/",
    "/search/",
    "/tag/",
    "/best-",
    "/top-",
    "/recipes-menus/",
    "recipe-ideas",
    "recipe-gallery",
    "recipe-collection",
    "recipe-index",
    "best-recipes",
    "top-recipes",
    "list-of",
    "compilation",
    "cooking-tips",
    "kitchen-hacks",
)

RECIPE_KEYWORDS = (
    "ingredients",
    "instructions",
    "directions",
    "how to make",
    "recipe",
    "prep time",
    "cook time",
    "servings",
    "bake",
    "cook",
)

TITLE_KEYWORD_WEIGHTS = {
    "recipe": 0.3,
    "how to make": 0.25,
    "ingredients": 0.2,
    "instructions": 0.2,
    "directions": 0.15,
    "cooking": 0.1,
    "bake": 0.1,
    "cook": 0.1,
    "prepare": 0.1,
}

SNIPPET_INDICATORS = ("servings", "prep time", "cook time", "total time", "yield")

COLLECTION_TITLE_PENALTIES = (
    (re.compile(r"\b(best|top \d+|top)\b"), 0.3),
    (re.compile(r"\b(collection|roundup|round-up)\b"), 0.4),
    (re.compile(r"\b(list of|compilation)\b"), 0.3),
    (re.compile(r"\b(ultimate|complete) guide\b"), 0.2),
)

NON_INDIVIDUAL_TERMS = ("menu", "meal plan", "weekly", "ideas for")

DOMAIN_AUTHORITY = {
    "seriouseats.com": 0.5,
    "allrecipes.com": 0.4,
    "foodnetwork.com": 0.4,
    "bonappetit.com": 0.4,
    "epicurious.com": 0.4,
    "simplyrecipes.com": 0.4,
    "foodandwine.com": 0.4,
    "bbcgoodfood.com": 0.4,
    "food.com": 0.3,
    "delish.com": 0.3,
    "tasteofhome.com": 0.3,
    "cookinglight.com": 0.3,
    "marthastewart.com": 0.3,
    "bhg.com": 0.3,
    "kingarthurbaking.com": 0.3,
    "pillsbury.com": 0.2,
    "kraftrecipes.com": 0.2,
}

MIN_SCORE = 0.0
MAX_SCORE = 2.0


@dataclass(frozen=True, slots=True)
class QualityFilterConfig:
    exclude_video_sites: bool = True
    exclude_collection_pages: bool = True
    min_title_length: int = 10
    min_content_length: int = 100
    require_recipe_indicators: bool = True

    def relaxed(self) -> "QualityFilterConfig":
        """Looser variant used when a strict pass yields too few URLs."""
        return replace(
            self,
            exclude_collection_pages=False,
            min_content_length=min(self.min_content_length, 50),
            require_recipe_indicators=False,
        )


def _matches_domain(domain: str, candidates: tuple[str, ...] | dict[str, float]) -> str | None:
    for candidate in candidates:
        if domain == candidate or domain.endswith("." + candidate):
            return candidate
    return None


def rejection_reason(hit: SearchHit, config: QualityFilterConfig) -> str | None:
    """Why ``hit`` is excluded outright, or None when it survives."""
    domain = extract_domain(hit.url)
    if not domain:
        return "invalid_url"
    if config.exclude_video_sites and _matches_domain(domain, BLOCKED_PLATFORMS):
        return "blocked_platform"

    path = hit.url.lower().split(domain, 1)[-1]
    if config.exclude_collection_pages and any(p in path for p in COLLECTION_PATH_PATTERNS):
        return "collection_page"

    if len(hit.title.strip()) < config.min_title_length:
        return "title_too_short"

    if config.require_recipe_indicators:
        if len(hit.snippet.strip()) < config.min_content_length:
            return "content_too_short"
        text = f"{hit.title} {hit.snippet}".lower()
        if not any(keyword in text for keyword in RECIPE_KEYWORDS):
            return "no_recipe_indicators"
    return None


def _recency_bonus(published_date: str | None, now: datetime) -> float:
    if not published_date:
        return 0.0
    try:
        published = datetime.fromisoformat(published_date.replace("Z", "+00:00"))
    except ValueError:
        return 0.0
    if published.tzinfo is None:
        published = published.replace(tzinfo=timezone.utc)
    age_days = (now - published).days
    if age_days < 0:
        return 0.0
    if age_days <= 365:
        return 0.1
    if age_days <= 5 * 365:
        return 0.05
    return 0.0


def score_hit(hit: SearchHit, *, now: datetime | None = None) -> float:
    now = now or datetime.now(timezone.utc)
    title = hit.title.lower()
    snippet = hit.snippet.lower()
    domain = extract_domain(hit.url)
    score = float(hit.raw_score or 0.0)

    for keyword, weight in TITLE_KEYWORD_WEIGHTS.items():
        if keyword in title:
            score += weight
        if keyword in snippet:
            score += weight / 2

    authority = _matches_domain(domain, DOMAIN_AUTHORITY)
    if authority:
        score += DOMAIN_AUTHORITY[authority]

    if "/recipe/" in hit.url.lower():
        score += 0.15

    title_len = len(hit.title.strip())
    if 20 <= title_len <= 80:
        score += 0.1
    elif title_len > 80:
        score -= 0.05

    snippet_len = len(hit.snippet.strip())
    if snippet_len >= 300:
        score += 0.15
    elif snippet_len >= 150:
        score += 0.1

    score += 0.05 * sum(1 for indicator in SNIPPET_INDICATORS if indicator in snippet)

    for pattern, penalty in COLLECTION_TITLE_PENALTIES:
        if pattern.search(title):
            score -= penalty
    if any(term in title for term in NON_INDIVIDUAL_TERMS):
        score -= 0.2

    score += _recency_bonus(hit.published_date, now)
    return max(MIN_SCORE, min(score, MAX_SCORE))


def normalized_title(title: str) -> str:
    text = re.sub(r"[^a-z0-9 ]+", " ", title.lower())
    text = re.sub(r"\b(recipe|recipes|the|a|an|best|easy)\b", " ", text)
    return " ".join(text.split())


def diversify(
    scored: list[ScoredUrl],
    *,
    domain_cap: int = 1,
    min_count: int = 0,
) -> list[ScoredUrl]:
    """At most ``domain_cap`` URLs per domain and no near-identical titles.

    When fewer than ``min_count`` survive, backfill from the domain-capped
    leftovers (still skipping duplicate titles), preserving score order.
    """
    cap = max(int(domain_cap), 1)
    selected: list[ScoredUrl] = []
    leftovers: list[ScoredUrl] = []
    per_domain: dict[str, int] = {}
    seen_titles: set[str] = set()

    for item in scored:
        title_key = normalized_title(item.title)
        if title_key and title_key in seen_titles:
            continue
        if per_domain.get(item.domain, 0) >= cap:
            leftovers.append(item)
            continue
        per_domain[item.domain] = per_domain.get(item.domain, 0) + 1
        seen_titles.add(title_key)
        selected.append(item)

    for item in leftovers:
        if len(selected) >= min_count:
            break
        title_key = normalized_title(item.title)
        if title_key and title_key in seen_titles:
            continue
        seen_titles.add(title_key)
        selected.append(item)

    return sorted(selected, key=lambda item: item.quality_score, reverse=True)


def filter_hits(
    hits: list[SearchHit],
    config: QualityFilterConfig | None = None,
    *,
    domain_cap: int | None = None,
    now: datetime | None = None,
) -> list[ScoredUrl]:
    """Reject, score and sort hits, highest score first."""
    config = config or QualityFilterConfig()
    now = now or datetime.now(timezone.utc)
    scored = [
        ScoredUrl(hit=hit, quality_score=score_hit(hit, now=now), domain=extract_domain(hit.url))
        for hit in hits
        if rejection_reason(hit, config) is None
    ]
    scored.sort(key=lambda item: item.quality_score, reverse=True)
    if domain_cap is not None:
        return diversify(scored, domain_cap=domain_cap)
    return scored
