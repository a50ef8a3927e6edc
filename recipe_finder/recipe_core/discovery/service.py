from __future__ import annotations

import asyncio
import math
import random
import time
from dataclasses import dataclass, field, replace
from typing import Awaitable, Callable, Iterable, Protocol

from loguru import logger

from recipe_finder.models.errors import (
    CircuitOpenError,
    NoUrlsFound,
    ProviderUnavailable,
    SearchTimeout,
)
from recipe_finder.recipe_core.discovery.query import broaden_query
from recipe_finder.recipe_core.models.interfaces import ScoredUrl, SearchHit
from recipe_finder.recipe_core.quality.filter import (
    QualityFilterConfig,
    diversify,
    filter_hits,
)
from recipe_finder.services.cache import TTLCache, fingerprint
from recipe_finder.services.circuit_breaker import CircuitBreakerRegistry
from recipe_finder.services.retry import RetryPolicy, with_retry, with_timeout
from recipe_finder.tools import search_provider
from recipe_finder.tools.url_checker import UrlCheck
from recipe_finder.tools.web_utils import canonical_url, sanitize_url

Searcher = Callable[[str, int, str], Awaitable[list[SearchHit]]]

SEARCH_BREAKER = "search"


class UrlValidator(Protocol):
    async def check(self, url: str, *, sample_body: bool = False) -> UrlCheck: ...


@dataclass(frozen=True, slots=True)
class DiscoveryPlan:
    query: str
    filter_config: QualityFilterConfig
    search_depth: str
    label: str


@dataclass(slots=True)
class DiscoveryResult:
    urls: list[str]
    scored: list[ScoredUrl]
    query: str
    attempts: int = 0
    cached: bool = False
    queries: list[str] = field(default_factory=list)
    rejected: dict[str, str] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)


async def default_searcher(query: str, max_results: int, search_depth: str) -> list[SearchHit]:
    response = await search_provider.search(query, search_depth=search_depth, max_results=max_results)
    return response.hits


class DiscoveryService:
    """Search -> quality filter -> reachability check -> diversify, widening on low yield."""

    def __init__(
        self,
        *,
        url_validator: UrlValidator,
        breakers: CircuitBreakerRegistry,
        cache: TTLCache | None = None,
        searcher: Searcher | None = None,
        filter_config: QualityFilterConfig | None = None,
        domain_cap: int = 1,
        success_ratio: float = 0.5,
        max_retries: int = 2,
        body_sample_rate: float = 0.3,
        max_body_checks: int = 3,
        check_concurrency: int = 5,
        search_timeout_ms: int = 15000,
        search_retry: RetryPolicy | None = None,
        url_ttl_seconds: float = 4 * 3600,
        rng: random.Random | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.url_validator = url_validator
        self.breakers = breakers
        self.cache = cache
        self._searcher = searcher or default_searcher
        self.filter_config = filter_config or QualityFilterConfig()
        self.domain_cap = max(int(domain_cap), 1)
        self.success_ratio = min(max(float(success_ratio), 0.0), 1.0)
        self.max_retries = max(int(max_retries), 0)
        self.body_sample_rate = min(max(float(body_sample_rate), 0.0), 1.0)
        self.max_body_checks = max(int(max_body_checks), 0)
        self.check_concurrency = max(int(check_concurrency), 1)
        self.search_timeout_ms = max(int(search_timeout_ms), 1)
        self.search_retry = search_retry or RetryPolicy(max_attempts=3, base_delay_ms=500, max_delay_ms=2000)
        self.url_ttl_seconds = url_ttl_seconds
        self._rng = rng or random.Random()
        self._sleep = sleep

    def plans(self, query: str, *, relaxed: bool = False) -> list[DiscoveryPlan]:
        """Widening ladder: strict -> relaxed filter -> broader query -> deeper search."""
        loose = self.filter_config.relaxed()
        broader = broaden_query(query)
        ladder = [
            DiscoveryPlan(query, self.filter_config, "basic", "strict"),
            DiscoveryPlan(query, loose, "basic", "relaxed_filter"),
            DiscoveryPlan(broader, loose, "basic", "broader_query"),
            DiscoveryPlan(broader, loose, "advanced", "advanced_depth"),
        ]
        if relaxed:
            ladder = ladder[1:]
        return ladder[: self.max_retries + 1]

    async def discover(
        self,
        query: str,
        *,
        max_results: int,
        relaxed: bool = False,
        exclude: Iterable[str] = (),
    ) -> DiscoveryResult:
        max_results = max(int(max_results), 1)
        needed = max(1, math.ceil(self.success_ratio * max_results))
        excluded = {canonical_url(url) for url in exclude}
        cache_key = fingerprint("urls", query, relaxed)

        pool: dict[str, ScoredUrl] = {}
        checked: set[str] = set()
        result = DiscoveryResult(urls=[], scored=[], query=query)

        cached = self.cache.get(cache_key) if self.cache is not None else None
        if cached:
            for item in cached:
                pool[canonical_url(item.url)] = item
            selected = self._select(pool, excluded, max_results)
            if len(selected) >= needed:
                logger.info(f"Discovery cache hit for '{query[:80]}': {len(selected)} URLs")
                result.scored = selected
                result.urls = [item.url for item in selected]
                result.cached = True
                return result

        selected: list[ScoredUrl] = []
        for plan in self.plans(query, relaxed=relaxed):
            result.attempts += 1
            result.queries.append(plan.query)
            hits = await self._search(plan, max_results * 2, result.errors)
            scored = filter_hits(self._sanitize(hits), plan.filter_config)
            logger.info(
                f"Discovery [{plan.label}] '{plan.query[:80]}': "
                f"{len(hits)} hits, {len(scored)} passed quality filter"
            )

            candidates: list[ScoredUrl] = []
            for item in scored:
                key = canonical_url(item.url)
                if key in pool or key in excluded or key in checked:
                    continue
                checked.add(key)
                candidates.append(item)

            for item in await self._validate(candidates, result.rejected):
                pool[canonical_url(item.url)] = item

            selected = self._select(pool, excluded, max_results)
            if len(selected) >= needed:
                break
            logger.info(
                f"Discovery yielded {len(selected)}/{max_results} URLs (need {needed}); widening search"
            )

        if self.cache is not None and pool:
            self.cache.set(cache_key, tuple(pool.values()), ttl_seconds=self.url_ttl_seconds)

        if not selected:
            detail = f"; provider errors: {result.errors[-1]}" if result.errors else ""
            raise NoUrlsFound(query, f"No recipe URLs found for query: {query}{detail}")

        result.scored = selected
        result.urls = [item.url for item in selected]
        return result

    def _select(self, pool: dict[str, ScoredUrl], excluded: set[str], max_results: int) -> list[ScoredUrl]:
        ranked = sorted(
            (item for key, item in pool.items() if key not in excluded),
            key=lambda item: item.quality_score,
            reverse=True,
        )
        return diversify(ranked, domain_cap=self.domain_cap, min_count=max_results)[:max_results]

    @staticmethod
    def _sanitize(hits: list[SearchHit]) -> list[SearchHit]:
        cleaned: list[SearchHit] = []
        for hit in hits:
            url = sanitize_url(hit.url)
            if url:
                cleaned.append(hit if url == hit.url else replace(hit, url=url))
        return cleaned

    async def _search(self, plan: DiscoveryPlan, max_results: int, errors: list[str]) -> list[SearchHit]:
        breaker = self.breakers.get(SEARCH_BREAKER)

        async def call_provider() -> list[SearchHit]:
            try:
                return await with_timeout(
                    self._searcher(plan.query, max_results, plan.search_depth),
                    self.search_timeout_ms,
                    label=f"search '{plan.query[:60]}'",
                    error_type=SearchTimeout,
                )
            except (SearchTimeout, ProviderUnavailable):
                raise
            except Exception as exc:
                raise ProviderUnavailable(SEARCH_BREAKER, f"search failed: {exc}") from exc

        async def attempt(_attempt: int) -> list[SearchHit]:
            return await breaker.execute(call_provider)

        started = time.monotonic()
        try:
            hits = await with_retry(
                attempt,
                self.search_retry,
                retry_on=(SearchTimeout, ProviderUnavailable),
                give_up_on=(CircuitOpenError,),
                sleep=self._sleep,
            )
        except (SearchTimeout, ProviderUnavailable) as exc:
            logger.warning(f"Search failed for plan {plan.label}: {exc}")
            errors.append(f"search [{plan.label}]: {exc}")
            return []
        logger.debug(f"Search returned {len(hits)} hits in {int((time.monotonic() - started) * 1000)}ms")
        return list(hits or [])

    async def _validate(self, candidates: list[ScoredUrl], rejected: dict[str, str]) -> list[ScoredUrl]:
        semaphore = asyncio.Semaphore(self.check_concurrency)
        body_checks = 0
        sample_flags: list[bool] = []
        for _ in candidates:
            sample = body_checks < self.max_body_checks and self._rng.random() < self.body_sample_rate
            body_checks += int(sample)
            sample_flags.append(sample)

        async def run_one(item: ScoredUrl, sample: bool) -> UrlCheck:
            async with semaphore:
                return await self.url_validator.check(item.url, sample_body=sample)

        outcomes = await asyncio.gather(
            *(run_one(item, sample) for item, sample in zip(candidates, sample_flags)),
            return_exceptions=True,
        )

        accepted: list[ScoredUrl] = []
        for item, outcome in zip(candidates, outcomes):
            if isinstance(outcome, BaseException):
                rejected[item.url] = f"check_error: {outcome}"
                continue
            if not outcome.reachable:
                rejected[item.url] = f"unreachable ({outcome.status_code or outcome.error})"
            elif not outcome.is_html:
                rejected[item.url] = f"content_type {outcome.content_type}"
            elif outcome.has_recipe_markers is False:
                rejected[item.url] = "no_recipe_markers"
            else:
                accepted.append(item)
        return accepted
