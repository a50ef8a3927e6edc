from __future__ import annotations

import asyncio
import inspect
import math
import time
import uuid
from dataclasses import dataclass, field, replace
from typing import Awaitable, Callable, Iterable

from loguru import logger

from recipe_finder.models.errors import (
    ExtractionTimeout,
    NoUrlsFound,
    RecipeFinderError,
    RecipeSearchError,
    ValidationFailed,
)
from recipe_finder.models.events import PipelineState, SSEEvent, can_transition
from recipe_finder.recipe_core.discovery.query import broaden_query, build_search_query
from recipe_finder.recipe_core.discovery.service import DiscoveryService
from recipe_finder.recipe_core.extract.cascade import ExtractionCascade
from recipe_finder.recipe_core.fallback.catalog import select_fallback_recipes
from recipe_finder.recipe_core.models.interfaces import (
    ExtractionOutcome,
    NormalizedRecipe,
    RecipeSearchResponse,
    SearchOptions,
    SearchRequest,
    ValidationResult,
)
from recipe_finder.recipe_core.normalize.service import RecipeNormalizer
from recipe_finder.recipe_core.validate.service import (
    ACCEPTABLE_PROFILE,
    MEAL_PLANNING_PROFILE,
    RecipeValidator,
    ValidationProfile,
)
from recipe_finder.services import streaming
from recipe_finder.services.logger import log_pipeline_step
from recipe_finder.services.retry import RetryPolicy, with_retry, with_timeout
from recipe_finder.tools.web_utils import canonical_url

ProgressCallback = Callable[[SSEEvent], Awaitable[None] | None]
FallbackSelector = Callable[..., list[NormalizedRecipe]]


@dataclass
class SearchRun:
    """Mutable bookkeeping for one search request."""

    request_id: str
    on_progress: ProgressCallback | None = None
    state: PipelineState = PipelineState.PENDING
    attempt: int = 1
    urls_found: int = 0
    recipes_processed: int = 0
    total_recipes: int = 0
    errors: list[str] = field(default_factory=list)
    provider_errors: list[str] = field(default_factory=list)
    seen_urls: set[str] = field(default_factory=set)
    accepted: dict[str, NormalizedRecipe] = field(default_factory=dict)

    def progress(self) -> dict:
        return {
            "request_id": self.request_id,
            "state": self.state,
            "attempt": self.attempt,
            "urls_found": self.urls_found,
            "recipes_processed": self.recipes_processed,
            "total_recipes": self.total_recipes,
            "errors": self.errors,
        }


class RecipeSearchOrchestrator:
    """Two-stage recipe search: discover URLs, then extract, screen, normalize and validate.

    Flow per attempt:
      1. DISCOVERING: quality-filtered, reachable, diversified URLs
      2. EXTRACTING: cascade over URLs in batches of ``max_concurrent``,
         each draft screened against the looser acceptable threshold
      3. VALIDATING: normalize survivors and validate with the final profile

    Batches are only screened while extracting; normalization and final
    validation run once per attempt over every screened draft.

    Attempts repeat with a broadened query while the valid count is below
    ``success_ratio * max_results``. Curated fallback recipes fill the
    shortfall once retries are exhausted.
    """

    def __init__(
        self,
        discovery: DiscoveryService,
        cascade: ExtractionCascade,
        *,
        normalizer: RecipeNormalizer | None = None,
        validator: RecipeValidator | None = None,
        final_profile: ValidationProfile = MEAL_PLANNING_PROFILE,
        acceptable_score: int = 50,
        max_concurrent: int = 3,
        item_timeout_ms: int = 30000,
        max_retries: int = 1,
        retry_policy: RetryPolicy | None = None,
        success_ratio: float = 0.75,
        fallback_enabled: bool = True,
        fallback_selector: FallbackSelector = select_fallback_recipes,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.discovery = discovery
        self.cascade = cascade
        self.normalizer = normalizer or RecipeNormalizer()
        self.validator = validator or RecipeValidator(final_profile)
        self.final_profile = final_profile
        self.acceptable_score = int(acceptable_score)
        self.max_concurrent = max(int(max_concurrent), 1)
        self.item_timeout_ms = max(int(item_timeout_ms), 1)
        self.max_retries = max(int(max_retries), 0)
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=self.max_retries + 1, base_delay_ms=1000, max_delay_ms=5000
        )
        self.success_ratio = min(max(float(success_ratio), 0.0), 1.0)
        self.fallback_enabled = bool(fallback_enabled)
        self._select_fallback = fallback_selector
        self._sleep = sleep

    async def search(
        self,
        request: SearchRequest,
        options: SearchOptions | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> RecipeSearchResponse:
        if not request.query or not request.query.strip():
            raise ValueError("Search query must not be empty")

        started = time.monotonic()
        options = options or SearchOptions()
        max_results = max(int(request.max_results), 1)
        max_concurrent = max(int(options.max_concurrent or self.max_concurrent), 1)
        item_timeout_ms = max(int(options.timeout_ms or self.item_timeout_ms), 1)
        needed = max(1, math.ceil(self.success_ratio * max_results))
        base_query = build_search_query(request, strict=True)
        run = SearchRun(request_id=uuid.uuid4().hex[:12], on_progress=on_progress)

        logger.info(
            f"[{run.request_id}] Recipe search '{request.query}' "
            f"(max_results={max_results}, need {needed}, concurrency={max_concurrent})"
        )

        async def attempt(number: int) -> int:
            run.attempt = number
            query = base_query if number == 1 else broaden_query(base_query)
            await self._run_attempt(run, request, query, max_results, max_concurrent, item_timeout_ms)
            return len(run.accepted)

        async def on_retry(number: int, delay_ms: int, error: BaseException | None) -> None:
            reason = str(error) if error else f"{len(run.accepted)}/{max_results} valid recipes (need {needed})"
            logger.info(f"[{run.request_id}] Retrying search in {delay_ms}ms: {reason}")
            await self._emit(run, streaming.retry_scheduled(delay_ms, reason, **run.progress()))

        discovery_error: NoUrlsFound | None = None
        try:
            await with_retry(
                attempt,
                self.retry_policy,
                retry_on=(NoUrlsFound,),
                should_retry=lambda count: count < needed,
                on_retry=on_retry,
                sleep=self._sleep,
            )
        except NoUrlsFound as exc:
            discovery_error = exc
            run.errors.append(f"discovery: {exc}")
        except Exception as exc:
            logger.exception(f"[{run.request_id}] Recipe search failed unexpectedly")
            await self._fail(run, f"Recipe search failed: {exc}")
            raise RecipeSearchError(f"Recipe search failed: {exc}", run.errors) from exc

        recipes = sorted(
            run.accepted.values(), key=lambda recipe: recipe.quality_score or 0, reverse=True
        )[:max_results]
        found = len(recipes)
        source = "two-stage"

        if found < needed and self.fallback_enabled:
            supplements = self._fallback_recipes(request, max_results - found, recipes)
            if supplements:
                recipes = recipes + supplements
                source = "two-stage+fallback" if found else "fallback"
                logger.warning(
                    f"[{run.request_id}] Supplementing {found} recipes with {len(supplements)} curated fallbacks"
                )
                await self._emit(
                    run,
                    streaming.fallback_used(
                        len(supplements), [recipe.title for recipe in supplements], **run.progress()
                    ),
                )

        if not recipes:
            message = f"No valid recipes found for '{request.query}'"
            await self._fail(run, message)
            raise RecipeSearchError(message, run.errors) from discovery_error

        await self._transition(run, PipelineState.COMPLETE)
        search_time_ms = int((time.monotonic() - started) * 1000)
        response = RecipeSearchResponse(
            recipes=recipes,
            total_found=len(recipes),
            search_time_ms=search_time_ms,
            source=source,
            errors=list(run.errors),
            provider_errors=list(run.provider_errors),
            attempts=run.attempt,
        )
        log_pipeline_step(
            run.request_id,
            "search",
            "complete",
            {"recipes": len(recipes), "source": source, "errors": len(run.errors), "ms": search_time_ms},
        )
        await self._emit(
            run, streaming.search_complete(len(recipes), source, search_time_ms, **run.progress())
        )
        return response

    async def _run_attempt(
        self,
        run: SearchRun,
        request: SearchRequest,
        query: str,
        max_results: int,
        max_concurrent: int,
        item_timeout_ms: int,
    ) -> None:
        await self._transition(run, PipelineState.DISCOVERING)
        discovered = await self.discovery.discover(
            query,
            max_results=max_results,
            relaxed=run.attempt > 1,
            exclude=run.seen_urls,
        )

        urls: list[str] = []
        for url in discovered.urls:
            key = canonical_url(url)
            if key in run.seen_urls:
                continue
            run.seen_urls.add(key)
            urls.append(url)
        run.urls_found += len(urls)
        run.total_recipes += len(urls)
        log_pipeline_step(run.request_id, "discovery", "complete", {"query": query, "urls": len(urls)})
        await self._emit(run, streaming.urls_found(urls, **run.progress()))

        await self._transition(run, PipelineState.EXTRACTING)
        screened = await self._extract(run, urls, max_concurrent, item_timeout_ms)

        await self._transition(run, PipelineState.VALIDATING)
        for outcome in screened:
            await self._validate(run, outcome, request)
        log_pipeline_step(
            run.request_id,
            "validation",
            "complete",
            {"attempt": run.attempt, "accepted": len(run.accepted), "errors": len(run.errors)},
        )

    async def _extract(
        self,
        run: SearchRun,
        urls: list[str],
        max_concurrent: int,
        item_timeout_ms: int,
    ) -> list[ExtractionOutcome]:
        screened: list[ExtractionOutcome] = []
        for start in range(0, len(urls), max_concurrent):
            batch = urls[start : start + max_concurrent]
            outcomes = await asyncio.gather(
                *(
                    with_timeout(
                        self.cascade.extract(url),
                        item_timeout_ms,
                        label=f"extraction of {url}",
                        error_type=ExtractionTimeout,
                    )
                    for url in batch
                ),
                return_exceptions=True,
            )
            for url, outcome in zip(batch, outcomes):
                run.recipes_processed += 1
                status = self._screen(run, url, outcome)
                if status == "extracted":
                    screened.append(outcome)
                await self._emit(run, streaming.recipe_processed(url, status, **run.progress()))
        return screened

    def _screen(self, run: SearchRun, url: str, outcome: ExtractionOutcome | BaseException) -> str:
        if isinstance(outcome, BaseException):
            if not isinstance(outcome, Exception):
                raise outcome
            kind = outcome.kind if isinstance(outcome, RecipeFinderError) else type(outcome).__name__
            logger.warning(f"[{run.request_id}] Extraction failed for {url}: {outcome}")
            run.errors.append(f"{url}: {kind}: {outcome}")
            return "failed"

        run.provider_errors.extend(f"{url}: {error}" for error in outcome.errors)
        if outcome.placeholder:
            run.errors.append(f"{url}: all extraction providers failed ({len(outcome.errors)} attempts)")
            return "placeholder"

        screening = self.validator.validate(
            outcome.draft, profile=ACCEPTABLE_PROFILE, min_score=self.acceptable_score
        )
        if not screening.is_valid:
            run.errors.append(str(ValidationFailed(url, screening)))
            return "rejected"
        return "extracted"

    async def _validate(self, run: SearchRun, outcome: ExtractionOutcome, request: SearchRequest) -> None:
        normalized = self.normalizer.normalize(outcome.draft)
        for warning in normalized.warnings:
            logger.debug(f"[{run.request_id}] Normalization warning for {outcome.url}: {warning}")

        result = self.validator.validate(
            normalized.recipe, profile=self.final_profile, expected_cuisine=request.cultural_context
        )
        if not result.is_valid:
            logger.info(f"[{run.request_id}] Rejected {outcome.url}: score {result.score}")
            run.errors.append(str(ValidationFailed(outcome.url, result)))
            status = "invalid"
        else:
            run.accepted[canonical_url(outcome.url)] = replace(normalized.recipe, quality_score=result.score)
            status = "valid"
        await self._emit(run, streaming.recipe_processed(outcome.url, status, **run.progress()))

    def _fallback_recipes(
        self,
        request: SearchRequest,
        count: int,
        existing: Iterable[NormalizedRecipe],
    ) -> list[NormalizedRecipe]:
        supplements = self._select_fallback(
            count,
            cuisine=request.cultural_context,
            dietary=request.dietary_restrictions,
            query=request.query,
            exclude_titles=[recipe.title for recipe in existing],
        )
        scored: list[NormalizedRecipe] = []
        for recipe in supplements:
            result: ValidationResult = self.validator.validate(recipe, profile=self.final_profile)
            scored.append(replace(recipe, quality_score=result.score))
        return scored

    async def _transition(self, run: SearchRun, target: PipelineState) -> None:
        if not can_transition(run.state, target):
            raise RuntimeError(f"Invalid pipeline transition {run.state.value} -> {target.value}")
        previous, run.state = run.state, target
        logger.debug(f"[{run.request_id}] {previous.value} -> {target.value}")
        await self._emit(run, streaming.state_changed(previous, **run.progress()))

    async def _fail(self, run: SearchRun, message: str) -> None:
        if can_transition(run.state, PipelineState.ERRORED):
            await self._transition(run, PipelineState.ERRORED)
        log_pipeline_step(run.request_id, "search", "errored", {"message": message})
        await self._emit(run, streaming.error(message, **run.progress()))

    @staticmethod
    async def _emit(run: SearchRun, event: SSEEvent) -> None:
        if run.on_progress is None:
            return
        try:
            maybe = run.on_progress(event)
            if inspect.isawaitable(maybe):
                await maybe
        except Exception as exc:
            logger.warning(f"[{run.request_id}] Progress callback failed: {exc}")
