from __future__ import annotations

import time
from dataclasses import replace
from typing import Sequence

from loguru import logger

from recipe_finder.models.errors import (
    ExtractionTimeout,
    ParseFailure,
    ProviderUnavailable,
    RecipeFinderError,
)
from recipe_finder.recipe_core.extract.providers import ExtractionProvider
from recipe_finder.recipe_core.models.interfaces import (
    AttemptError,
    ExtractionOutcome,
    RecipeDraft,
    RecipeMetadata,
)
from recipe_finder.services.cache import TTLCache, fingerprint
from recipe_finder.services.circuit_breaker import CircuitBreakerRegistry
from recipe_finder.services.logger import log_provider_call
from recipe_finder.services.retry import with_timeout
from recipe_finder.tools.web_utils import extract_domain, title_from_slug

PLACEHOLDER_PROVIDER = "placeholder"


def build_placeholder_draft(url: str) -> RecipeDraft:
    """Marked stand-in returned when every provider failed for ``url``."""
    domain = extract_domain(url) or "the source site"
    return RecipeDraft(
        title=title_from_slug(url),
        description=f"Recipe details could not be extracted from {domain}.",
        metadata=RecipeMetadata(servings=4, total_time_minutes=45),
        source_url=url,
        provider=PLACEHOLDER_PROVIDER,
        provenance="placeholder",
        placeholder=True,
    )


class ExtractionCascade:
    """Try providers in order behind per-provider breakers; never raises for a URL."""

    def __init__(
        self,
        providers: Sequence[ExtractionProvider],
        *,
        breakers: CircuitBreakerRegistry,
        cache: TTLCache | None = None,
        timeout_ms: int = 10000,
        recipe_ttl_seconds: float = 24 * 3600,
    ):
        self.providers = list(providers)
        self.breakers = breakers
        self.cache = cache
        self.timeout_ms = max(int(timeout_ms), 1)
        self.recipe_ttl_seconds = recipe_ttl_seconds

    @property
    def provider_names(self) -> list[str]:
        return [provider.name for provider in self.providers]

    async def extract(self, url: str) -> ExtractionOutcome:
        key = fingerprint("recipe", url)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug(f"Recipe cache hit for {url}")
                return ExtractionOutcome(
                    url=url,
                    draft=replace(cached, provenance="cached"),
                    provider=cached.provider,
                    cached=True,
                )

        errors: list[AttemptError] = []
        for provider in self.providers:
            started = time.monotonic()
            breaker = self.breakers.get(provider.name)
            try:
                draft = await breaker.execute(lambda provider=provider: self._attempt(provider, url))
            except RecipeFinderError as exc:
                errors.append(AttemptError(provider.name, exc.kind, str(exc)))
                log_provider_call(
                    provider.name, url, exc.kind, int((time.monotonic() - started) * 1000), error=str(exc)
                )
                continue

            if self.cache is not None:
                self.cache.set(key, draft, ttl_seconds=self.recipe_ttl_seconds)
            return ExtractionOutcome(url=url, draft=draft, provider=provider.name, errors=tuple(errors))

        logger.warning(
            f"All extraction providers failed for {url}; returning placeholder "
            f"({'; '.join(str(error) for error in errors) or 'no providers configured'})"
        )
        return ExtractionOutcome(
            url=url,
            draft=build_placeholder_draft(url),
            provider=PLACEHOLDER_PROVIDER,
            errors=tuple(errors),
        )

    async def _attempt(self, provider: ExtractionProvider, url: str) -> RecipeDraft:
        try:
            draft = await with_timeout(
                provider.extract(url),
                self.timeout_ms,
                label=f"{provider.name} extraction of {url}",
                error_type=ExtractionTimeout,
            )
        except RecipeFinderError:
            raise
        except Exception as exc:
            raise ProviderUnavailable(provider.name, f"{provider.name}: {type(exc).__name__}: {exc}") from exc

        if not isinstance(draft, RecipeDraft):
            raise ParseFailure(f"{provider.name}: returned {type(draft).__name__}, not a recipe")
        if not draft.has_content:
            raise ParseFailure(f"{provider.name}: no meaningful recipe data at {url}")
        return replace(
            draft,
            source_url=draft.source_url or url,
            provider=provider.name,
            provenance="extracted",
            placeholder=False,
        )
