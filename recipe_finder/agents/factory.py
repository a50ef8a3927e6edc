"""Process-start wiring: one cache and one breaker registry shared by every request."""

from __future__ import annotations

from recipe_finder.agents.orchestrator import RecipeSearchOrchestrator
from recipe_finder.config import Settings, settings
from recipe_finder.recipe_core.discovery.service import SEARCH_BREAKER, DiscoveryService
from recipe_finder.recipe_core.extract.cascade import ExtractionCascade
from recipe_finder.recipe_core.extract.providers import build_providers
from recipe_finder.recipe_core.quality.filter import QualityFilterConfig
from recipe_finder.recipe_core.validate.service import RecipeValidator, get_profile
from recipe_finder.services.cache import TTLCache
from recipe_finder.services.circuit_breaker import BreakerConfig, CircuitBreakerRegistry
from recipe_finder.services.retry import RetryPolicy
from recipe_finder.tools.url_checker import HttpUrlValidator

HOUR = 3600


def create_cache(config: Settings = settings) -> TTLCache:
    return TTLCache(
        default_ttl_seconds=config.cache_recipe_ttl_hours * HOUR,
        sweep_interval_seconds=config.cache_sweep_interval_seconds,
        max_entries=config.cache_max_entries,
    )


def create_breakers(config: Settings = settings) -> CircuitBreakerRegistry:
    return CircuitBreakerRegistry(
        default_config=BreakerConfig(
            failure_threshold=config.breaker_failure_threshold,
            timeout_ms=config.breaker_timeout_ms,
            success_threshold=config.breaker_success_threshold,
        ),
        overrides={
            SEARCH_BREAKER: BreakerConfig(
                failure_threshold=config.search_breaker_failure_threshold,
                timeout_ms=config.search_breaker_timeout_ms,
                success_threshold=config.breaker_success_threshold,
            )
        },
        max_size=config.breaker_registry_max_size,
    )


def create_orchestrator(
    config: Settings = settings,
    *,
    cache: TTLCache | None = None,
    breakers: CircuitBreakerRegistry | None = None,
) -> RecipeSearchOrchestrator:
    """Build the full pipeline from settings, sharing ``cache`` and ``breakers`` when given."""
    cache = cache if cache is not None else create_cache(config)
    breakers = breakers if breakers is not None else create_breakers(config)

    discovery = DiscoveryService(
        url_validator=HttpUrlValidator(
            timeout_ms=config.url_check_timeout_ms,
            sample_bytes=config.url_body_sample_bytes,
        ),
        breakers=breakers,
        cache=cache,
        filter_config=QualityFilterConfig(
            min_title_length=config.quality_min_title_length,
            min_content_length=config.quality_min_content_length,
        ),
        domain_cap=config.discovery_domain_cap,
        success_ratio=config.discovery_success_ratio,
        max_retries=config.discovery_max_retries,
        body_sample_rate=config.url_body_sample_rate,
        max_body_checks=config.url_max_body_checks,
        search_timeout_ms=config.search_timeout_ms,
        search_retry=RetryPolicy(max_attempts=config.search_max_attempts, base_delay_ms=500, max_delay_ms=2000),
        url_ttl_seconds=config.cache_url_ttl_hours * HOUR,
    )
    cascade = ExtractionCascade(
        build_providers(
            config.extraction_provider_list,
            html_timeout_ms=config.html_fetch_timeout_ms,
            config=config,
        ),
        breakers=breakers,
        cache=cache,
        timeout_ms=config.extraction_timeout_ms,
        recipe_ttl_seconds=config.cache_recipe_ttl_hours * HOUR,
    )
    final_profile = get_profile(config.validation_profile)
    return RecipeSearchOrchestrator(
        discovery,
        cascade,
        validator=RecipeValidator(final_profile),
        final_profile=final_profile,
        acceptable_score=config.pipeline_acceptable_score,
        max_concurrent=config.pipeline_max_concurrent,
        item_timeout_ms=config.pipeline_item_timeout_ms,
        max_retries=config.pipeline_max_retries,
        retry_policy=RetryPolicy(
            max_attempts=config.pipeline_max_retries + 1,
            base_delay_ms=config.pipeline_retry_base_delay_ms,
            max_delay_ms=config.pipeline_retry_max_delay_ms,
        ),
        success_ratio=config.pipeline_success_ratio,
        fallback_enabled=config.fallback_enabled,
    )
