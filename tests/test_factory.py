from __future__ import annotations

from recipe_finder.agents.factory import create_breakers, create_orchestrator
from recipe_finder.config import Settings
from recipe_finder.recipe_core.discovery.service import SEARCH_BREAKER
from recipe_finder.recipe_core.extract.providers import build_providers
from recipe_finder.recipe_core.validate.service import STRICT_PROFILE


def _settings(**overrides) -> Settings:
    values = dict(perplexity_api_key="", groq_api_key="", log_dir="logs")
    values.update(overrides)
    return Settings(**values)


def test_llm_providers_without_keys_are_skipped():
    providers = build_providers(["jsonld", "perplexity", "groq"], config=_settings())
    assert [provider.name for provider in providers] == ["jsonld"]


def test_llm_provider_uses_configured_endpoint():
    config = _settings(groq_api_key="gsk-test", groq_model="llama-test")
    providers = build_providers(["groq", "jsonld"], config=config)
    assert [provider.name for provider in providers] == ["groq", "jsonld"]
    assert providers[0].model == "llama-test"
    assert providers[0].endpoint.base_url == config.groq_base_url


def test_search_breaker_uses_search_thresholds():
    breakers = create_breakers(_settings(search_breaker_failure_threshold=5, breaker_failure_threshold=3))
    assert breakers.get(SEARCH_BREAKER).failure_threshold == 5
    assert breakers.get("jsonld").failure_threshold == 3


def test_create_orchestrator_wires_settings():
    config = _settings(
        extraction_providers="jsonld,groq",
        validation_profile="strict",
        pipeline_max_concurrent=2,
    )
    orchestrator = create_orchestrator(config)
    assert orchestrator.cascade.provider_names == ["jsonld"]
    assert orchestrator.final_profile is STRICT_PROFILE
    assert orchestrator.max_concurrent == 2
    assert orchestrator.cascade.breakers is orchestrator.discovery.breakers
    assert orchestrator.cascade.cache is orchestrator.discovery.cache
