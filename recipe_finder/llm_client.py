"""OpenAI-compatible client factory for the LLM extraction providers."""
from __future__ import annotations

from dataclasses import dataclass

from openai import AsyncOpenAI

from recipe_finder.config import Settings, settings


@dataclass(frozen=True, slots=True)
class LlmEndpoint:
    name: str
    base_url: str
    api_key: str
    model: str


def get_endpoint(provider: str, config: Settings | None = None) -> LlmEndpoint:
    """Resolve base URL, key and model for ``provider``."""
    config = config or settings
    provider = provider.strip().lower()
    if provider == "perplexity":
        return LlmEndpoint(provider, config.perplexity_base_url, config.perplexity_api_key, config.perplexity_model)
    if provider == "groq":
        return LlmEndpoint(provider, config.groq_base_url, config.groq_api_key, config.groq_model)
    raise ValueError(f"Unsupported LLM provider: {provider}")


def get_client(endpoint: LlmEndpoint) -> AsyncOpenAI:
    if not endpoint.api_key:
        raise ValueError(f"{endpoint.name.upper()}_API_KEY not configured")
    return AsyncOpenAI(api_key=endpoint.api_key, base_url=endpoint.base_url)
