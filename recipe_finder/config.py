from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Search
    search_provider: str = "tavily"  # tavily | jina
    search_fallback_enabled: bool = True
    tavily_api_key: str = ""
    jina_api_key: str = ""
    search_timeout_ms: int = 15000
    search_max_attempts: int = 3

    # LLM extraction providers (OpenAI-compatible endpoints)
    perplexity_api_key: str = ""
    perplexity_base_url: str = "https://api.perplexity.ai"
    perplexity_model: str = "sonar"
    groq_api_key: str = ""
    groq_base_url: str = "https://api.groq.com/openai/v1"
    groq_model: str = "llama-3.3-70b-versatile"

    # Extraction cascade
    extraction_providers: str = "jsonld,perplexity,groq"  # cascade order
    extraction_timeout_ms: int = 10000
    html_fetch_timeout_ms: int = 8000

    # URL validation
    url_check_timeout_ms: int = 5000
    url_body_sample_rate: float = 0.3
    url_body_sample_bytes: int = 2048
    url_max_body_checks: int = 3

    # Quality filter / discovery
    quality_min_title_length: int = 10
    quality_min_content_length: int = 100
    discovery_domain_cap: int = 1
    discovery_success_ratio: float = 0.5
    discovery_max_retries: int = 2

    # Cache
    cache_url_ttl_hours: float = 4
    cache_recipe_ttl_hours: float = 24
    cache_sweep_interval_seconds: int = 3600
    cache_max_entries: int = 1000

    # Circuit breakers
    breaker_failure_threshold: int = 3
    breaker_timeout_ms: int = 30000
    breaker_success_threshold: int = 2
    search_breaker_failure_threshold: int = 5
    search_breaker_timeout_ms: int = 60000
    breaker_registry_max_size: int = 32

    # Orchestrator
    pipeline_max_concurrent: int = 3
    pipeline_item_timeout_ms: int = 30000
    pipeline_max_retries: int = 1
    pipeline_success_ratio: float = 0.75
    pipeline_retry_base_delay_ms: int = 1000
    pipeline_retry_max_delay_ms: int = 5000
    pipeline_acceptable_score: int = 50
    validation_profile: str = "meal_planning"  # default | strict | meal_planning
    fallback_enabled: bool = True

    # App
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_dir: str = "logs"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def extraction_provider_list(self) -> list[str]:
        return [p.strip().lower() for p in self.extraction_providers.split(",") if p.strip()]


settings = Settings()
