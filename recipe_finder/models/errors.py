"""Error taxonomy shared by every pipeline stage."""

from __future__ import annotations

from typing import Any


class RecipeFinderError(Exception):
    """Base class for all recipe pipeline errors."""

    kind = "error"


class ProviderUnavailable(RecipeFinderError):
    """A provider could not be reached, or its breaker is open."""

    kind = "provider_unavailable"

    def __init__(self, provider: str, message: str = ""):
        self.provider = provider
        super().__init__(message or f"Provider {provider} unavailable")


class CircuitOpenError(ProviderUnavailable):
    kind = "circuit_open"

    def __init__(self, provider: str, retry_after_ms: int):
        self.retry_after_ms = max(int(retry_after_ms), 0)
        super().__init__(
            provider,
            f"Circuit breaker for {provider} is OPEN; retry in {self.retry_after_ms}ms",
        )


class OperationTimeout(RecipeFinderError):
    kind = "timeout"

    def __init__(self, label: str, timeout_ms: int):
        self.label = label
        self.timeout_ms = timeout_ms
        super().__init__(f"{label} timed out after {timeout_ms}ms")


class ExtractionTimeout(OperationTimeout):
    kind = "extraction_timeout"


class SearchTimeout(OperationTimeout):
    kind = "search_timeout"


class NoUrlsFound(RecipeFinderError):
    kind = "no_urls_found"

    def __init__(self, query: str, message: str = ""):
        self.query = query
        super().__init__(message or f"No recipe URLs found for query: {query}")


class ValidationFailed(RecipeFinderError):
    kind = "validation_failed"

    def __init__(self, url: str, result: Any):
        self.url = url
        self.result = result
        reasons = "; ".join(issue.message for issue in getattr(result, "issues", [])[:3])
        super().__init__(
            f"Validation failed for {url} (score {getattr(result, 'score', 0)}): {reasons}"
        )


class ParseFailure(RecipeFinderError):
    """Provider returned something that is not a usable recipe."""

    kind = "parse_failure"


class DecodeError(ParseFailure):
    kind = "decode_error"

    def __init__(self, provider: str, message: str, field_errors: list[str] | None = None):
        self.provider = provider
        self.field_errors = list(field_errors or [])
        detail = f" ({'; '.join(self.field_errors[:3])})" if self.field_errors else ""
        super().__init__(f"{provider}: {message}{detail}")


class RecipeSearchError(RecipeFinderError):
    """Request-level failure: nothing usable could be produced."""

    kind = "recipe_search_failed"

    def __init__(self, message: str, errors: list[str] | None = None):
        self.errors = list(errors or [])
        super().__init__(message)
