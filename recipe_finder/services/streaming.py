from __future__ import annotations

from typing import Any

from recipe_finder.models.events import EventType, PipelineState, SSEEvent


def _progress(
    event: EventType,
    *,
    request_id: str,
    state: PipelineState,
    attempt: int,
    urls_found: int,
    recipes_processed: int,
    total_recipes: int,
    errors: list[str],
    **kwargs: Any,
) -> SSEEvent:
    data: dict[str, Any] = {
        "request_id": request_id,
        "state": state.value,
        "attempt": attempt,
        "urls_found": urls_found,
        "recipes_processed": recipes_processed,
        "total_recipes": total_recipes,
        "errors": list(errors),
    }
    data.update(kwargs)
    return SSEEvent(event=event, data=data)


def state_changed(previous: PipelineState, **progress: Any) -> SSEEvent:
    """Emit on every orchestrator state transition."""
    return _progress(EventType.STATE_CHANGED, previous_state=previous.value, **progress)


def urls_found(urls: list[str], **progress: Any) -> SSEEvent:
    return _progress(EventType.URLS_FOUND, urls=list(urls), **progress)


def recipe_processed(url: str, status: str, **progress: Any) -> SSEEvent:
    return _progress(EventType.RECIPE_PROCESSED, url=url, status=status, **progress)


def retry_scheduled(delay_ms: int, reason: str, **progress: Any) -> SSEEvent:
    return _progress(EventType.RETRY_SCHEDULED, delay_ms=delay_ms, reason=reason, **progress)


def fallback_used(count: int, titles: list[str], **progress: Any) -> SSEEvent:
    return _progress(EventType.FALLBACK_USED, count=count, titles=list(titles), **progress)


def search_complete(recipes: int, source: str, search_time_ms: int, **progress: Any) -> SSEEvent:
    return _progress(
        EventType.SEARCH_COMPLETE,
        recipes=recipes,
        source=source,
        search_time_ms=search_time_ms,
        **progress,
    )


def error(message: str, **progress: Any) -> SSEEvent:
    return _progress(EventType.ERROR, message=message, **progress)
