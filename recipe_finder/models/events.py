from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    STATE_CHANGED = "state_changed"
    URLS_FOUND = "urls_found"
    RECIPE_PROCESSED = "recipe_processed"
    RETRY_SCHEDULED = "retry_scheduled"
    FALLBACK_USED = "fallback_used"
    SEARCH_COMPLETE = "search_complete"
    ERROR = "error"


class PipelineState(str, Enum):
    PENDING = "pending"
    DISCOVERING = "discovering"
    EXTRACTING = "extracting"
    VALIDATING = "validating"
    COMPLETE = "complete"
    ERRORED = "errored"


# VALIDATING -> DISCOVERING is the orchestrator retry path.
ALLOWED_TRANSITIONS: dict[PipelineState, frozenset[PipelineState]] = {
    PipelineState.PENDING: frozenset({PipelineState.DISCOVERING}),
    PipelineState.DISCOVERING: frozenset(
        {PipelineState.EXTRACTING, PipelineState.DISCOVERING, PipelineState.COMPLETE}
    ),
    PipelineState.EXTRACTING: frozenset({PipelineState.VALIDATING}),
    PipelineState.VALIDATING: frozenset({PipelineState.DISCOVERING, PipelineState.COMPLETE}),
    PipelineState.COMPLETE: frozenset(),
    PipelineState.ERRORED: frozenset(),
}


def can_transition(current: PipelineState, target: PipelineState) -> bool:
    if target == PipelineState.ERRORED:
        return current not in (PipelineState.COMPLETE, PipelineState.ERRORED)
    return target in ALLOWED_TRANSITIONS[current]


@dataclass
class SSEEvent:
    event: EventType
    data: dict[str, Any] = field(default_factory=dict)

    def format(self) -> str:
        return f"event: {self.event.value}\ndata: {json.dumps(self.data, default=str)}\n\n"
