"""Structured event stream emitted by the population lifecycle.

The core never prints. It emits :class:`EvolutionEvent` values to an
:class:`EventReporter`; the default reporter forwards them to structlog.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

import structlog

logger = structlog.get_logger(__name__)


class EventKind(str, Enum):
    POOL_INITIALIZED = "pool_initialized"
    GENERATION_STARTED = "generation_started"
    CONSENSUS_COMPUTED = "consensus_computed"
    JUDGEMENT_ROUND_FINISHED = "judgement_round_finished"
    CROSSOVER_FINISHED = "crossover_finished"
    GENERATION_FINISHED = "generation_finished"
    INVARIANT_VIOLATED = "invariant_violated"
    TEST_COMPLETED = "test_completed"
    TEST_FAILED = "test_failed"


@dataclass
class EvolutionEvent:
    """A single lifecycle event for one test."""

    kind: EventKind
    test_id: str
    generation: int | None = None
    data: dict[str, Any] = field(default_factory=dict)


class EventReporter(Protocol):
    """Consumer of lifecycle events."""

    def emit(self, event: EvolutionEvent) -> None: ...


class LoggingReporter:
    """Forwards every event to structlog."""

    _WARNING_KINDS = frozenset({EventKind.INVARIANT_VIOLATED, EventKind.TEST_FAILED})

    def emit(self, event: EvolutionEvent) -> None:
        log = logger.warning if event.kind in self._WARNING_KINDS else logger.info
        log(event.kind.value, test_id=event.test_id, generation=event.generation, **event.data)


class RecordingReporter:
    """Keeps every event in memory, in emission order."""

    def __init__(self) -> None:
        self.events: list[EvolutionEvent] = []

    def emit(self, event: EvolutionEvent) -> None:
        self.events.append(event)

    def of_kind(self, kind: EventKind) -> list[EvolutionEvent]:
        return [e for e in self.events if e.kind == kind]


class FanoutReporter:
    """Emits to several reporters; a failing reporter never aborts the caller."""

    def __init__(self, *reporters: EventReporter) -> None:
        self._reporters = list(reporters)

    def emit(self, event: EvolutionEvent) -> None:
        for reporter in self._reporters:
            try:
                reporter.emit(event)
            except Exception as exc:
                logger.warning("event_reporter_error", kind=event.kind.value, error=str(exc))
