import logging
from typing import Any, List, Protocol, Sequence

from pydantic import ValidationError

from app.core.exceptions import (
    BatchRejectedError,
    EventProcessingError,
    EventValidationError,
    PrimaryStoreError,
)
from app.repositories.event_repository import EventRepository
from app.schemas.common import EventError, IngestResponse
from app.schemas.events import (
    EVENT_MODELS,
    MAX_EVENTS_PER_REQUEST,
    BaseEvent,
    EventKind,
    EventsRequest,
)
from app.services.enrichment import EventEnricher, RequestContext
from app.services.validation import describe_invalid_event, validate_event

logger = logging.getLogger(__name__)


class SecondarySink(Protocol):
    """Вторичный приёмник: принимает пачку и сразу возвращает управление."""

    def submit(self, kind: EventKind, events: Sequence[BaseEvent]): ...


class IngestionService:
    """Приём пачки: валидация и обогащение по событию, синхронная запись в ClickHouse,
    затем fire-and-forget во вторичные приёмники."""

    def __init__(
        self,
        repository: EventRepository | None = None,
        enricher: EventEnricher | None = None,
        sinks: Sequence[SecondarySink] = (),
    ):
        self.repository = repository or EventRepository()
        self.enricher = enricher or EventEnricher()
        self.sinks = tuple(sinks)

    async def ingest(self, request: EventsRequest, context: RequestContext) -> IngestResponse:
        if request.is_empty():
            raise BatchRejectedError("No events provided")
        if request.total_event_count > MAX_EVENTS_PER_REQUEST:
            raise BatchRejectedError(
                f"Too many events in single request (max {MAX_EVENTS_PER_REQUEST})"
            )

        errors: List[EventError] = []
        processed = 0

        for kind, items in request.batches():
            enriched = self._prepare(kind, items, context, errors)
            if not enriched:
                continue
            try:
                await self.repository.insert_batch(kind, enriched)
            except PrimaryStoreError as exc:
                # уже записанные типы остаются в ClickHouse, отката между типами нет
                logger.error("Primary store write failed for %s events: %s", kind.label, exc)
                raise EventProcessingError(f"Failed to process events: {exc}") from exc
            processed += len(enriched)
            logger.info("Processed %d %s events", len(enriched), kind.label)
            self._dispatch(kind, enriched)

        if processed == 0:
            return IngestResponse.failure("No valid events to process", errors)
        return IngestResponse(success=True, processed=processed, errors=errors or None)

    def _prepare(
        self,
        kind: EventKind,
        items: Sequence[Any],
        context: RequestContext,
        errors: List[EventError],
    ) -> List[BaseEvent]:
        model = EVENT_MODELS[kind]
        enriched: List[BaseEvent] = []
        for index, item in enumerate(items):
            try:
                event = model.model_validate(item)
                validate_event(event)
            except ValidationError as exc:
                errors.append(EventError(index=index, kind=kind, error=describe_invalid_event(exc)))
                continue
            except EventValidationError as exc:
                errors.append(EventError(index=index, kind=kind, error=str(exc)))
                continue
            enriched.append(self.enricher.enrich(event, context))
        return enriched

    def _dispatch(self, kind: EventKind, events: Sequence[BaseEvent]) -> None:
        for sink in self.sinks:
            try:
                sink.submit(kind, events)
            except Exception:
                logger.exception("Failed to dispatch %s events to %s", kind.label, type(sink).__name__)

