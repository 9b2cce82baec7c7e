from typing import Optional

from fastapi import Depends, Request

from app.core.config import settings
from app.core.exceptions import RateLimitExceededError
from app.repositories.event_repository import EventRepository
from app.repositories.export_repository import ExportRepository
from app.repositories.warehouse_repository import WarehouseRepository
from app.services.enrichment import RequestContext
from app.services.ingestion import IngestionService
from app.services.rate_limiter import RateLimiter

rate_limiter = RateLimiter()
event_repository = EventRepository()
warehouse_repository: Optional[WarehouseRepository] = (
    WarehouseRepository() if settings.redshift_enabled else None
)
export_repository: Optional[ExportRepository] = (
    ExportRepository() if settings.s3_export_active else None
)
ingestion_service = IngestionService(
    repository=event_repository,
    sinks=[sink for sink in (warehouse_repository, export_repository) if sink is not None],
)


def get_rate_limiter() -> RateLimiter:
    return rate_limiter


def get_event_repository() -> EventRepository:
    return event_repository


def get_warehouse_repository() -> Optional[WarehouseRepository]:
    return warehouse_repository


def get_ingestion_service() -> IngestionService:
    return ingestion_service


def get_request_context(request: Request) -> RequestContext:
    return RequestContext.build(request.headers, request.client.host if request.client else None)


def enforce_rate_limit(
    context: RequestContext = Depends(get_request_context),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> RequestContext:
    if not limiter.is_allowed(context.client_ip):
        raise RateLimitExceededError("Too many requests from this IP")
    return context
