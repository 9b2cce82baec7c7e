from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.core.dependencies import enforce_rate_limit, get_event_repository, get_ingestion_service
from app.repositories.event_repository import EventRepository
from app.schemas.common import IngestResponse
from app.schemas.events import EventsRequest
from app.services.enrichment import RequestContext
from app.services.ingestion import IngestionService

router = APIRouter(prefix="/api/v1/analytics", tags=["analytics"])


@router.post("/events", response_model=IngestResponse, response_model_exclude_none=True)
async def ingest_events(
    batch: EventsRequest,
    context: RequestContext = Depends(enforce_rate_limit),
    service: IngestionService = Depends(get_ingestion_service),
) -> JSONResponse:
    result = await service.ingest(batch, context)
    return JSONResponse(status_code=200 if result.success else 400, content=result.body())


@router.get("/database-info")
async def database_info(repository: EventRepository = Depends(get_event_repository)) -> dict:
    return {
        "success": True,
        "data": {
            "current_database": await repository.current_database(),
            "is_healthy": await repository.is_healthy(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    }
