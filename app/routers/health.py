from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.dependencies import get_event_repository, get_warehouse_repository
from app.repositories.event_repository import EventRepository
from app.repositories.warehouse_repository import WarehouseRepository

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(
    repository: EventRepository = Depends(get_event_repository),
    warehouse: Optional[WarehouseRepository] = Depends(get_warehouse_repository),
) -> JSONResponse:
    """Состояние ClickHouse и (если включён) Redshift; 503 если что-то лежит."""
    clickhouse_healthy = await repository.is_healthy()
    databases = {
        "clickhouse": {
            "healthy": clickhouse_healthy,
            "database": await repository.current_database(),
        }
    }

    warehouse_healthy = True
    if warehouse is not None:
        warehouse_healthy = await run_in_threadpool(warehouse.is_healthy)
        databases["redshift"] = {
            "enabled": True,
            "healthy": warehouse_healthy,
            "database": await run_in_threadpool(warehouse.current_database),
        }
    else:
        databases["redshift"] = {"enabled": False}

    healthy = clickhouse_healthy and warehouse_healthy
    body = {
        "status": "healthy" if healthy else "unhealthy",
        "healthy": healthy,
        "service": settings.service_name,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "databases": databases,
        "features": {
            "clickhouse": True,
            "redshift": warehouse is not None,
            "s3_export": settings.s3_export_active,
        },
    }
    return JSONResponse(status_code=200 if healthy else 503, content=body)
