import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.clickhouse import close_clickhouse_client
from app.core.config import settings, setup_logging
from app.core.exceptions import IngestionError
from app.core.tasks import shutdown_dispatcher
from app.core.warehouse import dispose_warehouse
from app.routers import events as events_router
from app.routers import health as health_router
from app.routers import warehouse as warehouse_router
from app.schemas.common import IngestResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info(
        "Starting %s (redshift=%s, s3_export=%s)",
        settings.service_name,
        settings.redshift_enabled,
        settings.s3_export_active,
    )
    try:
        yield
    finally:
        await close_clickhouse_client()
        # дождаться фоновых выгрузок, чтобы не терять уже принятые пачки
        shutdown_dispatcher(wait=True)
        dispose_warehouse()


async def ingestion_error_handler(request: Request, exc: IngestionError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=IngestResponse.failure(exc.message).body())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("Rejected malformed request to %s: %s", request.url.path, exc.errors())
    return JSONResponse(status_code=400, content=IngestResponse.failure("Invalid request body").body())


def create_app() -> FastAPI:
    application = FastAPI(title="Analytics Ingestion API", lifespan=lifespan)
    application.add_exception_handler(IngestionError, ingestion_error_handler)
    application.add_exception_handler(RequestValidationError, request_validation_handler)
    application.include_router(health_router.router)
    application.include_router(events_router.router)
    application.include_router(warehouse_router.router)
    return application


app = create_app()
