import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from app.core.dependencies import get_warehouse_repository
from app.core.exceptions import DDLExecutionError
from app.models.warehouse_tables import all_table_ddl
from app.repositories.warehouse_repository import WarehouseRepository, is_ddl_statement
from app.schemas.common import DDLRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/warehouse", tags=["warehouse"])


def require_warehouse(
    warehouse: Optional[WarehouseRepository] = Depends(get_warehouse_repository),
) -> WarehouseRepository:
    if warehouse is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Redshift is disabled")
    return warehouse


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": "error", "error": message, "timestamp": _now()},
    )


@router.get("/health")
def warehouse_health(warehouse: WarehouseRepository = Depends(require_warehouse)) -> JSONResponse:
    healthy = warehouse.is_healthy()
    body = {
        "status": "healthy" if healthy else "unhealthy",
        "database": warehouse.current_database(),
        "service": "redshift",
        "timestamp": _now(),
    }
    return JSONResponse(status_code=200 if healthy else 503, content=body)


@router.post("/ddl")
def execute_ddl(
    payload: DDLRequest,
    warehouse: WarehouseRepository = Depends(require_warehouse),
) -> JSONResponse:
    sql = (payload.sql or "").strip()
    if not sql:
        return _error(400, "SQL statement is required")
    if not is_ddl_statement(sql):
        return _error(400, "Only DDL statements (CREATE, ALTER, DROP, GRANT, REVOKE) are allowed")

    try:
        statement_id = warehouse.execute_ddl(sql)
    except DDLExecutionError as exc:
        logger.error("DDL execution failed: %s", exc)
        return _error(500, str(exc))

    return JSONResponse(
        content={
            "status": "success",
            "message": "DDL statement executed successfully",
            "statement_id": statement_id,
            "timestamp": _now(),
        }
    )


@router.post("/init-tables")
def init_tables(warehouse: WarehouseRepository = Depends(require_warehouse)) -> JSONResponse:
    created = []
    try:
        for kind, ddl in all_table_ddl(warehouse.schema).items():
            warehouse.execute_ddl(ddl)
            created.append(kind.table_name)
    except DDLExecutionError as exc:
        logger.error("Failed to initialize Redshift tables: %s", exc)
        return JSONResponse(
            status_code=500,
            content={"status": "error", "error": str(exc), "tables_created": created, "timestamp": _now()},
        )

    return JSONResponse(
        content={
            "status": "success",
            "message": "Redshift tables initialized successfully",
            "tables_created": created,
            "timestamp": _now(),
        }
    )
