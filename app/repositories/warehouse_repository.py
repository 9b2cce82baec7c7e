import logging
import time
from concurrent.futures import Future
from typing import Any, Callable, Optional, Sequence

from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.exceptions import DDLExecutionError
from app.core.tasks import BackgroundDispatcher, get_dispatcher
from app.core.warehouse import get_redshift_data_client, get_warehouse_engine
from app.schemas.events import BaseEvent, EventKind

logger = logging.getLogger(__name__)

TERMINAL_FAILURE_STATUSES = {"FAILED", "ABORTED"}
ALLOWED_DDL_KEYWORDS = frozenset({"CREATE", "ALTER", "DROP", "GRANT", "REVOKE"})


def is_ddl_statement(sql: str) -> bool:
    parts = sql.strip().split(None, 1)
    return bool(parts) and parts[0].upper() in ALLOWED_DDL_KEYWORDS


def _chunks(items: Sequence[Any], size: int):
    for start in range(0, len(items), size):
        yield items[start : start + size]


class WarehouseRepository:
    """Best-effort копия событий в Redshift.

    Каждая порция из batch_size строк пишется и коммитится в своей транзакции:
    сбой посередине оставляет уже закоммиченные порции и обрывает остаток.
    """

    def __init__(
        self,
        engine_provider: Callable[[], Engine] = get_warehouse_engine,
        data_client_provider: Callable[[], Any] = get_redshift_data_client,
        dispatcher_provider: Callable[[], BackgroundDispatcher] = get_dispatcher,
        batch_size: int | None = None,
        schema: str | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.engine_provider = engine_provider
        self.data_client_provider = data_client_provider
        self.dispatcher_provider = dispatcher_provider
        self.batch_size = batch_size or settings.redshift_batch_size
        self.schema = schema or settings.redshift_schema
        self.sleep = sleep

    def submit(self, kind: EventKind, events: Sequence[BaseEvent]) -> Optional[Future]:
        return self.insert_async(kind, events)

    def insert_async(self, kind: EventKind, events: Sequence[BaseEvent]) -> Optional[Future]:
        if not settings.redshift_async_enabled or not events:
            logger.debug("Redshift async insert disabled or no %s events", kind.label)
            return None
        rows = [event.to_row() for event in events]
        return self.dispatcher_provider().submit(
            f"redshift:{kind.table_name}", self._insert_logged, kind, rows
        )

    def _insert_logged(self, kind: EventKind, rows: list[dict]) -> int:
        try:
            return self.insert_rows(kind, rows)
        except Exception:
            logger.exception("Failed to replicate %s events to Redshift", kind.label)
            return 0

    def insert_rows(self, kind: EventKind, rows: Sequence[dict]) -> int:
        """Синхронная вставка; возвращает число закоммиченных строк."""
        if not rows:
            return 0
        columns = list(rows[0].keys())
        statement = text(
            f"INSERT INTO {self.schema}.{kind.table_name} ({', '.join(columns)}) "
            f"VALUES ({', '.join(':' + c for c in columns)})"
        )
        engine = self.engine_provider()
        committed = 0
        for chunk in _chunks(rows, self.batch_size):
            with engine.begin() as conn:
                conn.execute(statement, list(chunk))
            committed += len(chunk)
            logger.debug("Committed %d %s rows to Redshift", len(chunk), kind.label)
        logger.info("Inserted %d %s events into Redshift", committed, kind.label)
        return committed

    def is_healthy(self) -> bool:
        try:
            with self.engine_provider().connect() as conn:
                return conn.execute(text("SELECT 1")).scalar() == 1
        except SQLAlchemyError as exc:
            logger.error("Redshift health check failed: %s", exc)
            return False

    def current_database(self) -> str:
        try:
            with self.engine_provider().connect() as conn:
                return conn.execute(text("SELECT current_database()")).scalar() or "unknown"
        except SQLAlchemyError as exc:
            logger.error("Failed to get current Redshift database: %s", exc)
            return "error"

    def execute_ddl(self, sql: str) -> str:
        """DDL через Redshift Data API с ожиданием завершения. Только для начальной настройки."""
        client = self.data_client_provider()
        try:
            response = client.execute_statement(
                ClusterIdentifier=settings.redshift_cluster_id,
                Database=settings.redshift_database,
                DbUser=settings.redshift_user,
                Sql=sql,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("Failed to submit DDL: %s", sql)
            raise DDLExecutionError(f"Failed to execute DDL: {exc}") from exc

        statement_id = response["Id"]
        logger.info("DDL submitted, statement id %s", statement_id)
        self._wait_for_statement(client, statement_id)
        return statement_id

    def _wait_for_statement(self, client: Any, statement_id: str) -> None:
        attempts = settings.redshift_ddl_max_attempts
        interval = settings.redshift_ddl_poll_interval_seconds
        for _ in range(attempts):
            try:
                described = client.describe_statement(Id=statement_id)
            except (BotoCoreError, ClientError) as exc:
                raise DDLExecutionError(f"Failed to describe statement {statement_id}: {exc}") from exc

            status = described.get("Status")
            if status == "FINISHED":
                logger.info("Statement %s finished", statement_id)
                return
            if status in TERMINAL_FAILURE_STATUSES:
                reason = described.get("Error") or "no details"
                logger.error("Statement %s ended with %s: %s", statement_id, status, reason)
                raise DDLExecutionError(f"Query failed with status: {status} ({reason})")
            self.sleep(interval)

        raise DDLExecutionError(f"Query timed out after {attempts * interval:g} seconds")
