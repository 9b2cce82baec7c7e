import json
import logging
from typing import Sequence

from httpx import AsyncClient, HTTPError, HTTPStatusError

from app.core.clickhouse import get_clickhouse_client
from app.core.config import settings
from app.core.exceptions import PrimaryStoreError
from app.schemas.events import BaseEvent, EventKind

logger = logging.getLogger(__name__)


class EventRepository:
    """Репозиторий записи событий в ClickHouse через HTTP JSONEachRow.

    Вся пачка уходит одним INSERT-запросом: ClickHouse применяет его целиком либо
    возвращает ошибку, частичной записи нет.
    """

    def __init__(self, client_provider=get_clickhouse_client):
        self.client_provider = client_provider

    async def insert_batch(self, kind: EventKind, events: Sequence[BaseEvent]) -> None:
        if not events:
            return

        columns = events[0].columns
        query = (
            f"INSERT INTO {settings.clickhouse_database}.{kind.table_name} "
            f"({', '.join(columns)}) FORMAT JSONEachRow"
        )
        body = "\n".join(json.dumps(event.to_row(), ensure_ascii=False) for event in events)

        try:
            response = await self._post(query, content=body.encode("utf-8"))
            response.raise_for_status()
        except HTTPStatusError as exc:
            detail = exc.response.text.strip()
            raise PrimaryStoreError(f"ClickHouse insert failed: {detail}") from exc
        except HTTPError as exc:
            raise PrimaryStoreError(f"ClickHouse unavailable: {exc}") from exc

        logger.info("Inserted %d %s events into ClickHouse", len(events), kind.label)

    async def is_healthy(self) -> bool:
        try:
            return await self._scalar("SELECT 1") == "1"
        except (HTTPError, PrimaryStoreError) as exc:
            logger.error("ClickHouse health check failed: %s", exc)
            return False

    async def current_database(self) -> str:
        try:
            return await self._scalar("SELECT currentDatabase()") or "unknown"
        except (HTTPError, PrimaryStoreError) as exc:
            logger.error("Failed to get current ClickHouse database: %s", exc)
            return "error"

    async def _scalar(self, query: str) -> str:
        response = await self._post(query)
        if response.is_error:
            raise PrimaryStoreError(f"ClickHouse query failed: {response.text.strip()}")
        return response.text.strip()

    async def _post(self, query: str, content: bytes | None = None):
        client: AsyncClient = self.client_provider()
        params = {
            "query": query,
            "database": settings.clickhouse_database,
            "date_time_input_format": "best_effort",
        }
        return await client.post(
            "/",
            params=params,
            content=content,
            headers={"Content-Type": "application/json"} if content is not None else None,
        )
