from typing import Optional

from httpx import AsyncClient, BasicAuth

from app.core.config import settings

_client: Optional[AsyncClient] = None


def _build_client() -> AsyncClient:
    # без пароля ClickHouse пускает пользователя default
    auth = None
    if settings.clickhouse_password:
        auth = BasicAuth(settings.clickhouse_user, settings.clickhouse_password)
    return AsyncClient(
        base_url=settings.clickhouse_url,
        timeout=settings.clickhouse_timeout_seconds,
        auth=auth,
    )


def get_clickhouse_client() -> AsyncClient:
    """HTTP-клиент ClickHouse, общий для процесса; пересоздаётся после закрытия."""
    global _client
    if _client is None or _client.is_closed:
        _client = _build_client()
    return _client


async def close_clickhouse_client() -> None:
    global _client
    client, _client = _client, None
    if client is not None and not client.is_closed:
        await client.aclose()
