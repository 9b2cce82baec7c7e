import httpx
import pytest

from app.core import clickhouse
from app.core.config import settings


@pytest.fixture(autouse=True)
def fresh_client(monkeypatch):
    monkeypatch.setattr(clickhouse, "_client", None)


@pytest.mark.anyio
async def test_client_carries_basic_auth_when_password_set(monkeypatch):
    monkeypatch.setattr(settings, "clickhouse_user", "ingest")
    monkeypatch.setattr(settings, "clickhouse_password", "secret")

    client = clickhouse.get_clickhouse_client()

    assert isinstance(client.auth, httpx.BasicAuth)
    assert clickhouse.get_clickhouse_client() is client
    await clickhouse.close_clickhouse_client()
    assert client.is_closed


@pytest.mark.anyio
async def test_client_without_password_has_no_auth(monkeypatch):
    monkeypatch.setattr(settings, "clickhouse_password", "")

    client = clickhouse.get_clickhouse_client()

    assert client.auth is None
    await clickhouse.close_clickhouse_client()


@pytest.mark.anyio
async def test_closed_client_is_recreated():
    first = clickhouse.get_clickhouse_client()
    await clickhouse.close_clickhouse_client()

    second = clickhouse.get_clickhouse_client()

    assert second is not first
    assert not second.is_closed
    await clickhouse.close_clickhouse_client()
