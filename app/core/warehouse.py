from typing import Any, Optional

import boto3
from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine

from app.core.config import settings

_engine: Optional[Engine] = None
_data_client: Optional[Any] = None


def warehouse_url() -> URL:
    # Redshift говорит по протоколу PostgreSQL
    return URL.create(
        "postgresql+psycopg2",
        username=settings.redshift_user,
        password=settings.redshift_password or None,
        host=settings.redshift_host,
        port=settings.redshift_port,
        database=settings.redshift_database,
    )


def get_warehouse_engine() -> Engine:
    global _engine
    if _engine is None:
        _engine = create_engine(
            warehouse_url(),
            future=True,
            pool_pre_ping=True,
            connect_args={
                "sslmode": "require",
                "connect_timeout": settings.redshift_connect_timeout_seconds,
                "keepalives": 1,
            },
        )
    return _engine


def get_redshift_data_client() -> Any:
    global _data_client
    if _data_client is None:
        _data_client = boto3.client("redshift-data", region_name=settings.aws_region)
    return _data_client


def dispose_warehouse() -> None:
    global _engine, _data_client
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _data_client = None
