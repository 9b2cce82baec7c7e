import logging
import sys
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Базовые настройки приложения; переопределяются через переменные окружения."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    service_name: str = Field("analytics-ingestion")
    log_level: str = Field("INFO")

    clickhouse_url: str = Field("http://localhost:8123")
    clickhouse_user: str = Field("default")
    clickhouse_password: str = Field("")
    clickhouse_database: str = Field("default")
    clickhouse_timeout_seconds: float = Field(10.0)

    rate_limit_max_requests: int = Field(100, gt=0)
    rate_limit_window_seconds: int = Field(60, gt=0)

    redshift_enabled: bool = Field(False)
    redshift_host: str = Field("localhost")
    redshift_port: int = Field(5439)
    redshift_database: str = Field("dev")
    redshift_user: str = Field("awsuser")
    redshift_password: str = Field("")
    redshift_schema: str = Field("public")
    redshift_cluster_id: str = Field("")
    redshift_async_enabled: bool = Field(True)
    redshift_batch_size: int = Field(1000, gt=0)
    redshift_connect_timeout_seconds: int = Field(30)
    redshift_ddl_poll_interval_seconds: float = Field(5.0)
    redshift_ddl_max_attempts: int = Field(60, gt=0)

    aws_region: str = Field("us-east-1")
    aws_access_key_id: Optional[str] = Field(None)
    aws_secret_access_key: Optional[str] = Field(None)

    s3_bucket_name: str = Field("")
    s3_export_prefix: str = Field("quicksight/analytics/")
    s3_export_enabled: bool = Field(True)

    background_max_workers: int = Field(4, gt=0)
    background_max_pending: int = Field(100, gt=0)

    @property
    def s3_export_active(self) -> bool:
        return self.s3_export_enabled and bool(self.s3_bucket_name)


settings = Settings()


def setup_logging() -> None:
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )
    # boto и urllib3 слишком болтливы на INFO
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
