from typing import Any, Optional

import boto3

from app.core.config import settings

_s3_client: Optional[Any] = None


def get_s3_client() -> Any:
    """S3-клиент; явные ключи из настроек, иначе стандартная цепочка boto3."""
    global _s3_client
    if _s3_client is None:
        kwargs = {"region_name": settings.aws_region}
        if settings.aws_access_key_id and settings.aws_secret_access_key:
            kwargs["aws_access_key_id"] = settings.aws_access_key_id
            kwargs["aws_secret_access_key"] = settings.aws_secret_access_key
        _s3_client = boto3.client("s3", **kwargs)
    return _s3_client
