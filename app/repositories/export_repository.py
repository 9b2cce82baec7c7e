import csv
import io
import logging
import uuid
from concurrent.futures import Future
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from app.core.config import settings
from app.core.storage import get_s3_client
from app.core.tasks import BackgroundDispatcher, get_dispatcher
from app.schemas.events import BaseEvent, EventKind

logger = logging.getLogger(__name__)


def rows_to_csv(rows: Sequence[Dict[str, Any]]) -> bytes:
    """CSV с заголовком из отсортированных ключей первой строки; None -> пустая строка."""
    headers = sorted(rows[0].keys())
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow(["" if row.get(h) is None else row.get(h) for h in headers])
    return buffer.getvalue().encode("utf-8")


class ExportRepository:
    """Выгрузка обогащённых пачек в S3 (CSV) для внешнего BI."""

    def __init__(
        self,
        client_provider: Callable[[], Any] = get_s3_client,
        dispatcher_provider: Callable[[], BackgroundDispatcher] = get_dispatcher,
        bucket: str | None = None,
        prefix: str | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.client_provider = client_provider
        self.dispatcher_provider = dispatcher_provider
        self.bucket = bucket or settings.s3_bucket_name
        self.prefix = prefix if prefix is not None else settings.s3_export_prefix
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def submit(self, kind: EventKind, events: Sequence[BaseEvent]) -> Optional[Future]:
        return self.export_async([event.to_export_row() for event in events], kind.dataset_name)

    def export_async(self, rows: List[Dict[str, Any]], dataset: str) -> Optional[Future]:
        if not rows:
            return None
        return self.dispatcher_provider().submit(f"s3:{dataset}", self._export_logged, rows, dataset)

    def _export_logged(self, rows: List[Dict[str, Any]], dataset: str) -> Optional[str]:
        try:
            return self.export(rows, dataset)
        except Exception:
            logger.exception("Failed to export %s to S3", dataset)
            return None

    def build_key(self, dataset: str) -> str:
        now = self.clock()
        suffix = f"{now.strftime('%Y-%m-%d_%H-%M-%S-%f')}_{uuid.uuid4().hex[:8]}"
        return f"{self.prefix}{dataset}/{now.strftime('%Y/%m/%d/%H')}/{dataset}_{suffix}.csv"

    def export(self, rows: Sequence[Dict[str, Any]], dataset: str) -> str:
        """Синхронная выгрузка; возвращает s3:// адрес объекта."""
        body = rows_to_csv(rows)
        key = self.build_key(dataset)
        self.client_provider().put_object(
            Bucket=self.bucket,
            Key=key,
            Body=body,
            ContentType="text/csv",
            Metadata={
                "data-type": dataset,
                "record-count": str(len(rows)),
                "byte-size": str(len(body)),
                "export-timestamp": self.clock().isoformat(),
            },
        )
        url = f"s3://{self.bucket}/{key}"
        logger.info("Exported %d %s records to %s", len(rows), dataset, url)
        return url
