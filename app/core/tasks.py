import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional

from app.core.config import settings

logger = logging.getLogger(__name__)
_dispatcher: Optional["BackgroundDispatcher"] = None
_lock = threading.Lock()


class BackgroundDispatcher:
    """Ограниченный пул для fire-and-forget задач (реплика в хранилище, экспорт в S3).

    submit() никогда не блокирует вызывающего: при заполненной очереди задача
    отбрасывается с предупреждением в лог.
    """

    def __init__(self, max_workers: int, max_pending: int, name: str = "ingest-bg"):
        self.max_pending = max_pending
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=name)
        self._slots = threading.BoundedSemaphore(max_pending)
        self._closed = False

    def submit(self, label: str, fn: Callable[..., Any], *args: Any) -> Optional[Future]:
        if self._closed:
            logger.warning("Background pool is shut down, dropping task %s", label)
            return None
        if not self._slots.acquire(blocking=False):
            logger.warning(
                "Background pool saturated (%d pending), dropping task %s", self.max_pending, label
            )
            return None

        def _run() -> Any:
            try:
                return fn(*args)
            except Exception:
                logger.exception("Background task %s failed", label)
                return None

        try:
            future = self._executor.submit(_run)
        except RuntimeError:
            self._slots.release()
            logger.warning("Background pool rejected task %s", label)
            return None
        future.add_done_callback(lambda _: self._slots.release())
        return future

    def shutdown(self, wait: bool = True) -> None:
        self._closed = True
        self._executor.shutdown(wait=wait)


def get_dispatcher() -> BackgroundDispatcher:
    """Общий пул процесса (idempotent)."""
    global _dispatcher
    with _lock:
        if _dispatcher is None or _dispatcher._closed:
            _dispatcher = BackgroundDispatcher(
                max_workers=settings.background_max_workers,
                max_pending=settings.background_max_pending,
            )
        return _dispatcher


def shutdown_dispatcher(wait: bool = True) -> None:
    global _dispatcher
    with _lock:
        if _dispatcher is not None:
            _dispatcher.shutdown(wait=wait)
        _dispatcher = None
