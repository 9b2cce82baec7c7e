import logging

from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage, Storage
from limits.strategies import FixedWindowRateLimiter

from app.core.config import settings

logger = logging.getLogger(__name__)


class RateLimiter:
    """Пропускной контроль по клиенту: max_requests за окно window_seconds на ключ.

    Окно для ключа создаётся атомарно при первом обращении и вычищается хранилищем
    после истечения, так что карта ключей не растёт бесконечно.
    """

    def __init__(
        self,
        max_requests: int | None = None,
        window_seconds: int | None = None,
        storage: Storage | None = None,
    ):
        self.max_requests = max_requests or settings.rate_limit_max_requests
        self.window_seconds = window_seconds or settings.rate_limit_window_seconds
        self.item = RateLimitItemPerSecond(self.max_requests, self.window_seconds)
        self.storage = storage or MemoryStorage()
        self.strategy = FixedWindowRateLimiter(self.storage)

    def is_allowed(self, key: str) -> bool:
        allowed = self.strategy.hit(self.item, "ingest", key)
        if not allowed:
            logger.info("Rate limit exceeded for %s", key)
        return allowed

    def reset(self) -> None:
        self.storage.reset()
