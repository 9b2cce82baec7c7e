from concurrent.futures import Future
from typing import List, Tuple

from app.core.exceptions import PrimaryStoreError
from app.schemas.events import EventKind


class MemoryEventRepo:
    def __init__(self, fail_on: EventKind | None = None, message: str = "db down"):
        self.saved: List[Tuple[EventKind, list]] = []
        self.fail_on = fail_on
        self.message = message
        self.healthy = True

    async def insert_batch(self, kind, events):
        if kind == self.fail_on:
            raise PrimaryStoreError(self.message)
        self.saved.append((kind, list(events)))

    async def is_healthy(self):
        return self.healthy

    async def current_database(self):
        return "analytics"

    def kinds(self):
        return [kind for kind, _ in self.saved]


class RecordingSink:
    def __init__(self):
        self.calls = []

    def submit(self, kind, events):
        self.calls.append((kind, list(events)))


class ExplodingSink:
    def submit(self, kind, events):
        raise RuntimeError("S3 upload interrupted")


class InlineDispatcher:
    """Выполняет задачу сразу в вызывающем потоке."""

    def __init__(self):
        self.labels = []

    def submit(self, label, fn, *args):
        self.labels.append(label)
        future = Future()
        future.set_result(fn(*args))
        return future
