from fastapi import status


class IngestionError(Exception):
    """Ошибка уровня запроса; отдаётся клиенту как IngestResponse(success=False)."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BatchRejectedError(IngestionError):
    status_code = status.HTTP_400_BAD_REQUEST


class EventProcessingError(IngestionError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class EventValidationError(ValueError):
    """Ошибка одного события; не выходит за пределы координатора."""


class PrimaryStoreError(RuntimeError):
    pass


class WarehouseError(RuntimeError):
    pass


class DDLExecutionError(WarehouseError):
    pass


class RateLimitExceededError(IngestionError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
