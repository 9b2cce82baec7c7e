from typing import List, Optional

from pydantic import ValidationError

from app.core.exceptions import EventValidationError
from app.schemas.events import SESSION_EVENT_TYPES, BaseEvent, SessionEvent


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def validate_event(event: BaseEvent) -> None:
    """Проверка обязательных полей по типу события; бросает EventValidationError."""
    missing: List[str] = []
    if _is_blank(event.session_id):
        missing.append("session_id")

    if isinstance(event, SessionEvent):
        if _is_blank(event.event_type):
            missing.append("event_type")
    elif _is_blank(event.page_url):
        missing.append("page_url")

    if missing:
        raise EventValidationError("Missing required fields: " + ", ".join(missing))

    if isinstance(event, SessionEvent) and event.event_type not in SESSION_EVENT_TYPES:
        raise EventValidationError(f"Invalid session event type: {event.event_type}")


def describe_invalid_event(exc: ValidationError) -> str:
    """Сообщение об ошибке разбора одного события (неверный тип поля, null вместо объекта)."""
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"])
        problems.append(f"{location}: {error['msg']}" if location else error["msg"])
    return "Invalid event: " + "; ".join(problems)
