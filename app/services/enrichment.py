from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional, TypeVar

from user_agents import parse as parse_user_agent

from app.schemas.events import BaseEvent

UNKNOWN = "Unknown"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

E = TypeVar("E", bound=BaseEvent)


@dataclass(frozen=True)
class RequestContext:
    """Что известно о запросе помимо тела: заголовки (в нижнем регистре) и адрес сокета."""

    headers: Mapping[str, str] = field(default_factory=dict)
    remote_addr: Optional[str] = None

    @classmethod
    def build(cls, headers: Mapping[str, str], remote_addr: Optional[str]) -> "RequestContext":
        return cls(headers={k.lower(): v for k, v in headers.items()}, remote_addr=remote_addr)

    def header(self, name: str) -> Optional[str]:
        value = self.headers.get(name.lower())
        return value if value else None

    @property
    def client_ip(self) -> str:
        forwarded = self.header("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
        real_ip = self.header("x-real-ip")
        if real_ip:
            return real_ip.strip()
        return self.remote_addr or "unknown"


def _missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _family(name: Optional[str]) -> Optional[str]:
    if not name or name == "Other":
        return None
    return name


def classify_user_agent(ua_string: str) -> Dict[str, Optional[str]]:
    """Браузер, ОС и тип устройства по строке User-Agent."""
    ua = parse_user_agent(ua_string)
    if ua.is_tablet:
        device = "Tablet"
    elif ua.is_mobile:
        device = "Mobile"
    elif ua.is_bot:
        device = "Robot"
    elif ua.is_pc:
        device = "Computer"
    else:
        device = None
    return {
        "browser": _family(ua.browser.family),
        "os": _family(ua.os.family),
        "device_type": device,
    }


class EventEnricher:
    def __init__(self, clock: Callable[[], datetime] | None = None):
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def enrich(self, event: E, context: RequestContext) -> E:
        """Возвращает копию события с заполненными пробелами; заданные поля не трогает."""
        updates: Dict[str, Any] = {}

        if _missing(event.timestamp):
            updates["timestamp"] = self.clock().strftime(TIMESTAMP_FORMAT)

        user_agent = event.user_agent
        if _missing(user_agent):
            user_agent = context.header("user-agent")
            updates["user_agent"] = user_agent or ""

        if any(_missing(getattr(event, name)) for name in ("browser", "os", "device_type")):
            parsed = classify_user_agent(user_agent) if user_agent else {}
            for name in ("browser", "os", "device_type"):
                if _missing(getattr(event, name)):
                    updates[name] = parsed.get(name) or UNKNOWN

        if _missing(event.ip_address):
            updates["ip_address"] = context.client_ip

        # геолокация не реализована
        for name in ("country", "city"):
            if _missing(getattr(event, name)):
                updates[name] = UNKNOWN

        for name, model_field in type(event).model_fields.items():
            if name in updates or getattr(event, name) is not None:
                continue
            if name in event.numeric_fields:
                updates[name] = 0.0 if model_field.annotation == Optional[float] else 0
            else:
                updates[name] = ""

        if not updates:
            return event
        return event.model_copy(update=updates)
