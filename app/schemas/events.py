from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Type

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class EventKind(str, Enum):
    PAGE_VIEW = "page_view"
    CLICK = "click"
    SCROLL = "scroll"
    SESSION = "session"

    @property
    def table_name(self) -> str:
        return f"{self.value}_events"

    @property
    def dataset_name(self) -> str:
        return self.table_name

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")


class BaseEvent(BaseModel):
    """Общая часть всех событий. Экземпляры неизменяемы: обогащение делает копию."""

    # SDK иногда шлёт user_id/session_id числом
    model_config = ConfigDict(
        frozen=True, extra="ignore", populate_by_name=True, coerce_numbers_to_str=True
    )

    kind: ClassVar[EventKind]
    # колонки таблиц ClickHouse и Redshift, в порядке INSERT
    columns: ClassVar[Tuple[str, ...]]
    # колонки CSV-выгрузки; по умолчанию совпадают со столбцами таблиц
    export_columns: ClassVar[Tuple[str, ...]] = ()
    numeric_fields: ClassVar[Tuple[str, ...]] = ()

    session_id: Optional[str] = None
    user_id: Optional[str] = None
    page_url: Optional[str] = None
    timestamp: Optional[str] = None
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None
    browser: Optional[str] = None
    os: Optional[str] = None
    device_type: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    referrer: Optional[str] = None

    def to_row(self) -> Dict[str, Any]:
        """Строка для вставки в таблицу: колонка -> значение."""
        return {column: getattr(self, column) for column in self.columns}

    def to_export_row(self) -> Dict[str, Any]:
        return {column: getattr(self, column) for column in (self.export_columns or self.columns)}


_CONTEXT_COLUMNS = (
    "timestamp",
    "user_agent",
    "ip_address",
    "device_type",
    "browser",
    "os",
    "country",
    "city",
)


class PageViewEvent(BaseEvent):
    kind = EventKind.PAGE_VIEW
    columns = (
        "session_id",
        "user_id",
        "page_url",
        "page_title",
        "referrer",
        "load_time",
    ) + _CONTEXT_COLUMNS
    numeric_fields = ("load_time",)

    page_title: Optional[str] = Field(None, validation_alias=AliasChoices("page_title", "title"))
    load_time: Optional[int] = Field(
        None, validation_alias=AliasChoices("load_time", "load_time_ms", "page_load_time")
    )


class ClickEvent(BaseEvent):
    kind = EventKind.CLICK
    columns = (
        "session_id",
        "user_id",
        "element_id",
        "element_text",
        "page_url",
        "click_x",
        "click_y",
    ) + _CONTEXT_COLUMNS
    numeric_fields = ("click_x", "click_y")

    element_id: Optional[str] = None
    element_text: Optional[str] = None
    click_x: Optional[int] = Field(None, validation_alias=AliasChoices("click_x", "x"))
    click_y: Optional[int] = Field(None, validation_alias=AliasChoices("click_y", "y"))


class ScrollEvent(BaseEvent):
    kind = EventKind.SCROLL
    columns = (
        "session_id",
        "user_id",
        "page_url",
        "scroll_depth",
        "scroll_percentage",
    ) + _CONTEXT_COLUMNS
    numeric_fields = ("scroll_depth", "scroll_percentage")

    scroll_depth: Optional[int] = Field(None, validation_alias=AliasChoices("scroll_depth", "depth_px"))
    scroll_percentage: Optional[float] = Field(
        None, validation_alias=AliasChoices("scroll_percentage", "depth_pct")
    )


SESSION_EVENT_TYPES = frozenset({"session_start", "session_end", "session_update"})


class SessionEvent(BaseEvent):
    kind = EventKind.SESSION
    columns = ("session_id", "user_id", "event_type", "page_count") + _CONTEXT_COLUMNS
    # в таблицах длительности сессии нет, в выгрузку для BI она попадает
    export_columns = (
        "session_id",
        "user_id",
        "page_url",
        "event_type",
        "session_duration",
        "page_count",
    ) + _CONTEXT_COLUMNS
    numeric_fields = ("session_duration", "page_count")

    event_type: Optional[str] = None
    session_duration: Optional[int] = Field(
        None, validation_alias=AliasChoices("session_duration", "duration_s", "duration")
    )
    page_count: Optional[int] = None


EVENT_MODELS: Dict[EventKind, Type[BaseEvent]] = {
    EventKind.PAGE_VIEW: PageViewEvent,
    EventKind.CLICK: ClickEvent,
    EventKind.SCROLL: ScrollEvent,
    EventKind.SESSION: SessionEvent,
}

MAX_EVENTS_PER_REQUEST = 1000


class EventsRequest(BaseModel):
    """Пачка событий от клиента, сгруппированная по типам.

    Элементы массивов остаются сырыми: каждое событие разбирается отдельно,
    чтобы одно кривое событие не роняло всю пачку.
    """

    model_config = ConfigDict(extra="ignore")

    page_views: Optional[List[Any]] = None
    clicks: Optional[List[Any]] = None
    scrolls: Optional[List[Any]] = None
    sessions: Optional[List[Any]] = None

    def batches(self) -> List[Tuple[EventKind, List[Any]]]:
        # порядок обработки фиксирован
        return [
            (EventKind.PAGE_VIEW, list(self.page_views or [])),
            (EventKind.CLICK, list(self.clicks or [])),
            (EventKind.SCROLL, list(self.scrolls or [])),
            (EventKind.SESSION, list(self.sessions or [])),
        ]

    @property
    def total_event_count(self) -> int:
        return sum(len(events) for _, events in self.batches())

    def is_empty(self) -> bool:
        return self.total_event_count == 0
