import pytest

from app.models.warehouse_tables import create_table_ddl
from app.schemas.events import ClickEvent, EventKind, PageViewEvent, ScrollEvent, SessionEvent

CONTEXT = ("timestamp", "user_agent", "ip_address", "device_type", "browser", "os", "country", "city")


@pytest.mark.parametrize(
    "model,expected",
    [
        (PageViewEvent, ("session_id", "user_id", "page_url", "page_title", "referrer", "load_time") + CONTEXT),
        (ClickEvent, ("session_id", "user_id", "element_id", "element_text", "page_url", "click_x", "click_y") + CONTEXT),
        (ScrollEvent, ("session_id", "user_id", "page_url", "scroll_depth", "scroll_percentage") + CONTEXT),
        (SessionEvent, ("session_id", "user_id", "event_type", "page_count") + CONTEXT),
    ],
)
def test_table_columns_per_kind(model, expected):
    assert model.columns == expected
    assert tuple(model().to_row()) == expected


def test_session_export_row_carries_duration_and_url():
    event = SessionEvent(session_id="s-1", event_type="session_end", duration_s=30, page_url="https://example.com/")

    row = event.to_export_row()

    assert row["session_duration"] == 30
    assert row["page_url"] == "https://example.com/"
    assert "session_duration" not in event.to_row()
    assert "referrer" not in row


def test_click_export_row_matches_table_row():
    event = ClickEvent(session_id="s-1", page_url="u", click_x=1)
    assert event.to_export_row() == event.to_row()


@pytest.mark.parametrize("kind", list(EventKind))
def test_warehouse_ddl_declares_exactly_the_inserted_columns(kind):
    model = {
        EventKind.PAGE_VIEW: PageViewEvent,
        EventKind.CLICK: ClickEvent,
        EventKind.SCROLL: ScrollEvent,
        EventKind.SESSION: SessionEvent,
    }[kind]
    ddl = create_table_ddl(kind, "public")

    declared = [
        line.strip().split()[0]
        for line in ddl.splitlines()[1:]
        if line.startswith("    ")
    ]

    assert declared == list(model.columns) + ["created_at"]
    assert ddl.startswith(f"CREATE TABLE IF NOT EXISTS public.{kind.table_name} (")


def test_session_ddl_keeps_required_columns():
    ddl = create_table_ddl(EventKind.SESSION, "analytics")
    assert "    event_type VARCHAR(50) NOT NULL," in ddl
    assert "    timestamp TIMESTAMP NOT NULL," in ddl
    assert "page_url" not in ddl
