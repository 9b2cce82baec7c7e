import pytest
from botocore.exceptions import ClientError
from sqlalchemy import create_engine, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import StaticPool

from app.core.config import settings
from app.core.exceptions import DDLExecutionError
from app.repositories.warehouse_repository import WarehouseRepository, is_ddl_statement
from app.schemas.events import ClickEvent, EventKind
from tests.helpers import InlineDispatcher


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    columns = ", ".join(
        f"{name} TEXT NOT NULL" if name == "session_id" else f"{name} TEXT" for name in ClickEvent.columns
    )
    with engine.begin() as conn:
        conn.execute(text(f"CREATE TABLE click_events ({columns})"))
    yield engine
    engine.dispose()


class FakeDataClient:
    def __init__(self, statuses, error=None):
        self.statuses = list(statuses)
        self.error = error
        self.executed = []

    def execute_statement(self, **kwargs):
        self.executed.append(kwargs)
        return {"Id": "stmt-1"}

    def describe_statement(self, Id):
        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        return {"Id": Id, "Status": status, "Error": self.error}


def make_repository(engine=None, data_client=None, dispatcher=None, sleeps=None):
    return WarehouseRepository(
        engine_provider=lambda: engine,
        data_client_provider=lambda: data_client,
        dispatcher_provider=lambda: dispatcher,
        batch_size=2,
        schema="main",
        sleep=(sleeps.append if sleeps is not None else lambda _: None),
    )


def click_rows(count, broken_index=None):
    rows = []
    for n in range(count):
        session_id = None if n == broken_index else f"s-{n}"
        rows.append(ClickEvent(session_id=session_id, page_url="https://example.com/").to_row())
    return rows


def count_rows(engine) -> int:
    with engine.connect() as conn:
        return conn.execute(text("SELECT COUNT(*) FROM click_events")).scalar()


def test_insert_rows_commits_every_chunk(engine):
    inserted = make_repository(engine).insert_rows(EventKind.CLICK, click_rows(5))
    assert inserted == 5
    assert count_rows(engine) == 5


def test_failed_chunk_keeps_previous_chunks(engine):
    with pytest.raises(IntegrityError):
        make_repository(engine).insert_rows(EventKind.CLICK, click_rows(5, broken_index=3))
    # первая порция из двух строк уже закоммичена, остальные не записаны
    assert count_rows(engine) == 2


def test_insert_async_runs_in_dispatcher(engine, monkeypatch):
    monkeypatch.setattr(settings, "redshift_async_enabled", True)
    dispatcher = InlineDispatcher()
    events = [ClickEvent(session_id="s-1", page_url="https://example.com/")]

    future = make_repository(engine, dispatcher=dispatcher).insert_async(EventKind.CLICK, events)

    assert future.result() == 1
    assert dispatcher.labels == ["redshift:click_events"]
    assert count_rows(engine) == 1


def test_insert_async_failure_is_logged_not_raised(engine, monkeypatch, caplog):
    monkeypatch.setattr(settings, "redshift_async_enabled", True)
    events = [ClickEvent(page_url="https://example.com/")]

    future = make_repository(engine, dispatcher=InlineDispatcher()).submit(EventKind.CLICK, events)

    assert future.result() == 0
    assert "Failed to replicate click events to Redshift" in caplog.text


def test_insert_async_disabled_does_nothing(engine, monkeypatch):
    monkeypatch.setattr(settings, "redshift_async_enabled", False)
    dispatcher = InlineDispatcher()
    events = [ClickEvent(session_id="s-1", page_url="https://example.com/")]

    assert make_repository(engine, dispatcher=dispatcher).insert_async(EventKind.CLICK, events) is None
    assert dispatcher.labels == []


def test_health_checks_against_engine(engine):
    repository = make_repository(engine)
    assert repository.is_healthy() is True


def test_execute_ddl_polls_until_finished():
    client = FakeDataClient(["SUBMITTED", "STARTED", "FINISHED"])
    sleeps = []

    statement_id = make_repository(data_client=client, sleeps=sleeps).execute_ddl("CREATE TABLE t (id INT)")

    assert statement_id == "stmt-1"
    assert client.executed[0]["Sql"] == "CREATE TABLE t (id INT)"
    assert sleeps == [settings.redshift_ddl_poll_interval_seconds] * 2


def test_execute_ddl_reports_failed_statement():
    client = FakeDataClient(["FAILED"], error="syntax error at or near \"TABL\"")

    with pytest.raises(DDLExecutionError) as exc:
        make_repository(data_client=client).execute_ddl("CREATE TABL t")
    assert "Query failed with status: FAILED" in str(exc.value)


def test_execute_ddl_times_out(monkeypatch):
    monkeypatch.setattr(settings, "redshift_ddl_max_attempts", 3)
    monkeypatch.setattr(settings, "redshift_ddl_poll_interval_seconds", 5.0)
    sleeps = []

    with pytest.raises(DDLExecutionError) as exc:
        make_repository(data_client=FakeDataClient(["STARTED"]), sleeps=sleeps).execute_ddl("DROP TABLE t")

    assert str(exc.value) == "Query timed out after 15 seconds"
    assert len(sleeps) == 3


@pytest.mark.parametrize(
    "sql,allowed",
    [
        ("CREATE TABLE t (id INT)", True),
        ("  alter table t add column x int", True),
        ("DROP VIEW v", True),
        ("GRANT SELECT ON t TO bi", True),
        ("revoke all on t from bi", True),
        ("SELECT * FROM t", False),
        ("DELETE FROM t", False),
        ("CREATEX TABLE t", False),
        ("", False),
    ],
)
def test_is_ddl_statement(sql, allowed):
    assert is_ddl_statement(sql) is allowed


def test_execute_ddl_wraps_client_errors():
    class RejectingDataClient(FakeDataClient):
        def execute_statement(self, **kwargs):
            raise ClientError(
                {"Error": {"Code": "ValidationException", "Message": "Cluster not found"}},
                "ExecuteStatement",
            )

    with pytest.raises(DDLExecutionError) as exc:
        make_repository(data_client=RejectingDataClient(["FINISHED"])).execute_ddl("CREATE TABLE t (id INT)")
    assert "Cluster not found" in str(exc.value)
