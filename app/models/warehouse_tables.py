from typing import Dict

from app.schemas.events import EVENT_MODELS, EventKind

# типы колонок Redshift; набор колонок каждой таблицы берётся из модели события
COLUMN_TYPES: Dict[str, str] = {
    "session_id": "VARCHAR(255)",
    "user_id": "VARCHAR(255)",
    "page_url": "VARCHAR(2048)",
    "page_title": "VARCHAR(1024)",
    "referrer": "VARCHAR(2048)",
    "load_time": "INTEGER",
    "element_id": "VARCHAR(255)",
    "element_text": "VARCHAR(1024)",
    "click_x": "INTEGER",
    "click_y": "INTEGER",
    "scroll_depth": "INTEGER",
    "scroll_percentage": "DECIMAL(5,2)",
    "event_type": "VARCHAR(50)",
    "page_count": "INTEGER",
    "timestamp": "TIMESTAMP",
    "user_agent": "VARCHAR(1024)",
    "ip_address": "VARCHAR(45)",
    "device_type": "VARCHAR(50)",
    "browser": "VARCHAR(100)",
    "os": "VARCHAR(100)",
    "country": "VARCHAR(100)",
    "city": "VARCHAR(100)",
}

NOT_NULL_COLUMNS = frozenset({"session_id", "page_url", "event_type", "timestamp"})


def create_table_ddl(kind: EventKind, schema: str) -> str:
    lines = []
    for column in EVENT_MODELS[kind].columns:
        suffix = " NOT NULL" if column in NOT_NULL_COLUMNS else ""
        lines.append(f"    {column} {COLUMN_TYPES[column]}{suffix},")
    lines.append("    created_at TIMESTAMP DEFAULT GETDATE()")
    body = "\n".join(lines)
    return (
        f"CREATE TABLE IF NOT EXISTS {schema}.{kind.table_name} (\n"
        f"{body}\n"
        f")\n"
        f"DISTSTYLE KEY\n"
        f"DISTKEY (session_id)\n"
        f"SORTKEY (timestamp, session_id)"
    )


def all_table_ddl(schema: str) -> Dict[EventKind, str]:
    return {kind: create_table_ddl(kind, schema) for kind in EventKind}
