from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from app.schemas.events import EventKind


class EventError(BaseModel):
    index: int
    kind: EventKind
    error: str


class IngestResponse(BaseModel):
    success: bool
    processed: Optional[int] = None
    errors: Optional[List[EventError]] = None
    error: Optional[str] = None

    @classmethod
    def failure(cls, error: str, errors: Optional[List[EventError]] = None) -> "IngestResponse":
        return cls(success=False, error=error, errors=errors or None)

    def body(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class DDLRequest(BaseModel):
    sql: Optional[str] = None
