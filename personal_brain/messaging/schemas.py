"""
Parameter and payload schemas for bus messages.

Each request data type has a pydantic model its ``parameters`` must satisfy.
Notification payloads have models too so every sender builds the same shape.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..utils import utcnow
from .messages import DataRequestMessage, DataRequestType

# Notification payloads carry at most this many result summaries
MAX_TOP_RESULTS = 3


class RequestParams(BaseModel):
    model_config = ConfigDict(extra="ignore")


# ============== Request parameters ==============

class NotesSearchParams(RequestParams):
    query: str = Field(min_length=1)
    limit: int = Field(default=10, ge=1, le=50)
    tags: list[str] | None = None


class NoteByIdParams(RequestParams):
    id: str = Field(min_length=1)


class ProfileDataParams(RequestParams):
    pass


class ConversationHistoryParams(RequestParams):
    conversation_id: str = Field(min_length=1)
    limit: int | None = Field(default=None, ge=1)


class ExternalSearchParams(RequestParams):
    query: str = Field(min_length=1)
    limit: int | None = Field(default=None, ge=1, le=20)
    semantic: bool = False


class ExternalStatusParams(RequestParams):
    pass


REQUEST_SCHEMAS: dict[DataRequestType, type[RequestParams]] = {
    DataRequestType.NOTES_SEARCH: NotesSearchParams,
    DataRequestType.NOTE_BY_ID: NoteByIdParams,
    DataRequestType.PROFILE_DATA: ProfileDataParams,
    DataRequestType.CONVERSATION_HISTORY: ConversationHistoryParams,
    DataRequestType.EXTERNAL_SOURCES_SEARCH: ExternalSearchParams,
    DataRequestType.EXTERNAL_SOURCES_STATUS: ExternalStatusParams,
}


@dataclass
class ValidationResult:
    success: bool
    data: RequestParams | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def error_message(self) -> str:
        return "; ".join(self.errors)


def validate_params(schema: type[RequestParams], parameters: dict[str, Any] | None) -> ValidationResult:
    """Validate a parameter dict against ``schema``."""
    try:
        return ValidationResult(success=True, data=schema.model_validate(parameters or {}))
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(part) for part in err['loc']) or 'parameters'}: {err['msg']}"
            for err in e.errors()
        ]
        return ValidationResult(success=False, errors=errors)


def validate_request_params(request: DataRequestMessage) -> ValidationResult:
    """Validate a request's parameters against the schema of its data type."""
    try:
        data_type = DataRequestType(request.data_type)
    except ValueError:
        return ValidationResult(success=False, errors=[f"Unsupported data type: {request.data_type}"])
    return validate_params(REQUEST_SCHEMAS[data_type], request.parameters)


# ============== Notification payloads ==============

class NotificationPayload(BaseModel):
    timestamp: datetime = Field(default_factory=utcnow)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class ResultSummary(BaseModel):
    title: str
    source: str
    source_type: str
    timestamp: datetime


class ExternalSearchPayload(NotificationPayload):
    query: str
    result_count: int
    sources: list[str]
    top_results: list[ResultSummary] = Field(default_factory=list, max_length=MAX_TOP_RESULTS)


class SourceAvailabilityPayload(NotificationPayload):
    availability: dict[str, bool]
    changed: list[str] = Field(default_factory=list)


class SourceStatusPayload(NotificationPayload):
    source_name: str
    enabled: bool
    enabled_sources: list[str]


class NotePayload(NotificationPayload):
    note_id: str
    title: str
    tags: list[str] = Field(default_factory=list)


class ProfilePayload(NotificationPayload):
    changed_fields: list[str]


class ConversationPayload(NotificationPayload):
    conversation_id: str
    interface: str | None = None
    turn_count: int = 0
