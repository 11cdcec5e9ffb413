"""
Message models for cross-context communication.

Every message on the bus is a pydantic model carrying a unique id, a category,
the sending and receiving context ids and a timestamp. Use the ``create_*``
factories rather than building messages by hand.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator

from ..utils import utcnow

# Target id for broadcast notifications
BROADCAST = "*"


class ContextId(str, Enum):
    NOTES = "notes-context"
    PROFILE = "profile-context"
    CONVERSATION = "conversation-context"
    EXTERNAL_SOURCES = "external-sources-context"


class MessageCategory(str, Enum):
    REQUEST = "request"
    RESPONSE = "response"
    NOTIFICATION = "notification"
    ACKNOWLEDGMENT = "acknowledgment"


class DataRequestType(str, Enum):
    NOTES_SEARCH = "notes.search"
    NOTE_BY_ID = "notes.byId"
    PROFILE_DATA = "profile.data"
    CONVERSATION_HISTORY = "conversation.history"
    EXTERNAL_SOURCES_SEARCH = "externalSources.search"
    EXTERNAL_SOURCES_STATUS = "externalSources.status"


class NotificationType(str, Enum):
    NOTE_CREATED = "notes.created"
    NOTE_UPDATED = "notes.updated"
    NOTE_DELETED = "notes.deleted"
    PROFILE_UPDATED = "profile.updated"
    CONVERSATION_STARTED = "conversation.started"
    CONVERSATION_CLEARED = "conversation.cleared"
    CONVERSATION_TURN_ADDED = "conversation.turnAdded"
    EXTERNAL_SOURCES_STATUS = "externalSources.statusChanged"
    EXTERNAL_SOURCES_AVAILABILITY = "externalSources.availabilityChanged"
    EXTERNAL_SOURCES_SEARCH = "externalSources.searchCompleted"


class ResponseStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class AcknowledgmentStatus(str, Enum):
    RECEIVED = "received"
    PROCESSED = "processed"
    REJECTED = "rejected"


class ErrorCode:
    """Error codes carried by error responses."""

    CONTEXT_NOT_FOUND = "CONTEXT_NOT_FOUND"
    HANDLER_ERROR = "HANDLER_ERROR"
    REQUEST_TIMEOUT = "REQUEST_TIMEOUT"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    INVALID_MESSAGE_FORMAT = "INVALID_MESSAGE_FORMAT"
    UNSUPPORTED_DATA_TYPE = "UNSUPPORTED_DATA_TYPE"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    SEARCH_ERROR = "SEARCH_ERROR"
    STATUS_ERROR = "STATUS_ERROR"
    READ_ERROR = "READ_ERROR"
    PROFILE_ERROR = "PROFILE_ERROR"
    HISTORY_ERROR = "HISTORY_ERROR"
    NOTE_NOT_FOUND = "NOTE_NOT_FOUND"
    PROFILE_NOT_FOUND = "PROFILE_NOT_FOUND"
    CONVERSATION_NOT_FOUND = "CONVERSATION_NOT_FOUND"


def enum_value(value: Enum | str) -> str:
    """Plain string form of an enum member or string."""
    return value.value if isinstance(value, Enum) else value


# ============== Message models ==============

class ContextMessage(BaseModel):
    """Fields shared by every message on the bus."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    category: MessageCategory
    source_context: str
    target_context: str
    timestamp: datetime = Field(default_factory=utcnow)


class DataRequestMessage(ContextMessage):
    category: MessageCategory = MessageCategory.REQUEST
    data_type: str
    parameters: dict[str, Any] = Field(default_factory=dict)
    timeout: float | None = None


class ErrorInfo(BaseModel):
    code: str
    message: str
    details: dict[str, Any] | None = None


class DataResponseMessage(ContextMessage):
    """Response to a request: success with ``data`` or error with ``error``, never both."""

    category: MessageCategory = MessageCategory.RESPONSE
    request_id: str
    status: ResponseStatus
    data: Any = None
    error: ErrorInfo | None = None

    @model_validator(mode="after")
    def _check_shape(self) -> "DataResponseMessage":
        if self.status == ResponseStatus.SUCCESS and self.error is not None:
            raise ValueError("success response must not carry an error")
        if self.status == ResponseStatus.ERROR:
            if self.error is None:
                raise ValueError("error response requires error info")
            if self.data is not None:
                raise ValueError("error response must not carry data")
        return self

    @property
    def is_success(self) -> bool:
        return self.status == ResponseStatus.SUCCESS


class NotificationMessage(ContextMessage):
    category: MessageCategory = MessageCategory.NOTIFICATION
    notification_type: str
    payload: dict[str, Any] = Field(default_factory=dict)
    requires_ack: bool = False


class AcknowledgmentMessage(ContextMessage):
    category: MessageCategory = MessageCategory.ACKNOWLEDGMENT
    notification_id: str
    status: AcknowledgmentStatus
    message: str | None = None


# ============== Factories ==============

def create_data_request(
    source_context: ContextId | str,
    target_context: ContextId | str,
    data_type: DataRequestType | str,
    parameters: dict[str, Any] | None = None,
    timeout: float | None = None,
) -> DataRequestMessage:
    return DataRequestMessage(
        source_context=enum_value(source_context),
        target_context=enum_value(target_context),
        data_type=enum_value(data_type),
        parameters=parameters or {},
        timeout=timeout,
    )


def create_success_response(
    source_context: ContextId | str,
    target_context: ContextId | str,
    request_id: str,
    data: Any,
) -> DataResponseMessage:
    """Build a success response. ``source_context`` is the responder."""
    return DataResponseMessage(
        source_context=enum_value(source_context),
        target_context=enum_value(target_context),
        request_id=request_id,
        status=ResponseStatus.SUCCESS,
        data=data,
    )


def create_error_response(
    source_context: ContextId | str,
    target_context: ContextId | str,
    request_id: str,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> DataResponseMessage:
    return DataResponseMessage(
        source_context=enum_value(source_context),
        target_context=enum_value(target_context),
        request_id=request_id,
        status=ResponseStatus.ERROR,
        error=ErrorInfo(code=code, message=message, details=details),
    )


def create_notification(
    source_context: ContextId | str,
    target_context: ContextId | str,
    notification_type: NotificationType | str,
    payload: dict[str, Any] | None = None,
    requires_ack: bool = False,
) -> NotificationMessage:
    """Build a notification. Pass ``BROADCAST`` as target to reach every subscriber."""
    return NotificationMessage(
        source_context=enum_value(source_context),
        target_context=enum_value(target_context),
        notification_type=enum_value(notification_type),
        payload=payload or {},
        requires_ack=requires_ack,
    )


def create_acknowledgment(
    source_context: ContextId | str,
    target_context: ContextId | str,
    notification_id: str,
    status: AcknowledgmentStatus = AcknowledgmentStatus.RECEIVED,
    message: str | None = None,
) -> AcknowledgmentMessage:
    return AcknowledgmentMessage(
        source_context=enum_value(source_context),
        target_context=enum_value(target_context),
        notification_id=notification_id,
        status=status,
        message=message,
    )
