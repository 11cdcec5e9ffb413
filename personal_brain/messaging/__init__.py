from .mediator import ContextMediator, MessageHandler
from .messages import (
    BROADCAST,
    AcknowledgmentMessage,
    AcknowledgmentStatus,
    ContextId,
    ContextMessage,
    DataRequestMessage,
    DataRequestType,
    DataResponseMessage,
    ErrorCode,
    ErrorInfo,
    MessageCategory,
    NotificationMessage,
    NotificationType,
    ResponseStatus,
    create_acknowledgment,
    create_data_request,
    create_error_response,
    create_notification,
    create_success_response,
)
from .schemas import REQUEST_SCHEMAS, ValidationResult, validate_params, validate_request_params

__all__ = [
    "BROADCAST",
    "REQUEST_SCHEMAS",
    "AcknowledgmentMessage",
    "AcknowledgmentStatus",
    "ContextId",
    "ContextMediator",
    "ContextMessage",
    "DataRequestMessage",
    "DataRequestType",
    "DataResponseMessage",
    "ErrorCode",
    "ErrorInfo",
    "MessageCategory",
    "MessageHandler",
    "NotificationMessage",
    "NotificationType",
    "ResponseStatus",
    "ValidationResult",
    "create_acknowledgment",
    "create_data_request",
    "create_error_response",
    "create_notification",
    "create_success_response",
    "validate_params",
    "validate_request_params",
]
