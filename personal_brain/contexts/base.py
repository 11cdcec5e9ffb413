"""
Shared message handler and notifier for contexts.

A context's handler is a route table: each request data type maps to a
parameter schema, the context method that answers it, and the error code used
when that method fails. Notifications are dispatched on their type; types a
context has no route for are ignored.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import structlog

from ..messaging.mediator import ContextMediator
from ..messaging.messages import (
    BROADCAST,
    AcknowledgmentMessage,
    AcknowledgmentStatus,
    ContextId,
    ContextMessage,
    DataRequestMessage,
    DataRequestType,
    DataResponseMessage,
    ErrorCode,
    NotificationMessage,
    NotificationType,
    create_acknowledgment,
    create_error_response,
    create_notification,
    create_success_response,
)
from ..messaging.schemas import NotificationPayload, RequestParams, validate_params
from ..utils import ContextDataNotFound

logger = structlog.get_logger(__name__)

NotificationCallback = Callable[[NotificationMessage], Awaitable[None]]


@dataclass(frozen=True)
class RequestRoute:
    schema: type[RequestParams]
    delegate: Callable[[Any], Awaitable[Any]]
    error_code: str


class ContextMessageHandler:
    """Answers requests and reacts to notifications addressed to one context.

    Subclasses set ``context_id`` and override ``request_routes`` and
    ``notification_routes``. Instances are callable, so they can be registered
    with the mediator directly.
    """

    context_id: ContextId

    def __init__(self):
        self._routes: dict[DataRequestType, RequestRoute] = self.request_routes()
        self._notification_routes: dict[NotificationType, NotificationCallback] = self.notification_routes()

    def request_routes(self) -> dict[DataRequestType, RequestRoute]:
        return {}

    def notification_routes(self) -> dict[NotificationType, NotificationCallback]:
        return {}

    async def __call__(self, message: ContextMessage) -> DataResponseMessage | AcknowledgmentMessage | None:
        return await self.handle(message)

    async def handle(self, message: ContextMessage) -> DataResponseMessage | AcknowledgmentMessage | None:
        if isinstance(message, DataRequestMessage):
            return await self.handle_request(message)
        if isinstance(message, NotificationMessage):
            return await self.handle_notification(message)
        logger.warning("unsupported_message_category", context=self.context_id.value, category=message.category.value)
        return None

    def _error(self, request: DataRequestMessage, code: str, message: str) -> DataResponseMessage:
        return create_error_response(self.context_id, request.source_context, request.id, code, message)

    async def handle_request(self, request: DataRequestMessage) -> DataResponseMessage:
        try:
            route = self._routes.get(DataRequestType(request.data_type))
        except ValueError:
            route = None
        if route is None:
            logger.warning("unsupported_data_type", context=self.context_id.value, data_type=request.data_type)
            return self._error(request, ErrorCode.UNSUPPORTED_DATA_TYPE, f"Unsupported data type: {request.data_type}")

        validation = validate_params(route.schema, request.parameters)
        if not validation.success:
            logger.debug("request_validation_failed", context=self.context_id.value, errors=validation.errors)
            return self._error(request, ErrorCode.VALIDATION_ERROR, f"Invalid parameters: {validation.error_message}")

        try:
            data = await route.delegate(validation.data)
        except ContextDataNotFound as e:
            return self._error(request, e.code, e.message)
        except Exception as e:
            logger.error("request_delegate_failed", context=self.context_id.value, data_type=request.data_type, error=str(e))
            return self._error(request, route.error_code, str(e))

        return create_success_response(self.context_id, request.source_context, request.id, data)

    async def handle_notification(self, notification: NotificationMessage) -> AcknowledgmentMessage | None:
        try:
            callback = self._notification_routes.get(NotificationType(notification.notification_type))
        except ValueError:
            callback = None
        if callback is None:
            logger.debug("notification_ignored", context=self.context_id.value,
                         notification_type=notification.notification_type)
            return None

        await callback(notification)

        if notification.requires_ack:
            return create_acknowledgment(
                self.context_id, notification.source_context, notification.id, AcknowledgmentStatus.PROCESSED
            )
        return None


class ContextNotifier:
    """Wraps a context's outbound events as broadcast notifications."""

    context_id: ContextId

    def __init__(self, mediator: ContextMediator):
        self.mediator = mediator

    async def _broadcast(self, notification_type: NotificationType, payload: NotificationPayload) -> list[str]:
        notification = create_notification(self.context_id, BROADCAST, notification_type, payload.to_payload())
        recipients = await self.mediator.send_notification(notification)
        logger.debug("notification_sent", context=self.context_id.value,
                     notification_type=notification_type.value, recipients=len(recipients))
        return recipients
