"""
Context mediator: routes requests and notifications between contexts.

Contexts never reference each other directly. Each registers one handler under
its context id; requests are routed point-to-point by ``target_context`` and
notifications are fanned out to registered handlers.
"""

import asyncio
from collections.abc import Awaitable, Callable
from enum import Enum

import structlog

from ..utils import MessageValidationError
from .messages import (
    BROADCAST,
    AcknowledgmentMessage,
    ContextMessage,
    DataRequestMessage,
    DataResponseMessage,
    ErrorCode,
    NotificationMessage,
    create_error_response,
    enum_value,
)

logger = structlog.get_logger(__name__)

MessageHandler = Callable[[ContextMessage], Awaitable[DataResponseMessage | AcknowledgmentMessage | None]]


class ContextMediator:
    """Message bus between contexts.

    Handler failures never escape: requests resolve to error responses and
    failed notification deliveries are logged and skipped. The only exception
    raised is MessageValidationError for a message missing its id or source.
    """

    def __init__(self, request_timeout: float | None = 30.0):
        self.request_timeout = request_timeout
        self._handlers: dict[str, MessageHandler] = {}
        # context id -> notification types it accepts; absent means all
        self._subscriptions: dict[str, set[str]] = {}
        self._acknowledgments: dict[str, list[AcknowledgmentMessage]] = {}

    # ============== Registration ==============

    def register_handler(self, context_id: Enum | str, handler: MessageHandler) -> None:
        """Register the handler for a context. Re-registering replaces the previous one."""
        context_id = enum_value(context_id)
        if context_id in self._handlers:
            logger.debug("handler_replaced", context=context_id)
        self._handlers[context_id] = handler
        logger.debug("handler_registered", context=context_id)

    def unregister_handler(self, context_id: Enum | str) -> bool:
        """Remove a context's handler and its subscriptions. Returns False if none was registered."""
        context_id = enum_value(context_id)
        self._subscriptions.pop(context_id, None)
        if self._handlers.pop(context_id, None) is None:
            return False
        logger.debug("handler_unregistered", context=context_id)
        return True

    def subscribe(self, context_id: Enum | str, notification_type: Enum | str) -> None:
        """Restrict the broadcasts a context receives to its subscribed types."""
        context_id = enum_value(context_id)
        self._subscriptions.setdefault(context_id, set()).add(enum_value(notification_type))
        logger.debug("context_subscribed", context=context_id, notification_type=enum_value(notification_type))

    def unsubscribe(self, context_id: Enum | str, notification_type: Enum | str) -> bool:
        context_id = enum_value(context_id)
        types = self._subscriptions.get(context_id)
        if not types or enum_value(notification_type) not in types:
            return False
        types.discard(enum_value(notification_type))
        return True

    def get_registered_contexts(self) -> list[str]:
        return list(self._handlers)

    def get_subscribers(self, notification_type: Enum | str) -> list[str]:
        """Registered contexts that would receive a broadcast of this type."""
        notification_type = enum_value(notification_type)
        return [
            context_id for context_id in self._handlers
            if self._accepts(context_id, notification_type)
        ]

    def _accepts(self, context_id: str, notification_type: str) -> bool:
        types = self._subscriptions.get(context_id)
        return not types or notification_type in types

    @staticmethod
    def _validate_message(message: ContextMessage) -> None:
        if not message.id:
            raise MessageValidationError("Message is missing an id")
        if not message.source_context:
            raise MessageValidationError(f"Message {message.id} is missing a source context")

    # ============== Requests ==============

    async def send_request(self, request: DataRequestMessage) -> DataResponseMessage:
        """Deliver a request to its target's handler and return exactly one response."""
        self._validate_message(request)

        def error(code: str, message: str) -> DataResponseMessage:
            return create_error_response(
                request.target_context, request.source_context, request.id, code, message
            )

        if not isinstance(request, DataRequestMessage):
            return error(ErrorCode.INVALID_MESSAGE_FORMAT, f"Expected a data request, got {request.category.value}")

        handler = self._handlers.get(request.target_context)
        if handler is None:
            logger.warning("request_context_not_found", target=request.target_context, data_type=request.data_type)
            return error(ErrorCode.CONTEXT_NOT_FOUND, f"No handler registered for context: {request.target_context}")

        timeout = request.timeout or self.request_timeout
        try:
            if timeout:
                response = await asyncio.wait_for(handler(request), timeout=timeout)
            else:
                response = await handler(request)
        except asyncio.TimeoutError:
            logger.error("request_timed_out", target=request.target_context, data_type=request.data_type, timeout=timeout)
            return error(ErrorCode.REQUEST_TIMEOUT, f"Request to {request.target_context} timed out after {timeout}s")
        except Exception as e:
            logger.error("request_handler_failed", target=request.target_context, data_type=request.data_type, error=str(e))
            return error(ErrorCode.HANDLER_ERROR, str(e))

        if not isinstance(response, DataResponseMessage):
            logger.error("request_invalid_response", target=request.target_context, data_type=request.data_type)
            return error(ErrorCode.INVALID_RESPONSE, f"Handler for {request.target_context} did not return a response")

        return response

    # ============== Notifications ==============

    async def send_notification(self, notification: NotificationMessage) -> list[str]:
        """Deliver a notification and return the ids of the contexts that received it.

        A broadcast goes to every registered context except the sender whose
        subscriptions accept the type; a targeted notification goes to its
        target only. Delivery follows registration order.
        """
        self._validate_message(notification)

        if notification.target_context == BROADCAST:
            recipients = [
                context_id for context_id in self._handlers
                if context_id != notification.source_context
                and self._accepts(context_id, notification.notification_type)
            ]
        elif notification.target_context in self._handlers:
            recipients = [notification.target_context]
        else:
            recipients = []

        if not recipients:
            logger.debug("notification_without_recipients", notification_type=notification.notification_type)
            return []

        delivered = []
        for context_id in recipients:
            handler = self._handlers.get(context_id)
            if handler is None:
                continue
            try:
                if self.request_timeout:
                    result = await asyncio.wait_for(handler(notification), timeout=self.request_timeout)
                else:
                    result = await handler(notification)
            except asyncio.TimeoutError:
                logger.error("notification_delivery_timed_out", context=context_id,
                             notification_type=notification.notification_type)
                continue
            except Exception as e:
                logger.error("notification_delivery_failed", context=context_id,
                             notification_type=notification.notification_type, error=str(e))
                continue

            delivered.append(context_id)
            if isinstance(result, AcknowledgmentMessage):
                self.handle_acknowledgment(result)

        return delivered

    def handle_acknowledgment(self, acknowledgment: AcknowledgmentMessage) -> bool:
        """Record an acknowledgment for a notification."""
        if not acknowledgment.notification_id:
            return False
        self._acknowledgments.setdefault(acknowledgment.notification_id, []).append(acknowledgment)
        logger.debug("acknowledgment_received", notification_id=acknowledgment.notification_id,
                     context=acknowledgment.source_context, status=acknowledgment.status.value)
        return True

    def get_acknowledgments(self, notification_id: str) -> list[AcknowledgmentMessage]:
        return list(self._acknowledgments.get(notification_id, []))
