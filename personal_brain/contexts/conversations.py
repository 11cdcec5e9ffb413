"""
Conversation context: in-memory conversations and conversation messaging.
"""

from uuid import uuid4

import structlog

from ..messaging.mediator import ContextMediator
from ..messaging.messages import ContextId, DataRequestType, ErrorCode, NotificationMessage, NotificationType
from ..messaging.schemas import ConversationHistoryParams, ConversationPayload
from ..models import Conversation, ConversationTurn
from ..utils import ContextDataNotFound
from .base import ContextMessageHandler, ContextNotifier, RequestRoute

logger = structlog.get_logger(__name__)


class ConversationContext:
    def __init__(self):
        self._conversations: dict[str, Conversation] = {}

    def start_conversation(self, interface: str = "cli", room_id: str | None = None) -> Conversation:
        conversation = Conversation(id=str(uuid4()), interface=interface, room_id=room_id)
        self._conversations[conversation.id] = conversation
        logger.info("conversation_started", conversation_id=conversation.id, interface=interface)
        return conversation

    def get_conversation(self, conversation_id: str) -> Conversation:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise ContextDataNotFound(ErrorCode.CONVERSATION_NOT_FOUND, f"Conversation not found: {conversation_id}")
        return conversation

    def add_turn(self, conversation_id: str, query: str, response: str, user_id: str | None = None) -> ConversationTurn:
        conversation = self.get_conversation(conversation_id)
        turn = ConversationTurn(query=query, response=response, user_id=user_id)
        conversation.turns.append(turn)
        return turn

    def get_history(self, conversation_id: str, limit: int | None = None) -> list[ConversationTurn]:
        """Turns oldest first; with ``limit``, only the last ``limit`` turns."""
        turns = self.get_conversation(conversation_id).turns
        return list(turns[-limit:]) if limit else list(turns)

    def clear_conversation(self, conversation_id: str) -> int:
        """Drop all turns. Returns how many were removed."""
        conversation = self.get_conversation(conversation_id)
        removed = len(conversation.turns)
        conversation.turns.clear()
        logger.info("conversation_cleared", conversation_id=conversation_id, removed=removed)
        return removed

    def list_conversations(self) -> list[Conversation]:
        return list(self._conversations.values())


class ConversationMessageHandler(ContextMessageHandler):
    context_id = ContextId.CONVERSATION

    def __init__(self, context: ConversationContext):
        self.context = context
        super().__init__()

    def request_routes(self) -> dict[DataRequestType, RequestRoute]:
        return {
            DataRequestType.CONVERSATION_HISTORY: RequestRoute(
                ConversationHistoryParams, self._history, ErrorCode.HISTORY_ERROR
            ),
        }

    def notification_routes(self):
        return {
            NotificationType.NOTE_CREATED: self._log_notification,
            NotificationType.PROFILE_UPDATED: self._log_notification,
            NotificationType.EXTERNAL_SOURCES_SEARCH: self._log_notification,
        }

    async def _history(self, params: ConversationHistoryParams) -> dict:
        turns = self.context.get_history(params.conversation_id, limit=params.limit)
        return {
            "conversation_id": params.conversation_id,
            "turns": [turn.model_dump(mode="json") for turn in turns],
            "count": len(turns),
        }

    async def _log_notification(self, notification: NotificationMessage) -> None:
        logger.debug("conversation_saw_notification", notification_type=notification.notification_type,
                     source=notification.source_context)


class ConversationNotifier(ContextNotifier):
    context_id = ContextId.CONVERSATION

    async def notify_conversation_started(self, conversation: Conversation) -> list[str]:
        return await self._broadcast(
            NotificationType.CONVERSATION_STARTED,
            ConversationPayload(conversation_id=conversation.id, interface=conversation.interface),
        )

    async def notify_turn_added(self, conversation: Conversation) -> list[str]:
        return await self._broadcast(
            NotificationType.CONVERSATION_TURN_ADDED,
            ConversationPayload(conversation_id=conversation.id, turn_count=len(conversation.turns)),
        )

    async def notify_conversation_cleared(self, conversation_id: str) -> list[str]:
        return await self._broadcast(
            NotificationType.CONVERSATION_CLEARED, ConversationPayload(conversation_id=conversation_id)
        )


class ConversationMessaging:
    def __init__(self, context: ConversationContext, mediator: ContextMediator):
        self.context = context
        self.mediator = mediator
        self.notifier = ConversationNotifier(mediator)
        self.handler = ConversationMessageHandler(context)
        mediator.register_handler(ContextId.CONVERSATION, self.handler)

    async def start_conversation(self, interface: str = "cli", room_id: str | None = None) -> Conversation:
        conversation = self.context.start_conversation(interface=interface, room_id=room_id)
        await self.notifier.notify_conversation_started(conversation)
        return conversation

    async def add_turn(self, conversation_id: str, query: str, response: str,
                       user_id: str | None = None) -> ConversationTurn:
        turn = self.context.add_turn(conversation_id, query, response, user_id=user_id)
        await self.notifier.notify_turn_added(self.context.get_conversation(conversation_id))
        return turn

    async def clear_conversation(self, conversation_id: str) -> int:
        removed = self.context.clear_conversation(conversation_id)
        if removed:
            await self.notifier.notify_conversation_cleared(conversation_id)
        return removed
