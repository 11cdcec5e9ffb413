"""
Profile context: the user's profile and profile messaging.
"""

from typing import Any, Protocol

import structlog

from ..messaging.mediator import ContextMediator
from ..messaging.messages import ContextId, DataRequestType, ErrorCode, NotificationMessage, NotificationType
from ..messaging.schemas import ProfileDataParams, ProfilePayload
from ..models import Profile
from ..utils import ContextDataNotFound, utcnow
from .base import ContextMessageHandler, ContextNotifier, RequestRoute

logger = structlog.get_logger(__name__)

EDITABLE_FIELDS = frozenset(Profile.model_fields) - {"updated_at"}


class ProfileRepository(Protocol):
    async def get(self) -> Profile | None: ...

    async def save(self, profile: Profile) -> Profile: ...


class InMemoryProfileRepository:
    def __init__(self, profile: Profile | None = None):
        self._profile = profile

    async def get(self) -> Profile | None:
        return self._profile

    async def save(self, profile: Profile) -> Profile:
        self._profile = profile
        return profile


class ProfileContext:
    """Profile domain operations over a ProfileRepository."""

    def __init__(self, repository: ProfileRepository | None = None):
        self.repository = repository if repository is not None else InMemoryProfileRepository()

    async def get_profile(self) -> Profile:
        profile = await self.repository.get()
        if profile is None:
            raise ContextDataNotFound(ErrorCode.PROFILE_NOT_FOUND, "No profile has been set")
        return profile

    async def update_profile(self, **fields: Any) -> tuple[Profile, list[str]]:
        """Apply field updates. Returns the stored profile and the names of fields that changed.

        Nothing is written when no field actually changes.
        """
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown profile fields: {', '.join(sorted(unknown))}")

        current = await self.repository.get() or Profile()
        data = current.model_dump()
        changed = [name for name, value in fields.items() if data.get(name) != value]
        if not changed:
            return current, []

        updated = Profile.model_validate({**data, **{name: fields[name] for name in changed}, "updated_at": utcnow()})
        await self.repository.save(updated)
        logger.info("profile_updated", changed=changed)
        return updated, changed


class ProfileMessageHandler(ContextMessageHandler):
    context_id = ContextId.PROFILE

    def __init__(self, context: ProfileContext):
        self.context = context
        super().__init__()

    def request_routes(self) -> dict[DataRequestType, RequestRoute]:
        return {
            DataRequestType.PROFILE_DATA: RequestRoute(ProfileDataParams, self._profile_data, ErrorCode.PROFILE_ERROR),
        }

    def notification_routes(self):
        return {
            NotificationType.NOTE_CREATED: self._on_note_changed,
            NotificationType.NOTE_UPDATED: self._on_note_changed,
        }

    async def _profile_data(self, params: ProfileDataParams) -> dict:
        profile = await self.context.get_profile()
        return {"profile": profile.model_dump(mode="json")}

    async def _on_note_changed(self, notification: NotificationMessage) -> None:
        logger.debug("profile_saw_note_change", notification_type=notification.notification_type,
                     note_id=notification.payload.get("note_id"))


class ProfileNotifier(ContextNotifier):
    context_id = ContextId.PROFILE

    async def notify_profile_updated(self, changed_fields: list[str]) -> list[str]:
        if not changed_fields:
            return []
        return await self._broadcast(NotificationType.PROFILE_UPDATED, ProfilePayload(changed_fields=changed_fields))


class ProfileMessaging:
    def __init__(self, context: ProfileContext, mediator: ContextMediator):
        self.context = context
        self.mediator = mediator
        self.notifier = ProfileNotifier(mediator)
        self.handler = ProfileMessageHandler(context)
        mediator.register_handler(ContextId.PROFILE, self.handler)

    async def get_profile(self) -> Profile:
        return await self.context.get_profile()

    async def update_profile(self, **fields: Any) -> tuple[Profile, list[str]]:
        profile, changed = await self.context.update_profile(**fields)
        await self.notifier.notify_profile_updated(changed)
        return profile, changed
