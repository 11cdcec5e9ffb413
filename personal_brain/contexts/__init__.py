from .conversations import ConversationContext, ConversationMessaging
from .external_sources import ExternalSourceContext, ExternalSourceMessaging, ExternalSourceTools
from .notes import InMemoryNoteRepository, NoteContext, NoteMessaging, NoteRepository
from .profiles import InMemoryProfileRepository, ProfileContext, ProfileMessaging, ProfileRepository

__all__ = [
    "ConversationContext",
    "ConversationMessaging",
    "ExternalSourceContext",
    "ExternalSourceMessaging",
    "ExternalSourceTools",
    "InMemoryNoteRepository",
    "InMemoryProfileRepository",
    "NoteContext",
    "NoteMessaging",
    "NoteRepository",
    "ProfileContext",
    "ProfileMessaging",
    "ProfileRepository",
]
