from .context import ExternalSourceContext
from .formatter import ExternalSourceFormatter
from .messaging import ExternalSourceMessageHandler, ExternalSourceMessaging, ExternalSourceNotifier
from .tools import ExternalSourceTools

__all__ = [
    "ExternalSourceContext",
    "ExternalSourceFormatter",
    "ExternalSourceMessageHandler",
    "ExternalSourceMessaging",
    "ExternalSourceNotifier",
    "ExternalSourceTools",
]
