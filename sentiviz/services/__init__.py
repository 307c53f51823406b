"""Services layer for SentiViz client logic."""

from .state import ConversationState, ConversationSnapshot
from .publisher import ConversationPublisher, CONVERSATION_TOPIC
from .relay_client import SentimentRelayClient
from .conversation import ConversationController, user_message_for

__all__ = [
    "ConversationState",
    "ConversationSnapshot",
    "ConversationPublisher",
    "CONVERSATION_TOPIC",
    "SentimentRelayClient",
    "ConversationController",
    "user_message_for",
]
