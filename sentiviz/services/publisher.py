"""Conversation publisher module for pub/sub event publishing."""

import logging
from pubsub import pub

from .state import ConversationSnapshot

logger = logging.getLogger(__name__)

CONVERSATION_TOPIC = "conversation.updated"


class ConversationPublisher:
    """Publishes conversation snapshots using pubsub.pub for the UI to redraw."""

    def __init__(self, topic: str = CONVERSATION_TOPIC):
        """Initialize conversation publisher.

        Args:
            topic: Pub/sub topic name for conversation updates
        """
        self.topic = topic
        logger.info(f"ConversationPublisher initialized with topic: {topic}")

    def publish(self, change: str, snapshot: ConversationSnapshot) -> None:
        """Publish a state change to the pub/sub topic.

        Args:
            change: What changed ("transcript", "sentiment", "recording",
                    "notification" or "reset")
            snapshot: Conversation state after the change
        """
        pub.sendMessage(self.topic, change=change, snapshot=snapshot)
        logger.debug(f"Published conversation update: {change}")
