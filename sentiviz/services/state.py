"""Conversation state store."""

from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Tuple

from ..models.events import Notification
from ..models.sentiment import DEFAULT_SCORE
from ..models.transcription import Transcript

MAX_NOTIFICATIONS = 5


@dataclass(frozen=True)
class ConversationSnapshot:
    """Read-only view of the conversation handed to the presentation layer."""
    is_recording: bool = False
    transcript: str = ""
    interim_text: str = ""
    last_fragment_length: int = 0
    sentiment_score: float = DEFAULT_SCORE
    keywords: Tuple[str, ...] = ()
    notifications: Tuple[Notification, ...] = ()
    generation: int = 0


class ConversationState:
    """In-memory store for one client's conversation.

    All reads and writes go through these methods so another store (for
    example a headless service keyed by session) can stand in for it.
    """

    def __init__(self, max_notifications: int = MAX_NOTIFICATIONS):
        self._recording = False
        self._transcript = Transcript()
        self._interim_text = ""
        self._last_fragment_length = 0
        self._score = DEFAULT_SCORE
        self._keywords: List[str] = []
        self._notifications: Deque[Notification] = deque(maxlen=max_notifications)
        self._generation = 0

    @property
    def is_recording(self) -> bool:
        return self._recording

    def set_recording(self, recording: bool) -> None:
        self._recording = recording
        if not recording:
            self._interim_text = ""

    @property
    def generation(self) -> int:
        return self._generation

    def begin_session(self) -> int:
        """Start a new recording generation and return its number."""
        self._generation += 1
        return self._generation

    @property
    def transcript(self) -> str:
        return self._transcript.text

    def append_final(self, text: str) -> str:
        """Append a final fragment, remember its length and drop interim text."""
        fragment = text.strip()
        self._transcript.append(fragment)
        self._last_fragment_length = len(fragment)
        self._interim_text = ""
        return self._transcript.text

    @property
    def last_fragment_length(self) -> int:
        return self._last_fragment_length

    @property
    def interim_text(self) -> str:
        return self._interim_text

    def set_interim_text(self, text: str) -> None:
        self._interim_text = text.strip()

    @property
    def sentiment_score(self) -> float:
        return self._score

    def set_sentiment_score(self, score: float) -> None:
        self._score = score

    @property
    def keywords(self) -> List[str]:
        return list(self._keywords)

    def extend_keywords(self, keywords: List[str]) -> None:
        self._keywords.extend(keywords)

    @property
    def notifications(self) -> List[Notification]:
        return list(self._notifications)

    def add_notification(self, notification: Notification) -> None:
        self._notifications.append(notification)

    def reset(self) -> None:
        """Full application reset: the only way the transcript is emptied."""
        self._transcript.clear()
        self._interim_text = ""
        self._last_fragment_length = 0
        self._score = DEFAULT_SCORE
        self._keywords.clear()
        self._notifications.clear()

    def snapshot(self) -> ConversationSnapshot:
        return ConversationSnapshot(
            is_recording=self._recording,
            transcript=self._transcript.text,
            interim_text=self._interim_text,
            last_fragment_length=self._last_fragment_length,
            sentiment_score=self._score,
            keywords=tuple(self._keywords),
            notifications=tuple(self._notifications),
            generation=self._generation,
        )
