"""Data models for the SentiViz application."""

from .transcription import Utterance, Transcript
from .sentiment import SentimentResult, parse_sentiment_payload
from .session import StreamState, RecordingSession
from .events import AudioEvent, StreamEvent, StreamEventType, Notification

__all__ = [
    "Utterance",
    "Transcript",
    "SentimentResult",
    "parse_sentiment_payload",
    "StreamState",
    "RecordingSession",
    "AudioEvent",
    "StreamEvent",
    "StreamEventType",
    "Notification",
]
