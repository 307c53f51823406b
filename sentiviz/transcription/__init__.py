"""Live transcription module for SentiViz."""

from .messages import parse_stream_message
from .stream import TranscriptionStream, TranscriptListener, NORMAL_CLOSURE

__all__ = [
    "parse_stream_message",
    "TranscriptionStream",
    "TranscriptListener",
    "NORMAL_CLOSURE",
]
