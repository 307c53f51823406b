"""Recording session models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class StreamState(Enum):
    """Lifecycle states of the transcription stream."""
    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    CLOSING = "closing"


@dataclass
class RecordingSession:
    """Resources owned by one active recording.

    The audio source and the connection are opened together and released
    together; `active` is True only while both are held.
    """
    generation: int
    audio_source: Any = None
    connection: Any = None
    started_at: datetime = field(default_factory=datetime.now)
    local_close: bool = False
    chunks_sent: int = 0

    @property
    def active(self) -> bool:
        return self.audio_source is not None and self.connection is not None

    def release(self) -> None:
        """Drop the resource handles. Closing them is the caller's job."""
        self.audio_source = None
        self.connection = None
