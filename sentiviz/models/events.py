"""Event models passed between audio capture, the stream and the UI."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


@dataclass
class AudioEvent:
    """Audio chunk event with metadata."""
    chunk_id: str
    audio_data: bytes
    timestamp: float  # Unix timestamp when chunk was captured
    sequence_number: int
    sample_rate: int = 16000
    channels: int = 1
    chunk_duration_ms: Optional[int] = None

    def __post_init__(self):
        """Calculate chunk duration if not provided."""
        if self.chunk_duration_ms is None and self.audio_data:
            # 16-bit audio, 2 bytes per sample
            bytes_per_second = self.sample_rate * self.channels * 2
            duration_seconds = len(self.audio_data) / bytes_per_second
            self.chunk_duration_ms = int(duration_seconds * 1000)


class StreamEventType(Enum):
    """Connection events consumed by the transcription stream loop."""
    OPENED = "opened"
    MESSAGE = "message"
    ERROR = "error"
    CLOSED = "closed"
    STOP = "stop"


@dataclass
class StreamEvent:
    """One item on the transcription stream's event queue."""
    type: StreamEventType
    data: Any = None
    code: Optional[int] = None
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class Notification:
    """User-facing, non-blocking message (a toast)."""
    message: str
    level: str = "error"  # "info", "warning", "error"
    kind: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)
