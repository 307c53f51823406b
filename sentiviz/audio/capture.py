"""Microphone capture that delivers fixed-interval audio chunks."""

import time
import logging
from threading import Thread, Event
from typing import Optional, Callable

import pyaudio

from ..errors import AudioDeviceError, DeviceNotFound, PermissionDenied
from ..models.events import AudioEvent
from .base import AudioSource

logger = logging.getLogger(__name__)

# PortAudio error codes
PA_INVALID_DEVICE = -9996
PA_DEVICE_UNAVAILABLE = -9985


class MicrophoneSource(AudioSource):
    """PyAudio microphone capture in a background thread."""

    def __init__(
        self,
        sample_rate: int = 16000,
        chunk_interval_ms: int = 250,
        channels: int = 1,
        device_index: Optional[int] = None,
        format: int = pyaudio.paInt16,
    ):
        """Initialize microphone capture.

        Args:
            sample_rate: Audio sample rate in Hz
            chunk_interval_ms: Audio delivered per chunk, in milliseconds
            channels: Number of audio channels (1 for mono)
            device_index: PyAudio input device, None for the default device
            format: Audio format (16-bit signed int)
        """
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_interval_ms = chunk_interval_ms
        self.chunk_size = max(1, int(sample_rate * chunk_interval_ms / 1000))
        self.device_index = device_index
        self.format = format

        self.callback: Optional[Callable[[AudioEvent], None]] = None
        self.recording_thread: Optional[Thread] = None
        self.stop_event = Event()
        self.total_chunks = 0

        self.pyaudio_instance: Optional[pyaudio.PyAudio] = None
        self.stream = None

    @property
    def is_open(self) -> bool:
        return self.stream is not None

    def open(self, callback: Callable[[AudioEvent], None]) -> None:
        if self.is_open:
            logger.warning("Microphone already open")
            return

        self.callback = callback
        self.stop_event.clear()
        self.total_chunks = 0

        self.pyaudio_instance = pyaudio.PyAudio()
        try:
            self.stream = self.pyaudio_instance.open(
                format=self.format,
                channels=self.channels,
                rate=self.sample_rate,
                input=True,
                input_device_index=self.device_index,
                frames_per_buffer=self.chunk_size,
                stream_callback=None
            )
        except OSError as e:
            self._terminate()
            raise _translate_device_error(e)

        logger.info(f"Audio stream opened: {self.sample_rate}Hz, "
                    f"{self.chunk_size} samples/chunk ({self.chunk_interval_ms}ms)")

        self.recording_thread = Thread(target=self._record_continuously, daemon=True)
        self.recording_thread.name = "AudioCaptureThread"
        self.recording_thread.start()

    def close(self) -> None:
        if not self.is_open and self.recording_thread is None:
            return

        logger.info("Stopping audio capture")
        self.stop_event.set()

        if self.recording_thread and self.recording_thread.is_alive():
            self.recording_thread.join(timeout=2.0)
            if self.recording_thread.is_alive():
                logger.warning("Recording thread did not stop cleanly")
        self.recording_thread = None
        self._release_stream()
        logger.info(f"Audio capture stopped. Total chunks: {self.total_chunks}")

    def _record_continuously(self) -> None:
        """Internal method: continuous recording loop in background thread."""
        try:
            while not self.stop_event.is_set():
                audio_chunk = self.stream.read(self.chunk_size, exception_on_overflow=False)
                if self.stop_event.is_set():
                    break
                self.total_chunks += 1
                self.callback(AudioEvent(
                    chunk_id=f"chunk_{self.total_chunks}",
                    audio_data=audio_chunk,
                    timestamp=time.time(),
                    sequence_number=self.total_chunks,
                    sample_rate=self.sample_rate,
                    channels=self.channels,
                ))
        except OSError as e:
            logger.error(f"Audio capture failed: {e}")

    def _release_stream(self) -> None:
        if self.stream is not None:
            try:
                self.stream.stop_stream()
                self.stream.close()
            except OSError as e:
                logger.warning(f"Error closing audio stream: {e}")
            self.stream = None
        self._terminate()

    def _terminate(self) -> None:
        if self.pyaudio_instance:
            self.pyaudio_instance.terminate()
            self.pyaudio_instance = None

    def __del__(self):
        """Ensure resources are cleaned up on deletion."""
        if self.stream is not None:
            self.close()


def _translate_device_error(error: OSError) -> AudioDeviceError:
    """Map a PortAudio error to the user-facing microphone error."""
    code = error.args[1] if len(error.args) > 1 and isinstance(error.args[1], int) else error.errno
    message = str(error)
    lowered = message.lower()

    if code == 13 or "permission" in lowered or "denied" in lowered:
        return PermissionDenied(f"Microphone access denied: {message}")
    if code in (PA_INVALID_DEVICE, PA_DEVICE_UNAVAILABLE) or "device" in lowered:
        return DeviceNotFound(f"No microphone found: {message}")
    return AudioDeviceError(f"Could not open microphone: {message}")
