"""Conversation controller: transcript events in, sentiment updates out."""

import asyncio
import logging
from typing import Optional, Set

from ..errors import (
    AudioDeviceError,
    DeviceNotFound,
    InvalidInput,
    PermissionDenied,
    SentivizError,
    StreamDisconnect,
    StreamError,
    StreamParseError,
    UpstreamBadResponse,
    UpstreamError,
    UpstreamTimeout,
)
from ..models.events import Notification
from ..models.session import StreamState
from ..transcription.stream import TranscriptionStream
from .publisher import ConversationPublisher
from .relay_client import SentimentRelayClient
from .state import ConversationState

logger = logging.getLogger(__name__)

GENERIC_SENTIMENT_MESSAGE = "Error while parsing sentiment"
START_FAILED_MESSAGE = "Failed to start recording"

# Checked in order, first match wins
USER_MESSAGES = (
    (InvalidInput, "Invalid text"),
    (UpstreamBadResponse, "Model returned an invalid response"),
    (UpstreamTimeout, "Model service timeout"),
    (UpstreamError, "Sentiment backend error"),
    (PermissionDenied, "Microphone access denied"),
    (DeviceNotFound, "No microphone found"),
    (AudioDeviceError, "Could not open microphone"),
    (StreamParseError, "Error parsing transcript"),
    (StreamDisconnect, "Transcription service disconnected unexpectedly"),
    (StreamError, "Transcription connection error. Please try again."),
)


def user_message_for(error: Exception, fallback: str = GENERIC_SENTIMENT_MESSAGE) -> str:
    """Pick the user-facing message for an error kind."""
    for error_type, message in USER_MESSAGES:
        if isinstance(error, error_type):
            return message
    return fallback


class ConversationController:
    """Owns the conversation state and wires final text to the relay.

    Implements the stream's listener interface. Every method runs on the
    event loop, so state is never mutated concurrently.
    """

    def __init__(self,
                 relay_client: SentimentRelayClient,
                 state: Optional[ConversationState] = None,
                 publisher: Optional[ConversationPublisher] = None,
                 discard_stale_results: bool = False):
        """Initialize the controller.

        Args:
            relay_client: Client for the sentiment relay endpoint
            state: State store, a fresh ConversationState by default
            publisher: Publisher notified after every state change
            discard_stale_results: Drop relay results that arrive after the
                recording they belong to has stopped. Off by default: late
                results are still applied.
        """
        self.relay_client = relay_client
        self.state = state or ConversationState()
        self.publisher = publisher or ConversationPublisher()
        self.discard_stale_results = discard_stale_results
        self.stream: Optional[TranscriptionStream] = None
        self._pending: Set[asyncio.Task] = set()

    def attach_stream(self, stream: TranscriptionStream) -> None:
        self.stream = stream

    def _publish(self, change: str) -> None:
        try:
            self.publisher.publish(change, self.state.snapshot())
        except Exception as e:
            logger.error(f"Error publishing {change} update: {e}", exc_info=True)

    def notify(self, message: str, level: str = "error", kind: Optional[str] = None) -> None:
        """Surface a non-blocking message to the user."""
        self.state.add_notification(Notification(message=message, level=level, kind=kind))
        self._publish("notification")

    # Stream listener

    def on_interim_text(self, text: str) -> None:
        """Display-only update, the transcript is not touched."""
        self.state.set_interim_text(text)
        self._publish("transcript")

    def on_final_text(self, text: str) -> None:
        """Append to the transcript, then request sentiment for this fragment."""
        if not text.strip():
            return
        self.state.append_final(text)
        self._publish("transcript")
        self._schedule_analysis(text.strip())

    def on_stream_warning(self, error: SentivizError) -> None:
        logger.warning(f"Stream warning ({error.kind}): {error}")
        self.notify(user_message_for(error, START_FAILED_MESSAGE), level="warning", kind=error.kind)

    def on_stream_state(self, state: StreamState) -> None:
        recording = state is StreamState.STREAMING
        if recording != self.state.is_recording:
            self.state.set_recording(recording)
            self._publish("recording")

    # Sentiment

    def _schedule_analysis(self, text: str) -> None:
        task = asyncio.create_task(self._analyze(text, self.state.generation))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _analyze(self, text: str, generation: int) -> None:
        try:
            result = await self.relay_client.process_text(text)
        except SentivizError as e:
            logger.error(f"Error calling /process_text ({e.kind}): {e}")
            self.notify(user_message_for(e), kind=e.kind)
            return
        except Exception as e:
            logger.error(f"Error calling /process_text: {e}", exc_info=True)
            self.notify(GENERIC_SENTIMENT_MESSAGE)
            return

        if self._is_stale(generation):
            logger.info(f"Discarding sentiment result from session {generation}")
            return

        self.state.set_sentiment_score(result.score)
        self.state.extend_keywords(result.keywords)
        logger.info(f"Sentiment {result.score:+.2f}, keywords: {result.keywords}")
        self._publish("sentiment")

    def _is_stale(self, generation: int) -> bool:
        if not self.discard_stale_results:
            return False
        return generation != self.state.generation or not self.state.is_recording

    async def drain(self) -> None:
        """Wait for every in-flight relay request to settle."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @property
    def pending_requests(self) -> int:
        return len(self._pending)

    # Commands

    async def start_recording(self) -> bool:
        """Start a recording session. No-op while one is active."""
        if self.stream is None:
            raise RuntimeError("No transcription stream attached")
        if self.state.is_recording or self.stream.is_active:
            logger.info("Recording already in progress")
            return False

        self.state.begin_session()
        try:
            return await self.stream.start()
        except AudioDeviceError as e:
            logger.error(f"Failed to start recording: {e}")
            self.notify(user_message_for(e), kind=e.kind)
        except StreamError as e:
            logger.error(f"Failed to start recording: {e}")
            self.notify(START_FAILED_MESSAGE, kind=e.kind)
        self.on_stream_state(StreamState.IDLE)
        return False

    async def stop_recording(self) -> bool:
        """Stop the active recording session. No-op when idle."""
        if self.stream is None or not (self.state.is_recording or self.stream.is_active):
            logger.info("No recording in progress")
            return False
        stopped = await self.stream.stop()
        self.on_stream_state(StreamState.IDLE)
        return stopped

    async def toggle_recording(self) -> bool:
        if self.state.is_recording or (self.stream is not None and self.stream.is_active):
            return await self.stop_recording()
        return await self.start_recording()

    def reset(self) -> bool:
        """Clear transcript, score and keywords. Refused while recording."""
        if self.state.is_recording:
            logger.warning("Reset refused while recording")
            self.notify("Stop recording before resetting", level="warning")
            return False
        self.state.reset()
        self._publish("reset")
        return True

    async def close(self) -> None:
        """Stop recording and release the network clients."""
        if self.stream is not None:
            await self.stream.close()
        await self.drain()
        await self.relay_client.close()
