"""Live transcription over a duplex WebSocket connection.

The stream is a small state machine (IDLE -> CONNECTING -> STREAMING ->
CLOSING -> IDLE). Connection events are put on one asyncio queue per
recording session and a single consumer task applies them in order, so
every transition and every listener callback happens on the event loop in
arrival order.

Audio is captured by an AudioSource in its own thread and handed to the
loop with call_soon_threadsafe; a sender task forwards each chunk as a
binary frame.
"""

import asyncio
import json
import logging
from typing import Callable, Optional, Protocol

import aiohttp

from ..audio.base import AudioSource
from ..errors import AudioDeviceError, SentivizError, StreamDisconnect, StreamError, StreamParseError
from ..models.events import AudioEvent, StreamEvent, StreamEventType
from ..models.session import RecordingSession, StreamState
from .messages import parse_stream_message

logger = logging.getLogger(__name__)

NORMAL_CLOSURE = 1000
CLOSE_STREAM_MESSAGE = json.dumps({"type": "CloseStream"})


class TranscriptListener(Protocol):
    """Receiver of transcript events, called on the event loop."""

    def on_interim_text(self, text: str) -> None:
        ...

    def on_final_text(self, text: str) -> None:
        ...

    def on_stream_warning(self, error: SentivizError) -> None:
        ...

    def on_stream_state(self, state: StreamState) -> None:
        ...


class TranscriptionStream:
    """Streams microphone audio to a live transcription service."""

    def __init__(self,
                 url: str,
                 api_key: str,
                 source_factory: Callable[[], AudioSource],
                 listener: TranscriptListener,
                 model: str = "nova-3",
                 sample_rate: int = 16000,
                 channels: int = 1,
                 connect_timeout: float = 10.0,
                 stop_timeout: float = 5.0):
        """Initialize the transcription stream.

        Args:
            url: WebSocket endpoint of the transcription service
            api_key: Service API key, sent as `Authorization: Token <key>`
            source_factory: Creates the audio source for each recording session
            listener: Receives interim/final text, warnings and state changes
            model: Recognition model requested from the service
            sample_rate: Sample rate of the raw linear16 audio
            channels: Channel count of the audio
            connect_timeout: Seconds allowed for the connection handshake
            stop_timeout: Seconds to wait for the connection to wind down on stop
        """
        self.url = url
        self.api_key = api_key
        self.source_factory = source_factory
        self.listener = listener
        self.model = model
        self.sample_rate = sample_rate
        self.channels = channels
        self.connect_timeout = connect_timeout
        self.stop_timeout = stop_timeout

        self.state = StreamState.IDLE
        self.session: Optional[RecordingSession] = None
        self.generation = 0

        self._http: Optional[aiohttp.ClientSession] = None
        self._consumer_task: Optional[asyncio.Task] = None
        self._reader_task: Optional[asyncio.Task] = None
        self._sender_task: Optional[asyncio.Task] = None

    @property
    def is_active(self) -> bool:
        return self.state in (StreamState.CONNECTING, StreamState.STREAMING)

    def _set_state(self, state: StreamState) -> None:
        if state is self.state:
            return
        logger.info(f"Transcription stream: {self.state.value} -> {state.value}")
        self.state = state
        self._notify("on_stream_state", state)

    def _notify(self, method: str, *args) -> None:
        try:
            getattr(self.listener, method)(*args)
        except Exception as e:
            logger.error(f"Listener {method} failed: {e}", exc_info=True)

    def _query_params(self) -> dict:
        return {
            "model": self.model,
            "encoding": "linear16",
            "sample_rate": str(self.sample_rate),
            "channels": str(self.channels),
            "interim_results": "true",
        }

    async def start(self) -> bool:
        """Open the audio source and the connection, then begin streaming.

        Returns:
            True if a new session was started, False if one is already active

        Raises:
            AudioDeviceError: The microphone could not be opened
            StreamError: The connection could not be established
        """
        if self.state is not StreamState.IDLE:
            logger.info(f"Start ignored, stream is {self.state.value}")
            return False

        self.generation += 1
        session = RecordingSession(generation=self.generation)
        self.session = session
        self._set_state(StreamState.CONNECTING)

        loop = asyncio.get_running_loop()
        audio_queue: asyncio.Queue = asyncio.Queue()
        events: asyncio.Queue = asyncio.Queue()

        def on_audio(event: AudioEvent) -> None:
            try:
                loop.call_soon_threadsafe(audio_queue.put_nowait, event)
            except RuntimeError:
                logger.debug("Event loop closed, dropping audio chunk")

        try:
            source = self.source_factory()
            await asyncio.to_thread(source.open, on_audio)
            session.audio_source = source

            if self._http is None or self._http.closed:
                self._http = aiohttp.ClientSession()
            ws = await asyncio.wait_for(
                self._http.ws_connect(
                    self.url,
                    params=self._query_params(),
                    headers={"Authorization": f"Token {self.api_key}"},
                ),
                timeout=self.connect_timeout,
            )
            session.connection = ws
        except AudioDeviceError as e:
            logger.error(f"Failed to open microphone: {e}")
            await self._teardown(session)
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to connect to transcription service: {e}")
            await self._teardown(session)
            raise StreamError(f"Could not connect to transcription service: {e}")
        except Exception:
            logger.error("Failed to start recording", exc_info=True)
            await self._teardown(session)
            raise

        if session.local_close or self.session is not session:
            logger.info("Stopped while connecting, closing new connection")
            await self._teardown(session)
            return False

        logger.info("Transcription WebSocket connected")
        started = loop.create_future()
        events.put_nowait(StreamEvent(StreamEventType.OPENED))
        self._reader_task = asyncio.create_task(self._read_connection(ws, events))
        self._consumer_task = asyncio.create_task(
            self._consume_events(session, events, audio_queue, started)
        )
        await started
        return True

    async def stop(self) -> bool:
        """Stop streaming: release the microphone and close the connection normally.

        Returns:
            True if an active session was stopped, False if there was none
        """
        session = self.session
        if session is None or not self.is_active:
            logger.info("Stop ignored, no active stream")
            return False

        session.local_close = True
        self._set_state(StreamState.CLOSING)
        await self._teardown(session)

        consumer = self._consumer_task
        if consumer is not None and not consumer.done():
            try:
                await asyncio.wait_for(asyncio.shield(consumer), timeout=self.stop_timeout)
            except asyncio.TimeoutError:
                logger.warning("Stream consumer did not finish, cancelling")
                consumer.cancel()
        return True

    async def close(self) -> None:
        """Stop any session and release the HTTP client."""
        await self.stop()
        if self._http is not None and not self._http.closed:
            await self._http.close()
        self._http = None

    async def _read_connection(self, ws: aiohttp.ClientWebSocketResponse, events: asyncio.Queue) -> None:
        """Turn inbound frames into queue events until the connection closes."""
        try:
            async for msg in ws:
                if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                    events.put_nowait(StreamEvent(StreamEventType.MESSAGE, data=msg.data))
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    events.put_nowait(StreamEvent(StreamEventType.ERROR, data=ws.exception()))
        except Exception as e:
            logger.error(f"Transcription connection failed: {e}")
            events.put_nowait(StreamEvent(StreamEventType.ERROR, data=e))
        finally:
            events.put_nowait(StreamEvent(StreamEventType.CLOSED, code=ws.close_code))

    async def _consume_events(self, session: RecordingSession, events: asyncio.Queue,
                              audio_queue: asyncio.Queue, started: asyncio.Future) -> None:
        """Single consumer: applies every connection event in order."""
        try:
            while True:
                event = await events.get()

                if event.type is StreamEventType.OPENED:
                    if self.session is session and self.state is StreamState.CONNECTING:
                        self._set_state(StreamState.STREAMING)
                        self._sender_task = asyncio.create_task(
                            self._send_audio(session, session.connection, audio_queue)
                        )
                    if not started.done():
                        started.set_result(True)

                elif event.type is StreamEventType.MESSAGE:
                    if self.session is session and self.state is StreamState.STREAMING:
                        self._handle_message(event.data)

                elif event.type is StreamEventType.ERROR:
                    logger.error(f"Transcription WebSocket error: {event.data}")
                    self._notify("on_stream_warning",
                                 StreamError(f"Transcription connection error: {event.data}"))

                elif event.type is StreamEventType.CLOSED:
                    logger.info(f"Transcription WebSocket closed: {event.code}")
                    unexpected = (not session.local_close
                                  and self.session is session
                                  and self.state is StreamState.STREAMING
                                  and event.code != NORMAL_CLOSURE)
                    if unexpected:
                        self._notify("on_stream_warning", StreamDisconnect(
                            "Transcription service disconnected unexpectedly", code=event.code
                        ))
                    if self.session is session and self.state is not StreamState.IDLE:
                        self._set_state(StreamState.CLOSING)
                    await self._teardown(session)
                    break
        finally:
            if not started.done():
                started.set_result(False)

    def _handle_message(self, raw) -> None:
        try:
            utterance = parse_stream_message(raw)
        except StreamParseError as e:
            logger.error(f"Error parsing transcription message: {e}")
            self._notify("on_stream_warning", e)
            return

        if utterance is None:
            return
        if utterance.is_final:
            self._notify("on_final_text", utterance.text)
        else:
            self._notify("on_interim_text", utterance.text)

    async def _send_audio(self, session: RecordingSession, ws: aiohttp.ClientWebSocketResponse,
                          audio_queue: asyncio.Queue) -> None:
        """Forward captured chunks as binary frames while the connection is open."""
        while True:
            event = await audio_queue.get()
            if ws.closed:
                break
            if not event.audio_data:
                continue
            try:
                await ws.send_bytes(event.audio_data)
            except (ConnectionResetError, aiohttp.ClientError) as e:
                logger.warning(f"Failed to send audio chunk: {e}")
                break
            session.chunks_sent += 1

    async def _teardown(self, session: RecordingSession) -> None:
        """Release the microphone and the connection of a session. Idempotent."""
        source = session.audio_source
        ws = session.connection
        session.release()

        sender = self._sender_task if self.session is session else None
        if sender is not None and not sender.done():
            sender.cancel()

        if source is not None:
            try:
                await asyncio.to_thread(source.close)
            except Exception as e:
                logger.warning(f"Error stopping audio source: {e}")

        if ws is not None and not ws.closed:
            try:
                await ws.send_str(CLOSE_STREAM_MESSAGE)
                await ws.close(code=NORMAL_CLOSURE, message=b"Client stop")
            except (ConnectionResetError, aiohttp.ClientError) as e:
                logger.warning(f"Error closing transcription WebSocket: {e}")

        if self.session is session:
            self._sender_task = None
            self.session = None
            self._set_state(StreamState.IDLE)
            logger.info(f"Recording session {session.generation} closed "
                        f"({session.chunks_sent} chunks sent)")
