"""Pytest configuration and fixtures for SentiViz tests."""

import asyncio
import json
import logging
from typing import Callable, List, Optional
from unittest.mock import Mock, patch

import numpy as np
import pytest
import pytest_asyncio
from aiohttp import web, WSMsgType
from aiohttp.test_utils import TestServer
from pubsub import pub

from sentiviz.audio.base import AudioSource
from sentiviz.models.events import AudioEvent


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@pytest.fixture(autouse=True)
def clean_pubsub():
    """Drop every pub/sub listener and topic between tests."""
    yield
    pub.unsubAll()


@pytest.fixture
def sample_audio_chunk():
    """250ms of 16-bit mono 16kHz audio (440Hz sine)."""
    sample_rate = 16000
    samples = sample_rate // 4
    t = np.linspace(0, samples / sample_rate, samples, False)
    wave_data = np.sin(2 * np.pi * 440 * t)
    return (wave_data * 32767).astype(np.int16).tobytes()


@pytest.fixture
def mock_pyaudio():
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()

        mock_stream.read.return_value = b'\x00' * 8000  # Silent audio
        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }


class FakeCompletionClient:
    """Completion client returning canned answers, or raising a canned error."""

    def __init__(self, content: str = '{"sentimentScore": 0.5, "keywords": ["happy"]}',
                 error: Optional[Exception] = None):
        self.content = content
        self.error = error
        self.calls: List[list] = []
        self.closed = False

    async def complete(self, messages):
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        return self.content

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_completion_client():
    return FakeCompletionClient()


class FakeAudioSource(AudioSource):
    """Audio source that only emits what the test pushes into it."""

    def __init__(self, open_error: Optional[Exception] = None):
        self.open_error = open_error
        self.callback: Optional[Callable[[AudioEvent], None]] = None
        self.open_calls = 0
        self.close_calls = 0
        self.sequence = 0

    def open(self, callback):
        self.open_calls += 1
        if self.open_error is not None:
            raise self.open_error
        self.callback = callback

    def close(self):
        self.close_calls += 1
        self.callback = None

    @property
    def is_open(self) -> bool:
        return self.callback is not None

    def emit(self, audio_data: bytes) -> None:
        self.sequence += 1
        self.callback(AudioEvent(
            chunk_id=f"chunk_{self.sequence}",
            audio_data=audio_data,
            timestamp=0.0,
            sequence_number=self.sequence,
        ))


@pytest.fixture
def audio_sources():
    """Factory creating FakeAudioSource instances, keeping every one created."""
    created: List[FakeAudioSource] = []

    class Factory:
        open_error: Optional[Exception] = None

        def __call__(self) -> FakeAudioSource:
            source = FakeAudioSource(open_error=self.open_error)
            created.append(source)
            return source

        @property
        def created(self) -> List[FakeAudioSource]:
            return created

    return Factory()


class RecordingListener:
    """Transcript listener that records every callback."""

    def __init__(self):
        self.interim: List[str] = []
        self.final: List[str] = []
        self.warnings: list = []
        self.states: list = []

    def on_interim_text(self, text):
        self.interim.append(text)

    def on_final_text(self, text):
        self.final.append(text)

    def on_stream_warning(self, error):
        self.warnings.append(error)

    def on_stream_state(self, state):
        self.states.append(state)


@pytest.fixture
def recording_listener():
    return RecordingListener()


def results_message(transcript: str, is_final: bool, confidence: float = 0.9) -> str:
    """Live transcription result in the service's wire shape."""
    return json.dumps({
        "type": "Results",
        "is_final": is_final,
        "channel": {"alternatives": [{"transcript": transcript, "confidence": confidence}]},
    })


class FakeTranscriptionService:
    """Local WebSocket endpoint standing in for the live transcription service."""

    def __init__(self):
        self.app = web.Application()
        self.app.router.add_get("/v1/listen", self.handle)
        self.server: Optional[TestServer] = None
        self.sockets: List[web.WebSocketResponse] = []
        self.requests: List[web.Request] = []
        self.audio: List[bytes] = []
        self.text_frames: List[str] = []
        self.connected = asyncio.Event()
        self.audio_received = asyncio.Event()
        self.finished = asyncio.Event()
        self.close_code: Optional[int] = None
        self.handshake_delay = 0.0

    @property
    def url(self) -> str:
        return str(self.server.make_url("/v1/listen"))

    @property
    def socket(self) -> web.WebSocketResponse:
        return self.sockets[-1]

    async def handle(self, request: web.Request) -> web.WebSocketResponse:
        if self.handshake_delay:
            await asyncio.sleep(self.handshake_delay)
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        self.requests.append(request)
        self.sockets.append(ws)
        self.connected.set()

        async for msg in ws:
            if msg.type == WSMsgType.BINARY:
                self.audio.append(msg.data)
                self.audio_received.set()
            elif msg.type == WSMsgType.TEXT:
                self.text_frames.append(msg.data)

        self.close_code = ws.close_code
        self.finished.set()
        return ws

    async def send(self, message: str) -> None:
        await self.socket.send_str(message)

    async def drop(self, code: int = 1011) -> None:
        """Close the connection from the service side."""
        await self.socket.close(code=code)


@pytest_asyncio.fixture
async def transcription_service():
    service = FakeTranscriptionService()
    service.server = TestServer(service.app)
    await service.server.start_server()
    yield service
    await service.server.close()


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll until predicate() is true."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met in time")
        await asyncio.sleep(0.01)
