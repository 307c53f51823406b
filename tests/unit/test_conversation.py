"""Unit tests for the conversation controller and state store."""

import asyncio
from typing import List

import pytest
from pubsub import pub

from sentiviz.errors import (
    DeviceNotFound,
    InvalidInput,
    PermissionDenied,
    StreamDisconnect,
    StreamError,
    UpstreamBadResponse,
    UpstreamError,
    UpstreamTimeout,
)
from sentiviz.models.sentiment import SentimentResult
from sentiviz.models.session import StreamState
from sentiviz.services.conversation import ConversationController, user_message_for
from sentiviz.services.publisher import CONVERSATION_TOPIC
from sentiviz.services.state import ConversationState


class FakeRelayClient:
    """Relay client answering from a queue of results or errors."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.texts: List[str] = []
        self.gate: asyncio.Event = None
        self.closed = False

    async def process_text(self, text):
        self.texts.append(text)
        if self.gate is not None:
            await self.gate.wait()
        answer = self.answers.pop(0) if self.answers else SentimentResult()
        if isinstance(answer, Exception):
            raise answer
        return answer

    async def close(self):
        self.closed = True


class FakeStream:
    """Stream stand-in driving the controller's listener callbacks."""

    def __init__(self, controller, start_error=None):
        self.controller = controller
        self.start_error = start_error
        self.is_active = False
        self.start_calls = 0
        self.closed = False

    async def start(self):
        self.start_calls += 1
        if self.start_error is not None:
            raise self.start_error
        self.is_active = True
        self.controller.on_stream_state(StreamState.STREAMING)
        return True

    async def stop(self):
        self.is_active = False
        self.controller.on_stream_state(StreamState.IDLE)
        return True

    async def close(self):
        self.closed = True


def make_controller(*answers, discard_stale_results=False):
    controller = ConversationController(FakeRelayClient(*answers), discard_stale_results=discard_stale_results)
    controller.attach_stream(FakeStream(controller))
    return controller


@pytest.mark.unit
class TestConversationState:

    def test_initial_snapshot(self):
        snapshot = ConversationState().snapshot()

        assert snapshot.is_recording is False
        assert snapshot.transcript == ""
        assert snapshot.sentiment_score == 0.0
        assert snapshot.keywords == ()

    def test_final_text_replaces_interim(self):
        state = ConversationState()
        state.set_interim_text("hel")
        state.append_final(" hello ")

        assert state.transcript == "hello"
        assert state.interim_text == ""
        assert state.last_fragment_length == 5

    def test_stopping_clears_interim_but_keeps_transcript(self):
        state = ConversationState()
        state.set_recording(True)
        state.append_final("hello")
        state.set_interim_text("wor")
        state.set_recording(False)

        assert state.interim_text == ""
        assert state.transcript == "hello"

    def test_notifications_are_bounded(self):
        from sentiviz.models.events import Notification
        state = ConversationState(max_notifications=2)
        for i in range(4):
            state.add_notification(Notification(message=f"n{i}"))

        assert [n.message for n in state.notifications] == ["n2", "n3"]


@pytest.mark.unit
class TestTranscriptFlow:

    async def test_final_fragments_build_transcript_and_request_sentiment(self):
        controller = make_controller()
        controller.on_final_text("hello")
        controller.on_final_text("world")
        await controller.drain()

        assert controller.state.transcript == "hello world"
        assert controller.relay_client.texts == ["hello", "world"]

    async def test_interim_text_never_reaches_transcript_or_relay(self):
        controller = make_controller()
        controller.on_interim_text("hel")
        await controller.drain()

        assert controller.state.interim_text == "hel"
        assert controller.state.transcript == ""
        assert controller.relay_client.texts == []

    async def test_blank_final_text_is_ignored(self):
        controller = make_controller()
        controller.on_final_text("   ")

        assert controller.pending_requests == 0
        assert controller.state.transcript == ""

    async def test_keywords_accumulate_and_score_follows_latest(self):
        controller = make_controller(
            SentimentResult(score=0.8, keywords=["a", "b"]),
            SentimentResult(score=-0.4, keywords=["c"]),
        )
        controller.on_final_text("first")
        await controller.drain()
        controller.on_final_text("second")
        await controller.drain()

        assert controller.state.keywords == ["a", "b", "c"]
        assert controller.state.sentiment_score == -0.4

    async def test_duplicate_keywords_are_kept(self):
        controller = make_controller(
            SentimentResult(score=0.1, keywords=["a"]),
            SentimentResult(score=0.1, keywords=["a"]),
        )
        controller.on_final_text("one")
        controller.on_final_text("two")
        await controller.drain()

        assert controller.state.keywords == ["a", "a"]

    async def test_updates_are_published(self):
        received = []

        def listener(change, snapshot):
            received.append((change, snapshot))

        pub.subscribe(listener, CONVERSATION_TOPIC)
        controller = make_controller(SentimentResult(score=0.5, keywords=["ok"]))
        controller.on_final_text("hello")
        await controller.drain()

        changes = [change for change, _ in received]
        assert changes == ["transcript", "sentiment"]
        assert received[-1][1].keywords == ("ok",)
        assert received[-1][1].transcript == "hello"


@pytest.mark.unit
class TestErrorHandling:

    @pytest.mark.parametrize("error,message", [
        (InvalidInput("bad"), "Invalid text"),
        (UpstreamBadResponse("bad", raw="x"), "Model returned an invalid response"),
        (UpstreamTimeout("slow"), "Model service timeout"),
        (UpstreamError("down"), "Sentiment backend error"),
        (RuntimeError("??"), "Error while parsing sentiment"),
    ])
    async def test_relay_errors_become_notifications(self, error, message):
        controller = make_controller(error)
        controller.on_final_text("hello")
        await controller.drain()

        assert [n.message for n in controller.state.notifications] == [message]
        assert controller.state.transcript == "hello"
        assert controller.state.sentiment_score == 0.0

    async def test_failed_request_does_not_block_later_ones(self):
        controller = make_controller(UpstreamTimeout("slow"), SentimentResult(score=0.9, keywords=["yes"]))
        controller.on_final_text("one")
        controller.on_final_text("two")
        await controller.drain()

        assert controller.state.sentiment_score == 0.9
        assert controller.state.keywords == ["yes"]

    def test_user_messages_for_stream_and_device_errors(self):
        assert user_message_for(PermissionDenied("x")) == "Microphone access denied"
        assert user_message_for(DeviceNotFound("x")) == "No microphone found"
        assert user_message_for(StreamDisconnect("x")) == "Transcription service disconnected unexpectedly"

    def test_stream_warning_becomes_notification(self):
        controller = make_controller()
        controller.on_stream_warning(StreamDisconnect("gone", code=1011))

        notification = controller.state.notifications[-1]
        assert notification.message == "Transcription service disconnected unexpectedly"
        assert notification.kind == "stream_disconnect"


@pytest.mark.unit
class TestRecordingCommands:

    async def test_start_and_stop(self):
        controller = make_controller()

        assert await controller.start_recording() is True
        assert controller.state.is_recording is True
        assert controller.state.generation == 1

        assert await controller.stop_recording() is True
        assert controller.state.is_recording is False

    async def test_start_while_recording_is_noop(self):
        controller = make_controller()
        await controller.start_recording()

        assert await controller.start_recording() is False
        assert controller.stream.start_calls == 1
        assert controller.state.generation == 1

    async def test_stop_while_idle_is_noop(self):
        controller = make_controller()

        assert await controller.stop_recording() is False

    async def test_toggle(self):
        controller = make_controller()

        await controller.toggle_recording()
        assert controller.state.is_recording is True
        await controller.toggle_recording()
        assert controller.state.is_recording is False

    @pytest.mark.parametrize("error,message", [
        (PermissionDenied("denied"), "Microphone access denied"),
        (DeviceNotFound("none"), "No microphone found"),
        (StreamError("refused"), "Failed to start recording"),
    ])
    async def test_start_failure_notifies_and_stays_idle(self, error, message):
        controller = make_controller()
        controller.stream.start_error = error

        assert await controller.start_recording() is False
        assert controller.state.is_recording is False
        assert controller.state.notifications[-1].message == message

    async def test_start_without_stream_is_a_programming_error(self):
        controller = ConversationController(FakeRelayClient())

        with pytest.raises(RuntimeError):
            await controller.start_recording()

    async def test_transcript_survives_stop_and_restart(self):
        controller = make_controller()
        await controller.start_recording()
        controller.on_final_text("hello")
        await controller.stop_recording()
        await controller.start_recording()
        controller.on_final_text("again")
        await controller.drain()

        assert controller.state.transcript == "hello again"

    async def test_reset_refused_while_recording(self):
        controller = make_controller(SentimentResult(score=0.5, keywords=["k"]))
        await controller.start_recording()
        controller.on_final_text("hello")
        await controller.drain()

        assert controller.reset() is False
        assert controller.state.transcript == "hello"

        await controller.stop_recording()
        assert controller.reset() is True
        assert controller.state.transcript == ""
        assert controller.state.keywords == []
        assert controller.state.sentiment_score == 0.0

    async def test_close_releases_stream_and_relay_client(self):
        controller = make_controller()
        await controller.close()

        assert controller.stream.closed is True
        assert controller.relay_client.closed is True


@pytest.mark.unit
class TestStaleResults:

    async def _late_result(self, discard_stale_results):
        controller = make_controller(SentimentResult(score=0.7, keywords=["late"]),
                                     discard_stale_results=discard_stale_results)
        controller.relay_client.gate = asyncio.Event()
        await controller.start_recording()
        controller.on_final_text("hello")
        await asyncio.sleep(0)
        await controller.stop_recording()

        controller.relay_client.gate.set()
        await controller.drain()
        return controller

    async def test_late_results_applied_by_default(self):
        controller = await self._late_result(discard_stale_results=False)

        assert controller.state.sentiment_score == 0.7
        assert controller.state.keywords == ["late"]

    async def test_late_results_discarded_when_configured(self):
        controller = await self._late_result(discard_stale_results=True)

        assert controller.state.sentiment_score == 0.0
        assert controller.state.keywords == []
        assert controller.state.transcript == "hello"

    async def test_results_from_previous_session_discarded_when_configured(self):
        controller = make_controller(SentimentResult(score=0.7, keywords=["old"]), discard_stale_results=True)
        controller.relay_client.gate = asyncio.Event()
        await controller.start_recording()
        controller.on_final_text("hello")
        await asyncio.sleep(0)
        await controller.stop_recording()
        await controller.start_recording()

        controller.relay_client.gate.set()
        await controller.drain()

        assert controller.state.keywords == []
