"""Parsing of inbound live-transcription messages."""

import json
import logging
from typing import Optional, Union

from ..errors import StreamParseError
from ..models.transcription import Utterance

logger = logging.getLogger(__name__)

RESULTS_TYPE = "Results"


def parse_stream_message(raw: Union[str, bytes]) -> Optional[Utterance]:
    """Turn one service message into an Utterance.

    Expected shape: {"channel": {"alternatives": [{"transcript": ...}]},
    "is_final": bool}. Messages of another `type` (metadata, speech
    started, utterance end) and results with an empty transcript return
    None.

    Raises:
        StreamParseError: The message is not a JSON object
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise StreamParseError(f"Message is not valid UTF-8: {e}")

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise StreamParseError(f"Message is not valid JSON: {e}", raw=raw)

    if not isinstance(data, dict):
        raise StreamParseError("Message is not a JSON object", raw=raw)

    message_type = data.get("type", RESULTS_TYPE)
    if message_type != RESULTS_TYPE:
        logger.debug(f"Ignoring {message_type} message")
        return None

    alternative = _first_alternative(data)
    transcript = alternative.get("transcript")
    text = transcript.strip() if isinstance(transcript, str) else ""
    if not text:
        return None

    confidence = alternative.get("confidence")
    return Utterance(
        text=text,
        is_final=bool(data.get("is_final")),
        confidence=float(confidence) if isinstance(confidence, (int, float)) else None,
    )


def _first_alternative(data: dict) -> dict:
    channel = data.get("channel")
    if not isinstance(channel, dict):
        return {}
    alternatives = channel.get("alternatives")
    if not isinstance(alternatives, list) or not alternatives:
        return {}
    first = alternatives[0]
    return first if isinstance(first, dict) else {}
