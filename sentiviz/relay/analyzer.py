"""Sentiment analysis over a completion client."""

import json
import logging
from typing import Any

from ..errors import InvalidInput, UpstreamBadResponse
from ..models.sentiment import SentimentResult, parse_sentiment_payload
from .prompts import build_analysis_messages
from .provider import CompletionClient

logger = logging.getLogger(__name__)


def validate_text(body: Any) -> str:
    """Return the request text or raise InvalidInput.

    The body must be a JSON object with a string `text` that is not blank.
    The text is returned as sent, untrimmed.
    """
    text = body.get("text") if isinstance(body, dict) else None
    if not isinstance(text, str) or not text.strip():
        raise InvalidInput("Missing or empty 'text' field")
    return text


class SentimentAnalyzer:
    """Builds the prompt, calls the model once and normalizes its answer."""

    def __init__(self, client: CompletionClient, clamp_score: bool = False):
        self.client = client
        self.clamp_score = clamp_score

    async def analyze(self, text: str) -> SentimentResult:
        """Analyze one piece of text. No retries.

        Raises:
            UpstreamBadResponse: The model answer is not JSON
            UpstreamTimeout, UpstreamError: Propagated from the client
        """
        content = await self.client.complete(build_analysis_messages(text))

        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse model JSON: {e}")
            raise UpstreamBadResponse("Model did not return valid JSON", raw=content)

        result = parse_sentiment_payload(parsed, clamp=self.clamp_score)
        logger.debug(f"Analyzed {len(text)} chars: score={result.score} keywords={result.keywords}")
        return result
