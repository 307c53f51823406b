"""HTTP client for the sentiment relay endpoint."""

import asyncio
import json
import logging
from typing import Optional

import aiohttp

from ..errors import InvalidInput, RelayError, UpstreamBadResponse, UpstreamError, UpstreamTimeout
from ..models.sentiment import SentimentResult, parse_sentiment_payload

logger = logging.getLogger(__name__)


class SentimentRelayClient:
    """Posts final utterances to /process_text and maps failures to error kinds."""

    def __init__(self, backend_url: str, timeout_seconds: float = 30.0):
        """Initialize relay client.

        Args:
            backend_url: Base URL of the relay server
            timeout_seconds: Total time allowed for one request
        """
        self.url = f"{backend_url.rstrip('/')}/process_text"
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def process_text(self, text: str) -> SentimentResult:
        """Analyze one final utterance. One shot, no retries.

        Raises:
            InvalidInput: 400 from the relay
            UpstreamBadResponse: 502 from the relay
            UpstreamTimeout: 504 from the relay
            UpstreamError: 500 from the relay, or relay unreachable
            RelayError: Any other unexpected answer
        """
        try:
            async with self._get_session().post(self.url, json={"text": text}) as response:
                status = response.status
                body = await response.text()
        except asyncio.TimeoutError:
            raise UpstreamError("Sentiment backend did not respond in time")
        except aiohttp.ClientError as e:
            raise UpstreamError("Sentiment backend unreachable", details=str(e))

        try:
            data = json.loads(body) if body else {}
        except json.JSONDecodeError:
            data = None

        if status == 200:
            if not isinstance(data, dict):
                raise RelayError("Relay returned a non-JSON body", details=body)
            return parse_sentiment_payload(data)

        error = data.get("error", body) if isinstance(data, dict) else body
        if status == InvalidInput.status:
            raise InvalidInput(error)
        if status == UpstreamBadResponse.status:
            raise UpstreamBadResponse(error, raw=data.get("raw", "") if isinstance(data, dict) else "")
        if status == UpstreamTimeout.status:
            raise UpstreamTimeout(error)
        if status == UpstreamError.status:
            raise UpstreamError(error, details=data.get("details") if isinstance(data, dict) else None)
        raise RelayError(f"Unexpected relay status {status}", details=body)

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
