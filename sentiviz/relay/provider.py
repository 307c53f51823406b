"""Chat completion client for the language-model provider."""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Protocol

import aiohttp

from ..errors import UpstreamBadResponse, UpstreamError, UpstreamTimeout

logger = logging.getLogger(__name__)

EMPTY_CONTENT = "{}"


class CompletionClient(Protocol):
    """Anything that can turn chat messages into model text."""

    async def complete(self, messages: List[Dict[str, str]]) -> str:
        ...

    async def close(self) -> None:
        ...


class ChatCompletionClient:
    """Single-shot client for an OpenAI-compatible /chat/completions API."""

    def __init__(self, api_key: str, model: str,
                 base_url: str = "https://api.groq.com/openai/v1",
                 timeout_seconds: float = 30.0,
                 temperature: float = 0.0):
        """Initialize the completion client.

        Args:
            api_key: Provider API key
            model: Model identifier
            base_url: API root, the client posts to {base_url}/chat/completions
            timeout_seconds: Total time allowed for one request
            temperature: Sampling temperature
        """
        self.api_key = api_key
        self.model = model
        self.url = f"{base_url.rstrip('/')}/chat/completions"
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.temperature = temperature
        self._session: Optional[aiohttp.ClientSession] = None

        logger.info(f"ChatCompletionClient initialized with model: {model} ({self.url})")

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def complete(self, messages: List[Dict[str, str]]) -> str:
        """Send the messages and return the model's answer text.

        Raises:
            UpstreamTimeout: The request exceeded the configured timeout
            UpstreamBadResponse: The provider body is not JSON
            UpstreamError: Any other transport, auth or provider failure
        """
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        data = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
        }

        try:
            async with self._get_session().post(self.url, headers=headers, json=data) as response:
                body = await response.text()
                if response.status != 200:
                    logger.error(f"Completion API error: {response.status} - {body[:500]}")
                    raise UpstreamError("Failed to process text", details=_error_details(body, response.status))
        except asyncio.TimeoutError:
            logger.error(f"Completion request timed out after {self.timeout.total}s")
            raise UpstreamTimeout("LLM provider timeout")
        except aiohttp.ClientError as e:
            logger.error(f"Completion request failed: {e}")
            raise UpstreamError("Failed to process text", details=str(e) or type(e).__name__)

        try:
            result = json.loads(body)
        except json.JSONDecodeError:
            raise UpstreamBadResponse("Model did not return valid JSON", raw=body)

        return _extract_content(result)

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None


def _extract_content(result: Any) -> str:
    """Pull choices[0].message.content out of a completion body."""
    try:
        content = result["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return EMPTY_CONTENT
    if not isinstance(content, str) or not content.strip():
        return EMPTY_CONTENT
    return content.strip()


def _error_details(body: str, status: int) -> Any:
    """Best available detail for a failed provider call."""
    try:
        parsed = json.loads(body)
    except json.JSONDecodeError:
        return body or f"HTTP {status}"
    if isinstance(parsed, dict) and "error" in parsed:
        return parsed["error"]
    return parsed
