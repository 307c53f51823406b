"""Unit tests for the chat completion client against a local provider."""

import asyncio
import json

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from sentiviz.errors import UpstreamBadResponse, UpstreamError, UpstreamTimeout
from sentiviz.relay.provider import ChatCompletionClient


class FakeProvider:
    """OpenAI-compatible endpoint with a scripted answer."""

    def __init__(self):
        self.status = 200
        self.body = json.dumps({"choices": [{"message": {"content": '{"sentimentScore": 0.1}'}}]})
        self.delay = 0.0
        self.requests = []

    async def handle(self, request: web.Request) -> web.Response:
        self.requests.append({"headers": dict(request.headers), "json": await request.json()})
        if self.delay:
            await asyncio.sleep(self.delay)
        return web.Response(status=self.status, text=self.body, content_type="application/json")


@pytest_asyncio.fixture
async def provider():
    fake = FakeProvider()
    app = web.Application()
    app.router.add_post("/openai/v1/chat/completions", fake.handle)
    server = TestServer(app)
    await server.start_server()
    fake.base_url = str(server.make_url("/openai/v1"))
    yield fake
    await server.close()


async def complete(provider, timeout_seconds=5.0):
    client = ChatCompletionClient(api_key="test-key", model="test-model",
                                  base_url=provider.base_url, timeout_seconds=timeout_seconds)
    try:
        return await client.complete([{"role": "user", "content": "hi"}])
    finally:
        await client.close()


@pytest.mark.unit
class TestChatCompletionClient:

    async def test_returns_message_content(self, provider):
        assert await complete(provider) == '{"sentimentScore": 0.1}'

        request = provider.requests[0]
        assert request["headers"]["Authorization"] == "Bearer test-key"
        assert request["json"]["model"] == "test-model"
        assert request["json"]["temperature"] == 0.0
        assert request["json"]["messages"] == [{"role": "user", "content": "hi"}]

    @pytest.mark.parametrize("body", [
        {"choices": []},
        {"choices": [{"message": {"content": ""}}]},
        {"choices": [{"message": {}}]},
        {},
    ])
    async def test_missing_content_defaults_to_empty_object(self, provider, body):
        provider.body = json.dumps(body)

        assert await complete(provider) == "{}"

    async def test_error_status_raises_upstream_error_with_details(self, provider):
        provider.status = 401
        provider.body = json.dumps({"error": {"message": "Invalid API Key"}})

        with pytest.raises(UpstreamError) as exc_info:
            await complete(provider)

        assert exc_info.value.details == {"message": "Invalid API Key"}
        assert exc_info.value.status == 500

    async def test_timeout_raises_upstream_timeout(self, provider):
        provider.delay = 1.0

        with pytest.raises(UpstreamTimeout):
            await complete(provider, timeout_seconds=0.1)

    async def test_non_json_provider_body(self, provider):
        provider.body = "<html>gateway</html>"

        with pytest.raises(UpstreamBadResponse):
            await complete(provider)

    async def test_unreachable_provider(self):
        client = ChatCompletionClient(api_key="k", model="m", base_url="http://127.0.0.1:1", timeout_seconds=2.0)
        try:
            with pytest.raises(UpstreamError):
                await client.complete([{"role": "user", "content": "hi"}])
        finally:
            await client.close()
