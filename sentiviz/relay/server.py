"""HTTP relay: GET /health and POST /process_text."""

import logging
from typing import Optional

from aiohttp import web

from ..config import SentivizConfig
from ..errors import RelayError
from .analyzer import SentimentAnalyzer, validate_text
from .provider import ChatCompletionClient, CompletionClient

logger = logging.getLogger(__name__)

DEFAULT_MAX_BODY_BYTES = 1024 * 1024

analyzer_key = web.AppKey("analyzer", SentimentAnalyzer)
client_key = web.AppKey("completion_client", object)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


@web.middleware
async def cors_middleware(request: web.Request, handler):
    """Open CORS for every origin, answering preflight requests directly."""
    if request.method == "OPTIONS":
        return web.Response(status=204, headers=CORS_HEADERS)
    try:
        response = await handler(request)
    except web.HTTPException as e:
        e.headers.update(CORS_HEADERS)
        raise
    response.headers.update(CORS_HEADERS)
    return response


async def health(request: web.Request) -> web.Response:
    return web.json_response({"status": "ok"})


async def process_text(request: web.Request) -> web.Response:
    """Analyze {text} and answer {sentimentScore, keywords}."""
    analyzer = request.app[analyzer_key]

    try:
        try:
            body = await request.json()
        except ValueError:
            # Malformed JSON or a body that is not UTF-8
            body = None
        text = validate_text(body)
        result = await analyzer.analyze(text)
    except RelayError as e:
        if e.status >= 500:
            logger.error(f"Error in /process_text: {e.kind}: {e.details or e.message}")
        else:
            logger.info(f"Rejected /process_text request: {e.message}")
        return web.json_response(e.to_payload(), status=e.status)
    except web.HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error in /process_text: {e}", exc_info=True)
        return web.json_response(
            {"error": "Failed to process text", "details": str(e)}, status=500
        )

    return web.json_response(result.to_payload())


async def _close_client(app: web.Application) -> None:
    await app[client_key].close()


def create_app(client: CompletionClient,
               clamp_score: bool = False,
               max_body_bytes: int = DEFAULT_MAX_BODY_BYTES) -> web.Application:
    """Build the relay application around a completion client.

    Args:
        client: Completion client, closed when the app shuts down
        clamp_score: Clamp scores into [-1, 1] before answering
        max_body_bytes: Request body size cap

    Returns:
        Configured aiohttp application
    """
    app = web.Application(middlewares=[cors_middleware], client_max_size=max_body_bytes)
    app[client_key] = client
    app[analyzer_key] = SentimentAnalyzer(client, clamp_score=clamp_score)

    app.router.add_get("/health", health)
    app.router.add_post("/process_text", process_text)
    app.on_cleanup.append(_close_client)
    return app


def create_app_from_config(config: SentivizConfig,
                           client: Optional[CompletionClient] = None) -> web.Application:
    """Build the relay application from configuration."""
    if client is None:
        client = ChatCompletionClient(
            api_key=config.get_relay_api_key(),
            model=config.get('relay.model'),
            base_url=config.get('relay.base_url'),
            timeout_seconds=float(config.get('relay.timeout_seconds')),
        )
    return create_app(
        client,
        clamp_score=bool(config.get('relay.clamp_score', False)),
        max_body_bytes=int(config.get('server.max_body_bytes', DEFAULT_MAX_BODY_BYTES)),
    )


def run_server(config: SentivizConfig, host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Run the relay until interrupted."""
    app = create_app_from_config(config)
    host = host or config.get('server.host')
    port = int(port or config.get('server.port'))
    logger.info(f"Sentiment detection backend listening on {host}:{port}")
    print(f"Sentiment detection backend listening on {port}")
    web.run_app(app, host=host, port=port, print=None)
