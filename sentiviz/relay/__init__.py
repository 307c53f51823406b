"""Sentiment relay endpoint."""

from .analyzer import SentimentAnalyzer, validate_text
from .provider import ChatCompletionClient, CompletionClient
from .server import create_app, create_app_from_config, run_server

__all__ = [
    "SentimentAnalyzer",
    "validate_text",
    "ChatCompletionClient",
    "CompletionClient",
    "create_app",
    "create_app_from_config",
    "run_server",
]
