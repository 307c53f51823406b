"""Main application entry point for SentiViz."""

import sys
import asyncio
import argparse
import logging
from pathlib import Path
from typing import Optional

from . import __version__
from .config import SentivizConfig

logger = logging.getLogger(__name__)


def setup_logging(config: SentivizConfig, level: Optional[str] = None,
                  console_output: Optional[bool] = None) -> None:
    """Set up logging configuration from YAML config."""
    level = level or config.get('logging.level', 'INFO')
    log_file_path = config.get_log_file_path()
    if console_output is None:
        console_output = config.get('logging.console_output', True)

    # Create logs directory if it doesn't exist
    Path(log_file_path).parent.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    ))
    handlers.append(file_handler)

    # Console handler - only if enabled in config
    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.WARNING)  # Only show warnings and above on console
        console_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info(f"SentiViz v{__version__} starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def serve(args: argparse.Namespace) -> None:
    """Run the sentiment relay server."""
    from .relay.server import run_server

    config = SentivizConfig(args.config)
    setup_logging(config, args.log_level)
    run_server(config, host=args.host, port=args.port)


async def run_listener(config: SentivizConfig) -> None:
    """Wire microphone, transcription, relay client and screen, then run the screen."""
    from .audio.capture import MicrophoneSource
    from .services.conversation import ConversationController
    from .services.relay_client import SentimentRelayClient
    from .transcription.stream import TranscriptionStream
    from .ui.screen import SentimentScreen

    sample_rate = int(config.get('audio.sample_rate', 16000))
    channels = int(config.get('audio.channels', 1))
    chunk_interval_ms = int(config.get('transcription.chunk_interval_ms', 250))

    relay_client = SentimentRelayClient(
        config.get('client.backend_url'),
        timeout_seconds=float(config.get('client.request_timeout_seconds', 30.0)),
    )
    controller = ConversationController(
        relay_client,
        discard_stale_results=bool(config.get('client.discard_stale_results', False)),
    )

    def microphone() -> MicrophoneSource:
        return MicrophoneSource(sample_rate=sample_rate, chunk_interval_ms=chunk_interval_ms, channels=channels)

    stream = TranscriptionStream(
        url=config.get('transcription.url'),
        api_key=config.get_transcription_api_key(),
        source_factory=microphone,
        listener=controller,
        model=config.get('transcription.model', 'nova-3'),
        sample_rate=sample_rate,
        channels=channels,
    )
    controller.attach_stream(stream)
    logger.info(f"Audio settings: {sample_rate}Hz, {chunk_interval_ms}ms chunks, {channels} channels")

    await SentimentScreen(controller).run()


def listen(args: argparse.Namespace) -> None:
    """Run the interactive terminal client."""
    config = SentivizConfig(args.config)
    if args.backend_url:
        config.set('client.backend_url', args.backend_url)
    # The live screen owns the terminal, so logs only go to the file
    setup_logging(config, args.log_level, console_output=False)
    asyncio.run(run_listener(config))


def main() -> None:
    """Main entry point for SentiViz."""
    parser = argparse.ArgumentParser(
        description="SentiViz - Live voice sentiment visualizer",
        epilog="Keys: SPACE/1/s=Start, SPACE/2/x=Stop, 3/r=Reset, q=Quit"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"SentiViz v{__version__}"
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (default: looks for sentiviz.yaml)"
    )
    common.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: from config, INFO)"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", parents=[common], help="Run the sentiment relay server")
    serve_parser.add_argument("--host", type=str, help="Interface to bind (default: from config)")
    serve_parser.add_argument("--port", type=int, help="Port to listen on (default: PORT or 4000)")
    serve_parser.set_defaults(handler=serve)

    listen_parser = subparsers.add_parser("listen", parents=[common], help="Run the live terminal client")
    listen_parser.add_argument("--backend-url", type=str, help="Relay server URL (default: BACKEND_URL)")
    listen_parser.set_defaults(handler=listen)

    args = parser.parse_args()

    try:
        args.handler(args)
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
    except Exception as e:
        print(f"❌ Error: {e}")
        logging.error(f"Application error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
