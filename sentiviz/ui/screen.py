"""Terminal screen: transcript, keywords, controls and the sentiment animation."""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

from pubsub import pub
from rich.align import Align
from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from ..services.conversation import ConversationController
from ..services.publisher import CONVERSATION_TOPIC
from ..services.state import ConversationSnapshot
from .keyboard_input import KeyboardInputHandler
from .visualization import ParticleField, display_score, visual_params

logger = logging.getLogger(__name__)

TRANSCRIPT_PLACEHOLDER = "Start speaking to see text here..."
KEYWORDS_PLACEHOLDER = "Keywords will appear here as you speak."
NOTIFICATION_TTL = timedelta(seconds=4)


def tail(text: Text, console: Console, width: int, height: int) -> Text:
    """Keep the last `height` wrapped lines of text: the panel stays scrolled to the bottom."""
    if width <= 0 or height <= 0:
        return text
    lines = text.wrap(console, width)
    if len(lines) <= height:
        return text
    return Text("\n").join(lines[-height:])


def render_transcript(snapshot: ConversationSnapshot) -> Text:
    """Transcript with the newest final fragment highlighted and interim text dimmed."""
    if not snapshot.transcript and not snapshot.interim_text:
        return Text(TRANSCRIPT_PLACEHOLDER, style="dim italic")

    text = Text()
    transcript = snapshot.transcript
    split = max(0, len(transcript) - snapshot.last_fragment_length)
    if transcript[:split]:
        text.append(transcript[:split], style="white")
    if transcript[split:]:
        text.append(transcript[split:], style="bold green")
    if snapshot.interim_text:
        if transcript:
            text.append(" ")
        text.append(snapshot.interim_text, style="dim italic")
    return text


def render_keywords(snapshot: ConversationSnapshot) -> Text:
    """Each keyword as a tag, in arrival order."""
    if not snapshot.keywords:
        return Text(KEYWORDS_PLACEHOLDER, style="dim italic")

    text = Text()
    for index, keyword in enumerate(snapshot.keywords):
        if index:
            text.append(" ")
        text.append(f" {keyword} ", style="black on cyan")
    return text


def render_controls(snapshot: ConversationSnapshot) -> Text:
    """Start/stop hint and the live/idle indicator."""
    if snapshot.is_recording:
        button = ("[ Stop ]", "bold white on red")
        status = ("● Listening…", "bold red")
    else:
        button = ("[ Start ]", "bold white on green")
        status = ("○ Idle", "bold yellow")

    return Text.assemble(
        button, "  ", status, "   ",
        ("SPACE", "bold green"), " Start/Stop  ",
        ("R", "bold blue"), " Reset  ",
        ("Q", "bold red"), " Quit",
    )


def render_notification(snapshot: ConversationSnapshot, now: Optional[datetime] = None) -> Text:
    """Most recent notification that has not expired yet."""
    now = now or datetime.now()
    for notification in reversed(snapshot.notifications):
        if now - notification.timestamp <= NOTIFICATION_TTL:
            style = "bold red" if notification.level == "error" else "yellow"
            return Text(notification.message, style=style)
    return Text("")


def _log_command_failure(future) -> None:
    """Done-callback for commands submitted from the keyboard thread."""
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.error(f"Command failed: {error}", exc_info=error)


class SentimentScreen:
    """Live terminal interface driven by conversation snapshots."""

    def __init__(self, controller: ConversationController,
                 console: Optional[Console] = None,
                 frames_per_second: int = 20):
        """Initialize the screen.

        Args:
            controller: Conversation controller to read state from and send commands to
            console: Rich console to draw on
            frames_per_second: Animation frame rate
        """
        self.controller = controller
        self.console = console or Console()
        self.frames_per_second = frames_per_second
        self.frame_interval = 1.0 / frames_per_second
        self.snapshot = controller.state.snapshot()
        self.field = ParticleField()
        self.running = False
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self.input_handler: Optional[KeyboardInputHandler] = None
        self._quit = asyncio.Event()

    def on_update(self, change: str, snapshot: ConversationSnapshot) -> None:
        """pub/sub listener: keep the latest snapshot for the next frame."""
        self.snapshot = snapshot
        logger.debug(f"Screen received {change} update")

    def create_layout(self) -> Layout:
        """Create the main UI layout."""
        layout = Layout()
        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="animation", ratio=1),
            Layout(name="panels", size=12),
            Layout(name="footer", size=4),
        )
        layout["panels"].split_row(
            Layout(name="transcript", ratio=3),
            Layout(name="keywords", ratio=2),
        )
        return layout

    def update_display(self, layout: Layout) -> None:
        """Advance the animation one frame and redraw every panel."""
        snapshot = self.snapshot
        width = self.console.size.width
        height = self.console.size.height

        score = display_score(snapshot.sentiment_score)
        header = Text.assemble(
            ("🎙️  SentiViz - Live Voice Sentiment", "bold blue"), "  |  ",
            (f"Sentiment {score:+.2f}", "bold"),
        )
        layout["header"].update(Panel(Align.center(header), style="bright_blue"))

        params = visual_params(snapshot.sentiment_score)
        self.field.step(params)
        animation_rows = max(1, height - 3 - 12 - 4 - 2)
        layout["animation"].update(Panel(
            self.field.render(width - 4, animation_rows, params), border_style="bright_black"
        ))

        transcript_width = max(10, width * 3 // 5 - 4)
        keywords_width = max(10, width * 2 // 5 - 4)
        layout["transcript"].update(Panel(
            tail(render_transcript(snapshot), self.console, transcript_width, 10),
            title="Live Transcript", border_style="blue"
        ))
        layout["keywords"].update(Panel(
            tail(render_keywords(snapshot), self.console, keywords_width, 10),
            title="Keywords", border_style="cyan"
        ))

        layout["footer"].update(Panel(
            Text.assemble(render_controls(snapshot), "\n", render_notification(snapshot)),
            style="bright_black"
        ))

    def handle_key_input(self, key: str) -> bool:
        """Handle keyboard input from the input thread. Returns False to quit."""
        if key == 'q':
            logger.info("Quit key pressed")
            self.loop.call_soon_threadsafe(self._quit.set)
            return False
        if key in (' ', '\n', '\r'):
            self._submit(self.controller.toggle_recording())
        elif key in ('1', 's'):
            self._submit(self.controller.start_recording())
        elif key in ('2', 'x'):
            self._submit(self.controller.stop_recording())
        elif key in ('3', 'r'):
            self.loop.call_soon_threadsafe(self.controller.reset)
        else:
            logger.debug(f"Unhandled key: '{key}'")
        return True

    def _submit(self, coroutine) -> None:
        future = asyncio.run_coroutine_threadsafe(coroutine, self.loop)
        future.add_done_callback(_log_command_failure)

    async def run(self) -> None:
        """Run the screen until 'q' or Ctrl+C."""
        self.loop = asyncio.get_running_loop()
        self._quit = asyncio.Event()
        self.running = True
        pub.subscribe(self.on_update, CONVERSATION_TOPIC)

        self.input_handler = KeyboardInputHandler(self.handle_key_input)
        self.input_handler.start()

        layout = self.create_layout()
        try:
            with Live(layout, console=self.console, refresh_per_second=self.frames_per_second,
                      screen=True):
                while not self._quit.is_set():
                    self.update_display(layout)
                    try:
                        await asyncio.wait_for(self._quit.wait(), timeout=self.frame_interval)
                    except asyncio.TimeoutError:
                        pass
        finally:
            await self.cleanup()

    async def cleanup(self) -> None:
        """Clean up resources."""
        self.running = False
        if self.input_handler:
            self.input_handler.stop()
        try:
            pub.unsubscribe(self.on_update, CONVERSATION_TOPIC)
        except Exception as e:
            logger.warning(f"Error during unsubscribe: {e}")
        await self.controller.close()
        self.console.print("👋 SentiViz session ended", style="bold blue")
        logger.info("SentimentScreen cleanup completed")
