"""Main application entry point for Speak2Chat."""

import sys
import asyncio
import signal
import argparse
import logging
from pathlib import Path
from typing import Optional

from pubsub import pub
from rich.console import Console
from rich.live import Live
from rich.table import Table
from rich.text import Text

from speak2chat.audio.engine import PyAudioEngine
from speak2chat.audio.session import DesktopAudioSession
from speak2chat.errors import ChatStorageError
from speak2chat.models.events import LiveTextEvent, SessionEvent
from speak2chat.permissions.consent import (
    ConsentAudioApplication,
    ConsentSpeechAuthorization,
    ConsentStore,
    ConsolePermissionPrompter,
)
from speak2chat.services.chat_speech import ChatSpeechController, ChatSpeechState
from speak2chat.services.permission_gate import PermissionGate
from speak2chat.services.speech_permissions import SpeechPermissionsManager
from speak2chat.services.transcriber import SpeechTranscriberManager
from speak2chat.storage.chat_store import ChatStore
from speak2chat.transcription.publisher import (
    LIVE_TEXT_TOPIC,
    SESSION_TOPIC,
    SessionEventPublisher,
)

from .config import Speak2ChatConfig

logger = logging.getLogger(__name__)


class App:

    def __init__(self, config_path: Optional[str], log_level: Optional[str] = None):
        # Load configuration
        self.config = Speak2ChatConfig(config_path)
        # Set up logging (command line overrides config)
        level = log_level or self.config.get('logging.level', 'INFO')
        setup_logging(self.config, level)
        self.console = Console()

    def init(self) -> None:
        logger.info("Initializing services...")

        self.chat_store = ChatStore(self.config.get_data_directory())
        self.chat_store.load()

        self.consent_file = self.config.get_consent_file()
        consent = ConsentStore(self.consent_file)
        prompter = ConsolePermissionPrompter(self.console)
        self.audio_session = DesktopAudioSession(consent, prompter)
        self.permissions = SpeechPermissionsManager(
            permission_gate=PermissionGate(),
            audio_application=ConsentAudioApplication(consent),
            audio_session=self.audio_session,
            speech_authorization=ConsentSpeechAuthorization(
                consent,
                prompter,
                restricted=bool(self.config.get('permissions.speech_recognition_restricted', False)),
            ),
        )

        sample_rate = self.config.get('audio.sample_rate', 16000)
        chunk_size = self.config.get('audio.chunk_size', 1024)
        channels = self.config.get('audio.channels', 1)
        logger.info(f"Audio settings: {sample_rate}Hz, {chunk_size} samples/chunk, {channels} channels")

        self.audio_engine = PyAudioEngine(sample_rate=sample_rate, chunk_size=chunk_size, channels=channels)
        self.transcriber = SpeechTranscriberManager(
            audio_engine=self.audio_engine,
            audio_session=self.audio_session,
            recognizer=self._create_recognizer(sample_rate),
            publisher=SessionEventPublisher(),
            tap_buffer_size=self.config.get('audio.tap_buffer_size', chunk_size),
            on_device_only=bool(self.config.get('recognition.on_device_only', True)),
        )
        pub.subscribe(self._on_session_event, SESSION_TOPIC)

    def _create_recognizer(self, sample_rate: int):
        """Create the Google recognizer, or None when it cannot be initialized."""
        # Imported here so chat listing works without the Google client libraries
        from speak2chat.transcription.google_backend import GoogleSpeechRecognizer

        recognizer = GoogleSpeechRecognizer(
            credentials_path=self.config.get_google_credentials_path(),
            sample_rate=sample_rate,
            language=self.config.get('google_cloud.language', 'en-US'),
            model=self.config.get('google_cloud.model', 'latest_long'),
            enable_automatic_punctuation=self.config.get('google_cloud.enable_automatic_punctuation', True),
        )
        if not recognizer.initialize():
            logger.warning("Speech recognizer unavailable")
            return None
        return recognizer

    def _on_session_event(self, event: SessionEvent) -> None:
        logger.info(f"Session event: {event.event_type} {event.metadata}")
        if event.event_type == "error":
            self.console.print(f"❌ Recognition failed: {event.metadata.get('detail')}", style="red")

    async def record(self, chat_id: Optional[str]) -> int:
        controller = ChatSpeechController(
            transcriber=self.transcriber,
            permissions=self.permissions,
            chat_store=self.chat_store,
            chat_id=chat_id,
            settings_url=Path(self.consent_file).as_uri(),
        )
        await controller.on_appear()
        if controller.state is ChatSpeechState.ERROR:
            self.console.print(f"❌ {controller.error_text}", style="red")
            return 1

        if controller.state is ChatSpeechState.NEEDS_ACCESS:
            self.console.print("To record and transcribe speech, we need permission for the "
                               "microphone and speech recognition.", style="yellow")
            await controller.request_access()

        if controller.state in (ChatSpeechState.DENIED, ChatSpeechState.RESTRICTED):
            self.console.print(f"🚫 {controller.view_state.message}", style="red")
            controller.open_settings()
            if controller.pending_url:
                self.console.print(f"Change your choice in: {controller.pending_url}")
            return 1

        for message in controller.messages:
            self.console.print(f"💬 {message}")

        await controller.start_recording()
        if controller.state is not ChatSpeechState.RECORDING:
            self.console.print(f"❌ {controller.error_text}", style="red")
            return 1

        self.console.print("🎙️  Recording... press Ctrl+C to stop", style="green")
        await self._follow_live_text(controller)
        await controller.stop_recording()

        if controller.state is ChatSpeechState.ERROR:
            self.console.print(f"❌ {controller.error_text}", style="red")
            return 1

        row = await controller.save()
        if row is None:
            self.console.print(f"❌ {controller.error_text}", style="red")
            return 1

        self.console.print(f"✅ Saved chat {row.id}: {row.title}", style="green")
        return 0

    async def _follow_live_text(self, controller: ChatSpeechController) -> None:
        """Render live text until the stream ends or the user presses Ctrl+C."""
        loop = asyncio.get_running_loop()
        stop_requested = asyncio.Event()
        try:
            loop.add_signal_handler(signal.SIGINT, stop_requested.set)
        except NotImplementedError:
            logger.debug("Signal handlers not supported on this platform")

        latest = {"text": ""}

        def render() -> Text:
            return live_text_view(latest["text"], self.audio_engine.peak_level)

        with Live(get_renderable=render, console=self.console, refresh_per_second=8):
            def on_live_text(event: LiveTextEvent) -> None:
                latest["text"] = event.text

            pub.subscribe(on_live_text, LIVE_TEXT_TOPIC)
            waiters = [
                asyncio.ensure_future(stop_requested.wait()),
                asyncio.ensure_future(controller.wait_until_stopped()),
            ]
            try:
                await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
            finally:
                for waiter in waiters:
                    waiter.cancel()
                pub.unsubscribe(on_live_text, LIVE_TEXT_TOPIC)
                try:
                    loop.remove_signal_handler(signal.SIGINT)
                except NotImplementedError:
                    pass

    def list_chats(self) -> int:
        rows = self.chat_store.fetch_all_chats()
        if not rows:
            self.console.print("No chats yet.")
            return 0

        table = Table(title="Chats")
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Title")
        table.add_column("Updated", style="magenta")
        table.add_column("Preview")
        for row in rows:
            preview = (row.last_message_preview or "").replace("\n", " ")
            table.add_row(row.id, row.title, row.updated_at.strftime("%Y-%m-%d %H:%M"), preview[:60])
        self.console.print(table)
        return 0

    def show_chat(self, chat_id: str) -> int:
        try:
            row = self.chat_store.fetch_chat(chat_id)
        except ChatStorageError as e:
            self.console.print(f"❌ {e.message}", style="red")
            return 1

        self.console.print(f"[bold]{row.title}[/bold] ({row.updated_at.isoformat()})")
        self.console.print(row.last_message_preview or "")
        return 0

    async def cleanup(self) -> None:
        await self.transcriber.stop()
        try:
            pub.unsubscribe(self._on_session_event, SESSION_TOPIC)
        except Exception as e:
            logger.warning(f"Error during unsubscribe: {e}")


def live_text_view(text: str, peak_level: float) -> Text:
    """Live transcript under a microphone level bar."""
    peak_bar = "█" * int(min(peak_level, 1.0) * 20)
    view = Text()
    view.append(f"Mic [{peak_bar:<20}] {peak_level:.3f}\n", style="dim")
    view.append(text)
    return view


def setup_logging(config, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'data/logs/speak2chat.log')
    console_output = config.get('logging.console_output', True)

    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    handlers.append(file_handler)

    # Console handler - only if enabled in config
    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)  # Only show warnings and above on console
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info("Speak2Chat starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


async def run_command(app: App, args: argparse.Namespace) -> int:
    if args.command == "list":
        return app.list_chats()
    if args.command == "show":
        return app.show_chat(args.chat_id)

    try:
        return await app.record(args.chat_id)
    finally:
        await app.cleanup()


def main() -> None:
    """Main entry point for Speak2Chat."""
    parser = argparse.ArgumentParser(
        description="Speak2Chat - live speech transcription saved as chats",
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (default: speak2chat.yaml)"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: from config, else INFO)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="Speak2Chat v0.1.0"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    record_parser = subparsers.add_parser("record", help="Record and transcribe into a chat")
    record_parser.add_argument("--chat-id", type=str, help="Continue an existing chat")
    subparsers.add_parser("list", help="List saved chats")
    show_parser = subparsers.add_parser("show", help="Show one chat")
    show_parser.add_argument("chat_id", type=str)

    args = parser.parse_args()

    try:
        app = App(args.config, args.log_level)
        app.init()
        sys.exit(asyncio.run(run_command(app, args)))
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
    except Exception as e:
        print(f"❌ Error: {e}")
        logging.error(f"Application error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
