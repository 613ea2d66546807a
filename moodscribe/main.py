"""Main application entry point for MoodScribe."""

import sys
import asyncio
import argparse
import logging
from pathlib import Path
from typing import Optional

from moodscribe import __version__
from moodscribe.audio.capture import PyAudioSource
from moodscribe.inference.http_engine import HttpInferenceEngine
from moodscribe.services.emotion_service import EmotionTranscriptionService
from moodscribe.storage.history_store import ChatHistoryStore
from moodscribe.transcription.google_backend import GoogleStreamingRecognizer
from moodscribe.ui.console_view import ConsoleChatView

from .config import MoodScribeConfig

logger = logging.getLogger(__name__)


class App:

    def __init__(self, config_path: Optional[str], log_level: Optional[str] = None):
        # Load configuration
        self.config = MoodScribeConfig(config_path)
        # Set up logging (override config with command line if specified)
        setup_logging(self.config, log_level or self.config.get('logging.level', 'INFO'))
        self.should_exit = False
        self.service: Optional[EmotionTranscriptionService] = None
        self.view = ConsoleChatView()

    def init(self, loop: asyncio.AbstractEventLoop) -> None:
        logger.info("Initializing services...")

        sample_rate = self.config.get('audio.sample_rate', 16000)
        chunk_size = self.config.get('audio.chunk_size', 1024)
        channels = self.config.get('audio.channels', 1)
        logger.info(f"Audio settings: {sample_rate}Hz, {chunk_size} samples/chunk, {channels} channels")

        audio_source = PyAudioSource(sample_rate=sample_rate, chunk_size=chunk_size, channels=channels)

        recognizer = GoogleStreamingRecognizer(
            credentials_path=self.config.get_google_credentials_path(),
            sample_rate=sample_rate,
            language=self.config.get('google_cloud.language', 'en-US'),
            enable_automatic_punctuation=self.config.get('google_cloud.enable_automatic_punctuation', True),
        )
        if not recognizer.initialize():
            raise RuntimeError("Google streaming recognizer failed to initialize")

        engine = HttpInferenceEngine(
            url=self.config.get_inference_url(),
            timeout_seconds=self.config.get('inference.timeout_seconds', 5.0),
        )

        self.service = EmotionTranscriptionService(
            self.config,
            loop,
            audio_source=audio_source,
            recognizer=recognizer,
            engine=engine,
            store=ChatHistoryStore(self.config.get_data_directory()),
        )
        self.view.attach()

    async def run(self, duration: int) -> None:
        result = self.service.start()
        if not result["success"]:
            raise RuntimeError(result["error"])
        # The permission prompt reads stdin, so answer it before the command loop does.
        await self.service.wait_for_permission()

        try:
            if duration:
                await asyncio.sleep(duration)
            else:
                await self._interactive_loop()
        finally:
            await self.cleanup()

    async def _interactive_loop(self) -> None:
        loop = asyncio.get_running_loop()
        self.view.console.print("[bold]Enter[/bold] toggles recording, [bold]q[/bold] quits")
        while not self.should_exit:
            line = await loop.run_in_executor(None, sys.stdin.readline)
            command = line.strip().lower()
            if not line or command == "q":
                self.should_exit = True
            elif command == "":
                self.service.toggle_recording()

    async def cleanup(self) -> None:
        if self.service is not None:
            result = await self.service.shutdown()
            logger.info(f"Shutdown result: {result}")
            self.service = None
        self.view.detach()


def setup_logging(config, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    # Get log file path from config
    log_file_path = config.get('logging.file_path', 'data/logs/moodscribe.log')
    console_output = config.get('logging.console_output', True)

    # Create logs directory if it doesn't exist
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

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("="*50)
    logger.info(f"MoodScribe {__version__} starting (log file: {log_file_path}, level: {level})")
    logger.info(f"Inference server: {config.get('inference.url', '<not configured>')}, "
                f"timeout {config.get('inference.timeout_seconds')}s")
    logger.info(f"Debounce: {config.get('scheduler.debounce_seconds')}s, "
                f"scorer T={config.get('scorer.temperature')} "
                f"threshold={config.get('scorer.confidence_threshold')}")
    logger.info(f"Microphone permission mode: {config.get('permissions.microphone')}")
    logger.info("="*50)


async def _main_async(app: App, duration: int) -> None:
    app.init(asyncio.get_running_loop())
    await app.run(duration)


def main() -> None:
    """Main entry point for MoodScribe application."""
    parser = argparse.ArgumentParser(
        description="MoodScribe - Live transcription with emotion tagging",
        epilog="Interactive commands: Enter=Toggle recording, q=Quit"
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (default: built-in defaults)"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (overrides config)"
    )

    parser.add_argument(
        "--duration",
        type=int,
        default=0,
        help="Record for this many seconds, then stop and exit (default: interactive)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"MoodScribe v{__version__}"
    )

    args = parser.parse_args()

    try:
        app = App(args.config, args.log_level)
        asyncio.run(_main_async(app, args.duration))
    except KeyboardInterrupt:
        print("\nGoodbye!")
    except Exception as e:
        print(f"Error: {e}")
        logging.error(f"Application error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
