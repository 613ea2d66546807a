"""Microphone permission providers."""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional

from rich.console import Console
from rich.prompt import Confirm

from ..models.session import PermissionStatus

logger = logging.getLogger(__name__)

PermissionCallback = Callable[[bool], None]


class AbstractPermissionProvider(ABC):
    """Answers whether the app may record and transcribe the microphone."""

    @abstractmethod
    def status(self) -> PermissionStatus:
        pass

    @abstractmethod
    def request(self, callback: PermissionCallback) -> None:
        """Ask for permission. ``callback`` may be invoked on any thread."""
        pass


class StaticPermissionProvider(AbstractPermissionProvider):
    """Permission fixed by configuration; an undetermined request is granted."""

    def __init__(self, status: PermissionStatus = PermissionStatus.GRANTED):
        self._status = status

    def status(self) -> PermissionStatus:
        return self._status

    def request(self, callback: PermissionCallback) -> None:
        if self._status is PermissionStatus.UNDETERMINED:
            self._status = PermissionStatus.GRANTED
        callback(self._status is PermissionStatus.GRANTED)


class ConsolePermissionProvider(AbstractPermissionProvider):
    """Asks the user once on the terminal and remembers the answer."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()
        self._status = PermissionStatus.UNDETERMINED

    def status(self) -> PermissionStatus:
        return self._status

    def request(self, callback: PermissionCallback) -> None:
        def ask():
            granted = Confirm.ask("Allow MoodScribe to record and transcribe the microphone?",
                                  console=self.console, default=True)
            self._status = PermissionStatus.GRANTED if granted else PermissionStatus.DENIED
            logger.info(f"Microphone permission {self._status.value}")
            callback(granted)

        # Keep the prompt off the event loop.
        thread = threading.Thread(target=ask, daemon=True)
        thread.name = "PermissionPromptThread"
        thread.start()


def create_permission_provider(setting: str) -> AbstractPermissionProvider:
    """Build a provider from the ``permissions.microphone`` config value."""
    setting = (setting or "prompt").lower()
    if setting == "granted":
        return StaticPermissionProvider(PermissionStatus.GRANTED)
    if setting == "denied":
        return StaticPermissionProvider(PermissionStatus.DENIED)
    if setting == "prompt":
        return ConsolePermissionProvider()
    raise ValueError(f"Unknown permissions.microphone setting: {setting}")
