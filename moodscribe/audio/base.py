"""Abstract audio source owned by a transcription session."""

from abc import ABC, abstractmethod
from typing import Callable

AudioTapCallback = Callable[[bytes], None]


class AbstractAudioSource(ABC):
    """Pushes raw audio buffers to a single installed tap.

    Lifecycle driven by the session: ``activate`` -> ``install_tap`` ->
    ``start`` ... ``stop`` -> ``remove_tap`` -> ``deactivate``. The tap callback
    runs on the audio driver's thread and must never block.
    """

    @abstractmethod
    def activate(self) -> None:
        """Acquire the shared audio context (driver/session handle)."""
        pass

    @property
    @abstractmethod
    def channel_count(self) -> int:
        """Input channels available on the active context (0 if none)."""
        pass

    @abstractmethod
    def install_tap(self, callback: AudioTapCallback) -> None:
        """Open the input stream, delivering each buffer to ``callback``."""
        pass

    @abstractmethod
    def start(self) -> None:
        """Start delivering buffers."""
        pass

    @abstractmethod
    def stop(self) -> None:
        pass

    @abstractmethod
    def remove_tap(self) -> None:
        pass

    @abstractmethod
    def deactivate(self) -> None:
        """Release the shared audio context."""
        pass
