"""Microphone audio source backed by PyAudio callback streams."""

import logging
from typing import Optional

import pyaudio

from .base import AbstractAudioSource, AudioTapCallback

logger = logging.getLogger(__name__)


class PyAudioSource(AbstractAudioSource):
    """Captures microphone input with a non-blocking PyAudio stream."""

    def __init__(
        self,
        sample_rate: int = 16000,
        chunk_size: int = 1024,
        channels: int = 1,
        format: int = pyaudio.paInt16,
    ):
        """Initialize audio source with specified parameters.

        Args:
            sample_rate: Audio sample rate (16kHz for speech recognition)
            chunk_size: Size of each audio buffer in samples
            channels: Number of audio channels requested (1 for mono)
            format: Audio format (16-bit signed int)
        """
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.channels = channels
        self.format = format

        self.pyaudio_instance: Optional[pyaudio.PyAudio] = None
        self.stream: Optional[pyaudio.Stream] = None
        self.total_chunks = 0
        self._callback: Optional[AudioTapCallback] = None

    def activate(self) -> None:
        if self.pyaudio_instance is None:
            self.pyaudio_instance = pyaudio.PyAudio()
            logger.info("Audio context activated")

    @property
    def channel_count(self) -> int:
        if self.pyaudio_instance is None:
            return 0
        try:
            device_info = self.pyaudio_instance.get_default_input_device_info()
        except (IOError, OSError) as e:
            logger.warning(f"No default input device: {e}")
            return 0
        return min(self.channels, int(device_info.get("maxInputChannels", 0)))

    def install_tap(self, callback: AudioTapCallback) -> None:
        if self.pyaudio_instance is None:
            raise RuntimeError("Audio context not active")
        if self.stream is not None:
            raise RuntimeError("Audio tap already installed")

        self._callback = callback
        self.total_chunks = 0
        self.stream = self.pyaudio_instance.open(
            format=self.format,
            channels=self.channels,
            rate=self.sample_rate,
            input=True,
            frames_per_buffer=self.chunk_size,
            stream_callback=self._on_audio,
            start=False,
        )
        logger.info(f"Audio stream opened: {self.sample_rate}Hz, "
                    f"{self.chunk_size} samples/chunk")

    def _on_audio(self, in_data, frame_count, time_info, status_flags):
        # Runs on the PortAudio thread.
        self.total_chunks += 1
        if self._callback is not None and in_data:
            self._callback(in_data)
        return None, pyaudio.paContinue

    def start(self) -> None:
        if self.stream is None:
            raise RuntimeError("Audio tap not installed")
        self.stream.start_stream()
        logger.info("Audio stream started")

    def stop(self) -> None:
        if self.stream is not None and self.stream.is_active():
            self.stream.stop_stream()
            logger.info(f"Audio stream stopped. Total chunks: {self.total_chunks}")

    def remove_tap(self) -> None:
        if self.stream is not None:
            self.stream.close()
            self.stream = None
        self._callback = None

    def deactivate(self) -> None:
        if self.pyaudio_instance is not None:
            self.pyaudio_instance.terminate()
            self.pyaudio_instance = None
            logger.info("Audio context deactivated")
