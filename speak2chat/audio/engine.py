"""PyAudio-backed audio engine delivering microphone buffers to taps."""

import logging
import threading
import time
from threading import Event, Thread
from typing import Dict, Optional, Tuple

import pyaudio

from ..models.audio import AudioBuffer, AudioFormat
from ..providers.base import AudioEngineProvider, AudioInputNodeProvider, TapBlock

logger = logging.getLogger(__name__)


class PyAudioInputNode(AudioInputNodeProvider):
    """Input node holding at most one tap per bus."""

    def __init__(self, audio_format: AudioFormat):
        self.audio_format = audio_format
        self._taps: Dict[int, Tuple[int, TapBlock]] = {}
        self._lock = threading.Lock()

    def output_format(self, bus: int) -> AudioFormat:
        return self.audio_format

    def install_tap(self,
                    bus: int,
                    buffer_size: int,
                    audio_format: Optional[AudioFormat],
                    block: TapBlock) -> None:
        if audio_format is not None and audio_format != self.audio_format:
            raise ValueError(f"Tap format {audio_format} does not match input format {self.audio_format}")
        with self._lock:
            if bus in self._taps:
                raise RuntimeError(f"A tap is already installed on bus {bus}")
            self._taps[bus] = (buffer_size, block)
        logger.debug(f"Installed tap on bus {bus} ({buffer_size} frames)")

    def remove_tap(self, bus: int) -> None:
        with self._lock:
            self._taps.pop(bus, None)
        logger.debug(f"Removed tap on bus {bus}")

    def tap_buffer_size(self, bus: int = 0) -> Optional[int]:
        with self._lock:
            tap = self._taps.get(bus)
        return tap[0] if tap else None

    def deliver(self, buffer: AudioBuffer) -> None:
        """Hand a captured buffer to every installed tap (capture thread)."""
        with self._lock:
            blocks = [block for _, block in self._taps.values()]
        for block in blocks:
            try:
                block(buffer)
            except Exception as e:
                logger.error(f"Tap block failed: {e}", exc_info=True)


class PyAudioEngine(AudioEngineProvider):
    """Continuous microphone capture on a background thread."""

    def __init__(self,
                 sample_rate: int = 16000,
                 chunk_size: int = 1024,
                 channels: int = 1,
                 format: int = pyaudio.paInt16):
        """Initialize audio engine with specified parameters.

        Args:
            sample_rate: Audio sample rate (16kHz suits speech recognition)
            chunk_size: Default size of each audio chunk in samples
            channels: Number of audio channels (1 for mono)
            format: Audio format (16-bit signed int)
        """
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.channels = channels
        self.format = format
        self._input_node = PyAudioInputNode(
            AudioFormat(sample_rate=sample_rate, channels=channels, sample_width=2))

        # Recording thread management
        self.recording_thread: Optional[Thread] = None
        self.stop_event = Event()
        self._running = False
        self.total_chunks = 0

        # Metering, updated per captured buffer
        self.peak_level = 0.0
        self.recorded_seconds = 0.0

        # PyAudio instance
        self.pyaudio_instance: Optional[pyaudio.PyAudio] = None
        self.stream = None

    @property
    def input_node(self) -> PyAudioInputNode:
        return self._input_node

    @property
    def is_running(self) -> bool:
        return self._running

    def prepare(self) -> None:
        """Create the PyAudio instance ahead of `start`."""
        if self.pyaudio_instance is None:
            self.pyaudio_instance = pyaudio.PyAudio()

    def start(self) -> None:
        """Open the input device and start the capture thread."""
        if self._running:
            logger.warning("Audio engine already running")
            return

        self.prepare()
        frames = self._input_node.tap_buffer_size() or self.chunk_size
        self.stream = self.pyaudio_instance.open(
            format=self.format,
            channels=self.channels,
            rate=self.sample_rate,
            input=True,
            frames_per_buffer=frames,
            stream_callback=None
        )
        logger.info(f"Audio stream opened: {self.sample_rate}Hz, {frames} samples/chunk")

        self.stop_event.clear()
        self.total_chunks = 0
        self.peak_level = 0.0
        self.recorded_seconds = 0.0
        self.recording_thread = Thread(target=self._record_continuously, args=(self.stream, frames), daemon=True)
        self.recording_thread.name = "AudioEngineThread"
        self._running = True
        self.recording_thread.start()

    def stop(self) -> None:
        """Stop capturing and release the device."""
        if not self._running and self.pyaudio_instance is None:
            return

        logger.info("Stopping audio engine")
        self.stop_event.set()
        if self.recording_thread and self.recording_thread.is_alive():
            self.recording_thread.join(timeout=2.0)
            if self.recording_thread.is_alive():
                logger.warning("Audio engine thread did not stop cleanly")

        self._running = False
        if self.pyaudio_instance:
            self.pyaudio_instance.terminate()
            self.pyaudio_instance = None
        logger.info(f"Audio engine stopped. Total chunks: {self.total_chunks}, "
                    f"recorded {self.recorded_seconds:.1f}s")

    def _record_continuously(self, stream, frames: int) -> None:
        """Capture loop running on the engine thread."""
        audio_format = self._input_node.audio_format
        try:
            while not self.stop_event.is_set():
                data = stream.read(frames, exception_on_overflow=False)
                self.total_chunks += 1
                buffer = AudioBuffer(
                    data=data,
                    audio_format=audio_format,
                    sequence_number=self.total_chunks,
                    timestamp=time.time(),
                )
                self.peak_level = buffer.peak_level
                self.recorded_seconds += buffer.duration_seconds
                self._input_node.deliver(buffer)
        except Exception as e:
            logger.error(f"Audio capture failed: {e}", exc_info=True)
        finally:
            stream.stop_stream()
            stream.close()
            self.stream = None
            self._running = False
