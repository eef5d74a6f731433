"""Abstract base classes over platform audio and speech primitives.

Production adapters implement these against real devices and services;
tests swap in in-memory doubles at construction time.
"""

from abc import ABC, abstractmethod
from typing import Callable, Iterable, Optional

from ..models.audio import (
    AudioBuffer,
    AudioFormat,
    AudioSessionCategory,
    AudioSessionMode,
    AudioSessionOption,
)
from ..models.permissions import RecordPermission, SpeechAuthorizationStatus
from ..models.transcription import RecognitionResult

TapBlock = Callable[[AudioBuffer], None]
RecognitionHandler = Callable[[Optional[RecognitionResult], Optional[Exception]], None]


class AudioApplicationProvider(ABC):
    """Application-wide microphone permission state."""

    @property
    @abstractmethod
    def record_permission(self) -> RecordPermission:
        pass


class AudioSessionProvider(ABC):
    """Audio session control and microphone permission requests."""

    @property
    @abstractmethod
    def record_permission(self) -> RecordPermission:
        pass

    @abstractmethod
    def request_record_permission(self, response: Callable[[bool], None]) -> None:
        """Ask for microphone access. `response` is called once, from any thread."""
        pass

    @abstractmethod
    def set_category(self,
                     category: AudioSessionCategory,
                     mode: AudioSessionMode,
                     options: Iterable[AudioSessionOption] = ()) -> None:
        pass

    @abstractmethod
    def set_active(self, active: bool, notify_others_on_deactivation: bool = False) -> None:
        pass


class AudioInputNodeProvider(ABC):
    """Microphone input node that accepts taps."""

    @abstractmethod
    def output_format(self, bus: int) -> AudioFormat:
        pass

    @abstractmethod
    def install_tap(self,
                    bus: int,
                    buffer_size: int,
                    audio_format: Optional[AudioFormat],
                    block: TapBlock) -> None:
        pass

    @abstractmethod
    def remove_tap(self, bus: int) -> None:
        pass


class AudioEngineProvider(ABC):
    """Audio engine driving the input node."""

    @property
    @abstractmethod
    def input_node(self) -> AudioInputNodeProvider:
        pass

    @property
    @abstractmethod
    def is_running(self) -> bool:
        pass

    @abstractmethod
    def prepare(self) -> None:
        pass

    @abstractmethod
    def start(self) -> None:
        """Start the engine. May block while the device opens."""
        pass

    @abstractmethod
    def stop(self) -> None:
        pass


class SpeechAudioBufferRequestProvider(ABC):
    """Recognition request fed with live audio buffers."""

    should_report_partial_results: bool = False
    requires_on_device_recognition: bool = False

    @abstractmethod
    def append(self, buffer: AudioBuffer) -> None:
        pass

    @abstractmethod
    def end_audio(self) -> None:
        pass


class SpeechRecognitionTaskProvider(ABC):
    """A running recognition task."""

    @abstractmethod
    def cancel(self) -> None:
        pass


class SpeechAuthorizationProvider(ABC):
    """Speech recognition authorization."""

    @abstractmethod
    def authorization_status(self) -> SpeechAuthorizationStatus:
        pass

    @abstractmethod
    def request_authorization(self,
                              handler: Callable[[SpeechAuthorizationStatus], None]) -> None:
        """Ask for authorization. `handler` is called once, from any thread."""
        pass


class SpeechRecognizerProvider(ABC):
    """Speech recognizer able to open recognition tasks."""

    @property
    @abstractmethod
    def is_available(self) -> bool:
        pass

    @property
    def supports_on_device_recognition(self) -> bool:
        return False

    @abstractmethod
    def create_request(self) -> SpeechAudioBufferRequestProvider:
        """Create a fresh request compatible with this recognizer."""
        pass

    @abstractmethod
    def recognition_task(self,
                         request: SpeechAudioBufferRequestProvider,
                         result_handler: RecognitionHandler) -> SpeechRecognitionTaskProvider:
        """Start recognizing `request`.

        `result_handler(result, error)` may be invoked from a platform thread,
        any number of times, until a final result or an error.
        """
        pass
