"""In-memory provider doubles shared by the test suite.

Every double appends what it does to a shared action log so tests can assert
on ordering across providers.
"""

import threading
import time
from typing import Callable, List, Optional

from speak2chat.models.audio import AudioBuffer, AudioFormat
from speak2chat.models.permissions import RecordPermission, SpeechAuthorizationStatus
from speak2chat.models.transcription import RecognitionResult
from speak2chat.providers.base import (
    AudioApplicationProvider,
    AudioEngineProvider,
    AudioInputNodeProvider,
    AudioSessionProvider,
    SpeechAudioBufferRequestProvider,
    SpeechAuthorizationProvider,
    SpeechRecognitionTaskProvider,
    SpeechRecognizerProvider,
)


def _answer(respond: Callable, value, on_thread: bool) -> None:
    if on_thread:
        threading.Thread(target=respond, args=(value,), daemon=True).start()
    else:
        respond(value)


class PermissionState:
    """Mutable permission state shared by the permission doubles."""

    def __init__(self,
                 microphone: RecordPermission = RecordPermission.UNDETERMINED,
                 speech: SpeechAuthorizationStatus = SpeechAuthorizationStatus.NOT_DETERMINED):
        self.microphone = microphone
        self.speech = speech


class FakeAudioApplication(AudioApplicationProvider):

    def __init__(self, state: PermissionState):
        self.state = state

    @property
    def record_permission(self) -> RecordPermission:
        return self.state.microphone


class FakeAudioSession(AudioSessionProvider):

    def __init__(self,
                 actions: List[str],
                 state: Optional[PermissionState] = None,
                 grant_microphone: bool = True,
                 answer_on_thread: bool = False,
                 fail_deactivate: bool = False):
        self.actions = actions
        self.state = state or PermissionState(microphone=RecordPermission.GRANTED)
        self.grant_microphone = grant_microphone
        self.answer_on_thread = answer_on_thread
        self.fail_deactivate = fail_deactivate
        self.microphone_prompts = 0
        self.category = None
        self.options = ()
        self.is_active = False

    @property
    def record_permission(self) -> RecordPermission:
        return self.state.microphone

    def request_record_permission(self, response: Callable[[bool], None]) -> None:
        self.microphone_prompts += 1
        self.actions.append("request_microphone")
        self.state.microphone = (RecordPermission.GRANTED if self.grant_microphone
                                 else RecordPermission.DENIED)
        _answer(response, self.grant_microphone, self.answer_on_thread)

    def set_category(self, category, mode, options=()) -> None:
        self.category = (category, mode)
        self.options = tuple(options)
        self.actions.append("set_category")

    def set_active(self, active: bool, notify_others_on_deactivation: bool = False) -> None:
        self.actions.append("activate_session" if active else "deactivate_session")
        if not active and self.fail_deactivate:
            raise RuntimeError("session is busy")
        self.is_active = active


class FakeSpeechAuthorization(SpeechAuthorizationProvider):

    def __init__(self,
                 actions: List[str],
                 state: PermissionState,
                 answer: SpeechAuthorizationStatus = SpeechAuthorizationStatus.AUTHORIZED,
                 answer_on_thread: bool = False):
        self.actions = actions
        self.state = state
        self.answer = answer
        self.answer_on_thread = answer_on_thread
        self.prompts = 0

    def authorization_status(self) -> SpeechAuthorizationStatus:
        return self.state.speech

    def request_authorization(self, handler) -> None:
        self.prompts += 1
        self.actions.append("request_speech")
        self.state.speech = self.answer
        _answer(handler, self.answer, self.answer_on_thread)


class FakeInputNode(AudioInputNodeProvider):

    def __init__(self, actions: List[str]):
        self.actions = actions
        self.audio_format = AudioFormat()
        self.taps = {}
        self.install_count = 0

    def output_format(self, bus: int) -> AudioFormat:
        return self.audio_format

    def install_tap(self, bus, buffer_size, audio_format, block) -> None:
        if bus in self.taps:
            raise RuntimeError(f"tap already installed on bus {bus}")
        self.install_count += 1
        self.taps[bus] = (buffer_size, block)
        self.actions.append("install_tap")

    def remove_tap(self, bus: int) -> None:
        self.taps.pop(bus, None)
        self.actions.append("remove_tap")

    def push(self, data: bytes = b"\x00\x00" * 160, bus: int = 0) -> None:
        """Deliver a buffer to the tap as the engine would."""
        _, block = self.taps[bus]
        block(AudioBuffer(data=data, audio_format=self.audio_format))


class FakeAudioEngine(AudioEngineProvider):

    def __init__(self,
                 actions: List[str],
                 start_error: Optional[Exception] = None,
                 start_delay: float = 0.0):
        self.actions = actions
        self.start_error = start_error
        self.start_delay = start_delay
        self._input_node = FakeInputNode(actions)
        self._running = False
        self.start_count = 0

    @property
    def input_node(self) -> FakeInputNode:
        return self._input_node

    @property
    def is_running(self) -> bool:
        return self._running

    def prepare(self) -> None:
        self.actions.append("prepare_engine")

    def start(self) -> None:
        self.start_count += 1
        if self.start_delay:
            # Runs in an executor thread, like opening a real device
            time.sleep(self.start_delay)
        if self.start_error is not None:
            raise self.start_error
        self._running = True
        self.actions.append("start_engine")

    def stop(self) -> None:
        self._running = False
        self.actions.append("stop_engine")


class FakeRequest(SpeechAudioBufferRequestProvider):

    def __init__(self, actions: List[str]):
        self.actions = actions
        self.buffers: List[AudioBuffer] = []
        self.ended = False

    def append(self, buffer: AudioBuffer) -> None:
        self.buffers.append(buffer)

    def end_audio(self) -> None:
        self.ended = True
        self.actions.append("end_audio")


class FakeTask(SpeechRecognitionTaskProvider):

    def __init__(self, actions: List[str], request: FakeRequest, handler):
        self.actions = actions
        self.request = request
        self.handler = handler
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True
        self.actions.append("cancel_task")


class FakeRecognizer(SpeechRecognizerProvider):
    """Recognizer whose results are driven by the test."""

    def __init__(self, actions: List[str], available: bool = True, on_device: bool = True):
        self.actions = actions
        self.available = available
        self.on_device = on_device
        self.tasks: List[FakeTask] = []

    @property
    def is_available(self) -> bool:
        return self.available

    @property
    def supports_on_device_recognition(self) -> bool:
        return self.on_device

    def create_request(self) -> FakeRequest:
        return FakeRequest(self.actions)

    def recognition_task(self, request, result_handler) -> FakeTask:
        task = FakeTask(self.actions, request, result_handler)
        self.tasks.append(task)
        self.actions.append("start_task")
        return task

    @property
    def last_task(self) -> FakeTask:
        return self.tasks[-1]

    def emit(self, text: str, is_final: bool = False) -> None:
        self.last_task.handler(RecognitionResult(text=text, is_final=is_final), None)

    def fail(self, error: Exception) -> None:
        self.last_task.handler(None, error)
