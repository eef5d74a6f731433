"""Pytest configuration and fixtures for Speak2Chat tests."""

import pytest
import tempfile
import logging
from unittest.mock import Mock, patch
import numpy as np

from speak2chat.models.permissions import RecordPermission, SpeechAuthorizationStatus
from speak2chat.services.permission_gate import PermissionGate
from speak2chat.services.speech_permissions import SpeechPermissionsManager
from speak2chat.services.transcriber import SpeechTranscriberManager
from speak2chat.storage.chat_store import ChatStore

from fakes import (
    FakeAudioApplication,
    FakeAudioEngine,
    FakeAudioSession,
    FakeRecognizer,
    FakeSpeechAuthorization,
    PermissionState,
)


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def sample_audio_chunk():
    """Generate a sample audio chunk for testing."""
    # Generate 1024 samples of 16-bit audio (sine wave)
    sample_rate = 16000
    duration = 1024 / sample_rate  # ~0.064 seconds
    freq = 440  # A4 note

    t = np.linspace(0, duration, 1024, False)
    wave_data = np.sin(2 * np.pi * freq * t)

    # Convert to 16-bit integers
    audio_data = (wave_data * 32767).astype(np.int16)
    return audio_data.tobytes()


@pytest.fixture
def mock_pyaudio():
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()

        # Configure mock stream
        mock_stream.read.return_value = b'\x00' * 2048  # Silent audio

        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }


@pytest.fixture
def actions():
    """Shared action log written by all provider doubles."""
    return []


@pytest.fixture
def permission_state():
    return PermissionState()


@pytest.fixture
def granted_state():
    return PermissionState(RecordPermission.GRANTED, SpeechAuthorizationStatus.AUTHORIZED)


@pytest.fixture
def make_permissions(actions):
    """Factory building a SpeechPermissionsManager over in-memory doubles."""
    def build(state, grant_microphone=True,
              speech_answer=SpeechAuthorizationStatus.AUTHORIZED,
              answer_on_thread=False):
        session = FakeAudioSession(actions, state, grant_microphone=grant_microphone,
                                   answer_on_thread=answer_on_thread)
        authorization = FakeSpeechAuthorization(actions, state, answer=speech_answer,
                                                answer_on_thread=answer_on_thread)
        manager = SpeechPermissionsManager(
            permission_gate=PermissionGate(),
            audio_application=FakeAudioApplication(state),
            audio_session=session,
            speech_authorization=authorization,
        )
        return manager, session, authorization

    return build


@pytest.fixture
def audio_session(actions):
    return FakeAudioSession(actions)


@pytest.fixture
def audio_engine(actions):
    return FakeAudioEngine(actions)


@pytest.fixture
def recognizer(actions):
    return FakeRecognizer(actions)


@pytest.fixture
def transcriber(audio_engine, audio_session, recognizer):
    return SpeechTranscriberManager(
        audio_engine=audio_engine,
        audio_session=audio_session,
        recognizer=recognizer,
    )


@pytest.fixture
def chat_store():
    """Loaded in-memory chat store."""
    store = ChatStore(in_memory=True)
    store.load()
    return store
