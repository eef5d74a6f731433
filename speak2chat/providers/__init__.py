"""Capability provider interfaces."""

from .base import (
    AudioApplicationProvider,
    AudioSessionProvider,
    AudioInputNodeProvider,
    AudioEngineProvider,
    SpeechAudioBufferRequestProvider,
    SpeechRecognitionTaskProvider,
    SpeechAuthorizationProvider,
    SpeechRecognizerProvider,
    TapBlock,
    RecognitionHandler,
)

__all__ = [
    "AudioApplicationProvider",
    "AudioSessionProvider",
    "AudioInputNodeProvider",
    "AudioEngineProvider",
    "SpeechAudioBufferRequestProvider",
    "SpeechRecognitionTaskProvider",
    "SpeechAuthorizationProvider",
    "SpeechRecognizerProvider",
    "TapBlock",
    "RecognitionHandler",
]
