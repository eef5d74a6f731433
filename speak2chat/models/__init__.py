"""Data models for the Speak2Chat application."""

from .access import AccessDecision, Ready, NeedsRequest, Denied, Restricted, PermissionResult
from .permissions import RecordPermission, SpeechAuthorizationStatus
from .audio import (
    AudioFormat,
    AudioBuffer,
    AudioSessionCategory,
    AudioSessionMode,
    AudioSessionOption,
)
from .transcription import RecognitionResult, SessionState
from .chat import ChatRow
from .events import SessionEvent, LiveTextEvent

__all__ = [
    "AccessDecision",
    "Ready",
    "NeedsRequest",
    "Denied",
    "Restricted",
    "PermissionResult",
    "RecordPermission",
    "SpeechAuthorizationStatus",
    "AudioFormat",
    "AudioBuffer",
    "AudioSessionCategory",
    "AudioSessionMode",
    "AudioSessionOption",
    "RecognitionResult",
    "SessionState",
    "ChatRow",
    # Pub/sub events
    "SessionEvent",
    "LiveTextEvent",
]
