"""Permission state models mirrored from the platform providers."""

from enum import Enum


class RecordPermission(Enum):
    """Microphone record permission."""
    UNDETERMINED = "undetermined"
    DENIED = "denied"
    GRANTED = "granted"


class SpeechAuthorizationStatus(Enum):
    """Speech recognizer authorization status."""
    NOT_DETERMINED = "not_determined"
    DENIED = "denied"
    RESTRICTED = "restricted"
    AUTHORIZED = "authorized"
