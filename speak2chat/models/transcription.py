"""Transcription-related data models."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class RecognitionResult:
    """Text produced by one recognizer callback."""
    text: str
    is_final: bool = False
    confidence: Optional[float] = None


class SessionState(Enum):
    """Transcription session lifecycle."""
    IDLE = "idle"
    STARTING = "starting"
    ACTIVE = "active"
    STOPPING = "stopping"
