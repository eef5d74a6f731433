"""Transcription module for Speak2Chat."""

from .stream import LiveTextStream
from .publisher import SessionEventPublisher, SESSION_TOPIC, LIVE_TEXT_TOPIC

__all__ = [
    "LiveTextStream",
    "SessionEventPublisher",
    "SESSION_TOPIC",
    "LIVE_TEXT_TOPIC",
]
