"""Audio capture and audio session adapters."""

from .engine import PyAudioEngine, PyAudioInputNode
from .session import DesktopAudioSession

__all__ = [
    'PyAudioEngine',
    'PyAudioInputNode',
    'DesktopAudioSession',
]
