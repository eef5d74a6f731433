"""Desktop permission providers."""

from .consent import (
    ConsentStore,
    ConsolePermissionPrompter,
    ConsentAudioApplication,
    ConsentSpeechAuthorization,
)

__all__ = [
    "ConsentStore",
    "ConsolePermissionPrompter",
    "ConsentAudioApplication",
    "ConsentSpeechAuthorization",
]
