"""Services layer for Speak2Chat application logic."""

from .permission_gate import PermissionGate
from .speech_permissions import SpeechPermissionsManager, decide_access
from .transcriber import SpeechTranscriberManager
from .chat_speech import ChatSpeechController, ChatSpeechState

__all__ = [
    "PermissionGate",
    "SpeechPermissionsManager",
    "decide_access",
    "SpeechTranscriberManager",
    "ChatSpeechController",
    "ChatSpeechState",
]
