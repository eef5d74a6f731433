"""Exception types raised by Speak2Chat services."""

from typing import Optional

from .models.permissions import SpeechAuthorizationStatus


class Speak2ChatError(Exception):
    """Base class for all Speak2Chat errors."""

    message = "Speak2Chat error"

    def __init__(self, message: Optional[str] = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


# Permission flow

class PermissionIssue(Speak2ChatError):
    """A permission required for recording or recognition is missing."""

    message = "Recording and speech recognition access is denied."
    can_open_settings = True


class MicrophoneDenied(PermissionIssue):
    message = "Microphone access is denied. Enable it in Settings."


class SpeechDenied(PermissionIssue):
    message = "Speech recognition access is denied. Enable it in Settings."

    def __init__(self, status: SpeechAuthorizationStatus = SpeechAuthorizationStatus.DENIED):
        self.status = status
        super().__init__()


class SpeechRestricted(PermissionIssue):
    message = "Speech recognition is restricted by the system (Screen Time/MDM)."
    can_open_settings = False


class AccessDenied(PermissionIssue):
    """Generic denial used when the permission flow was interrupted."""


# Recognizer availability

class SpeechAvailabilityError(Speak2ChatError):
    """The recognizer cannot be used to start a session."""


class RecognizerUnavailable(SpeechAvailabilityError):
    message = "Speech recognizer is not available"


class OnDeviceNotSupported(SpeechAvailabilityError):
    message = "On-device speech recognition is not available on this device"


class RecognitionFailed(Speak2ChatError):
    """Recognition failed while a session was active."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


# Chat storage

class ChatStorageError(Speak2ChatError):
    """Base class for chat persistence errors."""


class StoresNotLoaded(ChatStorageError):
    message = "Chat stores are not loaded yet."


class InvalidChatID(ChatStorageError):
    message = "Chat ID is invalid."


class TextMissing(ChatStorageError):
    message = "Text is empty to save"


class ChatNotFound(ChatStorageError):

    def __init__(self, chat_id: str):
        self.chat_id = chat_id
        super().__init__(f"Chat not found (id: {chat_id}).")
