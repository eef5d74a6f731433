"""Access resolver for microphone and speech recognition permissions."""

import asyncio
import logging
from typing import Any, Callable, Optional

from ..errors import (
    AccessDenied,
    MicrophoneDenied,
    PermissionIssue,
    SpeechDenied,
    SpeechRestricted,
)
from ..models.access import (
    AccessDecision,
    Denied,
    NeedsRequest,
    PermissionResult,
    Ready,
    Restricted,
)
from ..models.permissions import RecordPermission, SpeechAuthorizationStatus
from ..providers.base import (
    AudioApplicationProvider,
    AudioSessionProvider,
    SpeechAuthorizationProvider,
)
from .permission_gate import PermissionGate

logger = logging.getLogger(__name__)


def decide_access(microphone: RecordPermission,
                  speech: SpeechAuthorizationStatus) -> AccessDecision:
    """Map the two permission states to an access decision (first match wins)."""
    if speech is SpeechAuthorizationStatus.RESTRICTED:
        return Restricted(message=SpeechRestricted.message)

    if microphone is RecordPermission.DENIED:
        return Denied(message=MicrophoneDenied.message, can_open_settings=True)

    if speech is SpeechAuthorizationStatus.DENIED:
        return Denied(message=SpeechDenied.message, can_open_settings=True)

    if (microphone is RecordPermission.UNDETERMINED
            or speech is SpeechAuthorizationStatus.NOT_DETERMINED):
        return NeedsRequest()

    if (microphone is RecordPermission.GRANTED
            and speech is SpeechAuthorizationStatus.AUTHORIZED):
        return Ready()

    return NeedsRequest()


def decision_for_error(error: Exception) -> AccessDecision:
    """Map a failed permission flow to an access decision."""
    if isinstance(error, SpeechRestricted):
        return Restricted(message=error.message)

    message = getattr(error, "message", None) or str(error) or AccessDenied.message
    can_open_settings = getattr(error, "can_open_settings", True)
    return Denied(message=message, can_open_settings=can_open_settings)


class SpeechPermissionsManager:
    """Resolves and requests the permissions a transcription session needs."""

    def __init__(self,
                 permission_gate: PermissionGate,
                 audio_application: AudioApplicationProvider,
                 audio_session: AudioSessionProvider,
                 speech_authorization: SpeechAuthorizationProvider):
        """Initialize the permissions manager.

        Args:
            permission_gate: Gate shared by every caller requesting permissions
            audio_application: Source of the current microphone permission
            audio_session: Used to prompt for microphone access
            speech_authorization: Speech recognition authorization provider
        """
        self.permission_gate = permission_gate
        self.audio_application = audio_application
        self.audio_session = audio_session
        self.speech_authorization = speech_authorization

    def current_access(self) -> AccessDecision:
        """Read both permission states and decide. Never suspends or caches."""
        microphone = self.audio_application.record_permission
        speech = self.speech_authorization.authorization_status()
        return decide_access(microphone, speech)

    async def request_if_needed(self) -> AccessDecision:
        """Prompt for missing permissions, at most one prompt flow at a time."""
        access = self.current_access()
        if not isinstance(access, NeedsRequest):
            return access

        joined = await self.permission_gate.join_or_become_owner()
        if joined is not None:
            logger.debug("Permission request already in flight, reusing its result")
            return self._decision_for_result(joined)

        try:
            await self._request_permissions()
        except PermissionIssue as issue:
            logger.info(f"Permission request refused: {issue.message}")
            result = PermissionResult.failure(issue)
        except asyncio.CancelledError:
            self.permission_gate.complete(PermissionResult.failure(AccessDenied()))
            raise
        except Exception as e:
            logger.error(f"Permission request failed: {e}", exc_info=True)
            result = PermissionResult.failure(e)
        else:
            result = PermissionResult.success()

        self.permission_gate.complete(result)
        return self._decision_for_result(result)

    def _decision_for_result(self, result: PermissionResult) -> AccessDecision:
        if result.ok:
            return self.current_access()
        return decision_for_error(result.error)

    async def _request_permissions(self) -> None:
        # Microphone first: the recognizer is useless without the audio tap
        await self._request_microphone()
        await self._request_speech_authorization()

    async def _request_microphone(self) -> None:
        permission = self.audio_session.record_permission
        if permission is RecordPermission.GRANTED:
            return
        if permission is RecordPermission.DENIED:
            raise MicrophoneDenied()

        logger.info("Requesting microphone permission")
        granted = await _await_callback(self.audio_session.request_record_permission)
        if not granted:
            raise MicrophoneDenied()

    async def _request_speech_authorization(self) -> None:
        status = self.speech_authorization.authorization_status()
        if status is SpeechAuthorizationStatus.NOT_DETERMINED:
            logger.info("Requesting speech recognition authorization")
            status = await _await_callback(self.speech_authorization.request_authorization)

        if status is SpeechAuthorizationStatus.AUTHORIZED:
            return
        if status is SpeechAuthorizationStatus.RESTRICTED:
            raise SpeechRestricted()
        raise SpeechDenied(status)


async def _await_callback(request: Callable[[Callable[[Any], None]], None]) -> Any:
    """Bridge a one-shot callback API into an awaitable.

    The callback may fire on any thread; only the first response counts.
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def resolve(value: Any) -> None:
        if not future.done():
            future.set_result(value)

    def respond(value: Any) -> None:
        loop.call_soon_threadsafe(resolve, value)

    request(respond)
    return await future
