"""Chat speech controller: turns user intents into session and storage calls."""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from ..errors import ChatStorageError, RecognitionFailed, Speak2ChatError
from ..models.access import AccessDecision, Denied, Ready, Restricted
from ..models.chat import ChatRow
from ..storage.chat_store import ChatStore
from ..transcription.stream import LiveTextStream
from .speech_permissions import SpeechPermissionsManager
from .transcriber import SpeechTranscriberManager

logger = logging.getLogger(__name__)

EMPTY_RECORDING_ERROR = "Empty recording"


class ChatSpeechState(Enum):
    CHECKING_ACCESS = "checking_access"
    NEEDS_ACCESS = "needs_access"
    REQUESTING_ACCESS = "requesting_access"
    DENIED = "denied"
    RESTRICTED = "restricted"
    READY = "ready"
    RECORDING = "recording"
    ERROR = "error"


@dataclass(frozen=True)
class ChatSpeechViewState:
    """What the screen should show."""
    kind: ChatSpeechState
    message: Optional[str] = None
    can_open_settings: bool = False


def view_state_for(access: AccessDecision) -> ChatSpeechViewState:
    if isinstance(access, Ready):
        return ChatSpeechViewState(ChatSpeechState.READY)
    if isinstance(access, Denied):
        return ChatSpeechViewState(ChatSpeechState.DENIED, access.message, access.can_open_settings)
    if isinstance(access, Restricted):
        return ChatSpeechViewState(ChatSpeechState.RESTRICTED, access.message)
    return ChatSpeechViewState(ChatSpeechState.NEEDS_ACCESS)


class ChatSpeechController:
    """Record, review and save one chat transcript."""

    def __init__(self,
                 transcriber: SpeechTranscriberManager,
                 permissions: SpeechPermissionsManager,
                 chat_store: ChatStore,
                 chat_id: Optional[str] = None,
                 settings_url: Optional[str] = None,
                 on_dismiss: Optional[Callable[[], None]] = None):
        """Initialize the controller.

        Args:
            transcriber: Transcription session
            permissions: Access resolver
            chat_store: Chat persistence
            chat_id: Chat to continue, or None for a new chat
            settings_url: Where the user can change denied permissions
            on_dismiss: Called after a successful save
        """
        self.transcriber = transcriber
        self.permissions = permissions
        self.chat_store = chat_store
        self.chat_id = chat_id
        self.settings_url = settings_url
        self.on_dismiss = on_dismiss

        self.view_state = ChatSpeechViewState(ChatSpeechState.CHECKING_ACCESS)
        self.messages: List[str] = []
        self.live_text = ""
        self.pending_url: Optional[str] = None

        self._start_task: Optional[asyncio.Task] = None
        self._stream_task: Optional[asyncio.Task] = None
        self._is_saving = False
        self._did_load_chat = False

    # Presentation

    @property
    def state(self) -> ChatSpeechState:
        return self.view_state.kind

    @property
    def can_save(self) -> bool:
        if self.state in (ChatSpeechState.RECORDING, ChatSpeechState.REQUESTING_ACCESS) or self._is_saving:
            return False
        return bool(self._normalized_messages())

    @property
    def is_record_button_disabled(self) -> bool:
        return self.state is ChatSpeechState.REQUESTING_ACCESS or self._is_saving

    @property
    def error_text(self) -> Optional[str]:
        if self.state is ChatSpeechState.ERROR:
            return self.view_state.message
        return None

    def open_settings(self) -> None:
        if self.view_state.kind is ChatSpeechState.DENIED and self.view_state.can_open_settings:
            self.pending_url = self.settings_url

    def clear_pending_url(self) -> None:
        self.pending_url = None

    def _set_error(self, message: str) -> None:
        self.view_state = ChatSpeechViewState(ChatSpeechState.ERROR, message)

    # Lifecycle

    async def on_appear(self) -> None:
        self.refresh_access()
        self.load_existing_chat()

    async def on_disappear(self) -> None:
        await self.stop_recording()

    def load_existing_chat(self) -> None:
        if self._did_load_chat:
            return
        self._did_load_chat = True

        raw = (self.chat_id or "").strip()
        if not raw:
            return

        try:
            row = self.chat_store.fetch_chat(raw)
        except ChatStorageError as e:
            self._set_error(e.message)
            return

        transcript = (row.last_message_preview or "").strip()
        parts = [part.strip() for part in transcript.split("\n") if part.strip()]
        if parts:
            self.messages = parts

    # Access

    def refresh_access(self) -> None:
        self.view_state = view_state_for(self.permissions.current_access())

    async def request_access(self) -> None:
        if self.state is ChatSpeechState.REQUESTING_ACCESS:
            return
        self.view_state = ChatSpeechViewState(ChatSpeechState.REQUESTING_ACCESS)
        access = await self.permissions.request_if_needed()
        self.view_state = view_state_for(access)

    def _ensure_ready_access(self) -> bool:
        access = self.permissions.current_access()
        if isinstance(access, Ready):
            return True
        self.view_state = view_state_for(access)
        return False

    # Recording

    async def record_tapped(self) -> None:
        if self.state is ChatSpeechState.RECORDING:
            await self.stop_recording()
        else:
            await self.start_recording()

    async def start_recording(self) -> None:
        if not self._ensure_ready_access():
            return
        if self.state is ChatSpeechState.RECORDING or self._start_task is not None:
            return

        self._start_task = asyncio.ensure_future(self._start())
        try:
            await self._start_task
        except asyncio.CancelledError:
            logger.info("Recording start cancelled")
        finally:
            self._start_task = None

    async def _start(self) -> None:
        try:
            stream = await self.transcriber.start()
        except Speak2ChatError as e:
            self._set_error(e.message)
            return
        except Exception as e:
            logger.error(f"Could not start recording: {e}", exc_info=True)
            self._set_error(str(e) or "Could not start recording")
            return

        self.view_state = ChatSpeechViewState(ChatSpeechState.RECORDING)
        if self._stream_task is not None:
            self._stream_task.cancel()
        self._stream_task = asyncio.ensure_future(self._consume(stream))

    async def _consume(self, stream: LiveTextStream) -> None:
        try:
            async for text in stream:
                self.live_text = text
        except RecognitionFailed as e:
            self._release_stream_task()
            self._set_error(e.detail)
            return

        # Recognizer delivered its final result
        self._release_stream_task()
        if self.state is ChatSpeechState.RECORDING:
            self._finish_recording()

    def _release_stream_task(self) -> None:
        if self._stream_task is asyncio.current_task():
            self._stream_task = None

    async def wait_until_stopped(self) -> None:
        """Wait for the live-text stream to end on its own."""
        task = self._stream_task
        if task is not None:
            await asyncio.wait([task])

    async def stop_recording(self) -> None:
        start_task, self._start_task = self._start_task, None
        if start_task is not None:
            start_task.cancel()
            await asyncio.wait([start_task])
            if self.state is not ChatSpeechState.RECORDING:
                await self.transcriber.stop()
                return

        if self.state is not ChatSpeechState.RECORDING:
            return

        task, self._stream_task = self._stream_task, None
        if task is not None:
            task.cancel()

        self._finish_recording()
        await self.transcriber.stop()

    def _finish_recording(self) -> None:
        final = self.live_text.strip()
        self.live_text = ""

        if final:
            self.messages.append(final)
            self.view_state = ChatSpeechViewState(ChatSpeechState.READY)
        elif self._normalized_messages():
            self.view_state = ChatSpeechViewState(ChatSpeechState.READY)
        else:
            self._set_error(EMPTY_RECORDING_ERROR)

    # Saving

    def _normalized_messages(self) -> List[str]:
        return [m.strip() for m in self.messages if m.strip()]

    async def save(self) -> Optional[ChatRow]:
        """Save all messages as one transcript. Returns the row, or None on failure."""
        if self._is_saving:
            return None
        self._is_saving = True
        try:
            if self.state is ChatSpeechState.RECORDING:
                await self.stop_recording()

            cleaned = self._normalized_messages()
            if not cleaned:
                self._set_error(EMPTY_RECORDING_ERROR)
                return None

            try:
                row = self.chat_store.upsert_chat(
                    chat_id=self.chat_id, title=None, transcript="\n".join(cleaned))
            except ChatStorageError as e:
                logger.error(f"Error saving chat: {e}")
                self._set_error(e.message)
                return None

            self.chat_id = row.id
            self.view_state = ChatSpeechViewState(ChatSpeechState.READY)
            if self.on_dismiss:
                self.on_dismiss()
            return row
        finally:
            self._is_saving = False
