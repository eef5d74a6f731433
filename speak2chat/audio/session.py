"""Desktop audio session: category bookkeeping and microphone consent."""

import logging
from typing import Callable, Iterable, Tuple

from ..models.audio import AudioSessionCategory, AudioSessionMode, AudioSessionOption
from ..models.permissions import RecordPermission
from ..permissions.consent import (
    DENIED,
    GRANTED,
    MICROPHONE,
    ConsentStore,
    ConsolePermissionPrompter,
    record_permission_for,
)
from ..providers.base import AudioSessionProvider

logger = logging.getLogger(__name__)


class DesktopAudioSession(AudioSessionProvider):
    """Audio session for desktop hosts.

    There is no OS-level audio session to negotiate, so category and
    activation are recorded for diagnostics only.
    """

    def __init__(self, consent: ConsentStore, prompter: ConsolePermissionPrompter):
        self.consent = consent
        self.prompter = prompter
        self.category = AudioSessionCategory.PLAYBACK
        self.mode = AudioSessionMode.DEFAULT
        self.options: Tuple[AudioSessionOption, ...] = ()
        self.is_active = False

    @property
    def record_permission(self) -> RecordPermission:
        return record_permission_for(self.consent.get(MICROPHONE))

    def request_record_permission(self, response: Callable[[bool], None]) -> None:
        current = self.record_permission
        if current is not RecordPermission.UNDETERMINED:
            response(current is RecordPermission.GRANTED)
            return

        def on_answer(granted: bool) -> None:
            self.consent.set(MICROPHONE, GRANTED if granted else DENIED)
            response(granted)

        self.prompter.ask("Allow Speak2Chat to use the microphone?", on_answer)

    def set_category(self,
                     category: AudioSessionCategory,
                     mode: AudioSessionMode,
                     options: Iterable[AudioSessionOption] = ()) -> None:
        self.category = category
        self.mode = mode
        self.options = tuple(options)
        logger.debug(f"Audio session category: {category.value}, mode: {mode.value}, "
                     f"options: {[o.value for o in self.options]}")

    def set_active(self, active: bool, notify_others_on_deactivation: bool = False) -> None:
        self.is_active = active
        logger.debug(f"Audio session active={active}")
