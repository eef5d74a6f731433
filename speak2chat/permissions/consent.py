"""Desktop permission providers backed by persisted user consent.

Desktop platforms have no system prompt for microphone or recognition access,
so consent is asked once on the console and remembered in a YAML file. An
administrator policy in the configuration can mark speech recognition as
restricted, which no prompt can override.
"""

import logging
import threading
from pathlib import Path
from typing import Callable, Dict, Optional

import yaml
from rich.console import Console
from rich.prompt import Confirm

from ..models.permissions import RecordPermission, SpeechAuthorizationStatus
from ..providers.base import AudioApplicationProvider, SpeechAuthorizationProvider

logger = logging.getLogger(__name__)

MICROPHONE = "microphone"
SPEECH_RECOGNITION = "speech_recognition"

UNDETERMINED = "undetermined"
GRANTED = "granted"
DENIED = "denied"


class ConsentStore:
    """Remembers the user's consent decisions in a YAML file."""

    def __init__(self, consent_file: Optional[str] = None):
        """Initialize consent store.

        Args:
            consent_file: Path of the YAML file; None keeps consent in memory
        """
        self.consent_file = Path(consent_file) if consent_file else None
        self._lock = threading.Lock()
        self._consent: Dict[str, str] = self._load()

    def _load(self) -> Dict[str, str]:
        if self.consent_file is None or not self.consent_file.exists():
            return {}
        try:
            with open(self.consent_file, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
            return {str(k): str(v) for k, v in data.items()}
        except yaml.YAMLError as e:
            logger.error(f"Invalid consent file {self.consent_file}: {e}")
            return {}

    def get(self, capability: str) -> str:
        with self._lock:
            return self._consent.get(capability, UNDETERMINED)

    def set(self, capability: str, decision: str) -> None:
        with self._lock:
            self._consent[capability] = decision
            snapshot = dict(self._consent)

        logger.info(f"Consent for {capability} set to: {decision}")
        if self.consent_file is not None:
            self.consent_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.consent_file, 'w', encoding='utf-8') as f:
                yaml.safe_dump(snapshot, f)


class ConsolePermissionPrompter:
    """Asks yes/no consent questions on the console from a background thread."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def ask(self, question: str, response: Callable[[bool], None]) -> None:
        """Ask `question` without blocking the caller; `response` gets the answer."""
        def prompt() -> None:
            try:
                answer = Confirm.ask(question, console=self.console, default=True)
            except (EOFError, KeyboardInterrupt):
                answer = False
            response(bool(answer))

        thread = threading.Thread(target=prompt, daemon=True)
        thread.name = "PermissionPromptThread"
        thread.start()


class ConsentAudioApplication(AudioApplicationProvider):
    """Microphone permission as remembered in the consent store."""

    def __init__(self, consent: ConsentStore):
        self.consent = consent

    @property
    def record_permission(self) -> RecordPermission:
        return record_permission_for(self.consent.get(MICROPHONE))


class ConsentSpeechAuthorization(SpeechAuthorizationProvider):
    """Speech recognition authorization from consent plus administrator policy."""

    def __init__(self,
                 consent: ConsentStore,
                 prompter: ConsolePermissionPrompter,
                 restricted: bool = False):
        """Initialize speech authorization.

        Args:
            consent: Consent store shared with the microphone providers
            prompter: Console prompter used for the authorization request
            restricted: Policy forbids speech recognition on this machine
        """
        self.consent = consent
        self.prompter = prompter
        self.restricted = restricted

    def authorization_status(self) -> SpeechAuthorizationStatus:
        if self.restricted:
            return SpeechAuthorizationStatus.RESTRICTED
        decision = self.consent.get(SPEECH_RECOGNITION)
        if decision == GRANTED:
            return SpeechAuthorizationStatus.AUTHORIZED
        if decision == DENIED:
            return SpeechAuthorizationStatus.DENIED
        return SpeechAuthorizationStatus.NOT_DETERMINED

    def request_authorization(self,
                              handler: Callable[[SpeechAuthorizationStatus], None]) -> None:
        status = self.authorization_status()
        if status is not SpeechAuthorizationStatus.NOT_DETERMINED:
            handler(status)
            return

        def on_answer(granted: bool) -> None:
            self.consent.set(SPEECH_RECOGNITION, GRANTED if granted else DENIED)
            handler(self.authorization_status())

        self.prompter.ask("Allow speech audio to be sent for recognition?", on_answer)


def record_permission_for(decision: str) -> RecordPermission:
    if decision == GRANTED:
        return RecordPermission.GRANTED
    if decision == DENIED:
        return RecordPermission.DENIED
    return RecordPermission.UNDETERMINED
