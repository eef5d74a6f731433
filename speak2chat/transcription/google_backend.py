"""Google Speech-to-Text streaming recognizer."""

import logging
import queue
import threading
from typing import Iterator, Optional

from google.api_core import exceptions as gax_exceptions
from google.cloud import speech
from google.oauth2 import service_account

from ..models.audio import AudioBuffer
from ..models.transcription import RecognitionResult
from ..providers.base import (
    RecognitionHandler,
    SpeechAudioBufferRequestProvider,
    SpeechRecognitionTaskProvider,
    SpeechRecognizerProvider,
)

logger = logging.getLogger(__name__)


class GoogleRecognitionRequest(SpeechAudioBufferRequestProvider):
    """Audio request fed by the tap and drained by the streaming thread."""

    def __init__(self):
        self.should_report_partial_results = False
        self.requires_on_device_recognition = False
        self._audio: "queue.Queue[Optional[bytes]]" = queue.Queue()
        self._ended = threading.Event()

    @property
    def ended(self) -> bool:
        return self._ended.is_set()

    def append(self, buffer: AudioBuffer) -> None:
        if self._ended.is_set():
            return
        self._audio.put(buffer.data)

    def end_audio(self) -> None:
        if self._ended.is_set():
            return
        self._ended.set()
        self._audio.put(None)

    def iter_audio(self) -> Iterator[bytes]:
        """Yield appended audio until `end_audio` is called."""
        while True:
            chunk = self._audio.get()
            if chunk is None:
                return
            yield chunk


class GoogleRecognitionTask(SpeechRecognitionTaskProvider):
    """Streaming recognition running on a background thread."""

    def __init__(self,
                 client: speech.SpeechClient,
                 streaming_config: speech.StreamingRecognitionConfig,
                 request: GoogleRecognitionRequest,
                 result_handler: RecognitionHandler):
        self.client = client
        self.streaming_config = streaming_config
        self.request = request
        self.result_handler = result_handler
        self._cancelled = threading.Event()
        self._concluded = False

        self.thread = threading.Thread(target=self._run, daemon=True)
        self.thread.name = "GoogleRecognitionThread"
        self.thread.start()

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Stop delivering results. The stream winds down once audio ends."""
        if self._cancelled.is_set():
            return
        self._cancelled.set()
        self.request.end_audio()
        logger.debug("Google recognition task cancelled")

    def _run(self) -> None:
        requests = (
            speech.StreamingRecognizeRequest(audio_content=chunk)
            for chunk in self.request.iter_audio()
        )
        try:
            responses = self.client.streaming_recognize(config=self.streaming_config, requests=requests)
            for response in responses:
                if self._cancelled.is_set():
                    break
                self._handle_response(response)
        except gax_exceptions.GoogleAPICallError as e:
            logger.error(f"Google STT streaming error: {e}")
            self._report_error(RuntimeError(f"Google Speech API error: {e}"))
        except Exception as e:
            logger.error(f"Google STT streaming failed: {e}", exc_info=True)
            self._report_error(e)
        else:
            if not self._concluded:
                # e.g. a single utterance stream timing out on silence
                logger.warning("Google STT stream ended without a final result")
                self._report_error(RuntimeError("Recognition ended without a result"))
        finally:
            self.request.end_audio()

    def _handle_response(self, response: speech.StreamingRecognizeResponse) -> None:
        for result in response.results:
            if not result.alternatives:
                continue
            alternative = result.alternatives[0]
            logger.debug(f"Transcript='{alternative.transcript}' (final={result.is_final})")
            if result.is_final:
                self._concluded = True
            self.result_handler(
                RecognitionResult(
                    text=alternative.transcript.strip(),
                    is_final=result.is_final,
                    confidence=alternative.confidence if result.is_final else None,
                ),
                None,
            )

    def _report_error(self, error: Exception) -> None:
        self._concluded = True
        if not self._cancelled.is_set():
            self.result_handler(None, error)


class GoogleSpeechRecognizer(SpeechRecognizerProvider):
    """Google Speech-to-Text streaming recognizer with interim results."""

    def __init__(self,
                 credentials_path: Optional[str] = None,
                 sample_rate: int = 16000,
                 language: str = "en-US",
                 model: str = "latest_long",
                 enable_automatic_punctuation: bool = True):
        """Initialize Google Speech recognizer.

        Args:
            credentials_path: Path to Google Cloud service account JSON file
            sample_rate: Sample rate of the audio delivered by the tap
            language: Language code (e.g., 'en-US', 'es-ES')
            model: Recognition model name
            enable_automatic_punctuation: Enable automatic punctuation
        """
        self.credentials_path = credentials_path
        self.sample_rate = sample_rate
        self.language = language
        self.model = model
        self.enable_automatic_punctuation = enable_automatic_punctuation
        self.client: Optional[speech.SpeechClient] = None
        self.project_id = None
        self.service_name = "Google Speech-to-Text"

    def initialize(self) -> bool:
        """Create the Speech client. Returns False if credentials cannot be loaded."""
        if not self.credentials_path:
            logger.error("Google credentials path is not configured")
            return False

        logger.info(f"Loading Google credentials from: {self.credentials_path}")
        try:
            credentials = service_account.Credentials.from_service_account_file(self.credentials_path)
        except (OSError, ValueError) as e:
            logger.error(f"Could not load Google credentials: {e}")
            return False

        self.client = speech.SpeechClient(credentials=credentials)
        self.project_id = credentials.project_id
        logger.info(f"Using Google Cloud project: {self.project_id}")
        return True

    @property
    def is_available(self) -> bool:
        return self.client is not None

    def create_request(self) -> GoogleRecognitionRequest:
        return GoogleRecognitionRequest()

    def streaming_config(self, request: SpeechAudioBufferRequestProvider) -> speech.StreamingRecognitionConfig:
        config = speech.RecognitionConfig(
            encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
            sample_rate_hertz=self.sample_rate,
            language_code=self.language,
            enable_automatic_punctuation=self.enable_automatic_punctuation,
            model=self.model,
        )
        return speech.StreamingRecognitionConfig(
            config=config,
            interim_results=request.should_report_partial_results,
            single_utterance=True,
        )

    def recognition_task(self,
                         request: SpeechAudioBufferRequestProvider,
                         result_handler: RecognitionHandler) -> GoogleRecognitionTask:
        if self.client is None:
            raise RuntimeError("Google Speech recognizer is not initialized")
        if not isinstance(request, GoogleRecognitionRequest):
            raise TypeError(f"Unsupported request type: {type(request).__name__}")
        if request.requires_on_device_recognition:
            raise RuntimeError(f"{self.service_name} cannot recognize on device")

        logger.info(f"Starting {self.service_name} streaming recognition ({self.language}, {self.model})")
        return GoogleRecognitionTask(
            client=self.client,
            streaming_config=self.streaming_config(request),
            request=request,
            result_handler=result_handler,
        )
