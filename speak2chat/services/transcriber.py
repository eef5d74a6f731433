"""Transcription session: microphone tap to recognizer to live-text stream."""

import asyncio
import logging
from functools import partial
from typing import Callable, Optional

from ..errors import OnDeviceNotSupported, RecognitionFailed, RecognizerUnavailable
from ..models.audio import AudioSessionCategory, AudioSessionMode, AudioSessionOption
from ..models.transcription import RecognitionResult, SessionState
from ..providers.base import (
    AudioEngineProvider,
    AudioSessionProvider,
    SpeechAudioBufferRequestProvider,
    SpeechRecognitionTaskProvider,
    SpeechRecognizerProvider,
)
from ..transcription.publisher import SessionEventPublisher
from ..transcription.stream import LiveTextStream

logger = logging.getLogger(__name__)

SESSION_OPTIONS = (
    AudioSessionOption.DUCK_OTHERS,
    AudioSessionOption.DEFAULT_TO_SPEAKER,
    AudioSessionOption.ALLOW_BLUETOOTH,
)


class SpeechTranscriberManager:
    """Owns the audio engine, the recognition request/task and the live-text stream.

    All state is mutated on the event loop that called `start`. Recognizer
    callbacks arriving on platform threads are marshaled back onto that loop.
    There is exactly one teardown path (`_teardown`), shared by `stop`, final
    results, recognition errors and stream disposal.
    """

    def __init__(self,
                 audio_engine: AudioEngineProvider,
                 audio_session: AudioSessionProvider,
                 recognizer: Optional[SpeechRecognizerProvider],
                 publisher: Optional[SessionEventPublisher] = None,
                 tap_buffer_size: int = 1024,
                 on_device_only: bool = True,
                 bus: int = 0):
        """Initialize the transcription session.

        Args:
            audio_engine: Engine whose input node receives the tap
            audio_session: Audio session to configure and activate
            recognizer: Speech recognizer, or None when none is installed
            publisher: Optional pub/sub publisher for session events
            tap_buffer_size: Frames per buffer requested from the tap
            on_device_only: Require on-device recognition for every request
            bus: Input node bus the tap is installed on
        """
        self.audio_engine = audio_engine
        self.audio_session = audio_session
        self.recognizer = recognizer
        self.publisher = publisher
        self.tap_buffer_size = tap_buffer_size
        self.on_device_only = on_device_only
        self.bus = bus

        self._state = SessionState.IDLE
        self._active_request: Optional[SpeechAudioBufferRequestProvider] = None
        self._active_task: Optional[SpeechRecognitionTaskProvider] = None
        self._has_active_tap = False
        self._output_stream: Optional[LiveTextStream] = None
        self._audio_session_active = False

        self._pending_start: Optional[asyncio.Future] = None
        self._generation = 0

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is SessionState.ACTIVE

    @property
    def audio_engine_running(self) -> bool:
        return self.audio_engine.is_running

    @property
    def has_active_tap(self) -> bool:
        return self._has_active_tap

    @property
    def active_request(self) -> Optional[SpeechAudioBufferRequestProvider]:
        return self._active_request

    @property
    def active_task(self) -> Optional[SpeechRecognitionTaskProvider]:
        return self._active_task

    @property
    def output_stream(self) -> Optional[LiveTextStream]:
        return self._output_stream

    async def start(self) -> LiveTextStream:
        """Start capturing and recognizing speech.

        Returns:
            Live-text stream of partial and final transcriptions

        Raises:
            RecognizerUnavailable: No recognizer, or it reports unavailable
            OnDeviceNotSupported: On-device recognition required but unsupported
        """
        pending = self._pending_start
        if pending is not None:
            logger.warning("start() already in flight, waiting for it")
            return await asyncio.shield(pending)

        recognizer = self.recognizer
        if recognizer is None or not recognizer.is_available:
            raise RecognizerUnavailable()
        if self.on_device_only and not recognizer.supports_on_device_recognition:
            raise OnDeviceNotSupported()

        loop = asyncio.get_running_loop()
        pending = loop.create_future()
        self._pending_start = pending
        try:
            stream = await self._start_capture(recognizer, loop)
        except asyncio.CancelledError:
            pending.cancel()
            raise
        except Exception as e:
            if not pending.done():
                pending.set_exception(e)
                # Joiners re-raise it; mark retrieved for the owner
                pending.exception()
            raise
        else:
            if not pending.done():
                pending.set_result(stream)
            return stream
        finally:
            self._pending_start = None

    async def stop(self) -> None:
        """Stop the session. Safe to call at any time; no-op when idle."""
        pending = self._pending_start
        if pending is not None:
            # Let the in-flight start settle; its caller sees its outcome
            await asyncio.wait([pending])
        self._teardown(reason="stop")

    async def _start_capture(self,
                             recognizer: SpeechRecognizerProvider,
                             loop: asyncio.AbstractEventLoop) -> LiveTextStream:
        self._teardown(reason="restart")

        self._state = SessionState.STARTING
        self._generation += 1
        generation = self._generation
        logger.info("Starting transcription session")

        try:
            self.audio_session.set_category(
                AudioSessionCategory.PLAY_AND_RECORD,
                AudioSessionMode.MEASUREMENT,
                SESSION_OPTIONS,
            )
            self.audio_session.set_active(True, notify_others_on_deactivation=True)
            self._audio_session_active = True

            request = recognizer.create_request()
            request.should_report_partial_results = True
            request.requires_on_device_recognition = self.on_device_only
            self._active_request = request
            self._output_stream = LiveTextStream(
                on_dispose=partial(self._on_stream_disposed, generation))

            input_node = self.audio_engine.input_node
            audio_format = input_node.output_format(self.bus)
            input_node.install_tap(self.bus, self.tap_buffer_size, audio_format, request.append)
            self._has_active_tap = True

            self.audio_engine.prepare()
            # Opening the input device blocks
            engine_start = loop.run_in_executor(None, self.audio_engine.start)
            try:
                await asyncio.shield(engine_start)
            except asyncio.CancelledError:
                # The executor thread cannot be interrupted; tear down after it
                await asyncio.wait([engine_start])
                raise

            handler = partial(self._on_recognition_callback, loop, generation)
            self._active_task = recognizer.recognition_task(request, handler)
        except BaseException:
            logger.error("Failed to start transcription session", exc_info=True)
            self._teardown(reason="start_failed")
            raise

        self._state = SessionState.ACTIVE
        if self.publisher:
            self.publisher.begin_session()
        logger.info("Transcription session active")
        return self._output_stream

    def _on_recognition_callback(self,
                                 loop: asyncio.AbstractEventLoop,
                                 generation: int,
                                 result: Optional[RecognitionResult],
                                 error: Optional[Exception]) -> None:
        # Runs on the recognizer's thread
        try:
            loop.call_soon_threadsafe(self._handle_recognition, generation, result, error)
        except RuntimeError:
            logger.debug("Event loop closed, dropping recognition callback")

    def _handle_recognition(self,
                            generation: int,
                            result: Optional[RecognitionResult],
                            error: Optional[Exception]) -> None:
        stream = self._output_stream
        if generation != self._generation or stream is None:
            logger.debug("Ignoring recognition callback for a finished session")
            return

        if error is not None:
            detail = str(error) or error.__class__.__name__
            logger.error(f"Recognition failed: {detail}")
            self._teardown(reason="error", error=RecognitionFailed(detail))
            return

        if result is None:
            return

        stream.yield_text(result.text)
        if self.publisher:
            self.publisher.publish_live_text(result.text, is_final=result.is_final)

        if result.is_final:
            logger.info(f"Final transcription received ({len(result.text)} chars)")
            self._teardown(reason="final")

    def _on_stream_disposed(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._teardown(reason="disposed")

    def _has_remnants(self) -> bool:
        return (self._state is not SessionState.IDLE
                or self._active_task is not None
                or self._active_request is not None
                or self._has_active_tap
                or self._output_stream is not None
                or self._audio_session_active
                or self.audio_engine.is_running)

    def _teardown(self, reason: str, error: Optional[Exception] = None) -> None:
        """Release everything in fixed order: task, request, engine, tap, stream, session."""
        if not self._has_remnants():
            return

        was_active = self._state is SessionState.ACTIVE
        self._state = SessionState.STOPPING
        self._generation += 1
        logger.info(f"Tearing down transcription session ({reason})")

        task, self._active_task = self._active_task, None
        if task is not None:
            _cleanup_step("cancel recognition task", task.cancel)

        request, self._active_request = self._active_request, None
        if request is not None:
            _cleanup_step("end request audio", request.end_audio)

        if self.audio_engine.is_running:
            _cleanup_step("stop audio engine", self.audio_engine.stop)

        if self._has_active_tap:
            self._has_active_tap = False
            _cleanup_step("remove tap", partial(self.audio_engine.input_node.remove_tap, self.bus))

        stream, self._output_stream = self._output_stream, None
        if stream is not None:
            stream.finish(error)

        if self._audio_session_active:
            self._audio_session_active = False
            _cleanup_step("deactivate audio session",
                          partial(self.audio_session.set_active, False,
                                  notify_others_on_deactivation=True))

        self._state = SessionState.IDLE

        if was_active and self.publisher:
            if error is not None:
                self.publisher.publish_session_event("error", {"detail": str(error)})
            else:
                self.publisher.publish_session_event("stopped", {"reason": reason})


def _cleanup_step(name: str, step: Callable[[], None]) -> None:
    try:
        step()
    except Exception as e:
        logger.warning(f"Error during teardown ({name}): {e}")
