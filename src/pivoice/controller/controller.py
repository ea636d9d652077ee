"""Interaction controller: the push-to-talk state machine.

One actor thread owns the controller state and consumes an event queue.
Button watchers, capture sessions and worker threads only post events, so
no two transitions ever interleave. Blocking work (waiting for the capture,
running the pipeline, playing audio) happens on worker threads that report
back through the queue, which keeps the actor free to reject presses while
a session is busy.
"""

import concurrent.futures
import logging
import queue
import threading
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ..audio.session import AudioCaptureSession, CaptureResult
from ..errors import CaptureError, ConcurrentSessionRejected, PipelineError, SynthesisError
from ..feedback import AudioFeedback, FeedbackType
from ..llm import Message
from ..pipeline import OutcomeKind, PipelineOutcome, ResponsePipeline
from ..tts import SynthesisResult
from .state import (
    AnnouncementFinished,
    CaptureFinished,
    ConversationHistory,
    InteractionSession,
    InteractionState,
    PipelineFinished,
    ProviderSelection,
    RecordPressed,
    Shutdown,
    SwitchProviderPressed,
    SwitchVoicePressed,
)

if TYPE_CHECKING:
    from ..audio.capture import AudioCapture
    from ..audio.service import AudioPlaybackService
    from ..config import PiVoiceConfig
    from ..gpio import GPIOPorts

logger = logging.getLogger(__name__)

# Longest the shutdown path waits on any single thread or capture teardown
DEFAULT_SHUTDOWN_TIMEOUT_S = 5.0


@dataclass(frozen=True)
class _AnnounceRequested:
    text: str


def voice_label(voice: str) -> str:
    """Spoken name of a voice identifier.

    Piper model names look like ``en_US-lessac-medium``; the middle part is
    the speaker. Other identifiers are spoken as they are.
    """
    parts = voice.split("-")
    return parts[1] if len(parts) > 1 else voice


class InteractionController:
    """Coordinates buttons, capture, pipeline, playback and indicators.

    Example:
        controller = InteractionController.from_config(config)
        controller.start()
        ...
        controller.shutdown()
    """

    def __init__(
        self,
        ports: "GPIOPorts",
        capture: "AudioCapture",
        playback_service: "AudioPlaybackService",
        pipeline: ResponsePipeline,
        feedback: AudioFeedback,
        config: "PiVoiceConfig | None" = None,
    ) -> None:
        """Initialize the controller.

        Args:
            ports: Buttons and indicators
            capture: Microphone shared by every capture session
            playback_service: Speaker output for replies and announcements
            pipeline: Transcription, inference and synthesis
            feedback: Audible cues
            config: Full configuration (uses defaults if None)
        """
        from ..config import PiVoiceConfig

        self._config = config or PiVoiceConfig()
        self._ports = ports
        self._capture_device = capture
        self._playback = playback_service
        self._pipeline = pipeline
        self._feedback = feedback

        self._history = ConversationHistory(self._config.conversation.max_history)
        self._selection = ProviderSelection.create(
            pipeline.provider_names,
            self._config.tts.voices,
            self._config.llm.default_provider,
        )
        self._selection_lock = threading.Lock()

        self._state = InteractionState.IDLE
        self._state_cond = threading.Condition()
        self._session: InteractionSession | None = None
        self._capture: AudioCaptureSession | None = None
        self._token: uuid.UUID | None = None
        self._completed = 0
        self._announced = 0

        self._events: queue.Queue[Any] = queue.Queue()
        self._handlers: dict[type, Callable[[Any], None]] = {
            RecordPressed: self._on_record,
            SwitchProviderPressed: self._on_switch_provider,
            SwitchVoicePressed: self._on_switch_voice,
            CaptureFinished: self._on_capture_finished,
            PipelineFinished: self._on_pipeline_finished,
            AnnouncementFinished: self._on_announcement_finished,
            _AnnounceRequested: self._on_announce_requested,
        }
        self._actor: threading.Thread | None = None
        self._workers: list[threading.Thread] = []
        self._lifecycle_lock = threading.Lock()
        self._started = False
        self._shutdown_requested = False
        self._cleaned_up = False

    @classmethod
    def from_config(
        cls,
        config: "PiVoiceConfig",
        use_mock: bool = False,
    ) -> "InteractionController":
        """Build the controller and all of its collaborators.

        Args:
            config: Full configuration
            use_mock: Replace hardware, audio and providers with mocks.
                The ``testing`` section can mock each of them separately.
        """
        from ..audio import create_audio_capture, create_audio_playback
        from ..audio.service import AudioPlaybackService
        from ..feedback.audio import SoundFeedback
        from ..gpio import create_ports

        testing = config.testing
        mock_audio = use_mock or testing.mock_audio_enabled
        mock_gpio = use_mock or testing.mock_gpio_enabled
        mock_providers = use_mock or testing.mock_providers_enabled

        ports = create_ports(config.gpio, use_mock=mock_gpio)
        capture = create_audio_capture(config.audio, use_mock=mock_audio)
        playback = create_audio_playback(config.audio, use_mock=mock_audio)
        service = AudioPlaybackService.from_config(
            playback,
            config.playback,
            scratch_dir=config.recording.scratch_dir,
        )
        pipeline = ResponsePipeline.from_config(config, use_mock=mock_providers)
        feedback = SoundFeedback(playback, config.feedback)

        return cls(ports, capture, service, pipeline, feedback, config)

    # Public state

    @property
    def state(self) -> InteractionState:
        with self._state_cond:
            return self._state

    @property
    def selection(self) -> ProviderSelection:
        with self._selection_lock:
            return self._selection

    @property
    def history(self) -> ConversationHistory:
        return self._history

    @property
    def session(self) -> InteractionSession | None:
        return self._session

    @property
    def ports(self) -> "GPIOPorts":
        return self._ports

    @property
    def completed_sessions(self) -> int:
        """Number of record-to-speak cycles that returned to Idle."""
        with self._state_cond:
            return self._completed

    @property
    def is_running(self) -> bool:
        return self._started and not self._cleaned_up

    def wait_for_state(self, state: InteractionState, timeout: float | None = None) -> bool:
        """Block until the controller reaches ``state``.

        Returns:
            True if the state was reached within ``timeout``
        """
        with self._state_cond:
            return self._state_cond.wait_for(lambda: self._state is state, timeout=timeout)

    def wait_for_sessions(self, count: int, timeout: float | None = None) -> bool:
        """Block until ``count`` sessions have completed."""
        with self._state_cond:
            return self._state_cond.wait_for(lambda: self._completed >= count, timeout=timeout)

    def wait_for_announcements(self, count: int, timeout: float | None = None) -> bool:
        """Block until ``count`` announcements (replies included) have finished."""
        with self._state_cond:
            return self._state_cond.wait_for(lambda: self._announced >= count, timeout=timeout)

    # Lifecycle

    def start(self) -> None:
        """Light the status indicator, wire the buttons and start the actor."""
        with self._lifecycle_lock:
            if self._started:
                return
            self._started = True

        self._ports.status_led.on()
        self._ports.active_led.off()

        self._ports.record.when_pressed = lambda press: self.post(
            RecordPressed(press.timestamp_s)
        )
        self._ports.switch_model.when_pressed = lambda press: self.post(
            SwitchProviderPressed(press.timestamp_s)
        )
        self._ports.switch_voice.when_pressed = lambda press: self.post(
            SwitchVoicePressed(press.timestamp_s)
        )

        self._actor = threading.Thread(target=self._run, name="controller", daemon=True)
        self._actor.start()
        self._ports.start()

        selection = self.selection
        logger.info(
            f"Controller ready (model={selection.provider}, voice={selection.voice})"
        )
        if self._config.conversation.welcome_enabled:
            self.post(
                _AnnounceRequested(
                    f"Hello, I am ready. Using the {selection.provider} model "
                    f"and voice {voice_label(selection.voice)}."
                )
            )

    def post(self, event: Any) -> None:
        """Queue an event for the actor thread."""
        self._events.put(event)

    def shutdown(self, timeout: float = DEFAULT_SHUTDOWN_TIMEOUT_S) -> None:
        """Stop the controller from any state and run the cleanup pass.

        Safe to call more than once and from a signal handler. If the actor
        does not pick up the request within ``timeout`` the cleanup runs on
        the calling thread.
        """
        with self._lifecycle_lock:
            if self._shutdown_requested:
                return
            self._shutdown_requested = True

        logger.info("Shutting down controller")
        self._events.put(Shutdown())

        actor = self._actor
        if actor is not None and actor is not threading.current_thread():
            actor.join(timeout=timeout)
            if actor.is_alive():
                logger.warning("Controller actor did not stop in time, cleaning up directly")
        self._cleanup(timeout)

    # Actor

    def _run(self) -> None:
        while True:
            event = self._events.get()
            if isinstance(event, Shutdown):
                self._cleanup(DEFAULT_SHUTDOWN_TIMEOUT_S)
                return
            if self._shutdown_requested:
                logger.debug(f"Dropping {type(event).__name__} during shutdown")
                continue

            handler = self._handlers.get(type(event))
            if handler is None:
                logger.warning(f"Unhandled controller event: {event!r}")
                continue
            try:
                handler(event)
            except Exception:
                logger.exception(f"Error handling {type(event).__name__}")
                self._abort_session()

    def _set_state(self, state: InteractionState) -> None:
        with self._state_cond:
            previous = self._state
            self._state = state
            self._state_cond.notify_all()
        self._ports.active_led.set(state is InteractionState.RECORDING)
        if previous is not state:
            logger.debug(f"State: {previous.value} -> {state.value}")

    def _guard_idle(self, action: str) -> None:
        """Raise ConcurrentSessionRejected unless the controller is Idle."""
        if self._state is not InteractionState.IDLE:
            raise ConcurrentSessionRejected(f"{action} rejected while {self._state.value}")

    def _spawn(self, target: Callable[..., None], name: str, *args: Any) -> None:
        self._workers = [t for t in self._workers if t.is_alive()]
        thread = threading.Thread(target=target, name=name, args=args, daemon=True)
        self._workers.append(thread)
        thread.start()

    # Recording

    def _on_record(self, event: RecordPressed) -> None:
        if self._state is InteractionState.RECORDING and self._capture is not None:
            logger.info("Record pressed again, stopping recording")
            self._capture.request_stop()
            return

        try:
            self._guard_idle("Record")
        except ConcurrentSessionRejected as e:
            logger.info(f"Record press ignored: {e}")
            return

        session = InteractionSession()
        self._session = session
        self._token = session.id
        logger.info(f"Session {session.short_id} started")

        self._feedback.play(FeedbackType.RECORD_START, blocking=True)
        capture = AudioCaptureSession.from_config(
            self._capture_device,
            self._config.recording,
            chunk_size=self._config.audio.chunk_size,
        )
        try:
            capture.start()
        except CaptureError as e:
            self._on_capture_finished(CaptureFinished(session.id, error=e))
            return

        self._capture = capture
        self._set_state(InteractionState.RECORDING)
        self._spawn(self._await_capture, "capture-wait", session.id, capture)

    def _await_capture(self, token: uuid.UUID, capture: AudioCaptureSession) -> None:
        try:
            result = capture.wait()
        except Exception as e:
            self.post(CaptureFinished(token, error=e))
            return
        self.post(CaptureFinished(token, result=result))

    def _on_capture_finished(self, event: CaptureFinished) -> None:
        session = self._session
        if session is None or event.token != self._token:
            logger.debug("Ignoring capture result from a finished session")
            return

        self._capture = None
        session.state = InteractionState.PROCESSING
        self._set_state(InteractionState.PROCESSING)

        if event.error is not None or event.result is None:
            session.error = str(event.error)
            session.outcome = OutcomeKind.FAILED.value
            logger.error(f"Session {session.short_id} capture failed: {event.error}")
            self._feedback.play(FeedbackType.ERROR, blocking=True)
            self._announce(self._config.conversation.apology_text)
            return

        result = event.result
        session.captured_audio = result.audio
        session.stop_reason = result.reason.value
        self._feedback.play(FeedbackType.RECORD_END, blocking=True)

        self._spawn(
            self._process,
            "pipeline",
            session.id,
            session,
            result,
            self.selection,
            self._history.messages(),
        )

    # Processing

    def _process(
        self,
        token: uuid.UUID,
        session: InteractionSession,
        result: CaptureResult,
        selection: ProviderSelection,
        history: list[Message],
    ) -> None:
        try:
            if not result.speech_detected:
                logger.info("No speech above the silence threshold, skipping transcription")
                session.release_audio()
                outcome = PipelineOutcome.no_speech()
            else:
                outcome = self._pipeline.run(
                    session.take_audio(),
                    result.sample_rate,
                    history,
                    provider=selection.provider,
                    voice=selection.voice,
                    language=self._config.stt.language,
                    speech_language=self._config.tts.language,
                )
        except Exception as e:
            logger.exception("Response pipeline crashed")
            outcome = PipelineOutcome(kind=OutcomeKind.FAILED, error=PipelineError(str(e)))
        self.post(PipelineFinished(token, outcome))

    def _on_pipeline_finished(self, event: PipelineFinished) -> None:
        session = self._session
        if session is None or event.token != self._token:
            logger.debug("Ignoring pipeline result from a finished session")
            return

        outcome = event.outcome
        session.outcome = outcome.kind.value
        session.transcript = outcome.transcript or None

        if outcome.kind is OutcomeKind.REPLY and outcome.reply_text and outcome.speech:
            session.reply_text = outcome.reply_text
            self._history.append_exchange(outcome.transcript, outcome.reply_text)
            self._announce(speech=outcome.speech)
        elif outcome.kind is OutcomeKind.NO_SPEECH:
            self._announce(self._config.conversation.no_speech_text)
        else:
            session.error = str(outcome.error) if outcome.error else "no reply"
            self._announce(self._config.conversation.apology_text)

    # Announcing

    def _announcement_voice(self) -> str:
        return self._config.tts.announcement_voice or self.selection.voice

    def _announce(
        self,
        text: str | None = None,
        *,
        speech: SynthesisResult | None = None,
        voice: str | None = None,
        language: str | None = None,
    ) -> None:
        """Enter Announcing and play ``speech`` or a synthesis of ``text``."""
        if self._token is None:
            self._token = uuid.uuid4()
        if self._session is not None:
            self._session.state = InteractionState.ANNOUNCING
        self._set_state(InteractionState.ANNOUNCING)
        self._spawn(
            self._play_announcement,
            "announce",
            self._token,
            text,
            speech,
            voice or self._announcement_voice(),
            language or self._config.tts.announcement_language,
        )

    def _play_announcement(
        self,
        token: uuid.UUID,
        text: str | None,
        speech: SynthesisResult | None,
        voice: str,
        language: str,
    ) -> None:
        try:
            if speech is None and text:
                logger.info(f"Announcing: {text}")
                speech = self._pipeline.synthesize(text, voice, language)
            if speech is not None:
                self._playback.play_speech(speech)
        except SynthesisError as e:
            logger.error(f"Announcement synthesis failed: {e}")
            self._feedback.play(FeedbackType.ERROR, blocking=True)
        except (OSError, RuntimeError) as e:
            logger.error(f"Playback failed: {e}")
        finally:
            self.post(AnnouncementFinished(token))

    def _on_announcement_finished(self, event: AnnouncementFinished) -> None:
        if event.token != self._token:
            return

        session = self._session
        if session is not None:
            session.release_audio()
            logger.info(
                f"Session {session.short_id} finished "
                f"(outcome={session.outcome}, stop={session.stop_reason})"
            )
        self._session = None
        self._token = None
        # Counters and Idle change together so waiters never see one without the other
        with self._state_cond:
            self._announced += 1
            if session is not None:
                self._completed += 1
            self._set_state(InteractionState.IDLE)

    def _on_announce_requested(self, event: _AnnounceRequested) -> None:
        if self._state is not InteractionState.IDLE:
            logger.debug("Skipping announcement, controller is busy")
            return
        self._announce(event.text, voice=self.selection.voice)

    # Switches

    def _on_switch_provider(self, event: SwitchProviderPressed) -> None:
        try:
            self._guard_idle("Model switch")
        except ConcurrentSessionRejected as e:
            logger.info(f"{e}")
            self._feedback.play(FeedbackType.ERROR)
            return

        with self._selection_lock:
            self._history.clear()
            self._selection = self._selection.next_provider()
            selection = self._selection
        logger.info(f"Switched model provider to {selection.provider}, history cleared")

        self._feedback.play(FeedbackType.MODE_CHANGE, blocking=True)
        self._announce(f"Switched to {selection.provider} model")

    def _on_switch_voice(self, event: SwitchVoicePressed) -> None:
        try:
            self._guard_idle("Voice switch")
        except ConcurrentSessionRejected as e:
            logger.info(f"{e}")
            self._feedback.play(FeedbackType.ERROR)
            return

        with self._selection_lock:
            self._selection = self._selection.next_voice()
            selection = self._selection
        logger.info(f"Switched voice to {selection.voice}")

        self._feedback.play(FeedbackType.MODE_CHANGE, blocking=True)
        self._announce(
            f"Switched to voice {voice_label(selection.voice)}",
            voice=selection.voice,
        )

    # Failure and shutdown

    def _abort_session(self) -> None:
        """Drop the current session after an unexpected handler error."""
        capture, self._capture = self._capture, None
        if capture is not None:
            try:
                capture.request_stop()
            except CaptureError as e:
                logger.warning(f"Could not stop aborted capture: {e}")
        if self._session is not None:
            self._session.release_audio()
        self._session = None
        self._token = None
        self._feedback.play(FeedbackType.ERROR)
        self._set_state(InteractionState.IDLE)

    def _cleanup(self, timeout: float) -> None:
        """Release everything the controller owns. Runs at most once.

        Order: stop capture, drop session audio, stop playback and delete
        scratch files, turn off the active indicator, close the buttons, turn
        off the status indicator, release the indicator lines.
        """
        with self._lifecycle_lock:
            if self._cleaned_up:
                return
            self._cleaned_up = True

        capture, self._capture = self._capture, None
        if capture is not None:
            try:
                capture.stop(timeout=timeout)
            except (CaptureError, concurrent.futures.TimeoutError) as e:
                logger.warning(f"Capture did not stop cleanly: {e}")

        session = self._session
        if session is not None:
            session.release_audio()
            logger.info(f"Session {session.short_id} abandoned in {self._state.value}")

        try:
            self._playback.cleanup()
        except Exception:
            logger.exception("Playback cleanup failed")

        self._ports.active_led.off()
        self._ports.close_inputs()
        self._ports.status_led.off()
        self._ports.active_led.close()
        self._ports.status_led.close()

        deadline = time.monotonic() + timeout
        current = threading.current_thread()
        for thread in self._workers:
            if thread is not current:
                thread.join(timeout=max(0.0, deadline - time.monotonic()))
        alive = [t.name for t in self._workers if t.is_alive()]
        if alive:
            logger.warning(f"Workers still running after cleanup: {', '.join(alive)}")
        logger.info("Controller stopped")


__all__ = ["InteractionController", "voice_label"]
