"""Integration tests for the push-to-talk interaction controller.

Every collaborator is a mock: GPIO lines, microphone, speaker, transcriber,
providers and synthesizer. Presses are injected through the mock GPIO lines
and travel the same path as hardware edges.
"""

import itertools
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from unittest import mock

import pytest

from pivoice.audio import AudioPlaybackService
from pivoice.audio.mock_capture import MockAudioCapture, MockAudioPlayback, generate_pcm
from pivoice.config import PiVoiceConfig
from pivoice.config.loader import load_config
from pivoice.controller import InteractionController, InteractionState
from pivoice.feedback import FeedbackType
from pivoice.feedback.audio import MockFeedback
from pivoice.gpio import GPIOPorts, create_ports
from pivoice.llm import MockLanguageModel
from pivoice.pipeline import ResponsePipeline
from pivoice.stt import MockTranscriber
from pivoice.tts import MockSynthesizer

WAIT_S = 5.0
BYTES_PER_SECOND = 16000 * 2
STATUS_PIN = 22
ACTIVE_PIN = 23


@dataclass
class Harness:
    """A controller wired to mocks, plus handles on every mock."""

    controller: InteractionController
    config: PiVoiceConfig
    ports: GPIOPorts
    capture: MockAudioCapture
    playback: MockAudioPlayback
    transcriber: MockTranscriber
    providers: dict[str, MockLanguageModel]
    synthesizer: MockSynthesizer
    feedback: MockFeedback
    led_writes: list[tuple[int, bool]]
    scratch_dir: Path

    def __post_init__(self) -> None:
        self._clock = itertools.count(start=100.0, step=10.0)

    def press(self, button: str) -> None:
        """Press a button, spaced well outside the debounce window."""
        self.ports.push(button, next(self._clock))


def record_led_writes(ports: GPIOPorts) -> list[tuple[int, bool]]:
    """Log every indicator write, across both lines, in order."""
    writes: list[tuple[int, bool]] = []
    for pin, line in ports.mock_lines.outputs.items():
        original = line.write

        def write(value: bool, pin: int = pin, original=original) -> None:
            original(value)
            writes.append((pin, value))

        line.write = write
    return writes


def build_harness(
    scratch_dir: Path,
    realtime: bool = False,
    welcome: bool = False,
    playback_delay_s: float = 0.0,
) -> Harness:
    config = load_config(profile="test")
    config.recording.max_duration_s = 0.5
    config.recording.silence_duration_s = 0.3
    config.recording.scratch_dir = str(scratch_dir)
    config.conversation.welcome_enabled = welcome

    ports = create_ports(config.gpio, use_mock=True)
    led_writes = record_led_writes(ports)
    capture = MockAudioCapture(realtime=realtime)
    playback = MockAudioPlayback(delay_s=playback_delay_s)
    transcriber = MockTranscriber()
    transcriber.set_response("What is the capital of France?")
    providers = {name: MockLanguageModel(f"mock-{name}") for name in config.llm.cycle}
    for model in providers.values():
        model.set_response("Paris is the capital of France.")
    synthesizer = MockSynthesizer()
    feedback = MockFeedback()

    pipeline = ResponsePipeline(
        transcriber,
        providers,
        synthesizer,
        system_prompt=config.llm.system_prompt,
    )
    service = AudioPlaybackService(playback, scratch_dir=scratch_dir)
    controller = InteractionController(ports, capture, service, pipeline, feedback, config)

    return Harness(
        controller=controller,
        config=config,
        ports=ports,
        capture=capture,
        playback=playback,
        transcriber=transcriber,
        providers=providers,
        synthesizer=synthesizer,
        feedback=feedback,
        led_writes=led_writes,
        scratch_dir=scratch_dir,
    )


class TestInteractionFlow:
    """End-to-end sessions through the controller."""

    @pytest.fixture
    def harness(self, tmp_path: Path) -> Iterator[Harness]:
        """Started controller on mocks; shut down after the test."""
        h = build_harness(tmp_path)
        h.controller.start()
        yield h
        h.controller.shutdown()

    def speak(self, h: Harness, duration_ms: int = 2000) -> None:
        h.capture.set_audio_data(generate_pcm(duration_ms, amplitude=8000))

    def test_reply_session(self, harness: Harness) -> None:
        """Test a full record, transcribe, infer, speak cycle."""
        self.speak(harness, 200)

        harness.press("record")

        assert harness.controller.wait_for_sessions(1, timeout=WAIT_S)
        assert harness.controller.state is InteractionState.IDLE
        assert harness.synthesizer.synthesized_texts == ["Paris is the capital of France."]
        assert harness.controller.history.messages() == [
            {"role": "user", "content": "What is the capital of France?"},
            {"role": "assistant", "content": "Paris is the capital of France."},
        ]
        assert harness.providers["ollama"].call_count == 1
        assert harness.feedback.events[:2] == [FeedbackType.RECORD_START, FeedbackType.RECORD_END]
        assert harness.playback.play_count == 1

    def test_silence_is_no_speech(self, harness: Harness) -> None:
        """Test that a silent recording speaks the no-speech prompt without STT."""
        harness.press("record")

        assert harness.controller.wait_for_sessions(1, timeout=WAIT_S)
        assert harness.transcriber.call_count == 0
        assert harness.synthesizer.synthesized_texts == [
            harness.config.conversation.no_speech_text
        ]
        assert len(harness.controller.history) == 0
        assert harness.ports.active_led.value is False
        assert harness.controller.state is InteractionState.IDLE

    def test_continuous_sound_cut_at_max_duration(self, harness: Harness) -> None:
        """Test that continuous sound stops at exactly the maximum duration."""
        self.speak(harness, 3000)

        with mock.patch.object(
            harness.transcriber, "transcribe", wraps=harness.transcriber.transcribe
        ) as transcribe:
            harness.press("record")
            assert harness.controller.wait_for_sessions(1, timeout=WAIT_S)

        audio = transcribe.call_args.args[0]
        assert len(audio) == int(0.5 * BYTES_PER_SECOND)
        assert harness.synthesizer.synthesized_texts == ["Paris is the capital of France."]

    def test_inference_failure_speaks_apology(self, harness: Harness) -> None:
        """Test that a provider failure is answered with the apology."""
        self.speak(harness, 200)
        harness.providers["ollama"].set_error("connection refused")

        harness.press("record")

        assert harness.controller.wait_for_sessions(1, timeout=WAIT_S)
        assert harness.synthesizer.synthesized_texts[-1] == harness.config.conversation.apology_text
        assert len(harness.controller.history) == 0
        assert harness.providers["claude"].call_count == 0
        assert harness.controller.state is InteractionState.IDLE

    def test_transcription_failure_speaks_apology(self, harness: Harness) -> None:
        """Test that an STT failure is an apology, not a no-speech prompt."""
        self.speak(harness, 200)
        harness.transcriber.set_error("decoder error")

        harness.press("record")

        assert harness.controller.wait_for_sessions(1, timeout=WAIT_S)
        assert harness.synthesizer.synthesized_texts == [harness.config.conversation.apology_text]

    def test_reply_synthesis_failure_speaks_apology(self, harness: Harness) -> None:
        """Test that a reply that cannot be synthesized is followed by the apology."""
        self.speak(harness, 200)
        harness.synthesizer.set_error(RuntimeError("voice model missing"), fail_on="Paris")

        harness.press("record")

        assert harness.controller.wait_for_sessions(1, timeout=WAIT_S)
        assert harness.synthesizer.synthesized_texts[-1] == harness.config.conversation.apology_text
        assert len(harness.controller.history) == 0

    def test_apology_synthesis_failure_plays_error_cue(self, harness: Harness) -> None:
        """Test that an unspeakable apology falls back to the error cue."""
        self.speak(harness, 200)
        harness.synthesizer.set_error(RuntimeError("engine down"))

        harness.press("record")

        assert harness.controller.wait_for_sessions(1, timeout=WAIT_S)
        assert harness.feedback.events[-1] is FeedbackType.ERROR
        assert harness.playback.play_count == 0
        assert harness.controller.state is InteractionState.IDLE

    def test_capture_start_failure(self, harness: Harness) -> None:
        """Test that a microphone that fails to open gets an apology."""
        harness.capture.set_start_error(OSError("no input device"))

        harness.press("record")

        assert harness.controller.wait_for_sessions(1, timeout=WAIT_S)
        assert FeedbackType.ERROR in harness.feedback.events
        assert harness.synthesizer.synthesized_texts == [harness.config.conversation.apology_text]
        assert harness.transcriber.call_count == 0

    def test_capture_read_failure(self, harness: Harness) -> None:
        """Test that a microphone failing mid-recording gets an apology."""
        self.speak(harness, 2000)
        harness.capture.set_read_error(OSError("device unplugged"), after_chunks=2)

        harness.press("record")

        assert harness.controller.wait_for_sessions(1, timeout=WAIT_S)
        assert harness.synthesizer.synthesized_texts == [harness.config.conversation.apology_text]
        assert list(harness.scratch_dir.iterdir()) == []

    def test_sessions_in_sequence_share_history(self, harness: Harness) -> None:
        """Test that consecutive sessions pass earlier turns to the provider."""
        for expected in (1, 2):
            self.speak(harness, 200)
            harness.press("record")
            assert harness.controller.wait_for_sessions(expected, timeout=WAIT_S)

        messages = harness.providers["ollama"].last_messages
        assert len(messages) == 4
        assert messages[1]["content"] == "What is the capital of France?"
        assert len(harness.controller.history) == 4

    def test_active_indicator_on_only_while_recording(self, harness: Harness) -> None:
        """Test that the active indicator lights for recording and goes dark after."""
        self.speak(harness, 200)

        harness.press("record")
        assert harness.controller.wait_for_sessions(1, timeout=WAIT_S)

        active = [value for pin, value in harness.led_writes if pin == ACTIVE_PIN]
        assert True in active
        assert active[-1] is False
        assert harness.ports.status_led.value is True


class TestSingleFlight:
    """Presses while a session is in flight."""

    @pytest.fixture
    def harness(self, tmp_path: Path) -> Iterator[Harness]:
        """Controller whose transcriber is slow enough to observe Processing."""
        h = build_harness(tmp_path)
        h.transcriber.set_latency(500)
        h.capture.set_audio_data(generate_pcm(200, amplitude=8000))
        h.controller.start()
        yield h
        h.controller.shutdown()

    def test_record_during_processing_ignored(self, harness: Harness) -> None:
        """Test that a record press while Processing starts no second capture."""
        harness.press("record")
        assert harness.controller.wait_for_state(InteractionState.PROCESSING, timeout=WAIT_S)

        harness.press("record")

        assert harness.controller.wait_for_sessions(1, timeout=WAIT_S)
        assert harness.capture.start_count == 1
        assert harness.transcriber.call_count == 1
        assert len(harness.controller.history) == 2

    def test_switch_during_processing_rejected(self, harness: Harness) -> None:
        """Test that switches while busy leave the selection and history alone."""
        harness.press("record")
        assert harness.controller.wait_for_state(InteractionState.PROCESSING, timeout=WAIT_S)

        harness.press("switch_model")
        harness.press("switch_voice")

        assert harness.controller.wait_for_sessions(1, timeout=WAIT_S)
        assert harness.controller.wait_for_state(InteractionState.IDLE, timeout=WAIT_S)
        selection = harness.controller.selection
        assert selection.provider == "ollama"
        assert selection.voice == "en_US-lessac-medium"
        assert harness.feedback.events.count(FeedbackType.ERROR) == 2
        assert FeedbackType.MODE_CHANGE not in harness.feedback.events
        assert len(harness.controller.history) == 2


class TestManualStop:
    """Second record press ends the recording."""

    def test_second_press_stops_recording(self, tmp_path: Path) -> None:
        """Test that pressing record again stops a recording before its limit."""
        h = build_harness(tmp_path, realtime=True)
        h.config.recording.max_duration_s = 5.0
        h.capture.set_audio_data(generate_pcm(10000, amplitude=8000))
        h.controller.start()
        try:
            with mock.patch.object(
                h.transcriber, "transcribe", wraps=h.transcriber.transcribe
            ) as transcribe:
                h.press("record")
                assert h.controller.wait_for_state(InteractionState.RECORDING, timeout=WAIT_S)
                h.press("record")
                assert h.controller.wait_for_sessions(1, timeout=WAIT_S)

            assert len(transcribe.call_args.args[0]) < 5 * BYTES_PER_SECOND
            assert h.capture.start_count == 1
        finally:
            h.controller.shutdown()


class TestPressesWhileBusy:
    """Switch and record presses during Recording and Announcing."""

    def assert_selection_untouched(self, h: Harness, rejected: int) -> None:
        assert h.controller.wait_for_sessions(1, timeout=WAIT_S)
        assert h.controller.wait_for_state(InteractionState.IDLE, timeout=WAIT_S)
        assert h.controller.selection.provider == "ollama"
        assert h.controller.selection.voice == "en_US-lessac-medium"
        assert h.feedback.events.count(FeedbackType.ERROR) == rejected
        assert FeedbackType.MODE_CHANGE not in h.feedback.events
        assert len(h.controller.history) == 2

    def test_switches_during_recording_rejected(self, tmp_path: Path) -> None:
        """Test that switches while Recording keep the selection and the recording."""
        h = build_harness(tmp_path, realtime=True)
        h.config.recording.max_duration_s = 5.0
        h.capture.set_audio_data(generate_pcm(10000, amplitude=8000))
        h.controller.start()
        try:
            h.press("record")
            assert h.controller.wait_for_state(InteractionState.RECORDING, timeout=WAIT_S)

            h.press("switch_model")
            h.press("switch_voice")
            h.press("record")

            self.assert_selection_untouched(h, rejected=2)
            assert h.capture.start_count == 1
            assert h.synthesizer.synthesized_texts == ["Paris is the capital of France."]
        finally:
            h.controller.shutdown()

    def test_switches_during_announcing_rejected(self, tmp_path: Path) -> None:
        """Test that switches while the reply plays keep the selection and history."""
        h = build_harness(tmp_path, playback_delay_s=1.0)
        h.capture.set_audio_data(generate_pcm(200, amplitude=8000))
        h.controller.start()
        try:
            h.press("record")
            assert h.controller.wait_for_state(InteractionState.ANNOUNCING, timeout=WAIT_S)

            h.press("switch_model")
            h.press("switch_voice")

            self.assert_selection_untouched(h, rejected=2)
            assert h.controller.wait_for_announcements(1, timeout=0)
            assert h.providers["ollama"].call_count == 1
        finally:
            h.controller.shutdown()

    def test_record_during_announcing_ignored(self, tmp_path: Path) -> None:
        """Test that a record press while the reply plays starts no second capture."""
        h = build_harness(tmp_path, playback_delay_s=1.0)
        h.capture.set_audio_data(generate_pcm(200, amplitude=8000))
        h.controller.start()
        try:
            h.press("record")
            assert h.controller.wait_for_state(InteractionState.ANNOUNCING, timeout=WAIT_S)

            h.press("record")

            self.assert_selection_untouched(h, rejected=0)
            assert h.capture.start_count == 1
            assert h.transcriber.call_count == 1
            assert h.controller.completed_sessions == 1
        finally:
            h.controller.shutdown()


class TestSwitches:
    """Provider and voice switching while Idle."""

    @pytest.fixture
    def harness(self, tmp_path: Path) -> Iterator[Harness]:
        h = build_harness(tmp_path)
        h.controller.start()
        yield h
        h.controller.shutdown()

    def test_provider_switch_clears_history(self, harness: Harness) -> None:
        """Test that switching provider clears history and announces the model."""
        harness.capture.set_audio_data(generate_pcm(200, amplitude=8000))
        harness.press("record")
        assert harness.controller.wait_for_sessions(1, timeout=WAIT_S)
        assert len(harness.controller.history) == 2

        harness.press("switch_model")

        assert harness.controller.wait_for_announcements(2, timeout=WAIT_S)
        assert harness.controller.selection.provider == "claude"
        assert len(harness.controller.history) == 0
        assert harness.synthesizer.synthesized_texts[-1] == "Switched to claude model"
        assert FeedbackType.MODE_CHANGE in harness.feedback.events
        assert harness.controller.state is InteractionState.IDLE

    def test_next_session_uses_new_provider(self, harness: Harness) -> None:
        """Test that the session after a switch goes to the new provider only."""
        harness.press("switch_model")
        assert harness.controller.wait_for_announcements(1, timeout=WAIT_S)

        harness.capture.set_audio_data(generate_pcm(200, amplitude=8000))
        harness.press("record")

        assert harness.controller.wait_for_sessions(1, timeout=WAIT_S)
        assert harness.providers["claude"].call_count == 1
        assert harness.providers["ollama"].call_count == 0

    def test_provider_cycle_wraps(self, harness: Harness) -> None:
        """Test that switching past the last provider returns to the first."""
        for count in range(1, 4):
            harness.press("switch_model")
            assert harness.controller.wait_for_announcements(count, timeout=WAIT_S)

        assert harness.controller.selection.provider == "ollama"

    def test_voice_switch(self, harness: Harness) -> None:
        """Test that the confirmation is spoken in the newly selected voice."""
        harness.capture.set_audio_data(generate_pcm(200, amplitude=8000))
        harness.press("record")
        assert harness.controller.wait_for_sessions(1, timeout=WAIT_S)

        harness.press("switch_voice")

        assert harness.controller.wait_for_announcements(2, timeout=WAIT_S)
        assert harness.synthesizer.calls[-1] == (
            "Switched to voice amy",
            "en_US-amy-medium",
            "en",
        )
        assert len(harness.controller.history) == 2

    def test_reply_uses_selected_voice(self, harness: Harness) -> None:
        """Test that replies are synthesized with the current voice."""
        harness.press("switch_voice")
        assert harness.controller.wait_for_announcements(1, timeout=WAIT_S)

        harness.capture.set_audio_data(generate_pcm(200, amplitude=8000))
        harness.press("record")

        assert harness.controller.wait_for_sessions(1, timeout=WAIT_S)
        text, voice, _ = harness.synthesizer.calls[-1]
        assert text == "Paris is the capital of France."
        assert voice == "en_US-amy-medium"


class TestStartupAndShutdown:
    """Welcome line and the cleanup pass."""

    def test_welcome_announcement(self, tmp_path: Path) -> None:
        """Test that start() announces the provider and voice."""
        h = build_harness(tmp_path, welcome=True)
        h.controller.start()
        try:
            assert h.controller.wait_for_announcements(1, timeout=WAIT_S)
            assert h.synthesizer.synthesized_texts == [
                "Hello, I am ready. Using the ollama model and voice lessac."
            ]
            assert h.controller.completed_sessions == 0
        finally:
            h.controller.shutdown()

    def test_shutdown_when_idle(self, tmp_path: Path) -> None:
        """Test that shutdown turns the status indicator off last."""
        h = build_harness(tmp_path)
        h.controller.start()

        h.controller.shutdown()

        assert h.led_writes[-1] == (STATUS_PIN, False)
        assert all(line.released for line in h.ports.mock_lines.outputs.values())
        assert all(line.released for line in h.ports.mock_lines.inputs.values())
        assert h.controller.is_running is False

    def test_shutdown_during_processing(self, tmp_path: Path) -> None:
        """Test that shutdown mid-session leaves no files and dark indicators."""
        h = build_harness(tmp_path)
        h.transcriber.set_latency(500)
        h.capture.set_audio_data(generate_pcm(200, amplitude=8000))
        h.controller.start()
        h.press("record")
        assert h.controller.wait_for_state(InteractionState.PROCESSING, timeout=WAIT_S)

        h.controller.shutdown(timeout=WAIT_S)

        assert list(tmp_path.iterdir()) == []
        active = [i for i, (pin, _) in enumerate(h.led_writes) if pin == ACTIVE_PIN]
        assert h.led_writes[active[-1]] == (ACTIVE_PIN, False)
        assert h.led_writes[-1] == (STATUS_PIN, False)
        assert active[-1] < len(h.led_writes) - 1
        assert h.playback.play_count == 0

    def test_shutdown_during_recording(self, tmp_path: Path) -> None:
        """Test that shutdown stops an open recording."""
        h = build_harness(tmp_path, realtime=True)
        h.config.recording.max_duration_s = 5.0
        h.capture.set_audio_data(generate_pcm(10000, amplitude=8000))
        h.controller.start()
        h.press("record")
        assert h.controller.wait_for_state(InteractionState.RECORDING, timeout=WAIT_S)

        h.controller.shutdown(timeout=WAIT_S)

        assert h.capture.stop_count == 1
        assert h.ports.active_led.value is False
        assert h.led_writes[-1] == (STATUS_PIN, False)
        assert h.transcriber.call_count == 0

    def test_shutdown_is_idempotent(self, tmp_path: Path) -> None:
        """Test that repeated shutdown calls run the cleanup once."""
        h = build_harness(tmp_path)
        h.controller.start()

        h.controller.shutdown()
        writes = len(h.led_writes)
        h.controller.shutdown()

        assert len(h.led_writes) == writes

    def test_presses_after_shutdown_ignored(self, tmp_path: Path) -> None:
        """Test that nothing is captured once the controller has stopped."""
        h = build_harness(tmp_path)
        h.controller.start()
        h.controller.shutdown()

        h.ports.push("record", 1.0)

        assert h.capture.start_count == 0


class TestFromConfig:
    """Controller assembled from the test profile."""

    def test_mock_assembly_runs_a_session(self) -> None:
        """Test that from_config with mocks completes a silent session."""
        config = load_config(profile="test")
        config.recording.silence_duration_s = 0.3
        config.recording.spool_to_disk = False
        controller = InteractionController.from_config(config, use_mock=True)
        controller.start()
        try:
            controller.ports.push("record", 1.0)
            assert controller.wait_for_sessions(1, timeout=WAIT_S)
            assert controller.state is InteractionState.IDLE
        finally:
            controller.shutdown()
