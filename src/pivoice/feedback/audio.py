"""Audio feedback implementation.

Provides auditory feedback using:
- WAV files from the configured sounds directory
- Generated tones (fallback)
"""

import logging
import math
import struct
import threading
import wave
from pathlib import Path
from typing import TYPE_CHECKING

from . import FeedbackType

if TYPE_CHECKING:
    from ..audio.playback import AudioPlayback
    from ..config import FeedbackConfig

logger = logging.getLogger(__name__)

TONE_SAMPLE_RATE = 22050

# Default frequencies for generated tones (Hz)
TONE_FREQUENCIES: dict[FeedbackType, int] = {
    FeedbackType.RECORD_START: 880,  # A5 - attention getter
    FeedbackType.RECORD_END: 523,  # C5 - lower, closes the recording
    FeedbackType.ERROR: 220,  # A3 - low, indicates problem
    FeedbackType.MODE_CHANGE: 660,  # E5 - distinctive
}

# Default durations for generated tones (ms)
TONE_DURATIONS: dict[FeedbackType, int] = {
    FeedbackType.RECORD_START: 100,
    FeedbackType.RECORD_END: 100,
    FeedbackType.ERROR: 300,
    FeedbackType.MODE_CHANGE: 150,
}


def generate_tone(frequency: int, duration_ms: int, sample_rate: int = TONE_SAMPLE_RATE) -> bytes:
    """Generate a sine wave tone with a 10ms attack and release.

    Args:
        frequency: Tone frequency in Hz
        duration_ms: Duration in milliseconds
        sample_rate: Sample rate in Hz

    Returns:
        Raw PCM audio bytes (16-bit mono)
    """
    num_samples = int(sample_rate * duration_ms / 1000)
    ramp = max(1, int(sample_rate * 0.01))
    audio_data = []

    for i in range(num_samples):
        envelope = min(1.0, i / ramp, (num_samples - i) / ramp)
        sample = int(32767 * 0.5 * envelope * math.sin(2 * math.pi * frequency * i / sample_rate))
        audio_data.append(struct.pack("<h", sample))

    return b"".join(audio_data)


def load_wav_file(path: Path) -> tuple[bytes, int]:
    """Load a WAV file and return audio data and sample rate.

    Raises:
        FileNotFoundError: If file doesn't exist
    """
    if not path.exists():
        raise FileNotFoundError(f"WAV file not found: {path}")

    with wave.open(str(path), "rb") as wf:
        sample_rate = wf.getframerate()
        audio_data = wf.readframes(wf.getnframes())

    return audio_data, sample_rate


class SoundFeedback:
    """Audio feedback using sound files or generated tones.

    Sound files are loaded once from the configured directory; a cue with
    no usable file falls back to a generated tone. Playback errors are
    logged, never raised, since a missing cue must not break an interaction.
    """

    def __init__(
        self,
        playback: "AudioPlayback",
        config: "FeedbackConfig | None" = None,
    ) -> None:
        """Initialize audio feedback.

        Args:
            playback: AudioPlayback instance for playing sounds
            config: Feedback configuration
        """
        self._playback = playback
        self._enabled = True
        self._sound_cache: dict[FeedbackType, tuple[bytes, int]] = {}
        self._lock = threading.Lock()
        sounds_dir: Path | None = None
        sound_files: dict[FeedbackType, str] = {}

        if config is not None:
            self._enabled = config.audio_enabled
            sounds_dir = Path(config.sounds_dir) if config.sounds_dir else None
            for key, filename in config.sounds.items():
                try:
                    sound_files[FeedbackType(key)] = filename
                except ValueError:
                    logger.warning(f"Unknown feedback sound '{key}' ignored")

        if sounds_dir is not None:
            self._preload_sounds(sounds_dir, sound_files)

    def _preload_sounds(self, sounds_dir: Path, sound_files: dict[FeedbackType, str]) -> None:
        for feedback_type, filename in sound_files.items():
            path = sounds_dir / filename
            if not path.exists():
                continue
            try:
                self._sound_cache[feedback_type] = load_wav_file(path)
            except (OSError, wave.Error) as e:
                logger.warning(f"Could not load sound {path}: {e}")

    def play(self, feedback_type: FeedbackType, *, blocking: bool = False) -> None:
        """Play feedback sound for the given event type."""
        if not self._enabled:
            return

        if feedback_type in self._sound_cache:
            audio_data, sample_rate = self._sound_cache[feedback_type]
        else:
            frequency = TONE_FREQUENCIES.get(feedback_type, 440)
            duration = TONE_DURATIONS.get(feedback_type, 100)
            audio_data, sample_rate = generate_tone(frequency, duration), TONE_SAMPLE_RATE

        try:
            with self._lock:
                if blocking:
                    self._playback.play(audio_data, sample_rate)
                else:
                    self._playback.play_async(audio_data, sample_rate)
        except (OSError, RuntimeError) as e:
            logger.warning(f"Feedback sound {feedback_type.value} failed: {e}")

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled

    @property
    def is_enabled(self) -> bool:
        return self._enabled


class MockFeedback:
    """Mock feedback for testing.

    Records all feedback events without playing sounds.
    """

    def __init__(self) -> None:
        self._enabled = True
        self._events: list[FeedbackType] = []
        self._lock = threading.Lock()

    def play(self, feedback_type: FeedbackType, *, blocking: bool = False) -> None:  # noqa: ARG002
        """Record feedback event."""
        if self._enabled:
            with self._lock:
                self._events.append(feedback_type)

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def events(self) -> list[FeedbackType]:
        """Get list of recorded events."""
        with self._lock:
            return self._events.copy()

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


__all__ = [
    "MockFeedback",
    "SoundFeedback",
    "TONE_FREQUENCIES",
    "generate_tone",
    "load_wav_file",
]
