"""Mock audio devices for testing.

Provides mock implementations of AudioCapture and AudioPlayback that can be
used for testing and hardware-less development.
"""

import math
import struct
import threading
import time
import wave
from pathlib import Path

from .capture import AudioChunk


def generate_pcm(duration_ms: int, sample_rate: int = 16000, amplitude: int = 0) -> bytes:
    """Generate 16-bit mono PCM.

    Args:
        duration_ms: Length of the audio
        sample_rate: Sample rate in Hz
        amplitude: Peak amplitude of a 440Hz sine (0 gives silence)

    Returns:
        Raw PCM bytes
    """
    num_samples = int(sample_rate * duration_ms / 1000)
    if amplitude == 0:
        return bytes(num_samples * 2)
    return b"".join(
        struct.pack("<h", int(amplitude * math.sin(2 * math.pi * 440 * i / sample_rate)))
        for i in range(num_samples)
    )


class MockAudioCapture:
    """Mock microphone.

    Can simulate audio capture from:
    - Silence (default, endless)
    - WAV files or raw PCM (followed by endless silence, or by end of
      stream when ``finite`` is set)

    With ``realtime`` set, reads pace themselves at the chunk duration like a
    real device. Device failures can be injected on start or after a number
    of chunks.

    Implements the AudioCapture protocol.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        sample_width: int = 2,
        realtime: bool = False,
    ) -> None:
        """Initialize mock capture.

        Args:
            sample_rate: Sample rate in Hz
            channels: Number of audio channels
            sample_width: Bytes per sample
            realtime: Sleep for each chunk's duration on read
        """
        self._sample_rate = sample_rate
        self._channels = channels
        self._sample_width = sample_width
        self.realtime = realtime
        self.finite = False
        self._is_active = False
        self._audio_source: bytes | None = None
        self._source_position = 0
        self._start_time_ms = 0
        self._start_error: Exception | None = None
        self._read_error: Exception | None = None
        self._fail_after_chunks: int | None = None
        self._chunks_read = 0
        self._lock = threading.Lock()
        self.start_count = 0
        self.stop_count = 0

    def set_audio_file(self, path: Path | str) -> None:
        """Load audio from a WAV file.

        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If file format doesn't match configuration
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Audio file not found: {path}")

        with wave.open(str(path), "rb") as wf:
            if wf.getframerate() != self._sample_rate:
                raise ValueError(
                    f"Sample rate mismatch: file={wf.getframerate()}, expected={self._sample_rate}"
                )
            if wf.getsampwidth() != self._sample_width or wf.getnchannels() != self._channels:
                raise ValueError("Sample format mismatch")
            self.set_audio_data(wf.readframes(wf.getnframes()))

    def set_audio_data(self, data: bytes, finite: bool = False) -> None:
        """Set raw PCM audio to capture.

        Args:
            data: Raw PCM audio bytes
            finite: End the stream (empty chunks) once the data is consumed
        """
        with self._lock:
            self._audio_source = data
            self._source_position = 0
            self.finite = finite

    def set_start_error(self, error: Exception | None) -> None:
        """Make ``start()`` raise ``error``."""
        self._start_error = error

    def set_read_error(self, error: Exception | None, after_chunks: int = 0) -> None:
        """Make reads raise ``error`` once ``after_chunks`` chunks were read."""
        self._read_error = error
        self._fail_after_chunks = after_chunks

    def start(self) -> None:
        """Start mock capture."""
        if self._start_error is not None:
            raise self._start_error
        with self._lock:
            self._is_active = True
            self._source_position = 0
            self._chunks_read = 0
            self._start_time_ms = int(time.time() * 1000)
            self.start_count += 1

    def stop(self) -> None:
        """Stop mock capture."""
        with self._lock:
            self._is_active = False
            self.stop_count += 1

    def read(self, frames: int) -> AudioChunk:
        """Read audio frames.

        Reads from the audio source if set, otherwise generates silence.

        Raises:
            RuntimeError: If capture is not active
        """
        if not self._is_active:
            raise RuntimeError("Capture not active")

        if self.realtime:
            time.sleep(frames / self._sample_rate)

        with self._lock:
            if self._read_error is not None and self._chunks_read >= (self._fail_after_chunks or 0):
                raise self._read_error
            self._chunks_read += 1

            bytes_needed = frames * self._sample_width * self._channels
            timestamp = int(time.time() * 1000) - self._start_time_ms

            if self._audio_source is not None:
                available = len(self._audio_source) - self._source_position
                bytes_to_read = min(bytes_needed, available)
                if bytes_to_read > 0:
                    data = self._audio_source[
                        self._source_position : self._source_position + bytes_to_read
                    ]
                    self._source_position += bytes_to_read
                elif self.finite:
                    data = b""
                else:
                    data = bytes(bytes_needed)
            else:
                data = bytes(bytes_needed)

        return AudioChunk(
            data=data,
            sample_rate=self._sample_rate,
            channels=self._channels,
            sample_width=self._sample_width,
            timestamp_ms=timestamp,
        )

    @property
    def is_active(self) -> bool:
        """Return True if capture is active."""
        return self._is_active

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def channels(self) -> int:
        return self._channels

    @property
    def sample_width(self) -> int:
        return self._sample_width

    @property
    def chunks_read(self) -> int:
        return self._chunks_read


class MockAudioPlayback:
    """Mock speaker.

    Records all audio that would be played for later verification.
    Implements the AudioPlayback protocol.
    """

    def __init__(self, sample_rate: int = 22050, delay_s: float = 0.0) -> None:
        """Initialize mock playback.

        Args:
            sample_rate: Output sample rate in Hz
            delay_s: Simulated playback time per call
        """
        self._sample_rate = sample_rate
        self._delay_s = delay_s
        self._played_audio: list[tuple[bytes, int]] = []
        self.stop_count = 0
        self._error: Exception | None = None
        self._lock = threading.Lock()

    def set_error(self, error: Exception | None) -> None:
        """Make playback raise ``error``."""
        self._error = error

    def play(self, audio: bytes, sample_rate: int) -> None:
        """Record audio that would be played (synchronous)."""
        if self._error is not None:
            raise self._error
        with self._lock:
            self._played_audio.append((audio, sample_rate))
        if self._delay_s:
            time.sleep(self._delay_s)

    def play_async(self, audio: bytes, sample_rate: int) -> None:
        """Record audio that would be played (async)."""
        with self._lock:
            self._played_audio.append((audio, sample_rate))

    def stop(self) -> None:
        self.stop_count += 1

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def play_count(self) -> int:
        """Number of buffers played."""
        with self._lock:
            return len(self._played_audio)

    @property
    def played_audio(self) -> bytes | None:
        """The last played audio bytes."""
        with self._lock:
            return self._played_audio[-1][0] if self._played_audio else None

    @property
    def all_played_audio(self) -> list[tuple[bytes, int]]:
        with self._lock:
            return self._played_audio.copy()

    def clear(self) -> None:
        """Clear recorded audio."""
        with self._lock:
            self._played_audio.clear()


__all__ = ["MockAudioCapture", "MockAudioPlayback", "generate_pcm"]
