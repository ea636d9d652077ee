"""Mock synthesizer for testing.

Provides a controllable mock implementation for unit and integration testing.
"""

import math
import struct
import threading

from .synthesizer import SynthesisResult


class MockSynthesizer:
    """Mock synthesizer for testing.

    Generates simple tones instead of actual speech and records every call
    as a (text, voice, language) tuple. Failures can be injected for all
    calls or only for texts containing a given fragment.
    """

    def __init__(self, sample_rate: int = 22050) -> None:
        """Initialize mock synthesizer.

        Args:
            sample_rate: Output sample rate
        """
        self._sample_rate = sample_rate
        self._calls: list[tuple[str, str | None, str | None]] = []
        self._error: Exception | None = None
        self._fail_on: str | None = None
        self._lock = threading.Lock()

    def synthesize(
        self,
        text: str,
        voice: str | None = None,
        language: str | None = None,
    ) -> SynthesisResult:
        """Synthesize text to audio (generates tone).

        The tone duration is proportional to text length.
        """
        with self._lock:
            self._calls.append((text, voice, language))
            error = self._error
            if error is not None and (self._fail_on is None or self._fail_on in text):
                raise error

        # Roughly 10ms per word keeps test buffers small
        duration_ms = max(10, len(text.split()) * 10)
        return SynthesisResult(
            audio=self._generate_tone(440, duration_ms),
            sample_rate=self._sample_rate,
            duration_ms=duration_ms,
            latency_ms=0,
        )

    def _generate_tone(self, frequency: int, duration_ms: int) -> bytes:
        num_samples = int(self._sample_rate * duration_ms / 1000)
        return b"".join(
            struct.pack(
                "<h",
                int(32767 * 0.3 * math.sin(2 * math.pi * frequency * i / self._sample_rate)),
            )
            for i in range(num_samples)
        )

    def set_error(self, error: Exception | None, fail_on: str | None = None) -> None:
        """Make synthesis raise ``error``.

        Args:
            error: Exception to raise (None clears it)
            fail_on: Only fail for texts containing this fragment
        """
        with self._lock:
            self._error = error
            self._fail_on = fail_on

    def get_available_voices(self) -> list[str]:
        return ["en_US-mock-medium", "en_US-mock-high", "en_GB-mock-medium"]

    @property
    def call_count(self) -> int:
        with self._lock:
            return len(self._calls)

    @property
    def calls(self) -> list[tuple[str, str | None, str | None]]:
        with self._lock:
            return self._calls.copy()

    @property
    def synthesized_texts(self) -> list[str]:
        with self._lock:
            return [text for text, _, _ in self._calls]

    def clear(self) -> None:
        """Reset mock state."""
        with self._lock:
            self._calls.clear()


__all__ = ["MockSynthesizer"]
