"""Transcriber protocol and data classes.

Defines the interface for speech-to-text transcription. An empty ``text``
is a valid result (nothing was said); failures are raised.
"""

from dataclasses import dataclass
from typing import Protocol


@dataclass
class TranscriptionResult:
    """Result of speech-to-text transcription.

    Attributes:
        text: Transcribed text (empty if no speech was recognized)
        confidence: Overall confidence score (0.0 to 1.0)
        language: Detected language code (e.g., "en")
        duration_ms: Duration of audio processed in milliseconds
    """

    text: str
    confidence: float
    language: str
    duration_ms: int

    @property
    def is_empty(self) -> bool:
        return not self.text.strip()


class Transcriber(Protocol):
    """Interface for speech-to-text transcription."""

    def transcribe(
        self,
        audio: bytes,
        sample_rate: int,
        language: str | None = None,
    ) -> TranscriptionResult:
        """Transcribe audio buffer to text.

        Args:
            audio: Raw PCM audio bytes (16-bit, mono)
            sample_rate: Audio sample rate in Hz
            language: Language hint (configured default if None)

        Returns:
            TranscriptionResult with transcribed text

        Raises:
            RuntimeError: If transcription fails
        """
        ...

    def set_language(self, language: str) -> None:
        """Set the default expected language.

        Args:
            language: Language code (e.g., "en", "es", "fr")
        """
        ...


__all__ = ["TranscriptionResult", "Transcriber"]
