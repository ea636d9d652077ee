"""Synthesizer protocol and data classes.

Defines the interface for text-to-speech synthesis.
"""

from dataclasses import dataclass
from typing import Protocol


@dataclass
class SynthesisResult:
    """Result of text-to-speech synthesis.

    Attributes:
        audio: Audio bytes (raw 16-bit mono PCM, or an encoded container)
        sample_rate: Audio sample rate in Hz
        duration_ms: Audio duration in milliseconds (0 if unknown)
        latency_ms: Synthesis latency in milliseconds
        encoding: "pcm" for raw samples, otherwise the container ("mp3", "wav")
    """

    audio: bytes
    sample_rate: int
    duration_ms: int
    latency_ms: int
    encoding: str = "pcm"

    @property
    def is_pcm(self) -> bool:
        return self.encoding == "pcm"


class Synthesizer(Protocol):
    """Interface for text-to-speech synthesis.

    Voice and language are passed per call, so one synthesizer serves every
    entry of the voice cycle.
    """

    def synthesize(
        self,
        text: str,
        voice: str | None = None,
        language: str | None = None,
    ) -> SynthesisResult:
        """Convert text to speech audio.

        Args:
            text: Text to synthesize
            voice: Voice identifier (engine default if None)
            language: Language tag, e.g. "en"

        Returns:
            SynthesisResult with audio data

        Raises:
            RuntimeError: If synthesis fails
        """
        ...

    def get_available_voices(self) -> list[str]:
        """Return list of available voice IDs."""
        ...


__all__ = ["SynthesisResult", "Synthesizer"]
