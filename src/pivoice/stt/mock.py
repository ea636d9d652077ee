"""Scripted transcriber for tests and the simulator."""

import threading
import time
from dataclasses import dataclass

from .transcriber import TranscriptionResult


@dataclass(frozen=True)
class TranscribeCall:
    """One recorded ``transcribe`` call."""

    audio_bytes: int
    sample_rate: int
    language: str


class MockTranscriber:
    """Transcriber returning a preset transcript.

    Every call is recorded, including ones that fail, so tests can tell a
    skipped transcription from a failed one.
    """

    def __init__(self, language: str = "en") -> None:
        self._language = language
        self._text = ""
        self._confidence = 0.0
        self._error: str | None = None
        self._latency_s = 0.0
        self._calls: list[TranscribeCall] = []
        self._lock = threading.Lock()

    def set_response(self, text: str, confidence: float = 0.95) -> None:
        """Return ``text`` from now on and clear any preset error."""
        self._text = text
        self._confidence = confidence
        self._error = None

    def set_error(self, message: str) -> None:
        """Raise RuntimeError(message) from now on."""
        self._error = message

    def set_latency(self, latency_ms: int) -> None:
        self._latency_s = latency_ms / 1000

    def transcribe(
        self,
        audio: bytes,
        sample_rate: int,
        language: str | None = None,
    ) -> TranscriptionResult:
        call = TranscribeCall(len(audio), sample_rate, language or self._language)
        with self._lock:
            self._calls.append(call)

        if self._latency_s:
            time.sleep(self._latency_s)
        if self._error:
            raise RuntimeError(self._error)

        seconds = len(audio) / (sample_rate * 2) if sample_rate else 0.0
        return TranscriptionResult(
            text=self._text,
            confidence=self._confidence,
            language=call.language,
            duration_ms=int(seconds * 1000),
        )

    def set_language(self, language: str) -> None:
        self._language = language

    @property
    def language(self) -> str:
        return self._language

    @property
    def calls(self) -> list[TranscribeCall]:
        with self._lock:
            return list(self._calls)

    @property
    def call_count(self) -> int:
        with self._lock:
            return len(self._calls)

    @property
    def languages_seen(self) -> list[str]:
        return [call.language for call in self.calls]

    def clear(self) -> None:
        """Forget calls and the preset reply."""
        self._text = ""
        self._confidence = 0.0
        self._error = None
        with self._lock:
            self._calls.clear()


__all__ = ["MockTranscriber", "TranscribeCall"]
