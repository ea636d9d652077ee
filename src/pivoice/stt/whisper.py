"""Faster-whisper transcriber implementation.

Uses faster-whisper (CTranslate2) for efficient speech-to-text on CPU.
"""

import logging
import threading
import time
from pathlib import Path
from typing import Any

from .transcriber import TranscriptionResult

try:
    from faster_whisper import WhisperModel

    FASTER_WHISPER_AVAILABLE = True
except ImportError:
    FASTER_WHISPER_AVAILABLE = False
    WhisperModel = None  # type: ignore

logger = logging.getLogger(__name__)

WHISPER_SAMPLE_RATE = 16000


class WhisperTranscriber:
    """Speech-to-text transcriber using faster-whisper.

    The model is loaded lazily on first use, so start-up stays fast and a
    missing model surfaces as a transcription failure.
    """

    def __init__(
        self,
        model_size: str = "base",
        device: str = "cpu",
        compute_type: str = "int8",
        beam_size: int = 1,
        vad_filter: bool = True,
        language: str = "en",
        model_path: Path | None = None,
    ) -> None:
        """Initialize Whisper transcriber.

        Args:
            model_size: Whisper model size (tiny, base, small, ...)
            device: Device to run on ("cpu", "cuda", "auto")
            compute_type: Computation type ("float16", "int8", "float32")
            beam_size: Beam width (1 = greedy, fastest)
            vad_filter: Skip non-speech with the built-in VAD
            language: Default language code ("auto" to detect)
            model_path: Optional path to pre-downloaded model

        Raises:
            RuntimeError: If faster-whisper is not available
        """
        if not FASTER_WHISPER_AVAILABLE:
            raise RuntimeError(
                "faster-whisper not available. Install with: pip install faster-whisper"
            )

        self._model_size = model_size
        self._device = device
        self._compute_type = compute_type
        self._beam_size = beam_size
        self._vad_filter = vad_filter
        self._language = language
        self._model_path = model_path
        self._model: Any = None
        self._load_lock = threading.Lock()

    def _ensure_model_loaded(self) -> None:
        with self._load_lock:
            if self._model is not None:
                return

            logger.info(
                f"Loading Whisper model: {self._model_size} "
                f"(device={self._device}, compute={self._compute_type})"
            )
            start = time.time()
            source = (
                str(self._model_path)
                if self._model_path and self._model_path.exists()
                else self._model_size
            )
            self._model = WhisperModel(source, device=self._device, compute_type=self._compute_type)
            logger.info(f"Whisper model loaded in {(time.time() - start) * 1000:.0f}ms")

    def transcribe(
        self,
        audio: bytes,
        sample_rate: int,
        language: str | None = None,
    ) -> TranscriptionResult:
        """Transcribe audio to text.

        Raises:
            RuntimeError: If the model fails to load or decode
        """
        import numpy as np

        language = language or self._language
        start_time = time.time()

        try:
            self._ensure_model_loaded()

            audio_array = np.frombuffer(audio, dtype=np.int16).astype(np.float32) / 32768.0
            if sample_rate != WHISPER_SAMPLE_RATE and len(audio_array):
                new_length = int(len(audio_array) * WHISPER_SAMPLE_RATE / sample_rate)
                indices = np.linspace(0, len(audio_array) - 1, new_length).astype(int)
                audio_array = audio_array[indices]

            segments, info = self._model.transcribe(
                audio_array,
                language=language if language != "auto" else None,
                beam_size=self._beam_size,
                vad_filter=self._vad_filter,
            )
            text = " ".join(segment.text.strip() for segment in segments).strip()
        except Exception as e:
            raise RuntimeError(f"Whisper transcription failed: {e}") from e

        duration_ms = int(len(audio) / (sample_rate * 2) * 1000)
        latency_ms = int((time.time() - start_time) * 1000)
        logger.debug(f"Transcribed {duration_ms}ms audio in {latency_ms}ms: '{text[:50]}'")

        return TranscriptionResult(
            text=text,
            confidence=info.language_probability if info else 0.9,
            language=info.language if info else language,
            duration_ms=duration_ms,
        )

    def set_language(self, language: str) -> None:
        self._language = language

    @property
    def model_size(self) -> str:
        return self._model_size

    @property
    def is_loaded(self) -> bool:
        return self._model is not None


__all__ = ["FASTER_WHISPER_AVAILABLE", "WhisperTranscriber"]
