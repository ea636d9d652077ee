"""Piper TTS synthesizer implementation.

Uses Piper for fast, high-quality text-to-speech on CPU. Each voice is a
separate ONNX model; models are loaded on first use and cached.
"""

import logging
import threading
import time
from pathlib import Path
from typing import Any

from .synthesizer import SynthesisResult

logger = logging.getLogger(__name__)

PIPER_AVAILABLE = False
try:
    import piper

    PIPER_AVAILABLE = True
except ImportError:
    pass


class PiperSynthesizer:
    """Text-to-speech synthesizer using Piper.

    Piper runs efficiently on CPU, making it the default engine on a
    Raspberry Pi. The voice identifier is the model name, e.g.
    "en_US-lessac-medium" for ``models/piper/en_US-lessac-medium.onnx``.
    """

    def __init__(
        self,
        voice: str = "en_US-lessac-medium",
        speed: float = 1.0,
        models_dir: Path | str | None = None,
    ) -> None:
        """Initialize Piper synthesizer.

        Args:
            voice: Default voice model name
            speed: Speech speed multiplier
            models_dir: Directory containing Piper voice models

        Raises:
            RuntimeError: If piper-tts is not installed
        """
        if not PIPER_AVAILABLE:
            raise RuntimeError("piper-tts not available. Install with: pip install piper-tts")

        self._voice = voice
        self._speed = max(0.5, min(2.0, speed))
        self._models_dir = Path(models_dir) if models_dir else Path("models/piper")
        self._voices: dict[str, Any] = {}
        self._lock = threading.Lock()

    def _load_voice(self, voice: str) -> Any:
        """Load (or fetch the cached) model for ``voice``.

        Raises:
            RuntimeError: If the model files are missing or fail to load
        """
        with self._lock:
            if voice in self._voices:
                return self._voices[voice]

            model_path = self._models_dir / f"{voice}.onnx"
            config_path = self._models_dir / f"{voice}.onnx.json"
            if not model_path.exists():
                raise RuntimeError(
                    f"Piper model not found: {model_path}. "
                    "Run scripts/download_voices.py to download."
                )

            try:
                model = piper.PiperVoice.load(str(model_path), str(config_path))
            except Exception as e:
                raise RuntimeError(f"Failed to load Piper voice {voice}: {e}") from e

            self._voices[voice] = model
            logger.info(f"Piper voice loaded: {voice}")
            return model

    def synthesize(
        self,
        text: str,
        voice: str | None = None,
        language: str | None = None,  # noqa: ARG002
    ) -> SynthesisResult:
        """Synthesize text to speech.

        Piper voices are single-language, so ``language`` is implied by the
        voice model.

        Raises:
            RuntimeError: If the voice cannot be loaded or synthesis fails
        """
        start_time = time.time()
        model = self._load_voice(voice or self._voice)

        try:
            sample_rate = model.config.sample_rate
            audio_data = b"".join(chunk.audio_int16_bytes for chunk in model.synthesize(text))
        except Exception as e:
            raise RuntimeError(f"Piper synthesis failed: {e}") from e

        if self._speed != 1.0:
            audio_data = self._adjust_speed(audio_data)

        duration_ms = int(len(audio_data) / (sample_rate * 2) * 1000)
        latency_ms = int((time.time() - start_time) * 1000)
        logger.debug(f"Synthesized '{text[:30]}...' in {latency_ms}ms ({duration_ms}ms audio)")

        return SynthesisResult(
            audio=audio_data,
            sample_rate=sample_rate,
            duration_ms=duration_ms,
            latency_ms=latency_ms,
        )

    def _adjust_speed(self, audio: bytes) -> bytes:
        """Adjust playback speed by resampling."""
        import numpy as np

        audio_array = np.frombuffer(audio, dtype=np.int16)
        new_length = int(len(audio_array) / self._speed)
        indices = np.linspace(0, len(audio_array) - 1, new_length).astype(int)
        return audio_array[indices].tobytes()

    def get_available_voices(self) -> list[str]:
        """Return the voice models present in the models directory."""
        if not self._models_dir.exists():
            return []
        return sorted(path.stem for path in self._models_dir.glob("*.onnx"))

    @property
    def voice(self) -> str:
        return self._voice


__all__ = ["PIPER_AVAILABLE", "PiperSynthesizer"]
