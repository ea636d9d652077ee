"""ElevenLabs TTS synthesizer.

Provides cloud speech synthesis through the ElevenLabs API. Voices are
selected per call by name ("rachel") or by raw voice ID.
"""

import logging
import os
import time

from .synthesizer import SynthesisResult

logger = logging.getLogger(__name__)

ELEVENLABS_AVAILABLE = False
VoiceSettings = None
try:
    from elevenlabs import ElevenLabs
    from elevenlabs.types import VoiceSettings

    ELEVENLABS_AVAILABLE = True
except ImportError:
    pass


class ElevenLabsSynthesizer:
    """Text-to-speech synthesizer using the ElevenLabs API.

    ``output_format`` selects raw PCM ("pcm_22050", played directly) or an
    encoded stream such as "mp3_44100_128" (played through the external
    player).
    """

    DEFAULT_VOICE_ID = "EXAVITQu4vr4xnSDxMaL"  # Bella
    DEFAULT_MODEL = "eleven_flash_v2_5"
    DEFAULT_OUTPUT_FORMAT = "pcm_22050"

    VOICES = {
        "rachel": "21m00Tcm4TlvDq8ikWAM",  # Warm, natural
        "domi": "AZnzlk1XvdvUeBnXmlld",  # Strong, confident
        "bella": "EXAVITQu4vr4xnSDxMaL",  # Soft, gentle
        "josh": "TxGEqnHWrfWFTfGW9XjX",  # Deep, professional
        "adam": "pNInz6obpgDQGcFmaJgB",  # Clear, neutral
    }

    def __init__(
        self,
        api_key: str | None = None,
        voice_id: str | None = None,
        model: str | None = None,
        output_format: str | None = None,
    ) -> None:
        """Initialize ElevenLabs synthesizer.

        Args:
            api_key: ElevenLabs API key (defaults to ELEVENLABS_API_KEY env var)
            voice_id: Default voice name or ID
            model: Model ID
            output_format: ElevenLabs output format

        Raises:
            RuntimeError: If the SDK is missing or no API key is configured
        """
        if not ELEVENLABS_AVAILABLE:
            raise RuntimeError("elevenlabs not available. Install with: pip install elevenlabs")

        self._api_key = api_key or os.getenv("ELEVENLABS_API_KEY")
        if not self._api_key:
            raise RuntimeError("ELEVENLABS_API_KEY is not set")

        self._voice_id = self.resolve_voice(voice_id or self.DEFAULT_VOICE_ID)
        self._model = model or self.DEFAULT_MODEL
        self._output_format = output_format or self.DEFAULT_OUTPUT_FORMAT
        self._client = ElevenLabs(api_key=self._api_key)
        logger.info("ElevenLabs client initialized")

    @classmethod
    def resolve_voice(cls, voice: str) -> str:
        """Map a voice name to its ID; unknown names are taken as IDs."""
        return cls.VOICES.get(voice.lower(), voice)

    @property
    def encoding(self) -> str:
        """Container of the synthesized audio ("pcm", "mp3", ...)."""
        return self._output_format.split("_", 1)[0]

    @property
    def sample_rate(self) -> int:
        parts = self._output_format.split("_")
        return int(parts[1]) if len(parts) > 1 and parts[1].isdigit() else 22050

    def synthesize(
        self,
        text: str,
        voice: str | None = None,
        language: str | None = None,
    ) -> SynthesisResult:
        """Convert text to speech.

        Raises:
            RuntimeError: If the API call fails
        """
        start_time = time.time()
        voice_id = self.resolve_voice(voice) if voice else self._voice_id

        try:
            voice_settings = VoiceSettings(
                stability=0.4,
                similarity_boost=0.75,
                style=0.3,
                use_speaker_boost=True,
            )
            audio_generator = self._client.text_to_speech.convert(
                text=text,
                voice_id=voice_id,
                model_id=self._model,
                output_format=self._output_format,
                language_code=language,
                voice_settings=voice_settings,
            )
            audio_data = b"".join(audio_generator)
        except Exception as e:
            raise RuntimeError(f"ElevenLabs synthesis failed: {e}") from e

        duration_ms = 0
        if self.encoding == "pcm":
            duration_ms = int(len(audio_data) / (self.sample_rate * 2) * 1000)
        latency_ms = int((time.time() - start_time) * 1000)

        logger.debug(f"ElevenLabs synthesized '{text[:30]}...' in {latency_ms}ms")

        return SynthesisResult(
            audio=audio_data,
            sample_rate=self.sample_rate,
            duration_ms=duration_ms,
            latency_ms=latency_ms,
            encoding=self.encoding,
        )

    def get_available_voices(self) -> list[str]:
        return list(self.VOICES.keys())


__all__ = ["ELEVENLABS_AVAILABLE", "ElevenLabsSynthesizer"]
