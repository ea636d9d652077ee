"""Text-to-speech module for pivoice.

Provides speech synthesis engines selected by configuration:
- Piper: local neural TTS (default on Raspberry Pi)
- ElevenLabs: cloud TTS (requires ELEVENLABS_API_KEY)
- Mock: generated tones for tests and hardware-less runs
"""

import logging
from typing import TYPE_CHECKING

from .mock import MockSynthesizer
from .synthesizer import SynthesisResult, Synthesizer

if TYPE_CHECKING:
    from ..config import TTSConfig

logger = logging.getLogger(__name__)


def create_synthesizer(
    config: "TTSConfig | None" = None,
    use_mock: bool = False,
) -> Synthesizer:
    """Create the synthesizer named by ``config.engine``.

    Args:
        config: TTS configuration (optional)
        use_mock: If True, force mock synthesizer for testing

    Returns:
        Synthesizer implementation. Falls back to MockSynthesizer (with a
        warning) if the configured engine cannot be initialized.
    """
    if use_mock:
        logger.info("TTS: Using MockSynthesizer (requested)")
        return MockSynthesizer()

    from ..config import TTSConfig

    if config is None:
        config = TTSConfig()

    default_voice = config.voices[0] if config.voices else None

    try:
        if config.engine == "elevenlabs":
            from .elevenlabs import ElevenLabsSynthesizer

            synth: Synthesizer = ElevenLabsSynthesizer(
                voice_id=default_voice,
                output_format=config.output_format,
            )
            logger.info("TTS: Using ElevenLabsSynthesizer")
            return synth

        if config.engine == "piper":
            from .piper import PiperSynthesizer

            synth = PiperSynthesizer(
                voice=default_voice or "en_US-lessac-medium",
                speed=config.speed,
                models_dir=config.models_dir,
            )
            logger.info("TTS: Using PiperSynthesizer")
            return synth

        if config.engine != "mock":
            logger.warning(f"TTS: Unknown engine '{config.engine}'")
    except RuntimeError as e:
        logger.warning(f"TTS: {config.engine} failed to initialize: {e}")

    logger.warning("TTS: Using MockSynthesizer (fallback)")
    return MockSynthesizer()


__all__ = [
    "MockSynthesizer",
    "SynthesisResult",
    "Synthesizer",
    "create_synthesizer",
]
