"""Speech-to-text module for pivoice.

Provides transcription using faster-whisper or mock implementation.
"""

import logging
from typing import TYPE_CHECKING

from .mock import MockTranscriber
from .transcriber import TranscriptionResult, Transcriber

if TYPE_CHECKING:
    from ..config import STTConfig

logger = logging.getLogger(__name__)


def create_transcriber(
    config: "STTConfig | None" = None,
    use_mock: bool = False,
) -> Transcriber:
    """Create a transcriber instance.

    Args:
        config: STT configuration
        use_mock: If True, return mock implementation for testing

    Returns:
        Transcriber implementation
    """
    if use_mock:
        return MockTranscriber()

    from ..config import STTConfig

    if config is None:
        config = STTConfig()

    try:
        from .whisper import WhisperTranscriber

        return WhisperTranscriber(
            model_size=config.model,
            device=config.device,
            compute_type=config.compute_type,
            beam_size=config.beam_size,
            vad_filter=config.vad_filter,
            language=config.language,
        )
    except RuntimeError as e:
        logger.warning(f"{e}; using mock transcriber")
        return MockTranscriber()


__all__ = [
    "MockTranscriber",
    "TranscriptionResult",
    "Transcriber",
    "create_transcriber",
]
