"""Audio module for pivoice.

Provides microphone capture, speaker playback, the single-recording
capture session, and playback of synthesized speech with scratch-file
cleanup.

Usage:
    capture = create_audio_capture(config.audio)
    playback = create_audio_playback(config.audio)

    session = AudioCaptureSession.from_config(capture, config.recording)
    session.start()
    result = session.wait()

    # For testing, use mock implementations
    from pivoice.audio.mock_capture import MockAudioCapture, MockAudioPlayback
"""

import logging
from typing import TYPE_CHECKING

from .capture import AudioCapture, AudioChunk
from .playback import AudioPlayback
from .scratch import ScratchArea, ScratchFile
from .service import AudioPlaybackService
from .session import (
    AudioCaptureSession,
    CaptureResult,
    CaptureState,
    StopReason,
    calculate_energy,
)

if TYPE_CHECKING:
    from ..config import AudioConfig

logger = logging.getLogger(__name__)


def create_audio_capture(
    config: "AudioConfig | None" = None,
    use_mock: bool = False,
) -> AudioCapture:
    """Create an audio capture instance.

    Args:
        config: Audio configuration (uses defaults if None)
        use_mock: If True, return mock implementation for testing

    Returns:
        AudioCapture implementation

    Raises:
        RuntimeError: If PyAudio is not installed
    """
    device_name = "default"
    sample_rate = 16000
    channels = 1
    chunk_size = 1024

    if config is not None:
        device_name = config.input_device
        sample_rate = config.sample_rate
        channels = config.channels
        chunk_size = config.chunk_size

    if use_mock:
        from .mock_capture import MockAudioCapture

        return MockAudioCapture(
            sample_rate=sample_rate,
            channels=channels,
            realtime=True,
        )

    from .backends.portaudio import PortAudioCapture

    return PortAudioCapture(
        device_name=device_name,
        sample_rate=sample_rate,
        channels=channels,
        chunk_size=chunk_size,
    )


def create_audio_playback(
    config: "AudioConfig | None" = None,
    use_mock: bool = False,
) -> AudioPlayback:
    """Create an audio playback instance.

    Args:
        config: Audio configuration (uses defaults if None)
        use_mock: If True, return mock implementation for testing

    Returns:
        AudioPlayback implementation

    Raises:
        RuntimeError: If PyAudio is not installed
    """
    device_name = "default"
    sample_rate = 22050  # Common TTS output rate

    if config is not None:
        device_name = config.output_device

    if use_mock:
        from .mock_capture import MockAudioPlayback

        return MockAudioPlayback(sample_rate=sample_rate)

    from .backends.portaudio import PortAudioPlayback

    return PortAudioPlayback(device_name=device_name, sample_rate=sample_rate)


__all__ = [
    "AudioCapture",
    "AudioCaptureSession",
    "AudioChunk",
    "AudioPlayback",
    "AudioPlaybackService",
    "CaptureResult",
    "CaptureState",
    "ScratchArea",
    "ScratchFile",
    "StopReason",
    "calculate_energy",
    "create_audio_capture",
    "create_audio_playback",
]
