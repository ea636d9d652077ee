"""Speaker device protocol.

Devices play raw 16-bit mono PCM. Encoded speech (MP3 from a cloud voice)
never reaches a device directly; AudioPlaybackService routes it through an
external player.
"""

from typing import Protocol


class AudioPlayback(Protocol):
    """Interface for a speaker.

    Implemented by PortAudioPlayback on hardware and MockAudioPlayback in
    tests. Spoken replies use ``play``; feedback cues may use ``play_async``
    so a cue never holds up the controller.
    """

    def play(self, audio: bytes, sample_rate: int) -> None:
        """Play PCM and return once it has finished or ``stop`` was called.

        Raises:
            OSError: If the output device fails
        """
        ...

    def play_async(self, audio: bytes, sample_rate: int) -> None:
        """Start playing PCM in the background and return immediately."""
        ...

    def stop(self) -> None:
        """Cut off current playback. Safe to call when idle."""
        ...

    @property
    def sample_rate(self) -> int:
        """Default output sample rate in Hz."""
        ...


__all__ = ["AudioPlayback"]
