"""Microphone device protocol.

A capture device is opened by one AudioCaptureSession at a time and read
chunk by chunk on the session's reader thread. Devices only deliver PCM;
stop triggers, silence detection and buffering belong to the session.
"""

from dataclasses import dataclass
from typing import Protocol


@dataclass
class AudioChunk:
    """One read from the microphone.

    Attributes:
        data: Raw 16-bit PCM bytes (empty when a finite source has ended)
        sample_rate: Sample rate in Hz
        channels: Number of interleaved channels
        sample_width: Bytes per sample
        timestamp_ms: Milliseconds since the device was started
    """

    data: bytes
    sample_rate: int
    channels: int
    sample_width: int
    timestamp_ms: int

    @property
    def end_of_stream(self) -> bool:
        return not self.data

    @property
    def num_frames(self) -> int:
        frame_bytes = self.sample_width * self.channels
        return len(self.data) // frame_bytes if frame_bytes else 0


class AudioCapture(Protocol):
    """Interface for a microphone.

    Implemented by PortAudioCapture on hardware and MockAudioCapture in tests.
    """

    def start(self) -> None:
        """Open the input device.

        Raises:
            OSError: If the device cannot be opened
        """
        ...

    def stop(self) -> None:
        """Close the input device. Safe to call when not started."""
        ...

    def read(self, frames: int) -> AudioChunk:
        """Block until ``frames`` frames are available and return them.

        Raises:
            RuntimeError: If the device is not started
            OSError: If the device fails mid-stream
        """
        ...

    @property
    def is_active(self) -> bool:
        ...

    @property
    def sample_rate(self) -> int:
        ...

    @property
    def channels(self) -> int:
        ...

    @property
    def sample_width(self) -> int:
        ...


__all__ = ["AudioCapture", "AudioChunk"]
