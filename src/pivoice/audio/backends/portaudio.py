"""PyAudio backed microphone and speaker.

On the Pi these talk to ALSA; a USB headset or HAT is picked by a fragment
of its device name (``"USB"``, ``"seeed"``), ``"default"`` leaves the choice
to ALSA. Both devices share one PortAudio host per process because
initializing PortAudio twice on ALSA rescans every card and spams stderr.
"""

import logging
import threading
import time
from typing import Any

from ..capture import AudioChunk

try:
    import pyaudio

    PYAUDIO_AVAILABLE = True
except ImportError:
    PYAUDIO_AVAILABLE = False
    pyaudio = None

logger = logging.getLogger(__name__)

SAMPLE_WIDTH = 2
PLAYBACK_FRAMES = 1024


class PortAudioHost:
    """Reference counted PyAudio instance shared by the devices."""

    _lock = threading.Lock()
    _instance: Any = None
    _users = 0

    @classmethod
    def acquire(cls) -> Any:
        if not PYAUDIO_AVAILABLE:
            raise RuntimeError("PyAudio not available. Install with: pip install pyaudio")
        with cls._lock:
            if cls._instance is None:
                cls._instance = pyaudio.PyAudio()
            cls._users += 1
            return cls._instance

    @classmethod
    def release(cls) -> None:
        with cls._lock:
            cls._users = max(0, cls._users - 1)
            if cls._users == 0 and cls._instance is not None:
                cls._instance.terminate()
                cls._instance = None

    @staticmethod
    def device_index(pa: Any, name: str, output: bool) -> int | None:
        """Resolve a device name fragment to a PortAudio index.

        Returns None (ALSA default) for ``"default"`` or when nothing with
        channels in the requested direction matches.
        """
        if name == "default":
            return None

        key = "maxOutputChannels" if output else "maxInputChannels"
        wanted = name.lower()
        for index in range(pa.get_device_count()):
            info = pa.get_device_info_by_index(index)
            if info[key] > 0 and wanted in str(info["name"]).lower():
                logger.debug(f"Using audio device {index}: {info['name']}")
                return index

        direction = "output" if output else "input"
        logger.warning(f"No {direction} device matches '{name}', using default")
        return None


class PortAudioCapture:
    """16-bit microphone input.

    Implements the AudioCapture protocol.
    """

    def __init__(
        self,
        device_name: str = "default",
        sample_rate: int = 16000,
        channels: int = 1,
        chunk_size: int = 1024,
    ) -> None:
        if not PYAUDIO_AVAILABLE:
            raise RuntimeError("PyAudio not available. Install with: pip install pyaudio")

        self._device_name = device_name
        self._sample_rate = sample_rate
        self._channels = channels
        self._chunk_size = chunk_size
        self._stream: Any = None
        self._opened_at = 0.0

    def start(self) -> None:
        """Open the input stream. A second call while open does nothing.

        Raises:
            OSError: If PortAudio cannot open the device
        """
        if self._stream is not None:
            return

        pa = PortAudioHost.acquire()
        try:
            self._stream = pa.open(
                format=pyaudio.paInt16,
                channels=self._channels,
                rate=self._sample_rate,
                input=True,
                input_device_index=PortAudioHost.device_index(pa, self._device_name, output=False),
                frames_per_buffer=self._chunk_size,
            )
        except OSError:
            PortAudioHost.release()
            raise
        self._opened_at = time.monotonic()

    def stop(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop_stream()
            stream.close()
        except OSError as e:
            logger.warning(f"Closing input stream failed: {e}")
        finally:
            PortAudioHost.release()

    def read(self, frames: int) -> AudioChunk:
        """Block for ``frames`` frames.

        Overflows are tolerated; a Pi under load drops a few frames rather
        than aborting the recording.

        Raises:
            RuntimeError: If the stream is not open
            OSError: If the device fails
        """
        stream = self._stream
        if stream is None:
            raise RuntimeError("Capture not active")

        data = stream.read(frames, exception_on_overflow=False)
        return AudioChunk(
            data=data,
            sample_rate=self._sample_rate,
            channels=self._channels,
            sample_width=SAMPLE_WIDTH,
            timestamp_ms=int((time.monotonic() - self._opened_at) * 1000),
        )

    @property
    def is_active(self) -> bool:
        return self._stream is not None

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def channels(self) -> int:
        return self._channels

    @property
    def sample_width(self) -> int:
        return SAMPLE_WIDTH


class PortAudioPlayback:
    """Mono 16-bit speaker output.

    Each ``play`` opens a stream at the buffer's own rate, since Piper voices
    and cue tones do not share one. ``stop`` is checked between writes, so a
    cut-off lands within one buffer of audio.

    Implements the AudioPlayback protocol.
    """

    def __init__(self, device_name: str = "default", sample_rate: int = 22050) -> None:
        if not PYAUDIO_AVAILABLE:
            raise RuntimeError("PyAudio not available. Install with: pip install pyaudio")

        self._device_name = device_name
        self._sample_rate = sample_rate
        self._interrupted = threading.Event()
        self._background: threading.Thread | None = None

    def play(self, audio: bytes, sample_rate: int) -> None:
        """Play PCM to the end or until ``stop``.

        Raises:
            OSError: If the output device fails
        """
        self._interrupted.clear()
        pa = PortAudioHost.acquire()
        try:
            stream = pa.open(
                format=pyaudio.paInt16,
                channels=1,
                rate=sample_rate,
                output=True,
                output_device_index=PortAudioHost.device_index(pa, self._device_name, output=True),
            )
            try:
                step = PLAYBACK_FRAMES * SAMPLE_WIDTH
                offset = 0
                while offset < len(audio) and not self._interrupted.is_set():
                    stream.write(audio[offset : offset + step])
                    offset += step
            finally:
                stream.stop_stream()
                stream.close()
        finally:
            PortAudioHost.release()

    def play_async(self, audio: bytes, sample_rate: int) -> None:
        def run() -> None:
            try:
                self.play(audio, sample_rate)
            except OSError as e:
                logger.warning(f"Background playback failed: {e}")

        self._background = threading.Thread(target=run, name="pivoice-playback", daemon=True)
        self._background.start()

    def stop(self) -> None:
        self._interrupted.set()
        background, self._background = self._background, None
        if background is not None:
            background.join(timeout=1.0)

    @property
    def sample_rate(self) -> int:
        return self._sample_rate


__all__ = ["PYAUDIO_AVAILABLE", "PortAudioCapture", "PortAudioHost", "PortAudioPlayback"]
