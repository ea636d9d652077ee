"""Single-recording capture session.

An AudioCaptureSession records one utterance. Three triggers race to end
it: a manual stop from the caller, the silence policy, and the maximum
duration. The first trigger wins and its reason is kept; exactly one
teardown runs and every caller of ``stop()`` gets the same result.
"""

import logging
import struct
import threading
import wave
from concurrent.futures import Future
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from ..errors import AlreadyRecordingError, CaptureError
from .scratch import ScratchFile

if TYPE_CHECKING:
    from ..config import RecordingConfig
    from .capture import AudioCapture

logger = logging.getLogger(__name__)

# Extra wall-clock time allowed past max duration before the backstop fires
STALL_GRACE_S: float = 1.0


class CaptureState(Enum):
    """Lifecycle of a capture session."""

    IDLE = "idle"
    RECORDING = "recording"
    STOPPED = "stopped"
    FAILED = "failed"


class StopReason(str, Enum):
    """Why a recording ended."""

    MANUAL = "manual"
    SILENCE = "silence"
    TIMEOUT = "timeout"
    STREAM_ENDED = "stream_ended"


@dataclass(frozen=True)
class CaptureResult:
    """Audio captured by a session.

    Attributes:
        audio: Raw PCM bytes, owned by the receiver
        sample_rate: Sample rate in Hz
        channels: Number of channels
        sample_width: Bytes per sample
        duration_ms: Duration of ``audio``
        reason: Trigger that ended the recording
        speech_detected: True if any chunk rose above the silence threshold
    """

    audio: bytes
    sample_rate: int
    channels: int
    sample_width: int
    duration_ms: float
    reason: StopReason
    speech_detected: bool


def calculate_energy(audio_data: bytes) -> float:
    """Calculate RMS energy of audio data.

    Args:
        audio_data: Raw PCM audio bytes (16-bit, mono)

    Returns:
        RMS energy value
    """
    if len(audio_data) < 2:
        return 0.0

    num_samples = len(audio_data) // 2
    try:
        samples = struct.unpack(f"<{num_samples}h", audio_data[: num_samples * 2])
    except struct.error:
        return 0.0

    sum_squares = sum(s * s for s in samples)
    return (sum_squares / num_samples) ** 0.5


class _MemorySink:
    """Accumulates captured frames in memory."""

    def __init__(self) -> None:
        self._parts: list[bytes] = []

    def write(self, data: bytes) -> None:
        self._parts.append(data)

    def finish(self) -> bytes:
        return b"".join(self._parts)

    def release(self) -> None:
        self._parts.clear()


class _SpoolSink:
    """Spools captured frames to a scratch WAV file."""

    def __init__(
        self,
        directory: str | Path | None,
        sample_rate: int,
        channels: int,
        sample_width: int,
    ) -> None:
        self._scratch = ScratchFile(suffix=".wav", directory=directory)
        self._wav: wave.Wave_write | None = None
        try:
            self._wav = wave.open(str(self._scratch.path), "wb")
            self._wav.setnchannels(channels)
            self._wav.setsampwidth(sample_width)
            self._wav.setframerate(sample_rate)
        except BaseException:
            # A header that never got its format cannot be written on close
            wav, self._wav = self._wav, None
            if wav is not None:
                try:
                    wav.close()
                except wave.Error:
                    pass
            self._scratch.release()
            raise

    @property
    def path(self) -> Path:
        return self._scratch.path

    def write(self, data: bytes) -> None:
        self._wav.writeframes(data)

    def finish(self) -> bytes:
        self._close_writer()
        with wave.open(str(self._scratch.path), "rb") as wf:
            return wf.readframes(wf.getnframes())

    def _close_writer(self) -> None:
        if self._wav is not None:
            self._wav.close()
            self._wav = None

    def release(self) -> None:
        try:
            self._close_writer()
        finally:
            self._scratch.release()


class AudioCaptureSession:
    """One recording, from ``start()`` to a single published result.

    The session owns the capture device while recording. A reader thread
    pulls chunks, applies the silence policy and the duration cap (both
    measured on captured audio), and normally performs the only teardown.

    A device can stall inside ``read()``, where the reader never sees a stop
    request. Two timers cover that: a wall-clock backstop at the duration
    cap plus ``STALL_GRACE_S``, and a stall check armed by an external stop
    one chunk plus ``STALL_GRACE_S`` later. Either one stops the device to
    unblock the read; if the read still does not return, the reader is
    abandoned and the audio captured so far is published.

    Example:
        session = AudioCaptureSession(capture, max_duration_s=5.0)
        session.start()
        result = session.wait()          # or session.stop() for a manual stop
    """

    def __init__(
        self,
        capture: "AudioCapture",
        max_duration_s: float = 5.0,
        silence_threshold: float = 500.0,
        silence_duration_s: float = 1.5,
        chunk_size: int = 1024,
        spool_to_disk: bool = False,
        scratch_dir: str | Path | None = None,
    ) -> None:
        """Initialize the session.

        Args:
            capture: Audio input device
            max_duration_s: Hard cap on recorded audio
            silence_threshold: RMS level below which a chunk counts as silent
            silence_duration_s: Continuous silence that ends the recording
            chunk_size: Frames read per chunk
            spool_to_disk: Assemble the recording in a scratch WAV file
            scratch_dir: Directory for the scratch file (temp dir if None)
        """
        self._capture = capture
        self._max_duration_s = max_duration_s
        self._silence_threshold = silence_threshold
        self._silence_duration_s = silence_duration_s
        self._chunk_size = chunk_size
        self._spool_to_disk = spool_to_disk
        self._scratch_dir = scratch_dir

        self._state = CaptureState.IDLE
        self._reason: StopReason | None = None
        self._lock = threading.Lock()
        self._stop_requested = threading.Event()
        self._future: Future[CaptureResult] = Future()
        self._reader: threading.Thread | None = None
        self._timer: threading.Timer | None = None
        self._stall_timer: threading.Timer | None = None
        self._sink: _MemorySink | _SpoolSink | None = None
        self._frames = 0
        self._speech_detected = False
        self._device_stopped = False
        self._finished = False
        self._teardown_count = 0

    @classmethod
    def from_config(
        cls,
        capture: "AudioCapture",
        config: "RecordingConfig",
        chunk_size: int = 1024,
    ) -> "AudioCaptureSession":
        """Create a session with limits taken from recording configuration."""
        return cls(
            capture,
            max_duration_s=config.max_duration_s,
            silence_threshold=config.silence_threshold_rms,
            silence_duration_s=config.silence_duration_s,
            chunk_size=chunk_size,
            spool_to_disk=config.spool_to_disk,
            scratch_dir=config.scratch_dir,
        )

    @property
    def state(self) -> CaptureState:
        with self._lock:
            return self._state

    @property
    def stop_reason(self) -> StopReason | None:
        """Reason claimed by the winning trigger (None while undecided)."""
        with self._lock:
            return self._reason

    @property
    def future(self) -> "Future[CaptureResult]":
        """Completion future, resolved exactly once."""
        return self._future

    @property
    def teardown_count(self) -> int:
        return self._teardown_count

    @property
    def scratch_path(self) -> Path | None:
        """Path of the spool file while recording (None if in memory)."""
        sink = self._sink
        return sink.path if isinstance(sink, _SpoolSink) else None

    def start(self) -> None:
        """Start recording.

        Raises:
            AlreadyRecordingError: If the session is already recording
            CaptureError: If the session already finished or the device fails
        """
        with self._lock:
            if self._state is CaptureState.RECORDING:
                raise AlreadyRecordingError("Capture session is already recording")
            if self._state is not CaptureState.IDLE:
                raise CaptureError(f"Capture session already {self._state.value}")

            try:
                self._sink = self._open_sink()
                self._capture.start()
            except (OSError, RuntimeError, wave.Error) as e:
                if self._sink is not None:
                    self._sink.release()
                    self._sink = None
                error = CaptureError(f"Failed to start capture: {e}")
                self._state = CaptureState.FAILED
                self._future.set_exception(error)
                logger.error(str(error))
                raise error from e

            self._state = CaptureState.RECORDING
            self._reader = threading.Thread(
                target=self._run,
                name="capture-session",
                daemon=True,
            )
            self._timer = threading.Timer(
                self._max_duration_s + STALL_GRACE_S,
                self._on_backstop,
            )
            self._timer.daemon = True

        self._reader.start()
        self._timer.start()
        logger.debug(
            f"Recording started (max {self._max_duration_s}s, "
            f"silence {self._silence_duration_s}s below {self._silence_threshold})"
        )

    def _open_sink(self) -> "_MemorySink | _SpoolSink":
        if self._spool_to_disk:
            return _SpoolSink(
                self._scratch_dir,
                self._capture.sample_rate,
                self._capture.channels,
                self._capture.sample_width,
            )
        return _MemorySink()

    def _claim(self, reason: StopReason) -> bool:
        """Record ``reason`` if no trigger has won yet."""
        with self._lock:
            if self._reason is not None:
                return False
            self._reason = reason
        self._stop_requested.set()
        logger.debug(f"Recording stop claimed: {reason.value}")
        return True

    def _reader_blocked(self) -> bool:
        reader = self._reader
        return reader is not None and reader.is_alive() and not self._finished

    def _on_backstop(self) -> None:
        if not self._reader_blocked():
            return
        self._claim(StopReason.TIMEOUT)
        logger.warning("Capture device stalled, stopping at wall-clock limit")
        self._interrupt()

    def _on_stall(self) -> None:
        if self._reader_blocked():
            logger.warning("Capture device did not return after stop, interrupting it")
            self._interrupt()

    def _arm_stall_timer(self) -> None:
        delay = self._chunk_size / (self._capture.sample_rate or 1) + STALL_GRACE_S
        with self._lock:
            if self._reader is None or self._finished or self._stall_timer is not None:
                return
            self._stall_timer = threading.Timer(delay, self._on_stall)
            self._stall_timer.daemon = True
            self._stall_timer.start()

    def _interrupt(self) -> None:
        """Stop the device under a blocked read, abandoning the reader if that fails."""
        self._stop_device()
        reader = self._reader
        if reader is None:
            return
        reader.join(timeout=STALL_GRACE_S)
        if reader.is_alive():
            logger.error("Capture read still blocked after stopping the device, abandoning it")
            self._teardown(None)

    def _stop_device(self) -> None:
        with self._lock:
            if self._device_stopped:
                return
            self._device_stopped = True
        try:
            self._capture.stop()
        except Exception as e:
            logger.warning(f"Error stopping capture device: {e}")

    def stop(
        self,
        reason: StopReason = StopReason.MANUAL,
        timeout: float | None = None,
    ) -> CaptureResult:
        """Request the recording to end and wait for the result.

        Safe to call from several threads and more than once; only the first
        trigger's reason is kept and every caller gets the same result.

        Args:
            reason: Trigger requesting the stop
            timeout: Seconds to wait for teardown (None waits indefinitely)

        Returns:
            The captured audio

        Raises:
            CaptureError: If the session was never started or the device failed
            TimeoutError: If teardown did not finish within ``timeout``
        """
        self.request_stop(reason)
        return self._future.result(timeout=timeout)

    def request_stop(self, reason: StopReason = StopReason.MANUAL) -> bool:
        """Ask the recording to end without waiting for teardown.

        Returns:
            True if ``reason`` won, False if another trigger already had

        Raises:
            CaptureError: If the session was never started
        """
        with self._lock:
            if self._state is CaptureState.IDLE:
                raise CaptureError("Capture session was never started")
        won = self._claim(reason)
        self._arm_stall_timer()
        return won

    def wait(self, timeout: float | None = None) -> CaptureResult:
        """Wait for the recording to end on its own (silence or timeout)."""
        return self._future.result(timeout=timeout)

    def _run(self) -> None:
        sample_rate = self._capture.sample_rate
        frame_bytes = self._capture.sample_width * self._capture.channels
        max_frames = int(self._max_duration_s * sample_rate)
        silence_frames = int(self._silence_duration_s * sample_rate)

        frames = 0
        silent_run = 0
        error: Exception | None = None
        sink = self._sink

        try:
            while not self._stop_requested.is_set():
                chunk = self._capture.read(self._chunk_size)
                if self._finished:
                    break
                if chunk.end_of_stream:
                    self._claim(StopReason.STREAM_ENDED)
                    break

                data = chunk.data
                remaining = max_frames - frames
                if len(data) // frame_bytes > remaining:
                    data = data[: remaining * frame_bytes]
                count = len(data) // frame_bytes

                sink.write(data)
                frames += count
                self._frames = frames

                if calculate_energy(data) < self._silence_threshold:
                    silent_run += count
                else:
                    silent_run = 0
                    self._speech_detected = True

                if frames >= max_frames:
                    self._claim(StopReason.TIMEOUT)
                elif silent_run >= silence_frames:
                    self._claim(StopReason.SILENCE)
        except Exception as e:
            if self._device_stopped:
                logger.debug(f"Read ended by stopping the device: {e}")
            else:
                error = e
                logger.error(f"Capture device failed: {e}")
        finally:
            self._teardown(error)

    def _teardown(self, error: Exception | None) -> None:
        with self._lock:
            if self._finished:
                return
            self._finished = True
            self._teardown_count += 1
            sink, self._sink = self._sink, None
            timers = (self._timer, self._stall_timer)

        for timer in timers:
            if timer is not None:
                timer.cancel()
        self._stop_device()

        audio = b""
        try:
            if error is None and sink is not None:
                audio = sink.finish()
        except (OSError, wave.Error) as e:
            error = e
            logger.error(f"Failed to read back recording: {e}")
        finally:
            if sink is not None:
                sink.release()

        frames = self._frames
        speech_detected = self._speech_detected
        with self._lock:
            if self._reason is None:
                self._reason = StopReason.STREAM_ENDED
            reason = self._reason
            if error is not None:
                self._state = CaptureState.FAILED
            else:
                self._state = CaptureState.STOPPED

        if error is not None:
            self._future.set_exception(CaptureError(f"Capture failed: {error}"))
            return

        sample_rate = self._capture.sample_rate
        result = CaptureResult(
            audio=audio,
            sample_rate=sample_rate,
            channels=self._capture.channels,
            sample_width=self._capture.sample_width,
            duration_ms=frames / sample_rate * 1000 if sample_rate else 0.0,
            reason=reason,
            speech_detected=speech_detected,
        )
        logger.info(
            f"Recording stopped ({reason.value}): {result.duration_ms:.0f}ms, "
            f"speech={'yes' if speech_detected else 'no'}"
        )
        self._future.set_result(result)


__all__ = [
    "AudioCaptureSession",
    "CaptureResult",
    "CaptureState",
    "STALL_GRACE_S",
    "StopReason",
    "calculate_energy",
]
