"""Playback of synthesized speech and feedback audio.

Raw PCM goes straight to the AudioPlayback device. Encoded audio (for
example MP3 from a cloud TTS) is written to a scratch file and handed to an
external player; the scratch file is released when playback ends, fails,
or is interrupted by shutdown.
"""

import logging
import shutil
import subprocess
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from .scratch import ScratchArea

if TYPE_CHECKING:
    from ..config import PlaybackConfig
    from ..tts.synthesizer import SynthesisResult
    from .playback import AudioPlayback

logger = logging.getLogger(__name__)


class AudioPlaybackService:
    """Plays finished audio buffers and owns their scratch files."""

    def __init__(
        self,
        playback: "AudioPlayback",
        player_command: list[str] | None = None,
        timeout_s: float = 60.0,
        scratch_dir: str | Path | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            playback: PCM output device
            player_command: External player for encoded audio (file path appended)
            timeout_s: Longest an external player may run
            scratch_dir: Directory for scratch files (temp dir if None)
        """
        self._playback = playback
        self._player_command = list(player_command or ["mpg123", "-q"])
        self._timeout_s = timeout_s
        self._scratch = ScratchArea(scratch_dir)
        self._process: subprocess.Popen | None = None
        self._lock = threading.Lock()
        self._closed = False

    @classmethod
    def from_config(
        cls,
        playback: "AudioPlayback",
        config: "PlaybackConfig",
        scratch_dir: str | Path | None = None,
    ) -> "AudioPlaybackService":
        return cls(
            playback,
            player_command=config.player_command,
            timeout_s=config.timeout_s,
            scratch_dir=scratch_dir,
        )

    @property
    def playback(self) -> "AudioPlayback":
        return self._playback

    @property
    def scratch(self) -> ScratchArea:
        return self._scratch

    def play_speech(self, speech: "SynthesisResult") -> None:
        """Play a synthesis result, blocking until it finishes.

        Raises:
            RuntimeError: If playback fails
        """
        if self._closed:
            logger.debug("Playback service closed, dropping audio")
            return

        if speech.is_pcm:
            self.play_pcm(speech.audio, speech.sample_rate)
        else:
            self._play_encoded(speech.audio, speech.encoding)

    def play_pcm(self, audio: bytes, sample_rate: int) -> None:
        """Play 16-bit mono PCM on the output device."""
        try:
            self._playback.play(audio, sample_rate)
        except OSError as e:
            raise RuntimeError(f"Audio playback failed: {e}") from e

    def _play_encoded(self, audio: bytes, encoding: str) -> None:
        player = shutil.which(self._player_command[0])
        if player is None:
            raise RuntimeError(f"Audio player not found: {self._player_command[0]}")

        with self._scratch.create(suffix=f".{encoding}") as scratch:
            scratch.path.write_bytes(audio)
            cmd = [player, *self._player_command[1:], str(scratch.path)]
            with self._lock:
                if self._closed:
                    return
                self._process = subprocess.Popen(
                    cmd,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.PIPE,
                )
                process = self._process
            try:
                _, stderr = process.communicate(timeout=self._timeout_s)
            except subprocess.TimeoutExpired as e:
                process.kill()
                process.communicate()
                raise RuntimeError(f"Audio player timed out after {self._timeout_s}s") from e
            finally:
                with self._lock:
                    self._process = None

            if process.returncode not in (0, -15):
                message = stderr.decode(errors="replace").strip() if stderr else ""
                raise RuntimeError(f"Audio player exited with {process.returncode}: {message}")

    def stop(self) -> None:
        """Interrupt any playback in progress."""
        with self._lock:
            process = self._process
        if process is not None and process.poll() is None:
            process.terminate()
        try:
            self._playback.stop()
        except OSError as e:
            logger.warning(f"Error stopping playback: {e}")

    def cleanup(self) -> int:
        """Stop playback and release every scratch file still alive.

        Returns:
            Number of scratch files deleted by this call
        """
        with self._lock:
            self._closed = True
        self.stop()
        released = self._scratch.release_all()
        if released:
            logger.info(f"Released {released} playback scratch file(s)")
        return released


__all__ = ["AudioPlaybackService"]
