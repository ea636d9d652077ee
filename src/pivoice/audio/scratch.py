"""Owned temporary audio files.

Every scratch file is deleted through a single idempotent ``release()``,
whichever exit path reaches it first (normal completion, error, or a
shutdown cleanup pass run by the owner).
"""

import logging
import os
import tempfile
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class ScratchFile:
    """A temporary file deleted exactly once.

    Example:
        with ScratchFile(suffix=".mp3") as scratch:
            scratch.path.write_bytes(audio)
            play(scratch.path)
    """

    def __init__(
        self,
        suffix: str = ".wav",
        directory: str | Path | None = None,
        prefix: str = "pivoice-",
    ) -> None:
        """Create the file on disk.

        Args:
            suffix: File extension
            directory: Parent directory (system temp dir if None)
            prefix: File name prefix
        """
        if directory is not None:
            Path(directory).mkdir(parents=True, exist_ok=True)
        fd, name = tempfile.mkstemp(suffix=suffix, prefix=prefix, dir=directory)
        os.close(fd)
        self.path = Path(name)
        self._released = False
        self._lock = threading.Lock()
        self._on_release: list[Callable[["ScratchFile"], None]] = []

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> bool:
        """Delete the file.

        Returns:
            True if this call deleted it, False if it was already released
        """
        with self._lock:
            if self._released:
                return False
            self._released = True
            callbacks = list(self._on_release)

        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Failed to delete scratch file {self.path}: {e}")

        for callback in callbacks:
            callback(self)
        return True

    def __enter__(self) -> "ScratchFile":
        return self

    def __exit__(self, *args: Any) -> None:
        self.release()


class ScratchArea:
    """Tracks the live scratch files created by one owner.

    ``release_all()`` runs the same ``release()`` each file's own exit path
    uses, so a file is never deleted twice.
    """

    def __init__(self, directory: str | Path | None = None) -> None:
        self._directory = directory
        self._live: set[ScratchFile] = set()
        self._lock = threading.Lock()

    def create(self, suffix: str = ".wav") -> ScratchFile:
        scratch = ScratchFile(suffix=suffix, directory=self._directory)
        with self._lock:
            self._live.add(scratch)
        scratch._on_release.append(self._forget)
        return scratch

    def _forget(self, scratch: ScratchFile) -> None:
        with self._lock:
            self._live.discard(scratch)

    @property
    def live_count(self) -> int:
        with self._lock:
            return len(self._live)

    def release_all(self) -> int:
        """Release every live file. Returns how many were deleted."""
        with self._lock:
            live = list(self._live)
        return sum(1 for scratch in live if scratch.release())


__all__ = ["ScratchArea", "ScratchFile"]
