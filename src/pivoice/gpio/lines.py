"""GPIO line access through libgpiod.

Raspberry Pi GPIO pins are accessed through the gpiod library, which talks
to the kernel's GPIO character device (/dev/gpiochipN).

Each Pi model has one or more GPIO chips:
  Pi 3B/3B+/4  ->  /dev/gpiochip0  (BCM2835/BCM2711, 54 lines)
  Pi 5         ->  /dev/gpiochip4  (RP1, 54 lines)

The chip is auto-detected so the code works across Pi models.
"""

import logging
from datetime import timedelta
from typing import Protocol

from ..errors import InputFailure

try:
    import gpiod
    from gpiod.line import Bias, Direction, Edge, Value

    GPIOD_AVAILABLE = True
except ImportError:
    GPIOD_AVAILABLE = False
    gpiod = None  # type: ignore

logger = logging.getLogger(__name__)

CONSUMER = "pivoice"

# Cached chip path, detected once at first use
_chip_path: str | None = None


class EdgeLine(Protocol):
    """An input line that reports qualifying edges."""

    def wait_edges(self, timeout_s: float) -> bool:
        """Block until an edge is pending or the timeout elapses."""
        ...

    def read_edges(self) -> list[float]:
        """Return timestamps (seconds) of pending qualifying edges."""
        ...

    def release(self) -> None:
        """Release the line. Safe to call more than once."""
        ...


class OutputLine(Protocol):
    """An output line driven high or low."""

    def write(self, value: bool) -> None:
        """Drive the line (True = HIGH)."""
        ...

    def release(self) -> None:
        """Release the line. Safe to call more than once."""
        ...


def get_chip_path(preferred: str | None = None) -> str:
    """Find the main Broadcom GPIO chip (the one with 54 lines)."""
    global _chip_path
    if preferred:
        return preferred
    if _chip_path is not None:
        return _chip_path

    # Pick the first chip with >= 28 GPIO lines
    for path in ["/dev/gpiochip0", "/dev/gpiochip4"]:
        try:
            with gpiod.Chip(path) as chip:
                if chip.get_info().num_lines >= 28:
                    _chip_path = path
                    return path
        except (OSError, PermissionError):
            continue

    _chip_path = "/dev/gpiochip0"
    return _chip_path


class GpiodEdgeLine:
    """Button input requested with kernel edge detection.

    An active-low button (pull-up, pressed = LOW) qualifies on the falling
    edge; an active-high one on the rising edge. Timestamps come from the
    kernel, so they are unaffected by how late the events are read.
    """

    def __init__(self, pin: int, active_low: bool = True, chip: str | None = None) -> None:
        if not GPIOD_AVAILABLE:
            raise InputFailure("gpiod library not installed", pin)

        self._pin = pin
        settings = gpiod.LineSettings(
            direction=Direction.INPUT,
            edge_detection=Edge.FALLING if active_low else Edge.RISING,
            bias=Bias.PULL_UP if active_low else Bias.PULL_DOWN,
        )
        try:
            self._request = gpiod.request_lines(
                get_chip_path(chip),
                consumer=CONSUMER,
                config={pin: settings},
            )
        except (OSError, ValueError) as e:
            raise InputFailure(f"GPIO {pin}: input request failed - {e}", pin) from e

    def wait_edges(self, timeout_s: float) -> bool:
        return self._request.wait_edge_events(timedelta(seconds=timeout_s))

    def read_edges(self) -> list[float]:
        return [event.timestamp_ns / 1e9 for event in self._request.read_edge_events()]

    def release(self) -> None:
        if self._request is not None:
            self._request.release()
            self._request = None


class GpiodOutputLine:
    """LED output line."""

    def __init__(self, pin: int, chip: str | None = None) -> None:
        if not GPIOD_AVAILABLE:
            raise InputFailure("gpiod library not installed", pin)

        self._pin = pin
        try:
            self._request = gpiod.request_lines(
                get_chip_path(chip),
                consumer=CONSUMER,
                config={
                    pin: gpiod.LineSettings(
                        direction=Direction.OUTPUT,
                        output_value=Value.INACTIVE,
                    ),
                },
            )
        except (OSError, ValueError) as e:
            raise InputFailure(f"GPIO {pin}: output request failed - {e}", pin) from e

    def write(self, value: bool) -> None:
        if self._request is None:
            return
        self._request.set_value(self._pin, Value.ACTIVE if value else Value.INACTIVE)

    def release(self) -> None:
        if self._request is not None:
            self._request.release()
            self._request = None


__all__ = [
    "CONSUMER",
    "EdgeLine",
    "GPIOD_AVAILABLE",
    "GpiodEdgeLine",
    "GpiodOutputLine",
    "OutputLine",
    "get_chip_path",
]
