"""Debounced button inputs and LED outputs.

A port wraps one GPIO line. Hardware failures are absorbed here: a line
that cannot be acquired is reported once and the port stays inert for the
rest of the process instead of raising on every use.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass

from ..errors import InputFailure
from .lines import EdgeLine, GpiodEdgeLine, GpiodOutputLine, OutputLine

logger = logging.getLogger(__name__)

InputLineFactory = Callable[[int, bool], EdgeLine]
OutputLineFactory = Callable[[int], OutputLine]

# Float rounding slack so an edge exactly one window later is accepted
DEBOUNCE_TOLERANCE_S = 1e-6


@dataclass(frozen=True)
class PressEvent:
    """A debounced button press.

    Attributes:
        name: Logical button name (e.g. "record")
        pin: GPIO line offset
        timestamp_s: Edge timestamp from the line, in seconds
    """

    name: str
    pin: int
    timestamp_s: float


class Debouncer:
    """Accepts an edge only if the window has passed since the last accepted one.

    An edge exactly one window after the last accepted edge is accepted, so
    accepted edges are always at least ``window_s`` apart.

    Rejected edges do not move the reference point, so a long bounce burst
    cannot postpone the next legitimate press indefinitely.
    """

    def __init__(self, window_s: float) -> None:
        self._window_s = window_s
        self._last_accepted: float | None = None
        self._lock = threading.Lock()

    @property
    def window_s(self) -> float:
        return self._window_s

    @property
    def last_accepted(self) -> float | None:
        return self._last_accepted

    def accept(self, timestamp_s: float) -> bool:
        """Return True if the edge at ``timestamp_s`` is accepted."""
        with self._lock:
            if (
                self._last_accepted is not None
                and timestamp_s - self._last_accepted < self._window_s - DEBOUNCE_TOLERANCE_S
            ):
                return False
            self._last_accepted = timestamp_s
            return True


class DigitalInputPort:
    """A single physical button as a debounced press source.

    The line is acquired at construction. Edges are read on a watcher
    thread started by ``start()``; accepted presses are delivered to
    ``when_pressed``. The callback runs on the watcher thread and should
    only hand the event off (e.g. enqueue it).

    Example:
        port = DigitalInputPort("record", 17, debounce_s=0.2)
        port.when_pressed = lambda event: events.put(event)
        port.start()
    """

    # How long the watcher blocks per wait before re-checking for close()
    POLL_INTERVAL_S = 0.1

    def __init__(
        self,
        name: str,
        pin: int,
        debounce_s: float = 0.2,
        active_low: bool = True,
        chip: str | None = None,
        line_factory: InputLineFactory | None = None,
        when_pressed: Callable[[PressEvent], None] | None = None,
    ) -> None:
        """Initialize the input port.

        Args:
            name: Logical button name used in events and logs
            pin: GPIO line offset (BCM numbering)
            debounce_s: Minimum spacing between accepted presses
            active_low: True if pressing pulls the line low
            chip: GPIO chip path (auto-detected if None)
            line_factory: Creates the edge line; gpiod-backed if None
            when_pressed: Callback for accepted presses
        """
        self.name = name
        self.pin = pin
        self.when_pressed = when_pressed
        self._debouncer = Debouncer(debounce_s)
        self._closed = threading.Event()
        self._close_lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._line: EdgeLine | None = None

        if line_factory is None:

            def line_factory(p: int, low: bool) -> EdgeLine:
                return GpiodEdgeLine(p, active_low=low, chip=chip)

        try:
            self._line = line_factory(pin, active_low)
        except InputFailure as e:
            logger.warning(f"Button '{name}' unavailable, input disabled: {e}")

    @property
    def is_inert(self) -> bool:
        """True if the port can never emit (line missing or closed)."""
        return self._line is None or self._closed.is_set()

    @property
    def debouncer(self) -> Debouncer:
        return self._debouncer

    def start(self) -> None:
        """Start watching the line for presses.

        Does nothing if the port is inert or already started.
        """
        if self.is_inert or self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._watch,
            name=f"gpio-{self.name}",
            daemon=True,
        )
        self._thread.start()
        logger.debug(f"Watching button '{self.name}' on GPIO {self.pin}")

    def _watch(self) -> None:
        line = self._line
        while not self._closed.is_set() and line is not None:
            try:
                if not line.wait_edges(self.POLL_INTERVAL_S):
                    continue
                edges = line.read_edges()
            except OSError as e:
                if not self._closed.is_set():
                    logger.error(f"Button '{self.name}' read failed, input disabled: {e}")
                    self._line = None
                return

            for timestamp in edges:
                if self._closed.is_set():
                    return
                self._handle_edge(timestamp)

    def _handle_edge(self, timestamp_s: float) -> None:
        if not self._debouncer.accept(timestamp_s):
            logger.debug(f"Button '{self.name}': bounce dropped at {timestamp_s:.3f}")
            return

        callback = self.when_pressed
        if callback is None:
            return
        try:
            callback(PressEvent(name=self.name, pin=self.pin, timestamp_s=timestamp_s))
        except Exception:
            logger.exception(f"Button '{self.name}' handler failed")

    def close(self, timeout: float = 1.0) -> None:
        """Stop watching and release the line. Safe to call more than once."""
        with self._close_lock:
            if self._closed.is_set():
                return
            self._closed.set()

        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)

        line, self._line = self._line, None
        if line is not None:
            try:
                line.release()
            except OSError as e:
                logger.warning(f"Button '{self.name}' release failed: {e}")


class DigitalOutputPort:
    """An LED or indicator as a settable boolean.

    Write failures are logged, never raised. After ``close()`` the line is
    driven low and released and further ``set`` calls are ignored.
    """

    def __init__(
        self,
        name: str,
        pin: int,
        chip: str | None = None,
        line_factory: OutputLineFactory | None = None,
    ) -> None:
        self.name = name
        self.pin = pin
        self._value = False
        self._closed = False
        self._lock = threading.Lock()
        self._line: OutputLine | None = None

        if line_factory is None:

            def line_factory(p: int) -> OutputLine:
                return GpiodOutputLine(p, chip=chip)

        try:
            self._line = line_factory(pin)
        except InputFailure as e:
            logger.warning(f"Indicator '{name}' unavailable, output disabled: {e}")

    @property
    def value(self) -> bool:
        """Last value requested through ``set``."""
        return self._value

    @property
    def is_inert(self) -> bool:
        return self._line is None or self._closed

    def set(self, value: bool) -> None:
        """Drive the indicator on (True) or off (False)."""
        with self._lock:
            if self._closed:
                return
            self._value = value
            self._write(value)

    def on(self) -> None:
        self.set(True)

    def off(self) -> None:
        self.set(False)

    def _write(self, value: bool) -> None:
        if self._line is None:
            return
        try:
            self._line.write(value)
        except OSError as e:
            logger.warning(f"Indicator '{self.name}' write failed: {e}")

    def close(self) -> None:
        """Drive the line low if lit and release it. Safe to call more than once."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            if self._value:
                self._value = False
                self._write(False)
            line, self._line = self._line, None

        if line is not None:
            try:
                line.release()
            except OSError as e:
                logger.warning(f"Indicator '{self.name}' release failed: {e}")


__all__ = [
    "Debouncer",
    "DigitalInputPort",
    "DigitalOutputPort",
    "InputLineFactory",
    "OutputLineFactory",
    "PressEvent",
]
