"""Mock GPIO lines for testing.

Provides mock line requests that behave like the gpiod-backed lines,
so ports can be exercised without Raspberry Pi hardware. Edges are
injected with ``push_edge`` (tests, keyboard simulation).
"""

import threading
import time

from ..errors import InputFailure


class MockEdgeLine:
    """Mock button input line.

    Implements the EdgeLine protocol. Injected edges are queued with their
    timestamp and handed out by ``read_edges`` in order.
    """

    def __init__(self, pin: int = 0) -> None:
        """Initialize mock input line.

        Args:
            pin: Line offset (informational only)
        """
        self.pin = pin
        self.released = False
        self.release_count = 0
        self._pending: list[float] = []
        self._cond = threading.Condition()
        self._read_error: Exception | None = None

    def push_edge(self, timestamp_s: float | None = None) -> None:
        """Inject a qualifying edge.

        Args:
            timestamp_s: Edge timestamp in seconds (monotonic now if None)
        """
        if timestamp_s is None:
            timestamp_s = time.monotonic()
        with self._cond:
            self._pending.append(timestamp_s)
            self._cond.notify_all()

    def push_bounce(self, start_s: float, count: int, spacing_s: float) -> None:
        """Inject a burst of edges, as a bouncing contact produces."""
        for i in range(count):
            self.push_edge(start_s + i * spacing_s)

    def set_read_error(self, error: Exception | None) -> None:
        """Make the next wait/read raise ``error``."""
        with self._cond:
            self._read_error = error
            self._cond.notify_all()

    def wait_edges(self, timeout_s: float) -> bool:
        with self._cond:
            self._cond.wait_for(
                lambda: bool(self._pending) or self._read_error is not None or self.released,
                timeout=timeout_s,
            )
            if self._read_error is not None:
                raise self._read_error
            return bool(self._pending)

    def read_edges(self) -> list[float]:
        with self._cond:
            if self._read_error is not None:
                raise self._read_error
            edges, self._pending = self._pending, []
            return edges

    def release(self) -> None:
        with self._cond:
            self.released = True
            self.release_count += 1
            self._cond.notify_all()


class MockOutputLine:
    """Mock LED output line.

    Records every value written for later verification.
    """

    def __init__(self, pin: int = 0) -> None:
        self.pin = pin
        self.released = False
        self.release_count = 0
        self.writes: list[bool] = []
        self._write_error: Exception | None = None
        self._lock = threading.Lock()

    def set_write_error(self, error: Exception | None) -> None:
        """Make subsequent writes raise ``error``."""
        self._write_error = error

    def write(self, value: bool) -> None:
        if self._write_error is not None:
            raise self._write_error
        with self._lock:
            self.writes.append(value)

    def release(self) -> None:
        self.released = True
        self.release_count += 1

    @property
    def value(self) -> bool:
        """Last value written (False if never written)."""
        with self._lock:
            return self.writes[-1] if self.writes else False


class MockLineFactory:
    """Creates and remembers mock lines keyed by pin.

    Pins listed in ``fail_pins`` raise InputFailure on request, mimicking
    a line that is busy or absent.
    """

    def __init__(self, fail_pins: set[int] | None = None) -> None:
        self.fail_pins = set(fail_pins or ())
        self.inputs: dict[int, MockEdgeLine] = {}
        self.outputs: dict[int, MockOutputLine] = {}

    def input_line(self, pin: int, active_low: bool = True) -> MockEdgeLine:
        if pin in self.fail_pins:
            raise InputFailure(f"GPIO {pin}: line busy", pin)
        line = MockEdgeLine(pin)
        self.inputs[pin] = line
        return line

    def output_line(self, pin: int) -> MockOutputLine:
        if pin in self.fail_pins:
            raise InputFailure(f"GPIO {pin}: line busy", pin)
        line = MockOutputLine(pin)
        self.outputs[pin] = line
        return line


__all__ = ["MockEdgeLine", "MockLineFactory", "MockOutputLine"]
