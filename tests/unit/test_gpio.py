"""Unit tests for GPIO input and output ports."""

import threading
import time

import pytest

from pivoice.config import GPIOConfig
from pivoice.errors import InputFailure
from pivoice.gpio import (
    RECORD,
    Debouncer,
    DigitalInputPort,
    DigitalOutputPort,
    GPIOPorts,
    MockLineFactory,
    PressEvent,
    create_ports,
)


def wait_until(predicate, timeout: float = 2.0) -> bool:
    """Poll ``predicate`` until it holds or ``timeout`` elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class PressRecorder:
    """Collects press events delivered on the watcher thread."""

    def __init__(self) -> None:
        self.events: list[PressEvent] = []
        self._lock = threading.Lock()

    def __call__(self, event: PressEvent) -> None:
        with self._lock:
            self.events.append(event)

    @property
    def count(self) -> int:
        with self._lock:
            return len(self.events)


class TestDebouncer:
    """Tests for the debounce window."""

    def test_first_edge_accepted(self) -> None:
        """Test that the first edge is always accepted."""
        debouncer = Debouncer(0.2)
        assert debouncer.accept(10.0) is True
        assert debouncer.last_accepted == 10.0

    def test_edges_inside_window_dropped(self) -> None:
        """Test that every edge within the window is dropped."""
        debouncer = Debouncer(0.2)
        debouncer.accept(10.0)

        accepted = [debouncer.accept(10.0 + i * 0.02) for i in range(1, 10)]

        assert accepted == [False] * 9
        assert debouncer.last_accepted == 10.0

    def test_dropped_edges_do_not_extend_window(self) -> None:
        """Test that the window is measured from the last accepted edge."""
        debouncer = Debouncer(0.2)
        debouncer.accept(10.0)
        debouncer.accept(10.15)

        assert debouncer.accept(10.2) is True

    def test_edge_exactly_one_window_later_accepted(self) -> None:
        """Test that the window boundary itself is accepted."""
        debouncer = Debouncer(0.25)
        debouncer.accept(1.0)

        assert debouncer.accept(1.25) is True
        assert debouncer.last_accepted == 1.25

    def test_edge_just_inside_window_dropped(self) -> None:
        """Test that an edge a millisecond short of the window is dropped."""
        debouncer = Debouncer(0.25)
        debouncer.accept(1.0)

        assert debouncer.accept(1.249) is False
        assert debouncer.last_accepted == 1.0

    def test_accepted_edges_spaced_by_window(self) -> None:
        """Test that accepted edges are always at least one window apart."""
        debouncer = Debouncer(0.2)
        timestamps = [i * 0.05 for i in range(100)]

        accepted = [ts for ts in timestamps if debouncer.accept(ts)]

        gaps = [b - a for a, b in zip(accepted, accepted[1:])]
        assert all(gap >= 0.2 - 1e-9 for gap in gaps)
        assert len(accepted) > 1


class TestDigitalInputPort:
    """Tests for DigitalInputPort."""

    def test_bounce_burst_emits_single_press(self) -> None:
        """Test that a burst of edges inside the window yields one press."""
        factory = MockLineFactory()
        recorder = PressRecorder()
        port = DigitalInputPort(
            RECORD, 17, debounce_s=0.2, line_factory=factory.input_line, when_pressed=recorder
        )
        port.start()
        line = factory.inputs[17]

        line.push_bounce(100.0, count=8, spacing_s=0.01)
        line.push_edge(101.0)

        assert wait_until(lambda: recorder.count >= 2)
        time.sleep(0.05)
        assert [event.timestamp_s for event in recorder.events] == [100.0, 101.0]
        assert recorder.events[0].name == RECORD
        assert recorder.events[0].pin == 17
        port.close()

    def test_unavailable_line_is_inert(self) -> None:
        """Test that a line that cannot be acquired leaves the port inert."""
        factory = MockLineFactory(fail_pins={17})
        port = DigitalInputPort(RECORD, 17, line_factory=factory.input_line)

        assert port.is_inert is True
        port.start()
        port.close()

    def test_read_failure_makes_port_inert(self) -> None:
        """Test that a read error disables the port instead of raising."""
        factory = MockLineFactory()
        port = DigitalInputPort(RECORD, 17, line_factory=factory.input_line)
        port.start()

        factory.inputs[17].set_read_error(OSError("line gone"))

        assert wait_until(lambda: port.is_inert)
        port.close()

    def test_handler_exception_does_not_stop_watching(self) -> None:
        """Test that a failing callback does not kill the watcher."""
        factory = MockLineFactory()
        recorder = PressRecorder()

        def flaky(event: PressEvent) -> None:
            recorder(event)
            if recorder.count == 1:
                raise ValueError("boom")

        port = DigitalInputPort(
            RECORD, 17, debounce_s=0.1, line_factory=factory.input_line, when_pressed=flaky
        )
        port.start()
        line = factory.inputs[17]
        line.push_edge(1.0)
        line.push_edge(2.0)

        assert wait_until(lambda: recorder.count == 2)
        assert not port.is_inert
        port.close()

    def test_close_is_idempotent(self) -> None:
        """Test that closing twice releases the line once."""
        factory = MockLineFactory()
        port = DigitalInputPort(RECORD, 17, line_factory=factory.input_line)
        port.start()

        port.close()
        port.close()

        line = factory.inputs[17]
        assert line.released is True
        assert line.release_count == 1
        assert port.is_inert is True

    def test_no_presses_after_close(self) -> None:
        """Test that edges after close are never delivered."""
        factory = MockLineFactory()
        recorder = PressRecorder()
        port = DigitalInputPort(RECORD, 17, line_factory=factory.input_line, when_pressed=recorder)
        port.start()
        port.close()

        factory.inputs[17].push_edge(5.0)
        time.sleep(0.05)

        assert recorder.count == 0


class TestDigitalOutputPort:
    """Tests for DigitalOutputPort."""

    def test_set_writes_line(self) -> None:
        """Test that on/off drive the line."""
        factory = MockLineFactory()
        led = DigitalOutputPort("status", 22, line_factory=factory.output_line)

        led.on()
        led.off()
        led.set(True)

        assert factory.outputs[22].writes == [True, False, True]
        assert led.value is True

    def test_close_turns_lit_line_off(self) -> None:
        """Test that closing a lit indicator drives it low and releases it."""
        factory = MockLineFactory()
        led = DigitalOutputPort("status", 22, line_factory=factory.output_line)
        led.on()

        led.close()

        line = factory.outputs[22]
        assert line.writes == [True, False]
        assert line.released is True
        assert led.value is False

    def test_close_unlit_line_writes_nothing(self) -> None:
        """Test that closing an indicator that is already off only releases it."""
        factory = MockLineFactory()
        led = DigitalOutputPort("active", 23, line_factory=factory.output_line)
        led.on()
        led.off()

        led.close()

        assert factory.outputs[23].writes == [True, False]
        assert factory.outputs[23].released is True

    def test_set_after_close_ignored(self) -> None:
        """Test that a closed indicator ignores further writes."""
        factory = MockLineFactory()
        led = DigitalOutputPort("active", 23, line_factory=factory.output_line)
        led.close()

        led.on()

        assert factory.outputs[23].writes == []
        assert led.value is False

    def test_write_error_is_logged_not_raised(self) -> None:
        """Test that a failing write does not raise."""
        factory = MockLineFactory()
        led = DigitalOutputPort("active", 23, line_factory=factory.output_line)
        factory.outputs[23].set_write_error(OSError("write failed"))

        led.on()

        assert led.value is True

    def test_unavailable_line_is_inert(self) -> None:
        """Test that an output that cannot be acquired is inert."""
        factory = MockLineFactory(fail_pins={23})
        led = DigitalOutputPort("active", 23, line_factory=factory.output_line)

        led.on()
        led.close()

        assert led.is_inert is True


class TestGPIOPorts:
    """Tests for create_ports and GPIOPorts."""

    def test_create_mock_ports(self) -> None:
        """Test that mock ports use the configured pins."""
        config = GPIOConfig(record_pin=5, status_led_pin=6)
        ports = create_ports(config, use_mock=True)

        assert ports.mock_lines is not None
        assert ports.record.pin == 5
        assert 5 in ports.mock_lines.inputs
        assert 6 in ports.mock_lines.outputs
        ports.close()

    def test_disabled_gpio_uses_mock_lines(self) -> None:
        """Test that gpio.enabled = false falls back to mock lines."""
        ports = create_ports(GPIOConfig(enabled=False))

        assert ports.mock_lines is not None
        ports.close()

    def test_push_delivers_press(self) -> None:
        """Test that push() injects a press through the debounced port."""
        ports = create_ports(use_mock=True)
        recorder = PressRecorder()
        ports.switch_voice.when_pressed = recorder
        ports.start()

        ports.push("switch_voice")

        assert wait_until(lambda: recorder.count == 1)
        assert recorder.events[0].name == "switch_voice"
        ports.close()

    def test_push_rejected_on_hardware(self) -> None:
        """Test that presses cannot be injected into hardware lines."""
        factory = MockLineFactory()
        ports = GPIOPorts(
            record=DigitalInputPort("record", 17, line_factory=factory.input_line),
            switch_model=DigitalInputPort("switch_model", 27, line_factory=factory.input_line),
            switch_voice=DigitalInputPort("switch_voice", 24, line_factory=factory.input_line),
            status_led=DigitalOutputPort("status", 22, line_factory=factory.output_line),
            active_led=DigitalOutputPort("active", 23, line_factory=factory.output_line),
        )

        with pytest.raises(RuntimeError):
            ports.push("record")
        ports.close()

    def test_close_releases_every_line(self) -> None:
        """Test that close() releases inputs and outputs."""
        ports = create_ports(use_mock=True)
        ports.start()
        ports.status_led.on()

        ports.close()

        assert ports.mock_lines is not None
        assert all(line.released for line in ports.mock_lines.inputs.values())
        assert all(line.released for line in ports.mock_lines.outputs.values())
        assert ports.mock_lines.outputs[22].value is False

    def test_input_failure_carries_pin(self) -> None:
        """Test that InputFailure reports the line offset."""
        factory = MockLineFactory(fail_pins={9})

        with pytest.raises(InputFailure) as exc_info:
            factory.input_line(9)

        assert exc_info.value.pin == 9
