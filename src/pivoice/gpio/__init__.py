"""GPIO module for pivoice.

Provides the three buttons (record, switch model, switch voice) and the two
indicators (status, active) as debounced input ports and output ports.

Usage:
    ports = create_ports(config.gpio)
    ports.record.when_pressed = on_record
    ports.start()
    ...
    ports.close()

    # Without hardware, mock lines accept injected edges
    ports = create_ports(config.gpio, use_mock=True)
    ports.push("record")
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .lines import GPIOD_AVAILABLE, EdgeLine, GpiodEdgeLine, GpiodOutputLine, OutputLine
from .mock import MockEdgeLine, MockLineFactory, MockOutputLine
from .ports import Debouncer, DigitalInputPort, DigitalOutputPort, PressEvent

if TYPE_CHECKING:
    from ..config import GPIOConfig

logger = logging.getLogger(__name__)

RECORD = "record"
SWITCH_MODEL = "switch_model"
SWITCH_VOICE = "switch_voice"


@dataclass
class GPIOPorts:
    """The controller's buttons and indicators.

    ``mock_lines`` is set when the ports run on mock lines, so edges can be
    injected by tests or the keyboard simulator.
    """

    record: DigitalInputPort
    switch_model: DigitalInputPort
    switch_voice: DigitalInputPort
    status_led: DigitalOutputPort
    active_led: DigitalOutputPort
    mock_lines: MockLineFactory | None = None

    @property
    def inputs(self) -> list[DigitalInputPort]:
        return [self.record, self.switch_model, self.switch_voice]

    @property
    def outputs(self) -> list[DigitalOutputPort]:
        return [self.status_led, self.active_led]

    def start(self) -> None:
        """Start the watcher thread of every input."""
        for port in self.inputs:
            port.start()

    def push(self, button: str, timestamp_s: float | None = None) -> None:
        """Inject a press on a mock button.

        Raises:
            RuntimeError: If the ports are backed by real hardware
        """
        if self.mock_lines is None:
            raise RuntimeError("Cannot inject presses into hardware GPIO lines")
        port = getattr(self, button)
        line = self.mock_lines.inputs.get(port.pin)
        if line is not None:
            line.push_edge(timestamp_s)

    def close_inputs(self) -> None:
        for port in self.inputs:
            port.close()

    def close(self) -> None:
        """Close inputs, then the active indicator, then status last."""
        self.close_inputs()
        self.active_led.close()
        self.status_led.close()


def create_ports(
    config: "GPIOConfig | None" = None,
    use_mock: bool = False,
) -> GPIOPorts:
    """Create the button and indicator ports.

    Args:
        config: GPIO configuration (uses defaults if None)
        use_mock: If True, back every port with mock lines

    Returns:
        GPIOPorts with all five ports acquired (or inert on failure)
    """
    from ..config import GPIOConfig

    if config is None:
        config = GPIOConfig()

    debounce_s = config.debounce_ms / 1000.0
    mock_lines: MockLineFactory | None = None

    if use_mock or not config.enabled:
        mock_lines = MockLineFactory()
        input_factory = mock_lines.input_line
        output_factory = mock_lines.output_line
        logger.info("GPIO running on mock lines")
    else:
        if not GPIOD_AVAILABLE:
            logger.warning("gpiod not installed, buttons and indicators are disabled")

        def input_factory(pin: int, active_low: bool) -> EdgeLine:
            return GpiodEdgeLine(pin, active_low=active_low, chip=config.chip)

        def output_factory(pin: int) -> OutputLine:
            return GpiodOutputLine(pin, chip=config.chip)

    def button(name: str, pin: int) -> DigitalInputPort:
        return DigitalInputPort(
            name,
            pin,
            debounce_s=debounce_s,
            active_low=config.active_low,
            line_factory=input_factory,
        )

    return GPIOPorts(
        record=button(RECORD, config.record_pin),
        switch_model=button(SWITCH_MODEL, config.switch_model_pin),
        switch_voice=button(SWITCH_VOICE, config.switch_voice_pin),
        status_led=DigitalOutputPort("status", config.status_led_pin, line_factory=output_factory),
        active_led=DigitalOutputPort("active", config.active_led_pin, line_factory=output_factory),
        mock_lines=mock_lines,
    )


__all__ = [
    "Debouncer",
    "DigitalInputPort",
    "DigitalOutputPort",
    "GPIOD_AVAILABLE",
    "GPIOPorts",
    "MockEdgeLine",
    "MockLineFactory",
    "MockOutputLine",
    "PressEvent",
    "RECORD",
    "SWITCH_MODEL",
    "SWITCH_VOICE",
    "create_ports",
]
