"""Unit tests for the PyAudio backend with PyAudio patched out."""

from collections.abc import Iterator
from unittest import mock

import pytest

from pivoice.audio.backends import portaudio
from pivoice.audio.backends.portaudio import PortAudioCapture, PortAudioHost, PortAudioPlayback

DEVICES = [
    {"name": "bcm2835 Headphones", "maxInputChannels": 0, "maxOutputChannels": 2},
    {"name": "USB PnP Sound Device", "maxInputChannels": 1, "maxOutputChannels": 2},
]


@pytest.fixture
def fake_pyaudio() -> Iterator[mock.MagicMock]:
    """Patch the pyaudio module and reset the shared host."""
    module = mock.MagicMock()
    pa = module.PyAudio.return_value
    pa.get_device_count.return_value = len(DEVICES)
    pa.get_device_info_by_index.side_effect = lambda i: DEVICES[i]
    pa.open.return_value.read.return_value = bytes(640)

    with mock.patch.object(portaudio, "pyaudio", module), mock.patch.object(
        portaudio, "PYAUDIO_AVAILABLE", True
    ), mock.patch.object(PortAudioHost, "_instance", None), mock.patch.object(
        PortAudioHost, "_users", 0
    ):
        yield module


class TestPortAudioHost:
    """Tests for device lookup and the shared PyAudio instance."""

    def test_unavailable(self) -> None:
        """Test that a missing PyAudio raises RuntimeError."""
        with mock.patch.object(portaudio, "PYAUDIO_AVAILABLE", False):
            with pytest.raises(RuntimeError, match="PyAudio not available"):
                PortAudioCapture()

    def test_device_fragment_match(self, fake_pyaudio: mock.MagicMock) -> None:
        """Test that a name fragment picks the first device with channels."""
        pa = fake_pyaudio.PyAudio.return_value

        assert PortAudioHost.device_index(pa, "usb", output=False) == 1
        assert PortAudioHost.device_index(pa, "bcm2835", output=True) == 0

    def test_wrong_direction_falls_back(self, fake_pyaudio: mock.MagicMock) -> None:
        """Test that an output-only device is not used for input."""
        pa = fake_pyaudio.PyAudio.return_value

        assert PortAudioHost.device_index(pa, "bcm2835", output=False) is None
        assert PortAudioHost.device_index(pa, "default", output=True) is None

    def test_shared_instance_terminated_by_last_user(self, fake_pyaudio: mock.MagicMock) -> None:
        """Test that PortAudio is initialized once and torn down at zero users."""
        first = PortAudioHost.acquire()
        second = PortAudioHost.acquire()
        PortAudioHost.release()

        assert first is second
        first.terminate.assert_not_called()

        PortAudioHost.release()
        first.terminate.assert_called_once()
        fake_pyaudio.PyAudio.assert_called_once()


class TestPortAudioCapture:
    """Tests for PortAudioCapture."""

    def test_read_returns_chunk(self, fake_pyaudio: mock.MagicMock) -> None:
        """Test that reads come back as 16-bit chunks from the opened device."""
        capture = PortAudioCapture(device_name="USB", chunk_size=320)
        capture.start()

        chunk = capture.read(320)

        assert capture.is_active is True
        assert chunk.num_frames == 320
        assert chunk.sample_width == 2
        kwargs = fake_pyaudio.PyAudio.return_value.open.call_args.kwargs
        assert kwargs["input_device_index"] == 1
        assert kwargs["frames_per_buffer"] == 320

    def test_read_before_start(self, fake_pyaudio: mock.MagicMock) -> None:
        """Test that reading a closed device raises RuntimeError."""
        with pytest.raises(RuntimeError, match="not active"):
            PortAudioCapture().read(160)

    def test_open_failure_releases_host(self, fake_pyaudio: mock.MagicMock) -> None:
        """Test that a failed open propagates and drops the PortAudio reference."""
        pa = fake_pyaudio.PyAudio.return_value
        pa.open.side_effect = OSError("Invalid input device")
        capture = PortAudioCapture()

        with pytest.raises(OSError):
            capture.start()

        assert capture.is_active is False
        pa.terminate.assert_called_once()

    def test_stop_is_idempotent(self, fake_pyaudio: mock.MagicMock) -> None:
        """Test that stop closes the stream once."""
        capture = PortAudioCapture()
        capture.start()
        stream = fake_pyaudio.PyAudio.return_value.open.return_value

        capture.stop()
        capture.stop()

        stream.close.assert_called_once()
        assert capture.is_active is False


class TestPortAudioPlayback:
    """Tests for PortAudioPlayback."""

    def test_writes_whole_buffer(self, fake_pyaudio: mock.MagicMock) -> None:
        """Test that the buffer is written in slices at its own rate."""
        playback = PortAudioPlayback()
        audio = bytes(5000)

        playback.play(audio, 16000)

        pa = fake_pyaudio.PyAudio.return_value
        stream = pa.open.return_value
        assert pa.open.call_args.kwargs["rate"] == 16000
        assert b"".join(c.args[0] for c in stream.write.call_args_list) == audio
        stream.close.assert_called_once()

    def test_stop_interrupts_playback(self, fake_pyaudio: mock.MagicMock) -> None:
        """Test that stop during a write ends playback before the next slice."""
        playback = PortAudioPlayback()
        stream = fake_pyaudio.PyAudio.return_value.open.return_value
        stream.write.side_effect = lambda data: playback._interrupted.set()

        playback.play(bytes(10000), 22050)

        assert stream.write.call_count == 1
