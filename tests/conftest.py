from pathlib import Path
import sys

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from PyQt5.QtCore import QCoreApplication
from PyQt5.QtMultimedia import QAudio

from binauralsession_core.config import EngineConfig


class FakeClock:
    def __init__(self, start=100.0):
        self.now = float(start)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeAudioOutput:
    """Stand-in for ``QAudioOutput`` that records calls and lets tests change its state."""

    instances = []

    def __init__(self, fmt, parent=None):
        self.format = fmt
        self.parent = parent
        self.started_devices = []
        self.buffer_size = None
        self.stopped = False
        self.resume_calls = 0
        self._state = QAudio.StoppedState
        FakeAudioOutput.instances.append(self)

    def setBufferSize(self, size):
        self.buffer_size = size

    def start(self, device):
        self.started_devices.append(device)
        self._state = QAudio.ActiveState

    def suspend(self):
        self._state = QAudio.SuspendedState

    def resume(self):
        self.resume_calls += 1
        self._state = QAudio.ActiveState

    def stop(self):
        self.stopped = True
        self._state = QAudio.StoppedState

    def state(self):
        return self._state

    def error(self):
        return QAudio.NoError

    def platform_suspend(self):
        """Simulate the OS suspending audio behind the engine's back."""
        self._state = QAudio.SuspendedState


@pytest.fixture(scope="session", autouse=True)
def qapp():
    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    return app


@pytest.fixture
def config():
    return EngineConfig(sample_rate=8000, validate_format=False)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_output_factory():
    FakeAudioOutput.instances.clear()
    return FakeAudioOutput
