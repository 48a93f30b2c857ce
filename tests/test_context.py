from pathlib import Path
import sys

import numpy as np
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from PyQt5.QtCore import Qt
from PyQt5.QtMultimedia import QAudio

from binauralsession_core.audio.context import (
    CONTEXT_CLOSED,
    CONTEXT_RUNNING,
    CONTEXT_SUSPENDED,
    ContextLifecycleManager,
)
from binauralsession_core.audio.tone_graph import ToneGraph
from binauralsession_core.errors import ContextUnavailable


@pytest.fixture
def manager(config, fake_output_factory):
    manager = ContextLifecycleManager(config, audio_output_factory=fake_output_factory)
    yield manager
    manager.shutdown()


def test_context_is_created_lazily_and_reused(manager, fake_output_factory):
    assert manager.context is None
    assert not fake_output_factory.instances

    first = manager.ensure_context()
    second = manager.ensure_context()

    assert first is second
    assert len(fake_output_factory.instances) == 1
    output = fake_output_factory.instances[0]
    assert output.started_devices == [first.device]
    assert output.buffer_size == int(0.25 * 8000) * 4
    assert first.state == CONTEXT_RUNNING
    assert first.sample_rate == 8000


def test_ensure_active_resumes_suspended_context(manager):
    context = manager.ensure_context()
    resumed = []
    manager.context_resumed.connect(lambda: resumed.append(True))

    context.audio_output.platform_suspend()
    assert context.state == CONTEXT_SUSPENDED

    assert manager.ensure_active() is True
    assert context.state == CONTEXT_RUNNING
    assert context.audio_output.resume_calls == 1
    assert resumed == [True]


def test_ensure_active_restarts_platform_stopped_output(manager):
    context = manager.ensure_context()
    output = context.audio_output
    output._state = QAudio.StoppedState

    assert manager.ensure_active() is True
    assert len(output.started_devices) == 2


def test_ensure_active_without_context_is_false(manager):
    assert manager.ensure_active() is False


def test_resume_failure_is_absorbed(manager):
    context = manager.ensure_context()
    output = context.audio_output

    def broken_resume():
        raise RuntimeError("device busy")

    output.resume = broken_resume
    output.platform_suspend()

    assert manager.ensure_active() is False
    assert context.state == CONTEXT_SUSPENDED


def test_keepalive_follows_session_flag_and_recovers(manager):
    context = manager.ensure_context()
    assert not manager.keepalive_running

    manager.set_session_active(True)
    assert manager.keepalive_running

    context.audio_output.platform_suspend()
    manager._on_keepalive()
    assert context.state == CONTEXT_RUNNING

    manager.set_session_active(False)
    assert not manager.keepalive_running

    context.audio_output.platform_suspend()
    manager._on_keepalive()
    assert context.state == CONTEXT_SUSPENDED


def test_application_becoming_active_resumes_playing_session(manager):
    context = manager.ensure_context()
    manager.set_session_active(True)
    context.audio_output.platform_suspend()

    manager.on_application_state_changed(Qt.ApplicationInactive)
    assert context.state == CONTEXT_SUSPENDED

    manager.on_application_state_changed(Qt.ApplicationActive)
    assert context.state == CONTEXT_RUNNING


def test_watch_application_requires_state_signal(manager, qapp):
    # A QCoreApplication has no applicationStateChanged signal.
    assert manager.watch_application(qapp) is False


def test_unavailable_output_raises_and_keeps_no_context(config):
    calls = []

    def refusing_factory(fmt, parent=None):
        calls.append(fmt)
        raise OSError("no audio device")

    manager = ContextLifecycleManager(config, audio_output_factory=refusing_factory)
    with pytest.raises(ContextUnavailable):
        manager.ensure_context()
    assert manager.context is None

    with pytest.raises(ContextUnavailable):
        manager.ensure_context()
    assert len(calls) == 2


def test_attached_graph_feeds_the_pull_device(manager):
    context = manager.ensure_context()
    assert context.device.render_bytes(400) == bytes(400)

    graph = ToneGraph(8000, volume=1.0)
    graph.initialize()
    graph.set_frequencies(200.0, 300.0, immediate=True)
    manager.attach(graph)

    data = context.device.render_bytes(400)
    assert len(data) == 400
    pcm = np.frombuffer(data, dtype=np.int16).reshape(-1, 2)
    assert pcm.shape == (100, 2)
    assert np.any(pcm != 0)

    manager.detach(ToneGraph(8000))
    assert context.device.graph is graph
    manager.detach(graph)
    assert context.device.graph is None


def test_shutdown_closes_context_and_is_idempotent(manager):
    context = manager.ensure_context()
    manager.set_session_active(True)

    manager.shutdown()
    manager.shutdown()

    assert context.state == CONTEXT_CLOSED
    assert context.audio_output.stopped
    assert manager.context is None
    assert not manager.keepalive_running

    replacement = manager.ensure_context()
    assert replacement is not context


def test_pull_device_advertises_one_second_at_configured_rate(manager):
    context = manager.ensure_context()
    available = context.device.bytesAvailable()
    assert 8000 * 4 <= available < 44100 * 4
