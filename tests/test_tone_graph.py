from pathlib import Path
import math
import sys

import numpy as np
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from binauralsession_core.audio.params import SmoothedParam
from binauralsession_core.audio.tone_graph import ToneGraph

SAMPLE_RATE = 8000


def _dominant_frequency(signal, sample_rate):
    spectrum = np.abs(np.fft.rfft(signal))
    freqs = np.fft.rfftfreq(signal.shape[0], 1.0 / sample_rate)
    return freqs[int(np.argmax(spectrum))]


def test_smoothed_param_follows_exponential_approach():
    param = SmoothedParam(0.0, sample_rate=1000, time_constant=0.1)
    param.set_target(1.0)
    assert param.target == 1.0
    assert param.value == 0.0

    values = param.render(100)
    assert values.shape == (100,)
    assert np.all(np.diff(values) > 0)
    assert values[-1] == pytest.approx(1.0 - math.exp(-1.0), rel=1e-9)
    assert param.value == pytest.approx(values[-1])


def test_smoothed_param_set_value_snaps():
    param = SmoothedParam(5.0, sample_rate=1000, time_constant=0.1)
    param.set_value(2.0)
    assert param.settled
    assert np.all(param.render(10) == 2.0)


def test_smoothed_param_rejects_bad_time_constant():
    param = SmoothedParam(0.0, sample_rate=1000, time_constant=0.1)
    with pytest.raises(ValueError):
        param.set_target(1.0, time_constant=0.0)
    # The param stays usable after a rejected call.
    param.set_target(1.0)
    assert param.target == 1.0


def test_operations_are_noops_before_initialize():
    graph = ToneGraph(SAMPLE_RATE)
    graph.set_frequencies(100.0, 110.0)
    graph.set_master_gain(1.0)
    graph.set_channel_enabled("left", False)
    graph.teardown()

    assert not graph.is_live
    assert graph.target_frequencies() == (0.0, 0.0)
    audio = graph.render(64)
    assert audio.shape == (64, 2)
    assert not audio.any()


def test_initialize_starts_oscillators_with_zero_offset():
    graph = ToneGraph(SAMPLE_RATE, initial_frequency=220.0)
    graph.initialize()
    left_hz, right_hz = graph.target_frequencies()
    assert left_hz == right_hz == 220.0
    assert graph.is_live


def test_channels_are_routed_explicitly():
    graph = ToneGraph(SAMPLE_RATE, volume=1.0)
    graph.initialize()
    graph.set_frequencies(200.0, 300.0, immediate=True)

    audio = graph.render(SAMPLE_RATE)

    assert audio.dtype == np.float32
    assert audio.shape == (SAMPLE_RATE, 2)
    assert _dominant_frequency(audio[:, 0], SAMPLE_RATE) == pytest.approx(200.0)
    assert _dominant_frequency(audio[:, 1], SAMPLE_RATE) == pytest.approx(300.0)
    assert np.max(np.abs(audio)) <= 1.0


def test_phase_is_continuous_across_blocks():
    whole = ToneGraph(SAMPLE_RATE, volume=1.0)
    whole.initialize()
    whole.set_frequencies(250.0, 260.0, immediate=True)
    reference = whole.render(1000)

    blocks = ToneGraph(SAMPLE_RATE, volume=1.0)
    blocks.initialize()
    blocks.set_frequencies(250.0, 260.0, immediate=True)
    pieces = np.concatenate([blocks.render(n) for n in (7, 293, 500, 200)])

    np.testing.assert_allclose(pieces, reference, atol=1e-5)


def test_set_frequencies_glides_instead_of_stepping():
    graph = ToneGraph(SAMPLE_RATE, time_constant=0.1)
    graph.initialize()
    graph.set_frequencies(195.0, 205.0, immediate=True)
    graph.set_frequencies(148.0, 152.0)

    assert graph.target_frequencies() == (148.0, 152.0)
    assert graph.instantaneous_frequencies() == (195.0, 205.0)

    graph.render(int(0.1 * SAMPLE_RATE))
    left_hz, right_hz = graph.instantaneous_frequencies()
    expected_left = 148.0 + (195.0 - 148.0) * math.exp(-1.0)
    assert left_hz == pytest.approx(expected_left, rel=1e-6)
    assert 148.0 < left_hz < 195.0
    assert 152.0 < right_hz < 205.0

    graph.render(SAMPLE_RATE * 2)
    left_hz, right_hz = graph.instantaneous_frequencies()
    assert left_hz == pytest.approx(148.0, abs=1e-3)
    assert right_hz == pytest.approx(152.0, abs=1e-3)


def test_master_gain_is_clamped_and_smoothed():
    graph = ToneGraph(SAMPLE_RATE, volume=0.5)
    graph.initialize()
    graph.set_master_gain(3.0)
    assert graph.master_gain == 1.0
    graph.set_master_gain(-1.0, immediate=True)
    assert graph.master_gain == 0.0
    graph.set_frequencies(200.0, 210.0, immediate=True)
    assert not graph.render(256).any()


def test_disabled_channel_fades_to_silence():
    graph = ToneGraph(SAMPLE_RATE, volume=1.0)
    graph.initialize()
    graph.set_frequencies(200.0, 210.0, immediate=True)
    graph.set_channel_enabled("right", False)

    audio = graph.render(SAMPLE_RATE)
    assert graph.channel_gain("right") == 0.0
    assert np.max(np.abs(audio[-200:, 1])) < 1e-6
    assert np.max(np.abs(audio[-200:, 0])) > 0.5

    with pytest.raises(ValueError):
        graph.set_channel_enabled("center", True)


def test_graph_honours_initial_channel_state():
    graph = ToneGraph(SAMPLE_RATE, volume=1.0, left_enabled=False)
    graph.initialize()
    graph.set_frequencies(200.0, 210.0, immediate=True)
    audio = graph.render(512)
    assert not audio[:, 0].any()
    assert audio[:, 1].any()


def test_teardown_is_idempotent_and_silences_graph():
    graph = ToneGraph(SAMPLE_RATE, volume=1.0)
    graph.initialize()
    graph.set_frequencies(200.0, 210.0, immediate=True)
    assert graph.render(128).any()

    graph.teardown()
    graph.teardown()

    assert graph.torn_down
    assert not graph.is_live
    assert not graph.render(128).any()
    graph.set_frequencies(300.0, 310.0)
    assert graph.target_frequencies() == (0.0, 0.0)
