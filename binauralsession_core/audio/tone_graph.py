"""Two-oscillator binaural tone graph.

The graph mirrors a small audio-node network::

    left oscillator  -> left gain  -> merger input 0 \\
                                                      -> master gain -> output
    right oscillator -> right gain -> merger input 1 /

Every node renders by pulling from the node connected to its input, so a
node that has been disconnected simply produces silence.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, List, Optional, Tuple

import numpy as np
from PyQt5.QtCore import QMutex, QMutexLocker

from .params import SmoothedParam

logger = logging.getLogger(__name__)

LEFT_CHANNEL = 0
RIGHT_CHANNEL = 1
_CHANNELS = {"left": LEFT_CHANNEL, "right": RIGHT_CHANNEL}
_TWO_PI = 2.0 * math.pi


class _Node:
    """Base class handling connections between nodes."""

    def __init__(self, num_inputs: int = 1) -> None:
        self._inputs: Dict[int, "_Node"] = {}
        self._num_inputs = num_inputs
        self._connections: List[Tuple["_Node", int]] = []

    def connect(self, destination: "_Node", input_index: int = 0) -> None:
        if not 0 <= input_index < destination._num_inputs:
            raise ValueError(f"Input index {input_index} out of range for {type(destination).__name__}")
        destination._inputs[input_index] = self
        self._connections.append((destination, input_index))

    def disconnect(self) -> None:
        for destination, input_index in self._connections:
            if destination._inputs.get(input_index) is self:
                del destination._inputs[input_index]
        self._connections.clear()

    @property
    def connected(self) -> bool:
        return bool(self._connections)

    def _pull_input(self, frames: int, index: int = 0) -> Optional[np.ndarray]:
        source = self._inputs.get(index)
        if source is None:
            return None
        return source.pull(frames)

    def pull(self, frames: int) -> np.ndarray:  # pragma: no cover - abstract
        raise NotImplementedError


class OscillatorNode(_Node):
    """Phase-continuous sine oscillator with a smoothed frequency."""

    def __init__(self, sample_rate: int, frequency: float, time_constant: float) -> None:
        super().__init__(num_inputs=0)
        self.sample_rate = int(sample_rate)
        self.frequency = SmoothedParam(frequency, sample_rate, time_constant)
        self._phase = 0.0
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        self._running = True

    def stop(self) -> None:
        if not self._running:
            raise RuntimeError("Oscillator is not running")
        self._running = False

    def pull(self, frames: int) -> np.ndarray:
        if not self._running:
            return np.zeros(frames, dtype=np.float64)
        increments = self.frequency.render(frames) * (_TWO_PI / self.sample_rate)
        # The first sample of the block uses the phase carried over from the last one.
        phases = self._phase + np.cumsum(increments) - increments
        self._phase = float((self._phase + increments.sum()) % _TWO_PI)
        return np.sin(phases)


class GainNode(_Node):
    def __init__(self, sample_rate: int, gain: float, time_constant: float) -> None:
        super().__init__(num_inputs=1)
        self.gain = SmoothedParam(gain, sample_rate, time_constant)

    def pull(self, frames: int) -> np.ndarray:
        gains = self.gain.render(frames)
        signal = self._pull_input(frames)
        if signal is None:
            return np.zeros(frames, dtype=np.float64)
        if signal.ndim == 2:
            return signal * gains[:, np.newaxis]
        return signal * gains


class ChannelMergerNode(_Node):
    """Place each mono input on its own output channel (no down-mixing)."""

    def __init__(self, channels: int = 2) -> None:
        super().__init__(num_inputs=channels)

    def pull(self, frames: int) -> np.ndarray:
        out = np.zeros((frames, self._num_inputs), dtype=np.float64)
        for channel in range(self._num_inputs):
            signal = self._pull_input(frames, channel)
            if signal is not None:
                out[:, channel] = signal if signal.ndim == 1 else signal.mean(axis=1)
        return out


class ToneGraph:
    """Owns the oscillators and gains of one binaural session.

    All operations are silent no-ops before :meth:`initialize` and after
    :meth:`teardown`.
    """

    def __init__(
        self,
        sample_rate: int = 44100,
        *,
        time_constant: float = 0.1,
        channel_time_constant: float = 0.05,
        volume: float = 0.5,
        left_enabled: bool = True,
        right_enabled: bool = True,
        initial_frequency: float = 0.0,
    ) -> None:
        self.sample_rate = int(sample_rate)
        self.time_constant = float(time_constant)
        self.channel_time_constant = float(channel_time_constant)
        self._initial_volume = _clamp_unit(volume)
        self._initial_enabled = {LEFT_CHANNEL: bool(left_enabled), RIGHT_CHANNEL: bool(right_enabled)}
        self._initial_frequency = float(initial_frequency)

        self._mutex = QMutex()
        self._initialized = False
        self._torn_down = False
        self._oscillators: List[OscillatorNode] = []
        self._channel_gains: List[GainNode] = []
        self._merger: Optional[ChannelMergerNode] = None
        self._master: Optional[GainNode] = None

    @property
    def is_live(self) -> bool:
        return self._initialized and not self._torn_down

    @property
    def torn_down(self) -> bool:
        return self._torn_down

    def initialize(self) -> None:
        if self._initialized:
            return
        locker = QMutexLocker(self._mutex)
        self._oscillators = [
            OscillatorNode(self.sample_rate, self._initial_frequency, self.time_constant)
            for _ in (LEFT_CHANNEL, RIGHT_CHANNEL)
        ]
        self._channel_gains = [
            GainNode(self.sample_rate, 1.0 if self._initial_enabled[ch] else 0.0, self.channel_time_constant)
            for ch in (LEFT_CHANNEL, RIGHT_CHANNEL)
        ]
        self._merger = ChannelMergerNode(2)
        self._master = GainNode(self.sample_rate, self._initial_volume, self.time_constant)

        for channel in (LEFT_CHANNEL, RIGHT_CHANNEL):
            self._oscillators[channel].connect(self._channel_gains[channel])
            self._channel_gains[channel].connect(self._merger, channel)
        self._merger.connect(self._master)

        for oscillator in self._oscillators:
            oscillator.start()
        self._initialized = True
        logger.debug("Tone graph initialized at %d Hz sample rate", self.sample_rate)

    def set_frequencies(self, left_hz: float, right_hz: float, *, immediate: bool = False) -> None:
        if not self.is_live:
            return
        for oscillator, hz in zip(self._oscillators, (left_hz, right_hz)):
            if immediate:
                oscillator.frequency.set_value(hz)
            else:
                oscillator.frequency.set_target(hz, self.time_constant)

    def set_master_gain(self, gain: float, *, immediate: bool = False) -> None:
        if not self.is_live or self._master is None:
            return
        gain = _clamp_unit(gain)
        if immediate:
            self._master.gain.set_value(gain)
        else:
            self._master.gain.set_target(gain, self.time_constant)

    def set_channel_enabled(self, channel: str, enabled: bool) -> None:
        index = _channel_index(channel)
        if not self.is_live:
            return
        self._channel_gains[index].gain.set_target(1.0 if enabled else 0.0, self.channel_time_constant)

    def target_frequencies(self) -> Tuple[float, float]:
        """Frequencies the oscillators are gliding towards."""
        if not self.is_live:
            return 0.0, 0.0
        return self._oscillators[LEFT_CHANNEL].frequency.target, self._oscillators[RIGHT_CHANNEL].frequency.target

    def instantaneous_frequencies(self) -> Tuple[float, float]:
        """Frequencies at the last rendered sample, mid-glide included."""
        if not self.is_live:
            return 0.0, 0.0
        return self._oscillators[LEFT_CHANNEL].frequency.value, self._oscillators[RIGHT_CHANNEL].frequency.value

    @property
    def master_gain(self) -> float:
        if not self.is_live or self._master is None:
            return 0.0
        return self._master.gain.target

    def channel_gain(self, channel: str) -> float:
        index = _channel_index(channel)
        if not self.is_live:
            return 0.0
        return self._channel_gains[index].gain.target

    def render(self, frames: int) -> np.ndarray:
        """Return ``frames`` stereo samples as float32, channel 0 left."""
        frames = max(int(frames), 0)
        locker = QMutexLocker(self._mutex)
        if not self.is_live or self._master is None:
            return np.zeros((frames, 2), dtype=np.float32)
        return self._master.pull(frames).astype(np.float32)

    def teardown(self) -> None:
        if not self._initialized or self._torn_down:
            return
        locker = QMutexLocker(self._mutex)
        for oscillator in self._oscillators:
            try:
                oscillator.stop()
            except RuntimeError:
                logger.debug("Oscillator already stopped during teardown")
        nodes: List[_Node] = [*self._oscillators, *self._channel_gains]
        if self._merger is not None:
            nodes.append(self._merger)
        if self._master is not None:
            nodes.append(self._master)
        for node in nodes:
            node.disconnect()
        self._torn_down = True
        logger.debug("Tone graph torn down")


def _clamp_unit(value: float) -> float:
    return min(max(float(value), 0.0), 1.0)


def _channel_index(channel: str) -> int:
    try:
        return _CHANNELS[channel]
    except KeyError:
        raise ValueError(f"channel must be 'left' or 'right', got {channel!r}") from None


__all__ = [
    "ChannelMergerNode",
    "GainNode",
    "LEFT_CHANNEL",
    "OscillatorNode",
    "RIGHT_CHANNEL",
    "ToneGraph",
]
