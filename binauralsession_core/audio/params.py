"""Smoothed audio parameters shared between the control and render sides."""

from __future__ import annotations

import math
from typing import Optional

import numpy as np
from PyQt5.QtCore import QMutex, QMutexLocker

# Below this distance from the target a glide is considered finished.
_SETTLE_EPSILON = 1e-9


class SmoothedParam:
    """A parameter that approaches its target exponentially.

    ``set_target`` schedules a glide with a time constant ``tau``: after
    ``tau`` seconds of rendering the value has covered ~63% of the distance.
    ``set_value`` jumps straight to the new value. :meth:`render` is called
    from the audio pull side, the setters from the control side, so all
    state is guarded by a mutex.
    """

    def __init__(self, value: float, sample_rate: int, time_constant: float) -> None:
        if sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {sample_rate}")
        if time_constant <= 0:
            raise ValueError(f"time_constant must be positive, got {time_constant}")
        self._sample_rate = int(sample_rate)
        self._time_constant = float(time_constant)
        self._value = float(value)
        self._target = float(value)
        self._mutex = QMutex()

    @property
    def value(self) -> float:
        """Most recently rendered value."""
        locker = QMutexLocker(self._mutex)
        return self._value

    @property
    def target(self) -> float:
        locker = QMutexLocker(self._mutex)
        return self._target

    @property
    def settled(self) -> bool:
        locker = QMutexLocker(self._mutex)
        return self._is_settled()

    def set_value(self, value: float) -> None:
        locker = QMutexLocker(self._mutex)
        self._value = float(value)
        self._target = float(value)

    def set_target(self, target: float, time_constant: Optional[float] = None) -> None:
        if time_constant is not None and time_constant <= 0:
            raise ValueError(f"time_constant must be positive, got {time_constant}")
        locker = QMutexLocker(self._mutex)
        self._target = float(target)
        if time_constant is not None:
            self._time_constant = float(time_constant)

    def render(self, frames: int) -> np.ndarray:
        """Return ``frames`` per-sample values and advance the glide."""
        locker = QMutexLocker(self._mutex)
        if frames <= 0:
            return np.zeros(0, dtype=np.float64)
        if self._is_settled():
            self._value = self._target
            return np.full(frames, self._target, dtype=np.float64)
        coeff = math.exp(-1.0 / (self._time_constant * self._sample_rate))
        decay = coeff ** np.arange(1, frames + 1, dtype=np.float64)
        values = self._target + (self._value - self._target) * decay
        self._value = float(values[-1])
        return values

    def _is_settled(self) -> bool:
        scale = max(1.0, abs(self._target))
        return abs(self._value - self._target) <= _SETTLE_EPSILON * scale


__all__ = ["SmoothedParam"]
