"""Clock-driven stage sequencing for a running session."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional

from PyQt5.QtCore import QObject, Qt, QTimer, pyqtSignal, pyqtSlot

from ..config import EngineConfig
from ..session import StagePosition, StageTimeline
from .tone_graph import ToneGraph

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class SessionStatus(Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"


@dataclass(frozen=True)
class SessionState:
    """Snapshot published to observers on every tick."""

    status: SessionStatus = SessionStatus.IDLE
    is_playing: bool = False
    current_stage_index: int = 0
    elapsed_in_stage_seconds: float = 0.0
    total_elapsed_seconds: float = 0.0
    total_duration_seconds: float = 0.0
    stage_duration_seconds: float = 0.0
    current_left_hz: float = 0.0
    current_right_hz: float = 0.0

    @property
    def current_carrier_hz(self) -> float:
        return (self.current_left_hz + self.current_right_hz) / 2.0

    @property
    def current_beat_hz(self) -> float:
        return abs(self.current_right_hz - self.current_left_hz)

    @property
    def remaining_seconds(self) -> float:
        return max(self.total_duration_seconds - self.total_elapsed_seconds, 0.0)

    @property
    def stage_remaining_seconds(self) -> float:
        return max(self.stage_duration_seconds - self.elapsed_in_stage_seconds, 0.0)

    @property
    def progress(self) -> float:
        if self.total_duration_seconds <= 0:
            return 0.0
        return min(max(self.total_elapsed_seconds / self.total_duration_seconds, 0.0), 1.0)


IDLE_STATE = SessionState()
COMPLETED_STATE = SessionState(status=SessionStatus.COMPLETED)


class FrameTicker(QObject):  # type: ignore[misc]
    """Emit :attr:`frame` roughly once per display frame.

    A single-shot timer re-arms itself after each frame; :meth:`stop` clears
    the active flag that is checked before every re-arm, so no frame fires
    once it returns.
    """

    frame = pyqtSignal()

    def __init__(self, interval_ms: int = 16, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._interval_ms = int(interval_ms)
        self._active = False
        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.setTimerType(Qt.PreciseTimer)
        self._timer.timeout.connect(self._on_timeout)

    @property
    def active(self) -> bool:
        return self._active

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    def start(self) -> None:
        self._active = True
        self._timer.start(self._interval_ms)

    def stop(self) -> None:
        self._active = False
        self._timer.stop()

    @pyqtSlot()
    def _on_timeout(self) -> None:
        if not self._active:
            return
        self.frame.emit()
        if self._active:
            self._timer.start(self._interval_ms)


class TransitionScheduler(QObject):  # type: ignore[misc]
    """Advance a session through its stages against a monotonic clock.

    Elapsed time is always ``clock() - session_start``; nothing is summed
    per tick, so late or skipped frames never cause drift. A stage change
    glides the tone graph to the new stage's tones; reaching the end of the
    timeline tears the graph down and emits :attr:`completed`.
    """

    state_changed = pyqtSignal(object)
    stage_changed = pyqtSignal(int)
    completed = pyqtSignal()

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        parent: Optional[QObject] = None,
        *,
        clock: Clock = time.monotonic,
        ticker: Optional[FrameTicker] = None,
    ) -> None:
        super().__init__(parent)
        self._config = config or EngineConfig()
        self._clock = clock
        self._ticker = ticker or FrameTicker(self._config.tick_interval_ms, self)
        self._ticker.frame.connect(self.tick)

        self._status = SessionStatus.IDLE
        self._state = IDLE_STATE
        self._timeline: Optional[StageTimeline] = None
        self._graph: Optional[ToneGraph] = None
        self._session_start = 0.0
        self._paused_at = 0.0
        self._stage_index = 0

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def timeline(self) -> Optional[StageTimeline]:
        return self._timeline

    @property
    def graph(self) -> Optional[ToneGraph]:
        return self._graph

    @property
    def ticker(self) -> FrameTicker:
        return self._ticker

    def start(self, timeline: StageTimeline, graph: ToneGraph) -> None:
        """Enter the running state from scratch with stage 0 sounding."""
        self._halt()
        self._timeline = timeline
        self._graph = graph
        self._session_start = self._clock()
        self._stage_index = 0
        left_hz, right_hz = timeline.frequencies_for(0)
        # Nothing is sounding yet, so the first stage does not glide.
        graph.set_frequencies(left_hz, right_hz, immediate=True)
        self._status = SessionStatus.RUNNING
        logger.info(
            "Session started: %d stages, %.1fs total", len(timeline), timeline.total_duration
        )
        self.stage_changed.emit(0)
        self._publish(self._snapshot(0.0, StagePosition(0, 0.0)))
        self._ticker.start()

    @pyqtSlot()
    def tick(self) -> None:
        timeline = self._timeline
        if self._status is not SessionStatus.RUNNING or timeline is None:
            return
        total_elapsed = self._clock() - self._session_start
        position = timeline.stage_at(total_elapsed)
        if position.complete:
            self._complete()
            return
        if position.index != self._stage_index:
            self._enter_stage(position.index)
            # A stage_changed observer may have stopped or restarted the session.
            if self._status is not SessionStatus.RUNNING or self._timeline is not timeline:
                return
        self._publish(self._snapshot(total_elapsed, position))

    def stop(self) -> None:
        """Halt ticking, tear the graph down and return to idle. Always safe."""
        was_active = self._status in (SessionStatus.RUNNING, SessionStatus.PAUSED)
        self._halt()
        self._timeline = None
        self._status = SessionStatus.IDLE
        if was_active:
            logger.info("Session stopped")
        self._publish(IDLE_STATE)

    def pause(self) -> None:
        if self._status is not SessionStatus.RUNNING:
            return
        self._ticker.stop()
        self._paused_at = self._clock()
        self._status = SessionStatus.PAUSED
        self._publish(replace(self._state, status=SessionStatus.PAUSED, is_playing=False))

    def resume(self) -> None:
        if self._status is not SessionStatus.PAUSED:
            return
        self._session_start += self._clock() - self._paused_at
        self._status = SessionStatus.RUNNING
        self._ticker.start()
        self.tick()

    def seek(self, seconds: float) -> None:
        """Jump to ``seconds`` into the session, clamped to the timeline."""
        if self._timeline is None or self._status not in (SessionStatus.RUNNING, SessionStatus.PAUSED):
            return
        target = min(max(float(seconds), 0.0), self._timeline.total_duration)
        reference = self._paused_at if self._status is SessionStatus.PAUSED else self._clock()
        self._session_start = reference - target
        if self._status is SessionStatus.RUNNING:
            self.tick()
            return
        timeline = self._timeline
        position = timeline.stage_at(target)
        if position.complete:
            return
        if position.index != self._stage_index:
            self._enter_stage(position.index)
            if self._status is not SessionStatus.PAUSED or self._timeline is not timeline:
                return
        self._publish(replace(self._snapshot(target, position), status=SessionStatus.PAUSED, is_playing=False))

    def _enter_stage(self, index: int) -> None:
        self._stage_index = index
        left_hz, right_hz = self._timeline.frequencies_for(index)
        if self._graph is not None:
            self._graph.set_frequencies(left_hz, right_hz)
        logger.info("Entering stage %d (%.2f Hz / %.2f Hz)", index, left_hz, right_hz)
        self.stage_changed.emit(index)

    def _complete(self) -> None:
        self._halt()
        self._timeline = None
        self._status = SessionStatus.COMPLETED
        logger.info("Session completed")
        self._publish(COMPLETED_STATE)
        self.completed.emit()

    def _halt(self) -> None:
        self._ticker.stop()
        if self._graph is not None:
            self._graph.teardown()
            self._graph = None
        self._stage_index = 0

    def _snapshot(self, total_elapsed: float, position: StagePosition) -> SessionState:
        timeline = self._timeline
        left_hz, right_hz = self._graph.target_frequencies() if self._graph is not None else (0.0, 0.0)
        return SessionState(
            status=self._status,
            is_playing=self._status is SessionStatus.RUNNING,
            current_stage_index=position.index,
            elapsed_in_stage_seconds=position.elapsed_in_stage,
            total_elapsed_seconds=max(total_elapsed, 0.0),
            total_duration_seconds=timeline.total_duration if timeline is not None else 0.0,
            stage_duration_seconds=timeline[position.index].duration_seconds if timeline is not None else 0.0,
            current_left_hz=left_hz,
            current_right_hz=right_hz,
        )

    def _publish(self, state: SessionState) -> None:
        self._state = state
        self.state_changed.emit(state)


__all__ = [
    "COMPLETED_STATE",
    "FrameTicker",
    "IDLE_STATE",
    "SessionState",
    "SessionStatus",
    "TransitionScheduler",
]
