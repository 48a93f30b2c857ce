"""Public playback facade for stage-sequenced binaural sessions."""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, Optional, Union

from PyQt5.QtCore import QObject, pyqtSignal, pyqtSlot

from ..config import EngineConfig
from ..errors import ContextUnavailable
from ..session import StageLike, StageTimeline, as_timeline
from .context import ContextLifecycleManager
from .scheduler import Clock, SessionState, SessionStatus, TransitionScheduler
from .tone_graph import ToneGraph

logger = logging.getLogger(__name__)


class PlaybackController(QObject):  # type: ignore[misc]
    """Play a :class:`StageTimeline` through the shared audio context.

    The lifecycle manager is handed in by the application so one audio
    context outlives individual sessions; :meth:`shutdown` disposes of it.
    State is available both as Qt signals and through plain callbacks.
    """

    state_changed = pyqtSignal(object)
    stage_changed = pyqtSignal(int)
    session_completed = pyqtSignal()
    error_occurred = pyqtSignal(str)

    def __init__(
        self,
        lifecycle: Optional[ContextLifecycleManager] = None,
        config: Optional[EngineConfig] = None,
        parent: Optional[QObject] = None,
        *,
        clock: Clock = time.monotonic,
        scheduler: Optional[TransitionScheduler] = None,
    ) -> None:
        super().__init__(parent)
        if config is None:
            config = lifecycle.config if lifecycle is not None else EngineConfig()
        self._config = config
        self._lifecycle = lifecycle or ContextLifecycleManager(config, self)
        self._scheduler = scheduler or TransitionScheduler(config, self, clock=clock)
        self._scheduler.state_changed.connect(self._on_state_changed)
        self._scheduler.stage_changed.connect(self.stage_changed)
        self._scheduler.completed.connect(self._on_completed)

        self._graph: Optional[ToneGraph] = None
        self._volume = float(config.default_volume)
        self._channel_enabled = {"left": True, "right": True}

        self._state_callback: Optional[Callable[[SessionState], None]] = None
        self._completion_callback: Optional[Callable[[], None]] = None

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------
    def set_state_callback(self, callback: Optional[Callable[[SessionState], None]]) -> None:
        self._state_callback = callback

    def set_completion_callback(self, callback: Optional[Callable[[], None]]) -> None:
        self._completion_callback = callback

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    def play(self, timeline: Union[StageTimeline, Iterable[StageLike]]) -> None:
        """Start ``timeline`` from its beginning, replacing any running session.

        Raises :class:`InvalidTimeline` before any audio resource is touched
        and :class:`ContextUnavailable` when no audio output can be opened.
        """
        timeline = as_timeline(timeline, higher_ear=self._config.higher_ear)
        try:
            context = self._lifecycle.ensure_context()
        except ContextUnavailable as exc:
            logger.error("Cannot start playback: %s", exc)
            self.error_occurred.emit(str(exc))
            raise
        self._lifecycle.ensure_active()
        # The previous session goes silent before the next graph exists.
        self._release_graph()

        graph = ToneGraph(
            context.sample_rate,
            time_constant=self._config.smoothing_time_constant,
            channel_time_constant=self._config.channel_time_constant,
            volume=self._volume,
            left_enabled=self._channel_enabled["left"],
            right_enabled=self._channel_enabled["right"],
        )
        graph.initialize()
        self._lifecycle.attach(graph)
        self._graph = graph
        self._scheduler.start(timeline, graph)
        self._lifecycle.set_session_active(True)

    def stop(self) -> None:
        self._scheduler.stop()
        self._release_graph()
        self._lifecycle.set_session_active(False)

    def pause(self) -> None:
        if self._scheduler.status is not SessionStatus.RUNNING:
            return
        self._scheduler.pause()
        self._lifecycle.set_session_active(False)
        self._lifecycle.suspend()

    def resume(self) -> None:
        if self._scheduler.status is not SessionStatus.PAUSED:
            return
        self._lifecycle.ensure_active()
        self._lifecycle.set_session_active(True)
        self._scheduler.resume()

    def toggle(self, timeline: Union[StageTimeline, Iterable[StageLike], None] = None) -> None:
        """Pause a running session, resume a paused one, else play ``timeline``."""
        status = self._scheduler.status
        if status is SessionStatus.RUNNING:
            self.pause()
        elif status is SessionStatus.PAUSED:
            self.resume()
        elif timeline is not None:
            self.play(timeline)

    def seek(self, seconds: float) -> None:
        self._scheduler.seek(seconds)

    def set_volume(self, volume: float) -> None:
        """Clamp ``volume`` to [0, 1] and glide the master gain to it."""
        self._volume = min(max(float(volume), 0.0), 1.0)
        if self._graph is not None:
            self._graph.set_master_gain(self._volume)

    def set_channel_enabled(self, channel: str, enabled: bool) -> None:
        if channel not in self._channel_enabled:
            raise ValueError(f"channel must be 'left' or 'right', got {channel!r}")
        self._channel_enabled[channel] = bool(enabled)
        if self._graph is not None:
            self._graph.set_channel_enabled(channel, enabled)

    def shutdown(self) -> None:
        """Stop playback and close the audio context."""
        self.stop()
        self._lifecycle.shutdown()

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------
    @property
    def lifecycle(self) -> ContextLifecycleManager:
        return self._lifecycle

    @property
    def scheduler(self) -> TransitionScheduler:
        return self._scheduler

    @property
    def graph(self) -> Optional[ToneGraph]:
        return self._graph

    @property
    def timeline(self) -> Optional[StageTimeline]:
        return self._scheduler.timeline

    @property
    def state(self) -> SessionState:
        return self._scheduler.state

    @property
    def status(self) -> SessionStatus:
        return self._scheduler.status

    @property
    def volume(self) -> float:
        return self._volume

    def channel_enabled(self, channel: str) -> bool:
        return self._channel_enabled[channel]

    @property
    def is_playing(self) -> bool:
        return self.state.is_playing

    @property
    def current_stage_index(self) -> int:
        return self.state.current_stage_index

    @property
    def elapsed_seconds(self) -> float:
        return self.state.elapsed_in_stage_seconds

    @property
    def total_elapsed_seconds(self) -> float:
        return self.state.total_elapsed_seconds

    @property
    def current_carrier_hz(self) -> float:
        return self.state.current_carrier_hz

    @property
    def current_beat_hz(self) -> float:
        return self.state.current_beat_hz

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _release_graph(self) -> None:
        if self._graph is None:
            return
        self._lifecycle.detach(self._graph)
        self._graph.teardown()
        self._graph = None

    @pyqtSlot(object)
    def _on_state_changed(self, state: SessionState) -> None:
        self.state_changed.emit(state)
        if self._state_callback:
            self._state_callback(state)

    @pyqtSlot()
    def _on_completed(self) -> None:
        # A state observer may already have started the next session.
        if self._scheduler.status is SessionStatus.COMPLETED:
            self._release_graph()
            self._lifecycle.set_session_active(False)
        self.session_completed.emit()
        if self._completion_callback:
            self._completion_callback()


__all__ = ["PlaybackController"]
