"""Audio output ownership and suspension recovery."""

from __future__ import annotations

import logging
from typing import Callable, Optional

import numpy as np
from PyQt5.QtCore import QIODevice, QMutex, QMutexLocker, QObject, Qt, QTimer, pyqtSignal, pyqtSlot
from PyQt5.QtMultimedia import QAudio, QAudioDeviceInfo, QAudioFormat, QAudioOutput

from ..config import EngineConfig
from ..errors import ContextUnavailable
from .tone_graph import ToneGraph

logger = logging.getLogger(__name__)

_INT16_MAX = np.int16(32767).item()
_BYTES_PER_FRAME = 4  # 16-bit stereo

CONTEXT_RUNNING = "running"
CONTEXT_SUSPENDED = "suspended"
CONTEXT_CLOSED = "closed"

AudioOutputFactory = Callable[[QAudioFormat, Optional[QObject]], object]


def _float_to_pcm(audio: np.ndarray) -> bytes:
    if audio.size == 0:
        return b""
    clipped = np.clip(audio, -1.0, 1.0)
    pcm = np.asarray((clipped * _INT16_MAX).round(), dtype=np.int16)
    return pcm.tobytes()


class _GraphPullDevice(QIODevice):
    """Sequential read-only device that renders the attached graph on demand.

    The audio output reads from this device whenever its buffer runs low;
    with no graph attached it yields silence so the output never starves.
    """

    def __init__(self, sample_rate: int, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self.sample_rate = int(sample_rate)
        self._graph: Optional[ToneGraph] = None
        self._mutex = QMutex()

    @property
    def graph(self) -> Optional[ToneGraph]:
        locker = QMutexLocker(self._mutex)
        return self._graph

    def set_graph(self, graph: Optional[ToneGraph]) -> None:
        locker = QMutexLocker(self._mutex)
        self._graph = graph

    def isSequential(self) -> bool:  # pragma: no cover - Qt hook
        return True

    def bytesAvailable(self) -> int:
        # Rendering is unbounded; advertise one second of audio.
        return self.sample_rate * _BYTES_PER_FRAME + super().bytesAvailable()

    def render_bytes(self, maxlen: int) -> bytes:
        frames = max(int(maxlen), 0) // _BYTES_PER_FRAME
        if frames == 0:
            return b""
        locker = QMutexLocker(self._mutex)
        graph = self._graph
        del locker
        if graph is None:
            return bytes(frames * _BYTES_PER_FRAME)
        return _float_to_pcm(graph.render(frames))

    def readData(self, maxlen: int) -> bytes:  # pragma: no cover - Qt hook
        return self.render_bytes(maxlen)

    def writeData(self, data: bytes) -> int:  # pragma: no cover - Qt hook
        return -1  # Read-only device


class SynthesisContext:
    """One open audio output plus the device feeding it."""

    def __init__(self, audio_output, device: _GraphPullDevice, sample_rate: int) -> None:
        self._audio_output = audio_output
        self._device = device
        self.sample_rate = int(sample_rate)
        self._closed = False

    @property
    def audio_output(self):
        return self._audio_output

    @property
    def device(self) -> _GraphPullDevice:
        return self._device

    @property
    def state(self) -> str:
        if self._closed:
            return CONTEXT_CLOSED
        qt_state = self._audio_output.state()
        if qt_state in (QAudio.ActiveState, QAudio.IdleState):
            return CONTEXT_RUNNING
        # Suspended, interrupted and platform-stopped outputs are all recoverable.
        return CONTEXT_SUSPENDED

    def start(self) -> None:
        self._audio_output.start(self._device)

    def resume(self) -> None:
        if self._closed:
            return
        if self._audio_output.state() == QAudio.StoppedState:
            self._audio_output.start(self._device)
        else:
            self._audio_output.resume()

    def suspend(self) -> None:
        if self._closed:
            return
        self._audio_output.suspend()

    def attach(self, graph: ToneGraph) -> None:
        self._device.set_graph(graph)

    def detach(self, graph: Optional[ToneGraph] = None) -> None:
        if graph is None or self._device.graph is graph:
            self._device.set_graph(None)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._device.set_graph(None)
        try:
            self._audio_output.stop()
        except RuntimeError:
            logger.debug("Audio output already stopped on close", exc_info=True)
        self._device.close()


class ContextLifecycleManager(QObject):  # type: ignore[misc]
    """Own the synthesis context and bring it back after platform suspension.

    The context is created on first use and kept across sessions. While a
    session is marked active, a keep-alive timer resumes a suspended context
    every ``keepalive_interval_ms`` and so does the application becoming
    active again. Suspension is expected on some platforms and is never
    reported as an error.
    """

    context_created = pyqtSignal()
    context_resumed = pyqtSignal()

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        parent: Optional[QObject] = None,
        *,
        audio_output_factory: Optional[AudioOutputFactory] = None,
    ) -> None:
        super().__init__(parent)
        self._config = config or EngineConfig()
        self._audio_output_factory = audio_output_factory or QAudioOutput
        self._context: Optional[SynthesisContext] = None
        self._session_active = False

        self._keepalive_timer = QTimer(self)
        self._keepalive_timer.setInterval(int(self._config.keepalive_interval_ms))
        self._keepalive_timer.timeout.connect(self._on_keepalive)

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def context(self) -> Optional[SynthesisContext]:
        return self._context

    @property
    def session_active(self) -> bool:
        return self._session_active

    @property
    def keepalive_running(self) -> bool:
        return self._keepalive_timer.isActive()

    def ensure_context(self) -> SynthesisContext:
        """Return the shared context, creating it on first use.

        Raises :class:`ContextUnavailable` when the platform refuses. No
        broken context is kept, so a later call tries again.
        """
        if self._context is not None and self._context.state != CONTEXT_CLOSED:
            return self._context
        fmt = self._build_format()
        device = _GraphPullDevice(self._config.sample_rate, self)
        try:
            audio_output = self._audio_output_factory(fmt, self)
            if hasattr(audio_output, "setBufferSize"):
                frames = int(self._config.buffer_seconds * self._config.sample_rate)
                audio_output.setBufferSize(frames * _BYTES_PER_FRAME)
            device.open(QIODevice.ReadOnly)
            context = SynthesisContext(audio_output, device, self._config.sample_rate)
            context.start()
        except Exception as exc:
            device.close()
            raise ContextUnavailable(f"Could not open audio output: {exc}") from exc
        if audio_output.error() != QAudio.NoError and audio_output.state() == QAudio.StoppedState:
            device.close()
            raise ContextUnavailable(f"Audio output failed to start (error {audio_output.error()})")
        self._context = context
        logger.info("Audio context created at %d Hz", self._config.sample_rate)
        self.context_created.emit()
        return context

    def ensure_active(self) -> bool:
        """Resume the context if it is suspended; return whether it is running."""
        context = self._context
        if context is None or context.state == CONTEXT_CLOSED:
            return False
        if context.state == CONTEXT_RUNNING:
            return True
        logger.info("Audio context suspended, resuming")
        try:
            context.resume()
        except Exception:
            # Retried on the next keep-alive cycle.
            logger.warning("Resuming the audio context failed", exc_info=True)
            return False
        running = context.state == CONTEXT_RUNNING
        if running:
            self.context_resumed.emit()
        return running

    def suspend(self) -> None:
        if self._context is not None:
            self._context.suspend()

    def set_session_active(self, active: bool) -> None:
        """Mark whether a session is playing; drives the keep-alive timer."""
        self._session_active = bool(active)
        if self._session_active:
            if not self._keepalive_timer.isActive():
                self._keepalive_timer.start()
        else:
            self._keepalive_timer.stop()

    def watch_application(self, app: QObject) -> bool:
        """Resume when ``app`` becomes active; needs a ``QGuiApplication``."""
        signal = getattr(app, "applicationStateChanged", None)
        if signal is None:
            logger.debug("%s has no applicationStateChanged signal", type(app).__name__)
            return False
        signal.connect(self.on_application_state_changed)
        return True

    def on_application_state_changed(self, state: int) -> None:
        if state == Qt.ApplicationActive and self._session_active:
            self.ensure_active()

    def attach(self, graph: ToneGraph) -> None:
        if self._context is not None:
            self._context.attach(graph)

    def detach(self, graph: Optional[ToneGraph] = None) -> None:
        if self._context is not None:
            self._context.detach(graph)

    def shutdown(self) -> None:
        """Close and release the context; for application shutdown only."""
        self.set_session_active(False)
        if self._context is None:
            return
        self._context.close()
        self._context = None
        logger.info("Audio context closed")

    @pyqtSlot()
    def _on_keepalive(self) -> None:
        if self._session_active:
            self.ensure_active()

    def _build_format(self) -> QAudioFormat:
        fmt = QAudioFormat()
        fmt.setCodec("audio/pcm")
        fmt.setSampleRate(int(self._config.sample_rate))
        fmt.setSampleSize(16)
        fmt.setChannelCount(2)
        fmt.setByteOrder(QAudioFormat.LittleEndian)
        fmt.setSampleType(QAudioFormat.SignedInt)

        if self._config.validate_format:
            device_info = QAudioDeviceInfo.defaultOutputDevice()
            if device_info.isNull() or not device_info.isFormatSupported(fmt):  # pragma: no cover - hardware dependent
                raise ContextUnavailable("Default output device does not support 16-bit stereo PCM")
        return fmt


__all__ = [
    "CONTEXT_CLOSED",
    "CONTEXT_RUNNING",
    "CONTEXT_SUSPENDED",
    "ContextLifecycleManager",
    "SynthesisContext",
]
