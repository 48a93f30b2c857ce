"""Live synthesis: tone graph, audio context, scheduler and playback facade."""

from .context import ContextLifecycleManager, SynthesisContext
from .player import PlaybackController
from .scheduler import FrameTicker, SessionState, SessionStatus, TransitionScheduler
from .tone_graph import ToneGraph

__all__ = [
    "ContextLifecycleManager",
    "FrameTicker",
    "PlaybackController",
    "SessionState",
    "SessionStatus",
    "SynthesisContext",
    "ToneGraph",
    "TransitionScheduler",
]
