"""Stage-sequenced binaural beat synthesis engine."""

from .catalog import ProgramChoice, build_program_catalog
from .config import EngineConfig, load_default_config, load_engine_config, save_engine_config
from .errors import ContextUnavailable, InvalidTimeline, SessionEngineError
from .session import (
    BrainwaveBand,
    Stage,
    StagePosition,
    StageTimeline,
    TIMELINE_COMPLETE,
    classify_beat,
    ear_frequencies,
)
from .synthesis import render_timeline, render_timeline_to_file

__version__ = "0.1.0"

__all__ = [
    "BrainwaveBand",
    "ContextUnavailable",
    "EngineConfig",
    "InvalidTimeline",
    "ProgramChoice",
    "SessionEngineError",
    "Stage",
    "StagePosition",
    "StageTimeline",
    "TIMELINE_COMPLETE",
    "build_program_catalog",
    "classify_beat",
    "ear_frequencies",
    "load_default_config",
    "load_engine_config",
    "render_timeline",
    "render_timeline_to_file",
    "save_engine_config",
]
