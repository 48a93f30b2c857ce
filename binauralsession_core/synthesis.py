"""Offline rendering of stage timelines through the tone graph."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional, Union

import numpy as np
import soundfile as sf

from .audio.tone_graph import ToneGraph
from .config import EngineConfig
from .session import StageLike, StageTimeline, as_timeline

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_SIZE = 512


def render_timeline(
    timeline: Union[StageTimeline, Iterable[StageLike]],
    sample_rate: Optional[int] = None,
    *,
    volume: float = 0.8,
    config: Optional[EngineConfig] = None,
    block_size: int = DEFAULT_BLOCK_SIZE,
    fade_seconds: float = 0.05,
) -> np.ndarray:
    """Render ``timeline`` to a float32 ``(frames, 2)`` array.

    Stages are resolved once per block, so transitions start within one
    block of the boundary and glide with the configured time constant,
    exactly as during live playback.
    """
    config = config or EngineConfig()
    timeline = as_timeline(timeline, higher_ear=config.higher_ear)
    sample_rate = int(sample_rate or config.sample_rate)
    block_size = max(int(block_size), 1)

    graph = ToneGraph(
        sample_rate,
        time_constant=config.smoothing_time_constant,
        channel_time_constant=config.channel_time_constant,
        volume=volume,
    )
    graph.initialize()
    graph.set_frequencies(*timeline.frequencies_for(0), immediate=True)

    total_frames = int(round(timeline.total_duration * sample_rate))
    audio = np.zeros((total_frames, 2), dtype=np.float32)
    stage_index = 0
    position = 0
    try:
        while position < total_frames:
            frames = min(block_size, total_frames - position)
            resolved = timeline.stage_at(position / sample_rate)
            if not resolved.complete and resolved.index != stage_index:
                stage_index = resolved.index
                graph.set_frequencies(*timeline.frequencies_for(stage_index))
            audio[position : position + frames] = graph.render(frames)
            position += frames
    finally:
        graph.teardown()

    fade_samples = min(int(fade_seconds * sample_rate), total_frames // 2)
    if fade_samples > 0:
        envelope = np.linspace(0.0, 1.0, fade_samples, dtype=np.float32)
        audio[:fade_samples] *= envelope[:, np.newaxis]
        audio[-fade_samples:] *= envelope[::-1, np.newaxis]
    return audio


def render_timeline_to_file(
    timeline: Union[StageTimeline, Iterable[StageLike]],
    path: Union[str, Path],
    sample_rate: Optional[int] = None,
    **options,
) -> Path:
    """Render ``timeline`` and write it to ``path`` (format from the suffix)."""
    config = options.get("config") or EngineConfig()
    sample_rate = int(sample_rate or config.sample_rate)
    audio = render_timeline(timeline, sample_rate, **options)
    target = Path(path)
    sf.write(str(target), audio, sample_rate)
    logger.info("Rendered %.1fs of audio to %s", audio.shape[0] / sample_rate, target)
    return target


__all__ = ["render_timeline", "render_timeline_to_file"]
