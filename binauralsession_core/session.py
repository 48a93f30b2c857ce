"""Stage timeline data structures and brainwave helpers."""

from __future__ import annotations

import math
from bisect import bisect_right
from dataclasses import asdict, dataclass
from enum import Enum
from itertools import accumulate
from typing import Dict, Iterable, Iterator, List, Mapping, NamedTuple, Optional, Tuple, Union

from .errors import InvalidTimeline

HIGHER_EAR_CHOICES = ("left", "right")


class BrainwaveBand(Enum):
    DELTA = "delta"
    THETA = "theta"
    ALPHA = "alpha"
    BETA = "beta"
    GAMMA = "gamma"


# Upper bounds (inclusive) of each band in Hz; anything above is gamma.
_BAND_LIMITS = (
    (4.0, BrainwaveBand.DELTA),
    (8.0, BrainwaveBand.THETA),
    (12.0, BrainwaveBand.ALPHA),
    (30.0, BrainwaveBand.BETA),
)


def classify_beat(beat_hz: float) -> BrainwaveBand:
    """Return the brainwave band a beat frequency entrains."""
    beat = abs(float(beat_hz))
    for limit, band in _BAND_LIMITS:
        if beat <= limit:
            return band
    return BrainwaveBand.GAMMA


def ear_frequencies(carrier_hz: float, beat_hz: float, higher_ear: str = "right") -> Tuple[float, float]:
    """Split ``carrier_hz`` symmetrically so the ears differ by ``beat_hz``.

    Returns ``(left_hz, right_hz)``. The midpoint of the pair is always the
    carrier; ``higher_ear`` picks which side sits above it.
    """
    if higher_ear not in HIGHER_EAR_CHOICES:
        raise ValueError(f"higher_ear must be one of {HIGHER_EAR_CHOICES}, got {higher_ear!r}")
    half = float(beat_hz) / 2.0
    low = float(carrier_hz) - half
    high = float(carrier_hz) + half
    if higher_ear == "right":
        return low, high
    return high, low


@dataclass(frozen=True)
class Stage:
    """One timed segment of a session with fixed carrier and beat targets."""

    carrier_hz: float
    beat_hz: float
    duration_seconds: float
    name: str = ""
    # Pins the higher tone to one ear; None follows the timeline setting.
    higher_ear: Optional[str] = None

    @property
    def left_hz(self) -> float:
        return self.ear_frequencies()[0]

    @property
    def right_hz(self) -> float:
        return self.ear_frequencies()[1]

    @property
    def band(self) -> BrainwaveBand:
        return classify_beat(self.beat_hz)

    def ear_frequencies(self, higher_ear: str = "right") -> Tuple[float, float]:
        return ear_frequencies(self.carrier_hz, self.beat_hz, self.higher_ear or higher_ear)

    def validate(self) -> None:
        """Raise :class:`InvalidTimeline` if the stage breaks an invariant."""
        values = (self.carrier_hz, self.beat_hz, self.duration_seconds)
        if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in values):
            raise InvalidTimeline(f"Stage values must be numbers: {self!r}")
        if not all(math.isfinite(v) for v in values):
            raise InvalidTimeline(f"Stage values must be finite: {self!r}")
        if self.duration_seconds <= 0:
            raise InvalidTimeline(f"Stage duration must be positive, got {self.duration_seconds}")
        if self.carrier_hz <= 0:
            raise InvalidTimeline(f"Stage carrier must be positive, got {self.carrier_hz}")
        if self.beat_hz < 0:
            raise InvalidTimeline(f"Stage beat must not be negative, got {self.beat_hz}")
        if self.higher_ear is not None and self.higher_ear not in HIGHER_EAR_CHOICES:
            raise InvalidTimeline(f"higher_ear must be one of {HIGHER_EAR_CHOICES}, got {self.higher_ear!r}")

    def to_dict(self) -> Dict[str, object]:
        data = asdict(self)
        if data["higher_ear"] is None:
            del data["higher_ear"]
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "Stage":
        """Build a stage from a mapping using snake_case or camelCase keys."""
        if not isinstance(data, Mapping):
            raise InvalidTimeline(f"Stage definition must be a Stage or a mapping, got {data!r}")
        try:
            carrier = data.get("carrier_hz", data.get("carrierHz"))
            beat = data.get("beat_hz", data.get("beatHz"))
            duration = data.get("duration_seconds", data.get("durationSeconds"))
            higher_ear = data.get("higher_ear", data.get("higherEar"))
            return cls(
                carrier_hz=float(carrier),  # type: ignore[arg-type]
                beat_hz=float(beat),  # type: ignore[arg-type]
                duration_seconds=float(duration),  # type: ignore[arg-type]
                name=str(data.get("name", "") or ""),
                higher_ear=str(higher_ear) if higher_ear else None,
            )
        except (TypeError, ValueError) as exc:
            raise InvalidTimeline(f"Malformed stage definition: {dict(data)!r}") from exc


class StagePosition(NamedTuple):
    """Result of :meth:`StageTimeline.stage_at`."""

    index: int
    elapsed_in_stage: float

    @property
    def complete(self) -> bool:
        return self.index < 0


TIMELINE_COMPLETE = StagePosition(-1, 0.0)

StageLike = Union[Stage, Mapping[str, object]]


class StageTimeline:
    """Immutable, ordered sequence of stages played back in order."""

    def __init__(self, stages: Iterable[StageLike], *, higher_ear: str = "right") -> None:
        if higher_ear not in HIGHER_EAR_CHOICES:
            raise InvalidTimeline(f"higher_ear must be one of {HIGHER_EAR_CHOICES}, got {higher_ear!r}")
        if stages is None:
            raise InvalidTimeline("A timeline needs at least one stage")
        try:
            entries = list(stages)
        except TypeError as exc:
            raise InvalidTimeline(f"A timeline needs a sequence of stages, got {stages!r}") from exc
        built: List[Stage] = []
        for entry in entries:
            stage = entry if isinstance(entry, Stage) else Stage.from_dict(entry)
            stage.validate()
            built.append(stage)
        if not built:
            raise InvalidTimeline("A timeline needs at least one stage")
        self._stages: Tuple[Stage, ...] = tuple(built)
        self._higher_ear = higher_ear
        durations = [stage.duration_seconds for stage in self._stages]
        # Start offset of every stage; the last entry is the total duration.
        self._starts: Tuple[float, ...] = tuple(accumulate([0.0] + durations))

    @classmethod
    def single(cls, carrier_hz: float, beat_hz: float, duration_seconds: float, **kwargs) -> "StageTimeline":
        """Timeline with one stage, i.e. a plain two-tone session."""
        return cls([Stage(carrier_hz, beat_hz, duration_seconds)], **kwargs)

    @property
    def stages(self) -> Tuple[Stage, ...]:
        return self._stages

    @property
    def higher_ear(self) -> str:
        return self._higher_ear

    @property
    def total_duration(self) -> float:
        return self._starts[-1]

    def stage_start(self, index: int) -> float:
        if not 0 <= index < len(self._stages):
            raise IndexError(f"Stage index out of range: {index}")
        return self._starts[index]

    def frequencies_for(self, index: int) -> Tuple[float, float]:
        """Return ``(left_hz, right_hz)`` for the stage at ``index``."""
        return self._stages[index].ear_frequencies(self._higher_ear)

    def stage_at(self, elapsed_seconds: float) -> StagePosition:
        """Resolve the stage active at ``elapsed_seconds``.

        Stage intervals are closed-open, so a value exactly on a boundary
        belongs to the later stage. Values at or past the total duration
        return :data:`TIMELINE_COMPLETE`.
        """
        elapsed = max(float(elapsed_seconds), 0.0)
        if elapsed >= self.total_duration:
            return TIMELINE_COMPLETE
        index = bisect_right(self._starts, elapsed) - 1
        index = min(index, len(self._stages) - 1)
        return StagePosition(index, elapsed - self._starts[index])

    def __len__(self) -> int:
        return len(self._stages)

    def __iter__(self) -> Iterator[Stage]:
        return iter(self._stages)

    def __getitem__(self, index: int) -> Stage:
        return self._stages[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StageTimeline):
            return NotImplemented
        return self._stages == other._stages and self._higher_ear == other._higher_ear

    def __hash__(self) -> int:
        return hash((self._stages, self._higher_ear))

    def __repr__(self) -> str:
        return f"StageTimeline({len(self._stages)} stages, {self.total_duration:.1f}s)"


def as_timeline(value: Union[StageTimeline, Iterable[StageLike]], *, higher_ear: str = "right") -> StageTimeline:
    """Return ``value`` as a :class:`StageTimeline`, validating raw stage lists."""
    if isinstance(value, StageTimeline):
        return value
    return StageTimeline(value, higher_ear=higher_ear)


__all__ = [
    "BrainwaveBand",
    "Stage",
    "StagePosition",
    "StageTimeline",
    "TIMELINE_COMPLETE",
    "as_timeline",
    "classify_beat",
    "ear_frequencies",
]
