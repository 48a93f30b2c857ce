"""Helper for saving and loading frequency progressions."""

import json
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Tuple

from ..errors import InvalidTimeline
from ..session import Stage, StageTimeline

# Default file extension for progression files
PROGRESSION_FILE_EXTENSION = ".progression"
MAX_SLOTS = 30

CARRIER_CHANNELS = ("L", "R")
VARIANCES = ("higher", "lower")


def _new_slot_id() -> str:
    return uuid.uuid4().hex[:7]


@dataclass
class ProgressionSlot:
    """One row of a progression: explicit ear tones and a duration."""

    left_hz: float = 0.0
    right_hz: float = 0.0
    duration_minutes: float = 0.0
    enabled: bool = True
    id: str = field(default_factory=_new_slot_id)

    @property
    def playable(self) -> bool:
        return self.enabled and self.left_hz > 0 and self.right_hz > 0 and self.duration_minutes > 0

    @property
    def is_blank(self) -> bool:
        return self.left_hz <= 0 and self.right_hz <= 0 and self.duration_minutes <= 0

    def to_stage(self) -> Stage:
        # Each ear keeps the exact tone stored in the slot.
        return Stage(
            carrier_hz=(self.left_hz + self.right_hz) / 2.0,
            beat_hz=abs(self.right_hz - self.left_hz),
            duration_seconds=self.duration_minutes * 60.0,
            higher_ear="left" if self.left_hz > self.right_hz else "right",
        )


@dataclass
class SavedProgression:
    name: str = "Untitled"
    slots: List[ProgressionSlot] = field(default_factory=list)
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())
    carrier_channel: str = "L"
    variance: str = "higher"


def slot_from_carrier(
    carrier_hz: float,
    beat_hz: float,
    duration_minutes: float,
    carrier_channel: str = "L",
    variance: str = "higher",
) -> ProgressionSlot:
    """Build a slot with the carrier on one ear and the other ear offset by the beat.

    Non-positive carrier or beat values give a silent (0 Hz / 0 Hz) slot.
    """
    if carrier_channel not in CARRIER_CHANNELS:
        raise ValueError(f"carrier_channel must be one of {CARRIER_CHANNELS}, got {carrier_channel!r}")
    if variance not in VARIANCES:
        raise ValueError(f"variance must be one of {VARIANCES}, got {variance!r}")
    if carrier_hz <= 0 or beat_hz <= 0:
        return ProgressionSlot(0.0, 0.0, duration_minutes)
    offset_hz = carrier_hz + beat_hz if variance == "higher" else carrier_hz - beat_hz
    if carrier_channel == "L":
        return ProgressionSlot(float(carrier_hz), float(offset_hz), duration_minutes)
    return ProgressionSlot(float(offset_hz), float(carrier_hz), duration_minutes)


def progression_to_timeline(progression: SavedProgression, *, higher_ear: str = "right") -> StageTimeline:
    """Convert the playable slots of ``progression`` into a timeline."""
    stages = [slot.to_stage() for slot in progression.slots[:MAX_SLOTS] if slot.playable]
    if not stages:
        raise InvalidTimeline(f"Progression '{progression.name}' has no playable slots")
    return StageTimeline(stages, higher_ear=higher_ear)


def progression_to_dict(progression: SavedProgression) -> Dict[str, Any]:
    data = asdict(progression)
    data["slots"] = [asdict(slot) for slot in progression.slots if not slot.is_blank]
    return data


def save_progression(progression: SavedProgression, filepath: str) -> Path:
    """Save ``progression`` to ``filepath`` using JSON inside a ``.progression`` file."""
    if len(progression.slots) > MAX_SLOTS:
        raise ValueError(f"A progression holds at most {MAX_SLOTS} slots")
    path = Path(filepath)
    if path.suffix != PROGRESSION_FILE_EXTENSION:
        path = path.with_suffix(PROGRESSION_FILE_EXTENSION)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(progression_to_dict(progression), f, indent=2)
    return path


def load_progression(filepath: str) -> SavedProgression:
    """Load a progression from ``filepath``.

    Accepts files written by :func:`save_progression` as well as exports
    using camelCase keys (``slots``, ``carrierChannel``, ``variance`` with
    ``leftHz``/``rightHz``/``durationMinutes`` slots).
    """
    path = Path(filepath)
    if not path.is_file():
        raise FileNotFoundError(f"Progression file not found: {filepath}")
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return progression_from_dict(data, default_name=path.stem)


def progression_from_dict(data: Dict[str, Any], default_name: str = "Imported") -> SavedProgression:
    if not isinstance(data, dict) or not isinstance(data.get("slots"), list):
        raise ValueError("Progression data needs a 'slots' list")
    progression = SavedProgression(name=str(data.get("name") or default_name))
    progression.carrier_channel = str(data.get("carrier_channel", data.get("carrierChannel", "L")) or "L")
    progression.variance = str(data.get("variance", "higher") or "higher")
    created_at = data.get("created_at", data.get("createdAt"))
    if created_at:
        progression.created_at = str(created_at)
    progression.slots = [_slot_from_dict(entry) for entry in data["slots"][:MAX_SLOTS]]
    return progression


def _slot_from_dict(entry: Dict[str, Any]) -> ProgressionSlot:
    if not isinstance(entry, dict):
        raise ValueError(f"Progression slot must be an object, got {entry!r}")
    left, right, minutes = _slot_numbers(entry)
    return ProgressionSlot(
        left_hz=left,
        right_hz=right,
        duration_minutes=minutes,
        enabled=bool(entry.get("enabled", True)),
        id=str(entry.get("id") or _new_slot_id()),
    )


def _slot_numbers(entry: Dict[str, Any]) -> Tuple[float, float, float]:
    try:
        return (
            float(entry.get("left_hz", entry.get("leftHz", 0.0)) or 0.0),
            float(entry.get("right_hz", entry.get("rightHz", 0.0)) or 0.0),
            float(entry.get("duration_minutes", entry.get("durationMinutes", 0.0)) or 0.0),
        )
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Malformed progression slot: {entry!r}") from exc


__all__ = [
    "MAX_SLOTS",
    "PROGRESSION_FILE_EXTENSION",
    "ProgressionSlot",
    "SavedProgression",
    "load_progression",
    "progression_from_dict",
    "progression_to_dict",
    "progression_to_timeline",
    "save_progression",
    "slot_from_carrier",
]
