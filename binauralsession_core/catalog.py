"""Discovery of built-in and on-disk session programs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .errors import InvalidTimeline
from .presets import BUILTIN_PROGRAMS
from .session import Stage, StageTimeline
from .utils.progression_file import PROGRESSION_FILE_EXTENSION, load_progression, progression_to_timeline

logger = logging.getLogger(__name__)


@dataclass
class ProgramChoice:
    """Descriptor for a selectable session program."""

    id: str
    label: str
    description: str = ""
    source_path: Optional[Path] = None
    stages: List[Stage] = field(default_factory=list)

    @property
    def total_duration(self) -> float:
        return sum(stage.duration_seconds for stage in self.stages)

    def timeline(self, higher_ear: str = "right") -> StageTimeline:
        return StageTimeline(self.stages, higher_ear=higher_ear)


def _collect_files(directories: Iterable[Path], extension: str) -> List[Path]:
    files: List[Path] = []
    for directory in directories:
        dir_path = Path(directory)
        if not dir_path.exists():
            continue
        if dir_path.is_file() and dir_path.suffix == extension:
            files.append(dir_path)
            continue
        if not dir_path.is_dir():
            continue
        files.extend(sorted(dir_path.glob(f"*.{extension.lstrip('.')}")))
    return files


def build_program_catalog(preset_dirs: Optional[Iterable[Path]] = None) -> Dict[str, ProgramChoice]:
    """Return all built-in programs plus progression files found on disk."""

    catalog: Dict[str, ProgramChoice] = {}
    for name, data in BUILTIN_PROGRAMS.items():
        try:
            stages = [Stage.from_dict(entry) for entry in data.get("stages", [])]
            StageTimeline(stages)
        except InvalidTimeline:
            logger.warning("Skipping malformed built-in program %r", name, exc_info=True)
            continue
        preset_id = f"builtin:{name}"
        catalog[preset_id] = ProgramChoice(
            id=preset_id,
            label=str(data.get("label") or name.replace("_", " ").title()),
            description=str(data.get("description", "")),
            stages=stages,
        )

    for path in _collect_files(preset_dirs or [], PROGRESSION_FILE_EXTENSION):
        try:
            progression = load_progression(str(path))
            timeline = progression_to_timeline(progression)
        except (OSError, ValueError) as exc:
            logger.warning("Skipping progression file %s: %s", path, exc)
            continue
        preset_id = f"progression:{path.stem}"
        catalog[preset_id] = ProgramChoice(
            id=preset_id,
            label=progression.name or path.stem.replace("_", " ").title(),
            description="Progression loaded from file.",
            source_path=path,
            stages=list(timeline.stages),
        )

    return catalog


__all__ = ["ProgramChoice", "build_program_catalog"]
