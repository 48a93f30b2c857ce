"""Engine settings and helpers for saving and loading them."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Optional

from .session import HIGHER_EAR_CHOICES

logger = logging.getLogger(__name__)

# Default file extension for engine settings files
ENGINE_FILE_EXTENSION = ".engine"
CONFIG_ENV_VAR = "BINAURALSESSION_CONFIG"


@dataclass
class EngineConfig:
    """Tunables shared by the tone graph, scheduler and context manager."""

    sample_rate: int = 44100
    # Exponential approach time constants, in seconds
    smoothing_time_constant: float = 0.1
    channel_time_constant: float = 0.05
    tick_interval_ms: int = 16
    keepalive_interval_ms: int = 5000
    default_volume: float = 0.5
    buffer_seconds: float = 0.25
    higher_ear: str = "right"
    validate_format: bool = True

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        if int(self.sample_rate) <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        if self.smoothing_time_constant <= 0 or self.channel_time_constant <= 0:
            raise ValueError("time constants must be positive")
        if int(self.tick_interval_ms) <= 0 or int(self.keepalive_interval_ms) <= 0:
            raise ValueError("timer intervals must be positive")
        if not 0.0 <= float(self.default_volume) <= 1.0:
            raise ValueError(f"default_volume must be within [0, 1], got {self.default_volume}")
        if self.buffer_seconds <= 0:
            raise ValueError(f"buffer_seconds must be positive, got {self.buffer_seconds}")
        if self.higher_ear not in HIGHER_EAR_CHOICES:
            raise ValueError(f"higher_ear must be one of {HIGHER_EAR_CHOICES}, got {self.higher_ear!r}")


def save_engine_config(config: EngineConfig, filepath: str) -> Path:
    """Save ``config`` to ``filepath`` using JSON inside a ``.engine`` file."""
    path = Path(filepath)
    if path.suffix != ENGINE_FILE_EXTENSION:
        path = path.with_suffix(ENGINE_FILE_EXTENSION)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(asdict(config), f, indent=2)
    return path


def load_engine_config(filepath: str) -> EngineConfig:
    """Load settings from ``filepath``; unknown keys are ignored."""
    path = Path(filepath)
    if not path.is_file():
        raise FileNotFoundError(f"Engine settings file not found: {filepath}")
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Engine settings must be a JSON object: {filepath}")
    known = {f.name for f in fields(EngineConfig)}
    ignored = sorted(set(data) - known)
    if ignored:
        logger.warning("Ignoring unknown engine settings in %s: %s", path, ", ".join(ignored))
    return EngineConfig(**{k: v for k, v in data.items() if k in known})


def load_default_config(env_var: str = CONFIG_ENV_VAR) -> EngineConfig:
    """Return settings from the file named by ``env_var``, or the defaults."""
    configured: Optional[str] = os.environ.get(env_var)
    if not configured:
        return EngineConfig()
    return load_engine_config(str(Path(configured).expanduser()))


__all__ = [
    "CONFIG_ENV_VAR",
    "ENGINE_FILE_EXTENSION",
    "EngineConfig",
    "load_default_config",
    "load_engine_config",
    "save_engine_config",
]
