from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields
from typing import Any

from image_transform.logger import get_logger

_logger = get_logger("config")


@dataclass(frozen=True)
class TransformConfig:
    """Settings handed to each TransformSession."""

    default_quality: int = 82
    min_quality: int = 0
    max_quality: int = 100
    acceptable_range: float = 0.10
    max_search_steps: int = 10

    def __post_init__(self) -> None:
        if not 0 <= self.min_quality <= self.max_quality <= 100:
            raise ValueError(f"Invalid quality bounds: {self.min_quality}..{self.max_quality}")
        if not 0 <= self.default_quality <= 100:
            raise ValueError(f"default_quality must be within 0-100, got {self.default_quality}")
        if not 0 < self.acceptable_range < 1:
            raise ValueError(f"acceptable_range must be between 0 and 1, got {self.acceptable_range}")
        if self.max_search_steps < 0:
            raise ValueError(f"max_search_steps must be non-negative, got {self.max_search_steps}")


DEFAULTS: dict[str, Any] = {f.name: f.default for f in fields(TransformConfig)}


def load_config(settings_path: str | None = None) -> TransformConfig:
    """Build a TransformConfig from a JSON settings file.

    Missing or unreadable files, and invalid values, fall back to the defaults.
    Unknown keys are ignored.
    """
    data: dict[str, Any] = {}
    try:
        if settings_path and os.path.exists(settings_path):
            with open(settings_path, encoding="utf-8") as f:
                loaded = json.load(f)
            if isinstance(loaded, dict):
                data = {k: v for k, v in loaded.items() if k in DEFAULTS}
                _logger.debug("settings loaded: %s", settings_path)
            else:
                _logger.warning("settings file %s does not hold an object; using defaults", settings_path)
    except (OSError, ValueError) as e:
        _logger.warning("settings load failed: %s", e)

    try:
        return TransformConfig(**data)
    except (TypeError, ValueError) as e:
        _logger.warning("invalid settings in %s (%s); using defaults", settings_path, e)
        return TransformConfig()
