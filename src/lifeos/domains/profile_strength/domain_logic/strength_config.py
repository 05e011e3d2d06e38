"""Area weight configuration — reads the versioned YAML weight document."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from lifeos.domains.profile_strength.domain_logic.strength_models import (
    AREA_KEYS,
    DEFAULT_AREA_WEIGHT,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "profile_strength.v1.yaml"


class StrengthConfigError(Exception):
    """Raised when the weight document is malformed."""


def _default_weights() -> dict[str, float]:
    return {area: DEFAULT_AREA_WEIGHT for area in AREA_KEYS}


@dataclass(frozen=True)
class StrengthConfig:
    """Validated scoring configuration."""

    area_weights: dict[str, float] = field(default_factory=_default_weights)
    version: int = 1
    source: str = "defaults"


def parse_strength_config(data: Any, *, source: str = "inline") -> StrengthConfig:
    """Validate a parsed YAML document into a StrengthConfig.

    Raises:
        StrengthConfigError: On unknown areas, non-numeric or negative
            weights, or a zero total weight.
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise StrengthConfigError(f"{source}: expected a mapping at the top level")

    raw_weights = data.get("area_weights") or {}
    if not isinstance(raw_weights, dict):
        raise StrengthConfigError(f"{source}: area_weights must be a mapping")

    unknown = sorted(set(raw_weights) - set(AREA_KEYS))
    if unknown:
        raise StrengthConfigError(f"{source}: unknown areas in area_weights: {unknown}")

    weights = _default_weights()
    for area, value in raw_weights.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise StrengthConfigError(f"{source}: weight for {area!r} must be a number")
        if not math.isfinite(value) or value < 0:
            raise StrengthConfigError(f"{source}: weight for {area!r} must be finite and >= 0")
        weights[area] = float(value)

    if sum(weights.values()) <= 0:
        raise StrengthConfigError(f"{source}: total area weight must be positive")

    version = data.get("version", 1)
    if not isinstance(version, int):
        raise StrengthConfigError(f"{source}: version must be an integer")

    return StrengthConfig(area_weights=weights, version=version, source=source)


def load_strength_config(path: str | Path | None = None) -> StrengthConfig:
    """Load area weights from YAML.

    Falls back to equal weights when the file does not exist. An empty
    ``path`` means the weight document shipped with the package.
    """
    config_path = Path(path).expanduser() if path else DEFAULT_CONFIG_PATH
    if not config_path.is_file():
        logger.warning("Profile strength config not found at %s; using equal weights", config_path)
        return StrengthConfig()

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise StrengthConfigError(f"{config_path}: invalid YAML: {exc}") from exc

    config = parse_strength_config(data, source=str(config_path))
    logger.info("Loaded profile strength config v%d from %s", config.version, config_path)
    return config
