# src/skill_arena/scoring/skill_config.py

from __future__ import annotations

"""
Skill configuration source.

One validated SkillConfiguration per canonical SkillArea, loaded once at startup
either from the built-in defaults or from a JSON file. Loading is all-or-nothing:
a single bad entry rejects the whole file.
"""

import json
import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

from ..core.skills import SkillArea
from ..errors import ConfigurationError

logger = logging.getLogger(__name__)


def _positive(name: str, value: Any, slug: str) -> float:
    # JSON strings such as "1.2" are rejected, not coerced.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"{slug}: {name} must be a number, got {value!r}")
    v = float(value)
    if not math.isfinite(v) or v <= 0:
        raise ConfigurationError(f"{slug}: {name} must be > 0, got {value!r}")
    return v


@dataclass(frozen=True, slots=True)
class SkillConfiguration:
    skill: SkillArea
    base_multiplier: float
    bonus_multiplier: float
    cap: float
    over_cap_boost: float
    weights: Mapping[str, float]
    description: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        slug = self.skill.value
        for name in ("base_multiplier", "bonus_multiplier", "cap"):
            object.__setattr__(self, name, _positive(name, getattr(self, name), slug))
        boost = _positive("over_cap_boost", self.over_cap_boost, slug)
        object.__setattr__(self, "over_cap_boost", boost)
        if boost >= 1:
            raise ConfigurationError(f"{slug}: over_cap_boost must be in (0, 1), got {self.over_cap_boost!r}")
        if not self.weights:
            raise ConfigurationError(f"{slug}: weights must not be empty")
        clean = {str(k): _positive(f"weights[{k}]", v, slug) for k, v in self.weights.items()}
        object.__setattr__(self, "weights", MappingProxyType(clean))

    @property
    def skill_slug(self) -> str:
        return self.skill.value

    @property
    def label(self) -> str:
        return self.skill.label

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> SkillConfiguration:
        if not isinstance(raw, Mapping):
            raise ConfigurationError(f"skill configuration must be an object, got {type(raw).__name__}")
        missing = [k for k in ("skill", "base_multiplier", "bonus_multiplier", "cap", "over_cap_boost", "weights") if k not in raw]
        if missing:
            raise ConfigurationError(f"skill configuration {raw.get('skill')!r} is missing: {', '.join(missing)}")
        weights = raw["weights"]
        if not isinstance(weights, Mapping):
            raise ConfigurationError(f"{raw['skill']}: weights must be an object")
        return cls(
            skill=SkillArea.parse(raw["skill"]),
            base_multiplier=raw["base_multiplier"],
            bonus_multiplier=raw["bonus_multiplier"],
            cap=raw["cap"],
            over_cap_boost=raw["over_cap_boost"],
            weights=dict(weights),
            description=str(raw.get("description", "")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "skill": self.skill.value,
            "base_multiplier": self.base_multiplier,
            "bonus_multiplier": self.bonus_multiplier,
            "cap": self.cap,
            "over_cap_boost": self.over_cap_boost,
            "weights": dict(self.weights),
            "description": self.description,
        }


DEFAULT_SKILL_CONFIGURATIONS: tuple[SkillConfiguration, ...] = (
    SkillConfiguration(
        skill=SkillArea.FULLSTACK_DEV,
        base_multiplier=1.2,
        bonus_multiplier=1.1,
        cap=2200,
        over_cap_boost=0.27,
        weights={"duration": 1.0, "skill": 1.2, "complexity": 1.1, "visibility": 1.0, "prestige": 1.0, "autonomy": 1.0},
        description="Frontend, backend and database integration",
    ),
    SkillConfiguration(
        skill=SkillArea.CLOUD_DEVOPS,
        base_multiplier=1.3,
        bonus_multiplier=1.2,
        cap=2400,
        over_cap_boost=0.29,
        weights={"duration": 1.1, "skill": 1.3, "complexity": 1.2, "visibility": 1.0, "prestige": 1.1, "autonomy": 1.1},
        description="Infrastructure, deployment and operational excellence",
    ),
    SkillConfiguration(
        skill=SkillArea.DATA_ANALYTICS,
        base_multiplier=1.15,
        bonus_multiplier=1.05,
        cap=2100,
        over_cap_boost=0.26,
        weights={"duration": 1.0, "skill": 1.1, "complexity": 1.0, "visibility": 1.1, "prestige": 1.0, "autonomy": 1.0},
        description="Data analysis, visualization and business intelligence",
    ),
    SkillConfiguration(
        skill=SkillArea.AI_ML,
        base_multiplier=1.25,
        bonus_multiplier=1.15,
        cap=2300,
        over_cap_boost=0.28,
        weights={"duration": 1.0, "skill": 1.25, "complexity": 1.15, "visibility": 1.0, "prestige": 1.1, "autonomy": 1.05},
        description="Machine learning models and intelligent systems",
    ),
)


class SkillConfigRegistry:
    """Read-only map SkillArea -> SkillConfiguration. Every canonical area must be present."""

    def __init__(self, configs: Mapping[SkillArea, SkillConfiguration] | None = None) -> None:
        if configs is None:
            configs = {c.skill: c for c in DEFAULT_SKILL_CONFIGURATIONS}
        missing = [a.value for a in SkillArea if a not in configs]
        if missing:
            raise ConfigurationError(f"Missing skill configuration for: {', '.join(missing)}")
        for area, cfg in configs.items():
            if cfg.skill != area:
                raise ConfigurationError(f"Configuration keyed {area.value!r} describes {cfg.skill.value!r}")
        self._configs: Mapping[SkillArea, SkillConfiguration] = MappingProxyType(dict(configs))

    def get(self, slug: str | SkillArea) -> SkillConfiguration:
        return self._configs[SkillArea.parse(slug)]

    def is_known(self, slug: str | None) -> bool:
        return SkillArea.is_known(slug)

    def all(self) -> list[SkillConfiguration]:
        return [self._configs[a] for a in SkillArea]

    def __len__(self) -> int:
        return len(self._configs)


def load_skill_configurations(path: str | Path | None = None) -> SkillConfigRegistry:
    """
    Load the skill configuration registry.

    - path None -> built-in defaults
    - path set  -> JSON file: a list of objects, or {"skills": [...]}

    Raises ConfigurationError on unreadable files or any invalid entry.
    """
    if path is None:
        registry = SkillConfigRegistry()
        logger.info("Skill configurations: %d built-in", len(registry))
        return registry

    p = Path(path)
    try:
        data = json.loads(p.read_text("utf-8"))
    except FileNotFoundError:
        raise ConfigurationError(f"Skill configuration file not found: {p}") from None
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read skill configuration file {p}") from e

    entries = data.get("skills") if isinstance(data, dict) else data
    if not isinstance(entries, list):
        raise ConfigurationError(f"{p}: expected a list of skill configurations")

    configs: dict[SkillArea, SkillConfiguration] = {}
    for raw in entries:
        cfg = SkillConfiguration.from_dict(raw)
        if cfg.skill in configs:
            raise ConfigurationError(f"{p}: duplicate configuration for {cfg.skill.value}")
        configs[cfg.skill] = cfg

    registry = SkillConfigRegistry(configs)
    logger.info("Skill configurations: %d loaded from %s", len(registry), p)
    return registry
