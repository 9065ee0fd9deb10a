# src/skill_arena/core/skills.py

from __future__ import annotations

"""
Canonical skill areas.

One enumeration is the single source of truth for:
- the skill tag stored on tasks/submissions,
- the key of the scoring configuration,
- the human-readable label.

Anything that is neither a canonical slug nor a canonical label is rejected.
"""

from enum import StrEnum

from ..errors import ConfigurationError


class SkillArea(StrEnum):
    FULLSTACK_DEV = "fullstack-dev"
    CLOUD_DEVOPS = "cloud-devops"
    DATA_ANALYTICS = "data-analytics"
    AI_ML = "ai-ml"

    @property
    def label(self) -> str:
        return _LABELS[self]

    @classmethod
    def parse(cls, raw: str | SkillArea | None) -> SkillArea:
        """
        Resolve a slug or label to a SkillArea.

        Raises ConfigurationError for anything else (no silent default).
        """
        if isinstance(raw, SkillArea):
            return raw
        if raw is not None and not isinstance(raw, str):
            raise ConfigurationError(f"skill area must be a string, got {type(raw).__name__}")
        key = (raw or "").strip()
        if not key:
            raise ConfigurationError("skill area is required")
        try:
            return cls(key)
        except ValueError:
            pass
        for area, label in _LABELS.items():
            if label == key:
                return area
        raise ConfigurationError(f"Unknown skill area: {raw!r}")

    @classmethod
    def is_known(cls, raw: str | None) -> bool:
        try:
            cls.parse(raw)
        except ConfigurationError:
            return False
        return True


_LABELS: dict[SkillArea, str] = {
    SkillArea.FULLSTACK_DEV: "Full-Stack Software Development",
    SkillArea.CLOUD_DEVOPS: "Cloud Computing & DevOps",
    SkillArea.DATA_ANALYTICS: "Data Science & Analytics",
    SkillArea.AI_ML: "AI / Machine Learning",
}
