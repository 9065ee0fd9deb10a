# src/skill_arena/scoring/points.py

from __future__ import annotations

"""
Points formula and fairness analysis.

    weighted = raw_score * base_multiplier * weights[weight_key]
    points   = weighted                                      if weighted <= cap
             = cap + (weighted - cap) * over_cap_boost       otherwise

Above the cap, points keep growing at the (0, 1) over-cap rate: top results are
still rewarded, but with diminishing returns. Both branches give `cap` at
weighted == cap, so points are continuous and non-decreasing in raw_score.

Everything here is pure and stateless.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from ..core.skills import SkillArea
from ..errors import ConfigurationError, ValidationError
from .skill_config import SkillConfigRegistry, SkillConfiguration

logger = logging.getLogger(__name__)

DEFAULT_WEIGHT_KEY = "skill"
DEFAULT_REFERENCE_RAW_SCORE = 80.0
DEFAULT_FAIRNESS_THRESHOLD = 10.0


@dataclass(frozen=True, slots=True)
class PointsBreakdown:
    skill: SkillArea
    raw_score: float
    weighted: float
    points: float
    over_cap: float  # portion of `weighted` above the cap (0 when under)

    @property
    def capped(self) -> bool:
        return self.over_cap > 0


@dataclass(frozen=True, slots=True)
class SkillPoints:
    skill: SkillArea
    points: float
    multiplier: float
    cap: float
    delta_percentage: float  # signed, relative to the mean across skills


@dataclass(frozen=True, slots=True)
class FairnessReport:
    is_fair: bool
    reference_raw_score: float
    threshold: float
    variance_percentage: float
    min_points: float
    max_points: float
    mean_points: float
    skill_breakdown: list[SkillPoints]
    recommendations: list[str]

    @property
    def difference(self) -> float:
        return self.max_points - self.min_points


def _check_raw_score(raw_score: float) -> float:
    if isinstance(raw_score, bool):
        raise ValidationError(f"raw_score must be a number, got {raw_score!r}")
    try:
        raw = float(raw_score)
    except (TypeError, ValueError):
        raise ValidationError(f"raw_score must be a number, got {raw_score!r}") from None
    if not 0.0 <= raw <= 100.0:
        raise ValidationError(f"raw_score must be within [0, 100], got {raw_score!r}")
    return raw


def _weight(config: SkillConfiguration, weight_key: str) -> float:
    try:
        return config.weights[weight_key]
    except KeyError:
        raise ConfigurationError(
            f"{config.skill_slug}: unknown weight {weight_key!r} (known: {', '.join(sorted(config.weights))})"
        ) from None


def compute_breakdown(
        raw_score: float,
        config: SkillConfiguration,
        weight_key: str = DEFAULT_WEIGHT_KEY,
) -> PointsBreakdown:
    raw = _check_raw_score(raw_score)
    weighted = raw * config.base_multiplier * _weight(config, weight_key)

    if weighted <= config.cap:
        points = weighted
        over_cap = 0.0
    else:
        over_cap = weighted - config.cap
        points = config.cap + over_cap * config.over_cap_boost

    return PointsBreakdown(
        skill=config.skill,
        raw_score=raw,
        weighted=weighted,
        points=points,
        over_cap=over_cap,
    )


def compute_points(
        raw_score: float,
        config: SkillConfiguration,
        weight_key: str = DEFAULT_WEIGHT_KEY,
) -> float:
    return compute_breakdown(raw_score, config, weight_key).points


def analyze_fairness(
        configs: Iterable[SkillConfiguration],
        reference_raw_score: float = DEFAULT_REFERENCE_RAW_SCORE,
        *,
        threshold: float = DEFAULT_FAIRNESS_THRESHOLD,
        weight_key: str = DEFAULT_WEIGHT_KEY,
) -> FairnessReport:
    """
    Compare expected points across skills for the same raw score.

    variance_percentage = (max - min) / mean * 100; fair when <= threshold.
    """
    configs = list(configs)
    if not configs:
        return FairnessReport(
            is_fair=False,
            reference_raw_score=float(reference_raw_score),
            threshold=float(threshold),
            variance_percentage=0.0,
            min_points=0.0,
            max_points=0.0,
            mean_points=0.0,
            skill_breakdown=[],
            recommendations=["No skill configurations provided"],
        )

    expected = [(cfg, compute_points(reference_raw_score, cfg, weight_key)) for cfg in configs]
    values = [p for _, p in expected]
    lo, hi = min(values), max(values)
    mean = sum(values) / len(values)
    variance_pct = (hi - lo) / mean * 100.0 if mean > 0 else 0.0
    is_fair = variance_pct <= threshold

    breakdown = [
        SkillPoints(
            skill=cfg.skill,
            points=round(points, 2),
            multiplier=cfg.base_multiplier,
            cap=cfg.cap,
            delta_percentage=round((points - mean) / mean * 100.0, 2) if mean > 0 else 0.0,
        )
        for cfg, points in expected
    ]

    if is_fair:
        recommendations = [
            f"Points distribution is fair across skills ({variance_pct:.1f}% <= {threshold:.1f}%)"
        ]
    else:
        recommendations = [
            f"Points variance is {variance_pct:.1f}%, which exceeds the {threshold:.1f}% fairness threshold"
        ]
        for item in sorted(breakdown, key=lambda s: s.delta_percentage, reverse=True):
            if item.delta_percentage == 0:
                continue
            direction = "lower base_multiplier" if item.delta_percentage > 0 else "raise base_multiplier"
            recommendations.append(
                f"{item.skill.value}: {item.delta_percentage:+.1f}% vs mean ({item.points:.1f} points); consider: {direction}"
            )
        logger.warning("Fairness check failed: variance=%.2f%% threshold=%.2f%%", variance_pct, threshold)

    return FairnessReport(
        is_fair=is_fair,
        reference_raw_score=float(reference_raw_score),
        threshold=float(threshold),
        variance_percentage=round(variance_pct, 2),
        min_points=round(lo, 2),
        max_points=round(hi, 2),
        mean_points=round(mean, 2),
        skill_breakdown=breakdown,
        recommendations=recommendations,
    )


class ScoringEngine:
    """Scoring over an injected (already validated) configuration registry."""

    def __init__(
            self,
            registry: SkillConfigRegistry | None = None,
            *,
            fairness_threshold: float = DEFAULT_FAIRNESS_THRESHOLD,
    ) -> None:
        self._registry = registry or SkillConfigRegistry()
        self._fairness_threshold = float(fairness_threshold)

    @property
    def registry(self) -> SkillConfigRegistry:
        return self._registry

    def get_skill_configuration(self, slug: str | SkillArea) -> SkillConfiguration:
        return self._registry.get(slug)

    def validate_skill_area(self, slug: str | None) -> bool:
        return self._registry.is_known(slug)

    def compute_points(self, raw_score: float, skill: str | SkillArea, weight_key: str = DEFAULT_WEIGHT_KEY) -> float:
        return compute_points(raw_score, self.get_skill_configuration(skill), weight_key)

    def compute_breakdown(
            self, raw_score: float, skill: str | SkillArea, weight_key: str = DEFAULT_WEIGHT_KEY
    ) -> PointsBreakdown:
        return compute_breakdown(raw_score, self.get_skill_configuration(skill), weight_key)

    def analyze_fairness(
            self,
            reference_raw_score: float = DEFAULT_REFERENCE_RAW_SCORE,
            *,
            configs: Sequence[SkillConfiguration] | None = None,
            weight_key: str = DEFAULT_WEIGHT_KEY,
    ) -> FairnessReport:
        return analyze_fairness(
            self._registry.all() if configs is None else configs,
            reference_raw_score,
            threshold=self._fairness_threshold,
            weight_key=weight_key,
        )
