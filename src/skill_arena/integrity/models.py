# src/skill_arena/integrity/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from ..errors import ValidationError

HIGH_RISK_THRESHOLD = 0.8
MODERATE_RISK_THRESHOLD = 0.3


class RiskLevel(StrEnum):
    HIGH = "high"
    MODERATE = "moderate"
    LOW = "low"

    @classmethod
    def for_similarity(cls, similarity: float) -> RiskLevel:
        if similarity > HIGH_RISK_THRESHOLD:
            return cls.HIGH
        if similarity >= MODERATE_RISK_THRESHOLD:
            return cls.MODERATE
        return cls.LOW


@dataclass(frozen=True, slots=True)
class Submission:
    id: str
    task_id: str
    user_id: str
    content: str
    language: str
    submitted_at: datetime
    raw_score: float | None = None
    points_awarded: float = 0.0
    similarity: float | None = None
    skill_category: str | None = None

    def __post_init__(self) -> None:
        if not (self.id or "").strip():
            raise ValidationError("submission id is required")
        if not (self.task_id or "").strip() or not (self.user_id or "").strip():
            raise ValidationError(f"submission {self.id}: task_id and user_id are required")
        if self.raw_score is not None and not 0.0 <= float(self.raw_score) <= 100.0:
            raise ValidationError(f"submission {self.id}: raw_score must be within [0, 100]")


@dataclass(frozen=True, slots=True)
class MatchedSource:
    source_submission_id: str
    similarity: float
    user_id: str | None = None
    matched_lines: list[int] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class PlagiarismReport:
    similarity: float
    matched_sources: list[MatchedSource]
    highlighted_lines: list[int]
    confidence: float
    timestamp: datetime
    candidates_checked: int = 0
    # The closest candidate, kept even when it is below the match threshold.
    closest_submission_id: str | None = None

    @property
    def risk(self) -> RiskLevel:
        return RiskLevel.for_similarity(self.similarity)

    @property
    def closest_source(self) -> MatchedSource | None:
        return self.matched_sources[0] if self.matched_sources else None


@dataclass(frozen=True, slots=True)
class PlagiarismStats:
    """Per-user summary over recorded submissions that carry a similarity."""

    user_id: str
    total_checks: int
    average_similarity: float
    flagged_count: int
