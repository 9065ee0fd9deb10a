# src/skill_arena/core/pipeline.py

from __future__ import annotations

"""
Submission pipeline.

    integrity check (pre-acceptance) -> scoring (post-evaluation) -> corpus insert

What happens when the integrity check cannot be completed is a deployment policy
(`on_integrity_error`), applied here and nowhere else:

- "block":  the submission is rejected; nothing is scored or recorded
- "review": the submission is scored and recorded, but points are held for review
"""

import logging
from dataclasses import dataclass, replace
from enum import StrEnum

from ..errors import ConfigurationError, IntegrityCheckError, ValidationError
from ..integrity.models import PlagiarismReport, RiskLevel, Submission
from ..integrity.plagiarism import IntegrityEngine
from ..scoring.points import DEFAULT_WEIGHT_KEY, PointsBreakdown, ScoringEngine
from .ports import CorpusScope
from .skills import SkillArea

logger = logging.getLogger(__name__)


class IntegrityErrorPolicy(StrEnum):
    BLOCK = "block"
    REVIEW = "review"

    @classmethod
    def parse(cls, raw: str | None) -> IntegrityErrorPolicy:
        try:
            return cls((raw or "").strip().lower())
        except ValueError:
            raise ConfigurationError(
                f"Unknown integrity error policy {raw!r} (expected: block, review)"
            ) from None


class SubmissionStatus(StrEnum):
    ACCEPTED = "accepted"
    FLAGGED = "flagged"  # high similarity; points held
    NEEDS_REVIEW = "needs_review"  # integrity undetermined; points held
    BLOCKED = "blocked"  # integrity undetermined; rejected


@dataclass(frozen=True, slots=True)
class SubmissionOutcome:
    submission: Submission
    status: SubmissionStatus
    report: PlagiarismReport | None
    breakdown: PointsBreakdown | None
    points_awarded: float
    recorded: bool
    error: str | None = None

    @property
    def accepted(self) -> bool:
        return self.status == SubmissionStatus.ACCEPTED


class SubmissionPipeline:
    def __init__(
            self,
            integrity: IntegrityEngine,
            scoring: ScoringEngine,
            *,
            on_integrity_error: IntegrityErrorPolicy | str = IntegrityErrorPolicy.REVIEW,
    ) -> None:
        self._integrity = integrity
        self._scoring = scoring
        self._policy = IntegrityErrorPolicy.parse(str(on_integrity_error))

    @property
    def policy(self) -> IntegrityErrorPolicy:
        return self._policy

    def submit(
            self,
            submission: Submission,
            raw_score: float,
            *,
            weight_key: str = DEFAULT_WEIGHT_KEY,
    ) -> SubmissionOutcome:
        """
        Run one submission through check, scoring and recording.

        Scoring errors (unknown skill, out-of-range raw score) propagate unchanged.
        """
        if not submission.skill_category:
            raise ValidationError(f"submission {submission.id}: skill_category is required for scoring")
        skill = SkillArea.parse(submission.skill_category)
        # Normalise the stored skill so corpus scoping uses canonical slugs.
        submission = replace(submission, skill_category=skill.value)

        scope = CorpusScope(task_id=submission.task_id, skill_category=skill.value)
        report: PlagiarismReport | None = None
        error: str | None = None
        try:
            report = self._integrity.detect_plagiarism(
                submission.content, submission.language, submission.user_id, scope
            )
        except IntegrityCheckError as e:
            error = str(e)
            logger.warning(
                "Integrity check undetermined for submission=%s policy=%s: %s",
                submission.id,
                self._policy.value,
                e,
            )
            if self._policy == IntegrityErrorPolicy.BLOCK:
                return SubmissionOutcome(
                    submission=submission,
                    status=SubmissionStatus.BLOCKED,
                    report=None,
                    breakdown=None,
                    points_awarded=0.0,
                    recorded=False,
                    error=error,
                )

        breakdown = self._scoring.compute_breakdown(raw_score, skill, weight_key)

        if report is None:
            status = SubmissionStatus.NEEDS_REVIEW
        elif report.risk == RiskLevel.HIGH:
            status = SubmissionStatus.FLAGGED
        else:
            status = SubmissionStatus.ACCEPTED
        awarded = breakdown.points if status == SubmissionStatus.ACCEPTED else 0.0

        stored = replace(
            submission,
            raw_score=breakdown.raw_score,
            points_awarded=awarded,
            similarity=report.similarity if report else None,
        )
        recorded = True
        try:
            self._integrity.record(stored)
        except IntegrityCheckError as e:
            if self._policy == IntegrityErrorPolicy.BLOCK:
                raise
            recorded = False
            error = error or str(e)
            status = SubmissionStatus.NEEDS_REVIEW
            awarded = 0.0
            logger.exception("Cannot record submission=%s; held for review", submission.id)

        logger.info(
            "Submission %s: status=%s points=%.2f similarity=%s",
            submission.id,
            status.value,
            awarded,
            f"{report.similarity:.3f}" if report else "n/a",
        )
        return SubmissionOutcome(
            submission=replace(stored, points_awarded=awarded),
            status=status,
            report=report,
            breakdown=breakdown,
            points_awarded=awarded,
            recorded=recorded,
            error=error,
        )
