# src/skill_arena/integrity/plagiarism.py

from __future__ import annotations

"""
Integrity engine: near-duplicate detection against the submission corpus.

detect_plagiarism() is read-only. check_and_record() checks first and only then
inserts the submission, so a submission is never compared against itself.

The engine never decides what happens when a check cannot be completed: any corpus
failure surfaces as IntegrityCheckError and the caller applies its own policy.
"""

import asyncio
import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import datetime, timedelta

from ..core.ports import CorpusScope, SubmissionCorpus
from ..errors import IntegrityCheckError, ValidationError
from ..tasks.task_models import utcnow
from .features import cosine_similarity, extract_features, find_matched_lines
from .models import HIGH_RISK_THRESHOLD, MatchedSource, PlagiarismReport, PlagiarismStats, Submission

logger = logging.getLogger(__name__)

DEFAULT_MATCH_THRESHOLD = 0.3
CONFIDENCE_SATURATION_MATCHES = 5


def compute_confidence(similarity: float, match_count: int) -> float:
    """0.7 * similarity + 0.3 * min(match_count / 5, 1), capped at 1."""
    coverage = min(max(match_count, 0) / CONFIDENCE_SATURATION_MATCHES, 1.0)
    return min(1.0, 0.7 * similarity + 0.3 * coverage)


class IntegrityEngine:
    def __init__(
            self,
            corpus: SubmissionCorpus,
            *,
            match_threshold: float = DEFAULT_MATCH_THRESHOLD,
            window_days: int = 0,
            max_candidates: int | None = None,
            query_timeout_seconds: float | None = None,
            now: Callable[[], datetime] = utcnow,
    ) -> None:
        if not 0.0 <= float(match_threshold) <= 1.0:
            raise ValidationError(f"match_threshold must be within [0, 1], got {match_threshold!r}")
        self._corpus = corpus
        self._match_threshold = float(match_threshold)
        self._window_days = max(0, int(window_days))
        self._max_candidates = max_candidates if max_candidates and max_candidates > 0 else None
        self._now = now
        self._query_timeout = float(query_timeout_seconds) if query_timeout_seconds and query_timeout_seconds > 0 else None
        # Corpus queries run here when bounded; a timed-out query is abandoned, not killed.
        self._executor = (
            ThreadPoolExecutor(max_workers=4, thread_name_prefix="corpus-query") if self._query_timeout else None
        )

    @property
    def match_threshold(self) -> float:
        return self._match_threshold

    @property
    def query_timeout_seconds(self) -> float | None:
        return self._query_timeout

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)

    def _query(self, scope: CorpusScope) -> list[Submission]:
        if self._executor is None:
            return self._corpus.query(scope)
        future = self._executor.submit(self._corpus.query, scope)
        try:
            return future.result(timeout=self._query_timeout)
        except TimeoutError as e:
            future.cancel()
            raise IntegrityCheckError(
                f"Submission corpus query timed out after {self._query_timeout}s; integrity undetermined"
            ) from e

    def _effective_scope(self, scope: CorpusScope, user_id: str) -> CorpusScope:
        since = scope.since
        if since is None and self._window_days:
            since = self._now() - timedelta(days=self._window_days)
        limit = scope.limit if scope.limit is not None else self._max_candidates
        return replace(scope, exclude_user_id=user_id, since=since, limit=limit)

    def _candidates(self, scope: CorpusScope, user_id: str) -> list[Submission]:
        try:
            found = self._query(scope)
        except IntegrityCheckError:
            raise
        except Exception as e:
            raise IntegrityCheckError("Submission corpus query failed; integrity undetermined") from e
        # Adapters that ignore exclude_user_id must not make a user match themselves.
        return [s for s in found if s.user_id != user_id]

    def detect_plagiarism(
            self,
            content: str,
            language: str,
            user_id: str,
            scope: CorpusScope,
    ) -> PlagiarismReport:
        if not scope.task_id and not scope.skill_category:
            raise ValidationError("plagiarism scope needs a task_id or a skill_category")
        if not (user_id or "").strip():
            raise ValidationError("user_id is required")

        now = self._now()
        candidates = self._candidates(self._effective_scope(scope, user_id), user_id)

        if not candidates:
            logger.debug("Integrity check: no candidates for user=%s scope=%s", user_id, scope)
            return PlagiarismReport(
                similarity=0.0,
                matched_sources=[],
                highlighted_lines=[],
                confidence=1.0,
                timestamp=now,
                candidates_checked=0,
            )

        features = extract_features(content, language)
        scored = [
            (cosine_similarity(features, extract_features(c.content, c.language or language)), c)
            for c in candidates
        ]
        scored.sort(key=lambda pair: pair[0], reverse=True)
        best_similarity, closest = scored[0]

        matched: list[MatchedSource] = []
        highlighted: set[int] = set()
        for sim, cand in scored:
            if sim < self._match_threshold:
                break
            lines = find_matched_lines(content, cand.content)
            highlighted.update(lines)
            matched.append(
                MatchedSource(
                    source_submission_id=cand.id,
                    similarity=sim,
                    user_id=cand.user_id,
                    matched_lines=lines,
                )
            )

        report = PlagiarismReport(
            similarity=best_similarity,
            matched_sources=matched,
            highlighted_lines=sorted(highlighted),
            confidence=compute_confidence(best_similarity, len(matched)),
            timestamp=now,
            candidates_checked=len(candidates),
            closest_submission_id=closest.id,
        )

        if matched:
            logger.info(
                "Integrity check: user=%s similarity=%.3f risk=%s matches=%d closest=%s",
                user_id,
                report.similarity,
                report.risk.value,
                len(matched),
                closest.id,
            )
        return report

    async def adetect_plagiarism(
            self,
            content: str,
            language: str,
            user_id: str,
            scope: CorpusScope,
            *,
            timeout_seconds: float = 10.0,
    ) -> PlagiarismReport:
        """detect_plagiarism() in a worker thread, bounded by a timeout."""
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.detect_plagiarism, content, language, user_id, scope),
                timeout=max(0.01, float(timeout_seconds)),
            )
        except TimeoutError as e:
            raise IntegrityCheckError(f"Integrity check timed out after {timeout_seconds}s") from e

    def check_and_record(self, submission: Submission, scope: CorpusScope | None = None) -> PlagiarismReport:
        """Check a submission, then add it to the corpus with its similarity."""
        if scope is None:
            scope = CorpusScope(task_id=submission.task_id, skill_category=submission.skill_category)

        report = self.detect_plagiarism(submission.content, submission.language, submission.user_id, scope)
        self.record(replace(submission, similarity=report.similarity))
        return report

    def record(self, submission: Submission) -> None:
        try:
            self._corpus.insert(submission)
        except IntegrityCheckError:
            raise
        except Exception as e:
            raise IntegrityCheckError(f"Cannot record submission {submission.id}") from e

    def plagiarism_stats(self, user_id: str) -> PlagiarismStats:
        """Checked submissions of one user: count, mean similarity, high-risk count."""
        if not (user_id or "").strip():
            raise ValidationError("user_id is required")
        try:
            return self._corpus.stats_for_user(user_id, flag_threshold=HIGH_RISK_THRESHOLD)
        except IntegrityCheckError:
            raise
        except Exception as e:
            raise IntegrityCheckError(f"Cannot compute plagiarism stats for user {user_id}") from e
