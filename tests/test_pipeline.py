# tests/test_pipeline.py

from __future__ import annotations

import pytest

from skill_arena.core.pipeline import IntegrityErrorPolicy, SubmissionPipeline, SubmissionStatus
from skill_arena.errors import ConfigurationError, IntegrityCheckError, ValidationError
from skill_arena.integrity.plagiarism import IntegrityEngine
from skill_arena.scoring.points import ScoringEngine

from .fakes import FIXED_NOW, FailingCorpus, FakeCorpus, SlowCorpus, make_submission

CODE = """def total(items):
    result = 0
    for item in items:
        result += item.price * item.qty
    return result
"""


def _pipeline(corpus, policy: str = "review") -> SubmissionPipeline:
    integrity = IntegrityEngine(corpus, now=lambda: FIXED_NOW)
    return SubmissionPipeline(integrity, ScoringEngine(), on_integrity_error=policy)


def test_original_work_is_accepted_scored_and_recorded() -> None:
    corpus = FakeCorpus()
    outcome = _pipeline(corpus).submit(make_submission("s1", CODE, user_id="u1"), 80)

    expected = ScoringEngine().compute_points(80, "fullstack-dev")
    assert outcome.status == SubmissionStatus.ACCEPTED
    assert outcome.accepted is True
    assert outcome.points_awarded == pytest.approx(expected)
    assert outcome.recorded is True
    assert outcome.report.similarity == 0.0

    stored = corpus.submissions[0]
    assert stored.raw_score == 80
    assert stored.points_awarded == pytest.approx(expected)
    assert stored.similarity == 0.0


def test_copied_work_is_flagged_and_points_are_held() -> None:
    corpus = FakeCorpus([make_submission("s1", CODE, user_id="u1")])
    outcome = _pipeline(corpus).submit(make_submission("s2", CODE, user_id="u2"), 90)

    assert outcome.status == SubmissionStatus.FLAGGED
    assert outcome.points_awarded == 0.0
    assert outcome.breakdown.points > 0
    assert outcome.recorded is True
    assert corpus.submissions[-1].id == "s2"
    assert corpus.submissions[-1].similarity > 0.8


def test_undetermined_check_blocks_under_block_policy() -> None:
    corpus = FailingCorpus(fail_query=True, fail_insert=False)
    outcome = _pipeline(corpus, "block").submit(make_submission("s1", CODE), 80)

    assert outcome.status == SubmissionStatus.BLOCKED
    assert outcome.points_awarded == 0.0
    assert outcome.breakdown is None
    assert outcome.recorded is False
    assert outcome.error
    assert corpus.inserted == []


def test_undetermined_check_holds_points_under_review_policy() -> None:
    corpus = FailingCorpus(fail_query=True, fail_insert=False)
    outcome = _pipeline(corpus, "review").submit(make_submission("s1", CODE), 80)

    assert outcome.status == SubmissionStatus.NEEDS_REVIEW
    assert outcome.points_awarded == 0.0
    assert outcome.breakdown.points > 0
    assert outcome.recorded is True
    assert outcome.report is None
    assert corpus.inserted[0].similarity is None
    assert corpus.inserted[0].points_awarded == 0.0


def test_failed_record_is_held_for_review() -> None:
    corpus = FailingCorpus(fail_query=False, fail_insert=True)
    outcome = _pipeline(corpus, "review").submit(make_submission("s1", CODE), 80)

    assert outcome.status == SubmissionStatus.NEEDS_REVIEW
    assert outcome.recorded is False
    assert outcome.points_awarded == 0.0


def test_failed_record_raises_under_block_policy() -> None:
    corpus = FailingCorpus(fail_query=False, fail_insert=True)
    with pytest.raises(IntegrityCheckError):
        _pipeline(corpus, "block").submit(make_submission("s1", CODE), 80)


def test_submission_needs_a_skill() -> None:
    with pytest.raises(ValidationError):
        _pipeline(FakeCorpus()).submit(make_submission("s1", CODE, skill=None), 80)


def test_scoring_errors_propagate_and_nothing_is_recorded() -> None:
    corpus = FakeCorpus()
    with pytest.raises(ValidationError):
        _pipeline(corpus).submit(make_submission("s1", CODE), 120)
    assert corpus.submissions == []


def test_policy_parsing() -> None:
    assert IntegrityErrorPolicy.parse(" Block ") == IntegrityErrorPolicy.BLOCK
    assert _pipeline(FakeCorpus()).policy == IntegrityErrorPolicy.REVIEW
    with pytest.raises(ConfigurationError):
        IntegrityErrorPolicy.parse("ignore")


@pytest.fixture
def slow_integrity():
    engine = IntegrityEngine(SlowCorpus(delay=0.5), query_timeout_seconds=0.05, now=lambda: FIXED_NOW)
    yield engine
    engine.close()


def test_slow_corpus_holds_points_under_review_policy(slow_integrity) -> None:
    pipeline = SubmissionPipeline(slow_integrity, ScoringEngine(), on_integrity_error="review")
    outcome = pipeline.submit(make_submission("s1", CODE), 80)

    assert outcome.status == SubmissionStatus.NEEDS_REVIEW
    assert outcome.points_awarded == 0.0
    assert "timed out" in outcome.error


def test_slow_corpus_blocks_under_block_policy(slow_integrity) -> None:
    pipeline = SubmissionPipeline(slow_integrity, ScoringEngine(), on_integrity_error="block")
    outcome = pipeline.submit(make_submission("s1", CODE), 80)

    assert outcome.status == SubmissionStatus.BLOCKED
    assert outcome.recorded is False
