import pytest

from quizcraft.core.exceptions import ManualScoreRangeError, NotFoundException
from quizcraft.schemas.result import QuizAttempt, QuizResult, ResultStatus
from quizcraft.services.manual_grading import (
    ManualGradingService,
    apply_override,
    finalize,
    pending_items,
)


@pytest.fixture
def pending_result():
    return QuizResult(
        id="r1",
        user_id="u1",
        username="Ada",
        attempts=[
            QuizAttempt(question_id="mc", is_correct=True, score=1, max_score=1),
            QuizAttempt(question_id="essay", score=0, max_score=10, manual_grading=True),
        ],
        score=1,
        max_score=11,
        passing_score=5,
        status=ResultStatus.PENDING_GRADING,
    )


def test_pending_items(pending_result):
    items = pending_items(pending_result)

    assert [(index, attempt.question_id) for index, attempt in items] == [(1, "essay")]


def test_partial_credit_is_not_correct(pending_result):
    updated = apply_override(pending_result, 1, 7)

    assert updated.attempts[1].score == 7
    assert not updated.attempts[1].is_correct
    assert updated.score == 8
    # Still waiting on finalisation
    assert updated.status == ResultStatus.PENDING_GRADING
    assert not updated.is_passed
    assert pending_result.attempts[1].score == 0


def test_full_credit_is_correct(pending_result):
    updated = apply_override(pending_result, 1, 10)

    assert updated.attempts[1].is_correct
    assert updated.score == 11


def test_override_is_idempotent(pending_result):
    once = apply_override(pending_result, 1, 7)
    twice = apply_override(once, 1, 7)

    assert once == twice


def test_totals_round_to_one_decimal(pending_result):
    updated = apply_override(apply_override(pending_result, 0, 0.1), 1, 0.2)

    assert updated.score == 0.3


@pytest.mark.parametrize("score", [-1, 10.5])
def test_out_of_range_scores_are_rejected(pending_result, score):
    with pytest.raises(ManualScoreRangeError) as exc_info:
        apply_override(pending_result, 1, score)
    assert exc_info.value.details["max_score"] == 10


def test_unknown_attempt(pending_result):
    with pytest.raises(NotFoundException):
        apply_override(pending_result, 5, 1)


def test_finalize_decides_pass(pending_result):
    done = finalize(apply_override(pending_result, 1, 4))

    assert done.status == ResultStatus.COMPLETED
    assert done.score == 5
    assert done.is_passed


def test_service_override_persists(repo, pending_result):
    repo.save_result(pending_result)
    service = ManualGradingService(repo)

    service.override("r1", 1, 6)

    stored = repo.results["r1"]
    assert stored.score == 7
    assert stored.attempts[1].score == 6
    assert stored.status == ResultStatus.PENDING_GRADING


def test_service_finalize(repo, pending_result):
    repo.save_result(pending_result)

    result = ManualGradingService(repo).finalize("r1")

    assert result.status == ResultStatus.COMPLETED
    assert not result.is_passed
    assert repo.results["r1"].status == ResultStatus.COMPLETED


def test_grade_all_checks_every_score_before_writing(repo, pending_result):
    repo.save_result(pending_result)
    service = ManualGradingService(repo)

    with pytest.raises(ManualScoreRangeError):
        service.grade_all("r1", {0: 1, 1: 99})

    assert "update_result_scoring" not in repo.calls
    assert repo.results["r1"].score == 1


def test_grade_all_and_finalize(repo, pending_result):
    repo.save_result(pending_result)

    result = ManualGradingService(repo).grade_all("r1", {1: 9})

    assert result.score == 10
    assert result.is_passed
    assert repo.results["r1"].status == ResultStatus.COMPLETED
    assert ManualGradingService(repo).pending("r1")[0][1].score == 9


def test_missing_result(repo):
    with pytest.raises(NotFoundException):
        ManualGradingService(repo).override("nope", 0, 1)


def test_grade_all_can_leave_grading_open(repo, pending_result):
    repo.save_result(pending_result)

    result = ManualGradingService(repo).grade_all("r1", {1: 9}, finalize_result=False)

    assert result.score == 10
    assert not result.is_passed
    assert repo.results["r1"].status == ResultStatus.PENDING_GRADING


def test_deleted_result_cannot_be_graded(repo, pending_result):
    repo.save_result(pending_result.model_copy(update={"is_deleted": True}))

    with pytest.raises(NotFoundException):
        ManualGradingService(repo).override("r1", 1, 5)
