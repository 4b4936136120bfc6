"""
Manual grading of results waiting on human review
"""

import logging
from typing import List, Mapping, Tuple

from quizcraft.core.exceptions import ManualScoreRangeError, NotFoundException
from quizcraft.core.logging import LoggerFactory
from quizcraft.schemas.result import QuizAttempt, QuizResult, ResultStatus
from quizcraft.services.repository import QuizRepository

logger = logging.getLogger(__name__)
audit_logger = LoggerFactory.get_audit_logger()


def pending_items(result: QuizResult) -> List[Tuple[int, QuizAttempt]]:
    """Attempts a grader has to score, with their position in the result"""
    return [(index, attempt) for index, attempt in enumerate(result.attempts) if attempt.manual_grading]


def recompute(result: QuizResult, attempts: List[QuizAttempt]) -> QuizResult:
    """
    Rebuild totals from attempts.

    Deterministic in its inputs, so re-running it never drifts. A result still
    waiting on manual grading is never passed.
    """
    score = round(sum(a.score for a in attempts), 1)
    is_passed = result.status == ResultStatus.COMPLETED and score >= result.passing_score
    return result.model_copy(update={"attempts": attempts, "score": score, "is_passed": is_passed})


def apply_override(result: QuizResult, index: int, new_score: float) -> QuizResult:
    """
    Return ``result`` with attempt ``index`` scored ``new_score``.

    Only a full score marks the attempt correct. The range check runs before
    anything else is touched.
    """
    if not 0 <= index < len(result.attempts):
        raise NotFoundException("Attempt", {"attempt_index": index})

    attempt = result.attempts[index]
    if not 0 <= new_score <= attempt.max_score:
        raise ManualScoreRangeError(index, new_score, attempt.max_score)

    attempts = list(result.attempts)
    attempts[index] = attempt.model_copy(
        update={"score": new_score, "is_correct": new_score == attempt.max_score}
    )
    return recompute(result, attempts)


def finalize(result: QuizResult) -> QuizResult:
    """Close grading: the result becomes completed and pass/fail is decided"""
    completed = result.model_copy(update={"status": ResultStatus.COMPLETED})
    return recompute(completed, list(completed.attempts))


class ManualGradingService:
    """Loads, rescores and persists results"""

    def __init__(self, repository: QuizRepository):
        self.repository = repository

    def _load(self, result_id: str) -> QuizResult:
        result = self.repository.get_result_by_id(result_id)
        if result is None or result.is_deleted:
            raise NotFoundException("Quiz result", {"result_id": result_id})
        return result

    def _persist(self, result: QuizResult, status=None) -> None:
        self.repository.update_result_scoring(
            result.id, result.attempts, result.score, result.is_passed, status=status
        )

    def pending(self, result_id: str) -> List[Tuple[int, QuizAttempt]]:
        return pending_items(self._load(result_id))

    def override(self, result_id: str, index: int, new_score: float) -> QuizResult:
        result = self._load(result_id)
        previous = result.attempts[index].score if 0 <= index < len(result.attempts) else None
        updated = apply_override(result, index, new_score)
        self._persist(updated)
        audit_logger.info(
            "Manual score override",
            extra={
                "result_id": result_id,
                "attempt_index": index,
                "previous_score": previous,
                "new_score": new_score,
                "total_score": updated.score,
            },
        )
        return updated

    def finalize(self, result_id: str) -> QuizResult:
        result = finalize(self._load(result_id))
        self._persist(result, status=ResultStatus.COMPLETED)
        audit_logger.info(
            "Grading finalized",
            extra={"result_id": result_id, "score": result.score, "is_passed": result.is_passed},
        )
        return result

    def grade_all(self, result_id: str, scores: Mapping[int, float], finalize_result: bool = True) -> QuizResult:
        """
        Apply several overrides at once, optionally closing grading.

        Every score is range-checked before anything is written.
        """
        result = self._load(result_id)
        for index, new_score in sorted(scores.items()):
            result = apply_override(result, index, new_score)

        if finalize_result:
            result = finalize(result)
            self._persist(result, status=ResultStatus.COMPLETED)
        else:
            self._persist(result)

        audit_logger.info(
            "Batch grading applied",
            extra={
                "result_id": result_id,
                "overrides": {str(k): v for k, v in scores.items()},
                "finalized": finalize_result,
                "score": result.score,
            },
        )
        return result
