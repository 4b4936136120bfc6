"""
Quiz result endpoints: grading, review and manual grading
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from quizcraft.api.deps import get_grading_service, get_manual_grading_service, get_repository
from quizcraft.core.exceptions import NotFoundException
from quizcraft.schemas.answers import decode_answers
from quizcraft.schemas.quiz import AssembledQuiz
from quizcraft.schemas.result import (
    BatchGrade,
    PendingAttempt,
    QuizResult,
    ResultPage,
    ResultReview,
    ResultStatus,
    ResultSubmit,
    ScoreOverride,
)
from quizcraft.services.grading import GradingService, review
from quizcraft.services.manual_grading import ManualGradingService
from quizcraft.services.repository import SqlQuizRepository

router = APIRouter()


@router.post("/", response_model=QuizResult, status_code=status.HTTP_201_CREATED)
def submit_quiz(
    submission: ResultSubmit,
    repository: SqlQuizRepository = Depends(get_repository),
    grading: GradingService = Depends(get_grading_service),
):
    """
    Grade a finished quiz and store the result.

    Scores and part names come from the stored config, never from the
    submitted questions.
    """
    config = repository.get_config_by_id(submission.config_id)
    if config is None or config.is_deleted:
        raise NotFoundException("Quiz config", {"config_id": submission.config_id})

    quiz = AssembledQuiz(
        questions=submission.questions,
        config_name=config.name,
        passing_score=config.passing_score,
        config=config,
    )
    return grading.submit(
        quiz,
        decode_answers(submission.questions, submission.answers),
        user_id=submission.user_id,
        username=submission.username,
        config_id=config.id,
        start_time=submission.start_time,
    )


@router.get("/", response_model=ResultPage)
def list_results(
    user_id: Optional[str] = Query(None, description="One taker's history"),
    status_filter: Optional[ResultStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, description="Match on username"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    repository: SqlQuizRepository = Depends(get_repository),
):
    """Stored results, newest first; ``status=pending_grading`` is the grading queue"""
    return repository.list_results(
        user_id=user_id, status=status_filter, search=search, page=page, limit=limit
    )


@router.delete("/{result_id}")
def delete_result(result_id: str, repository: SqlQuizRepository = Depends(get_repository)):
    repository.soft_delete_result(result_id)
    return {"message": "Quiz result deleted successfully"}


@router.get("/{result_id}", response_model=ResultReview)
def get_result(
    result_id: str,
    admin: bool = Query(False, description="Reveal answers regardless of quiz mode"),
    repository: SqlQuizRepository = Depends(get_repository),
):
    result = repository.get_result_by_id(result_id)
    if result is None or result.is_deleted:
        raise NotFoundException("Quiz result", {"result_id": result_id})
    return review(result, is_admin=admin)


@router.get("/{result_id}/pending", response_model=List[PendingAttempt])
def pending_attempts(
    result_id: str, service: ManualGradingService = Depends(get_manual_grading_service)
):
    """Attempts waiting on a grader"""
    return [PendingAttempt(index=index, attempt=attempt) for index, attempt in service.pending(result_id)]


@router.post("/{result_id}/attempts/{index}/score", response_model=QuizResult)
def override_score(
    result_id: str,
    index: int,
    override: ScoreOverride,
    service: ManualGradingService = Depends(get_manual_grading_service),
):
    return service.override(result_id, index, override.score)


@router.post("/{result_id}/grade", response_model=QuizResult)
def grade_all(
    result_id: str,
    batch: BatchGrade,
    service: ManualGradingService = Depends(get_manual_grading_service),
):
    """Score several attempts at once, optionally closing grading"""
    return service.grade_all(result_id, batch.scores, finalize_result=batch.finalize)


@router.post("/{result_id}/finalize", response_model=QuizResult)
def finalize_grading(
    result_id: str, service: ManualGradingService = Depends(get_manual_grading_service)
):
    return service.finalize(result_id)
