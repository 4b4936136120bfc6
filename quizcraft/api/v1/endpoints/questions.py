"""
Question bank endpoints
Authoring lifecycle: create, edit, hide, soft delete, restore, hard delete
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from quizcraft.api.deps import get_repository
from quizcraft.core.exceptions import NotFoundException
from quizcraft.schemas.question import (
    Difficulty,
    GradeLevel,
    Question,
    QuestionCategory,
    QuestionCreate,
    QuestionPage,
    QuestionType,
)
from quizcraft.schemas.quiz import FilterSet
from quizcraft.services.repository import SqlQuizRepository

router = APIRouter()


@router.get("/", response_model=QuestionPage)
def list_questions(
    subjects: List[str] = Query([]),
    difficulties: List[Difficulty] = Query([]),
    grade_levels: List[GradeLevel] = Query([]),
    question_types: List[QuestionType] = Query([]),
    categories: List[QuestionCategory] = Query([]),
    search: Optional[str] = Query(None, description="Match on question text"),
    deleted: bool = Query(False, description="List the trash instead"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    repository: SqlQuizRepository = Depends(get_repository),
):
    """Get questions with filters, newest first"""
    filters = FilterSet(
        subjects=subjects,
        difficulties=difficulties,
        grade_levels=grade_levels,
        question_types=question_types,
        categories=categories,
    )
    return repository.list_questions(filters, page=page, limit=limit, search=search, deleted=deleted)


@router.post("/", response_model=Question, status_code=status.HTTP_201_CREATED)
def create_question(
    question_data: QuestionCreate, repository: SqlQuizRepository = Depends(get_repository)
):
    """Create a new question"""
    return repository.save_question(question_data)


@router.get("/{question_id}", response_model=Question)
def get_question(question_id: str, repository: SqlQuizRepository = Depends(get_repository)):
    """Get question by ID"""
    question = repository.get_question_by_id(question_id)
    if question is None:
        raise NotFoundException("Question", {"question_id": question_id})
    return question


@router.put("/{question_id}", response_model=Question)
def update_question(
    question_id: str,
    question_data: QuestionCreate,
    repository: SqlQuizRepository = Depends(get_repository),
):
    """Update question"""
    return repository.update_question(question_id, question_data)


@router.post("/{question_id}/toggle")
def toggle_question(question_id: str, repository: SqlQuizRepository = Depends(get_repository)):
    """Hide a question from assembly, or show it again"""
    return {"id": question_id, "is_disabled": repository.toggle_question_visibility(question_id)}


@router.delete("/{question_id}")
def delete_question(question_id: str, repository: SqlQuizRepository = Depends(get_repository)):
    """Soft delete; recoverable with restore"""
    repository.soft_delete_question(question_id)
    return {"message": "Question deleted successfully"}


@router.post("/{question_id}/restore")
def restore_question(question_id: str, repository: SqlQuizRepository = Depends(get_repository)):
    repository.restore_question(question_id)
    return {"message": "Question restored"}


@router.delete("/{question_id}/permanent")
def hard_delete_question(
    question_id: str, repository: SqlQuizRepository = Depends(get_repository)
):
    """Irreversible; refused while stored results reference the question"""
    repository.hard_delete_question(question_id)
    return {"message": "Question permanently deleted"}
