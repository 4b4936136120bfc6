"""
Quiz configuration endpoints
"""

from typing import List

from fastapi import APIRouter, Depends, Query, status

from quizcraft.api.deps import get_assembler, get_repository
from quizcraft.core.exceptions import NotFoundException
from quizcraft.schemas.quiz import AvailabilityResponse, QuizConfig, QuizConfigCreate, QuizPartSpec
from quizcraft.services.assembler import QuizAssembler
from quizcraft.services.repository import SqlQuizRepository

router = APIRouter()


@router.post("/availability", response_model=AvailabilityResponse)
async def part_availability(
    parts: List[QuizPartSpec], assembler: QuizAssembler = Depends(get_assembler)
):
    """Live inventory for each part, as the config editor changes them"""
    report = await assembler.availability_report(parts)
    return AvailabilityResponse(parts=report, total_available=sum(p.available for p in report))


@router.post("/", response_model=QuizConfig, status_code=status.HTTP_201_CREATED)
async def save_quiz_config(
    config_data: QuizConfigCreate,
    assembler: QuizAssembler = Depends(get_assembler),
    repository: SqlQuizRepository = Depends(get_repository),
):
    """Validate against live inventory, then create or update"""
    availability = await assembler.compute_part_availability(config_data.parts)
    assembler.validate_config(config_data, availability)
    return repository.save_config(config_data)


@router.get("/", response_model=List[QuizConfig])
def list_quiz_configs(
    published_only: bool = Query(False), repository: SqlQuizRepository = Depends(get_repository)
):
    return repository.list_configs(published_only=published_only)


@router.get("/{config_id}", response_model=QuizConfig)
def get_quiz_config(config_id: str, repository: SqlQuizRepository = Depends(get_repository)):
    config = repository.get_config_by_id(config_id)
    if config is None or config.is_deleted:
        raise NotFoundException("Quiz config", {"config_id": config_id})
    return config


@router.post("/{config_id}/publish")
def toggle_publish(config_id: str, repository: SqlQuizRepository = Depends(get_repository)):
    return {"id": config_id, "is_published": repository.toggle_config_published(config_id)}


@router.delete("/{config_id}")
def delete_quiz_config(config_id: str, repository: SqlQuizRepository = Depends(get_repository)):
    repository.soft_delete_config(config_id)
    return {"message": "Quiz config deleted successfully"}
