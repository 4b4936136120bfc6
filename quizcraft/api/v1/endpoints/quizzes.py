"""
Quiz generation endpoints
"""

from fastapi import APIRouter, Depends

from quizcraft.api.deps import get_assembler
from quizcraft.schemas.quiz import AssembledQuiz
from quizcraft.services.assembler import QuizAssembler

router = APIRouter()


@router.post("/{config_id}/generate", response_model=AssembledQuiz)
def generate_quiz(config_id: str, assembler: QuizAssembler = Depends(get_assembler)):
    """Draw a fresh quiz for a config; correct answers are not included"""
    return assembler.assemble_by_id(config_id)
