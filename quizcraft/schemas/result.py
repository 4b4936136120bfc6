"""
Quiz result schemas for Quizcraft
"""

import enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from quizcraft.schemas.question import DrawnQuestion
from quizcraft.schemas.quiz import QuizConfig


class ResultStatus(str, enum.Enum):
    COMPLETED = "completed"
    PENDING_GRADING = "pending_grading"


class QuizAttempt(BaseModel):
    """
    One graded question inside a result.

    The question text, images, correct answer and explanation are copied at
    grading time; later edits to the question bank never change them.
    """

    question_id: str
    user_answer: str = ""
    is_correct: bool = False
    score: float = 0
    max_score: float = 1
    manual_grading: bool = False
    question_text: Optional[str] = None
    question_image_urls: List[str] = Field(default_factory=list)
    correct_answer_text: Optional[str] = None
    explanation: Optional[str] = None
    quiz_part_name: Optional[str] = None


class QuizResult(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    user_id: str
    username: str
    config_id: Optional[str] = None
    config_name: str = ""
    config: Optional[QuizConfig] = None
    attempts: List[QuizAttempt] = Field(default_factory=list)
    score: float = 0
    max_score: float = 0
    passing_score: float = 0
    is_passed: bool = False
    total_questions: int = 0
    status: ResultStatus = ResultStatus.COMPLETED
    duration: int = 0
    timestamp: int = 0
    is_deleted: bool = False


class PartScore(BaseModel):
    name: str
    score: float
    max_score: float


class ResultReview(BaseModel):
    """A result as shown on a review screen, with per-part subtotals"""

    result: QuizResult
    part_scores: List[PartScore]
    answers_revealed: bool


class ResultSubmit(BaseModel):
    """Answers handed in for grading, keyed by question id in wire encoding"""

    config_id: str
    user_id: str
    username: str
    questions: List[DrawnQuestion]
    answers: Dict[str, str] = Field(default_factory=dict)
    start_time: Optional[int] = None


class ScoreOverride(BaseModel):
    score: float


class BatchGrade(BaseModel):
    scores: Dict[int, float]
    finalize: bool = True


class PendingAttempt(BaseModel):
    index: int
    attempt: QuizAttempt


class ResultPage(BaseModel):
    """One page of stored results, newest first"""

    items: List[QuizResult]
    total: int
    page: int
    limit: int
