"""
Quiz configuration schemas for Quizcraft
"""

import enum
import time
import uuid
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from quizcraft.schemas.question import (
    Difficulty,
    DrawnQuestion,
    GradeLevel,
    QuestionCategory,
    QuestionType,
)


class QuizMode(str, enum.Enum):
    """practice reveals answers and explanations after scoring, exam only the score"""

    PRACTICE = "practice"
    EXAM = "exam"


class FilterSet(BaseModel):
    """
    Question-bank filter. Values within one dimension are OR-ed, dimensions
    are AND-ed, and an empty dimension matches everything.
    """

    subjects: List[str] = Field(default_factory=list)
    difficulties: List[Difficulty] = Field(default_factory=list)
    grade_levels: List[GradeLevel] = Field(default_factory=list)
    question_types: List[QuestionType] = Field(default_factory=list)
    categories: List[QuestionCategory] = Field(default_factory=list)

    def matches(self, question) -> bool:
        """Whether a question (stored or drawn) falls inside this filter"""
        checks = [
            (self.subjects, question.subject),
            (self.difficulties, question.difficulty),
            (self.grade_levels, question.grade_level),
            (self.question_types, question.type),
            (self.categories, question.category),
        ]
        return all(not allowed or value in allowed for allowed, value in checks)


class QuizPartSpec(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str
    filters: FilterSet = Field(default_factory=FilterSet)
    count: int = Field(..., ge=1)
    score: float = Field(..., gt=0)


class QuizConfigBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    parts: List[QuizPartSpec] = Field(default_factory=list)
    passing_score: float = Field(default=0, ge=0)
    quiz_mode: QuizMode = QuizMode.PRACTICE
    is_published: bool = False

    @computed_field
    @property
    def total_questions(self) -> int:
        return sum(part.count for part in self.parts)

    @computed_field
    @property
    def max_score(self) -> float:
        return sum(part.count * part.score for part in self.parts)


class QuizConfigCreate(QuizConfigBase):
    """Config as submitted by an author; ``id`` set when editing"""

    id: Optional[str] = None


class QuizConfig(QuizConfigBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    is_deleted: bool = False
    created_at: int = Field(default_factory=lambda: int(time.time() * 1000))


class PartAvailability(BaseModel):
    part_id: str
    part_name: str
    requested: int
    available: int


class AvailabilityResponse(BaseModel):
    parts: List[PartAvailability]
    total_available: int


class AssembledQuiz(BaseModel):
    """A concrete draw: ordered questions plus the config they came from"""

    questions: List[DrawnQuestion]
    config_name: str
    passing_score: float
    config: Optional[QuizConfig] = None
