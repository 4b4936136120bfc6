"""
Question schemas for Quizcraft
"""

import enum
import time
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class QuestionType(str, enum.Enum):
    """Question archetypes"""

    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    MULTIPLE_SELECT = "MULTIPLE_SELECT"
    TRUE_FALSE = "TRUE_FALSE"
    FILL_IN_THE_BLANK = "FILL_IN_THE_BLANK"
    SHORT_ANSWER = "SHORT_ANSWER"


class Difficulty(str, enum.Enum):
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"


class GradeLevel(str, enum.Enum):
    PRIMARY = "PRIMARY"
    JUNIOR = "JUNIOR"
    SENIOR = "SENIOR"


class QuestionCategory(str, enum.Enum):
    BASIC = "BASIC"
    MISTAKE = "MISTAKE"
    EXPLANATION = "EXPLANATION"
    STANDARD = "STANDARD"


class QuestionBase(BaseModel):
    """Authoring fields shared by create and stored questions"""

    type: QuestionType
    text: str = Field(..., min_length=1)
    image_urls: List[str] = Field(default_factory=list)
    options: List[str] = Field(default_factory=list)
    correct_answer: str = ""
    subject: str
    grade_level: GradeLevel
    difficulty: Difficulty
    category: QuestionCategory = QuestionCategory.BASIC
    score: float = 1
    needs_grading: bool = False
    explanation: Optional[str] = None


class QuestionCreate(QuestionBase):
    """Question creation schema"""

    is_disabled: bool = False


class Question(QuestionBase):
    """A question-bank record"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    is_disabled: bool = False
    is_deleted: bool = False
    created_at: int = Field(default_factory=lambda: int(time.time() * 1000))


class DrawnQuestion(BaseModel):
    """
    A question as handed to a quiz taker.

    The correct answer and explanation are withheld; ``score`` carries the
    points of the part that drew it and ``blank_count`` tells the client how
    many inputs a fill-in-the-blank question needs.
    """

    id: str
    type: QuestionType
    text: str
    image_urls: List[str] = Field(default_factory=list)
    options: List[str] = Field(default_factory=list)
    subject: str
    grade_level: GradeLevel
    difficulty: Difficulty
    category: QuestionCategory = QuestionCategory.BASIC
    score: float = 1
    needs_grading: bool = False
    blank_count: Optional[int] = None
    quiz_part_name: Optional[str] = None


class QuestionPage(BaseModel):
    """One page of the question bank, newest first"""

    items: List[Question]
    total: int
    page: int
    limit: int
