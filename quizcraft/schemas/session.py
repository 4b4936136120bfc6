"""
Quiz session schemas for Quizcraft
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from quizcraft.schemas.question import DrawnQuestion


class SessionOwner(BaseModel):
    user_id: str = Field(..., min_length=1)
    username: str = ""


class AnswerUpdate(BaseModel):
    """
    One answer change. ``value`` is the wire encoding for the question type;
    with ``blank_index`` it fills a single blank instead.
    """

    value: str
    blank_index: Optional[int] = None


class SessionView(BaseModel):
    """An in-progress session as the taker sees it; no correct answers"""

    config_id: str
    user_id: str
    state: str
    restored: bool
    start_time: Optional[int] = None
    config_name: str = ""
    questions: List[DrawnQuestion]
    answers: Dict[str, str] = Field(default_factory=dict)
