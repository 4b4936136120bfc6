"""
Persistence models for Quizcraft
"""

import time
import uuid

from sqlalchemy import JSON, BigInteger, Boolean, Column, Float, Integer, String, Text

from quizcraft.core.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def _now_ms() -> int:
    return int(time.time() * 1000)


class QuestionRecord(Base):
    """Question-bank entry"""

    __tablename__ = "questions"

    id = Column(String(36), primary_key=True, default=_new_id)
    type = Column(String(32), nullable=False, index=True)
    text = Column(Text, nullable=False)
    image_urls = Column(JSON, default=list)
    options = Column(JSON, default=list)
    correct_answer = Column(Text, nullable=False, default="")

    subject = Column(String(64), nullable=False, index=True)
    grade_level = Column(String(16), nullable=False, index=True)
    difficulty = Column(String(16), nullable=False, index=True)
    category = Column(String(32), nullable=False, default="BASIC", index=True)

    score = Column(Float, default=1)
    needs_grading = Column(Boolean, default=False)
    explanation = Column(Text, nullable=True)

    is_disabled = Column(Boolean, default=False, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)
    created_at = Column(BigInteger, default=_now_ms)


class QuizConfigRecord(Base):
    """Quiz configuration; parts kept as a JSON list"""

    __tablename__ = "quiz_configs"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    parts = Column(JSON, default=list)
    total_questions = Column(Integer, default=0)
    passing_score = Column(Float, default=0)
    quiz_mode = Column(String(16), default="practice")
    is_published = Column(Boolean, default=False)
    is_deleted = Column(Boolean, default=False, nullable=False)
    created_at = Column(BigInteger, default=_now_ms)


class QuizResultRecord(Base):
    """Graded quiz; attempts and the config snapshot kept as JSON"""

    __tablename__ = "quiz_results"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(64), nullable=False, index=True)
    username = Column(String(128), nullable=False)
    config_id = Column(String(36), nullable=True, index=True)
    config_name = Column(String(200), default="")
    config_snapshot = Column(JSON, nullable=True)
    attempts = Column(JSON, default=list)
    # Denormalised question ids so hard deletes can check references cheaply
    question_ids = Column(JSON, default=list)

    score = Column(Float, default=0)
    max_score = Column(Float, default=0)
    passing_score = Column(Float, default=0)
    is_passed = Column(Boolean, default=False)
    total_questions = Column(Integer, default=0)
    status = Column(String(32), default="completed", index=True)
    duration = Column(Integer, default=0)
    timestamp = Column(BigInteger, default=_now_ms, index=True)
    is_deleted = Column(Boolean, default=False, nullable=False)
