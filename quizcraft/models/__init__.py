"""
Quizcraft Models Package
"""

from quizcraft.models.quiz import QuestionRecord, QuizConfigRecord, QuizResultRecord

__all__ = [
    "QuestionRecord",
    "QuizConfigRecord",
    "QuizResultRecord",
]
