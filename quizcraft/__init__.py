"""Quizcraft: quiz assembly and grading backend"""

__version__ = "1.0.0"
