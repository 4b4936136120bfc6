"""
Shared FastAPI dependencies
"""

from fastapi import Depends

from quizcraft.core.database import SessionLocal
from quizcraft.db.redis import session_store
from quizcraft.db.session_store import MemorySessionStore, SessionStore
from quizcraft.services.assembler import QuizAssembler
from quizcraft.services.grading import GradingService
from quizcraft.services.manual_grading import ManualGradingService
from quizcraft.services.repository import SqlQuizRepository

# Used while Redis is unreachable
local_session_store = MemorySessionStore()


def get_repository() -> SqlQuizRepository:
    return SqlQuizRepository(SessionLocal)


def get_assembler(repository: SqlQuizRepository = Depends(get_repository)) -> QuizAssembler:
    return QuizAssembler(repository)


def get_grading_service(repository: SqlQuizRepository = Depends(get_repository)) -> GradingService:
    return GradingService(repository)


def get_manual_grading_service(
    repository: SqlQuizRepository = Depends(get_repository),
) -> ManualGradingService:
    return ManualGradingService(repository)


def get_session_store() -> SessionStore:
    """Redis when connected, otherwise the process-local store"""
    return session_store if session_store.is_connected else local_session_store
