"""
Quiz session endpoints
In-progress quizzes kept in the session store, one per taker and config
"""

from fastapi import APIRouter, Depends, Query, status

from quizcraft.api.deps import get_assembler, get_grading_service, get_session_store
from quizcraft.db.session_store import SessionStore
from quizcraft.schemas.answers import encode_answers
from quizcraft.schemas.result import QuizResult
from quizcraft.schemas.session import AnswerUpdate, SessionOwner, SessionView
from quizcraft.services.assembler import QuizAssembler
from quizcraft.services.grading import GradingService
from quizcraft.services.session import QuizSession

router = APIRouter()


class SessionFactory:
    """Builds a QuizSession for one request"""

    def __init__(
        self,
        assembler: QuizAssembler = Depends(get_assembler),
        grading: GradingService = Depends(get_grading_service),
        store: SessionStore = Depends(get_session_store),
    ):
        self.assembler = assembler
        self.grading = grading
        self.store = store

    def __call__(self, config_id: str, user_id: str, username: str = "") -> QuizSession:
        return QuizSession(
            config_id, self.assembler, self.grading, self.store, user_id=user_id, username=username
        )


def _view(session: QuizSession) -> SessionView:
    return SessionView(
        config_id=session.config_id,
        user_id=session.user_id,
        state=session.state.value,
        restored=session.restored,
        start_time=session.start_time,
        config_name=session.quiz.config_name if session.quiz else "",
        questions=session.questions,
        answers=encode_answers(session.answers),
    )


@router.post("/{config_id}", response_model=SessionView)
async def start_session(
    config_id: str, owner: SessionOwner, sessions: SessionFactory = Depends()
):
    """Resume the taker's saved session for this config, or draw a new quiz"""
    session = sessions(config_id, owner.user_id, owner.username)
    await session.start()
    await session.flush()
    return _view(session)


@router.get("/{config_id}", response_model=SessionView)
async def get_session(
    config_id: str, user_id: str = Query(..., min_length=1), sessions: SessionFactory = Depends()
):
    session = sessions(config_id, user_id)
    await session.resume()
    return _view(session)


@router.put("/{config_id}/answers/{question_id}", response_model=SessionView)
async def save_answer(
    config_id: str,
    question_id: str,
    update: AnswerUpdate,
    user_id: str = Query(..., min_length=1),
    sessions: SessionFactory = Depends(),
):
    """Record one answer and save the session straight away"""
    session = sessions(config_id, user_id)
    await session.resume()
    try:
        if update.blank_index is None:
            session.set_encoded(question_id, update.value)
        else:
            session.fill_blank(question_id, update.blank_index, update.value)
        await session.flush()
    finally:
        await session.close()
    return _view(session)


@router.post("/{config_id}/submit", response_model=QuizResult, status_code=status.HTTP_201_CREATED)
async def submit_session(
    config_id: str, user_id: str = Query(..., min_length=1), sessions: SessionFactory = Depends()
):
    """Grade the saved answers; the session is kept if grading fails"""
    session = sessions(config_id, user_id)
    await session.resume()
    return await session.submit()


@router.delete("/{config_id}")
async def abandon_session(
    config_id: str, user_id: str = Query(..., min_length=1), sessions: SessionFactory = Depends()
):
    session = sessions(config_id, user_id)
    await session.resume()
    await session.abandon()
    return {"message": "Quiz session abandoned"}
