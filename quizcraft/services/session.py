"""
Resumable quiz-taking sessions

A session draws (or restores) a quiz, collects answers, autosaves them to a
recoverable store and hands them to grading on submit:

    loading -> active -> submitting -> completed
                    \\-> abandoned

The autosave is a single owned task, rescheduled on every answer change and
cancelled by ``close()``.
"""

import asyncio
import enum
import logging
import time
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from quizcraft.core.config import settings
from quizcraft.core.exceptions import InvalidAnswerError, NotFoundException, SessionStateError
from quizcraft.db.session_store import SessionStore
from quizcraft.schemas.answers import (
    Answer,
    MultiAnswer,
    SingleAnswer,
    decode_answer,
    decode_answers,
    encode_answers,
)
from quizcraft.schemas.question import DrawnQuestion
from quizcraft.schemas.quiz import AssembledQuiz, QuizConfig
from quizcraft.schemas.result import QuizResult
from quizcraft.services.assembler import QuizAssembler
from quizcraft.services.grading import GradingService

logger = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    LOADING = "loading"
    ACTIVE = "active"
    SUBMITTING = "submitting"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class SavedSession(BaseModel):
    """Autosave payload; answers are kept in their wire encoding"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    questions: List[DrawnQuestion]
    answers: Dict[str, str] = Field(default_factory=dict)
    user_id: str = ""
    username: str = ""
    config_name: str = ""
    passing_score: float = 0
    timestamp: int = 0
    start_time: Optional[int] = None
    config: Optional[QuizConfig] = None


def _now_ms() -> int:
    return int(time.time() * 1000)


class QuizSession:
    """One taker working through one quiz config"""

    def __init__(
        self,
        config_id: str,
        assembler: QuizAssembler,
        grading: GradingService,
        store: SessionStore,
        *,
        user_id: str,
        username: str,
        debounce_seconds: Optional[float] = None,
        clock: Callable[[], int] = _now_ms,
    ):
        self.config_id = config_id
        self.assembler = assembler
        self.grading = grading
        self.store = store
        self.user_id = user_id
        self.username = username
        self.debounce_seconds = (
            settings.AUTOSAVE_DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        )
        self.clock = clock

        self.state = SessionState.LOADING
        self.quiz: Optional[AssembledQuiz] = None
        self.answers: Dict[str, Answer] = {}
        self.start_time: Optional[int] = None
        self.restored = False
        self.result: Optional[QuizResult] = None
        self._autosave_task: Optional[asyncio.Task] = None

    @property
    def key(self) -> str:
        """One saved session per taker and config"""
        return f"{settings.AUTOSAVE_KEY_PREFIX}{self.user_id}_{self.config_id}"

    @property
    def questions(self) -> List[DrawnQuestion]:
        return self.quiz.questions if self.quiz else []

    def _require(self, operation: str, *states: SessionState) -> None:
        if self.state not in states:
            raise SessionStateError(operation, self.state.value)

    # ---- lifecycle ----------------------------------------------------------

    async def start(self) -> AssembledQuiz:
        """
        Resume a saved session for this config, or draw a new quiz.

        A restored session keeps its original draw and start time. Assembly
        errors propagate and leave the session in ``loading`` so the caller
        can retry.
        """
        self._require("start", SessionState.LOADING)

        saved = await self._load_saved()
        if saved is not None:
            self._restore(saved)
        else:
            self.quiz = await asyncio.to_thread(self.assembler.assemble_by_id, self.config_id)
            self.answers = {}
            self.start_time = self.clock()

        self.state = SessionState.ACTIVE
        return self.quiz

    async def resume(self) -> AssembledQuiz:
        """Restore a saved session; never draws a new quiz"""
        self._require("resume", SessionState.LOADING)

        saved = await self._load_saved()
        if saved is None:
            raise NotFoundException(
                "Quiz session", {"config_id": self.config_id, "user_id": self.user_id}
            )
        self._restore(saved)
        self.state = SessionState.ACTIVE
        return self.quiz

    def _restore(self, saved: SavedSession) -> None:
        self.quiz = AssembledQuiz(
            questions=saved.questions,
            config_name=saved.config_name,
            passing_score=saved.passing_score,
            config=saved.config,
        )
        self.answers = decode_answers(saved.questions, saved.answers)
        self.start_time = saved.start_time or self.clock()
        self.username = self.username or saved.username
        self.restored = True
        logger.info(
            "Quiz session restored",
            extra={"config_id": self.config_id, "user_id": self.user_id, "answered": len(self.answers)},
        )

    async def _load_saved(self) -> Optional[SavedSession]:
        raw = await self.store.get(self.key)
        if not raw:
            return None
        try:
            saved = SavedSession.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding unreadable saved session", extra={"config_id": self.config_id})
            await self.store.delete(self.key)
            return None
        if not saved.questions:
            await self.store.delete(self.key)
            return None
        return saved

    def snapshot(self) -> SavedSession:
        return SavedSession(
            questions=self.questions,
            answers=encode_answers(self.answers),
            user_id=self.user_id,
            username=self.username,
            config_name=self.quiz.config_name if self.quiz else "",
            passing_score=self.quiz.passing_score if self.quiz else 0,
            timestamp=self.clock(),
            start_time=self.start_time,
            config=self.quiz.config if self.quiz else None,
        )

    async def flush(self) -> bool:
        """Persist the current snapshot now"""
        if not self.questions:
            return False
        payload = self.snapshot().model_dump_json(by_alias=True)
        return await self.store.set(self.key, payload, ttl=settings.AUTOSAVE_TTL_SECONDS)

    async def close(self) -> None:
        """Cancel any pending autosave; nothing is written after this returns"""
        task, self._autosave_task = self._autosave_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def abandon(self) -> None:
        """Give up the attempt: the saved session is cleared and no result is created"""
        self._require("abandon", SessionState.ACTIVE)
        await self.close()
        await self.store.delete(self.key)
        self.state = SessionState.ABANDONED
        logger.info("Quiz session abandoned", extra={"config_id": self.config_id})

    @property
    def requires_exit_confirmation(self) -> bool:
        return self.state == SessionState.ACTIVE

    async def request_exit(self, confirm: Callable[[], bool]) -> bool:
        """
        Navigation guard. Leaving an active session needs ``confirm()`` to
        agree, in which case the session is abandoned. Returns whether the
        caller may leave.
        """
        if not self.requires_exit_confirmation:
            return True
        if not confirm():
            return False
        await self.abandon()
        return True

    async def submit(self) -> QuizResult:
        """
        Grade and store the answers.

        On failure the session returns to ``active`` with its snapshot saved,
        so the taker can retry without answering again.
        """
        self._require("submit", SessionState.ACTIVE)
        await self.close()
        self.state = SessionState.SUBMITTING

        try:
            result = await asyncio.to_thread(
                self.grading.submit,
                self.quiz,
                dict(self.answers),
                user_id=self.user_id,
                username=self.username,
                config_id=self.config_id,
                start_time=self.start_time,
                now=self.clock(),
            )
        except Exception:
            self.state = SessionState.ACTIVE
            await self.flush()
            logger.warning("Quiz submission failed; session kept", extra={"config_id": self.config_id})
            raise

        await self.store.delete(self.key)
        self.result = result
        self.state = SessionState.COMPLETED
        return result

    # ---- answers ------------------------------------------------------------

    def _question(self, question_id: str) -> DrawnQuestion:
        for question in self.questions:
            if question.id == question_id:
                return question
        raise NotFoundException("Question", {"question_id": question_id})

    def set_answer(self, question_id: str, answer: Answer) -> None:
        self._require("answer", SessionState.ACTIVE)
        self._question(question_id)
        # Raises outside a running loop before the answer is touched
        self._schedule_autosave()
        self.answers[question_id] = answer

    def choose(self, question_id: str, option: str) -> None:
        """Single choice or true/false"""
        self.set_answer(question_id, SingleAnswer(value=option))

    def write(self, question_id: str, text: str) -> None:
        """Short answer"""
        self.set_answer(question_id, SingleAnswer(value=text))

    def toggle_option(self, question_id: str, option: str) -> MultiAnswer:
        """Multi-select checkbox; the selection is kept sorted"""
        self._require("answer", SessionState.ACTIVE)
        current = self.answers.get(question_id)
        values = list(current.values) if isinstance(current, MultiAnswer) else []
        if option in values:
            values.remove(option)
        else:
            values.append(option)
        answer = MultiAnswer(values=tuple(values)).sorted()
        self.set_answer(question_id, answer)
        return answer

    def fill_blank(self, question_id: str, index: int, value: str) -> MultiAnswer:
        """One fill-in-the-blank input; the answer is padded to the blank count"""
        self._require("answer", SessionState.ACTIVE)
        question = self._question(question_id)
        size = max(question.blank_count or 1, 1)
        if not 0 <= index < size:
            raise InvalidAnswerError(
                f"Blank index must be between 0 and {size - 1}, got {index}",
                details={"question_id": question_id, "index": index, "blank_count": size},
            )
        current = self.answers.get(question_id)
        values = list(current.values)[:size] if isinstance(current, MultiAnswer) else []
        values.extend([""] * (size - len(values)))
        values[index] = value
        answer = MultiAnswer(values=tuple(values))
        self.set_answer(question_id, answer)
        return answer

    def set_encoded(self, question_id: str, raw: str) -> Answer:
        """Record an answer given in its wire encoding"""
        self._require("answer", SessionState.ACTIVE)
        question = self._question(question_id)
        answer = decode_answer(question.type, raw)
        if answer is None:
            raise InvalidAnswerError(
                "Answer is not valid for this question type",
                details={"question_id": question_id, "type": question.type.value},
            )
        self.set_answer(question_id, answer)
        return answer

    def _schedule_autosave(self) -> None:
        loop = asyncio.get_running_loop()
        if self._autosave_task is not None and not self._autosave_task.done():
            self._autosave_task.cancel()
        self._autosave_task = loop.create_task(self._autosave_later())
        self._autosave_task.add_done_callback(self._autosave_done)

    async def _autosave_later(self) -> None:
        await asyncio.sleep(self.debounce_seconds)
        await self.flush()

    def _autosave_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                f"Autosave failed: {error}",
                extra={"config_id": self.config_id, "user_id": self.user_id},
                exc_info=error,
            )
