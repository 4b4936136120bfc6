"""
Question, quiz-config and result repository

``QuizRepository`` is the contract the engine needs from storage;
``SqlQuizRepository`` implements it on SQLAlchemy, opening one session per
call so independent reads can run on separate threads.
"""

import abc
import functools
import logging
import random
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import Text, cast, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from quizcraft.core.database import session_scope
from quizcraft.core.exceptions import NotFoundException, QuestionInUseError, RepositoryError
from quizcraft.models import QuestionRecord, QuizConfigRecord, QuizResultRecord
from quizcraft.schemas.question import Question, QuestionCreate, QuestionPage
from quizcraft.schemas.quiz import FilterSet, QuizConfig, QuizConfigCreate
from quizcraft.schemas.result import QuizAttempt, QuizResult, ResultPage, ResultStatus

logger = logging.getLogger(__name__)


class QuizRepository(abc.ABC):
    """Storage contract used by the assembler, the grader and manual grading"""

    @abc.abstractmethod
    def count_matching(self, filters: FilterSet) -> int:
        """Count enabled, non-deleted questions matching ``filters``"""

    @abc.abstractmethod
    def fetch_matching_ids(self, filters: FilterSet) -> List[str]:
        """Ids of enabled, non-deleted questions matching ``filters``, in a stable order"""

    @abc.abstractmethod
    def get_question_by_id(self, question_id: str) -> Optional[Question]:
        ...

    @abc.abstractmethod
    def get_questions_by_ids(self, question_ids: Sequence[str]) -> List[Question]:
        """Full records for ``question_ids`` (soft-deleted included), any order"""

    @abc.abstractmethod
    def get_config_by_id(self, config_id: str) -> Optional[QuizConfig]:
        ...

    @abc.abstractmethod
    def save_result(self, result: QuizResult) -> str:
        """Persist a new result and return its id"""

    @abc.abstractmethod
    def get_result_by_id(self, result_id: str) -> Optional[QuizResult]:
        ...

    @abc.abstractmethod
    def update_result_scoring(
        self,
        result_id: str,
        attempts: List[QuizAttempt],
        score: float,
        is_passed: bool,
        status: Optional[ResultStatus] = None,
    ) -> None:
        ...

    def fetch_random_sample(
        self,
        filters: FilterSet,
        n: int,
        rng: Optional[random.Random] = None,
        exclude: Iterable[str] = (),
    ) -> List[Question]:
        """
        Uniform sample of ``n`` distinct matching questions, without replacement.

        Returns fewer than ``n`` only when fewer match; callers decide whether
        that is an error.
        """
        excluded = set(exclude)
        candidates = [qid for qid in self.fetch_matching_ids(filters) if qid not in excluded]
        picked = (rng or random).sample(candidates, min(n, len(candidates)))
        by_id = {q.id: q for q in self.get_questions_by_ids(picked)}
        return [by_id[qid] for qid in picked if qid in by_id]


def translate_errors(func_):
    """Re-raise SQLAlchemy failures as RepositoryError"""

    @functools.wraps(func_)
    def wrapper(*args, **kwargs):
        try:
            return func_(*args, **kwargs)
        except SQLAlchemyError as e:
            logger.error(
                f"Repository operation {func_.__name__} failed: {e}",
                extra={"operation": func_.__name__},
            )
            raise RepositoryError(details={"operation": func_.__name__}) from e

    return wrapper


def _question_from_record(record: QuestionRecord) -> Question:
    return Question.model_validate(record)


def _config_from_record(record: QuizConfigRecord) -> QuizConfig:
    return QuizConfig(
        id=record.id,
        name=record.name,
        description=record.description,
        parts=record.parts or [],
        passing_score=record.passing_score or 0,
        quiz_mode=record.quiz_mode or "practice",
        is_published=bool(record.is_published),
        is_deleted=bool(record.is_deleted),
        created_at=record.created_at,
    )


def _result_from_record(record: QuizResultRecord) -> QuizResult:
    return QuizResult(
        id=record.id,
        user_id=record.user_id,
        username=record.username,
        config_id=record.config_id,
        config_name=record.config_name or "",
        config=record.config_snapshot,
        attempts=record.attempts or [],
        score=record.score or 0,
        max_score=record.max_score or 0,
        passing_score=record.passing_score or 0,
        is_passed=bool(record.is_passed),
        total_questions=record.total_questions or 0,
        status=record.status or ResultStatus.COMPLETED,
        duration=record.duration or 0,
        timestamp=record.timestamp,
        is_deleted=bool(record.is_deleted),
    )


def _filtered(stmt, filters: FilterSet):
    """Assembly view: enabled, non-deleted questions inside ``filters``"""
    stmt = stmt.where(QuestionRecord.is_disabled.is_(False), QuestionRecord.is_deleted.is_(False))
    return _apply_filters(stmt, filters)


def _apply_filters(stmt, filters: FilterSet):
    if filters.subjects:
        stmt = stmt.where(QuestionRecord.subject.in_(filters.subjects))
    if filters.difficulties:
        stmt = stmt.where(QuestionRecord.difficulty.in_([d.value for d in filters.difficulties]))
    if filters.grade_levels:
        stmt = stmt.where(QuestionRecord.grade_level.in_([g.value for g in filters.grade_levels]))
    if filters.question_types:
        stmt = stmt.where(QuestionRecord.type.in_([t.value for t in filters.question_types]))
    if filters.categories:
        stmt = stmt.where(QuestionRecord.category.in_([c.value for c in filters.categories]))
    return stmt


def _paged(session, stmt, page: int, limit: int, *order_by) -> Tuple[list, int]:
    """Rows of one 1-based page plus the total row count"""
    total = session.scalar(select(func.count()).select_from(stmt.subquery())) or 0
    rows = session.scalars(stmt.order_by(*order_by).offset((page - 1) * limit).limit(limit))
    return list(rows), total


class SqlQuizRepository(QuizRepository):
    """SQLAlchemy-backed repository"""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    # ---- questions ----------------------------------------------------------

    @translate_errors
    def count_matching(self, filters: FilterSet) -> int:
        with session_scope(self._session_factory) as session:
            stmt = _filtered(select(func.count(QuestionRecord.id)), filters)
            return session.scalar(stmt) or 0

    @translate_errors
    def fetch_matching_ids(self, filters: FilterSet) -> List[str]:
        with session_scope(self._session_factory) as session:
            stmt = _filtered(select(QuestionRecord.id), filters).order_by(QuestionRecord.id)
            return list(session.scalars(stmt))

    @translate_errors
    def get_question_by_id(self, question_id: str) -> Optional[Question]:
        with session_scope(self._session_factory) as session:
            record = session.get(QuestionRecord, question_id)
            return _question_from_record(record) if record else None

    @translate_errors
    def get_questions_by_ids(self, question_ids: Sequence[str]) -> List[Question]:
        if not question_ids:
            return []
        with session_scope(self._session_factory) as session:
            stmt = select(QuestionRecord).where(QuestionRecord.id.in_(list(question_ids)))
            return [_question_from_record(r) for r in session.scalars(stmt)]

    @translate_errors
    def list_questions(
        self,
        filters: Optional[FilterSet] = None,
        page: int = 1,
        limit: int = 20,
        search: Optional[str] = None,
        deleted: bool = False,
    ) -> QuestionPage:
        """
        Authoring view of the bank, newest first.

        Hidden questions are listed; ``deleted`` switches to the trash.
        """
        with session_scope(self._session_factory) as session:
            stmt = _apply_filters(
                select(QuestionRecord).where(QuestionRecord.is_deleted.is_(deleted)),
                filters or FilterSet(),
            )
            if search:
                stmt = stmt.where(QuestionRecord.text.ilike(f"%{search}%"))
            records, total = _paged(
                session, stmt, page, limit, QuestionRecord.created_at.desc(), QuestionRecord.id
            )
            items = [_question_from_record(r) for r in records]
        return QuestionPage(items=items, total=total, page=page, limit=limit)

    @translate_errors
    def save_question(self, data: QuestionCreate) -> Question:
        with session_scope(self._session_factory) as session:
            record = QuestionRecord(**data.model_dump(mode="json"))
            session.add(record)
            session.flush()
            question = _question_from_record(record)
        logger.info(
            "Question created",
            extra={"question_id": question.id, "subject": question.subject},
        )
        return question

    @translate_errors
    def update_question(self, question_id: str, data: QuestionCreate) -> Question:
        with session_scope(self._session_factory) as session:
            record = session.get(QuestionRecord, question_id)
            if record is None:
                raise NotFoundException("Question", {"question_id": question_id})
            for field, value in data.model_dump(mode="json").items():
                setattr(record, field, value)
            session.flush()
            question = _question_from_record(record)
        logger.info("Question updated", extra={"question_id": question_id})
        return question

    def _set_question_flag(self, question_id: str, **values) -> None:
        with session_scope(self._session_factory) as session:
            record = session.get(QuestionRecord, question_id)
            if record is None:
                raise NotFoundException("Question", {"question_id": question_id})
            for field, value in values.items():
                setattr(record, field, value)

    @translate_errors
    def soft_delete_question(self, question_id: str) -> None:
        self._set_question_flag(question_id, is_deleted=True)
        logger.warning("Question soft deleted", extra={"question_id": question_id})

    @translate_errors
    def restore_question(self, question_id: str) -> None:
        self._set_question_flag(question_id, is_deleted=False)
        logger.info("Question restored", extra={"question_id": question_id})

    @translate_errors
    def toggle_question_visibility(self, question_id: str) -> bool:
        with session_scope(self._session_factory) as session:
            record = session.get(QuestionRecord, question_id)
            if record is None:
                raise NotFoundException("Question", {"question_id": question_id})
            record.is_disabled = not record.is_disabled
            disabled = record.is_disabled
        logger.info(
            "Question visibility toggled",
            extra={"question_id": question_id, "is_disabled": disabled},
        )
        return disabled

    @translate_errors
    def hard_delete_question(self, question_id: str) -> None:
        with session_scope(self._session_factory) as session:
            record = session.get(QuestionRecord, question_id)
            if record is None:
                raise NotFoundException("Question", {"question_id": question_id})
            references = session.scalar(
                select(func.count(QuizResultRecord.id)).where(
                    cast(QuizResultRecord.question_ids, Text).like(f'%"{question_id}"%')
                )
            )
            if references:
                raise QuestionInUseError(question_id, references)
            session.delete(record)
        logger.warning("Question permanently deleted", extra={"question_id": question_id})

    # ---- quiz configs -------------------------------------------------------

    @translate_errors
    def get_config_by_id(self, config_id: str) -> Optional[QuizConfig]:
        with session_scope(self._session_factory) as session:
            record = session.get(QuizConfigRecord, config_id)
            return _config_from_record(record) if record else None

    @translate_errors
    def list_configs(self, published_only: bool = False) -> List[QuizConfig]:
        with session_scope(self._session_factory) as session:
            stmt = select(QuizConfigRecord).where(QuizConfigRecord.is_deleted.is_(False))
            if published_only:
                stmt = stmt.where(QuizConfigRecord.is_published.is_(True))
            stmt = stmt.order_by(QuizConfigRecord.created_at.desc())
            return [_config_from_record(r) for r in session.scalars(stmt)]

    @translate_errors
    def save_config(self, data: QuizConfigCreate) -> QuizConfig:
        payload = data.model_dump(mode="json", exclude={"id", "max_score"})
        with session_scope(self._session_factory) as session:
            record = session.get(QuizConfigRecord, data.id) if data.id else None
            if record is None:
                record = QuizConfigRecord(**payload)
                if data.id:
                    record.id = data.id
                session.add(record)
            else:
                for field, value in payload.items():
                    setattr(record, field, value)
            session.flush()
            config = _config_from_record(record)
        logger.info(
            "Quiz config saved",
            extra={"config_id": config.id, "total_questions": config.total_questions},
        )
        return config

    @translate_errors
    def soft_delete_config(self, config_id: str) -> None:
        with session_scope(self._session_factory) as session:
            record = session.get(QuizConfigRecord, config_id)
            if record is None:
                raise NotFoundException("Quiz config", {"config_id": config_id})
            record.is_deleted = True
        logger.warning("Quiz config soft deleted", extra={"config_id": config_id})

    @translate_errors
    def toggle_config_published(self, config_id: str) -> bool:
        with session_scope(self._session_factory) as session:
            record = session.get(QuizConfigRecord, config_id)
            if record is None:
                raise NotFoundException("Quiz config", {"config_id": config_id})
            record.is_published = not record.is_published
            return bool(record.is_published)

    # ---- results ------------------------------------------------------------

    @translate_errors
    def save_result(self, result: QuizResult) -> str:
        with session_scope(self._session_factory) as session:
            record = QuizResultRecord(
                user_id=result.user_id,
                username=result.username,
                config_id=result.config_id,
                config_name=result.config_name,
                config_snapshot=result.config.model_dump(mode="json") if result.config else None,
                attempts=[a.model_dump(mode="json") for a in result.attempts],
                question_ids=[a.question_id for a in result.attempts],
                score=result.score,
                max_score=result.max_score,
                passing_score=result.passing_score,
                is_passed=result.is_passed,
                total_questions=result.total_questions,
                status=result.status.value,
                duration=result.duration,
                timestamp=result.timestamp,
            )
            if result.id:
                record.id = result.id
            session.add(record)
            session.flush()
            result_id = record.id
        logger.info(
            "Quiz result saved",
            extra={"result_id": result_id, "status": result.status.value, "score": result.score},
        )
        return result_id

    @translate_errors
    def get_result_by_id(self, result_id: str) -> Optional[QuizResult]:
        with session_scope(self._session_factory) as session:
            record = session.get(QuizResultRecord, result_id)
            return _result_from_record(record) if record else None

    @translate_errors
    def update_result_scoring(
        self,
        result_id: str,
        attempts: List[QuizAttempt],
        score: float,
        is_passed: bool,
        status: Optional[ResultStatus] = None,
    ) -> None:
        with session_scope(self._session_factory) as session:
            record = session.get(QuizResultRecord, result_id)
            if record is None:
                raise NotFoundException("Quiz result", {"result_id": result_id})
            record.attempts = [a.model_dump(mode="json") for a in attempts]
            record.score = score
            record.is_passed = is_passed
            if status is not None:
                record.status = status.value

    @translate_errors
    def list_results(
        self,
        user_id: Optional[str] = None,
        status: Optional[ResultStatus] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> ResultPage:
        """
        Result history, newest first. ``status=pending_grading`` is the
        manual-grading queue; ``search`` matches usernames.
        """
        with session_scope(self._session_factory) as session:
            stmt = select(QuizResultRecord).where(QuizResultRecord.is_deleted.is_(False))
            if user_id:
                stmt = stmt.where(QuizResultRecord.user_id == user_id)
            if status is not None:
                stmt = stmt.where(QuizResultRecord.status == status.value)
            if search:
                stmt = stmt.where(QuizResultRecord.username.ilike(f"%{search}%"))
            records, total = _paged(
                session, stmt, page, limit, QuizResultRecord.timestamp.desc(), QuizResultRecord.id
            )
            items = [_result_from_record(r) for r in records]
        return ResultPage(items=items, total=total, page=page, limit=limit)

    @translate_errors
    def soft_delete_result(self, result_id: str) -> None:
        with session_scope(self._session_factory) as session:
            record = session.get(QuizResultRecord, result_id)
            if record is None or record.is_deleted:
                raise NotFoundException("Quiz result", {"result_id": result_id})
            record.is_deleted = True
        logger.warning("Quiz result soft deleted", extra={"result_id": result_id})
