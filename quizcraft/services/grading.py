"""
Answer grading and result aggregation
"""

import logging
import re
import time
from typing import Callable, Dict, List, Mapping, Optional

from pydantic import BaseModel

from quizcraft.core.exceptions import GradingTransportError, InvalidSubmissionError, RepositoryError
from quizcraft.core.logging import log_execution_time
from quizcraft.schemas.answers import (
    Answer,
    MultiAnswer,
    SingleAnswer,
    decode_answer,
    decode_canonical,
    encode_answer,
)
from quizcraft.schemas.question import DrawnQuestion, Question, QuestionType
from quizcraft.schemas.quiz import AssembledQuiz, QuizMode
from quizcraft.schemas.result import PartScore, QuizAttempt, QuizResult, ResultReview, ResultStatus
from quizcraft.services.repository import QuizRepository

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]+>")


def strip_html(text: str) -> str:
    return _TAG_RE.sub("", text or "")


def _normalize(text: str) -> str:
    return text.strip().lower()


class GradeOutcome(BaseModel):
    is_correct: bool
    score: float
    max_score: float
    manual_grading: bool = False


def _exact(canonical: Answer, answer: Answer) -> bool:
    # Markup-sensitive: option strings are compared as stored
    return (
        isinstance(canonical, SingleAnswer)
        and isinstance(answer, SingleAnswer)
        and answer.value == canonical.value
    )


def _same_selection(canonical: Answer, answer: Answer) -> bool:
    if not (isinstance(canonical, MultiAnswer) and isinstance(answer, MultiAnswer)):
        return False
    return sorted(answer.values) == sorted(canonical.values)


def _all_blanks(canonical: Answer, answer: Answer) -> bool:
    if not (isinstance(canonical, MultiAnswer) and isinstance(answer, MultiAnswer)):
        return False
    if len(answer.values) != len(canonical.values):
        return False
    return all(
        _normalize(given) == _normalize(strip_html(expected))
        for expected, given in zip(canonical.values, answer.values)
    )


def _free_text(canonical: Answer, answer: Answer) -> bool:
    if not (isinstance(canonical, SingleAnswer) and isinstance(answer, SingleAnswer)):
        return False
    return _normalize(answer.value) == _normalize(strip_html(canonical.value))


_GRADERS: Dict[QuestionType, Callable[[Answer, Answer], bool]] = {
    QuestionType.MULTIPLE_CHOICE: _exact,
    QuestionType.TRUE_FALSE: _exact,
    QuestionType.MULTIPLE_SELECT: _same_selection,
    QuestionType.FILL_IN_THE_BLANK: _all_blanks,
    QuestionType.SHORT_ANSWER: _free_text,
}

_unhandled = set(QuestionType) - set(_GRADERS)
if _unhandled:
    raise TypeError(f"No grader registered for {sorted(t.value for t in _unhandled)}")


def needs_manual_grading(question) -> bool:
    return question.type == QuestionType.SHORT_ANSWER and bool(question.needs_grading)


def grade(question: Question, answer: Optional[Answer]) -> GradeOutcome:
    """
    Grade one answer against a question record.

    Short answers flagged for manual grading are never auto-graded: they score
    0 provisionally and report ``manual_grading``.
    """
    max_score = question.score or 1
    if needs_manual_grading(question):
        return GradeOutcome(is_correct=False, score=0, max_score=max_score, manual_grading=True)

    canonical = decode_canonical(question)
    if canonical is None or answer is None:
        is_correct = False
    else:
        is_correct = _GRADERS[question.type](canonical, answer)

    return GradeOutcome(
        is_correct=is_correct,
        score=max_score if is_correct else 0,
        max_score=max_score,
    )


def _part_layout(quiz: AssembledQuiz) -> List[tuple]:
    """(max score, part name, part filters) per drawn question, from the config when known"""
    questions = quiz.questions
    ids = [q.id for q in questions]
    duplicates = sorted({qid for qid in ids if ids.count(qid) > 1})
    if duplicates:
        raise InvalidSubmissionError(
            "A question appears more than once in the submission",
            details={"question_ids": duplicates},
        )

    if quiz.config is None:
        return [(q.score or 1, q.quiz_part_name, None) for q in questions]

    if len(questions) != quiz.config.total_questions:
        raise InvalidSubmissionError(
            "Number of questions does not match the quiz configuration",
            details={
                "expected": quiz.config.total_questions,
                "received": len(questions),
            },
        )

    layout = []
    for part in quiz.config.parts:
        layout.extend([(part.score, part.name, part.filters)] * part.count)
    return layout


def _check_parts(quiz: AssembledQuiz, records: Mapping[str, Question], layout: List[tuple]) -> None:
    """Every known question must satisfy the filter of the part it is scored under"""
    misplaced = [
        drawn.id
        for drawn, (_, _, filters) in zip(quiz.questions, layout)
        if filters is not None and drawn.id in records and not filters.matches(records[drawn.id])
    ]
    if misplaced:
        raise InvalidSubmissionError(
            "Submitted questions do not belong to their quiz parts",
            details={"question_ids": misplaced},
        )


def _snapshot_attempt(
    drawn: DrawnQuestion,
    record: Optional[Question],
    answer: Optional[Answer],
    max_score: float,
    part_name: Optional[str],
) -> QuizAttempt:
    attempt = QuizAttempt(
        question_id=drawn.id,
        user_answer=encode_answer(answer),
        max_score=max_score,
        manual_grading=needs_manual_grading(drawn),
        question_text=drawn.text,
        question_image_urls=list(drawn.image_urls),
        quiz_part_name=part_name,
    )
    if record is None:
        # Removed from the bank since the draw; nothing to compare against
        attempt.correct_answer_text = ""
        attempt.explanation = ""
        return attempt

    if answer is None:
        # Unanswered grades like an empty submission
        answer = decode_answer(drawn.type, "")
    outcome = grade(record.model_copy(update={"score": max_score}), answer)
    attempt.is_correct = outcome.is_correct
    attempt.score = outcome.score
    attempt.manual_grading = outcome.manual_grading or attempt.manual_grading
    attempt.correct_answer_text = record.correct_answer
    attempt.explanation = record.explanation
    return attempt


class GradingService:
    """Grades a finished quiz and persists the result"""

    def __init__(self, repository: QuizRepository):
        self.repository = repository

    @log_execution_time(logger)
    def finish_quiz(
        self,
        quiz: AssembledQuiz,
        answers: Mapping[str, Optional[Answer]],
        *,
        user_id: str,
        username: str,
        config_id: Optional[str] = None,
        start_time: Optional[int] = None,
        now: Optional[int] = None,
    ) -> QuizResult:
        """
        Grade every drawn question and aggregate a result.

        Times are epoch milliseconds. Any manually graded attempt puts the
        result in ``pending_grading``, which is never passed.
        """
        now = now if now is not None else int(time.time() * 1000)
        start_time = start_time if start_time is not None else now
        layout = _part_layout(quiz)

        ids = [q.id for q in quiz.questions]
        try:
            records = {q.id: q for q in self.repository.get_questions_by_ids(ids)}
        except RepositoryError as e:
            logger.error("Grading failed: questions unavailable", extra={"config_id": config_id})
            raise GradingTransportError(details={"config_id": config_id}) from e

        if ids and not records:
            raise GradingTransportError(
                "Failed to retrieve questions for grading",
                details={"config_id": config_id},
            )
        _check_parts(quiz, records, layout)

        attempts = [
            _snapshot_attempt(drawn, records.get(drawn.id), answers.get(drawn.id), max_score, part_name)
            for drawn, (max_score, part_name, _) in zip(quiz.questions, layout)
        ]

        score = sum(a.score for a in attempts)
        max_score = sum(a.max_score for a in attempts)
        pending = any(a.manual_grading for a in attempts)
        status = ResultStatus.PENDING_GRADING if pending else ResultStatus.COMPLETED

        result = QuizResult(
            user_id=user_id,
            username=username,
            config_id=config_id or (quiz.config.id if quiz.config else None),
            config_name=quiz.config_name,
            config=quiz.config,
            attempts=attempts,
            score=score,
            max_score=max_score,
            passing_score=quiz.passing_score,
            is_passed=status == ResultStatus.COMPLETED and score >= quiz.passing_score,
            total_questions=len(attempts),
            status=status,
            duration=max(0, (now - start_time) // 1000),
            timestamp=now,
        )
        logger.info(
            "Quiz graded",
            extra={
                "config_id": result.config_id,
                "user_id": user_id,
                "score": score,
                "max_score": max_score,
                "status": status.value,
            },
        )
        return result

    def submit(self, quiz: AssembledQuiz, answers: Mapping[str, Optional[Answer]], **kwargs) -> QuizResult:
        """Grade and persist; the stored result comes back with its id"""
        result = self.finish_quiz(quiz, answers, **kwargs)
        try:
            result.id = self.repository.save_result(result)
        except RepositoryError as e:
            raise GradingTransportError(
                "Graded result could not be saved",
                details={"config_id": result.config_id},
            ) from e
        return result


def part_scores(result: QuizResult) -> List[PartScore]:
    """Per-part subtotals, re-derived by slicing attempts by the snapshot's part counts"""
    if result.config is None or not result.attempts:
        return []

    scores = []
    offset = 0
    for part in result.config.parts:
        chunk = result.attempts[offset : offset + part.count]
        offset += part.count
        scores.append(
            PartScore(
                name=part.name,
                score=round(sum(a.score for a in chunk), 1),
                max_score=sum(a.max_score for a in chunk),
            )
        )
    return scores


def review(result: QuizResult, is_admin: bool = False) -> ResultReview:
    """
    Result as a review screen shows it.

    Exam-mode quizzes withhold correct answers and explanations from takers.
    """
    revealed = is_admin or result.config is None or result.config.quiz_mode != QuizMode.EXAM
    shown = result
    if not revealed:
        shown = result.model_copy(
            update={
                "attempts": [
                    a.model_copy(update={"correct_answer_text": None, "explanation": None})
                    for a in result.attempts
                ]
            }
        )
    return ResultReview(result=shown, part_scores=part_scores(result), answers_revealed=revealed)
