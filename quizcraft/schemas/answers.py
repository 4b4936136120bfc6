"""
Answer values and their storage encodings

Inside the engine an answer is either a ``SingleAnswer`` (choice, true/false,
short answer) or a ``MultiAnswer`` (multi-select options, fill-in-the-blank
entries by position). The wire format used by stored results and autosaved
sessions is a plain string:

    single choice / true-false / short answer  ->  raw string
    multi-select                               ->  JSON array, sorted
    fill-in-the-blank                          ->  JSON array by blank position

Only this module converts between the two.
"""

import json
from typing import Dict, Iterable, List, Literal, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict

from quizcraft.schemas.question import DrawnQuestion, Question, QuestionType

LEGACY_BLANK_SEPARATOR = ";&&;"


class SingleAnswer(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["single"] = "single"
    value: str = ""


class MultiAnswer(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["multi"] = "multi"
    values: Tuple[str, ...] = ()

    def sorted(self) -> "MultiAnswer":
        return MultiAnswer(values=tuple(sorted(self.values)))


Answer = Union[SingleAnswer, MultiAnswer]


def _json_dumps(values) -> str:
    # Matches JSON.stringify output so stored strings stay byte-compatible
    return json.dumps(list(values), ensure_ascii=False, separators=(",", ":"))


def _parse_string_list(raw: str) -> Optional[List[str]]:
    try:
        parsed = json.loads(raw or "[]")
    except ValueError:
        return None
    if not isinstance(parsed, list) or not all(isinstance(v, str) for v in parsed):
        return None
    return parsed


def _parse_blank_entries(raw: str) -> List[str]:
    """User blanks: a JSON array, otherwise the whole string is the only blank"""
    try:
        parsed = json.loads(raw or "[]")
    except ValueError:
        return [raw] if raw else []
    if isinstance(parsed, list):
        return ["" if v is None else str(v) for v in parsed]
    return [raw] if raw else []


def decode_answer(question_type: QuestionType, raw: Optional[str]) -> Optional[Answer]:
    """
    Decode a user's stored answer for a question of ``question_type``.

    Returns None for a multi-select answer that is not a JSON array of strings.
    """
    raw = raw or ""
    if question_type == QuestionType.MULTIPLE_SELECT:
        values = _parse_string_list(raw)
        if values is None:
            return None
        return MultiAnswer(values=tuple(sorted(values)))
    if question_type == QuestionType.FILL_IN_THE_BLANK:
        return MultiAnswer(values=tuple(_parse_blank_entries(raw)))
    return SingleAnswer(value=raw)


def encode_answer(answer: Optional[Answer]) -> str:
    if answer is None:
        return ""
    if isinstance(answer, MultiAnswer):
        return _json_dumps(answer.values)
    return answer.value


def decode_canonical(question: Question) -> Optional[Answer]:
    """Decode the correct answer stored on a question record"""
    raw = question.correct_answer or ""
    if question.type == QuestionType.MULTIPLE_SELECT:
        values = _parse_string_list(raw)
        return None if values is None else MultiAnswer(values=tuple(values))
    if question.type == QuestionType.FILL_IN_THE_BLANK:
        return MultiAnswer(values=tuple(canonical_blanks(raw)))
    return SingleAnswer(value=raw)


def canonical_blanks(raw: str) -> List[str]:
    """
    Per-blank correct answers.

    Stored as a JSON array; older records hold a ``;&&;``-joined string or a
    bare string for a single blank.
    """
    try:
        parsed = json.loads(raw or "[]")
    except ValueError:
        if LEGACY_BLANK_SEPARATOR in raw:
            return raw.split(LEGACY_BLANK_SEPARATOR)
        return [raw]
    if isinstance(parsed, list):
        return ["" if v is None else str(v) for v in parsed]
    return [raw]


def blank_count(question: Question) -> Optional[int]:
    if question.type != QuestionType.FILL_IN_THE_BLANK:
        return None
    return max(len(canonical_blanks(question.correct_answer)), 1)


def decode_answers(
    questions: Iterable[DrawnQuestion], raw_answers: Mapping[str, str]
) -> Dict[str, Optional[Answer]]:
    """Decode a ``{question_id: wire string}`` map against the questions it answers"""
    return {q.id: decode_answer(q.type, raw_answers[q.id]) for q in questions if q.id in raw_answers}


def encode_answers(answers: Mapping[str, Optional[Answer]]) -> Dict[str, str]:
    return {qid: encode_answer(answer) for qid, answer in answers.items()}
