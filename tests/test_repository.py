import random

import pytest

from quizcraft.core.exceptions import NotFoundException, QuestionInUseError
from quizcraft.schemas.question import Difficulty, QuestionCreate, QuestionType
from quizcraft.schemas.quiz import FilterSet, QuizConfigCreate, QuizMode, QuizPartSpec
from quizcraft.schemas.result import QuizAttempt, QuizResult, ResultStatus


def _create(repo, subject="math", difficulty=Difficulty.EASY, **overrides):
    data = dict(
        type=QuestionType.MULTIPLE_CHOICE,
        text="Which is prime?",
        options=["4", "6", "7"],
        correct_answer="7",
        subject=subject,
        grade_level="JUNIOR",
        difficulty=difficulty,
    )
    data.update(overrides)
    return repo.save_question(QuestionCreate(**data))


def _result(question_ids, config=None):
    return QuizResult(
        user_id="u1",
        username="Ada",
        config=config,
        attempts=[QuizAttempt(question_id=qid, user_answer="7", score=1) for qid in question_ids],
        score=len(question_ids),
        max_score=len(question_ids),
        total_questions=len(question_ids),
        timestamp=1_700_000_000_000,
    )


def test_save_and_fetch_question(sql_repo):
    created = _create(sql_repo, image_urls=["http://img/1.png"], explanation="7 has two divisors")

    fetched = sql_repo.get_question_by_id(created.id)

    assert fetched == created
    assert fetched.image_urls == ["http://img/1.png"]
    assert fetched.created_at > 0
    assert sql_repo.get_question_by_id("missing") is None


def test_filters_or_within_and_across_dimensions(sql_repo):
    _create(sql_repo, "math", Difficulty.EASY)
    _create(sql_repo, "math", Difficulty.HARD)
    _create(sql_repo, "science", Difficulty.EASY)
    _create(sql_repo, "history", Difficulty.MEDIUM)

    assert sql_repo.count_matching(FilterSet()) == 4
    assert sql_repo.count_matching(FilterSet(subjects=["math", "science"])) == 3
    assert sql_repo.count_matching(FilterSet(subjects=["math"], difficulties=[Difficulty.EASY])) == 1
    assert sql_repo.count_matching(FilterSet(question_types=[QuestionType.TRUE_FALSE])) == 0


def test_hidden_and_deleted_questions_do_not_match(sql_repo):
    hidden = _create(sql_repo)
    deleted = _create(sql_repo)
    _create(sql_repo)

    assert sql_repo.toggle_question_visibility(hidden.id) is True
    sql_repo.soft_delete_question(deleted.id)

    assert sql_repo.count_matching(FilterSet()) == 1
    # Grading still needs deleted records
    assert len(sql_repo.get_questions_by_ids([hidden.id, deleted.id])) == 2

    sql_repo.restore_question(deleted.id)
    assert sql_repo.toggle_question_visibility(hidden.id) is False
    assert sql_repo.count_matching(FilterSet()) == 3


def test_fetch_matching_ids_is_stable(sql_repo):
    ids = {_create(sql_repo).id for _ in range(4)}

    assert sql_repo.fetch_matching_ids(FilterSet()) == sorted(ids)


def test_fetch_random_sample(sql_repo):
    ids = [_create(sql_repo).id for _ in range(6)]

    sample = sql_repo.fetch_random_sample(FilterSet(), 3, rng=random.Random(1), exclude=ids[:2])

    assert len(sample) == 3
    assert len({q.id for q in sample}) == 3
    assert not {q.id for q in sample} & set(ids[:2])
    assert len(sql_repo.fetch_random_sample(FilterSet(), 10)) == 6


def test_update_question(sql_repo):
    created = _create(sql_repo)
    data = QuestionCreate(**{**created.model_dump(exclude={"id", "is_deleted", "created_at"}), "text": "Edited"})

    updated = sql_repo.update_question(created.id, data)

    assert updated.text == "Edited"
    with pytest.raises(NotFoundException):
        sql_repo.update_question("missing", data)


def test_hard_delete_blocked_by_stored_results(sql_repo):
    used = _create(sql_repo)
    unused = _create(sql_repo)
    sql_repo.save_result(_result([used.id]))

    with pytest.raises(QuestionInUseError) as exc_info:
        sql_repo.hard_delete_question(used.id)
    assert exc_info.value.details["result_count"] == 1

    sql_repo.hard_delete_question(unused.id)
    assert sql_repo.get_question_by_id(unused.id) is None
    assert sql_repo.get_question_by_id(used.id) is not None


def test_unknown_question_operations(sql_repo):
    with pytest.raises(NotFoundException):
        sql_repo.toggle_question_visibility("missing")
    with pytest.raises(NotFoundException):
        sql_repo.hard_delete_question("missing")


def test_config_lifecycle(sql_repo):
    draft = sql_repo.save_config(
        QuizConfigCreate(
            name="Weekly",
            parts=[QuizPartSpec(name="Math", count=2, score=2.5, filters=FilterSet(subjects=["math"]))],
            passing_score=3,
            quiz_mode=QuizMode.EXAM,
        )
    )

    assert draft.total_questions == 2
    assert draft.max_score == 5
    assert sql_repo.get_config_by_id(draft.id) == draft
    assert sql_repo.list_configs(published_only=True) == []

    assert sql_repo.toggle_config_published(draft.id) is True
    assert [c.id for c in sql_repo.list_configs(published_only=True)] == [draft.id]

    edited = sql_repo.save_config(
        QuizConfigCreate(id=draft.id, name="Weekly v2", parts=draft.parts, passing_score=4)
    )
    assert edited.id == draft.id
    assert edited.name == "Weekly v2"

    sql_repo.soft_delete_config(draft.id)
    assert sql_repo.list_configs() == []
    assert sql_repo.get_config_by_id(draft.id).is_deleted


def test_result_round_trip(sql_repo):
    config = sql_repo.save_config(
        QuizConfigCreate(name="Weekly", parts=[QuizPartSpec(name="Math", count=1, score=1)])
    )
    result_id = sql_repo.save_result(_result(["q1"], config=config))

    stored = sql_repo.get_result_by_id(result_id)

    assert stored.id == result_id
    assert stored.config == config
    assert stored.attempts[0].user_answer == "7"
    assert stored.timestamp == 1_700_000_000_000
    assert sql_repo.get_result_by_id("missing") is None


def test_update_result_scoring(sql_repo):
    result_id = sql_repo.save_result(_result(["q1", "q2"]))
    stored = sql_repo.get_result_by_id(result_id)
    attempts = [a.model_copy(update={"score": 0.5}) for a in stored.attempts]

    sql_repo.update_result_scoring(result_id, attempts, 1.0, False, status=ResultStatus.PENDING_GRADING)

    updated = sql_repo.get_result_by_id(result_id)
    assert updated.score == 1.0
    assert [a.score for a in updated.attempts] == [0.5, 0.5]
    assert updated.status == ResultStatus.PENDING_GRADING
    with pytest.raises(NotFoundException):
        sql_repo.update_result_scoring("missing", attempts, 0, False)


def test_list_questions_pages_and_filters(sql_repo):
    for _ in range(3):
        _create(sql_repo, "math")
    hidden = _create(sql_repo, "math", text="Which is even?")
    trashed = _create(sql_repo, "science")
    sql_repo.toggle_question_visibility(hidden.id)
    sql_repo.soft_delete_question(trashed.id)

    first = sql_repo.list_questions(FilterSet(subjects=["math"]), page=1, limit=3)
    second = sql_repo.list_questions(FilterSet(subjects=["math"]), page=2, limit=3)

    assert first.total == second.total == 4
    assert len(first.items) == 3
    assert len(second.items) == 1
    assert not {q.id for q in first.items} & {q.id for q in second.items}
    assert [q.id for q in sql_repo.list_questions(search="even").items] == [hidden.id]
    assert [q.id for q in sql_repo.list_questions(deleted=True).items] == [trashed.id]


def test_list_results_by_user_and_status(sql_repo):
    def save(user_id, timestamp, status=ResultStatus.COMPLETED, username="Ada"):
        result = _result(["q1"]).model_copy(
            update={"user_id": user_id, "username": username, "timestamp": timestamp, "status": status}
        )
        return sql_repo.save_result(result)

    old = save("u1", 1_000)
    new = save("u1", 3_000)
    pending = save("u2", 2_000, ResultStatus.PENDING_GRADING, username="Grace")

    history = sql_repo.list_results(user_id="u1")
    queue = sql_repo.list_results(status=ResultStatus.PENDING_GRADING)

    assert [r.id for r in history.items] == [new, old]
    assert history.total == 2
    assert [r.id for r in queue.items] == [pending]
    assert [r.id for r in sql_repo.list_results(search="grac").items] == [pending]
    assert [r.id for r in sql_repo.list_results(page=2, limit=2).items] == [old]


def test_soft_deleted_result_leaves_history(sql_repo):
    result_id = sql_repo.save_result(_result(["q1"]))

    sql_repo.soft_delete_result(result_id)

    assert sql_repo.list_results().total == 0
    assert sql_repo.get_result_by_id(result_id).is_deleted
    with pytest.raises(NotFoundException):
        sql_repo.soft_delete_result(result_id)
    with pytest.raises(NotFoundException):
        sql_repo.soft_delete_result("missing")
