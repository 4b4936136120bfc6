import copy
import os
import tempfile

import pytest

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault(
    "DATABASE_URL", f"sqlite:///{os.path.join(tempfile.gettempdir(), 'quizcraft-test.db')}"
)

from quizcraft.core.database import create_db_engine, create_session_factory, init_db
from quizcraft.core.exceptions import NotFoundException, RepositoryError
from quizcraft.db.session_store import MemorySessionStore
from quizcraft.schemas.question import Difficulty, GradeLevel, Question, QuestionType
from quizcraft.schemas.quiz import FilterSet, QuizConfig, QuizMode, QuizPartSpec
from quizcraft.services.repository import QuizRepository, SqlQuizRepository


class FakeRepository(QuizRepository):
    """In-memory repository; add an operation name (or "*") to fail_on to break it"""

    def __init__(self):
        self.questions = {}
        self.configs = {}
        self.results = {}
        self.fail_on = set()
        self.calls = []

    def _call(self, operation):
        self.calls.append(operation)
        if operation in self.fail_on or "*" in self.fail_on:
            raise RepositoryError(details={"operation": operation})

    def add_question(self, question):
        self.questions[question.id] = question
        return question

    def add_config(self, config):
        self.configs[config.id] = config
        return config

    @staticmethod
    def _matches(question, filters):
        return not (question.is_disabled or question.is_deleted) and filters.matches(question)

    def count_matching(self, filters):
        self._call("count_matching")
        return len(self.fetch_matching_ids(filters))

    def fetch_matching_ids(self, filters):
        self._call("fetch_matching_ids")
        return sorted(q.id for q in self.questions.values() if self._matches(q, filters))

    def get_question_by_id(self, question_id):
        self._call("get_question_by_id")
        return self.questions.get(question_id)

    def get_questions_by_ids(self, question_ids):
        self._call("get_questions_by_ids")
        # Reverse order: callers must not rely on it
        return [self.questions[qid] for qid in reversed(list(question_ids)) if qid in self.questions]

    def get_config_by_id(self, config_id):
        self._call("get_config_by_id")
        return self.configs.get(config_id)

    def save_result(self, result):
        self._call("save_result")
        result_id = result.id or f"result-{len(self.results) + 1}"
        self.results[result_id] = result.model_copy(update={"id": result_id}, deep=True)
        return result_id

    def get_result_by_id(self, result_id):
        self._call("get_result_by_id")
        stored = self.results.get(result_id)
        return copy.deepcopy(stored) if stored else None

    def update_result_scoring(self, result_id, attempts, score, is_passed, status=None):
        self._call("update_result_scoring")
        if result_id not in self.results:
            raise NotFoundException("Quiz result", {"result_id": result_id})
        update = {"attempts": list(attempts), "score": score, "is_passed": is_passed}
        if status is not None:
            update["status"] = status
        self.results[result_id] = self.results[result_id].model_copy(update=update, deep=True)


def _question(qid, type=QuestionType.MULTIPLE_CHOICE, correct_answer="A", **overrides):
    data = dict(
        id=qid,
        type=type,
        text=f"Question {qid}",
        options=["A", "B", "C", "D"],
        correct_answer=correct_answer,
        subject="math",
        grade_level=GradeLevel.JUNIOR,
        difficulty=Difficulty.EASY,
        explanation=f"Because {qid}",
    )
    data.update(overrides)
    return Question(**data)


def _part(name, count, score=1, **filters):
    return QuizPartSpec(id=name, name=name, count=count, score=score, filters=FilterSet(**filters))


def _config(*parts, config_id="cfg-1", passing_score=0, quiz_mode=QuizMode.PRACTICE, name="Unit test"):
    return QuizConfig(
        id=config_id,
        name=name,
        parts=list(parts),
        passing_score=passing_score,
        quiz_mode=quiz_mode,
    )


@pytest.fixture
def make_question():
    return _question


@pytest.fixture
def make_part():
    return _part


@pytest.fixture
def make_config():
    return _config


@pytest.fixture
def repo():
    return FakeRepository()


@pytest.fixture
def store():
    return MemorySessionStore()


@pytest.fixture
def sql_repo(tmp_path):
    # A file database: availability counts run on worker threads
    engine = create_db_engine(f"sqlite:///{tmp_path / 'quizcraft.db'}")
    init_db(engine)
    yield SqlQuizRepository(create_session_factory(engine))
    engine.dispose()


@pytest.fixture
def client(sql_repo):
    from fastapi.testclient import TestClient

    from quizcraft.api.deps import get_repository, get_session_store
    from quizcraft.main import app

    sessions = MemorySessionStore()
    app.dependency_overrides[get_repository] = lambda: sql_repo
    app.dependency_overrides[get_session_store] = lambda: sessions
    yield TestClient(app)
    app.dependency_overrides.clear()
