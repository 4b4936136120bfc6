import pytest

API = "/api/v1"


def _question(client, **overrides):
    payload = {
        "type": "MULTIPLE_CHOICE",
        "text": "Capital of France?",
        "options": ["Paris", "Rome"],
        "correct_answer": "Paris",
        "subject": "geography",
        "grade_level": "JUNIOR",
        "difficulty": "EASY",
        "explanation": "Paris has been the capital since 987",
    }
    payload.update(overrides)
    response = client.post(f"{API}/questions/", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def _config(client, parts, **overrides):
    payload = {"name": "Geography", "parts": parts, "passing_score": 1}
    payload.update(overrides)
    return client.post(f"{API}/quiz-configs/", json=payload)


@pytest.fixture
def geography_quiz(client):
    _question(client)
    _question(client, text="Capital of Italy?", correct_answer="Rome")
    response = _config(
        client,
        [{"name": "Capitals", "count": 2, "score": 2, "filters": {"subjects": ["geography"]}}],
        passing_score=3,
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client):
    response = client.get(f"{API}/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_responses_carry_a_request_id(client):
    response = client.get(f"{API}/health", headers={"X-Request-ID": "abc123"})

    assert response.headers["X-Request-ID"] == "abc123"


def test_question_lifecycle(client):
    question = _question(client)
    path = f"{API}/questions/{question['id']}"

    assert client.get(path).json()["text"] == "Capital of France?"
    assert client.post(f"{path}/toggle").json()["is_disabled"] is True
    assert client.delete(path).status_code == 200
    assert client.get(path).json()["is_deleted"] is True
    assert client.post(f"{path}/restore").status_code == 200
    assert client.delete(f"{path}/permanent").status_code == 200
    assert client.get(path).status_code == 404


def test_not_found_error_shape(client):
    response = client.get(f"{API}/questions/missing")

    assert response.status_code == 404
    error = response.json()["error"]
    assert error["code"] == "NOT_FOUND"
    assert error["details"] == {"question_id": "missing"}


def test_invalid_question_payload(client):
    response = client.post(f"{API}/questions/", json={"type": "ESSAY", "text": "?"})

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_availability(client):
    _question(client)
    _question(client, subject="history")

    response = client.post(
        f"{API}/quiz-configs/availability",
        json=[
            {"name": "Geo", "count": 3, "score": 1, "filters": {"subjects": ["geography"]}},
            {"name": "All", "count": 1, "score": 1},
        ],
    )

    body = response.json()
    assert response.status_code == 200
    assert [p["available"] for p in body["parts"]] == [1, 2]
    assert body["total_available"] == 3


def test_config_that_cannot_be_filled_is_rejected(client):
    _question(client)

    response = _config(client, [{"name": "Too many", "count": 5, "score": 1}], passing_score=10)

    assert response.status_code == 422
    error = response.json()["error"]
    assert error["code"] == "CONFIG_VALIDATION_ERROR"
    assert [v.get("shortfall") for v in error["details"]["violations"]] == [None, 4]


def test_config_endpoints(client, geography_quiz):
    config_id = geography_quiz["id"]

    assert geography_quiz["total_questions"] == 2
    assert geography_quiz["max_score"] == 4
    assert client.get(f"{API}/quiz-configs/{config_id}").json()["name"] == "Geography"
    assert client.post(f"{API}/quiz-configs/{config_id}/publish").json()["is_published"] is True
    assert [c["id"] for c in client.get(f"{API}/quiz-configs/?published_only=true").json()] == [config_id]

    assert client.delete(f"{API}/quiz-configs/{config_id}").status_code == 200
    assert client.get(f"{API}/quiz-configs/{config_id}").status_code == 404
    assert client.post(f"{API}/quizzes/{config_id}/generate").status_code == 404


def test_generate_hides_answers(client, geography_quiz):
    response = client.post(f"{API}/quizzes/{geography_quiz['id']}/generate")

    assert response.status_code == 200
    questions = response.json()["questions"]
    assert len(questions) == 2
    assert all("correct_answer" not in q for q in questions)
    assert all(q["score"] == 2 for q in questions)


def test_generate_inventory_shortfall(client, geography_quiz):
    quiz = client.post(f"{API}/quizzes/{geography_quiz['id']}/generate").json()
    client.post(f"{API}/questions/{quiz['questions'][0]['id']}/toggle")

    response = client.post(f"{API}/quizzes/{geography_quiz['id']}/generate")

    assert response.status_code == 409
    assert response.json()["error"]["details"]["shortfall"] == 1


def test_submit_and_review(client, geography_quiz):
    quiz = client.post(f"{API}/quizzes/{geography_quiz['id']}/generate").json()
    answers = {}
    for q in quiz["questions"]:
        answers[q["id"]] = "Paris" if q["text"] == "Capital of France?" else "Milan"

    response = client.post(
        f"{API}/results/",
        json={
            "config_id": geography_quiz["id"],
            "user_id": "u1",
            "username": "Ada",
            "questions": quiz["questions"],
            "answers": answers,
        },
    )

    assert response.status_code == 201, response.text
    result = response.json()
    assert result["score"] == 2
    assert result["max_score"] == 4
    assert result["is_passed"] is False

    review = client.get(f"{API}/results/{result['id']}").json()
    assert review["answers_revealed"] is True
    assert review["part_scores"] == [{"name": "Capitals", "score": 2, "max_score": 4}]


def test_exam_review_withholds_answers(client):
    _question(client)
    config = _config(
        client, [{"name": "Only", "count": 1, "score": 1}], quiz_mode="exam"
    ).json()
    quiz = client.post(f"{API}/quizzes/{config['id']}/generate").json()
    result = client.post(
        f"{API}/results/",
        json={
            "config_id": config["id"],
            "user_id": "u1",
            "username": "Ada",
            "questions": quiz["questions"],
        },
    ).json()

    taker = client.get(f"{API}/results/{result['id']}").json()
    admin = client.get(f"{API}/results/{result['id']}?admin=true").json()

    assert taker["result"]["attempts"][0]["correct_answer_text"] is None
    assert admin["result"]["attempts"][0]["correct_answer_text"] == "Paris"


def test_manual_grading_flow(client):
    _question(
        client,
        type="SHORT_ANSWER",
        text="Describe the water cycle",
        options=[],
        correct_answer="",
        needs_grading=True,
    )
    config = _config(client, [{"name": "Essay", "count": 1, "score": 10}], passing_score=5).json()
    quiz = client.post(f"{API}/quizzes/{config['id']}/generate").json()
    question_id = quiz["questions"][0]["id"]
    result = client.post(
        f"{API}/results/",
        json={
            "config_id": config["id"],
            "user_id": "u1",
            "username": "Ada",
            "questions": quiz["questions"],
            "answers": {question_id: "Evaporation, condensation, precipitation"},
        },
    ).json()
    assert result["status"] == "pending_grading"
    path = f"{API}/results/{result['id']}"

    pending = client.get(f"{path}/pending").json()
    assert [p["index"] for p in pending] == [0]

    too_high = client.post(f"{path}/attempts/0/score", json={"score": 11})
    assert too_high.status_code == 422
    assert too_high.json()["error"]["code"] == "MANUAL_SCORE_RANGE_ERROR"

    scored = client.post(f"{path}/attempts/0/score", json={"score": 7}).json()
    assert scored["score"] == 7
    assert scored["is_passed"] is False
    assert scored["attempts"][0]["is_correct"] is False

    final = client.post(f"{path}/finalize").json()
    assert final["status"] == "completed"
    assert final["is_passed"] is True


def test_hard_delete_refused_for_answered_question(client, geography_quiz):
    quiz = client.post(f"{API}/quizzes/{geography_quiz['id']}/generate").json()
    client.post(
        f"{API}/results/",
        json={
            "config_id": geography_quiz["id"],
            "user_id": "u1",
            "username": "Ada",
            "questions": quiz["questions"],
        },
    )

    response = client.delete(f"{API}/questions/{quiz['questions'][0]['id']}/permanent")

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "QUESTION_IN_USE"


def test_repeated_question_submission_is_rejected(client, geography_quiz):
    quiz = client.post(f"{API}/quizzes/{geography_quiz['id']}/generate").json()
    first = quiz["questions"][0]

    response = client.post(
        f"{API}/results/",
        json={
            "config_id": geography_quiz["id"],
            "user_id": "u1",
            "username": "Ada",
            "questions": [first, first],
            "answers": {first["id"]: "Paris"},
        },
    )

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "INVALID_SUBMISSION"
    assert client.get(f"{API}/results/").json()["total"] == 0


def test_question_listing(client):
    _question(client)
    _question(client, text="Capital of Spain?", correct_answer="Madrid")
    _question(client, subject="history", text="Year of the Bastille?")

    geography = client.get(f"{API}/questions/?subjects=geography&limit=1").json()
    spain = client.get(f"{API}/questions/?search=spain").json()

    assert geography["total"] == 2
    assert len(geography["items"]) == 1
    assert [q["text"] for q in spain["items"]] == ["Capital of Spain?"]


def test_result_history_and_grading_queue(client, geography_quiz):
    quiz = client.post(f"{API}/quizzes/{geography_quiz['id']}/generate").json()
    submission = {
        "config_id": geography_quiz["id"],
        "username": "Ada",
        "questions": quiz["questions"],
    }
    kept = client.post(f"{API}/results/", json={**submission, "user_id": "u1"}).json()
    dropped = client.post(f"{API}/results/", json={**submission, "user_id": "u1"}).json()
    client.post(f"{API}/results/", json={**submission, "user_id": "u2"})

    assert client.get(f"{API}/results/?user_id=u1").json()["total"] == 2
    assert client.get(f"{API}/results/?status=pending_grading").json()["total"] == 0

    assert client.delete(f"{API}/results/{dropped['id']}").status_code == 200
    history = client.get(f"{API}/results/?user_id=u1").json()
    assert [r["id"] for r in history["items"]] == [kept["id"]]
    assert client.get(f"{API}/results/{dropped['id']}").status_code == 404


def test_quiz_session_flow(client, geography_quiz):
    path = f"{API}/sessions/{geography_quiz['id']}"

    started = client.post(path, json={"user_id": "u1", "username": "Ada"}).json()
    assert started["state"] == "active"
    assert started["restored"] is False
    assert all("correct_answer" not in q for q in started["questions"])

    for q in started["questions"]:
        answer = "Paris" if q["text"] == "Capital of France?" else "Rome"
        response = client.put(f"{path}/answers/{q['id']}?user_id=u1", json={"value": answer})
        assert response.status_code == 200, response.text

    resumed = client.post(path, json={"user_id": "u1", "username": "Ada"}).json()
    assert resumed["restored"] is True
    assert [q["id"] for q in resumed["questions"]] == [q["id"] for q in started["questions"]]
    assert len(resumed["answers"]) == 2

    # Another taker on the same config gets a separate session
    assert client.get(f"{path}?user_id=u2").status_code == 404

    result = client.post(f"{path}/submit?user_id=u1")
    assert result.status_code == 201, result.text
    assert result.json()["score"] == 4
    assert result.json()["username"] == "Ada"
    assert client.get(f"{path}?user_id=u1").status_code == 404


def test_quiz_session_rejects_bad_blank_index(client):
    _question(
        client,
        type="FILL_IN_THE_BLANK",
        text="___ is the capital of ___",
        options=[],
        correct_answer='["Paris","France"]',
    )
    config = _config(client, [{"name": "Blanks", "count": 1, "score": 1}]).json()
    path = f"{API}/sessions/{config['id']}"
    question = client.post(path, json={"user_id": "u1"}).json()["questions"][0]
    answer_path = f"{path}/answers/{question['id']}?user_id=u1"

    too_far = client.put(answer_path, json={"value": "x", "blank_index": 2})
    filled = client.put(answer_path, json={"value": "France", "blank_index": 1}).json()

    assert too_far.status_code == 422
    assert too_far.json()["error"]["code"] == "INVALID_ANSWER"
    assert filled["answers"][question["id"]] == '["","France"]'


def test_abandoned_session_is_cleared(client, geography_quiz):
    path = f"{API}/sessions/{geography_quiz['id']}"
    client.post(path, json={"user_id": "u1", "username": "Ada"})

    assert client.delete(f"{path}?user_id=u1").status_code == 200
    assert client.get(f"{path}?user_id=u1").status_code == 404
