"""
Tests for the HTTP adapter: routing, status codes and exception mapping.
"""
import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from lokalny.core.database import get_session
from lokalny.main import app

PREFIX = "/api/v1"


@pytest.fixture
def client(engine):
    def _get_session():
        with Session(engine) as db_session:
            yield db_session

    app.dependency_overrides[get_session] = _get_session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def api_user(client):
    response = client.post(f"{PREFIX}/users", json={"name": "ala"})
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def api_card(client):
    deck = client.post(f"{PREFIX}/decks", json={"name": "Zwierzęta"}).json()
    response = client.post(f"{PREFIX}/cards", json={"deck_id": deck["id"], "front": "kot", "back": "cat"})
    assert response.status_code == 201
    return response.json()


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "database": "ok"}


class TestCardsApi:
    def test_created_card_is_classified(self, client, api_card):
        assert api_card["difficulty"]["total_difficulty"] == 28
        assert api_card["difficulty_level"] == "beginner"
        assert api_card["topic_category"] == "animal"

        response = client.get(f"{PREFIX}/cards/{api_card['id']}/difficulty")
        assert response.status_code == 200
        assert response.json()["type_score"] == 2

    def test_delete_difficulty(self, client, api_card):
        response = client.delete(f"{PREFIX}/cards/{api_card['id']}/difficulty")
        assert response.status_code == 204

    def test_unknown_card(self, client):
        response = client.get(f"{PREFIX}/cards/999")
        assert response.status_code == 404
        assert response.json()["type"] == "NotFoundError"

    def test_deck_stats(self, client, api_card):
        response = client.get(f"{PREFIX}/decks/{api_card['deck_id']}/difficulty-stats")
        assert response.status_code == 200
        assert response.json()["total_cards"] == 1

    def test_bad_difficulty_range(self, client, api_card):
        response = client.get(
            f"{PREFIX}/decks/{api_card['deck_id']}/cards/by-difficulty",
            params={"min_difficulty": 80, "max_difficulty": 20},
        )
        assert response.status_code == 400


class TestReviewsApi:
    def test_record_answer(self, client, api_user, api_card):
        response = client.post(f"{PREFIX}/reviews/answers", json={
            "user_id": api_user["id"],
            "card_id": api_card["id"],
            "correct": True,
            "response_time_ms": 1500,
        })

        assert response.status_code == 200
        body = response.json()
        assert body["schedule_update"]["repetitions"] == 1
        assert body["schedule_update"]["interval"] == 1
        assert body["feedback"]["was_new"] is True

    def test_unknown_question_type_is_rejected(self, client, api_user, api_card):
        response = client.post(f"{PREFIX}/reviews/answers", json={
            "user_id": api_user["id"],
            "card_id": api_card["id"],
            "correct": True,
            "question_type": "essay",
        })
        assert response.status_code == 422
        body = response.json()
        assert body["type"] == "RequestValidationError"
        assert any("question_type" in error["loc"] for error in body["detail"])

    def test_typed_answer_is_judged(self, client, api_user, api_card):
        response = client.post(f"{PREFIX}/reviews/answers", json={
            "user_id": api_user["id"],
            "card_id": api_card["id"],
            "user_answer": "KOT",
            "question_type": "translation_en_pl",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["feedback"]["correct"] is True
        assert body["answer_check"]["expected_answer"] == "kot"

    def test_answer_without_verdict_or_text(self, client, api_user, api_card):
        response = client.post(f"{PREFIX}/reviews/answers", json={
            "user_id": api_user["id"],
            "card_id": api_card["id"],
        })
        assert response.status_code == 400
        assert response.json()["type"] == "ValidationError"

    def test_invalid_parameter_maps_to_400(self, client, api_user):
        response = client.get(f"{PREFIX}/reviews/users/{api_user['id']}/forecast", params={"days": 0})
        assert response.status_code == 400
        assert response.json()["type"] == "InvalidParameterError"

    def test_mastery_distribution(self, client, api_user):
        response = client.get(f"{PREFIX}/reviews/users/{api_user['id']}/mastery")
        assert response.status_code == 200
        assert response.json()["total"] == 0


class TestProgressionApi:
    def test_apply_session_and_replay(self, client, api_user):
        url = f"{PREFIX}/progression/users/{api_user['id']}/sessions"
        summary = {"questions_answered": 10, "correct_answers": 8, "session_key": "s-1"}

        first = client.post(url, json=summary)
        assert first.status_code == 200
        assert first.json()["new_difficulty"] == 15

        replay = client.post(url, json=summary)
        assert replay.status_code == 409

    def test_invalid_totals(self, client, api_user):
        response = client.post(
            f"{PREFIX}/progression/users/{api_user['id']}/sessions",
            json={"questions_answered": 3, "correct_answers": 5},
        )
        assert response.status_code == 400

    def test_default_progression(self, client, api_user):
        response = client.get(f"{PREFIX}/progression/users/{api_user['id']}")
        assert response.status_code == 200
        assert response.json()["level"] == 1

    def test_levels(self, client):
        response = client.get(f"{PREFIX}/progression/levels")
        assert len(response.json()["levels"]) == 50


class TestLessonsApi:
    def test_select_questions(self, client, api_user, api_card):
        response = client.post(f"{PREFIX}/lessons/questions", json={
            "user_id": api_user["id"],
            "deck_ids": [api_card["deck_id"]],
            "count": 5,
        })

        assert response.status_code == 200
        body = response.json()
        assert body["returned"] == 1
        assert body["insufficient_pool"] is True

    def test_unknown_tier(self, client, api_user, api_card):
        response = client.post(f"{PREFIX}/lessons/questions", json={
            "user_id": api_user["id"],
            "deck_ids": [api_card["deck_id"]],
            "difficulty": "expert",
        })
        assert response.status_code == 400
