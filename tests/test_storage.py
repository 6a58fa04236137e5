"""
Both quiz stores behave the same
"""
import pytest

from mediquiz.db import create_db_engine
from mediquiz.schemas import AttemptCreate, ContentAnalysis, QuizCreate
from mediquiz.services.normalizer import normalize_questions
from mediquiz.services.storage import MemoryQuizStore, SqlQuizStore


@pytest.fixture(params=["memory", "sql"])
def quiz_store(request):
    if request.param == "memory":
        return MemoryQuizStore()
    return SqlQuizStore(create_db_engine("sqlite://"))


def new_quiz(title="Cardiology", user_id=None):
    return QuizCreate(
        title=title,
        content="Acute coronary syndromes ...",
        analysis=ContentAnalysis(summary="ACS", key_concepts=["STEMI"]),
        questions=normalize_questions([
            {"id": "q1", "type": "multiple_choice", "options": ["Aspirin", "Warfarin"], "correctAnswer": 0},
            {"id": "q2", "type": "matching", "leftItems": ["a"], "rightItems": ["b"],
             "correctMatches": [{"left": 0, "right": 0}]},
        ]),
        question_types=["multiple_choice", "matching"],
        user_id=user_id,
    )


class TestQuizzes:
    def test_create_and_get(self, quiz_store):
        created = quiz_store.create_quiz(new_quiz())
        fetched = quiz_store.get_quiz(created.id)

        assert fetched is not None
        assert fetched.title == "Cardiology"
        assert fetched.question_count == 2
        assert fetched.analysis.key_concepts == ["STEMI"]
        assert fetched.questions == created.questions
        assert fetched.questions[1].correct_matches[0].right == 0

    def test_missing_quiz(self, quiz_store):
        assert quiz_store.get_quiz("nope") is None
        assert quiz_store.delete_quiz("nope") is False

    def test_list_filters_by_user(self, quiz_store):
        user = quiz_store.create_user("alice", "hash")
        quiz_store.create_quiz(new_quiz("Mine", user_id=user.id))
        quiz_store.create_quiz(new_quiz("Anonymous"))

        assert len(quiz_store.list_quizzes()) == 2
        assert [q.title for q in quiz_store.list_quizzes(user.id)] == ["Mine"]

    def test_delete_removes_attempts(self, quiz_store):
        quiz = quiz_store.create_quiz(new_quiz())
        quiz_store.create_attempt(AttemptCreate(quiz_id=quiz.id, answers={"q1": 0}, score=1, total_questions=2))

        assert quiz_store.delete_quiz(quiz.id) is True
        assert quiz_store.get_quiz(quiz.id) is None
        assert quiz_store.list_attempts(quiz.id) == []


class TestAttempts:
    def test_attempts_per_quiz_and_user(self, quiz_store):
        user = quiz_store.create_user("bob", "hash")
        quiz = quiz_store.create_quiz(new_quiz())
        other = quiz_store.create_quiz(new_quiz("Other"))
        quiz_store.create_attempt(AttemptCreate(quiz_id=quiz.id, answers={"q1": 0}, score=1, total_questions=2), user_id=user.id)
        quiz_store.create_attempt(AttemptCreate(quiz_id=quiz.id, answers={}, score=0, total_questions=2))
        quiz_store.create_attempt(AttemptCreate(quiz_id=other.id, answers={"q2": [{"left": 0, "right": 0}]}, score=1, total_questions=2))

        attempts = quiz_store.list_attempts(quiz.id)
        assert len(attempts) == 2
        assert {a.score for a in attempts} == {0, 1}
        assert len(quiz_store.list_user_attempts(user.id)) == 1
        assert len(quiz_store.list_user_attempts()) == 3
        assert quiz_store.list_attempts(other.id)[0].answers == {"q2": [{"left": 0, "right": 0}]}


class TestUsers:
    def test_create_and_lookup(self, quiz_store):
        user = quiz_store.create_user("carol", "hashed")

        assert user.id is not None
        assert quiz_store.get_user(user.id).username == "carol"
        assert quiz_store.get_user_by_username("carol").id == user.id
        assert quiz_store.get_user_by_username("dave") is None
