"""
Shared fixtures: an app wired to an in-memory store and a canned generator
"""
import pytest
from fastapi.testclient import TestClient

from mediquiz.errors import GenerationError
from mediquiz.main import create_app
from mediquiz.middleware.rate_limit import limiter
from mediquiz.schemas import ContentAnalysis
from mediquiz.services.normalizer import normalize_questions
from mediquiz.services.storage import MemoryQuizStore


RAW_QUESTIONS = [
    {"type": "multiple_choice", "question": "First-line drug for anaphylaxis?",
     "options": ["Adrenaline", "Salbutamol", "Cetirizine", "Hydrocortisone"], "correctAnswer": 0,
     "explanation": "IM adrenaline 0.5 mg.", "difficulty": "easy"},
    {"type": "true_false", "question": "Metformin causes hypoglycaemia as monotherapy.", "correctAnswer": False},
    {"type": "short_answer", "question": "Treatment of syphilis?", "correctAnswers": ["penicillin"],
     "keywords": ["benzathine"]},
]


class FakeGenerator:
    """Stands in for QuizGenerator without touching the network"""

    def __init__(self, raw_questions=None, fail=False):
        self.raw_questions = RAW_QUESTIONS if raw_questions is None else raw_questions
        self.fail = fail
        self.analyzed = []

    def analyze_content(self, text):
        if self.fail:
            raise GenerationError("model unavailable")
        self.analyzed.append(text)
        return ContentAnalysis(
            summary="Emergency pharmacology",
            key_concepts=["anaphylaxis"],
            medical_terms=["adrenaline"],
            topics=["pharmacology"],
        )

    def generate_questions(self, content, analysis, config, on_progress=None):
        if self.fail:
            raise GenerationError("model unavailable")
        if on_progress:
            on_progress("generation", 35, f"Generating questions 1-{config.question_count} of {config.question_count}...")
        questions = normalize_questions(self.raw_questions[:config.question_count])
        if on_progress:
            on_progress("complete", 100, f"Generated {len(questions)} questions")
        return questions

    def transcribe_image(self, data, mime_type):
        return "Transcribed lecture slide about sepsis"


@pytest.fixture(autouse=True)
def _no_rate_limits():
    limiter.enabled = False
    yield
    limiter.enabled = True


@pytest.fixture
def store():
    return MemoryQuizStore()


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def client(store, generator):
    app = create_app(store=store, generator=generator)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def analysis_payload():
    return {
        "summary": "Emergency pharmacology",
        "keyConcepts": ["anaphylaxis"],
        "medicalTerms": ["adrenaline"],
        "topics": ["pharmacology"],
    }
