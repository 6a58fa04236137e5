"""
Integration tests for API endpoints
"""
import asyncio
import io

from fastapi.testclient import TestClient
from pptx import Presentation

from conftest import FakeGenerator
from mediquiz import settings
from mediquiz.main import create_app
from mediquiz.services.storage import MemoryQuizStore


def generate(client, analysis_payload, count=3, **extra):
    body = {
        "content": "Anaphylaxis is managed with IM adrenaline...",
        "analysis": analysis_payload,
        "config": {"questionCount": count, "questionTypes": ["multiple_choice", "true_false", "short_answer"]},
    }
    body.update(extra)
    return client.post("/api/generate-quiz", json=body)


class TestHealthEndpoints:
    def test_health_check(self, client):
        """Test health check endpoint"""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "timestamp" in data
        assert data["checks"]["store"]["status"] == "healthy"

    def test_metrics_endpoint(self, client):
        """Test metrics endpoint"""
        response = client.get("/metrics")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")


class TestContentEndpoints:
    def test_analyze_content(self, client, generator):
        response = client.post("/api/analyze-content", json={"text": "Anaphylaxis management"})
        assert response.status_code == 200
        data = response.json()
        assert data["keyConcepts"] == ["anaphylaxis"]
        assert data["medicalTerms"] == ["adrenaline"]
        assert generator.analyzed == ["Anaphylaxis management"]

    def test_analyze_content_requires_text(self, client):
        assert client.post("/api/analyze-content", json={}).status_code == 400
        assert client.post("/api/analyze-content", json={"text": "   "}).status_code == 400

    def test_analyze_file(self, client):
        files = {"file": ("notes.txt", b"Sepsis: lactate above 2 mmol/L", "text/plain")}
        response = client.post("/api/analyze-file", files=files)
        assert response.status_code == 200
        data = response.json()
        assert data["content"] == "Sepsis: lactate above 2 mmol/L"
        assert data["metadata"] == {"filename": "notes.txt", "size": 30, "type": "text/plain"}
        assert data["analysis"]["summary"] == "Emergency pharmacology"

    def test_analyze_image_file(self, client):
        files = {"file": ("slide.png", b"\x89PNG fake", "image/png")}
        response = client.post("/api/analyze-file", files=files)
        assert response.status_code == 200
        assert response.json()["content"] == "Transcribed lecture slide about sepsis"

    def test_analyze_slide_deck(self, client):
        presentation = Presentation()
        slide = presentation.slides.add_slide(presentation.slide_layouts[1])
        slide.shapes.title.text = "Anaphylaxis"
        buf = io.BytesIO()
        presentation.save(buf)

        files = {"file": ("lecture.pptx", buf.getvalue(), "application/octet-stream")}
        response = client.post("/api/analyze-file", files=files)
        assert response.status_code == 200
        assert response.json()["content"] == "Slide 1:\nAnaphylaxis"
        assert response.json()["metadata"]["type"].endswith("presentationml.presentation")

    def test_analyze_file_rejects_unsupported_type(self, client):
        files = {"file": ("deck.zip", b"PK\x03\x04", "application/zip")}
        response = client.post("/api/analyze-file", files=files)
        assert response.status_code == 400
        assert "not supported" in response.json()["detail"]

    def test_analysis_failure(self, store):
        app = create_app(store=store, generator=FakeGenerator(fail=True))
        with TestClient(app) as client:
            response = client.post("/api/analyze-content", json={"text": "x"})
        assert response.status_code == 500

    def test_missing_api_key(self, store, monkeypatch):
        monkeypatch.setattr(settings, "OPENAI_API_KEY", "")
        with TestClient(create_app(store=store)) as client:
            response = client.post("/api/analyze-content", json={"text": "x"})
        assert response.status_code == 503


class TestQuizEndpoints:
    def test_generate_and_fetch(self, client, analysis_payload):
        response = generate(client, analysis_payload)
        assert response.status_code == 200
        quiz = response.json()
        assert quiz["questionCount"] == 3
        assert [q["type"] for q in quiz["questions"]] == ["multiple_choice", "true_false", "short_answer"]
        assert quiz["questions"][0]["correctAnswer"] == 0
        assert quiz["title"].startswith("Quiz - ")

        fetched = client.get(f"/api/quizzes/{quiz['id']}")
        assert fetched.status_code == 200
        assert fetched.json()["questions"] == quiz["questions"]
        assert [q["id"] for q in client.get("/api/quizzes").json()] == [quiz["id"]]

    def test_quiz_is_stored_off_the_event_loop(self, generator, analysis_payload):
        """The store is synchronous, so its write runs in a worker thread"""
        class LoopCheckingStore(MemoryQuizStore):
            on_event_loop = None

            def create_quiz(self, quiz):
                try:
                    asyncio.get_running_loop()
                    self.on_event_loop = True
                except RuntimeError:
                    self.on_event_loop = False
                return super().create_quiz(quiz)

        store = LoopCheckingStore()
        with TestClient(create_app(store=store, generator=generator)) as client:
            assert generate(client, analysis_payload).status_code == 200
        assert store.on_event_loop is False

    def test_generation_validates_config(self, client, analysis_payload):
        assert generate(client, analysis_payload, count=0).status_code == 422
        assert generate(client, analysis_payload, count=51).status_code == 422

    def test_generation_failure(self, store, analysis_payload):
        with TestClient(create_app(store=store, generator=FakeGenerator(fail=True))) as client:
            response = generate(client, analysis_payload)
        assert response.status_code == 500
        assert store.list_quizzes() == []

    def test_empty_generation_is_an_error(self, store, analysis_payload):
        with TestClient(create_app(store=store, generator=FakeGenerator(raw_questions=[]))) as client:
            assert generate(client, analysis_payload).status_code == 500

    def test_delete(self, client, analysis_payload):
        quiz_id = generate(client, analysis_payload).json()["id"]
        assert client.delete(f"/api/quizzes/{quiz_id}").status_code == 200
        assert client.get(f"/api/quizzes/{quiz_id}").status_code == 404
        assert client.delete(f"/api/quizzes/{quiz_id}").status_code == 404

    def test_score_records_attempt(self, client, analysis_payload):
        quiz = generate(client, analysis_payload).json()
        mc, tf, sa = (q["id"] for q in quiz["questions"])

        response = client.post(f"/api/quizzes/{quiz['id']}/score", json={
            "answers": {mc: 0, tf: True, sa: "Benzathine penicillin G"},
        })
        assert response.status_code == 200
        result = response.json()
        assert result["correct"] == 2
        assert result["total"] == 3
        assert [r["isCorrect"] for r in result["results"]] == [True, False, True]
        assert result["results"][0]["correctAnswer"] == "Adrenaline"
        assert result["results"][1]["correctAnswer"] is False

        attempts = client.get(f"/api/quiz-attempts/{quiz['id']}").json()
        assert len(attempts) == 1
        assert attempts[0]["id"] == result["attemptId"]
        assert attempts[0]["score"] == 2
        assert attempts[0]["totalQuestions"] == 3

    def test_score_has_no_type_coercion(self, client, analysis_payload):
        quiz = generate(client, analysis_payload, count=1).json()
        qid = quiz["questions"][0]["id"]
        result = client.post(f"/api/quizzes/{quiz['id']}/score", json={"answers": {qid: "0"}}).json()
        assert result["correct"] == 0

    def test_score_unknown_quiz(self, client):
        assert client.post("/api/quizzes/missing/score", json={"answers": {}}).status_code == 404

    def test_progress_is_pushed_over_websocket(self, client, analysis_payload):
        with client.websocket_connect("/ws?client_id=tab-1") as websocket:
            response = generate(client, analysis_payload, clientId="tab-1")
            assert response.status_code == 200
            first = websocket.receive_json()
            last = websocket.receive_json()

        assert first["event"] == "progress"
        assert (first["stage"], first["progress"]) == ("generation", 35)
        assert (last["stage"], last["progress"]) == ("complete", 100)


class TestAttemptEndpoints:
    def test_submit_client_scored_attempt(self, client, analysis_payload):
        quiz_id = generate(client, analysis_payload).json()["id"]
        response = client.post("/api/quiz-attempts", json={
            "quizId": quiz_id, "answers": {"x": 1}, "score": 2, "totalQuestions": 3,
        })
        assert response.status_code == 200
        assert response.json()["quizId"] == quiz_id
        assert len(client.get(f"/api/quiz-attempts/{quiz_id}").json()) == 1

    def test_attempt_for_unknown_quiz(self, client):
        response = client.post("/api/quiz-attempts", json={
            "quizId": "missing", "answers": {}, "score": 0, "totalQuestions": 0,
        })
        assert response.status_code == 404

    def test_score_cannot_exceed_total(self, client, analysis_payload):
        quiz_id = generate(client, analysis_payload).json()["id"]
        response = client.post("/api/quiz-attempts", json={
            "quizId": quiz_id, "answers": {}, "score": 4, "totalQuestions": 3,
        })
        assert response.status_code == 400


class TestWebSocket:
    def test_websocket_requires_client_id(self):
        with TestClient(create_app(store=MemoryQuizStore(), generator=FakeGenerator())) as client:
            with client.websocket_connect("/ws?client_id=test") as websocket:
                assert websocket is not None
