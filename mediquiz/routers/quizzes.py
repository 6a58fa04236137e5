from datetime import date
from typing import List, Optional

import anyio
from fastapi import APIRouter, Depends, HTTPException, Request
from starlette.concurrency import run_in_threadpool
import structlog

from mediquiz.deps import get_current_user_id, get_generator, get_manager, get_store
from mediquiz.errors import GenerationError
from mediquiz.middleware.rate_limit import ai_generation_limit
from mediquiz.notifications import ConnectionManager, progress_message
from mediquiz.schemas import AttemptCreate, GenerateQuizRequest, QuizCreate, QuizRead, ScoredAttempt, ScoreRequest
from mediquiz.services.llm import QuizGenerator
from mediquiz.services.monitoring import AI_GENERATION_REQUESTS, QUESTIONS_GENERATED, QUIZ_SCORES
from mediquiz.services.scoring import score_quiz
from mediquiz.services.storage import QuizStore

logger = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["quizzes"])


def _get_quiz_or_404(store: QuizStore, quiz_id: str) -> QuizRead:
    quiz = store.get_quiz(quiz_id)
    if not quiz:
        raise HTTPException(status_code=404, detail="Quiz not found")
    return quiz


@router.post("/generate-quiz", response_model=QuizRead)
@ai_generation_limit()
async def generate_quiz(
    request: Request,
    body: GenerateQuizRequest,
    store: QuizStore = Depends(get_store),
    generator: QuizGenerator = Depends(get_generator),
    manager: ConnectionManager = Depends(get_manager),
    user_id: Optional[int] = Depends(get_current_user_id),
):
    on_progress = None
    if body.client_id:
        client_id = body.client_id

        def on_progress(stage: str, progress: int, message: str) -> None:
            # called from the worker thread running the generator
            anyio.from_thread.run(manager.send_json, client_id, progress_message(stage, progress, message))

    try:
        questions = await run_in_threadpool(
            generator.generate_questions, body.content, body.analysis, body.config, on_progress=on_progress
        )
    except GenerationError as e:
        AI_GENERATION_REQUESTS.labels(type="quiz", status="error").inc()
        logger.error("quiz_generation_failed", error=str(e))
        raise HTTPException(status_code=500, detail=str(e))

    if not questions:
        AI_GENERATION_REQUESTS.labels(type="quiz", status="error").inc()
        raise HTTPException(status_code=500, detail="No questions were generated")

    AI_GENERATION_REQUESTS.labels(type="quiz", status="success").inc()
    for question in questions:
        QUESTIONS_GENERATED.labels(type=question.type).inc()

    return await run_in_threadpool(store.create_quiz, QuizCreate(
        title=body.title or f"Quiz - {date.today().isoformat()}",
        description="Generated from content analysis",
        content=body.content,
        analysis=body.analysis,
        questions=questions,
        question_types=body.config.question_types,
        user_id=user_id,
    ))


@router.get("/quizzes", response_model=List[QuizRead])
def list_quizzes(user_id: Optional[int] = None, store: QuizStore = Depends(get_store)):
    return store.list_quizzes(user_id)


@router.get("/quizzes/{quiz_id}", response_model=QuizRead)
def get_quiz(quiz_id: str, store: QuizStore = Depends(get_store)):
    return _get_quiz_or_404(store, quiz_id)


@router.delete("/quizzes/{quiz_id}")
def delete_quiz(quiz_id: str, store: QuizStore = Depends(get_store)):
    if not store.delete_quiz(quiz_id):
        raise HTTPException(status_code=404, detail="Quiz not found")
    return {"message": "Quiz deleted successfully"}


@router.post("/quizzes/{quiz_id}/score", response_model=ScoredAttempt)
def score_attempt(
    quiz_id: str,
    body: ScoreRequest,
    store: QuizStore = Depends(get_store),
    user_id: Optional[int] = Depends(get_current_user_id),
):
    quiz = _get_quiz_or_404(store, quiz_id)
    result = score_quiz(quiz.questions, body.answers)
    attempt = store.create_attempt(
        AttemptCreate(quiz_id=quiz.id, answers=body.answers, score=result.correct, total_questions=result.total),
        user_id=user_id,
    )
    if result.total:
        QUIZ_SCORES.observe(result.correct / result.total)
    logger.info("quiz_attempt_scored", quiz_id=quiz.id, attempt_id=attempt.id, correct=result.correct, total=result.total)
    return ScoredAttempt(attempt_id=attempt.id, correct=result.correct, total=result.total, results=result.results)
