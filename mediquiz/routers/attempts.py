from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from mediquiz.deps import get_current_user_id, get_store
from mediquiz.schemas import AttemptCreate, AttemptRead
from mediquiz.services.storage import QuizStore


router = APIRouter(prefix="/api/quiz-attempts", tags=["attempts"])


@router.post("", response_model=AttemptRead)
def submit_attempt(
    body: AttemptCreate,
    store: QuizStore = Depends(get_store),
    user_id: Optional[int] = Depends(get_current_user_id),
):
    """Record an attempt that was scored client-side"""
    if not store.get_quiz(body.quiz_id):
        raise HTTPException(status_code=404, detail="Quiz not found")
    if body.score > body.total_questions:
        raise HTTPException(status_code=400, detail="Score cannot exceed total questions")
    return store.create_attempt(body, user_id=user_id)


@router.get("/{quiz_id}", response_model=List[AttemptRead])
def list_attempts(quiz_id: str, store: QuizStore = Depends(get_store)):
    return store.list_attempts(quiz_id)
