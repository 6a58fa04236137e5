from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List, Optional

from fastapi import APIRouter, Depends, HTTPException

from mediquiz.deps import get_store, require_user_id
from mediquiz.schemas import AttemptRead, Profile, ProfileStats
from mediquiz.services.storage import QuizStore


router = APIRouter(prefix="/api/profile", tags=["profile"])


def average_score(attempts: List[AttemptRead]) -> float:
    """Mean percentage over attempts that had at least one question"""
    pcts = [a.score / a.total_questions * 100.0 for a in attempts if a.total_questions]
    return round(sum(pcts) / len(pcts), 1) if pcts else 0.0


def study_streak(completed: Iterable[datetime], today: Optional[date] = None) -> int:
    """Consecutive days with at least one attempt, ending today or yesterday"""
    today = today or datetime.now(timezone.utc).date()
    days = {ts.date() for ts in completed}
    day = today if today in days else today - timedelta(days=1)
    streak = 0
    while day in days:
        streak += 1
        day -= timedelta(days=1)
    return streak


@router.get("", response_model=Profile)
def get_profile(user_id: int = Depends(require_user_id), store: QuizStore = Depends(get_store)):
    user = store.get_user(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    quizzes = store.list_quizzes(user_id)
    attempts = store.list_user_attempts(user_id)
    return Profile(
        id=user.id,
        username=user.username,
        joined_date=user.created_at,
        stats=ProfileStats(
            total_quizzes=len(quizzes),
            total_attempts=len(attempts),
            average_score=average_score(attempts),
            study_streak=study_streak(a.completed_at for a in attempts),
        ),
    )
