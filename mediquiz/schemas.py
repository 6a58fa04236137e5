from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field

from mediquiz.questions import CamelModel, Question, QuizScore


class ContentAnalysis(CamelModel):
    summary: str = ""
    key_concepts: List[str] = Field(default_factory=list)
    medical_terms: List[str] = Field(default_factory=list)
    topics: List[str] = Field(default_factory=list)


class QuizConfig(CamelModel):
    question_count: int = Field(ge=1, le=50)
    question_types: List[str]
    difficulty: Literal["mixed", "easy", "medium", "hard"] = "mixed"
    focus_areas: Optional[List[str]] = None


# ----------------- Requests -----------------

class AnalyzeContentRequest(CamelModel):
    text: Optional[str] = None


class GenerateQuizRequest(CamelModel):
    content: str
    analysis: ContentAnalysis
    config: QuizConfig
    title: Optional[str] = None
    client_id: Optional[str] = None


class ScoreRequest(CamelModel):
    # raw answers; scoring decides per question type what a valid shape is
    answers: Dict[str, Any] = Field(default_factory=dict)


class AttemptCreate(CamelModel):
    quiz_id: str
    answers: Dict[str, Any] = Field(default_factory=dict)
    score: int = Field(ge=0)
    total_questions: int = Field(ge=0)


class Credentials(CamelModel):
    username: str = Field(min_length=3, max_length=64)
    password: str = Field(min_length=6, max_length=72)


class RefreshRequest(CamelModel):
    refresh_token: str


# ----------------- Store records -----------------

class QuizCreate(CamelModel):
    title: str
    description: Optional[str] = None
    content: str = ""
    analysis: ContentAnalysis
    questions: List[Question]
    question_types: List[str] = Field(default_factory=list)
    user_id: Optional[int] = None


class QuizRead(CamelModel):
    id: str
    title: str
    description: Optional[str] = None
    content: str = ""
    analysis: ContentAnalysis
    questions: List[Question]
    question_count: int
    question_types: List[str]
    created_at: datetime
    user_id: Optional[int] = None


class AttemptRead(CamelModel):
    id: str
    quiz_id: str
    user_id: Optional[int] = None
    answers: Dict[str, Any]
    score: int
    total_questions: int
    completed_at: datetime


# ----------------- Responses -----------------

class FileMetadata(CamelModel):
    filename: str
    size: int
    type: str


class FileAnalysis(CamelModel):
    content: str
    analysis: ContentAnalysis
    metadata: FileMetadata


class ScoredAttempt(QuizScore):
    attempt_id: str


class TokenPair(CamelModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: Dict[str, Any] = Field(default_factory=dict)


class ProfileStats(CamelModel):
    total_quizzes: int = 0
    total_attempts: int = 0
    average_score: float = 0
    study_streak: int = 0


class Profile(CamelModel):
    id: int
    username: str
    joined_date: datetime
    stats: ProfileStats
