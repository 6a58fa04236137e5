from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlmodel import Field, SQLModel
from sqlalchemy import Column, JSON


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, unique=True)
    hashed_password: str
    created_at: datetime = Field(default_factory=_now)


class Quiz(SQLModel, table=True):
    id: str = Field(default_factory=_uuid, primary_key=True)
    title: str
    description: Optional[str] = None
    content: str = ""
    # analysis / questions are stored with their camelCase wire keys
    analysis: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    questions: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    question_count: int = 0
    question_types: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=_now)
    user_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)


class QuizAttempt(SQLModel, table=True):
    id: str = Field(default_factory=_uuid, primary_key=True)
    quiz_id: str = Field(foreign_key="quiz.id", index=True)
    user_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)
    answers: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    score: int
    total_questions: int
    completed_at: datetime = Field(default_factory=_now)
