"""
Quiz, attempt and user persistence.

``SqlQuizStore`` backs the running service; ``MemoryQuizStore`` keeps
everything in dicts for tests and throwaway runs. Both return the same
pydantic read models so callers never see which one they talk to.
"""
from __future__ import annotations

import itertools
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol

import structlog
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from mediquiz.db import init_db
from mediquiz.models import Quiz, QuizAttempt, User
from mediquiz.questions import dump_questions
from mediquiz.schemas import AttemptCreate, AttemptRead, QuizCreate, QuizRead

logger = structlog.get_logger()


class QuizStore(Protocol):
    def create_quiz(self, quiz: QuizCreate) -> QuizRead: ...

    def get_quiz(self, quiz_id: str) -> Optional[QuizRead]: ...

    def list_quizzes(self, user_id: Optional[int] = None) -> List[QuizRead]: ...

    def delete_quiz(self, quiz_id: str) -> bool: ...

    def create_attempt(self, attempt: AttemptCreate, user_id: Optional[int] = None) -> AttemptRead: ...

    def list_attempts(self, quiz_id: str) -> List[AttemptRead]: ...

    def list_user_attempts(self, user_id: Optional[int] = None) -> List[AttemptRead]: ...

    def create_user(self, username: str, hashed_password: str) -> User: ...

    def get_user(self, user_id: int) -> Optional[User]: ...

    def get_user_by_username(self, username: str) -> Optional[User]: ...


def _quiz_row(quiz: QuizCreate) -> Quiz:
    return Quiz(
        title=quiz.title,
        description=quiz.description,
        content=quiz.content,
        analysis=quiz.analysis.model_dump(mode="json", by_alias=True),
        questions=dump_questions(quiz.questions),
        question_count=len(quiz.questions),
        question_types=list(quiz.question_types),
        user_id=quiz.user_id,
    )


def _quiz_read(row: Quiz) -> QuizRead:
    return QuizRead(
        id=row.id,
        title=row.title,
        description=row.description,
        content=row.content,
        analysis=row.analysis,
        questions=row.questions,
        question_count=row.question_count,
        question_types=row.question_types,
        created_at=row.created_at,
        user_id=row.user_id,
    )


def _attempt_read(row: QuizAttempt) -> AttemptRead:
    return AttemptRead(
        id=row.id,
        quiz_id=row.quiz_id,
        user_id=row.user_id,
        answers=row.answers,
        score=row.score,
        total_questions=row.total_questions,
        completed_at=row.completed_at,
    )


class SqlQuizStore:
    def __init__(self, engine: Engine):
        self.engine = engine
        init_db(engine)

    def create_quiz(self, quiz: QuizCreate) -> QuizRead:
        row = _quiz_row(quiz)
        with Session(self.engine) as session:
            session.add(row)
            session.commit()
            session.refresh(row)
            logger.info("quiz_created", quiz_id=row.id, question_count=row.question_count)
            return _quiz_read(row)

    def get_quiz(self, quiz_id: str) -> Optional[QuizRead]:
        with Session(self.engine) as session:
            row = session.get(Quiz, quiz_id)
            return _quiz_read(row) if row else None

    def list_quizzes(self, user_id: Optional[int] = None) -> List[QuizRead]:
        with Session(self.engine) as session:
            query = select(Quiz).order_by(Quiz.created_at.desc())
            if user_id is not None:
                query = query.where(Quiz.user_id == user_id)
            return [_quiz_read(row) for row in session.exec(query).all()]

    def delete_quiz(self, quiz_id: str) -> bool:
        with Session(self.engine) as session:
            row = session.get(Quiz, quiz_id)
            if not row:
                return False
            for attempt in session.exec(select(QuizAttempt).where(QuizAttempt.quiz_id == quiz_id)).all():
                session.delete(attempt)
            session.delete(row)
            session.commit()
        logger.info("quiz_deleted", quiz_id=quiz_id)
        return True

    def create_attempt(self, attempt: AttemptCreate, user_id: Optional[int] = None) -> AttemptRead:
        row = QuizAttempt(
            quiz_id=attempt.quiz_id,
            user_id=user_id,
            answers=attempt.answers,
            score=attempt.score,
            total_questions=attempt.total_questions,
        )
        with Session(self.engine) as session:
            session.add(row)
            session.commit()
            session.refresh(row)
            return _attempt_read(row)

    def list_attempts(self, quiz_id: str) -> List[AttemptRead]:
        with Session(self.engine) as session:
            rows = session.exec(
                select(QuizAttempt).where(QuizAttempt.quiz_id == quiz_id).order_by(QuizAttempt.completed_at.desc())
            ).all()
            return [_attempt_read(row) for row in rows]

    def list_user_attempts(self, user_id: Optional[int] = None) -> List[AttemptRead]:
        with Session(self.engine) as session:
            query = select(QuizAttempt).order_by(QuizAttempt.completed_at.desc())
            if user_id is not None:
                query = query.where(QuizAttempt.user_id == user_id)
            return [_attempt_read(row) for row in session.exec(query).all()]

    def create_user(self, username: str, hashed_password: str) -> User:
        user = User(username=username, hashed_password=hashed_password)
        with Session(self.engine) as session:
            session.add(user)
            session.commit()
            session.refresh(user)
            return user

    def get_user(self, user_id: int) -> Optional[User]:
        with Session(self.engine) as session:
            return session.get(User, user_id)

    def get_user_by_username(self, username: str) -> Optional[User]:
        with Session(self.engine) as session:
            return session.exec(select(User).where(User.username == username)).first()


class MemoryQuizStore:
    def __init__(self) -> None:
        self.quizzes: Dict[str, QuizRead] = {}
        self.attempts: Dict[str, AttemptRead] = {}
        self.users: Dict[int, User] = {}
        self._user_ids = itertools.count(1)

    def create_quiz(self, quiz: QuizCreate) -> QuizRead:
        record = QuizRead(
            id=str(uuid.uuid4()),
            title=quiz.title,
            description=quiz.description,
            content=quiz.content,
            analysis=quiz.analysis,
            questions=list(quiz.questions),
            question_count=len(quiz.questions),
            question_types=list(quiz.question_types),
            created_at=datetime.now(timezone.utc),
            user_id=quiz.user_id,
        )
        self.quizzes[record.id] = record
        return record

    def get_quiz(self, quiz_id: str) -> Optional[QuizRead]:
        return self.quizzes.get(quiz_id)

    def list_quizzes(self, user_id: Optional[int] = None) -> List[QuizRead]:
        quizzes = [q for q in self.quizzes.values() if user_id is None or q.user_id == user_id]
        return list(reversed(quizzes))

    def delete_quiz(self, quiz_id: str) -> bool:
        if self.quizzes.pop(quiz_id, None) is None:
            return False
        for attempt_id in [a.id for a in self.attempts.values() if a.quiz_id == quiz_id]:
            del self.attempts[attempt_id]
        return True

    def create_attempt(self, attempt: AttemptCreate, user_id: Optional[int] = None) -> AttemptRead:
        record = AttemptRead(
            id=str(uuid.uuid4()),
            quiz_id=attempt.quiz_id,
            user_id=user_id,
            answers=dict(attempt.answers),
            score=attempt.score,
            total_questions=attempt.total_questions,
            completed_at=datetime.now(timezone.utc),
        )
        self.attempts[record.id] = record
        return record

    def list_attempts(self, quiz_id: str) -> List[AttemptRead]:
        return list(reversed([a for a in self.attempts.values() if a.quiz_id == quiz_id]))

    def list_user_attempts(self, user_id: Optional[int] = None) -> List[AttemptRead]:
        return list(reversed([a for a in self.attempts.values() if user_id is None or a.user_id == user_id]))

    def create_user(self, username: str, hashed_password: str) -> User:
        user = User(id=next(self._user_ids), username=username, hashed_password=hashed_password)
        self.users[user.id] = user
        return user

    def get_user(self, user_id: int) -> Optional[User]:
        return self.users.get(user_id)

    def get_user_by_username(self, username: str) -> Optional[User]:
        return next((u for u in self.users.values() if u.username == username), None)
