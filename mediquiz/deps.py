from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
import structlog

from mediquiz.auth import decode_token
from mediquiz.notifications import ConnectionManager
from mediquiz.services.llm import QuizGenerator
from mediquiz.services.storage import QuizStore

logger = structlog.get_logger()

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


def get_store(request: Request) -> QuizStore:
    return request.app.state.store


def get_manager(request: Request) -> ConnectionManager:
    return request.app.state.manager


def get_generator(request: Request) -> QuizGenerator:
    generator = request.app.state.generator
    if generator is None:
        try:
            generator = QuizGenerator.from_env()
        except RuntimeError as e:
            logger.warning("ai_service_unavailable", error=str(e))
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="AI service not configured")
        request.app.state.generator = generator
    return generator


def get_current_user_id(token: Optional[str] = Depends(oauth2_scheme)) -> Optional[int]:
    """Anonymous requests are allowed; a bad token is not"""
    if not token:
        return None
    subject = decode_token(token)
    if subject is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return int(subject)


def require_user_id(user_id: Optional[int] = Depends(get_current_user_id)) -> int:
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id
