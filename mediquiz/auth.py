from datetime import datetime, timedelta, timezone
from typing import Optional
import structlog

from jose import jwt, JWTError
from passlib.context import CryptContext

from mediquiz import settings

logger = structlog.get_logger()

SECRET_KEY = settings.JWT_SECRET
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 8
REFRESH_TOKEN_EXPIRE_DAYS = 7

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def _encode(subject: str, token_type: str, lifetime: timedelta) -> str:
    expire = datetime.now(timezone.utc) + lifetime
    to_encode = {"sub": subject, "exp": expire, "type": token_type}
    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)

    logger.info(f"{token_type}_token_created", user_id=subject, expires_at=expire.isoformat())
    return encoded_jwt


def create_access_token(subject: str, expires_delta: Optional[timedelta] = None) -> str:
    return _encode(subject, "access", expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))


def create_refresh_token(subject: str) -> str:
    return _encode(subject, "refresh", timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS))


def verify_token(token: str, token_type: str = "access") -> Optional[dict]:
    """Verify JWT token and return full payload"""
    try:
        # jose rejects expired tokens itself
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning("token_verification_failed", error=str(e))
        return None

    if payload.get("type") != token_type:
        logger.warning("invalid_token_type", expected=token_type, actual=payload.get("type"))
        return None

    return payload


def decode_token(token: str) -> Optional[str]:
    """Return the subject of a valid access token"""
    payload = verify_token(token, "access")
    return payload.get("sub") if payload else None


def refresh_access_token(refresh_token: str) -> Optional[str]:
    """Refresh access token using refresh token"""
    payload = verify_token(refresh_token, "refresh")
    if not payload:
        return None

    return create_access_token(payload.get("sub"))
