from fastapi import APIRouter, Depends, HTTPException, status

from mediquiz.auth import (
    create_access_token, create_refresh_token, get_password_hash, refresh_access_token, verify_password
)
from mediquiz.deps import get_store
from mediquiz.models import User
from mediquiz.schemas import Credentials, RefreshRequest, TokenPair
from mediquiz.services.storage import QuizStore


router = APIRouter(prefix="/auth", tags=["auth"])


def _tokens(user: User) -> TokenPair:
    subject = str(user.id)
    return TokenPair(
        access_token=create_access_token(subject),
        refresh_token=create_refresh_token(subject),
        user={"id": user.id, "username": user.username},
    )


@router.post("/register", response_model=TokenPair)
def register(body: Credentials, store: QuizStore = Depends(get_store)):
    if store.get_user_by_username(body.username):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Username already registered")
    user = store.create_user(body.username, get_password_hash(body.password))
    return _tokens(user)


@router.post("/login", response_model=TokenPair)
def login(body: Credentials, store: QuizStore = Depends(get_store)):
    user = store.get_user_by_username(body.username)
    if not user or not verify_password(body.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    return _tokens(user)


@router.post("/refresh")
def refresh(body: RefreshRequest):
    token = refresh_access_token(body.refresh_token)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")
    return {"accessToken": token, "tokenType": "bearer"}
