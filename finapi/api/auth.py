from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from finapi.core.auth import create_session_token, get_current_user_id, hash_password, verify_password
from finapi.db.session import get_db
from finapi.models.user import User
from finapi.schemas.auth import LoginRequest, MeResponse, RegisterRequest, TokenResponse, UserRead

router = APIRouter(prefix="/auth", tags=["auth"])


def _token_response(user: User) -> TokenResponse:
    token = create_session_token(user_id=str(user.id), email=user.email, name=user.name)
    return TokenResponse(token=token, user=UserRead.model_validate(user))


@router.post("/register", response_model=TokenResponse, status_code=201)
def register(payload: RegisterRequest, db: Session = Depends(get_db)) -> TokenResponse:
    existing = db.execute(select(User).where(User.email == payload.email)).scalars().first()
    if existing:
        raise HTTPException(status_code=400, detail="User already exists with this email")
    h, s = hash_password(payload.password)
    user = User(email=payload.email, name=payload.name, password_hash=h, password_salt=s)
    db.add(user)
    db.commit()
    db.refresh(user)
    return _token_response(user)


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)) -> TokenResponse:
    user = db.execute(select(User).where(User.email == payload.email)).scalars().first()
    if not user or not user.is_active or not verify_password(payload.password, user.password_hash, user.password_salt):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return _token_response(user)


@router.get("/me", response_model=MeResponse)
def me(user_id=Depends(get_current_user_id), db: Session = Depends(get_db)) -> MeResponse:
    user = db.get(User, user_id)
    if not user or not user.is_active:
        raise HTTPException(status_code=404, detail="User not found")
    return MeResponse(user=UserRead.model_validate(user))
