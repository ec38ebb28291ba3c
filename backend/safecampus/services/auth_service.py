"""Auth service."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from safecampus.core.config import settings
from safecampus.core.rate_limit import SlidingWindowLimiter
from safecampus.core.security import hash_password, verify_password
from safecampus.models.user import User
from safecampus.schemas.auth import RegisterRequest, UpdateProfileRequest

login_limiter = SlidingWindowLimiter(limit=settings.login_attempts_per_minute)


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.execute(select(User).where(User.email == email.lower())).scalar_one_or_none()


def get_active_user(db: Session, user_id: int) -> User | None:
    user = db.get(User, user_id)
    if not user or not user.is_active:
        return None
    return user


def create_user(db: Session, data: RegisterRequest) -> User:
    if get_user_by_email(db, data.email):
        raise ValueError("Email already registered")
    user = User(
        email=data.email.lower(),
        hashed_password=hash_password(data.password),
        full_name=data.full_name,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def authenticate_user(db: Session, email: str, password: str) -> User | None:
    """Check credentials. Raises RateLimitError after too many attempts for one email."""
    login_limiter.hit(email.lower())
    user = get_user_by_email(db, email)
    if not user or not verify_password(password, user.hashed_password):
        return None
    if not user.is_active:
        return None
    return user


def update_profile(db: Session, user: User, data: UpdateProfileRequest) -> User:
    if data.full_name is not None:
        user.full_name = data.full_name
    if data.emergency_contact_phone is not None:
        user.emergency_contact_phone = data.emergency_contact_phone or None
    db.commit()
    db.refresh(user)
    return user
