"""FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends, HTTPException, Path, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from safecampus.core.security import decode_access_token
from safecampus.db.session import get_db
from safecampus.models.user import User
from safecampus.services.auth_service import get_active_user
from safecampus.services.incident_store import IncidentStore
from safecampus.services.session_runtime import SessionRuntime, runtime_registry

security = HTTPBearer(auto_error=False)


def get_optional_user(
    db: Annotated[Session, Depends(get_db)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> User | None:
    """Current user, or None for anonymous requests. A bad token is still a 401."""
    if not credentials:
        return None
    user_id = decode_access_token(credentials.credentials)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user = get_active_user(db, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def get_current_user(user: Annotated[User | None, Depends(get_optional_user)]) -> User:
    """Require authenticated user. Raises 401 if not authenticated."""
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def get_incident_store() -> IncidentStore:
    return runtime_registry.store


async def get_runtime(
    session_id: Annotated[str, Path()],
    user: Annotated[User | None, Depends(get_optional_user)],
) -> SessionRuntime:
    """Look up the client session and align its identity with the request's."""
    runtime = runtime_registry.get(session_id)
    if runtime is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    runtime.touch()
    runtime.sync_user(user.id if user else None)
    return runtime
