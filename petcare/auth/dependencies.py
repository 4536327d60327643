from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from petcare.auth.context import SessionManager
from petcare.auth.identity import Identity
from petcare.auth.session_store import SessionStore
from petcare.database import get_db

security = HTTPBearer(auto_error=False)


def get_session_store(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db),
) -> SessionStore:
    token = credentials.credentials if credentials else None
    return SessionStore(db, access_token=token)


def get_session_manager(
    store: SessionStore = Depends(get_session_store),
    db: Session = Depends(get_db),
) -> SessionManager:
    return SessionManager(db, store)


def get_current_identity(manager: SessionManager = Depends(get_session_manager)) -> Identity:
    identity = manager.start()
    if identity is None:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity
