"""Session authority: credential checks and access token sessions.

The store is bound to one caller. It holds that caller's current access
token the way a browser client holds its session, so ``get_session`` and
``sign_out`` take no arguments.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

import jwt
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from petcare.auth import jwt_handler
from petcare.core.errors import AuthenticationError, SessionError
from petcare.models.session import RevokedSession
from petcare.models.user import User

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

MIN_PASSWORD_LENGTH = 6


@dataclass(frozen=True)
class SessionUser:
    id: int
    email: str


@dataclass(frozen=True)
class AuthSession:
    access_token: str
    user: SessionUser
    expires_at: datetime


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def _session_from_claims(token: str, claims: dict) -> AuthSession:
    try:
        user = SessionUser(id=int(claims["sub"]), email=claims["email"])
    except (KeyError, TypeError, ValueError) as exc:
        raise SessionError("Invalid session token subject") from exc
    return AuthSession(
        access_token=token,
        user=user,
        expires_at=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
    )


class SessionStore:
    def __init__(self, db: Session, access_token: str | None = None):
        self.db = db
        self.access_token = access_token

    def get_session(self) -> AuthSession | None:
        """Return the current session, or None when there is no live one.

        Expired and revoked tokens count as "no session". A token that
        cannot be verified, or a failed revocation check, raises
        ``SessionError``.
        """
        if not self.access_token:
            return None

        try:
            claims = jwt_handler.decode_access_token(self.access_token)
        except jwt.ExpiredSignatureError:
            self.access_token = None
            return None
        except jwt.InvalidTokenError as exc:
            raise SessionError("Invalid session token") from exc

        session = _session_from_claims(self.access_token, claims)

        try:
            revoked = self.db.query(RevokedSession).filter(RevokedSession.jti == claims.get("jti")).first()
        except SQLAlchemyError as exc:
            raise SessionError("Session check failed") from exc

        if revoked is not None:
            self.access_token = None
            return None
        return session

    def get_user(self) -> SessionUser | None:
        session = self.get_session()
        if session is None:
            return None

        try:
            user = self.db.query(User).filter(User.id == session.user.id).first()
        except SQLAlchemyError as exc:
            raise SessionError("User lookup failed") from exc

        if user is None:
            return None
        return SessionUser(id=user.id, email=user.email)

    def sign_in(self, email: str, password: str) -> AuthSession:
        normalized_email = _normalize_email(email)
        try:
            user = self.db.query(User).filter(User.email == normalized_email).first()
        except SQLAlchemyError as exc:
            raise SessionError("Sign-in is unavailable") from exc

        if user is None or not pwd_context.verify(password or "", user.hashed_password):
            raise AuthenticationError("Invalid login credentials")

        token = jwt_handler.create_access_token(user_id=user.id, email=user.email)
        self.access_token = token
        return _session_from_claims(token, jwt_handler.decode_access_token(token))

    def sign_up(self, email: str, password: str) -> SessionUser:
        normalized_email = _normalize_email(email)
        if not normalized_email or "@" not in normalized_email:
            raise AuthenticationError("A valid email is required")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise AuthenticationError(f"Password should be at least {MIN_PASSWORD_LENGTH} characters")

        user = User(email=normalized_email, hashed_password=pwd_context.hash(password))
        try:
            self.db.add(user)
            self.db.commit()
            self.db.refresh(user)
        except IntegrityError as exc:
            self.db.rollback()
            raise AuthenticationError("User already registered") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise SessionError("Sign-up is unavailable") from exc

        return SessionUser(id=user.id, email=user.email)

    def sign_out(self) -> None:
        """Revoke the current token. Does nothing without one."""
        token, self.access_token = self.access_token, None
        if not token:
            return

        try:
            claims = jwt_handler.read_access_token_claims(token)
        except jwt.InvalidTokenError:
            logger.info("Discarding unverifiable session token on sign-out")
            return

        jti = claims.get("jti")
        if not jti:
            return

        try:
            if self.db.get(RevokedSession, jti) is None:
                self.db.add(RevokedSession(jti=jti, user_id=int(claims.get("sub", 0) or 0)))
                self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise SessionError("Sign-out could not be recorded") from exc
