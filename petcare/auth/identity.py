"""Identity resolution.

An ``Identity`` is the session authority's user (id and email) merged with
the relational profile (role, display name and owned pets). Both the
startup check and the post-sign-in lookup read the profile through
``lookup_profile``, so role always comes from ``users.role``.
"""

import logging
from dataclasses import dataclass

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from petcare.auth.session_store import SessionStore, SessionUser
from petcare.core.errors import AuthenticationError, PetcareError, ProfileLookupError, SessionError
from petcare.models.user import User

logger = logging.getLogger(__name__)


class PetSummary(BaseModel):
    id: int
    owner_id: int
    name: str
    species: str | None = None

    class Config:
        from_attributes = True
        frozen = True


class Identity(BaseModel):
    id: int
    email: str
    role: str | None = None
    display_name: str | None = None
    pets: tuple[PetSummary, ...] = ()
    # False for the partial identity published right after log_in.
    pets_loaded: bool = False

    class Config:
        frozen = True


@dataclass(frozen=True)
class Profile:
    role: str | None
    name: str | None
    pets: tuple[PetSummary, ...]


@dataclass(frozen=True)
class SignUpResult:
    user: SessionUser | None = None
    error: str | None = None


def lookup_profile(db: Session, user_id: int, include_pets: bool = True) -> Profile:
    query = db.query(User).filter(User.id == user_id)
    if include_pets:
        query = query.options(selectinload(User.pets))

    try:
        user = query.first()
        pets = tuple(PetSummary.model_validate(pet) for pet in user.pets) if user and include_pets else ()
    except SQLAlchemyError as exc:
        raise ProfileLookupError(user_id, str(exc)) from exc

    if user is None:
        raise ProfileLookupError(user_id, 'profile not found')

    return Profile(role=user.role, name=user.name, pets=pets)


def merge_identity(user: SessionUser, profile: Profile, pets_loaded: bool = True) -> Identity:
    return Identity(
        id=user.id,
        email=user.email,
        role=profile.role,
        display_name=profile.name,
        pets=profile.pets if pets_loaded else (),
        pets_loaded=pets_loaded,
    )


class IdentityResolver:
    def __init__(self, db: Session, store: SessionStore):
        self.db = db
        self.store = store

    def resolve(self) -> Identity | None:
        """Resolve the full identity for the current session.

        Returns None when there is no session; the profile is not queried
        in that case. Raises ``ProfileLookupError`` when a session exists
        but its profile cannot be loaded.
        """
        try:
            session = self.store.get_session()
        except SessionError as exc:
            logger.warning('Session check failed, treating as signed out: %s', exc.message)
            return None

        if session is None:
            return None

        profile = lookup_profile(self.db, session.user.id)
        return merge_identity(session.user, profile)

    def log_in(self, email: str, password: str) -> Identity | None:
        """Sign in and derive the partial identity (no pets)."""
        try:
            session = self.store.sign_in(email, password)
            profile = lookup_profile(self.db, session.user.id, include_pets=False)
        except AuthenticationError as exc:
            logger.info('Sign-in rejected: %s', exc.message)
            return None
        except PetcareError:
            logger.exception('Sign-in failed')
            return None

        return merge_identity(session.user, profile, pets_loaded=False)

    def sign_up(self, email: str, password: str) -> SignUpResult:
        try:
            user = self.store.sign_up(email, password)
        except PetcareError as exc:
            logger.error('Sign-up failed: %s', exc.message)
            return SignUpResult(error=exc.message)
        return SignUpResult(user=user)

    def log_out(self) -> None:
        try:
            self.store.sign_out()
        except SessionError:
            logger.exception('Sign-out could not be recorded at the session authority')
