import logging
from typing import Callable

from sqlalchemy.orm import Session

from petcare.auth.identity import Identity, IdentityResolver, SignUpResult
from petcare.auth.session_store import SessionStore
from petcare.core.errors import ProfileLookupError

logger = logging.getLogger(__name__)


class _Unknown:
    def __repr__(self) -> str:
        return 'UNKNOWN'


UNKNOWN = _Unknown()

Subscriber = Callable[[Identity | None], None]


class IdentityContext:
    """Holds the published identity and notifies subscribers on change.

    Starts as ``UNKNOWN`` until the first resolution. Writers are not
    serialized; the last ``publish`` wins.
    """

    def __init__(self):
        self._value = UNKNOWN
        self._subscribers: list[Subscriber] = []

    @property
    def value(self) -> Identity | None | _Unknown:
        return self._value

    @property
    def is_known(self) -> bool:
        return self._value is not UNKNOWN

    @property
    def identity(self) -> Identity | None:
        return None if self._value is UNKNOWN else self._value

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, identity: Identity | None) -> None:
        self._value = identity
        for callback in list(self._subscribers):
            try:
                callback(identity)
            except Exception:
                logger.exception('Identity subscriber %r failed', callback)


class SessionManager:
    """Single owner of an ``IdentityContext``."""

    def __init__(self, db: Session, store: SessionStore, context: IdentityContext | None = None):
        self.store = store
        self.resolver = IdentityResolver(db, store)
        self.context = context or IdentityContext()

    @property
    def identity(self) -> Identity | None:
        return self.context.identity

    def start(self) -> Identity | None:
        return self.refresh()

    def refresh(self) -> Identity | None:
        try:
            identity = self.resolver.resolve()
        except ProfileLookupError as exc:
            logger.error('Identity unresolved for user %s: %s', exc.user_id, exc.message)
            identity = None
        self.context.publish(identity)
        return identity

    def log_in(self, email: str, password: str) -> bool:
        identity = self.resolver.log_in(email, password)
        if identity is None:
            return False
        self.context.publish(identity)
        return True

    def sign_up(self, email: str, password: str) -> SignUpResult:
        return self.resolver.sign_up(email, password)

    def log_out(self) -> None:
        self.resolver.log_out()
        self.context.publish(None)
