import uuid
from datetime import datetime, timedelta, timezone

import jwt

from petcare.core import config

def create_access_token(user_id: int, email: str, expires_minutes: int | None = None) -> str:
    expire_minutes = expires_minutes or config.JWT_EXPIRES_MINUTES
    issued_at = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "email": email,
        "jti": uuid.uuid4().hex,
        "iat": issued_at,
        "exp": issued_at + timedelta(minutes=expire_minutes),
    }
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])


def read_access_token_claims(token: str) -> dict:
    # Signature is still checked; only expiry is ignored.
    return jwt.decode(
        token,
        config.JWT_SECRET_KEY,
        algorithms=[config.JWT_ALGORITHM],
        options={"verify_exp": False},
    )
