import time
from typing import Any, Optional

from jose import jwt, JWTError

from .config import settings
from .identity import Identity

JWT_ALGORITHM = "HS256"


def identity_claims(identity: Identity) -> dict[str, Any]:
    return {
        "sub": identity.user_id,
        "created_at": identity.signup_at.isoformat(),
    }


def create_access_token(identity: Identity, *, expires_in_sec: Optional[int] = None) -> str:
    """Sign a session token carrying the user id and signup instant."""
    ttl = settings.JWT_EXPIRES_SEC if expires_in_sec is None else expires_in_sec
    to_encode = identity_claims(identity)
    to_encode["exp"] = int(time.time() + ttl)
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[dict]:
    try:
        decoded_token = jwt.decode(token, settings.JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None
    exp = decoded_token.get("exp")
    if exp is None or exp < time.time():
        return None
    return decoded_token
