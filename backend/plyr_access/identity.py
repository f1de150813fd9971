from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from .clock import to_utc
from .errors import AccessError


@dataclass(frozen=True)
class Identity:
    user_id: str
    signup_at: datetime


def _unauthorized(reason: str) -> AccessError:
    return AccessError(
        code="UNAUTHORIZED",
        message="Authentication required",
        status_code=401,
        details={"reason": reason},
    )


def _parse_created_at(raw_value: Any) -> datetime:
    if isinstance(raw_value, bool):
        raise _unauthorized("invalid_created_at")
    if isinstance(raw_value, (int, float)):
        try:
            return datetime.fromtimestamp(raw_value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            raise _unauthorized("invalid_created_at")
    if isinstance(raw_value, str) and raw_value.strip():
        candidate = raw_value.strip()
        if candidate.endswith("Z"):
            candidate = candidate[:-1] + "+00:00"
        try:
            return to_utc(datetime.fromisoformat(candidate))
        except ValueError:
            raise _unauthorized("invalid_created_at")
    raise _unauthorized("missing_created_at")


def identity_from_claims(claims: dict[str, Any]) -> Identity:
    user_id = str(claims.get("sub") or "").strip()
    if not user_id:
        raise _unauthorized("missing_sub")
    return Identity(user_id=user_id, signup_at=_parse_created_at(claims.get("created_at")))
