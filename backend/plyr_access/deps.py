from typing import Optional

from fastapi import Header

from .auth import decode_access_token
from .clock import Clock, system_clock
from .errors import AccessError
from .identity import Identity, identity_from_claims
from .subscription import SubscriptionFetcher, SupabaseSubscriptionFetcher


def _unauthorized(reason: str) -> AccessError:
    return AccessError(
        code="UNAUTHORIZED",
        message="Authentication required",
        status_code=401,
        details={"reason": reason},
    )


async def get_current_identity(authorization: Optional[str] = Header(default=None)) -> Identity:
    if not authorization:
        raise _unauthorized("missing_token")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise _unauthorized("invalid_scheme")

    claims = decode_access_token(token.strip())
    if claims is None:
        raise _unauthorized("invalid_token")
    return identity_from_claims(claims)


def get_clock() -> Clock:
    return system_clock


def get_subscription_fetcher() -> SubscriptionFetcher:
    return SupabaseSubscriptionFetcher()
