import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Protocol

import httpx

from .clock import Clock, system_clock, to_utc
from .config import settings
from .errors import SubscriptionFetchError
from .identity import Identity
from .observability import log_ctx, log_ctx_json

logger = logging.getLogger("plyr-access-subscription")


@dataclass(frozen=True)
class SubscriptionState:
    is_paid_user: bool
    # lookup failed; treated as unpaid with no trial left
    fetch_failed: bool = False


UNPAID = SubscriptionState(is_paid_user=False)
PAID = SubscriptionState(is_paid_user=True)
FETCH_FAILED = SubscriptionState(is_paid_user=False, fetch_failed=True)


class SubscriptionFetcher(Protocol):
    async def fetch(self, identity: Identity) -> SubscriptionState:
        ...


def _parse_expires_at(raw_value: Any) -> Optional[datetime]:
    if raw_value is None or raw_value == "":
        return None
    if isinstance(raw_value, datetime):
        return to_utc(raw_value)
    candidate = str(raw_value).strip()
    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"
    try:
        return to_utc(datetime.fromisoformat(candidate))
    except ValueError:
        raise SubscriptionFetchError(f"unparseable subscription_expires_at: {raw_value!r}")


def is_subscription_active(
    is_paid_user: bool,
    expires_at: Optional[datetime],
    *,
    now: datetime,
) -> bool:
    if not is_paid_user:
        return False
    if expires_at is None:
        return True
    return to_utc(expires_at) > to_utc(now)


def subscription_from_profile_row(row: dict[str, Any], *, now: datetime) -> SubscriptionState:
    active = is_subscription_active(
        row.get("is_paid_user") is True,
        _parse_expires_at(row.get("subscription_expires_at")),
        now=now,
    )
    return PAID if active else UNPAID


class SupabaseSubscriptionFetcher:
    """Reads paid status from the Supabase `profiles` table over PostgREST."""

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        table: Optional[str] = None,
        clock: Clock = system_clock,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url if base_url is not None else settings.SUPABASE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.SUPABASE_SERVICE_ROLE_KEY
        self.table = table or settings.SUPABASE_PROFILES_TABLE
        self.clock = clock
        self.transport = transport
        self.timeout = httpx.Timeout(
            connect=settings.SUPABASE_CONNECT_TIMEOUT_SEC,
            read=settings.SUPABASE_READ_TIMEOUT_SEC,
            write=5.0,
            pool=5.0,
        )

    async def fetch(self, identity: Identity) -> SubscriptionState:
        if not self.base_url or not self.api_key:
            raise SubscriptionFetchError("Supabase is not configured")

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.get(
                f"{self.base_url}/rest/v1/{self.table}",
                params={
                    "user_id": f"eq.{identity.user_id}",
                    "select": "is_paid_user,subscription_expires_at",
                    "limit": "1",
                },
                headers={
                    "apikey": self.api_key,
                    "Authorization": f"Bearer {self.api_key}",
                    "Accept": "application/json",
                },
            )

        if response.status_code != 200:
            raise SubscriptionFetchError(f"profiles lookup failed with status {response.status_code}")

        try:
            rows = response.json()
        except ValueError:
            raise SubscriptionFetchError("profiles lookup returned invalid JSON")

        if not isinstance(rows, list) or not rows or not isinstance(rows[0], dict):
            raise SubscriptionFetchError("profile row not found")

        return subscription_from_profile_row(rows[0], now=self.clock.now())


async def resolve_subscription(fetcher: SubscriptionFetcher, identity: Identity) -> SubscriptionState:
    """Fetch paid status. Any failure resolves to FETCH_FAILED, never to paid."""
    try:
        state = await fetcher.fetch(identity)
    except Exception as exc:
        logger.warning(
            "SUBSCRIPTION_FETCH_FAILED context=%s",
            log_ctx_json(log_ctx(identity.user_id, extra={"reason": type(exc).__name__})),
        )
        return FETCH_FAILED

    if not isinstance(state, SubscriptionState):
        logger.warning(
            "SUBSCRIPTION_FETCH_INVALID context=%s",
            log_ctx_json(log_ctx(identity.user_id, extra={"result_type": type(state).__name__})),
        )
        return FETCH_FAILED
    return state
