import logging
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from plyr_access.auth import create_access_token
from plyr_access.clock import ManualClock
from plyr_access.config import settings
from plyr_access.deps import get_clock, get_subscription_fetcher
from plyr_access.identity import Identity
from plyr_access.main import app
from plyr_access.subscription import PAID, UNPAID


SIGNUP_AT = datetime(2025, 1, 1, tzinfo=timezone.utc)
TEST_IDENTITY = Identity(user_id="6489db75-92ed-42bc-8b2b-87b40e6aa855", signup_at=SIGNUP_AT)


class _StaticFetcher:
    def __init__(self, state):
        self.state = state
        self.calls = []

    async def fetch(self, identity):
        self.calls.append(identity.user_id)
        return self.state


class _BrokenFetcher:
    async def fetch(self, identity):
        raise ConnectionError("supabase unreachable")


def _auth_headers(identity: Identity = TEST_IDENTITY) -> dict:
    return {"Authorization": f"Bearer {create_access_token(identity)}"}


def _override(fetcher, now: datetime) -> None:
    app.dependency_overrides[get_subscription_fetcher] = lambda: fetcher
    app.dependency_overrides[get_clock] = lambda: ManualClock(now)


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_access_requires_token(client):
    response = await client.get("/v1/access")

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHORIZED"
    assert response.headers.get("X-Request-Id")


@pytest.mark.asyncio
async def test_access_rejects_expired_token(client):
    token = create_access_token(TEST_IDENTITY, expires_in_sec=-10)

    response = await client.get("/v1/access", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["error"]["details"]["reason"] == "invalid_token"


@pytest.mark.asyncio
async def test_access_rejects_non_bearer_scheme(client):
    response = await client.get("/v1/access", headers={"Authorization": "Basic abc"})

    assert response.status_code == 401
    assert response.json()["error"]["details"]["reason"] == "invalid_scheme"


@pytest.mark.asyncio
async def test_access_for_trial_user_at_signup(client):
    fetcher = _StaticFetcher(UNPAID)
    _override(fetcher, SIGNUP_AT)

    response = await client.get("/v1/access", headers=_auth_headers())

    assert response.status_code == 200
    body = response.json()
    assert fetcher.calls == [TEST_IDENTITY.user_id]
    assert body["isInTrial"] is True
    assert body["daysRemaining"] == 7
    assert body["timeRemaining"] == {
        "days": 7,
        "hours": 0,
        "minutes": 0,
        "seconds": 0,
        "totalHours": 168,
        "totalMinutes": 10080,
        "totalSeconds": 604800,
    }
    assert body["canGenerateAllTimeCard"] is True
    assert body["canAppearOnLeaderboard"] is False
    assert body["canViewLeaderboard"] is True
    assert body["hasFullAccess"] is False
    assert body["loading"] is False


@pytest.mark.asyncio
async def test_access_exactly_at_trial_end(client):
    _override(_StaticFetcher(UNPAID), datetime(2025, 1, 8, tzinfo=timezone.utc))

    response = await client.get("/v1/access", headers=_auth_headers())

    body = response.json()
    assert body["isInTrial"] is False
    assert set(body["timeRemaining"].values()) == {0}
    assert body["canGenerateAllTimeCard"] is False
    assert body["canViewLeaderboard"] is True


@pytest.mark.asyncio
async def test_access_with_client_clock_behind_signup(client):
    _override(_StaticFetcher(UNPAID), datetime(2024, 12, 31, 23, 0, tzinfo=timezone.utc))

    response = await client.get("/v1/access", headers=_auth_headers())

    assert response.status_code == 200
    body = response.json()
    assert body["isInTrial"] is True
    assert body["timeRemaining"]["totalSeconds"] == 7 * 86400


@pytest.mark.asyncio
async def test_access_for_paid_user(client):
    _override(_StaticFetcher(PAID), SIGNUP_AT + timedelta(days=90))

    response = await client.get("/v1/access", headers=_auth_headers())

    body = response.json()
    assert body["isPaidUser"] is True
    assert body["hasFullAccess"] is True
    assert body["canShowSocialLinks"] is True
    assert body["isInTrial"] is False


@pytest.mark.asyncio
async def test_access_fails_closed_when_lookup_breaks(client):
    _override(_BrokenFetcher(), SIGNUP_AT + timedelta(days=1))

    response = await client.get("/v1/access", headers=_auth_headers())

    assert response.status_code == 200
    body = response.json()
    assert body["isPaidUser"] is False
    assert body["isInTrial"] is False
    assert body["canGenerateAllTimeCard"] is False
    assert body["canViewLeaderboard"] is True
    assert body["trialEndsAt"] is None


@pytest.mark.asyncio
async def test_access_in_free_mode(client, monkeypatch):
    monkeypatch.setattr(settings, "FREE_MODE", 1)
    _override(_StaticFetcher(UNPAID), SIGNUP_AT + timedelta(days=30))

    response = await client.get("/v1/access", headers=_auth_headers())

    body = response.json()
    assert body["isFreeMode"] is True
    assert body["hasFullAccess"] is True
    assert body["canAppearOnLeaderboard"] is True


@pytest.mark.asyncio
async def test_access_policy_lists_every_tier(client):
    response = await client.get("/v1/access/policy")

    assert response.status_code == 200
    body = response.json()
    assert body["trialWindowDays"] == 7
    tiers = {row["tier"]: row for row in body["tiers"]}
    assert set(tiers) == {"paid", "trial", "expired"}
    assert tiers["trial"]["canAppearOnLeaderboard"] is False
    assert tiers["trial"]["canViewLeaderboard"] is True
    assert tiers["expired"]["canShareGrindCard"] is False
    assert all(value for key, value in tiers["paid"].items() if key != "tier")


@pytest.mark.asyncio
async def test_request_id_generated_when_missing(client):
    response = await client.get("/health")

    request_id = response.headers.get("X-Request-Id")
    assert request_id
    uuid.UUID(request_id)


@pytest.mark.asyncio
async def test_request_id_reused_when_valid_header_provided(client):
    response = await client.get("/health", headers={"X-Request-Id": "req-access-123"})

    assert response.headers.get("X-Request-Id") == "req-access-123"


@pytest.mark.asyncio
async def test_request_id_invalid_header_returns_validation_failed(client):
    response = await client.get("/health", headers={"X-Request-Id": "   "})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_FAILED"
    assert response.headers.get("X-Request-Id")


@pytest.mark.asyncio
async def test_request_id_too_long_is_rejected_with_field_error(client):
    response = await client.get("/health", headers={"X-Request-Id": "x" * 129})

    assert response.status_code == 400
    field_errors = response.json()["error"]["details"]["fieldErrors"]
    assert field_errors[0]["field"] == "header.X-Request-Id"


@pytest.mark.asyncio
async def test_unknown_path_uses_error_envelope(client):
    response = await client.get("/v1/nothing-here", headers={"X-Request-Id": "req-404"})

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"
    assert response.headers.get("X-Request-Id") == "req-404"


@pytest.mark.asyncio
async def test_write_method_on_access_is_not_allowed(client):
    response = await client.post("/v1/access", headers=_auth_headers())

    assert response.status_code == 405
    assert response.json()["error"]["code"] == "METHOD_NOT_ALLOWED"


@pytest.mark.asyncio
async def test_access_log_line_carries_request_id(client, caplog):
    _override(_StaticFetcher(UNPAID), SIGNUP_AT)

    with caplog.at_level(logging.INFO, logger="plyr-access-api"):
        await client.get("/v1/access", headers={**_auth_headers(), "X-Request-Id": "req-eval-1"})

    evaluated = [r.getMessage() for r in caplog.records if "ACCESS_EVALUATED" in r.getMessage()]
    assert '"request_id":"req-eval-1"' in evaluated[0]
    assert '"path":"/v1/access"' in evaluated[0]
