import argparse
import asyncio
import logging
from datetime import datetime
from typing import Optional

from plyr_access.clock import to_utc
from plyr_access.config import settings
from plyr_access.identity import Identity
from plyr_access.observability import log_ctx, log_ctx_json
from plyr_access.scheduler import RefreshPolicy
from plyr_access.session import EntitlementSession
from plyr_access.snapshot import AccessSnapshot, snapshot_to_view
from plyr_access.subscription import SupabaseSubscriptionFetcher


logger = logging.getLogger("plyr-access-watch-script")


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Follow live access snapshots for one user")
    parser.add_argument("user_id")
    parser.add_argument("signup_at", help="ISO-8601 signup instant, e.g. 2025-01-01T00:00:00Z")
    parser.add_argument("--seconds", type=float, default=30.0, help="how long to watch (0 = until interrupted)")
    return parser.parse_args(argv)


def _log_snapshot(user_id: str, snapshot: AccessSnapshot) -> None:
    view = snapshot_to_view(snapshot)
    logger.info("ACCESS_SNAPSHOT context=%s", log_ctx_json(log_ctx(user_id, extra=view)))


async def _run(user_id: str, signup_at: datetime, seconds: float) -> int:
    session = EntitlementSession(
        SupabaseSubscriptionFetcher(),
        window=settings.trial_window(),
        policy=RefreshPolicy.from_settings(settings),
        free_mode=settings.free_mode_enabled(),
    )
    session.subscribe(lambda snapshot: _log_snapshot(user_id, snapshot))
    try:
        session.set_identity(Identity(user_id=user_id, signup_at=signup_at))
        await session.wait_until_resolved()
        if seconds > 0:
            await asyncio.sleep(seconds)
        else:
            await asyncio.Event().wait()
        return 0
    finally:
        session.dispose()


def main(argv: Optional[list[str]] = None) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    args = _parse_args(argv)
    raw_signup = args.signup_at.strip()
    if raw_signup.endswith("Z"):
        raw_signup = raw_signup[:-1] + "+00:00"
    signup_at = to_utc(datetime.fromisoformat(raw_signup))
    try:
        exit_code = asyncio.run(_run(args.user_id, signup_at, args.seconds))
    except KeyboardInterrupt:
        exit_code = 0
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
