import asyncio
import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

from .clock import Clock, system_clock
from .identity import Identity
from .observability import log_ctx, log_ctx_json
from .scheduler import RefreshPolicy, RefreshScheduler
from .snapshot import UNAUTHENTICATED_SNAPSHOT, AccessSnapshot, build_snapshot
from .subscription import PAID, UNPAID, SubscriptionFetcher, SubscriptionState, resolve_subscription
from .trial import DEFAULT_TRIAL_WINDOW, trial_ends_at

logger = logging.getLogger("plyr-access-session")

Listener = Callable[[AccessSnapshot], None]


class EntitlementSession:
    """
    Live access state for whoever is signed in right now.

    The session owns one subscription lookup and one refresh timer. Every
    published value is an immutable `AccessSnapshot`; listeners get the
    current one on subscribe and each change after that.
    """

    def __init__(
        self,
        fetcher: SubscriptionFetcher,
        *,
        clock: Clock = system_clock,
        window: timedelta = DEFAULT_TRIAL_WINDOW,
        policy: RefreshPolicy = RefreshPolicy(),
        free_mode: bool = False,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._fetcher = fetcher
        self._clock = clock
        self._window = window
        self._free_mode = free_mode
        self._scheduler = RefreshScheduler(self._on_refresh, clock=clock, policy=policy, sleep=sleep)
        self._listeners: list[Listener] = []
        self._identity: Optional[Identity] = None
        self._subscription: Optional[SubscriptionState] = None
        self._expired_floor: Optional[datetime] = None
        self._fetch_task: Optional[asyncio.Task] = None
        self._snapshot: AccessSnapshot = UNAUTHENTICATED_SNAPSHOT
        self._disposed = False

    @property
    def snapshot(self) -> AccessSnapshot:
        return self._snapshot

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def disposed(self) -> bool:
        return self._disposed

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._ensure_alive()
        self._listeners.append(listener)
        self._notify_one(listener, self._snapshot)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_identity(self, identity: Optional[Identity]) -> None:
        self._ensure_alive()
        if identity == self._identity:
            return

        self._cancel_fetch()
        self._scheduler.stop()
        self._identity = identity
        self._subscription = None
        self._expired_floor = None

        if identity is None:
            self._publish(self._clock.now())
            return

        logger.info("ACCESS_IDENTITY_CHANGED context=%s", log_ctx_json(log_ctx(identity.user_id)))
        self._publish(self._clock.now())
        loop = asyncio.get_running_loop()
        self._fetch_task = loop.create_task(self._resolve(identity))
        self._scheduler.start()

    def apply_subscription_update(self, is_paid_user: bool) -> None:
        """Push a subscription change (e.g. checkout completed) without waiting for a tick."""
        self._ensure_alive()
        if self._identity is None:
            return
        current = self._subscription
        if not is_paid_user and current is not None and (current.is_paid_user or current.fetch_failed):
            # paid is terminal; after a failed lookup only an upgrade changes anything
            reason = "paid_is_terminal" if current.is_paid_user else "lookup_failed"
            logger.info(
                "ACCESS_UPDATE_IGNORED context=%s",
                log_ctx_json(log_ctx(self._identity.user_id, extra={"reason": reason})),
            )
            return
        self._cancel_fetch()
        self._subscription = PAID if is_paid_user else UNPAID
        self._publish_now()

    async def wait_until_resolved(self) -> AccessSnapshot:
        task = self._fetch_task
        if task is not None:
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise
        return self._snapshot

    def dispose(self) -> None:
        if self._disposed:
            return
        self._cancel_fetch()
        self._scheduler.stop()
        self._listeners.clear()
        self._disposed = True

    async def _resolve(self, identity: Identity) -> None:
        state = await resolve_subscription(self._fetcher, identity)
        if self._disposed or identity != self._identity:
            logger.info(
                "SUBSCRIPTION_RESULT_DISCARDED context=%s",
                log_ctx_json(log_ctx(identity.user_id, extra={"reason": "identity_changed"})),
            )
            return
        self._subscription = state
        self._publish_now()

    def _publish_now(self) -> None:
        now = self._clock.now()
        self._scheduler.mark_published(now)
        self._publish(now)

    def _on_refresh(self, now: datetime) -> None:
        if self._identity is None or self._subscription is None:
            return
        self._publish(now)

    def _effective_now(self, now: datetime) -> datetime:
        if self._identity is None or self._subscription is None:
            return now
        if self._expired_floor is not None:
            return max(now, self._expired_floor)
        ends_at = trial_ends_at(self._identity.signup_at, self._window)
        if now >= ends_at:
            self._expired_floor = ends_at
        return now

    def _publish(self, now: datetime) -> None:
        snapshot = build_snapshot(
            self._identity,
            self._subscription,
            self._effective_now(now),
            window=self._window,
            free_mode=self._free_mode,
        )
        if snapshot == self._snapshot:
            return
        self._snapshot = snapshot
        for listener in list(self._listeners):
            self._notify_one(listener, snapshot)

    def _notify_one(self, listener: Listener, snapshot: AccessSnapshot) -> None:
        try:
            listener(snapshot)
        except Exception:
            logger.error("Access listener failed", exc_info=True)

    def _cancel_fetch(self) -> None:
        if self._fetch_task is not None:
            self._fetch_task.cancel()
            self._fetch_task = None

    def _ensure_alive(self) -> None:
        if self._disposed:
            raise RuntimeError("EntitlementSession is disposed")
