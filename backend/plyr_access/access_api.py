import logging

from fastapi import APIRouter, Depends

from .capabilities import Capabilities, resolve_capabilities
from .clock import Clock
from .config import settings
from .deps import get_clock, get_current_identity, get_subscription_fetcher
from .identity import Identity
from .observability import log_ctx, log_ctx_json
from .schemas import AccessPolicyResponse, AccessStatusResponse, CapabilityRow
from .snapshot import build_snapshot, snapshot_to_view
from .subscription import SubscriptionFetcher, resolve_subscription

logger = logging.getLogger("plyr-access-api")

router = APIRouter(prefix="/v1/access", tags=["Access"])


def _capability_row(tier: str, capabilities: Capabilities) -> CapabilityRow:
    return CapabilityRow(
        tier=tier,
        canGenerateAllTimeCard=capabilities.can_generate_all_time_card,
        canShareGrindCard=capabilities.can_share_grind_card,
        canViewWeeklyMonthlyCards=capabilities.can_view_weekly_monthly_cards,
        canAppearOnLeaderboard=capabilities.can_appear_on_leaderboard,
        canViewLeaderboard=capabilities.can_view_leaderboard,
        canClickIntoProfiles=capabilities.can_click_into_profiles,
        canShowTrainerCode=capabilities.can_show_trainer_code,
        canShowSocialLinks=capabilities.can_show_social_links,
    )


@router.get("", response_model=AccessStatusResponse)
async def get_access_status(
    identity: Identity = Depends(get_current_identity),
    fetcher: SubscriptionFetcher = Depends(get_subscription_fetcher),
    clock: Clock = Depends(get_clock),
):
    subscription = await resolve_subscription(fetcher, identity)
    snapshot = build_snapshot(
        identity,
        subscription,
        clock.now(),
        window=settings.trial_window(),
        free_mode=settings.free_mode_enabled(),
    )
    logger.info(
        "ACCESS_EVALUATED context=%s",
        log_ctx_json(
            log_ctx(
                identity.user_id,
                extra={
                    "is_paid_user": snapshot.is_paid_user,
                    "is_in_trial": snapshot.is_in_trial,
                    "fetch_failed": subscription.fetch_failed,
                },
            )
        ),
    )
    return AccessStatusResponse(**snapshot_to_view(snapshot))


@router.get("/policy", response_model=AccessPolicyResponse)
async def get_access_policy():
    return AccessPolicyResponse(
        trialWindowDays=settings.TRIAL_WINDOW_DAYS,
        refreshPublishSeconds=settings.REFRESH_PUBLISH_SEC,
        isFreeMode=settings.free_mode_enabled(),
        tiers=[
            _capability_row("paid", resolve_capabilities(True, False)),
            _capability_row("trial", resolve_capabilities(False, True)),
            _capability_row("expired", resolve_capabilities(False, False)),
        ],
    )
