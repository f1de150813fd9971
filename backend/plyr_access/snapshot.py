from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from .capabilities import FULL_CAPABILITIES, NO_CAPABILITIES, Capabilities, resolve_capabilities
from .identity import Identity
from .subscription import SubscriptionState
from .trial import DEFAULT_TRIAL_WINDOW, ZERO_TIME_REMAINING, TimeRemaining, compute_trial_window


@dataclass(frozen=True)
class AccessSnapshot:
    is_in_trial: bool
    days_remaining: int
    time_remaining: TimeRemaining
    is_paid_user: bool
    capabilities: Capabilities
    loading: bool
    is_free_mode: bool = False
    trial_ends_at: Optional[datetime] = None

    @property
    def can_generate_all_time_card(self) -> bool:
        return self.capabilities.can_generate_all_time_card

    @property
    def can_share_grind_card(self) -> bool:
        return self.capabilities.can_share_grind_card

    @property
    def can_view_weekly_monthly_cards(self) -> bool:
        return self.capabilities.can_view_weekly_monthly_cards

    @property
    def can_appear_on_leaderboard(self) -> bool:
        return self.capabilities.can_appear_on_leaderboard

    @property
    def can_view_leaderboard(self) -> bool:
        return self.capabilities.can_view_leaderboard

    @property
    def can_click_into_profiles(self) -> bool:
        return self.capabilities.can_click_into_profiles

    @property
    def can_show_trainer_code(self) -> bool:
        return self.capabilities.can_show_trainer_code

    @property
    def can_show_social_links(self) -> bool:
        return self.capabilities.can_show_social_links

    @property
    def has_full_access(self) -> bool:
        return self.capabilities.has_full_access


UNAUTHENTICATED_SNAPSHOT = AccessSnapshot(
    is_in_trial=False,
    days_remaining=0,
    time_remaining=ZERO_TIME_REMAINING,
    is_paid_user=False,
    capabilities=NO_CAPABILITIES,
    loading=False,
)

RESOLVING_SNAPSHOT = AccessSnapshot(
    is_in_trial=False,
    days_remaining=0,
    time_remaining=ZERO_TIME_REMAINING,
    is_paid_user=False,
    capabilities=NO_CAPABILITIES,
    loading=True,
)


def build_snapshot(
    identity: Optional[Identity],
    subscription: Optional[SubscriptionState],
    now: datetime,
    *,
    window: timedelta = DEFAULT_TRIAL_WINDOW,
    free_mode: bool = False,
) -> AccessSnapshot:
    """
    Compose the full access picture for one instant.

    `subscription=None` means the lookup has not finished; the result is then
    the all-false loading snapshot rather than a guess. A failed lookup is
    reported as unpaid with the trial already over.
    """
    if identity is None:
        return UNAUTHENTICATED_SNAPSHOT
    if subscription is None:
        return RESOLVING_SNAPSHOT

    trial = compute_trial_window(identity.signup_at, now, window)
    is_in_trial = trial.is_in_trial
    time_remaining = trial.time_remaining
    ends_at: Optional[datetime] = trial.trial_ends_at
    if subscription.fetch_failed:
        is_in_trial = False
        time_remaining = ZERO_TIME_REMAINING
        ends_at = None

    if free_mode:
        capabilities = FULL_CAPABILITIES
    else:
        capabilities = resolve_capabilities(subscription.is_paid_user, is_in_trial)

    return AccessSnapshot(
        is_in_trial=is_in_trial,
        days_remaining=time_remaining.days,
        time_remaining=time_remaining,
        is_paid_user=subscription.is_paid_user,
        capabilities=capabilities,
        loading=False,
        is_free_mode=free_mode,
        trial_ends_at=ends_at,
    )


def time_remaining_to_view(time_remaining: TimeRemaining) -> dict[str, int]:
    return {
        "days": time_remaining.days,
        "hours": time_remaining.hours,
        "minutes": time_remaining.minutes,
        "seconds": time_remaining.seconds,
        "totalHours": time_remaining.total_hours,
        "totalMinutes": time_remaining.total_minutes,
        "totalSeconds": time_remaining.total_seconds,
    }


def snapshot_to_view(snapshot: AccessSnapshot) -> dict[str, Any]:
    return {
        "isInTrial": snapshot.is_in_trial,
        "daysRemaining": snapshot.days_remaining,
        "timeRemaining": time_remaining_to_view(snapshot.time_remaining),
        "isPaidUser": snapshot.is_paid_user,
        "canGenerateAllTimeCard": snapshot.can_generate_all_time_card,
        "canShareGrindCard": snapshot.can_share_grind_card,
        "canViewWeeklyMonthlyCards": snapshot.can_view_weekly_monthly_cards,
        "canAppearOnLeaderboard": snapshot.can_appear_on_leaderboard,
        "canViewLeaderboard": snapshot.can_view_leaderboard,
        "canClickIntoProfiles": snapshot.can_click_into_profiles,
        "canShowTrainerCode": snapshot.can_show_trainer_code,
        "canShowSocialLinks": snapshot.can_show_social_links,
        "hasFullAccess": snapshot.has_full_access,
        "isFreeMode": snapshot.is_free_mode,
        "trialEndsAt": snapshot.trial_ends_at,
        "loading": snapshot.loading,
    }
