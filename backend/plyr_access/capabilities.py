from dataclasses import dataclass, fields
from functools import lru_cache


@dataclass(frozen=True)
class Capabilities:
    can_generate_all_time_card: bool = False
    can_share_grind_card: bool = False
    can_view_weekly_monthly_cards: bool = False
    can_appear_on_leaderboard: bool = False
    can_view_leaderboard: bool = False
    can_click_into_profiles: bool = False
    can_show_trainer_code: bool = False
    can_show_social_links: bool = False

    @property
    def has_full_access(self) -> bool:
        return all(getattr(self, field.name) for field in fields(self))


NO_CAPABILITIES = Capabilities()

FULL_CAPABILITIES = Capabilities(
    can_generate_all_time_card=True,
    can_share_grind_card=True,
    can_view_weekly_monthly_cards=True,
    can_appear_on_leaderboard=True,
    can_view_leaderboard=True,
    can_click_into_profiles=True,
    can_show_trainer_code=True,
    can_show_social_links=True,
)


@lru_cache(maxsize=None)
def resolve_capabilities(is_paid_user: bool, is_in_trial: bool) -> Capabilities:
    """
    Map subscription and trial state to feature flags.

    Paid members get everything. Unpaid members keep self-service card
    features while the trial runs and lose them afterwards. Appearing on
    the leaderboard is paid-only even during the trial, while browsing it
    is open to every tier.
    """
    if is_paid_user:
        return FULL_CAPABILITIES

    in_trial = bool(is_in_trial)
    return Capabilities(
        can_generate_all_time_card=in_trial,
        can_share_grind_card=in_trial,
        can_view_weekly_monthly_cards=in_trial,
        can_appear_on_leaderboard=False,
        can_view_leaderboard=True,
        can_click_into_profiles=False,
        can_show_trainer_code=False,
        can_show_social_links=False,
    )
