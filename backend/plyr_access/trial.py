from dataclasses import dataclass
from datetime import datetime, timedelta

from .clock import to_utc


DEFAULT_TRIAL_WINDOW = timedelta(days=7)

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class TimeRemaining:
    days: int = 0
    hours: int = 0
    minutes: int = 0
    seconds: int = 0
    total_hours: int = 0
    total_minutes: int = 0
    total_seconds: int = 0

    @classmethod
    def from_seconds(cls, total_seconds: int) -> "TimeRemaining":
        total_seconds = max(0, int(total_seconds))
        days, rest = divmod(total_seconds, SECONDS_PER_DAY)
        hours, rest = divmod(rest, SECONDS_PER_HOUR)
        minutes, seconds = divmod(rest, SECONDS_PER_MINUTE)
        return cls(
            days=days,
            hours=hours,
            minutes=minutes,
            seconds=seconds,
            total_hours=total_seconds // SECONDS_PER_HOUR,
            total_minutes=total_seconds // SECONDS_PER_MINUTE,
            total_seconds=total_seconds,
        )


ZERO_TIME_REMAINING = TimeRemaining()


@dataclass(frozen=True)
class TrialWindow:
    is_in_trial: bool
    trial_ends_at: datetime
    time_remaining: TimeRemaining


def trial_ends_at(signup_at: datetime, window: timedelta = DEFAULT_TRIAL_WINDOW) -> datetime:
    return to_utc(signup_at) + window


def is_in_trial(signup_at: datetime, now: datetime, window: timedelta = DEFAULT_TRIAL_WINDOW) -> bool:
    if window <= timedelta(0):
        return False
    return to_utc(now) < trial_ends_at(signup_at, window)


def _remaining(signup_at: datetime, now: datetime, window: timedelta) -> timedelta:
    if window <= timedelta(0):
        return timedelta(0)
    remaining = trial_ends_at(signup_at, window) - to_utc(now)
    # now < signup_at happens with client/server skew; never report more than the window
    return max(timedelta(0), min(window, remaining))


def compute_time_remaining(
    signup_at: datetime,
    now: datetime,
    window: timedelta = DEFAULT_TRIAL_WINDOW,
) -> TimeRemaining:
    remaining = _remaining(signup_at, now, window)
    # floor division only: a partial second left is not a second left
    return TimeRemaining.from_seconds(remaining // timedelta(seconds=1))


def compute_trial_window(
    signup_at: datetime,
    now: datetime,
    window: timedelta = DEFAULT_TRIAL_WINDOW,
) -> TrialWindow:
    in_trial = is_in_trial(signup_at, now, window)
    return TrialWindow(
        is_in_trial=in_trial,
        trial_ends_at=trial_ends_at(signup_at, window),
        time_remaining=compute_time_remaining(signup_at, now, window) if in_trial else ZERO_TIME_REMAINING,
    )
