"""
Eligibility Rules - Pure functions over explicit inputs.

NO DATABASE ACCESS - every rule takes the account state, the plan terms and
the current instant as arguments, so callers decide where "now" comes from.

Day and week boundaries are computed in the business timezone and returned
as aware datetimes; weeks start on Sunday 00:00.
"""

from datetime import UTC, date, datetime, time, timedelta
from typing import Protocol
from zoneinfo import ZoneInfo

from videarn.models.domain import ClaimEligibility, WithdrawalWindow

# Claim refusal reasons surfaced to the dashboard
REASON_NO_ACTIVE_PLAN = "no_active_plan"
REASON_ALREADY_CLAIMED = "already_claimed"
REASON_QUOTA_NOT_MET = "quota_not_met"


class PlanHolder(Protocol):
    """Anything carrying a plan reference and its activation instant."""

    plan_id: int | None
    plan_activated_at: datetime | None


class PlanTerms(Protocol):
    validity_days: int


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


# ============================================================================
# Calendar boundaries
# ============================================================================


def _local_midnight(day: date, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz).astimezone(UTC)


def business_date(now: datetime, tz: ZoneInfo) -> date:
    """Calendar date of `now` in the business timezone."""
    return now.astimezone(tz).date()


def start_of_day(now: datetime, tz: ZoneInfo) -> datetime:
    """Midnight of the current business day, as a UTC datetime."""
    return _local_midnight(business_date(now, tz), tz)


def start_of_week(now: datetime, tz: ZoneInfo) -> datetime:
    """Most recent Sunday 00:00 in the business timezone, as a UTC datetime."""
    today = business_date(now, tz)
    # date.weekday(): Monday == 0 ... Sunday == 6
    days_since_sunday = (today.weekday() + 1) % 7
    return _local_midnight(today - timedelta(days=days_since_sunday), tz)


def next_week_start(now: datetime, tz: ZoneInfo) -> datetime:
    """Upcoming Sunday 00:00 in the business timezone, as a UTC datetime."""
    sunday = start_of_week(now, tz).astimezone(tz).date()
    return _local_midnight(sunday + timedelta(days=7), tz)


# ============================================================================
# Plan activity
# ============================================================================


def plan_expires_at(account: PlanHolder, plan: PlanTerms | None) -> datetime | None:
    """Instant the account's plan stops being active, or None without a plan."""
    if account.plan_id is None or account.plan_activated_at is None or plan is None:
        return None
    return account.plan_activated_at + timedelta(days=plan.validity_days)


def is_plan_active(account: PlanHolder, plan: PlanTerms | None, now: datetime) -> bool:
    """
    Check whether the account's plan is active at `now`.

    Active means the account references a plan, has an activation instant,
    and `now` is before activation + validity_days. Never cached; callers
    recompute on every read.
    """
    expires_at = plan_expires_at(account, plan)
    if expires_at is None:
        return False
    return now < expires_at


# ============================================================================
# Daily claim
# ============================================================================


def evaluate_claim(
    plan_active: bool,
    watched_today: int,
    videos_per_day: int,
    claimed_today: bool,
) -> ClaimEligibility:
    """Decide whether today's reward can be claimed, with the blocking reason."""
    if not plan_active:
        return ClaimEligibility(can_claim=False, reason=REASON_NO_ACTIVE_PLAN)
    if claimed_today:
        return ClaimEligibility(can_claim=False, reason=REASON_ALREADY_CLAIMED)
    if watched_today < videos_per_day:
        return ClaimEligibility(can_claim=False, reason=REASON_QUOTA_NOT_MET)
    return ClaimEligibility(can_claim=True)


def can_claim(
    plan_active: bool,
    watched_today: int,
    videos_per_day: int,
    claimed_today: bool,
) -> bool:
    return evaluate_claim(plan_active, watched_today, videos_per_day, claimed_today).can_claim


# ============================================================================
# Weekly withdrawal window
# ============================================================================


def can_withdraw(
    last_withdrawal_at: datetime | None, now: datetime, tz: ZoneInfo
) -> WithdrawalWindow:
    """
    One withdrawal per calendar week.

    Unavailable when the last withdrawal happened at or after this week's
    Sunday 00:00; the window then reopens at the upcoming Sunday 00:00.
    """
    if last_withdrawal_at is None:
        return WithdrawalWindow(available=True)

    if last_withdrawal_at >= start_of_week(now, tz):
        return WithdrawalWindow(available=False, next_eligible_at=next_week_start(now, tz))

    return WithdrawalWindow(available=True)
