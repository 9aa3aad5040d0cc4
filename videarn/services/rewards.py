"""
Reward Service - Watch facts and the daily claim.

NO DICTIONARIES - All operations use strongly typed domain models.

The daily payout is at-most-once per account per business day. The unique
(account_id, claimed_on) constraint on daily_claims is the guarantee; the
eligibility re-check under the account row lock only produces the friendlier
error for the common case.
"""

from collections.abc import Callable
from datetime import date, datetime
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from videarn.config import settings
from videarn.db.models import Account, DailyClaim, Plan, Video, WatchedVideo
from videarn.exceptions import (
    AccountBannedError,
    AccountNotFoundError,
    DailyQuotaNotMetError,
    DataIntegrityError,
    DuplicateWatchError,
    PlanInactiveError,
    RewardAlreadyClaimedError,
    VideoNotFoundError,
    WatchIncompleteError,
    WriteVerificationError,
)
from videarn.models.domain import ClaimData, DailyProgress, WatchData
from videarn.observability.metrics import metrics
from videarn.observability.tracing import add_span_attributes, get_tracer, ledger_span
from videarn.services.eligibility import (
    business_date,
    evaluate_claim,
    is_plan_active,
    plan_expires_at,
    utc_now,
)

logger = get_logger(__name__)
tracer = get_tracer(__name__)


class RewardService:
    """
    Watch tracking and daily reward payout.

    Write operations follow the pattern:
    1. Lock the account row (SELECT FOR UPDATE)
    2. Re-validate eligibility at write time
    3. Insert the fact row and flush
    4. Read back and verify
    5. Commit
    """

    def __init__(
        self,
        session: AsyncSession,
        clock: Callable[[], datetime] | None = None,
        tz: ZoneInfo | None = None,
    ) -> None:
        """Initialize reward service with database session and business clock."""
        self.session = session
        self.clock = clock or utc_now
        self.tz = tz or settings.tz

    # ========================================================================
    # Watch quota
    # ========================================================================

    async def record_watch(
        self, account_id: UUID, video_id: int, watched_seconds: int | None = None
    ) -> WatchData:
        """
        Record that the account finished watching a video today.

        Raises:
            AccountNotFoundError: Account doesn't exist
            AccountBannedError: Account is banned
            VideoNotFoundError: Video doesn't exist
            WatchIncompleteError: Reported watch time below the video's duration
            DuplicateWatchError: Video already recorded today
        """
        account = await self._find_account(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        if account.is_banned:
            raise AccountBannedError(account_id)

        video = await self._find_video(video_id)
        if video is None:
            raise VideoNotFoundError(video_id)

        if watched_seconds is not None and watched_seconds < video.watch_duration_seconds:
            metrics.record_watch("incomplete")
            raise WatchIncompleteError(video_id, watched_seconds, video.watch_duration_seconds)

        now = self.clock()
        today = business_date(now, self.tz)

        watch = WatchedVideo(
            account_id=account_id,
            video_id=video_id,
            watched_on=today,
            watched_at=now,
        )
        self.session.add(watch)

        try:
            await self.session.flush()
        except IntegrityError as exc:
            await self.session.rollback()
            metrics.record_watch("duplicate")
            raise DuplicateWatchError(account_id, video_id) from exc

        verified_watch = await self.session.get(WatchedVideo, watch.id)
        if verified_watch is None:
            raise WriteVerificationError(f"Watch {watch.id} not found after insert")

        await self.session.commit()

        watched_today = await self._count_watched_on(account_id, today)
        metrics.record_watch("recorded")
        logger.info(
            "video_watch_recorded",
            account_id=str(account_id),
            video_id=video_id,
            watched_on=today.isoformat(),
            watched_today=watched_today,
        )

        return WatchData(
            account_id=account_id,
            video_id=video_id,
            watched_on=today,
            watched_at=verified_watch.watched_at,
            watched_today=watched_today,
        )

    async def watched_today_ids(self, account_id: UUID) -> tuple[int, ...]:
        """Video ids the account has watched in the current business day."""
        return await self._find_watched_ids_on(account_id, business_date(self.clock(), self.tz))

    async def watched_today_count(self, account_id: UUID) -> int:
        """Distinct videos watched in the current business day."""
        return await self._count_watched_on(account_id, business_date(self.clock(), self.tz))

    async def has_claimed_today(self, account_id: UUID) -> bool:
        """Whether today's reward has already been paid."""
        return await self._has_claimed_on(account_id, business_date(self.clock(), self.tz))

    async def progress_for(
        self, account: Account, plan: Plan | None, now: datetime | None = None
    ) -> DailyProgress:
        """
        Build today's quota and claim state for an already loaded account.

        Plan activity is recomputed from the activation instant every time.
        """
        now = now or self.clock()
        today = business_date(now, self.tz)

        plan_active = is_plan_active(account, plan, now)
        watched_ids = await self._find_watched_ids_on(account.id, today)
        claimed_today = await self._has_claimed_on(account.id, today)
        videos_per_day = plan.videos_per_day if plan is not None else 0

        return DailyProgress(
            business_date=today,
            plan_active=plan_active,
            plan_expires_at=plan_expires_at(account, plan),
            watched_video_ids=watched_ids,
            videos_per_day=videos_per_day,
            claimed_today=claimed_today,
            eligibility=evaluate_claim(
                plan_active=plan_active,
                watched_today=len(watched_ids),
                videos_per_day=videos_per_day,
                claimed_today=claimed_today,
            ),
        )

    async def get_daily_progress(self, account_id: UUID) -> DailyProgress:
        """Today's quota and claim state for an account."""
        account = await self._find_account(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        plan = await self._find_plan(account.plan_id) if account.plan_id is not None else None
        return await self.progress_for(account, plan)

    # ========================================================================
    # Daily claim
    # ========================================================================

    async def claim_daily_reward(self, account_id: UUID) -> ClaimData:
        """
        Pay today's reward into the account balance.

        This operation requires:
        1. Row-level locking (SELECT FOR UPDATE)
        2. Plan, quota and already-claimed checks under the lock
        3. Claim insert + balance credit in one transaction
        4. Write verification

        Raises:
            AccountNotFoundError: Account doesn't exist
            AccountBannedError: Account is banned
            PlanInactiveError: No plan or the plan has expired
            RewardAlreadyClaimedError: Today's reward was already paid
            DailyQuotaNotMetError: Fewer videos watched today than the plan requires
        """
        with ledger_span(tracer, "claim_daily_reward", account_id=account_id) as span:
            claim = await self._claim_daily_reward(account_id)
            add_span_attributes(span, amount_minor=claim.amount_minor)
            return claim

    async def _claim_daily_reward(self, account_id: UUID) -> ClaimData:
        account = await self._lock_account_for_update(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        if account.is_banned:
            metrics.record_claim("banned")
            raise AccountBannedError(account_id)

        plan = await self._find_plan(account.plan_id) if account.plan_id is not None else None

        now = self.clock()
        today = business_date(now, self.tz)

        if plan is None or not is_plan_active(account, plan, now):
            metrics.record_claim("plan_inactive")
            raise PlanInactiveError(account_id)

        if await self._has_claimed_on(account_id, today):
            metrics.record_claim("already_claimed")
            raise RewardAlreadyClaimedError(account_id)

        watched = await self._count_watched_on(account_id, today)
        if watched < plan.videos_per_day:
            metrics.record_claim("quota_not_met")
            raise DailyQuotaNotMetError(watched, plan.videos_per_day)

        amount = plan.daily_earning_minor
        balance_before = account.balance_minor
        balance_after = balance_before + amount

        claim = DailyClaim(
            account_id=account_id,
            claimed_on=today,
            amount_minor=amount,
            balance_before=balance_before,
            balance_after=balance_after,
            claimed_at=now,
        )
        self.session.add(claim)

        try:
            await self.session.flush()
        except IntegrityError as exc:
            # Lost the race against a concurrent claim for the same day
            await self.session.rollback()
            metrics.record_claim("already_claimed")
            logger.warning(
                "daily_claim_conflict",
                account_id=str(account_id),
                claimed_on=today.isoformat(),
            )
            raise RewardAlreadyClaimedError(account_id) from exc

        verified_claim = await self.session.get(DailyClaim, claim.id)
        if verified_claim is None:
            raise WriteVerificationError(f"Daily claim {claim.id} not found after insert")

        account.balance_minor = balance_after
        await self.session.flush()

        verified_account = await self.session.get(Account, account.id)
        if verified_account is None:
            raise WriteVerificationError(f"Account {account.id} disappeared after update")

        if verified_account.balance_minor != balance_after:
            raise DataIntegrityError(
                f"Balance mismatch: expected {balance_after}, got {verified_account.balance_minor}"
            )

        await self.session.commit()

        metrics.record_claim("paid", amount)
        logger.info(
            "daily_reward_claimed",
            account_id=str(account_id),
            claimed_on=today.isoformat(),
            amount_minor=amount,
            balance_after=balance_after,
        )

        return ClaimData(
            account_id=account_id,
            claimed_on=today,
            amount_minor=amount,
            balance_before=balance_before,
            balance_after=balance_after,
            claimed_at=verified_claim.claimed_at,
        )

    # ========================================================================
    # Private Helper Methods
    # ========================================================================

    async def _find_account(self, account_id: UUID) -> Account | None:
        stmt = select(Account).where(Account.id == account_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def _lock_account_for_update(self, account_id: UUID) -> Account | None:
        """Lock account row for update (SELECT FOR UPDATE)."""
        stmt = select(Account).where(Account.id == account_id).with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def _find_plan(self, plan_id: int) -> Plan | None:
        stmt = select(Plan).where(Plan.id == plan_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def _find_video(self, video_id: int) -> Video | None:
        stmt = select(Video).where(Video.id == video_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def _find_watched_ids_on(self, account_id: UUID, day: date) -> tuple[int, ...]:
        stmt = (
            select(WatchedVideo.video_id)
            .where(WatchedVideo.account_id == account_id, WatchedVideo.watched_on == day)
            .order_by(WatchedVideo.watched_at)
        )
        result = await self.session.execute(stmt)
        return tuple(result.scalars().all())

    async def _count_watched_on(self, account_id: UUID, day: date) -> int:
        stmt = select(func.count(WatchedVideo.id)).where(
            WatchedVideo.account_id == account_id, WatchedVideo.watched_on == day
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def _has_claimed_on(self, account_id: UUID, day: date) -> bool:
        stmt = select(DailyClaim.id).where(
            DailyClaim.account_id == account_id, DailyClaim.claimed_on == day
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None
