"""
API Routes - Account holder endpoints.

NO DICTIONARIES - All responses use typed Pydantic models.
"""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from videarn.api.dependencies import get_current_account, get_token_identity
from videarn.config import settings
from videarn.db.session import get_read_db, get_write_db
from videarn.exceptions import (
    AccountBannedError,
    AccountNotFoundError,
    DailyQuotaNotMetError,
    DatabaseError,
    DataIntegrityError,
    DuplicateWatchError,
    InsufficientBalanceError,
    InvalidAmountError,
    PlanInactiveError,
    PlanNotFoundError,
    ReferralCodeNotFoundError,
    RewardAlreadyClaimedError,
    VideoNotFoundError,
    WatchIncompleteError,
    WithdrawalBelowMinimumError,
    WithdrawalWindowClosedError,
    WriteVerificationError,
)
from videarn.models.api import (
    AccountResponse,
    ClaimResponse,
    DashboardResponse,
    HealthResponse,
    HistoryItem,
    HistoryResponse,
    PlanResponse,
    PurchaseRequest,
    ReferralResponse,
    ReferredAccountItem,
    RegisterAccountRequest,
    TransactionResponse,
    VideoResponse,
    WatchResponse,
    WatchVideoRequest,
    WithdrawalRequest,
    WithdrawalResponse,
    WithdrawalWindowResponse,
)
from videarn.models.domain import (
    AccountData,
    AccountIdentity,
    PlanData,
    PurchaseIntent,
    ReferralSummary,
    TransactionData,
    VideoData,
    WithdrawalData,
    WithdrawalIntent,
    WithdrawalWindow,
)
from videarn.services.accounts import AccountService
from videarn.services.catalog import CatalogService
from videarn.services.purchases import PurchaseService
from videarn.services.rewards import RewardService
from videarn.services.withdrawals import WithdrawalService

router = APIRouter()


# ============================================================================
# Response builders
# ============================================================================


def to_account_response(account: AccountData) -> AccountResponse:
    return AccountResponse(
        account_id=account.account_id,
        email=account.email,
        username=account.username,
        role=account.role,
        is_banned=account.is_banned,
        balance_minor=account.balance_minor,
        currency=settings.currency,
        plan_id=account.plan_id,
        plan_activated_at=account.plan_activated_at,
        last_withdrawal_at=account.last_withdrawal_at,
        referral_code=account.referral_code,
        referral_earnings_minor=account.referral_earnings_minor,
        created_at=account.created_at,
    )


def to_plan_response(plan: PlanData) -> PlanResponse:
    return PlanResponse(
        plan_id=plan.plan_id,
        name=plan.name,
        price_minor=plan.price_minor,
        daily_earning_minor=plan.daily_earning_minor,
        videos_per_day=plan.videos_per_day,
        validity_days=plan.validity_days,
    )


def to_video_response(video: VideoData, watched_today: bool = False) -> VideoResponse:
    return VideoResponse(
        video_id=video.video_id,
        title=video.title,
        description=video.description,
        video_url=video.video_url,
        watch_duration_seconds=video.watch_duration_seconds,
        created_at=video.created_at,
        watched_today=watched_today,
    )


def to_transaction_response(transaction: TransactionData) -> TransactionResponse:
    return TransactionResponse(
        transaction_id=transaction.transaction_id,
        account_id=transaction.account_id,
        plan_id=transaction.plan_id,
        amount_minor=transaction.amount_minor,
        payment_reference=transaction.payment_reference,
        proof_url=transaction.proof_url,
        status=transaction.status,
        created_at=transaction.created_at,
        resolved_at=transaction.resolved_at,
    )


def to_withdrawal_response(withdrawal: WithdrawalData) -> WithdrawalResponse:
    return WithdrawalResponse(
        withdrawal_id=withdrawal.withdrawal_id,
        account_id=withdrawal.account_id,
        amount_minor=withdrawal.amount_minor,
        payment_method=withdrawal.payment_method,
        account_number=withdrawal.account_number,
        account_name=withdrawal.account_name,
        status=withdrawal.status,
        created_at=withdrawal.created_at,
        resolved_at=withdrawal.resolved_at,
        balance_after=withdrawal.balance_after,
    )


def _window_response(window: WithdrawalWindow) -> WithdrawalWindowResponse:
    return WithdrawalWindowResponse(
        available=window.available,
        next_eligible_at=window.next_eligible_at,
    )


def _referral_response(summary: ReferralSummary) -> ReferralResponse:
    return ReferralResponse(
        referral_code=summary.referral_code,
        referral_earnings_minor=summary.referral_earnings_minor,
        referral_bonus_minor=settings.referral_bonus_minor,
        referred=[
            ReferredAccountItem(
                username=referred.username,
                joined_at=referred.joined_at,
                has_plan=referred.has_plan,
            )
            for referred in summary.referred
        ],
    )


# ============================================================================
# Health
# ============================================================================


@router.get("/health", response_model=HealthResponse)
async def health_check(db: AsyncSession = Depends(get_read_db)) -> HealthResponse:
    """
    Health check for load balancer.

    Verifies database connectivity.
    """
    try:
        await db.execute(text("SELECT 1"))
    except DBAPIError as exc:
        raise DatabaseError(str(exc.orig) if exc.orig else str(exc)) from exc

    return HealthResponse(
        status="healthy",
        database="connected",
        timestamp=datetime.now(UTC).isoformat(),
    )


# ============================================================================
# Accounts
# ============================================================================


@router.post("/v1/accounts", response_model=AccountResponse)
async def register_account(
    request: RegisterAccountRequest,
    identity: AccountIdentity = Depends(get_token_identity),
    db: AsyncSession = Depends(get_write_db),
) -> AccountResponse:
    """
    Register the authenticated identity (get-or-create).

    Called by the client right after sign-up and on every sign-in.
    """
    service = AccountService(db)

    try:
        account = await service.register_account(
            identity,
            username=request.username,
            email=request.email,
            referral_code=request.referral_code,
        )
    except ReferralCodeNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Referral code not found",
        ) from exc
    except WriteVerificationError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database integrity error",
        ) from exc

    if account.is_banned:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is banned")

    return to_account_response(account)


@router.get("/v1/me", response_model=AccountResponse)
async def get_me(account: AccountData = Depends(get_current_account)) -> AccountResponse:
    """Current account profile and balance."""
    return to_account_response(account)


@router.get("/v1/me/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    account: AccountData = Depends(get_current_account),
    db: AsyncSession = Depends(get_read_db),
) -> DashboardResponse:
    """
    Dashboard read model.

    Plan activity, quota and withdrawal window are evaluated server-side in
    the business timezone; clients render the flags as-is.
    """
    try:
        dashboard = await AccountService(db).get_dashboard(account.account_id)
    except AccountNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    progress = dashboard.progress
    return DashboardResponse(
        account=to_account_response(dashboard.account),
        plan=to_plan_response(dashboard.plan) if dashboard.plan else None,
        plan_active=progress.plan_active,
        plan_expires_at=progress.plan_expires_at,
        business_date=progress.business_date,
        watched_video_ids=list(progress.watched_video_ids),
        watched_today=progress.watched_today,
        videos_per_day=progress.videos_per_day,
        claimed_today=progress.claimed_today,
        can_claim=progress.eligibility.can_claim,
        claim_blocked_reason=progress.eligibility.reason,
        withdrawal=_window_response(dashboard.withdrawal),
        min_withdrawal_minor=settings.min_withdrawal_minor,
    )


@router.get("/v1/me/history", response_model=HistoryResponse)
async def get_history(
    account: AccountData = Depends(get_current_account),
    db: AsyncSession = Depends(get_read_db),
) -> HistoryResponse:
    """Plan purchases and withdrawals, newest first."""
    entries = await AccountService(db).list_history(account.account_id)
    return HistoryResponse(
        items=[
            HistoryItem(
                kind=entry.kind,
                id=entry.id,
                amount_minor=entry.amount_minor,
                status=entry.status,
                created_at=entry.created_at,
                details=entry.details,
            )
            for entry in entries
        ]
    )


@router.get("/v1/me/referrals", response_model=ReferralResponse)
async def get_referrals(
    account: AccountData = Depends(get_current_account),
    db: AsyncSession = Depends(get_read_db),
) -> ReferralResponse:
    """Referral code, earnings and referred accounts."""
    summary = await AccountService(db).list_referrals(account.account_id)
    return _referral_response(summary)


@router.post("/v1/me/referral-code", response_model=ReferralResponse)
async def generate_referral_code(
    account: AccountData = Depends(get_current_account),
    db: AsyncSession = Depends(get_write_db),
) -> ReferralResponse:
    """Generate a referral code for accounts created without one."""
    service = AccountService(db)
    try:
        await service.ensure_referral_code(account.account_id)
    except WriteVerificationError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not generate a referral code",
        ) from exc
    return _referral_response(await service.list_referrals(account.account_id))


# ============================================================================
# Catalog
# ============================================================================


@router.get("/v1/plans", response_model=list[PlanResponse])
async def list_plans(db: AsyncSession = Depends(get_read_db)) -> list[PlanResponse]:
    """All plans. Public."""
    plans = await CatalogService(db).list_plans()
    return [to_plan_response(plan) for plan in plans]


@router.get("/v1/videos", response_model=list[VideoResponse])
async def list_videos(
    account: AccountData = Depends(get_current_account),
    db: AsyncSession = Depends(get_read_db),
) -> list[VideoResponse]:
    """Videos, newest first, flagged when already watched today."""
    videos = await CatalogService(db).list_videos()
    watched_ids = set(await RewardService(db).watched_today_ids(account.account_id))
    return [to_video_response(video, video.video_id in watched_ids) for video in videos]


# ============================================================================
# Watch & Claim
# ============================================================================


@router.post(
    "/v1/videos/{video_id}/watch",
    response_model=WatchResponse,
    status_code=status.HTTP_201_CREATED,
)
async def watch_video(
    video_id: int,
    request: WatchVideoRequest | None = None,
    account: AccountData = Depends(get_current_account),
    db: AsyncSession = Depends(get_write_db),
) -> WatchResponse:
    """Record that the caller finished watching a video today."""
    service = RewardService(db)
    watched_seconds = request.watched_seconds if request else None

    try:
        watch = await service.record_watch(account.account_id, video_id, watched_seconds)

    except VideoNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    except WatchIncompleteError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Watch for at least {exc.required_seconds} seconds",
        ) from exc

    except DuplicateWatchError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Video already watched today",
        ) from exc

    except AccountBannedError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    except WriteVerificationError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database integrity error",
        ) from exc

    return WatchResponse(
        video_id=watch.video_id,
        watched_on=watch.watched_on,
        watched_at=watch.watched_at,
        watched_today=watch.watched_today,
    )


@router.post("/v1/rewards/claim", response_model=ClaimResponse)
async def claim_daily_reward(
    account: AccountData = Depends(get_current_account),
    db: AsyncSession = Depends(get_write_db),
) -> ClaimResponse:
    """Pay today's plan earning into the balance. At most once per business day."""
    service = RewardService(db)

    try:
        claim = await service.claim_daily_reward(account.account_id)

    except PlanInactiveError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="No active plan",
        ) from exc

    except DailyQuotaNotMetError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    except RewardAlreadyClaimedError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Reward already claimed today",
        ) from exc

    except AccountBannedError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    except (WriteVerificationError, DataIntegrityError) as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database integrity error",
        ) from exc

    return ClaimResponse(
        claimed_on=claim.claimed_on,
        amount_minor=claim.amount_minor,
        balance_before=claim.balance_before,
        balance_after=claim.balance_after,
        claimed_at=claim.claimed_at,
    )


# ============================================================================
# Purchases
# ============================================================================


@router.post(
    "/v1/purchases",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_purchase(
    request: PurchaseRequest,
    account: AccountData = Depends(get_current_account),
    db: AsyncSession = Depends(get_write_db),
) -> TransactionResponse:
    """
    Submit a plan purchase paid by bank transfer.

    The proof URL points at the screenshot uploaded to the storage service.
    The plan activates when an admin approves the transaction.
    """
    intent = PurchaseIntent(
        account_id=account.account_id,
        plan_id=request.plan_id,
        payment_reference=request.payment_reference,
        proof_url=request.proof_url,
    )

    try:
        transaction = await PurchaseService(db).submit_purchase(intent)

    except PlanNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    except AccountBannedError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    except WriteVerificationError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database integrity error",
        ) from exc

    return to_transaction_response(transaction)


# ============================================================================
# Withdrawals
# ============================================================================


@router.get("/v1/withdrawals/window", response_model=WithdrawalWindowResponse)
async def get_withdrawal_window(
    account: AccountData = Depends(get_current_account),
    db: AsyncSession = Depends(get_read_db),
) -> WithdrawalWindowResponse:
    """Whether a withdrawal can be requested this week."""
    window = await WithdrawalService(db).get_window(account.account_id)
    return _window_response(window)


@router.post(
    "/v1/withdrawals",
    response_model=WithdrawalResponse,
    status_code=status.HTTP_201_CREATED,
)
async def request_withdrawal(
    request: WithdrawalRequest,
    account: AccountData = Depends(get_current_account),
    db: AsyncSession = Depends(get_write_db),
) -> WithdrawalResponse:
    """Request a payout. The amount is reserved from the balance until reviewed."""
    intent = WithdrawalIntent(
        account_id=account.account_id,
        amount_minor=request.amount_minor,
        payment_method=request.payment_method.value,
        account_number=request.account_number,
        account_name=request.account_name,
    )

    try:
        withdrawal = await WithdrawalService(db).request_withdrawal(intent)

    except (InvalidAmountError, WithdrawalBelowMinimumError) as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        ) from exc

    except InsufficientBalanceError as exc:
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail=f"Insufficient balance. Balance: {exc.balance}, Required: {exc.required}",
        ) from exc

    except WithdrawalWindowClosedError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
            headers={"X-Next-Eligible-At": exc.next_eligible_at.isoformat()},
        ) from exc

    except AccountBannedError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    except (WriteVerificationError, DataIntegrityError) as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database integrity error",
        ) from exc

    return to_withdrawal_response(withdrawal)
