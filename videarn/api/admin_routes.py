"""
Admin API routes for reviewing purchases and withdrawals and managing the catalog.

Protected by JWT authentication. Every route requires the admin role.
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from videarn.api.dependencies import require_admin
from videarn.api.routes import (
    to_account_response,
    to_plan_response,
    to_transaction_response,
    to_video_response,
    to_withdrawal_response,
)
from videarn.db.session import get_read_db, get_write_db
from videarn.exceptions import (
    AccountNotFoundError,
    AuthorizationError,
    DataIntegrityError,
    PlanNameTakenError,
    RequestAlreadyResolvedError,
    TransactionNotFoundError,
    VideoNotFoundError,
    VideoValidationError,
    WithdrawalNotFoundError,
    WriteVerificationError,
)
from videarn.models.api import (
    AccountResponse,
    AccountRole,
    PlanResponse,
    RequestStatus,
    TransactionResponse,
    VideoResponse,
    WithdrawalResponse,
)
from videarn.models.domain import AccountData, VideoDraft
from videarn.services.admin import AdminService
from videarn.services.catalog import CatalogService
from videarn.services.purchases import PurchaseService
from videarn.services.withdrawals import WithdrawalService

logger = get_logger(__name__)
router = APIRouter(prefix="/admin", tags=["admin"])


# ============================================================================
# Request/Response Models
# ============================================================================


class StatsResponse(BaseModel):
    """Admin overview totals."""

    total_users: int
    total_approved_purchases_minor: int
    total_outstanding_balance_minor: int
    pending_transactions: int
    pending_withdrawals: int


class AdminTransactionResponse(TransactionResponse):
    """Transaction with the purchaser's contact details."""

    email: str | None
    username: str
    plan_name: str


class AdminWithdrawalResponse(WithdrawalResponse):
    """Withdrawal with the requester's contact details."""

    email: str | None
    username: str


class ApprovalResponse(BaseModel):
    """Result of approving a plan purchase."""

    transaction: TransactionResponse
    plan_activated_at: datetime
    first_plan: bool
    referral_bonus_awarded: bool


class UserListResponse(BaseModel):
    """Paginated user list response."""

    users: list[AccountResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class RoleUpdateRequest(BaseModel):
    """Request to change an account's role."""

    role: AccountRole


class PlanCreateRequest(BaseModel):
    """Request to create a plan. Plans cannot be edited afterwards."""

    name: str = Field(..., min_length=1, max_length=100)
    price_minor: int = Field(..., gt=0)
    daily_earning_minor: int = Field(..., gt=0)
    videos_per_day: int = Field(..., gt=0)
    validity_days: int = Field(..., gt=0)


class VideoUpsertRequest(BaseModel):
    """Request to create or replace a video."""

    title: str = Field(..., max_length=255)
    description: str = Field("", max_length=5000)
    video_url: str = Field(..., max_length=1024)
    watch_duration_seconds: int = Field(30)

    def to_draft(self) -> VideoDraft:
        return VideoDraft(
            title=self.title,
            description=self.description,
            video_url=self.video_url,
            watch_duration_seconds=self.watch_duration_seconds,
        )


def _already_resolved(exc: RequestAlreadyResolvedError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=f"{exc.kind.capitalize()} already {exc.status}",
    )


def _integrity_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Database integrity error",
    )


# ============================================================================
# Overview
# ============================================================================


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    db: AsyncSession = Depends(get_read_db),
    admin: AccountData = Depends(require_admin),
) -> StatsResponse:
    """Ledger totals and review queue sizes."""
    stats = await AdminService(db).get_stats()
    return StatsResponse(
        total_users=stats.total_users,
        total_approved_purchases_minor=stats.total_approved_purchases_minor,
        total_outstanding_balance_minor=stats.total_outstanding_balance_minor,
        pending_transactions=stats.pending_transactions,
        pending_withdrawals=stats.pending_withdrawals,
    )


# ============================================================================
# Plan purchases
# ============================================================================


@router.get("/transactions", response_model=list[AdminTransactionResponse])
async def list_transactions(
    status_filter: RequestStatus | None = Query(None, alias="status"),
    db: AsyncSession = Depends(get_read_db),
    admin: AccountData = Depends(require_admin),
) -> list[AdminTransactionResponse]:
    """Plan purchases, oldest first."""
    views = await AdminService(db).list_transactions(status_filter)
    return [
        AdminTransactionResponse(
            **to_transaction_response(view.transaction).model_dump(),
            email=view.email,
            username=view.username,
            plan_name=view.plan_name,
        )
        for view in views
    ]


@router.post("/transactions/{transaction_id}/approve", response_model=ApprovalResponse)
async def approve_transaction(
    transaction_id: int,
    db: AsyncSession = Depends(get_write_db),
    admin: AccountData = Depends(require_admin),
) -> ApprovalResponse:
    """
    Approve a purchase and activate the plan.

    A referral bonus failure does not undo the approval; it is reported in
    `referral_bonus_awarded`.
    """
    try:
        result = await PurchaseService(db).approve_transaction(transaction_id, admin.account_id)

    except (TransactionNotFoundError, AccountNotFoundError) as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    except RequestAlreadyResolvedError as exc:
        raise _already_resolved(exc) from exc

    except (WriteVerificationError, DataIntegrityError) as exc:
        raise _integrity_error() from exc

    return ApprovalResponse(
        transaction=to_transaction_response(result.transaction),
        plan_activated_at=result.plan_activated_at,
        first_plan=result.first_plan,
        referral_bonus_awarded=result.referral_bonus_awarded,
    )


@router.post("/transactions/{transaction_id}/reject", response_model=TransactionResponse)
async def reject_transaction(
    transaction_id: int,
    db: AsyncSession = Depends(get_write_db),
    admin: AccountData = Depends(require_admin),
) -> TransactionResponse:
    """Reject a purchase. The plan is not activated."""
    try:
        transaction = await PurchaseService(db).reject_transaction(
            transaction_id, admin.account_id
        )

    except TransactionNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    except RequestAlreadyResolvedError as exc:
        raise _already_resolved(exc) from exc

    except WriteVerificationError as exc:
        raise _integrity_error() from exc

    return to_transaction_response(transaction)


# ============================================================================
# Withdrawals
# ============================================================================


@router.get("/withdrawals", response_model=list[AdminWithdrawalResponse])
async def list_withdrawals(
    status_filter: RequestStatus | None = Query(None, alias="status"),
    db: AsyncSession = Depends(get_read_db),
    admin: AccountData = Depends(require_admin),
) -> list[AdminWithdrawalResponse]:
    """Withdrawal requests, oldest first."""
    views = await AdminService(db).list_withdrawals(status_filter)
    return [
        AdminWithdrawalResponse(
            **to_withdrawal_response(view.withdrawal).model_dump(),
            email=view.email,
            username=view.username,
        )
        for view in views
    ]


@router.post("/withdrawals/{withdrawal_id}/approve", response_model=WithdrawalResponse)
async def approve_withdrawal(
    withdrawal_id: int,
    db: AsyncSession = Depends(get_write_db),
    admin: AccountData = Depends(require_admin),
) -> WithdrawalResponse:
    """Mark a withdrawal as paid out."""
    try:
        withdrawal = await WithdrawalService(db).approve_withdrawal(
            withdrawal_id, admin.account_id
        )

    except (WithdrawalNotFoundError, AccountNotFoundError) as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    except RequestAlreadyResolvedError as exc:
        raise _already_resolved(exc) from exc

    except (WriteVerificationError, DataIntegrityError) as exc:
        raise _integrity_error() from exc

    return to_withdrawal_response(withdrawal)


@router.post("/withdrawals/{withdrawal_id}/reject", response_model=WithdrawalResponse)
async def reject_withdrawal(
    withdrawal_id: int,
    db: AsyncSession = Depends(get_write_db),
    admin: AccountData = Depends(require_admin),
) -> WithdrawalResponse:
    """Reject a withdrawal and refund the reserved amount."""
    try:
        withdrawal = await WithdrawalService(db).reject_withdrawal(
            withdrawal_id, admin.account_id
        )

    except (WithdrawalNotFoundError, AccountNotFoundError) as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    except RequestAlreadyResolvedError as exc:
        raise _already_resolved(exc) from exc

    except (WriteVerificationError, DataIntegrityError) as exc:
        raise _integrity_error() from exc

    return to_withdrawal_response(withdrawal)


# ============================================================================
# Users
# ============================================================================


@router.get("/users", response_model=UserListResponse)
async def list_users(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=500, description="Items per page"),
    search: str | None = Query(None, description="Search by email or username"),
    db: AsyncSession = Depends(get_read_db),
    admin: AccountData = Depends(require_admin),
) -> UserListResponse:
    """List accounts with pagination."""
    result = await AdminService(db).list_users(page=page, page_size=page_size, search=search)
    return UserListResponse(
        users=[to_account_response(account) for account in result.accounts],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
    )


async def _set_banned(
    db: AsyncSession, admin: AccountData, account_id: UUID, banned: bool
) -> AccountResponse:
    try:
        account = await AdminService(db).set_banned(admin.account_id, account_id, banned)
    except AuthorizationError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admins cannot ban themselves",
        ) from exc
    except AccountNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except WriteVerificationError as exc:
        raise _integrity_error() from exc
    return to_account_response(account)


@router.post("/users/{account_id}/ban", response_model=AccountResponse)
async def ban_user(
    account_id: UUID,
    db: AsyncSession = Depends(get_write_db),
    admin: AccountData = Depends(require_admin),
) -> AccountResponse:
    """Ban an account. Banned accounts are refused by every authenticated route."""
    return await _set_banned(db, admin, account_id, True)


@router.post("/users/{account_id}/unban", response_model=AccountResponse)
async def unban_user(
    account_id: UUID,
    db: AsyncSession = Depends(get_write_db),
    admin: AccountData = Depends(require_admin),
) -> AccountResponse:
    """Lift a ban."""
    return await _set_banned(db, admin, account_id, False)


@router.put("/users/{account_id}/role", response_model=AccountResponse)
async def set_user_role(
    account_id: UUID,
    request: RoleUpdateRequest,
    db: AsyncSession = Depends(get_write_db),
    admin: AccountData = Depends(require_admin),
) -> AccountResponse:
    """Promote or demote an account."""
    try:
        account = await AdminService(db).set_role(admin.account_id, account_id, request.role)
    except AuthorizationError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admins cannot change their own role",
        ) from exc
    except AccountNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except WriteVerificationError as exc:
        raise _integrity_error() from exc
    return to_account_response(account)


@router.delete("/users/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    account_id: UUID,
    db: AsyncSession = Depends(get_write_db),
    admin: AccountData = Depends(require_admin),
) -> None:
    """Delete an account and its history."""
    try:
        await AdminService(db).delete_account(admin.account_id, account_id)
    except AuthorizationError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admins cannot delete themselves",
        ) from exc
    except AccountNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


# ============================================================================
# Catalog
# ============================================================================


@router.post("/plans", response_model=PlanResponse, status_code=status.HTTP_201_CREATED)
async def create_plan(
    request: PlanCreateRequest,
    db: AsyncSession = Depends(get_write_db),
    admin: AccountData = Depends(require_admin),
) -> PlanResponse:
    """Create a plan."""
    try:
        plan = await CatalogService(db).create_plan(
            name=request.name.strip(),
            price_minor=request.price_minor,
            daily_earning_minor=request.daily_earning_minor,
            videos_per_day=request.videos_per_day,
            validity_days=request.validity_days,
        )
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        ) from exc
    except PlanNameTakenError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except WriteVerificationError as exc:
        raise _integrity_error() from exc

    logger.info("admin_plan_created", admin_id=str(admin.account_id), plan_id=plan.plan_id)
    return to_plan_response(plan)


@router.post("/videos", response_model=VideoResponse, status_code=status.HTTP_201_CREATED)
async def create_video(
    request: VideoUpsertRequest,
    db: AsyncSession = Depends(get_write_db),
    admin: AccountData = Depends(require_admin),
) -> VideoResponse:
    """Add a video to the catalog."""
    try:
        video = await CatalogService(db).create_video(request.to_draft())
    except VideoValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        ) from exc
    except WriteVerificationError as exc:
        raise _integrity_error() from exc
    return to_video_response(video)


@router.put("/videos/{video_id}", response_model=VideoResponse)
async def update_video(
    video_id: int,
    request: VideoUpsertRequest,
    db: AsyncSession = Depends(get_write_db),
    admin: AccountData = Depends(require_admin),
) -> VideoResponse:
    """Replace a video's fields."""
    try:
        video = await CatalogService(db).update_video(video_id, request.to_draft())
    except VideoValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        ) from exc
    except VideoNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return to_video_response(video)


@router.delete("/videos/{video_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_video(
    video_id: int,
    db: AsyncSession = Depends(get_write_db),
    admin: AccountData = Depends(require_admin),
) -> None:
    """Remove a video from the catalog."""
    try:
        await CatalogService(db).delete_video(video_id)
    except VideoNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
