"""
API Models - Pydantic models for request/response validation.

NO DICTIONARIES - All data structures are strongly typed.
"""

from datetime import date, datetime
from enum import Enum
from typing import Literal
from urllib.parse import urlparse
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class AccountRole(str, Enum):
    """Account role enumeration."""

    USER = "user"
    ADMIN = "admin"


class RequestStatus(str, Enum):
    """Status of a purchase transaction or withdrawal request."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PaymentMethod(str, Enum):
    """Mobile wallets payouts are sent to."""

    EASYPAISA = "EasyPaisa"
    JAZZCASH = "JazzCash"


def _require_http_url(v: str) -> str:
    """Accept only absolute http(s) URLs."""
    parsed = urlparse(v)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError("must be an absolute http(s) URL")
    return v


# ============================================================================
# Account Models
# ============================================================================


class RegisterAccountRequest(BaseModel):
    """POST /v1/accounts request body."""

    email: str | None = Field(None, min_length=3, max_length=255)
    username: str = Field(..., min_length=1, max_length=50)
    referral_code: str | None = Field(None, min_length=4, max_length=32)

    @field_validator("username")
    @classmethod
    def strip_username(cls, v: str) -> str:
        """Usernames are stored without surrounding whitespace."""
        v = v.strip()
        if not v:
            raise ValueError("username cannot be blank")
        return v

    @field_validator("referral_code")
    @classmethod
    def normalize_referral_code(cls, v: str | None) -> str | None:
        """Referral codes are case-insensitive and stored uppercase."""
        return v.strip().upper() if v else None


class AccountResponse(BaseModel):
    """Account profile."""

    account_id: UUID
    email: str | None
    username: str
    role: AccountRole
    is_banned: bool
    balance_minor: int
    currency: str
    plan_id: int | None
    plan_activated_at: datetime | None
    last_withdrawal_at: datetime | None
    referral_code: str | None
    referral_earnings_minor: int
    created_at: datetime


# ============================================================================
# Catalog Models
# ============================================================================


class PlanResponse(BaseModel):
    """Subscription plan."""

    plan_id: int
    name: str
    price_minor: int
    daily_earning_minor: int
    videos_per_day: int
    validity_days: int


class VideoResponse(BaseModel):
    """Video with the caller's watch state for today."""

    video_id: int
    title: str
    description: str
    video_url: str
    watch_duration_seconds: int
    created_at: datetime
    watched_today: bool = False


# ============================================================================
# Dashboard Read Model
# ============================================================================


class WithdrawalWindowResponse(BaseModel):
    """Weekly withdrawal availability."""

    available: bool
    next_eligible_at: datetime | None = None


class DashboardResponse(BaseModel):
    """GET /v1/me/dashboard response."""

    account: AccountResponse
    plan: PlanResponse | None
    plan_active: bool
    plan_expires_at: datetime | None
    business_date: date
    watched_video_ids: list[int]
    watched_today: int
    videos_per_day: int
    claimed_today: bool
    can_claim: bool
    claim_blocked_reason: str | None
    withdrawal: WithdrawalWindowResponse
    min_withdrawal_minor: int


# ============================================================================
# Watch & Claim Models
# ============================================================================


class WatchVideoRequest(BaseModel):
    """POST /v1/videos/{video_id}/watch request body."""

    watched_seconds: int | None = Field(
        None, ge=0, description="Seconds the player reported as watched"
    )


class WatchResponse(BaseModel):
    """POST /v1/videos/{video_id}/watch response."""

    video_id: int
    watched_on: date
    watched_at: datetime
    watched_today: int


class ClaimResponse(BaseModel):
    """POST /v1/rewards/claim response."""

    claimed_on: date
    amount_minor: int
    balance_before: int
    balance_after: int
    claimed_at: datetime


# ============================================================================
# Purchase (Transaction) Models
# ============================================================================


class PurchaseRequest(BaseModel):
    """POST /v1/purchases request body."""

    plan_id: int = Field(..., gt=0)
    payment_reference: str = Field(
        ..., min_length=1, max_length=100, description="Bank transfer id (TID)"
    )
    proof_url: str = Field(
        ..., min_length=1, max_length=1024, description="Public URL of the uploaded screenshot"
    )

    @field_validator("payment_reference")
    @classmethod
    def strip_reference(cls, v: str) -> str:
        """References are compared without surrounding whitespace."""
        v = v.strip()
        if not v:
            raise ValueError("payment_reference cannot be blank")
        return v

    @field_validator("proof_url")
    @classmethod
    def validate_proof_url(cls, v: str) -> str:
        """Proof of payment must be a retrievable URL."""
        return _require_http_url(v.strip())


class TransactionResponse(BaseModel):
    """Plan purchase transaction."""

    transaction_id: int
    account_id: UUID
    plan_id: int
    amount_minor: int
    payment_reference: str
    proof_url: str
    status: RequestStatus
    created_at: datetime
    resolved_at: datetime | None = None


# ============================================================================
# Withdrawal Models
# ============================================================================


class WithdrawalRequest(BaseModel):
    """POST /v1/withdrawals request body."""

    amount_minor: int = Field(..., gt=0)
    payment_method: PaymentMethod
    account_number: str = Field(..., min_length=1, max_length=64)
    account_name: str = Field(..., min_length=1, max_length=100)

    @field_validator("payment_method", mode="before")
    @classmethod
    def strip_payment_method(cls, v: object) -> object:
        return v.strip() if isinstance(v, str) else v

    @field_validator("account_number", "account_name")
    @classmethod
    def strip_destination(cls, v: str) -> str:
        """Destination fields cannot be blank."""
        v = v.strip()
        if not v:
            raise ValueError("cannot be blank")
        return v


class WithdrawalResponse(BaseModel):
    """Withdrawal request."""

    withdrawal_id: int
    account_id: UUID
    amount_minor: int
    payment_method: str
    account_number: str
    account_name: str
    status: RequestStatus
    created_at: datetime
    resolved_at: datetime | None = None
    balance_after: int | None = None


# ============================================================================
# History & Referral Models
# ============================================================================


class HistoryItem(BaseModel):
    """Single entry of the combined purchase/withdrawal history."""

    kind: Literal["transaction", "withdrawal"]
    id: int
    amount_minor: int
    status: RequestStatus
    created_at: datetime
    details: str


class HistoryResponse(BaseModel):
    """GET /v1/me/history response."""

    items: list[HistoryItem]


class ReferredAccountItem(BaseModel):
    """Account that signed up with the caller's referral code."""

    username: str
    joined_at: datetime
    has_plan: bool


class ReferralResponse(BaseModel):
    """GET /v1/me/referrals response."""

    referral_code: str | None
    referral_earnings_minor: int
    referral_bonus_minor: int
    referred: list[ReferredAccountItem]


# ============================================================================
# Health Models
# ============================================================================


class HealthResponse(BaseModel):
    """GET /health response."""

    status: Literal["healthy", "unhealthy"]
    database: Literal["connected", "disconnected"]
    timestamp: str  # ISO 8601 timestamp
