"""
Domain Models - Internal business logic models using dataclasses.

NO DICTIONARIES - All data structures are strongly typed immutable dataclasses.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from uuid import UUID

from videarn.models.api import AccountRole, RequestStatus


@dataclass(frozen=True)
class AccountIdentity:
    """Identity resolved from the auth provider's token."""

    account_id: UUID
    email: str | None = None


@dataclass(frozen=True)
class PlanData:
    """Immutable subscription plan."""

    plan_id: int
    name: str
    price_minor: int
    daily_earning_minor: int
    videos_per_day: int
    validity_days: int

    def __post_init__(self) -> None:
        """Validate plan constraints."""
        if not self.name:
            raise ValueError("Plan name cannot be empty")
        if self.price_minor <= 0:
            raise ValueError(f"Plan price must be positive: {self.price_minor}")
        if self.daily_earning_minor <= 0:
            raise ValueError(f"Daily earning must be positive: {self.daily_earning_minor}")
        if self.videos_per_day <= 0:
            raise ValueError(f"Videos per day must be positive: {self.videos_per_day}")
        if self.validity_days <= 0:
            raise ValueError(f"Validity days must be positive: {self.validity_days}")


@dataclass(frozen=True)
class AccountData:
    """Immutable account snapshot."""

    account_id: UUID
    email: str | None
    username: str
    role: AccountRole
    is_banned: bool
    balance_minor: int
    plan_id: int | None
    plan_activated_at: datetime | None
    last_withdrawal_at: datetime | None
    referral_code: str | None
    referred_by_id: UUID | None
    referral_earnings_minor: int
    created_at: datetime

    def __post_init__(self) -> None:
        """Validate balance constraints."""
        if self.balance_minor < 0:
            raise ValueError(f"Balance cannot be negative: {self.balance_minor}")
        if self.referral_earnings_minor < 0:
            raise ValueError(
                f"Referral earnings cannot be negative: {self.referral_earnings_minor}"
            )


@dataclass(frozen=True)
class WithdrawalWindow:
    """Weekly withdrawal availability at a point in time."""

    available: bool
    next_eligible_at: datetime | None = None


@dataclass(frozen=True)
class ClaimEligibility:
    """Whether today's reward can be claimed, and why not."""

    can_claim: bool
    reason: str | None = None


@dataclass(frozen=True)
class DailyProgress:
    """Today's watch quota and claim state for one account."""

    business_date: date
    plan_active: bool
    plan_expires_at: datetime | None
    watched_video_ids: tuple[int, ...]
    videos_per_day: int
    claimed_today: bool
    eligibility: ClaimEligibility

    @property
    def watched_today(self) -> int:
        return len(self.watched_video_ids)


@dataclass(frozen=True)
class Dashboard:
    """Read model rendered on the account holder's dashboard."""

    account: AccountData
    plan: PlanData | None
    progress: DailyProgress
    withdrawal: WithdrawalWindow


@dataclass(frozen=True)
class WithdrawalIntent:
    """Withdrawal request before persistence - immutable intent."""

    account_id: UUID
    amount_minor: int
    payment_method: str
    account_number: str
    account_name: str

    def __post_init__(self) -> None:
        """Validate destination fields."""
        if not self.payment_method.strip():
            raise ValueError("Payment method cannot be empty")
        if not self.account_number.strip():
            raise ValueError("Account number cannot be empty")
        if not self.account_name.strip():
            raise ValueError("Account name cannot be empty")


@dataclass(frozen=True)
class PurchaseIntent:
    """Plan purchase before persistence - immutable intent."""

    account_id: UUID
    plan_id: int
    payment_reference: str
    proof_url: str

    def __post_init__(self) -> None:
        """Validate purchase constraints."""
        if not self.payment_reference.strip():
            raise ValueError("Payment reference cannot be empty")
        if not self.proof_url.strip():
            raise ValueError("Proof of payment URL cannot be empty")


@dataclass(frozen=True)
class WatchData:
    """Recorded watch fact."""

    account_id: UUID
    video_id: int
    watched_on: date
    watched_at: datetime
    watched_today: int


@dataclass(frozen=True)
class ClaimData:
    """Paid daily reward."""

    account_id: UUID
    claimed_on: date
    amount_minor: int
    balance_before: int
    balance_after: int
    claimed_at: datetime


@dataclass(frozen=True)
class TransactionData:
    """Plan purchase transaction after persistence."""

    transaction_id: int
    account_id: UUID
    plan_id: int
    amount_minor: int
    payment_reference: str
    proof_url: str
    status: RequestStatus
    created_at: datetime
    resolved_at: datetime | None


@dataclass(frozen=True)
class WithdrawalData:
    """Withdrawal request after persistence."""

    withdrawal_id: int
    account_id: UUID
    amount_minor: int
    payment_method: str
    account_number: str
    account_name: str
    status: RequestStatus
    created_at: datetime
    resolved_at: datetime | None
    balance_after: int | None = None


@dataclass(frozen=True)
class ApprovalResult:
    """Outcome of approving a plan purchase."""

    transaction: TransactionData
    plan_activated_at: datetime
    first_plan: bool
    referral_bonus_awarded: bool


@dataclass(frozen=True)
class ReferredAccount:
    """Account that joined with someone's referral code."""

    username: str
    joined_at: datetime
    has_plan: bool


@dataclass(frozen=True)
class ReferralSummary:
    """Referral code, earnings and referred accounts of one account."""

    referral_code: str | None
    referral_earnings_minor: int
    referred: tuple[ReferredAccount, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class HistoryEntry:
    """Purchase or withdrawal in the account history."""

    kind: str
    id: int
    amount_minor: int
    status: RequestStatus
    created_at: datetime
    details: str


@dataclass(frozen=True)
class LedgerStats:
    """Admin overview totals."""

    total_users: int
    total_approved_purchases_minor: int
    total_outstanding_balance_minor: int
    pending_transactions: int
    pending_withdrawals: int


@dataclass(frozen=True)
class VideoData:
    """Catalog video."""

    video_id: int
    title: str
    description: str
    video_url: str
    watch_duration_seconds: int
    created_at: datetime


@dataclass(frozen=True)
class VideoDraft:
    """Admin-entered video fields before persistence."""

    title: str
    description: str
    video_url: str
    watch_duration_seconds: int


@dataclass(frozen=True)
class AdminTransactionView:
    """Purchase transaction with the purchasing account's contact details."""

    transaction: TransactionData
    email: str | None
    username: str
    plan_name: str


@dataclass(frozen=True)
class AdminWithdrawalView:
    """Withdrawal with the requesting account's contact details."""

    withdrawal: WithdrawalData
    email: str | None
    username: str


@dataclass(frozen=True)
class AccountPage:
    """One page of accounts for the admin user list."""

    accounts: tuple[AccountData, ...]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.page_size - 1) // self.page_size
