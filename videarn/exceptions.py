"""
Exception Classes - Strongly typed exception hierarchy.

NO DICTIONARIES - All exceptions have typed attributes.

Taxonomy:
- validation: malformed input, raised before the database is touched
- precondition: eligibility false at call time, user-actionable
- conflict: the action was already done (uniqueness or terminal status)
- transient: the database did not answer, the caller should try again
"""

from datetime import datetime
from uuid import UUID


class LedgerError(Exception):
    """Base exception for all ledger errors."""

    pass


# ============================================================================
# Validation
# ============================================================================


class InvalidAmountError(LedgerError):
    """Raised when an amount is zero, negative or otherwise out of range."""

    def __init__(self, amount_minor: int) -> None:
        self.amount_minor = amount_minor
        super().__init__(f"Invalid amount: {amount_minor}")


class WithdrawalBelowMinimumError(LedgerError):
    """Raised when a withdrawal is smaller than the configured minimum."""

    def __init__(self, amount_minor: int, minimum_minor: int) -> None:
        self.amount_minor = amount_minor
        self.minimum_minor = minimum_minor
        super().__init__(
            f"Minimum withdrawal is {minimum_minor}, requested {amount_minor}"
        )


class WatchIncompleteError(LedgerError):
    """Raised when a video is reported watched before its required duration."""

    def __init__(self, video_id: int, watched_seconds: int, required_seconds: int) -> None:
        self.video_id = video_id
        self.watched_seconds = watched_seconds
        self.required_seconds = required_seconds
        super().__init__(
            f"Video {video_id} requires {required_seconds}s, watched {watched_seconds}s"
        )


class VideoValidationError(LedgerError):
    """Raised when admin video data fails validation."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


# ============================================================================
# Preconditions
# ============================================================================


class AccountBannedError(LedgerError):
    """Raised when a banned account attempts an action."""

    def __init__(self, account_id: UUID) -> None:
        self.account_id = account_id
        super().__init__(f"Account {account_id} is banned")


class PlanInactiveError(LedgerError):
    """Raised when an action requires an active plan."""

    def __init__(self, account_id: UUID) -> None:
        self.account_id = account_id
        super().__init__(f"Account {account_id} has no active plan")


class DailyQuotaNotMetError(LedgerError):
    """Raised when claiming before today's watch quota is met."""

    def __init__(self, watched: int, required: int) -> None:
        self.watched = watched
        self.required = required
        super().__init__(f"Watch {required} videos to claim. Watched today: {watched}")


class InsufficientBalanceError(LedgerError):
    """Raised when account balance does not cover a withdrawal."""

    def __init__(self, balance: int, required: int) -> None:
        self.balance = balance
        self.required = required
        super().__init__(f"Insufficient balance. Balance: {balance}, Required: {required}")


class WithdrawalWindowClosedError(LedgerError):
    """Raised when the account already withdrew this calendar week."""

    def __init__(self, next_eligible_at: datetime) -> None:
        self.next_eligible_at = next_eligible_at
        super().__init__(
            f"Only one withdrawal per week. Next eligible at {next_eligible_at.isoformat()}"
        )


class AuthorizationError(LedgerError):
    """Raised when user lacks required permissions."""

    def __init__(self, required_permission: str) -> None:
        self.required_permission = required_permission
        super().__init__(f"Authorization failed: missing permission {required_permission}")


# ============================================================================
# Conflicts ("already done")
# ============================================================================


class RewardAlreadyClaimedError(LedgerError):
    """Raised when today's reward was already paid to the account."""

    def __init__(self, account_id: UUID) -> None:
        self.account_id = account_id
        super().__init__(f"Reward already claimed today for account {account_id}")


class DuplicateWatchError(LedgerError):
    """Raised when a video was already recorded as watched today."""

    def __init__(self, account_id: UUID, video_id: int) -> None:
        self.account_id = account_id
        self.video_id = video_id
        super().__init__(f"Video {video_id} already watched today by account {account_id}")


class PlanNameTakenError(LedgerError):
    """Raised when creating a plan whose name already exists."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Plan name already exists: {name}")


class RequestAlreadyResolvedError(LedgerError):
    """Raised when approving or rejecting a request that is no longer pending."""

    def __init__(self, kind: str, request_id: int, status: str) -> None:
        self.kind = kind
        self.request_id = request_id
        self.status = status
        super().__init__(f"{kind.capitalize()} {request_id} is already {status}")


# ============================================================================
# Lookups
# ============================================================================


class ResourceNotFoundError(LedgerError):
    """Raised when a requested resource doesn't exist."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class AccountNotFoundError(ResourceNotFoundError):
    """Raised when account doesn't exist."""

    def __init__(self, account_id: UUID) -> None:
        self.account_id = account_id
        super().__init__(f"Account not found: {account_id}")


class PlanNotFoundError(ResourceNotFoundError):
    """Raised when a plan doesn't exist."""

    def __init__(self, plan_id: int) -> None:
        self.plan_id = plan_id
        super().__init__(f"Plan not found: {plan_id}")


class VideoNotFoundError(ResourceNotFoundError):
    """Raised when a video doesn't exist."""

    def __init__(self, video_id: int) -> None:
        self.video_id = video_id
        super().__init__(f"Video not found: {video_id}")


class TransactionNotFoundError(ResourceNotFoundError):
    """Raised when a purchase transaction doesn't exist."""

    def __init__(self, transaction_id: int) -> None:
        self.transaction_id = transaction_id
        super().__init__(f"Transaction not found: {transaction_id}")


class WithdrawalNotFoundError(ResourceNotFoundError):
    """Raised when a withdrawal doesn't exist."""

    def __init__(self, withdrawal_id: int) -> None:
        self.withdrawal_id = withdrawal_id
        super().__init__(f"Withdrawal not found: {withdrawal_id}")


class ReferralCodeNotFoundError(ResourceNotFoundError):
    """Raised when a sign-up references an unknown referral code."""

    def __init__(self, referral_code: str) -> None:
        self.referral_code = referral_code
        super().__init__(f"Referral code not found: {referral_code}")


# ============================================================================
# Persistence
# ============================================================================


class WriteVerificationError(LedgerError):
    """Raised when database write verification fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Write verification failed: {message}")


class DataIntegrityError(LedgerError):
    """Raised when data integrity constraint violated."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Data integrity error: {message}")


class DatabaseError(LedgerError):
    """Raised when the database is unreachable or times out."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Database error: {message}")
