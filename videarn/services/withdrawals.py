"""
Withdrawal Service - Weekly withdrawal gate and request lifecycle.

NO DICTIONARIES - All operations use strongly typed domain models.

Funds are reserved when a request is accepted: the balance is deducted
immediately, rejection refunds it, approval keeps the deduction and stamps
the account's last_withdrawal_at.
"""

from collections.abc import Callable
from datetime import datetime
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from videarn.config import settings
from videarn.db.models import Account, Withdrawal
from videarn.exceptions import (
    AccountBannedError,
    AccountNotFoundError,
    DataIntegrityError,
    InsufficientBalanceError,
    InvalidAmountError,
    RequestAlreadyResolvedError,
    WithdrawalBelowMinimumError,
    WithdrawalNotFoundError,
    WithdrawalWindowClosedError,
    WriteVerificationError,
)
from videarn.models.api import RequestStatus
from videarn.models.domain import WithdrawalData, WithdrawalIntent, WithdrawalWindow
from videarn.observability.metrics import metrics
from videarn.services.eligibility import can_withdraw, next_week_start, start_of_week, utc_now
from videarn.services.mappers import withdrawal_to_domain

logger = get_logger(__name__)


class WithdrawalService:
    """
    Withdrawal requests with write verification.

    Every balance mutation happens under SELECT FOR UPDATE on the account
    row and is re-validated at write time.
    """

    def __init__(
        self,
        session: AsyncSession,
        clock: Callable[[], datetime] | None = None,
        tz: ZoneInfo | None = None,
        min_withdrawal_minor: int | None = None,
    ) -> None:
        """Initialize withdrawal service with database session and business clock."""
        self.session = session
        self.clock = clock or utc_now
        self.tz = tz or settings.tz
        self.min_withdrawal_minor = (
            min_withdrawal_minor
            if min_withdrawal_minor is not None
            else settings.min_withdrawal_minor
        )

    async def window_for(self, account: Account, now: datetime | None = None) -> WithdrawalWindow:
        """
        Weekly availability for an already loaded account.

        A pending or approved request created this week closes the window
        just like a stamped last_withdrawal_at.
        """
        now = now or self.clock()
        window = can_withdraw(account.last_withdrawal_at, now, self.tz)
        if not window.available:
            return window

        open_request = await self._find_open_withdrawal_since(
            account.id, start_of_week(now, self.tz)
        )
        if open_request is not None:
            return WithdrawalWindow(available=False, next_eligible_at=next_week_start(now, self.tz))
        return window

    async def get_window(self, account_id: UUID) -> WithdrawalWindow:
        account = await self._find_account(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return await self.window_for(account)

    async def request_withdrawal(self, intent: WithdrawalIntent) -> WithdrawalData:
        """
        Request a payout and reserve the amount from the balance.

        Amount validation happens before the database is touched. The rest
        runs in one transaction under the account row lock.

        Raises:
            InvalidAmountError: Amount is zero or negative
            WithdrawalBelowMinimumError: Amount below the configured minimum
            AccountNotFoundError: Account doesn't exist
            AccountBannedError: Account is banned
            WithdrawalWindowClosedError: Already withdrew this week
            InsufficientBalanceError: Balance does not cover the amount
        """
        if intent.amount_minor <= 0:
            raise InvalidAmountError(intent.amount_minor)
        if intent.amount_minor < self.min_withdrawal_minor:
            raise WithdrawalBelowMinimumError(intent.amount_minor, self.min_withdrawal_minor)

        account = await self._lock_account_for_update(intent.account_id)
        if account is None:
            raise AccountNotFoundError(intent.account_id)
        if account.is_banned:
            raise AccountBannedError(intent.account_id)

        now = self.clock()
        window = await self.window_for(account, now)
        if not window.available:
            metrics.record_withdrawal("request", "window_closed")
            raise WithdrawalWindowClosedError(
                window.next_eligible_at or next_week_start(now, self.tz)
            )

        if account.balance_minor < intent.amount_minor:
            metrics.record_withdrawal("request", "insufficient_balance")
            raise InsufficientBalanceError(account.balance_minor, intent.amount_minor)

        balance_after = account.balance_minor - intent.amount_minor

        withdrawal = Withdrawal(
            account_id=account.id,
            amount_minor=intent.amount_minor,
            payment_method=intent.payment_method,
            account_number=intent.account_number,
            account_name=intent.account_name,
            status=RequestStatus.PENDING.value,
            created_at=now,
        )
        self.session.add(withdrawal)
        account.balance_minor = balance_after
        await self.session.flush()

        verified_withdrawal = await self.session.get(Withdrawal, withdrawal.id)
        if verified_withdrawal is None:
            raise WriteVerificationError(f"Withdrawal {withdrawal.id} not found after insert")

        verified_account = await self.session.get(Account, account.id)
        if verified_account is None:
            raise WriteVerificationError(f"Account {account.id} disappeared after update")
        if verified_account.balance_minor != balance_after:
            raise DataIntegrityError(
                f"Balance mismatch: expected {balance_after}, got {verified_account.balance_minor}"
            )

        await self.session.commit()

        metrics.record_withdrawal("request", "accepted", intent.amount_minor)
        logger.info(
            "withdrawal_requested",
            account_id=str(account.id),
            withdrawal_id=verified_withdrawal.id,
            amount_minor=intent.amount_minor,
            payment_method=intent.payment_method,
            account_number=intent.account_number,
            balance_after=balance_after,
        )

        return withdrawal_to_domain(verified_withdrawal, balance_after=balance_after)

    async def approve_withdrawal(self, withdrawal_id: int, admin_id: UUID) -> WithdrawalData:
        """
        Mark a pending withdrawal as paid out.

        The reserved amount stays deducted; the account's last_withdrawal_at
        is stamped with the request time so the week it was made in counts.

        Raises:
            WithdrawalNotFoundError: Withdrawal doesn't exist
            RequestAlreadyResolvedError: Withdrawal is not pending
        """
        withdrawal = await self._lock_withdrawal_for_update(withdrawal_id)
        if withdrawal is None:
            raise WithdrawalNotFoundError(withdrawal_id)
        if withdrawal.status != RequestStatus.PENDING.value:
            metrics.record_withdrawal("approve", "already_resolved")
            raise RequestAlreadyResolvedError("withdrawal", withdrawal_id, withdrawal.status)

        account = await self._lock_account_for_update(withdrawal.account_id)
        if account is None:
            raise AccountNotFoundError(withdrawal.account_id)

        now = self.clock()
        withdrawal.status = RequestStatus.APPROVED.value
        withdrawal.resolved_at = now
        withdrawal.resolved_by_id = admin_id

        stamped_at = withdrawal.created_at
        if account.last_withdrawal_at is None or account.last_withdrawal_at < stamped_at:
            account.last_withdrawal_at = stamped_at
        await self.session.flush()

        verified = await self.session.get(Withdrawal, withdrawal.id)
        if verified is None:
            raise WriteVerificationError(f"Withdrawal {withdrawal.id} disappeared after update")
        if verified.status != RequestStatus.APPROVED.value:
            raise DataIntegrityError(
                f"Withdrawal status mismatch: expected approved, got {verified.status}"
            )

        await self.session.commit()

        metrics.record_withdrawal("approve", "approved")
        logger.info(
            "withdrawal_approved",
            withdrawal_id=withdrawal_id,
            account_id=str(account.id),
            admin_id=str(admin_id),
            amount_minor=withdrawal.amount_minor,
        )

        return withdrawal_to_domain(verified, balance_after=account.balance_minor)

    async def reject_withdrawal(self, withdrawal_id: int, admin_id: UUID) -> WithdrawalData:
        """
        Reject a pending withdrawal and refund the reserved amount.

        Raises:
            WithdrawalNotFoundError: Withdrawal doesn't exist
            RequestAlreadyResolvedError: Withdrawal is not pending
        """
        withdrawal = await self._lock_withdrawal_for_update(withdrawal_id)
        if withdrawal is None:
            raise WithdrawalNotFoundError(withdrawal_id)
        if withdrawal.status != RequestStatus.PENDING.value:
            metrics.record_withdrawal("reject", "already_resolved")
            raise RequestAlreadyResolvedError("withdrawal", withdrawal_id, withdrawal.status)

        account = await self._lock_account_for_update(withdrawal.account_id)
        if account is None:
            raise AccountNotFoundError(withdrawal.account_id)

        balance_after = account.balance_minor + withdrawal.amount_minor

        withdrawal.status = RequestStatus.REJECTED.value
        withdrawal.resolved_at = self.clock()
        withdrawal.resolved_by_id = admin_id
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

        metrics.record_withdrawal("reject", "refunded")
        logger.info(
            "withdrawal_rejected",
            withdrawal_id=withdrawal_id,
            account_id=str(account.id),
            admin_id=str(admin_id),
            refunded_minor=withdrawal.amount_minor,
            balance_after=balance_after,
        )

        return withdrawal_to_domain(withdrawal, balance_after=balance_after)

    async def list_for_account(self, account_id: UUID) -> list[WithdrawalData]:
        stmt = (
            select(Withdrawal)
            .where(Withdrawal.account_id == account_id)
            .order_by(Withdrawal.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return [withdrawal_to_domain(w) for w in result.scalars().all()]

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

    async def _lock_withdrawal_for_update(self, withdrawal_id: int) -> Withdrawal | None:
        stmt = select(Withdrawal).where(Withdrawal.id == withdrawal_id).with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def _find_open_withdrawal_since(
        self, account_id: UUID, since: datetime
    ) -> Withdrawal | None:
        """Latest pending or approved request created at or after `since`."""
        stmt = (
            select(Withdrawal)
            .where(
                Withdrawal.account_id == account_id,
                Withdrawal.created_at >= since,
                Withdrawal.status != RequestStatus.REJECTED.value,
            )
            .order_by(Withdrawal.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
