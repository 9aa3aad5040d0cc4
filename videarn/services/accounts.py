"""
Account Service - Registration, referral codes and account read models.

NO DICTIONARIES - All operations use strongly typed domain models.
"""

import secrets
from collections.abc import Callable
from datetime import datetime
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from videarn.config import settings
from videarn.db.models import Account, Plan, Transaction, Withdrawal
from videarn.exceptions import (
    AccountNotFoundError,
    ReferralCodeNotFoundError,
    WriteVerificationError,
)
from videarn.models.api import AccountRole, RequestStatus
from videarn.models.domain import (
    AccountData,
    AccountIdentity,
    Dashboard,
    HistoryEntry,
    ReferralSummary,
    ReferredAccount,
)
from videarn.observability.metrics import metrics
from videarn.services.eligibility import utc_now
from videarn.services.mappers import account_to_domain, plan_to_domain
from videarn.services.rewards import RewardService
from videarn.services.withdrawals import WithdrawalService

logger = get_logger(__name__)

# No 0/O or 1/I so codes survive being read aloud
REFERRAL_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
REFERRAL_CODE_ATTEMPTS = 5


def generate_referral_code(length: int) -> str:
    """Random uppercase referral code."""
    return "".join(secrets.choice(REFERRAL_ALPHABET) for _ in range(length))


class AccountService:
    """Account lifecycle and per-account read models."""

    def __init__(
        self,
        session: AsyncSession,
        clock: Callable[[], datetime] | None = None,
        tz: ZoneInfo | None = None,
    ) -> None:
        """Initialize account service with database session."""
        self.session = session
        self.clock = clock or utc_now
        self.tz = tz or settings.tz

    async def register_account(
        self,
        identity: AccountIdentity,
        username: str,
        email: str | None = None,
        referral_code: str | None = None,
    ) -> AccountData:
        """
        Get or create the account for an authenticated identity.

        An existing account is returned unchanged, so the referral code only
        applies on first registration.

        Raises:
            ReferralCodeNotFoundError: Referral code doesn't belong to any account
        """
        existing = await self._find_account(identity.account_id)
        if existing is not None:
            return account_to_domain(existing)

        referred_by_id: UUID | None = None
        if referral_code:
            referrer = await self._find_account_by_referral_code(referral_code.upper())
            if referrer is None:
                raise ReferralCodeNotFoundError(referral_code)
            referred_by_id = referrer.id

        code = await self._generate_unique_referral_code()

        new_account = Account(
            id=identity.account_id,
            email=email or identity.email,
            username=username,
            role=AccountRole.USER.value,
            is_banned=False,
            balance_minor=0,
            referral_code=code,
            referred_by_id=referred_by_id,
            referral_earnings_minor=0,
            created_at=self.clock(),
        )
        self.session.add(new_account)

        try:
            await self.session.flush()
        except IntegrityError as e:
            # Race condition - account created by another request
            logger.warning(
                "account_creation_integrity_error",
                error=str(e),
                account_id=str(identity.account_id),
            )
            await self.session.rollback()
            account = await self._find_account(identity.account_id)
            if account is None:
                raise WriteVerificationError(f"Account creation failed: {str(e)}") from e
            return account_to_domain(account)

        verified = await self.session.get(Account, new_account.id)
        if verified is None:
            raise WriteVerificationError(f"Account {new_account.id} not found after insert")

        await self.session.commit()

        metrics.accounts_created_total.inc()
        logger.info(
            "account_registered",
            account_id=str(verified.id),
            referred=referred_by_id is not None,
        )

        return account_to_domain(verified)

    async def get_account(self, account_id: UUID) -> AccountData:
        """Get account details."""
        account = await self._find_account(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account_to_domain(account)

    async def ensure_referral_code(self, account_id: UUID) -> str:
        """Return the account's referral code, generating one if it has none."""
        account = await self._lock_account_for_update(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        if account.referral_code:
            return account.referral_code

        account.referral_code = await self._generate_unique_referral_code()
        await self.session.flush()
        await self.session.commit()

        logger.info("referral_code_generated", account_id=str(account_id))
        return account.referral_code

    async def get_dashboard(self, account_id: UUID) -> Dashboard:
        """
        Dashboard read model: balance, plan state, today's quota and the
        withdrawal window, all evaluated at one instant.
        """
        account = await self._find_account(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)

        plan = await self._find_plan(account.plan_id) if account.plan_id is not None else None
        now = self.clock()

        rewards = RewardService(self.session, clock=self.clock, tz=self.tz)
        withdrawals = WithdrawalService(self.session, clock=self.clock, tz=self.tz)

        return Dashboard(
            account=account_to_domain(account),
            plan=plan_to_domain(plan) if plan is not None else None,
            progress=await rewards.progress_for(account, plan, now),
            withdrawal=await withdrawals.window_for(account, now),
        )

    async def list_history(self, account_id: UUID) -> list[HistoryEntry]:
        """Plan purchases and withdrawals merged, newest first."""
        purchases_stmt = (
            select(Transaction, Plan.name)
            .join(Plan, Plan.id == Transaction.plan_id)
            .where(Transaction.account_id == account_id)
        )
        purchases = await self.session.execute(purchases_stmt)

        withdrawals_stmt = select(Withdrawal).where(Withdrawal.account_id == account_id)
        withdrawals = await self.session.execute(withdrawals_stmt)

        entries = [
            HistoryEntry(
                kind="transaction",
                id=transaction.id,
                amount_minor=transaction.amount_minor,
                status=RequestStatus(transaction.status),
                created_at=transaction.created_at,
                details=f"Plan purchase: {plan_name}",
            )
            for transaction, plan_name in purchases.all()
        ]
        entries.extend(
            HistoryEntry(
                kind="withdrawal",
                id=withdrawal.id,
                amount_minor=withdrawal.amount_minor,
                status=RequestStatus(withdrawal.status),
                created_at=withdrawal.created_at,
                details=f"Withdrawal to {withdrawal.payment_method} ({withdrawal.account_number})",
            )
            for withdrawal in withdrawals.scalars().all()
        )

        entries.sort(key=lambda entry: entry.created_at, reverse=True)
        return entries

    async def list_referrals(self, account_id: UUID) -> ReferralSummary:
        """Referral code, earnings and the accounts that joined with the code."""
        account = await self._find_account(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)

        stmt = (
            select(Account)
            .where(Account.referred_by_id == account_id)
            .order_by(Account.created_at.desc())
        )
        result = await self.session.execute(stmt)

        referred = tuple(
            ReferredAccount(
                username=referred_account.username,
                joined_at=referred_account.created_at,
                has_plan=referred_account.plan_id is not None,
            )
            for referred_account in result.scalars().all()
        )

        return ReferralSummary(
            referral_code=account.referral_code,
            referral_earnings_minor=account.referral_earnings_minor,
            referred=referred,
        )

    # ========================================================================
    # Private Helper Methods
    # ========================================================================

    async def _generate_unique_referral_code(self) -> str:
        for _ in range(REFERRAL_CODE_ATTEMPTS):
            code = generate_referral_code(settings.referral_code_length)
            if await self._find_account_by_referral_code(code) is None:
                return code
        raise WriteVerificationError(
            f"Could not generate a unique referral code in {REFERRAL_CODE_ATTEMPTS} attempts"
        )

    async def _find_account(self, account_id: UUID) -> Account | None:
        stmt = select(Account).where(Account.id == account_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def _lock_account_for_update(self, account_id: UUID) -> Account | None:
        """Lock account row for update (SELECT FOR UPDATE)."""
        stmt = select(Account).where(Account.id == account_id).with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def _find_account_by_referral_code(self, referral_code: str) -> Account | None:
        stmt = select(Account).where(Account.referral_code == referral_code)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def _find_plan(self, plan_id: int) -> Plan | None:
        stmt = select(Plan).where(Plan.id == plan_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
