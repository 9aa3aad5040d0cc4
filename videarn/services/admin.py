"""
Admin Service - Ledger overview, request queues and user management.

NO DICTIONARIES - All operations use strongly typed domain models.
"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from videarn.db.models import Account, Plan, Transaction, Withdrawal
from videarn.exceptions import AccountNotFoundError, AuthorizationError, WriteVerificationError
from videarn.models.api import AccountRole, RequestStatus
from videarn.models.domain import (
    AccountData,
    AccountPage,
    AdminTransactionView,
    AdminWithdrawalView,
    LedgerStats,
)
from videarn.services.mappers import account_to_domain, transaction_to_domain, withdrawal_to_domain

logger = get_logger(__name__)


class AdminService:
    """
    Operations behind the admin console.

    Approving and rejecting requests lives in PurchaseService and
    WithdrawalService; this class only reads queues and manages accounts.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize admin service with database session."""
        self.session = session

    async def get_stats(self) -> LedgerStats:
        """Totals shown on the admin overview."""
        total_users = (await self.session.execute(select(func.count(Account.id)))).scalar_one()

        approved_purchases = (
            await self.session.execute(
                select(func.coalesce(func.sum(Transaction.amount_minor), 0)).where(
                    Transaction.status == RequestStatus.APPROVED.value
                )
            )
        ).scalar_one()

        outstanding_balance = (
            await self.session.execute(select(func.coalesce(func.sum(Account.balance_minor), 0)))
        ).scalar_one()

        pending_transactions = (
            await self.session.execute(
                select(func.count(Transaction.id)).where(
                    Transaction.status == RequestStatus.PENDING.value
                )
            )
        ).scalar_one()

        pending_withdrawals = (
            await self.session.execute(
                select(func.count(Withdrawal.id)).where(
                    Withdrawal.status == RequestStatus.PENDING.value
                )
            )
        ).scalar_one()

        return LedgerStats(
            total_users=total_users,
            total_approved_purchases_minor=approved_purchases,
            total_outstanding_balance_minor=outstanding_balance,
            pending_transactions=pending_transactions,
            pending_withdrawals=pending_withdrawals,
        )

    async def list_transactions(
        self, status: RequestStatus | None = None
    ) -> list[AdminTransactionView]:
        """Plan purchases, oldest first, optionally filtered by status."""
        stmt = (
            select(Transaction, Account.email, Account.username, Plan.name)
            .join(Account, Account.id == Transaction.account_id)
            .join(Plan, Plan.id == Transaction.plan_id)
        )
        if status is not None:
            stmt = stmt.where(Transaction.status == status.value)
        stmt = stmt.order_by(Transaction.created_at, Transaction.id)

        result = await self.session.execute(stmt)
        return [
            AdminTransactionView(
                transaction=transaction_to_domain(transaction),
                email=email,
                username=username,
                plan_name=plan_name,
            )
            for transaction, email, username, plan_name in result.all()
        ]

    async def list_withdrawals(
        self, status: RequestStatus | None = None
    ) -> list[AdminWithdrawalView]:
        """Withdrawal requests, oldest first, optionally filtered by status."""
        stmt = select(Withdrawal, Account.email, Account.username).join(
            Account, Account.id == Withdrawal.account_id
        )
        if status is not None:
            stmt = stmt.where(Withdrawal.status == status.value)
        stmt = stmt.order_by(Withdrawal.created_at, Withdrawal.id)

        result = await self.session.execute(stmt)
        return [
            AdminWithdrawalView(
                withdrawal=withdrawal_to_domain(withdrawal),
                email=email,
                username=username,
            )
            for withdrawal, email, username in result.all()
        ]

    async def list_users(
        self, page: int = 1, page_size: int = 50, search: str | None = None
    ) -> AccountPage:
        """Accounts newest first, searchable by email or username."""
        offset = (page - 1) * page_size

        stmt = select(Account)
        if search:
            search_pattern = f"%{search}%"
            stmt = stmt.where(
                (Account.email.ilike(search_pattern)) | (Account.username.ilike(search_pattern))
            )

        count_stmt = select(func.count()).select_from(stmt.subquery())
        total = (await self.session.execute(count_stmt)).scalar_one()

        stmt = stmt.order_by(Account.created_at.desc()).offset(offset).limit(page_size)
        result = await self.session.execute(stmt)

        return AccountPage(
            accounts=tuple(account_to_domain(account) for account in result.scalars().all()),
            total=total,
            page=page,
            page_size=page_size,
        )

    async def set_banned(self, admin_id: UUID, account_id: UUID, banned: bool) -> AccountData:
        """Ban or unban an account."""
        self._forbid_self(admin_id, account_id, "ban")

        account = await self._lock_account_for_update(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)

        account.is_banned = banned
        await self.session.flush()
        await self._verify_and_commit(account)

        logger.info(
            "admin_account_ban_changed",
            admin_id=str(admin_id),
            account_id=str(account_id),
            is_banned=banned,
        )
        return account_to_domain(account)

    async def set_role(self, admin_id: UUID, account_id: UUID, role: AccountRole) -> AccountData:
        """Promote or demote an account."""
        self._forbid_self(admin_id, account_id, "change_role")

        account = await self._lock_account_for_update(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)

        account.role = role.value
        await self.session.flush()
        await self._verify_and_commit(account)

        logger.info(
            "admin_account_role_changed",
            admin_id=str(admin_id),
            account_id=str(account_id),
            role=role.value,
        )
        return account_to_domain(account)

    async def delete_account(self, admin_id: UUID, account_id: UUID) -> None:
        """Delete an account with its watch, claim and request history."""
        self._forbid_self(admin_id, account_id, "delete")

        account = await self._lock_account_for_update(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)

        await self.session.delete(account)
        await self.session.commit()

        logger.info("admin_account_deleted", admin_id=str(admin_id), account_id=str(account_id))

    # ========================================================================
    # Private Helper Methods
    # ========================================================================

    @staticmethod
    def _forbid_self(admin_id: UUID, account_id: UUID, action: str) -> None:
        if admin_id == account_id:
            raise AuthorizationError(f"{action}:self")

    async def _verify_and_commit(self, account: Account) -> None:
        verified = await self.session.get(Account, account.id)
        if verified is None:
            raise WriteVerificationError(f"Account {account.id} disappeared after update")
        await self.session.commit()

    async def _lock_account_for_update(self, account_id: UUID) -> Account | None:
        """Lock account row for update (SELECT FOR UPDATE)."""
        stmt = select(Account).where(Account.id == account_id).with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
