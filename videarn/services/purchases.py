"""
Purchase Service - Plan purchase transactions and the referral bonus.

NO DICTIONARIES - All operations use strongly typed domain models.

Purchases are paid by manual transfer and verified by an admin. Approval
activates the plan atomically with the status change; the referral bonus
then runs in its own transaction and is reported, never rolled back into
the approval.
"""

from collections.abc import Callable
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from videarn.config import settings
from videarn.db.models import Account, Plan, ReferralReward, Transaction
from videarn.exceptions import (
    AccountBannedError,
    AccountNotFoundError,
    DataIntegrityError,
    PlanNotFoundError,
    RequestAlreadyResolvedError,
    TransactionNotFoundError,
    WriteVerificationError,
)
from videarn.models.api import RequestStatus
from videarn.models.domain import ApprovalResult, PurchaseIntent, TransactionData
from videarn.observability.metrics import metrics
from videarn.observability.tracing import add_span_attributes, get_tracer, ledger_span
from videarn.services.eligibility import utc_now
from videarn.services.mappers import transaction_to_domain

logger = get_logger(__name__)
tracer = get_tracer(__name__)


class PurchaseService:
    """
    Plan purchase state machine: pending -> approved | rejected.

    Terminal states are final. Approving or rejecting twice raises
    RequestAlreadyResolvedError and changes nothing.
    """

    def __init__(
        self,
        session: AsyncSession,
        clock: Callable[[], datetime] | None = None,
        referral_bonus_minor: int | None = None,
    ) -> None:
        """Initialize purchase service with database session."""
        self.session = session
        self.clock = clock or utc_now
        self.referral_bonus_minor = (
            referral_bonus_minor
            if referral_bonus_minor is not None
            else settings.referral_bonus_minor
        )

    async def submit_purchase(self, intent: PurchaseIntent) -> TransactionData:
        """
        Record a pending plan purchase with its payment reference and proof.

        Raises:
            AccountNotFoundError: Account doesn't exist
            AccountBannedError: Account is banned
            PlanNotFoundError: Plan doesn't exist
        """
        account = await self._find_account(intent.account_id)
        if account is None:
            raise AccountNotFoundError(intent.account_id)
        if account.is_banned:
            raise AccountBannedError(intent.account_id)

        plan = await self._find_plan(intent.plan_id)
        if plan is None:
            raise PlanNotFoundError(intent.plan_id)

        transaction = Transaction(
            account_id=account.id,
            plan_id=plan.id,
            amount_minor=plan.price_minor,
            payment_reference=intent.payment_reference,
            proof_url=intent.proof_url,
            status=RequestStatus.PENDING.value,
            created_at=self.clock(),
        )
        self.session.add(transaction)
        await self.session.flush()

        verified = await self.session.get(Transaction, transaction.id)
        if verified is None:
            raise WriteVerificationError(f"Transaction {transaction.id} not found after insert")

        await self.session.commit()

        metrics.record_transaction("submit", "accepted")
        logger.info(
            "plan_purchase_submitted",
            account_id=str(account.id),
            transaction_id=verified.id,
            plan_id=plan.id,
            amount_minor=plan.price_minor,
        )

        return transaction_to_domain(verified)

    async def approve_transaction(self, transaction_id: int, admin_id: UUID) -> ApprovalResult:
        """
        Approve a pending purchase and activate the plan.

        Status change and plan activation commit together. If this was the
        account's first plan and it was referred, the referrer's bonus is
        awarded afterwards and reported in `referral_bonus_awarded`.

        Raises:
            TransactionNotFoundError: Transaction doesn't exist
            RequestAlreadyResolvedError: Transaction is not pending
            AccountNotFoundError: Purchasing account no longer exists
        """
        with ledger_span(
            tracer, "approve_transaction", transaction_id=transaction_id, admin_id=admin_id
        ) as span:
            result = await self._approve_transaction(transaction_id, admin_id)
            add_span_attributes(
                span,
                first_plan=result.first_plan,
                referral_bonus_awarded=result.referral_bonus_awarded,
            )
            return result

    async def _approve_transaction(self, transaction_id: int, admin_id: UUID) -> ApprovalResult:
        transaction = await self._lock_transaction_for_update(transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(transaction_id)
        if transaction.status != RequestStatus.PENDING.value:
            metrics.record_transaction("approve", "already_resolved")
            raise RequestAlreadyResolvedError("transaction", transaction_id, transaction.status)

        account = await self._lock_account_for_update(transaction.account_id)
        if account is None:
            raise AccountNotFoundError(transaction.account_id)

        # Expired plans keep their reference, so only a never-activated account counts
        first_plan = account.plan_id is None
        now = self.clock()

        account.plan_id = transaction.plan_id
        account.plan_activated_at = now
        transaction.status = RequestStatus.APPROVED.value
        transaction.resolved_at = now
        transaction.resolved_by_id = admin_id
        await self.session.flush()

        verified_account = await self.session.get(Account, account.id)
        if verified_account is None:
            raise WriteVerificationError(f"Account {account.id} disappeared after update")
        if verified_account.plan_id != transaction.plan_id:
            raise DataIntegrityError(
                f"Plan mismatch: expected {transaction.plan_id}, got {verified_account.plan_id}"
            )

        await self.session.commit()

        metrics.record_transaction("approve", "approved")
        logger.info(
            "plan_purchase_approved",
            transaction_id=transaction_id,
            account_id=str(account.id),
            plan_id=transaction.plan_id,
            admin_id=str(admin_id),
            first_plan=first_plan,
        )

        # The bonus rolls back on failure, which expires every loaded row
        approved = transaction_to_domain(transaction)
        bonus_awarded = await self.award_referral_if_eligible(
            purchaser_id=account.id,
            referrer_id=account.referred_by_id,
            transaction_id=transaction.id,
            was_first_plan=first_plan,
        )

        return ApprovalResult(
            transaction=approved,
            plan_activated_at=now,
            first_plan=first_plan,
            referral_bonus_awarded=bonus_awarded,
        )

    async def reject_transaction(self, transaction_id: int, admin_id: UUID) -> TransactionData:
        """
        Reject a pending purchase. Only the status changes.

        Raises:
            TransactionNotFoundError: Transaction doesn't exist
            RequestAlreadyResolvedError: Transaction is not pending
        """
        transaction = await self._lock_transaction_for_update(transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(transaction_id)
        if transaction.status != RequestStatus.PENDING.value:
            metrics.record_transaction("reject", "already_resolved")
            raise RequestAlreadyResolvedError("transaction", transaction_id, transaction.status)

        transaction.status = RequestStatus.REJECTED.value
        transaction.resolved_at = self.clock()
        transaction.resolved_by_id = admin_id
        await self.session.flush()

        verified = await self.session.get(Transaction, transaction.id)
        if verified is None:
            raise WriteVerificationError(f"Transaction {transaction.id} disappeared after update")

        await self.session.commit()

        metrics.record_transaction("reject", "rejected")
        logger.info(
            "plan_purchase_rejected",
            transaction_id=transaction_id,
            account_id=str(transaction.account_id),
            admin_id=str(admin_id),
        )

        return transaction_to_domain(verified)

    async def award_referral_if_eligible(
        self,
        purchaser_id: UUID,
        referrer_id: UUID | None,
        transaction_id: int | None,
        was_first_plan: bool,
    ) -> bool:
        """
        Credit the referrer once for the referred account's first plan.

        Runs in its own transaction after the approval committed. Failures
        are logged and counted, and reported as False; the approval stands.
        The unique referred_id on referral_rewards keeps the bonus
        at-most-once even if two approvals race.
        """
        if not was_first_plan or referrer_id is None or self.referral_bonus_minor <= 0:
            metrics.record_referral_bonus("skipped")
            return False

        bonus = self.referral_bonus_minor

        try:
            referrer = await self._lock_account_for_update(referrer_id)
            if referrer is None:
                logger.warning(
                    "referral_referrer_missing",
                    purchaser_id=str(purchaser_id),
                    referrer_id=str(referrer_id),
                )
                await self.session.rollback()
                metrics.record_referral_bonus("skipped")
                return False

            balance_after = referrer.balance_minor + bonus
            earnings_after = referrer.referral_earnings_minor + bonus

            reward = ReferralReward(
                referrer_id=referrer.id,
                referred_id=purchaser_id,
                transaction_id=transaction_id,
                amount_minor=bonus,
                created_at=self.clock(),
            )
            self.session.add(reward)
            referrer.balance_minor = balance_after
            referrer.referral_earnings_minor = earnings_after
            await self.session.flush()

            verified_referrer = await self.session.get(Account, referrer.id)
            if verified_referrer is None:
                raise WriteVerificationError(f"Account {referrer.id} disappeared after update")
            if (
                verified_referrer.balance_minor != balance_after
                or verified_referrer.referral_earnings_minor != earnings_after
            ):
                raise DataIntegrityError(
                    f"Referral credit mismatch for account {referrer.id}: expected "
                    f"balance {balance_after} and earnings {earnings_after}"
                )

            await self.session.commit()

        except IntegrityError:
            await self.session.rollback()
            metrics.record_referral_bonus("skipped")
            logger.info(
                "referral_bonus_already_awarded",
                purchaser_id=str(purchaser_id),
                referrer_id=str(referrer_id),
            )
            return False

        except (SQLAlchemyError, WriteVerificationError, DataIntegrityError) as exc:
            await self.session.rollback()
            metrics.record_referral_bonus("failed")
            metrics.record_error(type(exc).__name__, "referral_bonus")
            logger.error(
                "referral_bonus_failed",
                purchaser_id=str(purchaser_id),
                referrer_id=str(referrer_id),
                transaction_id=transaction_id,
                error=str(exc),
                exc_info=True,
            )
            return False

        metrics.record_referral_bonus("awarded")
        logger.info(
            "referral_bonus_awarded",
            purchaser_id=str(purchaser_id),
            referrer_id=str(referrer_id),
            transaction_id=transaction_id,
            amount_minor=bonus,
        )
        return True

    async def list_for_account(self, account_id: UUID) -> list[TransactionData]:
        stmt = (
            select(Transaction)
            .where(Transaction.account_id == account_id)
            .order_by(Transaction.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return [transaction_to_domain(t) for t in result.scalars().all()]

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

    async def _lock_transaction_for_update(self, transaction_id: int) -> Transaction | None:
        stmt = select(Transaction).where(Transaction.id == transaction_id).with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
