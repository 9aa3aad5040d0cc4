"""
ORM to domain conversion shared by the ledger services.
"""

from videarn.db.models import Account, Plan, Transaction, Withdrawal
from videarn.models.api import AccountRole, RequestStatus
from videarn.models.domain import AccountData, PlanData, TransactionData, WithdrawalData


def account_to_domain(account: Account) -> AccountData:
    """Convert ORM account to domain model."""
    return AccountData(
        account_id=account.id,
        email=account.email,
        username=account.username,
        role=AccountRole(account.role),
        is_banned=account.is_banned,
        balance_minor=account.balance_minor,
        plan_id=account.plan_id,
        plan_activated_at=account.plan_activated_at,
        last_withdrawal_at=account.last_withdrawal_at,
        referral_code=account.referral_code,
        referred_by_id=account.referred_by_id,
        referral_earnings_minor=account.referral_earnings_minor,
        created_at=account.created_at,
    )


def plan_to_domain(plan: Plan) -> PlanData:
    return PlanData(
        plan_id=plan.id,
        name=plan.name,
        price_minor=plan.price_minor,
        daily_earning_minor=plan.daily_earning_minor,
        videos_per_day=plan.videos_per_day,
        validity_days=plan.validity_days,
    )


def transaction_to_domain(transaction: Transaction) -> TransactionData:
    return TransactionData(
        transaction_id=transaction.id,
        account_id=transaction.account_id,
        plan_id=transaction.plan_id,
        amount_minor=transaction.amount_minor,
        payment_reference=transaction.payment_reference,
        proof_url=transaction.proof_url,
        status=RequestStatus(transaction.status),
        created_at=transaction.created_at,
        resolved_at=transaction.resolved_at,
    )


def withdrawal_to_domain(
    withdrawal: Withdrawal, balance_after: int | None = None
) -> WithdrawalData:
    return WithdrawalData(
        withdrawal_id=withdrawal.id,
        account_id=withdrawal.account_id,
        amount_minor=withdrawal.amount_minor,
        payment_method=withdrawal.payment_method,
        account_number=withdrawal.account_number,
        account_name=withdrawal.account_name,
        status=RequestStatus(withdrawal.status),
        created_at=withdrawal.created_at,
        resolved_at=withdrawal.resolved_at,
        balance_after=balance_after,
    )
