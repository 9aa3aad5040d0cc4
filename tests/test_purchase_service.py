"""
Tests for PurchaseService.

Plan purchase submission, the approval state machine, and the referral
bonus that follows a referred account's first plan.
"""

from datetime import timedelta
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from tests.factories import (
    FIXED_NOW,
    create_mock_account,
    create_mock_plan,
    create_mock_transaction,
)
from videarn.db.models import ReferralReward, Transaction
from videarn.exceptions import (
    AccountBannedError,
    PlanNotFoundError,
    RequestAlreadyResolvedError,
    TransactionNotFoundError,
)
from videarn.models.api import RequestStatus
from videarn.models.domain import PurchaseIntent
from videarn.services.purchases import PurchaseService

REFERRAL_BONUS = 10000  # 100.00


@pytest.fixture
def service(db_session, clock) -> PurchaseService:
    return PurchaseService(db_session, clock=clock, referral_bonus_minor=REFERRAL_BONUS)


def lock_accounts(*accounts):
    """_lock_account_for_update side effect resolving by id."""
    by_id = {account.id: account for account in accounts}

    async def _lock(account_id):
        return by_id.get(account_id)

    return AsyncMock(side_effect=_lock)


class TestSubmitPurchase:
    """Tests for submit_purchase."""

    async def test_submit_creates_pending_transaction(self, service, db_session, identity_map):
        account = create_mock_account()
        plan = create_mock_plan(price_minor=250000)
        intent = PurchaseIntent(
            account_id=account.id,
            plan_id=plan.id,
            payment_reference="TID-1001",
            proof_url="https://storage.example.com/proofs/1001.png",
        )

        with (
            patch.object(service, "_find_account", AsyncMock(return_value=account)),
            patch.object(service, "_find_plan", AsyncMock(return_value=plan)),
        ):
            result = await service.submit_purchase(intent)

        assert result.status == RequestStatus.PENDING
        assert result.amount_minor == 250000
        assert result.payment_reference == "TID-1001"

        [row] = identity_map.added_of(Transaction)
        assert row.account_id == account.id
        assert row.created_at == FIXED_NOW
        db_session.commit.assert_awaited_once()

    async def test_unknown_plan(self, service):
        account = create_mock_account()
        intent = PurchaseIntent(account.id, 99, "TID-1", "https://x.example.com/p.png")

        with (
            patch.object(service, "_find_account", AsyncMock(return_value=account)),
            patch.object(service, "_find_plan", AsyncMock(return_value=None)),
        ):
            with pytest.raises(PlanNotFoundError):
                await service.submit_purchase(intent)

    async def test_banned_account(self, service):
        account = create_mock_account(is_banned=True)
        intent = PurchaseIntent(account.id, 1, "TID-1", "https://x.example.com/p.png")

        with patch.object(service, "_find_account", AsyncMock(return_value=account)):
            with pytest.raises(AccountBannedError):
                await service.submit_purchase(intent)

    def test_blank_reference_rejected(self):
        with pytest.raises(ValueError, match="Payment reference"):
            PurchaseIntent(uuid4(), 1, "   ", "https://x.example.com/p.png")


class TestApproveTransaction:
    """Tests for approve_transaction."""

    async def test_first_plan_activates_and_pays_referrer(
        self, service, db_session, identity_map
    ):
        """Referred account's first purchase: referrer gets 100.00 balance and earnings."""
        referrer = create_mock_account(username="referrer", balance_minor=5000)
        purchaser = create_mock_account(username="newbie", referred_by_id=referrer.id)
        transaction = create_mock_transaction(account_id=purchaser.id)
        identity_map.register(referrer, purchaser, transaction)

        with (
            patch.object(
                service, "_lock_transaction_for_update", AsyncMock(return_value=transaction)
            ),
            patch.object(service, "_lock_account_for_update", lock_accounts(referrer, purchaser)),
        ):
            result = await service.approve_transaction(transaction.id, uuid4())

        assert result.first_plan is True
        assert result.referral_bonus_awarded is True
        assert result.transaction.status == RequestStatus.APPROVED
        assert result.plan_activated_at == FIXED_NOW

        assert purchaser.plan_id == transaction.plan_id
        assert purchaser.plan_activated_at == FIXED_NOW
        assert referrer.balance_minor == 5000 + REFERRAL_BONUS
        assert referrer.referral_earnings_minor == REFERRAL_BONUS

        [reward] = identity_map.added_of(ReferralReward)
        assert reward.referrer_id == referrer.id
        assert reward.referred_id == purchaser.id
        assert reward.transaction_id == transaction.id
        # Approval and bonus commit separately
        assert db_session.commit.await_count == 2

    async def test_second_purchase_never_pays_bonus_again(self, service, identity_map):
        referrer = create_mock_account(username="referrer")
        purchaser = create_mock_account(
            referred_by_id=referrer.id,
            plan_id=1,
            plan_activated_at=FIXED_NOW - timedelta(days=40),
        )
        transaction = create_mock_transaction(account_id=purchaser.id, plan_id=2)
        identity_map.register(referrer, purchaser, transaction)

        with (
            patch.object(
                service, "_lock_transaction_for_update", AsyncMock(return_value=transaction)
            ),
            patch.object(service, "_lock_account_for_update", lock_accounts(referrer, purchaser)),
        ):
            result = await service.approve_transaction(transaction.id, uuid4())

        assert result.first_plan is False
        assert result.referral_bonus_awarded is False
        assert purchaser.plan_id == 2
        assert referrer.balance_minor == 0
        assert referrer.referral_earnings_minor == 0
        assert identity_map.added_of(ReferralReward) == []

    async def test_unreferred_account_gets_no_bonus(self, service, identity_map):
        purchaser = create_mock_account()
        transaction = create_mock_transaction(account_id=purchaser.id)
        identity_map.register(purchaser, transaction)

        with (
            patch.object(
                service, "_lock_transaction_for_update", AsyncMock(return_value=transaction)
            ),
            patch.object(service, "_lock_account_for_update", lock_accounts(purchaser)),
        ):
            result = await service.approve_transaction(transaction.id, uuid4())

        assert result.first_plan is True
        assert result.referral_bonus_awarded is False

    async def test_approving_twice_is_a_conflict(self, service, db_session, identity_map):
        purchaser = create_mock_account()
        transaction = create_mock_transaction(account_id=purchaser.id)
        identity_map.register(purchaser, transaction)

        with (
            patch.object(
                service, "_lock_transaction_for_update", AsyncMock(return_value=transaction)
            ),
            patch.object(service, "_lock_account_for_update", lock_accounts(purchaser)),
        ):
            first = await service.approve_transaction(transaction.id, uuid4())
            with pytest.raises(RequestAlreadyResolvedError) as exc_info:
                await service.approve_transaction(transaction.id, uuid4())

        assert exc_info.value.status == "approved"
        assert purchaser.plan_activated_at == first.plan_activated_at
        db_session.commit.assert_awaited_once()

    async def test_rejected_transaction_cannot_be_approved(self, service, db_session):
        transaction = create_mock_transaction(status=RequestStatus.REJECTED)

        with patch.object(
            service, "_lock_transaction_for_update", AsyncMock(return_value=transaction)
        ):
            with pytest.raises(RequestAlreadyResolvedError):
                await service.approve_transaction(transaction.id, uuid4())

        db_session.flush.assert_not_awaited()

    async def test_unknown_transaction(self, service):
        with patch.object(service, "_lock_transaction_for_update", AsyncMock(return_value=None)):
            with pytest.raises(TransactionNotFoundError):
                await service.approve_transaction(404, uuid4())

    async def test_bonus_failure_is_reported_not_rolled_into_approval(
        self, service, db_session, identity_map
    ):
        referrer = create_mock_account(username="referrer")
        purchaser = create_mock_account(referred_by_id=referrer.id)
        transaction = create_mock_transaction(account_id=purchaser.id)
        identity_map.register(referrer, purchaser, transaction)

        # First flush (approval) succeeds, second (bonus) loses the connection
        db_session.flush = AsyncMock(
            side_effect=[None, OperationalError("UPDATE accounts", {}, Exception("timeout"))]
        )

        with (
            patch.object(
                service, "_lock_transaction_for_update", AsyncMock(return_value=transaction)
            ),
            patch.object(service, "_lock_account_for_update", lock_accounts(referrer, purchaser)),
        ):
            result = await service.approve_transaction(transaction.id, uuid4())

        assert result.transaction.status == RequestStatus.APPROVED
        assert result.referral_bonus_awarded is False
        db_session.commit.assert_awaited_once()
        db_session.rollback.assert_awaited_once()


class TestAwardReferral:
    """Tests for award_referral_if_eligible."""

    async def test_duplicate_reward_is_skipped(self, service, db_session, identity_map):
        referrer = create_mock_account()
        identity_map.register(referrer)
        db_session.flush = AsyncMock(
            side_effect=IntegrityError("INSERT INTO referral_rewards", {}, Exception("dup"))
        )

        with patch.object(service, "_lock_account_for_update", lock_accounts(referrer)):
            awarded = await service.award_referral_if_eligible(
                purchaser_id=uuid4(),
                referrer_id=referrer.id,
                transaction_id=5,
                was_first_plan=True,
            )

        assert awarded is False
        db_session.rollback.assert_awaited_once()
        db_session.commit.assert_not_awaited()

    async def test_missing_referrer_is_skipped(self, service, db_session):
        with patch.object(service, "_lock_account_for_update", AsyncMock(return_value=None)):
            awarded = await service.award_referral_if_eligible(
                purchaser_id=uuid4(),
                referrer_id=uuid4(),
                transaction_id=5,
                was_first_plan=True,
            )

        assert awarded is False
        db_session.add.assert_not_called()

    async def test_not_first_plan(self, service):
        with patch.object(service, "_lock_account_for_update", AsyncMock()) as lock:
            awarded = await service.award_referral_if_eligible(uuid4(), uuid4(), 5, False)

        assert awarded is False
        lock.assert_not_awaited()


class TestRejectTransaction:
    """Tests for reject_transaction."""

    async def test_reject_changes_status_only(self, service, db_session, identity_map):
        purchaser = create_mock_account()
        transaction = create_mock_transaction(account_id=purchaser.id)
        identity_map.register(transaction)

        with patch.object(
            service, "_lock_transaction_for_update", AsyncMock(return_value=transaction)
        ):
            result = await service.reject_transaction(transaction.id, uuid4())

        assert result.status == RequestStatus.REJECTED
        assert result.resolved_at == FIXED_NOW
        assert purchaser.plan_id is None
        db_session.commit.assert_awaited_once()

    async def test_reject_approved_is_a_conflict(self, service):
        transaction = create_mock_transaction(status=RequestStatus.APPROVED)

        with patch.object(
            service, "_lock_transaction_for_update", AsyncMock(return_value=transaction)
        ):
            with pytest.raises(RequestAlreadyResolvedError):
                await service.reject_transaction(transaction.id, uuid4())
