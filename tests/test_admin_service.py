"""
Tests for AdminService.

Overview totals, request queues and account management.
"""

from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from tests.factories import (
    create_mock_account,
    create_mock_transaction,
    create_mock_withdrawal,
    execute_result,
)
from videarn.exceptions import AccountNotFoundError, AuthorizationError
from videarn.models.api import AccountRole, RequestStatus
from videarn.services.admin import AdminService


@pytest.fixture
def service(db_session) -> AdminService:
    return AdminService(db_session)


class TestGetStats:
    """Tests for get_stats."""

    async def test_stats_in_query_order(self, service, db_session):
        db_session.execute = AsyncMock(
            side_effect=[
                execute_result(scalar=120),
                execute_result(scalar=3_500_000),
                execute_result(scalar=410_000),
                execute_result(scalar=4),
                execute_result(scalar=2),
            ]
        )

        stats = await service.get_stats()

        assert stats.total_users == 120
        assert stats.total_approved_purchases_minor == 3_500_000
        assert stats.total_outstanding_balance_minor == 410_000
        assert stats.pending_transactions == 4
        assert stats.pending_withdrawals == 2


class TestQueues:
    """Tests for list_transactions and list_withdrawals."""

    async def test_list_transactions_joins_account_and_plan(self, service, db_session):
        transaction = create_mock_transaction()
        db_session.execute = AsyncMock(
            return_value=execute_result(
                rows=[(transaction, "buyer@example.com", "buyer", "Starter")]
            )
        )

        [view] = await service.list_transactions(RequestStatus.PENDING)

        assert view.transaction.transaction_id == transaction.id
        assert view.email == "buyer@example.com"
        assert view.plan_name == "Starter"

    async def test_list_withdrawals(self, service, db_session):
        withdrawal = create_mock_withdrawal()
        db_session.execute = AsyncMock(
            return_value=execute_result(rows=[(withdrawal, None, "cashout")])
        )

        [view] = await service.list_withdrawals()

        assert view.withdrawal.payment_method == "EasyPaisa"
        assert view.email is None
        assert view.username == "cashout"


class TestListUsers:
    """Tests for list_users."""

    async def test_page_carries_total(self, service, db_session):
        accounts = [create_mock_account(username=f"user{i}") for i in range(2)]
        db_session.execute = AsyncMock(
            side_effect=[execute_result(scalar=7), execute_result(scalars=accounts)]
        )

        page = await service.list_users(page=2, page_size=5, search="user")

        assert page.total == 7
        assert page.page == 2
        assert page.total_pages == 2
        assert [a.username for a in page.accounts] == ["user0", "user1"]


class TestAccountManagement:
    """Tests for ban, role and delete."""

    @pytest.mark.parametrize("banned", [True, False])
    async def test_set_banned(self, service, db_session, identity_map, banned):
        account = create_mock_account(is_banned=not banned)
        identity_map.register(account)

        with patch.object(service, "_lock_account_for_update", AsyncMock(return_value=account)):
            result = await service.set_banned(uuid4(), account.id, banned)

        assert result.is_banned is banned
        db_session.commit.assert_awaited_once()

    async def test_set_role(self, service, identity_map):
        account = create_mock_account()
        identity_map.register(account)

        with patch.object(service, "_lock_account_for_update", AsyncMock(return_value=account)):
            result = await service.set_role(uuid4(), account.id, AccountRole.ADMIN)

        assert result.role == AccountRole.ADMIN

    async def test_delete_account(self, service, db_session):
        account = create_mock_account()

        with patch.object(service, "_lock_account_for_update", AsyncMock(return_value=account)):
            await service.delete_account(uuid4(), account.id)

        db_session.delete.assert_awaited_once_with(account)
        db_session.commit.assert_awaited_once()

    @pytest.mark.parametrize(
        ("action", "call"),
        [
            ("ban", lambda s, me: s.set_banned(me, me, True)),
            ("change_role", lambda s, me: s.set_role(me, me, AccountRole.USER)),
            ("delete", lambda s, me: s.delete_account(me, me)),
        ],
    )
    async def test_admin_cannot_act_on_self(self, service, db_session, action, call):
        me = uuid4()

        with pytest.raises(AuthorizationError) as exc_info:
            await call(service, me)

        assert exc_info.value.required_permission == f"{action}:self"
        db_session.execute.assert_not_awaited()

    async def test_unknown_account(self, service):
        with patch.object(service, "_lock_account_for_update", AsyncMock(return_value=None)):
            with pytest.raises(AccountNotFoundError):
                await service.set_banned(uuid4(), uuid4(), True)
