"""
Tests for Admin API Routes.

Route handler functions are called directly with mocked services; the
role gate is exercised through the app.
"""

from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from fastapi import HTTPException

from tests.factories import FIXED_NOW
from videarn.api.dependencies import get_current_account
from videarn.exceptions import (
    AccountNotFoundError,
    AuthorizationError,
    PlanNameTakenError,
    RequestAlreadyResolvedError,
    TransactionNotFoundError,
    VideoValidationError,
)
from videarn.models.api import AccountRole, RequestStatus
from videarn.models.domain import (
    AccountPage,
    AdminTransactionView,
    ApprovalResult,
    LedgerStats,
    PlanData,
    TransactionData,
)


def make_transaction(status: RequestStatus = RequestStatus.APPROVED) -> TransactionData:
    return TransactionData(
        transaction_id=41,
        account_id=uuid4(),
        plan_id=1,
        amount_minor=100000,
        payment_reference="TID-884201",
        proof_url="https://storage.example.com/proofs/884201.png",
        status=status,
        created_at=FIXED_NOW,
        resolved_at=FIXED_NOW if status != RequestStatus.PENDING else None,
    )


class TestStats:
    """Tests for get_stats route."""

    async def test_stats(self, db_session, admin_account_data):
        from videarn.api.admin_routes import get_stats

        with patch("videarn.api.admin_routes.AdminService") as MockService:
            MockService.return_value.get_stats = AsyncMock(
                return_value=LedgerStats(10, 1_000_000, 40_000, 2, 1)
            )
            result = await get_stats(db=db_session, admin=admin_account_data)

        assert result.total_users == 10
        assert result.pending_withdrawals == 1


class TestTransactions:
    """Tests for purchase review routes."""

    async def test_list_includes_contact_details(self, db_session, admin_account_data):
        from videarn.api.admin_routes import list_transactions

        view = AdminTransactionView(
            transaction=make_transaction(RequestStatus.PENDING),
            email="buyer@example.com",
            username="buyer",
            plan_name="Starter",
        )

        with patch("videarn.api.admin_routes.AdminService") as MockService:
            MockService.return_value.list_transactions = AsyncMock(return_value=[view])
            [result] = await list_transactions(
                status_filter=RequestStatus.PENDING, db=db_session, admin=admin_account_data
            )

        assert result.plan_name == "Starter"
        assert result.payment_reference == "TID-884201"
        MockService.return_value.list_transactions.assert_awaited_once_with(
            RequestStatus.PENDING
        )

    async def test_approve_reports_bonus(self, db_session, admin_account_data):
        from videarn.api.admin_routes import approve_transaction

        approval = ApprovalResult(
            transaction=make_transaction(),
            plan_activated_at=FIXED_NOW,
            first_plan=True,
            referral_bonus_awarded=True,
        )

        with patch("videarn.api.admin_routes.PurchaseService") as MockService:
            MockService.return_value.approve_transaction = AsyncMock(return_value=approval)
            result = await approve_transaction(
                transaction_id=41, db=db_session, admin=admin_account_data
            )

        assert result.first_plan is True
        assert result.referral_bonus_awarded is True
        MockService.return_value.approve_transaction.assert_awaited_once_with(
            41, admin_account_data.account_id
        )

    async def test_approve_twice_409(self, db_session, admin_account_data):
        from videarn.api.admin_routes import approve_transaction

        with patch("videarn.api.admin_routes.PurchaseService") as MockService:
            MockService.return_value.approve_transaction = AsyncMock(
                side_effect=RequestAlreadyResolvedError("transaction", 41, "approved")
            )
            with pytest.raises(HTTPException) as exc_info:
                await approve_transaction(
                    transaction_id=41, db=db_session, admin=admin_account_data
                )

        assert exc_info.value.status_code == 409
        assert exc_info.value.detail == "Transaction already approved"

    async def test_reject_unknown_404(self, db_session, admin_account_data):
        from videarn.api.admin_routes import reject_transaction

        with patch("videarn.api.admin_routes.PurchaseService") as MockService:
            MockService.return_value.reject_transaction = AsyncMock(
                side_effect=TransactionNotFoundError(404)
            )
            with pytest.raises(HTTPException) as exc_info:
                await reject_transaction(
                    transaction_id=404, db=db_session, admin=admin_account_data
                )

        assert exc_info.value.status_code == 404


class TestWithdrawals:
    """Tests for withdrawal review routes."""

    async def test_reject_resolved_409(self, db_session, admin_account_data):
        from videarn.api.admin_routes import reject_withdrawal

        with patch("videarn.api.admin_routes.WithdrawalService") as MockService:
            MockService.return_value.reject_withdrawal = AsyncMock(
                side_effect=RequestAlreadyResolvedError("withdrawal", 77, "rejected")
            )
            with pytest.raises(HTTPException) as exc_info:
                await reject_withdrawal(
                    withdrawal_id=77, db=db_session, admin=admin_account_data
                )

        assert exc_info.value.status_code == 409
        assert exc_info.value.detail == "Withdrawal already rejected"


class TestUsers:
    """Tests for user management routes."""

    async def test_list_users_page(self, db_session, admin_account_data, user_account_data):
        from videarn.api.admin_routes import list_users

        page = AccountPage(accounts=(user_account_data,), total=51, page=1, page_size=50)

        with patch("videarn.api.admin_routes.AdminService") as MockService:
            MockService.return_value.list_users = AsyncMock(return_value=page)
            result = await list_users(
                page=1, page_size=50, search=None, db=db_session, admin=admin_account_data
            )

        assert result.total_pages == 2
        assert len(result.users) == 1

    async def test_self_ban_forbidden(self, db_session, admin_account_data):
        from videarn.api.admin_routes import ban_user

        with patch("videarn.api.admin_routes.AdminService") as MockService:
            MockService.return_value.set_banned = AsyncMock(
                side_effect=AuthorizationError("ban:self")
            )
            with pytest.raises(HTTPException) as exc_info:
                await ban_user(
                    account_id=admin_account_data.account_id,
                    db=db_session,
                    admin=admin_account_data,
                )

        assert exc_info.value.status_code == 403

    async def test_unban(self, db_session, admin_account_data, user_account_data):
        from videarn.api.admin_routes import unban_user

        with patch("videarn.api.admin_routes.AdminService") as MockService:
            MockService.return_value.set_banned = AsyncMock(return_value=user_account_data)
            await unban_user(
                account_id=user_account_data.account_id, db=db_session, admin=admin_account_data
            )

        MockService.return_value.set_banned.assert_awaited_once_with(
            admin_account_data.account_id, user_account_data.account_id, False
        )

    async def test_delete_unknown_404(self, db_session, admin_account_data):
        from videarn.api.admin_routes import delete_user

        with patch("videarn.api.admin_routes.AdminService") as MockService:
            MockService.return_value.delete_account = AsyncMock(
                side_effect=AccountNotFoundError(uuid4())
            )
            with pytest.raises(HTTPException) as exc_info:
                await delete_user(account_id=uuid4(), db=db_session, admin=admin_account_data)

        assert exc_info.value.status_code == 404


class TestCatalog:
    """Tests for plan and video admin routes."""

    async def test_create_plan(self, db_session, admin_account_data):
        from videarn.api.admin_routes import PlanCreateRequest, create_plan

        request = PlanCreateRequest(
            name="  Gold ",
            price_minor=500000,
            daily_earning_minor=20000,
            videos_per_day=5,
            validity_days=60,
        )

        with patch("videarn.api.admin_routes.CatalogService") as MockService:
            MockService.return_value.create_plan = AsyncMock(
                return_value=PlanData(2, "Gold", 500000, 20000, 5, 60)
            )
            result = await create_plan(request=request, db=db_session, admin=admin_account_data)

        assert result.name == "Gold"
        assert MockService.return_value.create_plan.await_args.kwargs["name"] == "Gold"

    async def test_duplicate_plan_409(self, db_session, admin_account_data):
        from videarn.api.admin_routes import PlanCreateRequest, create_plan

        request = PlanCreateRequest(
            name="Starter",
            price_minor=100000,
            daily_earning_minor=5000,
            videos_per_day=3,
            validity_days=30,
        )

        with patch("videarn.api.admin_routes.CatalogService") as MockService:
            MockService.return_value.create_plan = AsyncMock(
                side_effect=PlanNameTakenError("Starter")
            )
            with pytest.raises(HTTPException) as exc_info:
                await create_plan(request=request, db=db_session, admin=admin_account_data)

        assert exc_info.value.status_code == 409

    async def test_invalid_video_422(self, db_session, admin_account_data):
        from videarn.api.admin_routes import VideoUpsertRequest, create_video

        request = VideoUpsertRequest(title="x", video_url="ftp://nope", watch_duration_seconds=5)

        with patch("videarn.api.admin_routes.CatalogService") as MockService:
            MockService.return_value.create_video = AsyncMock(
                side_effect=VideoValidationError("video_url", "Please enter a valid http(s) URL")
            )
            with pytest.raises(HTTPException) as exc_info:
                await create_video(request=request, db=db_session, admin=admin_account_data)

        assert exc_info.value.status_code == 422


class TestRoleGate:
    """Admin routes through the app."""

    def test_regular_user_forbidden(self, app, client, override_db, user_account_data):
        app.dependency_overrides[get_current_account] = lambda: user_account_data

        response = client.get("/admin/stats")

        assert response.status_code == 403
        assert response.json()["detail"] == "Admin role required"

    def test_admin_allowed(self, app, client, override_db, admin_account_data):
        app.dependency_overrides[get_current_account] = lambda: admin_account_data

        with patch("videarn.api.admin_routes.AdminService") as MockService:
            MockService.return_value.get_stats = AsyncMock(
                return_value=LedgerStats(1, 0, 0, 0, 0)
            )
            response = client.get("/admin/stats")

        assert response.status_code == 200
        assert response.json()["total_users"] == 1

    def test_set_role_validates_enum(self, app, client, override_db, admin_account_data):
        app.dependency_overrides[get_current_account] = lambda: admin_account_data

        response = client.put(f"/admin/users/{uuid4()}/role", json={"role": "superuser"})

        assert response.status_code == 422
        assert AccountRole.ADMIN.value == "admin"
