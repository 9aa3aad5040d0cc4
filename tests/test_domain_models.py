"""
Tests for domain models and request schemas.
"""

from uuid import uuid4

import pytest
from hypothesis import given
from hypothesis import strategies as st
from pydantic import ValidationError

from tests.factories import FIXED_NOW
from videarn.models.api import (
    AccountRole,
    PaymentMethod,
    PurchaseRequest,
    RegisterAccountRequest,
    WithdrawalRequest,
)
from videarn.models.domain import (
    AccountData,
    AccountPage,
    PlanData,
    WithdrawalIntent,
)


class TestPlanData:
    """Tests for PlanData validation."""

    def test_valid_plan(self):
        plan = PlanData(1, "Starter", 100000, 5000, 3, 30)

        assert plan.videos_per_day == 3

    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("name", ""),
            ("price_minor", 0),
            ("daily_earning_minor", -1),
            ("videos_per_day", 0),
            ("validity_days", 0),
        ],
    )
    def test_rejects_invalid_terms(self, field, value):
        terms = {
            "plan_id": 1,
            "name": "Starter",
            "price_minor": 100000,
            "daily_earning_minor": 5000,
            "videos_per_day": 3,
            "validity_days": 30,
        }
        terms[field] = value

        with pytest.raises(ValueError):
            PlanData(**terms)


class TestAccountData:
    """Tests for AccountData validation."""

    def test_negative_balance_rejected(self):
        with pytest.raises(ValueError, match="Balance cannot be negative"):
            AccountData(
                account_id=uuid4(),
                email=None,
                username="viewer",
                role=AccountRole.USER,
                is_banned=False,
                balance_minor=-1,
                plan_id=None,
                plan_activated_at=None,
                last_withdrawal_at=None,
                referral_code=None,
                referred_by_id=None,
                referral_earnings_minor=0,
                created_at=FIXED_NOW,
            )


class TestWithdrawalIntent:
    """Tests for WithdrawalIntent validation."""

    @pytest.mark.parametrize("blank", ["payment_method", "account_number", "account_name"])
    def test_blank_destination_rejected(self, blank):
        fields = {
            "account_id": uuid4(),
            "amount_minor": 20000,
            "payment_method": "JazzCash",
            "account_number": "03001234567",
            "account_name": "Test Viewer",
        }
        fields[blank] = "  "

        with pytest.raises(ValueError):
            WithdrawalIntent(**fields)


class TestAccountPage:
    """Tests for AccountPage.total_pages."""

    @pytest.mark.parametrize(
        ("total", "page_size", "pages"),
        [(0, 50, 0), (1, 50, 1), (50, 50, 1), (51, 50, 2)],
    )
    def test_total_pages(self, total, page_size, pages):
        assert AccountPage((), total, 1, page_size).total_pages == pages

    @given(total=st.integers(min_value=0, max_value=10_000), size=st.integers(1, 500))
    def test_pages_cover_total(self, total, size):
        pages = AccountPage((), total, 1, size).total_pages

        assert pages * size >= total
        assert (pages - 1) * size < total or total == 0


class TestRequestSchemas:
    """Tests for API request validation."""

    def test_referral_code_uppercased(self):
        request = RegisterAccountRequest(username=" viewer ", referral_code=" join4567 ")

        assert request.username == "viewer"
        assert request.referral_code == "JOIN4567"

    def test_blank_username_rejected(self):
        with pytest.raises(ValidationError):
            RegisterAccountRequest(username="   ")

    @pytest.mark.parametrize("url", ["ftp://x.example.com/p.png", "proof.png", "https://"])
    def test_proof_url_must_be_http(self, url):
        with pytest.raises(ValidationError):
            PurchaseRequest(plan_id=1, payment_reference="TID-1", proof_url=url)

    def test_destination_stripped(self):
        request = WithdrawalRequest(
            amount_minor=20000,
            payment_method=" JazzCash ",
            account_number="0300",
            account_name="A",
        )

        assert request.payment_method == "JazzCash"

    def test_blank_destination_rejected(self):
        with pytest.raises(ValidationError):
            WithdrawalRequest(
                amount_minor=20000, payment_method="JazzCash", account_number=" ", account_name="A"
            )

    @pytest.mark.parametrize("method", ["Bank Transfer", "jazzcash", "PayPal"])
    def test_unknown_payment_method_rejected(self, method):
        with pytest.raises(ValidationError):
            WithdrawalRequest(
                amount_minor=20000, payment_method=method, account_number="0300", account_name="A"
            )

    def test_wallets_accepted(self):
        for method in ("EasyPaisa", "JazzCash"):
            request = WithdrawalRequest(
                amount_minor=20000, payment_method=method, account_number="0300", account_name="A"
            )
            assert request.payment_method is PaymentMethod(method)
