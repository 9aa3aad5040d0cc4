"""
Database Models - SQLAlchemy ORM models with strict typing.

NO DICTIONARIES - All columns use Mapped[] type annotations.
"""

from datetime import UTC, date, datetime
from uuid import UUID, uuid4

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


class Plan(Base):
    """
    ORM model for plans table.

    Plans are immutable once created; transactions reference them by id.
    """

    __tablename__ = "plans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    price_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    daily_earning_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    videos_per_day: Mapped[int] = mapped_column(Integer, nullable=False)
    validity_days: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        CheckConstraint("price_minor > 0", name="ck_plan_price_positive"),
        CheckConstraint("daily_earning_minor > 0", name="ck_plan_daily_earning_positive"),
        CheckConstraint("videos_per_day > 0", name="ck_plan_videos_per_day_positive"),
        CheckConstraint("validity_days > 0", name="ck_plan_validity_days_positive"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<Plan(id={self.id}, name={self.name}, price={self.price_minor})>"


class Account(Base):
    """
    ORM model for accounts table.

    The id is the subject issued by the auth provider.
    """

    __tablename__ = "accounts"

    # Primary Key
    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)

    # Profile
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    username: Mapped[str] = mapped_column(String(50), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="user")
    is_banned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Balance
    balance_minor: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    # Plan
    plan_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("plans.id", ondelete="RESTRICT"), nullable=True
    )
    plan_activated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Withdrawals
    last_withdrawal_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Referrals
    referral_code: Mapped[str | None] = mapped_column(String(32), nullable=True, unique=True)
    referred_by_id: Mapped[UUID | None] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True
    )
    referral_earnings_minor: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("balance_minor >= 0", name="ck_balance_non_negative"),
        CheckConstraint(
            "referral_earnings_minor >= 0", name="ck_referral_earnings_non_negative"
        ),
        CheckConstraint("role IN ('user', 'admin')", name="ck_account_role"),
        CheckConstraint(
            "(plan_id IS NULL) = (plan_activated_at IS NULL)",
            name="ck_plan_activation_pair",
        ),
        Index(
            "idx_accounts_referred_by",
            "referred_by_id",
            postgresql_where=(referred_by_id.isnot(None)),
        ),
        Index("idx_accounts_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<Account(id={self.id}, username={self.username}, "
            f"balance={self.balance_minor}, plan_id={self.plan_id})>"
        )


class Video(Base):
    """ORM model for videos table."""

    __tablename__ = "videos"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    video_url: Mapped[str] = mapped_column(String(1024), nullable=False)
    watch_duration_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=30)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint(
            "watch_duration_seconds > 0 AND watch_duration_seconds <= 3600",
            name="ck_video_duration_range",
        ),
        Index("idx_videos_created_at", "created_at"),
    )


class WatchedVideo(Base):
    """
    ORM model for watched_videos table.

    Fact log; one row per (account, video, business day).
    """

    __tablename__ = "watched_videos"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    account_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    video_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("videos.id", ondelete="CASCADE"), nullable=False
    )
    watched_on: Mapped[date] = mapped_column(Date, nullable=False)
    watched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        UniqueConstraint("account_id", "video_id", "watched_on", name="uq_watch_per_day"),
        Index("idx_watched_videos_account_day", "account_id", "watched_on"),
    )


class DailyClaim(Base):
    """
    ORM model for daily_claims table.

    At most one row per account per business day.
    """

    __tablename__ = "daily_claims"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    account_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    claimed_on: Mapped[date] = mapped_column(Date, nullable=False)
    amount_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    balance_before: Mapped[int] = mapped_column(BigInteger, nullable=False)
    balance_after: Mapped[int] = mapped_column(BigInteger, nullable=False)
    claimed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        UniqueConstraint("account_id", "claimed_on", name="uq_daily_claim_per_day"),
        CheckConstraint("amount_minor > 0", name="ck_daily_claim_amount_positive"),
        CheckConstraint(
            "balance_after = balance_before + amount_minor",
            name="ck_daily_claim_balance_consistency",
        ),
    )


class Transaction(Base):
    """
    ORM model for transactions table.

    Plan purchases paid by manual bank transfer, verified by an admin.
    """

    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    account_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    plan_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("plans.id", ondelete="RESTRICT"), nullable=False
    )
    amount_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    payment_reference: Mapped[str] = mapped_column(String(100), nullable=False)
    proof_url: Mapped[str] = mapped_column(String(1024), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_by_id: Mapped[UUID | None] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True
    )

    __table_args__ = (
        CheckConstraint("amount_minor > 0", name="ck_transaction_amount_positive"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')", name="ck_transaction_status"
        ),
        Index("idx_transactions_account_id", "account_id"),
        Index("idx_transactions_status", "status"),
        Index("idx_transactions_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<Transaction(id={self.id}, account_id={self.account_id}, "
            f"plan_id={self.plan_id}, status={self.status})>"
        )


class Withdrawal(Base):
    """
    ORM model for withdrawals table.

    The amount is reserved from the balance when the request is created.
    """

    __tablename__ = "withdrawals"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    account_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    amount_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    payment_method: Mapped[str] = mapped_column(String(50), nullable=False)
    account_number: Mapped[str] = mapped_column(String(64), nullable=False)
    account_name: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_by_id: Mapped[UUID | None] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True
    )

    __table_args__ = (
        CheckConstraint("amount_minor > 0", name="ck_withdrawal_amount_positive"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')", name="ck_withdrawal_status"
        ),
        Index("idx_withdrawals_account_created", "account_id", "created_at"),
        Index("idx_withdrawals_status", "status"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<Withdrawal(id={self.id}, account_id={self.account_id}, "
            f"amount={self.amount_minor}, status={self.status})>"
        )


class ReferralReward(Base):
    """
    ORM model for referral_rewards table.

    Immutable ledger of referral bonuses; a referred account pays out at most once.
    """

    __tablename__ = "referral_rewards"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    referrer_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    referred_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    transaction_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("transactions.id", ondelete="SET NULL"), nullable=True
    )
    amount_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        UniqueConstraint("referred_id", name="uq_referral_reward_referred"),
        CheckConstraint("amount_minor > 0", name="ck_referral_reward_amount_positive"),
        Index("idx_referral_rewards_referrer", "referrer_id"),
    )
