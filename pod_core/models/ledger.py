"""
余额账本数据模型
余额与积分本身存放在 users 表，这里是流水与充值/提现申请
"""
import enum
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    BigInteger, String, Integer, DateTime, Text,
    ForeignKey, Index, Numeric, func
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, BigIntPK


class TransactionType(str, enum.Enum):
    """余额/积分流水类型"""
    ORDER_DEBIT = "order_debit"
    DELIVERY_CREDIT = "delivery_credit"
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    WITHDRAWAL_REFUND = "withdrawal_refund"
    POINTS_AWARD = "points_award"
    REFERRAL_BONUS = "referral_bonus"
    POINTS_EXCHANGE = "points_exchange"


class BalanceTransaction(Base):
    """余额流水表（每次余额或积分变动一条）"""
    __tablename__ = "balance_transactions"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )
    transaction_type: Mapped[str] = mapped_column(String(30), nullable=False, comment="流水类型")

    # 正数增加，负数扣除
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    balance_after: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, comment="变动后余额")
    points_after: Mapped[int] = mapped_column(Integer, nullable=False, comment="变动后积分")

    order_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("orders.id"))
    notes: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    __table_args__ = (
        Index("ix_balance_transactions_user_created", "user_id", "created_at"),
        Index("ix_balance_transactions_order", "order_id"),
    )


class Deposit(Base):
    """充值申请表：PENDING → VALIDATED / REJECTED"""
    __tablename__ = "deposits"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")
    reference: Mapped[Optional[str]] = mapped_column(String(120), comment="转账凭证号")
    admin_notes: Mapped[Optional[str]] = mapped_column(Text)
    reviewed_by: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("users.id"))
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    __table_args__ = (
        Index("ix_deposits_user_status", "user_id", "status"),
    )


class Withdrawal(Base):
    """提现申请表：PENDING → PROCESSED / REJECTED / CANCELLED"""
    __tablename__ = "withdrawals"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, comment="申请金额（已从余额扣除）")
    fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, comment="手续费")
    net_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, comment="实际到账")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")
    bank_details: Mapped[Optional[str]] = mapped_column(Text)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text)
    reviewed_by: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("users.id"))
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    __table_args__ = (
        Index("ix_withdrawals_user_status", "user_id", "status"),
    )
