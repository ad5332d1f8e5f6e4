"""
卖家客户通讯录数据模型
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    BigInteger, String, Integer, DateTime,
    ForeignKey, Numeric, UniqueConstraint, func
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, BigIntPK


class Customer(Base):
    """客户表 - 按 (卖家, 电话) 去重"""
    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        comment="所属卖家"
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255))
    phone: Mapped[str] = mapped_column(String(32), nullable=False)

    # 聚合统计，与订单创建在同一事务内更新
    total_orders: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_spent: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    last_order_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    __table_args__ = (
        UniqueConstraint("user_id", "phone", name="uq_customers_user_phone"),
    )

    def record_order(self, amount: Decimal, ordered_at: datetime) -> None:
        """累加下单统计"""
        self.total_orders = (self.total_orders or 0) + 1
        self.total_spent = (self.total_spent or Decimal("0")) + amount
        self.last_order_date = ordered_at
