"""
订单相关数据模型
订单是财务记录，只更新不删除
"""
import enum
from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from sqlalchemy import (
    BigInteger, String, Text, Boolean, Integer,
    DateTime, Index, ForeignKey, Numeric, UniqueConstraint, func
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, BigIntPK


class OrderStatus(str, enum.Enum):
    """订单规范状态"""
    PENDING = "PENDING"        # 已扣款，待发货
    PRINTED = "PRINTED"        # 承运商已建单，分配运单号
    SHIPPED = "SHIPPED"        # 运输中
    DELIVERING = "DELIVERING"  # 揽收/派送/待客户确认
    PAID = "PAID"              # 终态：已签收，卖家已回款
    RETURNED = "RETURNED"      # 终态：退回/取消/拒收

    @classmethod
    def terminal(cls) -> tuple["OrderStatus", ...]:
        return (cls.PAID, cls.RETURNED)


class Order(Base):
    """订单表"""
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)

    # 订单号：POD-YYYYMM-00001，按自然月递增
    order_number: Mapped[str] = mapped_column(String(32), nullable=False, comment="订单号")

    user_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id"),
        nullable=False,
        comment="所属卖家"
    )
    customer_id: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        ForeignKey("customers.id", ondelete="SET NULL"),
        comment="客户ID"
    )
    product_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("products.id"))
    template_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("templates.id"))

    # 状态：status 为规范状态，shipping_status 为承运商原始文本
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=OrderStatus.PENDING.value,
        comment="规范状态"
    )
    shipping_status: Mapped[Optional[str]] = mapped_column(Text, comment="承运商原始状态")

    # 收件人快照
    recipient_name: Mapped[str] = mapped_column(String(255), nullable=False)
    recipient_phone: Mapped[str] = mapped_column(String(32), nullable=False)
    recipient_email: Mapped[Optional[str]] = mapped_column(String(255))

    # 收货地址
    address_street: Mapped[str] = mapped_column(Text, nullable=False)
    address_city: Mapped[str] = mapped_column(String(120), nullable=False)
    address_postal_code: Mapped[Optional[str]] = mapped_column(String(20))
    address_country: Mapped[str] = mapped_column(String(60), nullable=False, default="Morocco")

    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1, comment="总件数")

    # 生产成本快照（从卖家余额扣除的金额，下单后不随目录价格变化）
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, comment="生产成本合计")
    items_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    packaging_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    shipping_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    include_packaging: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # 面向终端客户的金额（承运商代收货款）
    selling_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, comment="客户售价")
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, comment="代收金额，签收后回款给卖家")

    tracking_number: Mapped[Optional[str]] = mapped_column(String(64), comment="承运商运单号")
    shipped_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # 重发/重下单标记
    allow_reshipping: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, comment="是否允许重新发货")
    is_reordered: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, comment="是否已被重下单引用")
    reordered_from_id: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        ForeignKey("orders.id"),
        comment="重下单来源订单"
    )

    # 签收回款时间，非空表示已回款（回款只能发生一次）
    delivery_credited_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    notes: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("order_number", name="uq_orders_order_number"),
        Index("ix_orders_user_created", "user_id", "created_at"),
        Index("ix_orders_status", "status"),
        Index("ix_orders_tracking_number", "tracking_number"),
    )

    # 写入后立即取回 created_at/updated_at，会话关闭后仍可序列化
    __mapper_args__ = {"eager_defaults": True}

    items: Mapped[List["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        foreign_keys="OrderItem.order_id",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderItem.id"
    )

    @property
    def is_return_status(self) -> bool:
        return self.status == OrderStatus.RETURNED.value

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, number={self.order_number}, status={self.status})>"


class OrderItem(Base):
    """订单行项目表"""
    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False
    )
    product_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("products.id"), nullable=False)
    template_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("templates.id"))

    product_name: Mapped[str] = mapped_column(String(255), nullable=False, comment="商品名称快照")
    color: Mapped[str] = mapped_column(String(60), nullable=False)
    size: Mapped[str] = mapped_column(String(30), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    # 单件成本（含印刷面加价），重下单行为 0
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    line_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    reorder_from_order_id: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        ForeignKey("orders.id"),
        comment="重下单来源订单"
    )

    order: Mapped["Order"] = relationship("Order", back_populates="items", foreign_keys=[order_id])


class OrderSequence(Base):
    """订单号序列表 - 每个自然月一行"""
    __tablename__ = "order_sequences"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    period: Mapped[str] = mapped_column(String(6), nullable=False, comment="年月 YYYYMM")
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("period", name="uq_order_sequences_period"),
    )


class OrderStatusHistory(Base):
    """订单状态变更历史"""
    __tablename__ = "order_status_history"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False
    )
    old_status: Mapped[Optional[str]] = mapped_column(String(20))
    new_status: Mapped[str] = mapped_column(String(20), nullable=False)
    raw_status: Mapped[Optional[str]] = mapped_column(Text, comment="承运商原始状态")
    # 来源：create / webhook / sync / track / ship / manual
    source: Mapped[str] = mapped_column(String(20), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    updated_by: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("users.id"))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now()
    )

    __table_args__ = (
        Index("ix_order_status_history_order", "order_id", "created_at"),
    )
