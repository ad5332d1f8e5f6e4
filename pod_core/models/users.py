"""
用户（卖家/员工/管理员）数据模型
认证与角色管理由外部系统负责，这里只保留账本引擎需要的字段
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from sqlalchemy import (
    BigInteger, String, Boolean, Integer, DateTime,
    ForeignKey, Index, Numeric, func
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, BigIntPK, JSONType

# 拥有此权限的员工可以越过发货/重发限制
MANAGE_ORDERS_PERMISSION = "manage_orders"


class User(Base):
    """用户表"""
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, comment="登录邮箱")
    name: Mapped[str] = mapped_column(String(255), nullable=False, comment="显示名称")

    # 角色：admin / employee / seller
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="seller", comment="角色")
    permissions: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list, comment="权限列表")

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, comment="是否启用")
    # 首笔充值审核通过后置为 True，之前不允许下单
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, comment="是否已激活")

    # 余额与积分（只能通过 BalanceLedger 原子增减）
    balance: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
        comment="预付余额"
    )
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0, comment="积分")

    # 推荐关系
    referral_code: Mapped[Optional[str]] = mapped_column(String(32), unique=True, comment="推荐码")
    referred_by_id: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        comment="推荐人ID"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    __table_args__ = (
        Index("ix_users_role", "role"),
        Index("ix_users_referred_by", "referred_by_id"),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def has_permission(self, permission: str) -> bool:
        """管理员拥有全部权限"""
        return self.is_admin or permission in (self.permissions or [])

    @property
    def can_manage_orders(self) -> bool:
        return self.has_permission(MANAGE_ORDERS_PERMISSION)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, role={self.role}, balance={self.balance})>"
