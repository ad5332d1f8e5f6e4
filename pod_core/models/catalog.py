"""
商品目录与模板数据模型
目录/模板的增删改由外部系统负责，订单引擎只读取定价相关字段
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Dict, Any

from sqlalchemy import (
    BigInteger, String, Boolean, DateTime, Text,
    ForeignKey, Index, Numeric, UniqueConstraint, func
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, BigIntPK, JSONType


class Product(Base):
    """商品表"""
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, comment="商品名称")
    base_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, comment="基础生产价")

    available_colors: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list, comment="可选颜色")
    available_sizes: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list, comment="可选尺码")

    # 印刷面：[{"key": "front", "name": "Front", "price": "15.00"}, ...]
    views: Mapped[List[Dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list, comment="印刷面及加价")

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    in_stock: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    def view_price(self, view_key: str) -> Decimal:
        """获取印刷面加价，未配置返回 0"""
        for view in self.views or []:
            if view.get("key") == view_key:
                return Decimal(str(view.get("price") or "0"))
        return Decimal("0")

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, name={self.name}, base_price={self.base_price})>"


class SellerProductPrice(Base):
    """卖家专属价格表（覆盖基础生产价）"""
    __tablename__ = "seller_product_prices"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )
    product_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False
    )
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, comment="专属生产价")

    __table_args__ = (
        UniqueConstraint("user_id", "product_id", name="uq_seller_product_prices_user_product"),
    )


class Template(Base):
    """卖家设计模板表"""
    __tablename__ = "templates"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        comment="模板所有者"
    )
    product_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("products.id"),
        nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # 审核状态：pending / approved / rejected
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")

    colors: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list)
    sizes: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list)

    # 设计数据：{"view_states": {"front": {"objects": [...]}, ...}}
    design_config: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    __table_args__ = (
        Index("ix_templates_user_status", "user_id", "status"),
    )

    @property
    def is_approved(self) -> bool:
        return self.status == "approved"
