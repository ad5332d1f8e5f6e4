"""
API 请求/响应模型
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar('T')


class ApiResponse(BaseModel, Generic[T]):
    """统一 API 响应格式"""
    ok: bool = Field(description="操作是否成功")
    data: Optional[T] = Field(default=None, description="响应数据")
    error: Optional[Dict[str, Any]] = Field(default=None, description="错误信息（RFC7807 Problem Details）")
    metadata: Optional[Dict[str, Any]] = Field(default=None, description="元数据")

    @classmethod
    def success(cls, data: T, metadata: Optional[Dict[str, Any]] = None) -> "ApiResponse[T]":
        """创建成功响应"""
        return cls(ok=True, data=data, metadata=metadata)


# ============ 订单 ============

class OrderItemRequest(BaseModel):
    """下单行项目"""
    product_id: Optional[int] = None
    template_id: Optional[int] = None
    color: str
    size: str
    quantity: int = 1
    reorder_from_order_id: Optional[int] = Field(default=None, description="重下单来源订单ID")


class CreateOrderRequest(BaseModel):
    """下单请求"""
    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_phone: str = Field(..., min_length=1, max_length=32)
    customer_email: Optional[str] = None
    address_street: str = Field(..., min_length=1)
    address_city: str = Field(..., min_length=1, max_length=120)
    address_postal_code: Optional[str] = None
    address_country: str = "Morocco"
    include_packaging: bool = False
    total_price: Decimal = Field(..., description="客户代收金额")
    notes: Optional[str] = None
    items: List[OrderItemRequest]


class OrderItemResponse(BaseModel):
    """订单行项目"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    template_id: Optional[int] = None
    product_name: str
    color: str
    size: str
    quantity: int
    unit_cost: Decimal
    line_cost: Decimal
    reorder_from_order_id: Optional[int] = None


class OrderResponse(BaseModel):
    """订单响应"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_number: str
    user_id: int
    customer_id: Optional[int] = None
    status: str
    shipping_status: Optional[str] = None
    recipient_name: str
    recipient_phone: str
    address_street: str
    address_city: str
    quantity: int
    unit_price: Decimal
    items_cost: Decimal
    packaging_fee: Decimal
    shipping_fee: Decimal
    total_amount: Decimal
    tracking_number: Optional[str] = None
    allow_reshipping: bool
    is_reordered: bool
    reordered_from_id: Optional[int] = None
    created_at: Optional[datetime] = None
    items: List[OrderItemResponse] = []


class UpdateStatusRequest(BaseModel):
    """手动修改状态"""
    status: str
    notes: Optional[str] = None


class StatusChangeResponse(BaseModel):
    """状态变更结果"""
    order_id: int
    order_number: str
    old_status: str
    new_status: str
    changed: bool
    raw_status: Optional[str] = None
    credited: bool = False


class ToggleReshippingResponse(BaseModel):
    order_id: int
    allow_reshipping: bool


class OrderStatsResponse(BaseModel):
    """卖家订单统计"""
    total_orders: int
    pending_orders: int
    paid_orders: int
    paid_revenue: Decimal


# ============ 积分 / 充值 / 提现 ============

class ExchangePointsRequest(BaseModel):
    points: int = Field(..., description="兑换积分数（1000 的整数倍）")


class ExchangePointsResponse(BaseModel):
    points_exchanged: int
    amount_credited: Decimal
    balance: Decimal
    points: int


class DepositRequest(BaseModel):
    amount: Decimal
    reference: Optional[str] = Field(default=None, max_length=120)


class DepositResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    amount: Decimal
    status: str
    reference: Optional[str] = None
    admin_notes: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class WithdrawalRequest(BaseModel):
    amount: Decimal
    bank_details: Optional[str] = None


class WithdrawalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    amount: Decimal
    fee: Decimal
    net_amount: Decimal
    status: str
    admin_notes: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class ReviewRequest(BaseModel):
    """审核请求：approve 为 true 表示通过"""
    approve: bool
    notes: Optional[str] = None
