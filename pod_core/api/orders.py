"""
订单 API
"""
from fastapi import APIRouter, Depends

from pod_core.models.users import User
from pod_core.services.orders import OrderDraft, OrdersService
from pod_core.services.pricing import LineItemRequest
from pod_core.utils.logger import get_logger
from .auth import get_current_user, require_order_manager
from .models import (
    ApiResponse, CreateOrderRequest, OrderResponse, OrderStatsResponse,
    StatusChangeResponse, ToggleReshippingResponse, UpdateStatusRequest
)

router = APIRouter(prefix="/orders", tags=["Orders"])
admin_router = APIRouter(prefix="/admin/orders", tags=["Admin Orders"])
logger = get_logger(__name__)


def get_orders_service() -> OrdersService:
    """依赖注入：订单服务"""
    return OrdersService()


def to_draft(body: CreateOrderRequest) -> OrderDraft:
    return OrderDraft(
        customer_name=body.customer_name,
        customer_phone=body.customer_phone,
        customer_email=body.customer_email,
        address_street=body.address_street,
        address_city=body.address_city,
        address_postal_code=body.address_postal_code,
        address_country=body.address_country,
        include_packaging=body.include_packaging,
        total_price=body.total_price,
        notes=body.notes,
        items=[
            LineItemRequest(
                product_id=item.product_id,
                template_id=item.template_id,
                color=item.color,
                size=item.size,
                quantity=item.quantity,
                reorder_from_order_id=item.reorder_from_order_id,
            )
            for item in body.items
        ],
    )


@router.post("/from-product", response_model=ApiResponse[OrderResponse], status_code=201)
async def create_order_from_product(
    body: CreateOrderRequest,
    current_user: User = Depends(get_current_user),
    service: OrdersService = Depends(get_orders_service)
):
    """
    按目录商品下单

    - 生产成本从卖家余额扣除，余额不足返回 422 INSUFFICIENT_BALANCE
    - 账户未激活返回 403 ACCOUNT_NOT_ACTIVATED
    """
    order = await service.create_from_product(current_user.id, to_draft(body))
    return ApiResponse.success(OrderResponse.model_validate(order))


@router.post("/from-template", response_model=ApiResponse[OrderResponse], status_code=201)
async def create_order_from_template(
    body: CreateOrderRequest,
    current_user: User = Depends(get_current_user),
    service: OrdersService = Depends(get_orders_service)
):
    """按已审核的卖家模板下单"""
    order = await service.create_from_template(current_user.id, to_draft(body))
    return ApiResponse.success(OrderResponse.model_validate(order))


@router.get("/stats", response_model=ApiResponse[OrderStatsResponse])
async def get_order_stats(
    current_user: User = Depends(get_current_user),
    service: OrdersService = Depends(get_orders_service)
):
    stats = await service.order_stats(current_user.id)
    return ApiResponse.success(OrderStatsResponse(**stats))


@router.put("/{order_id}/status", response_model=ApiResponse[StatusChangeResponse])
async def update_order_status(
    order_id: int,
    body: UpdateStatusRequest,
    current_user: User = Depends(require_order_manager),
    service: OrdersService = Depends(get_orders_service)
):
    """手动修改订单状态（管理员/员工）"""
    result = await service.update_status(order_id, current_user, body.status, body.notes)
    return ApiResponse.success(StatusChangeResponse(**result.to_dict()))


@admin_router.put("/{order_id}/toggle-reshipping", response_model=ApiResponse[ToggleReshippingResponse])
async def toggle_reshipping(
    order_id: int,
    current_user: User = Depends(require_order_manager),
    service: OrdersService = Depends(get_orders_service)
):
    """切换订单的重新发货许可，已退货订单返回 409"""
    allowed = await service.toggle_reshipping(order_id, current_user)
    return ApiResponse.success(ToggleReshippingResponse(order_id=order_id, allow_reshipping=allowed))
