"""
EliteSpeed 插件 API 路由
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from pod_core.api.auth import get_current_user, require_order_manager
from pod_core.api.models import ApiResponse, OrderResponse
from pod_core.api.orders import get_orders_service
from pod_core.models.users import User
from pod_core.services.orders import OrdersService
from pod_core.utils.logger import get_logger

from ..gateway import EliteSpeedGateway, get_gateway
from ..services.reconciliation import OrderReconciliationService
from ..webhooks.handler import EliteSpeedWebhookHandler

router = APIRouter(tags=["EliteSpeed"])
logger = get_logger(__name__)


class ShipRequest(BaseModel):
    note: Optional[str] = Field(default=None, max_length=500, description="给承运商的备注")


class ShipResponse(BaseModel):
    order: OrderResponse
    tracking_number: str
    carrier_response: Dict[str, Any] = {}


class TrackResponse(BaseModel):
    order: OrderResponse
    tracking: Any = None
    synced: bool
    changed: bool
    error: Optional[str] = None


class SyncRequest(BaseModel):
    limit: Optional[int] = Field(default=None, ge=1, le=5000)
    force: bool = False


def get_webhook_handler() -> EliteSpeedWebhookHandler:
    return EliteSpeedWebhookHandler()


def get_reconciliation_service(
    gateway: EliteSpeedGateway = Depends(get_gateway),
) -> OrderReconciliationService:
    return OrderReconciliationService(gateway)


async def _read_payload(request: Request) -> Dict[str, Any]:
    """承运商可能以 JSON 或表单提交"""
    content_type = request.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            payload = await request.json()
        except ValueError:
            return {}
        return payload if isinstance(payload, dict) else {"data": payload}
    form = await request.form()
    return dict(form)


@router.post("/webhooks/elitespeed")
async def elitespeed_webhook(
    request: Request,
    handler: EliteSpeedWebhookHandler = Depends(get_webhook_handler)
):
    """
    EliteSpeed 状态推送

    - 401：令牌错误
    - 400：缺少运单号或状态
    - 404：运单号不存在
    """
    payload = await _read_payload(request)
    return await handler.handle(payload, request.headers.get("X-Webhook-Token"))


@router.post("/admin/orders/{order_id}/ship", response_model=ApiResponse[ShipResponse])
async def ship_order(
    order_id: int,
    body: Optional[ShipRequest] = None,
    current_user: User = Depends(get_current_user),
    service: OrdersService = Depends(get_orders_service),
    gateway: EliteSpeedGateway = Depends(get_gateway)
):
    """
    提交 EliteSpeed 发货

    管理员可重复发货；其他用户只能发货未分配运单号且允许重发的订单。
    承运商失败返回 502 SHIPPING_FAILED，订单不变。
    """
    result = await service.ship(order_id, current_user, gateway, body.note if body else None)
    return ApiResponse.success(ShipResponse(
        order=OrderResponse.model_validate(result["order"]),
        tracking_number=result["tracking_number"],
        carrier_response=result["carrier_response"] or {},
    ))


@router.get("/admin/orders/{order_id}/track", response_model=ApiResponse[TrackResponse])
async def track_order(
    order_id: int,
    current_user: User = Depends(get_current_user),
    service: OrdersService = Depends(get_orders_service),
    gateway: EliteSpeedGateway = Depends(get_gateway)
):
    """查询承运商轨迹并同步订单状态，承运商不可用时返回当前订单与错误信息"""
    result = await service.track(order_id, current_user, gateway)
    return ApiResponse.success(TrackResponse(
        order=OrderResponse.model_validate(result["order"]),
        tracking=result["tracking"],
        synced=result["synced"],
        changed=result["changed"],
        error=result["error"],
    ))


@router.post("/admin/orders/sync-statuses")
async def sync_order_statuses(
    body: Optional[SyncRequest] = None,
    current_user: User = Depends(require_order_manager),
    service: OrderReconciliationService = Depends(get_reconciliation_service)
):
    """手动触发一轮承运商对账"""
    body = body or SyncRequest()
    logger.info("Manual order status sync requested", actor_id=current_user.id, limit=body.limit, force=body.force)
    summary = await service.sync_statuses(limit=body.limit, force=body.force)
    return ApiResponse.success(summary)


@router.get("/admin/orders/sync-stats")
async def get_sync_stats(
    current_user: User = Depends(require_order_manager),
    service: OrderReconciliationService = Depends(get_reconciliation_service)
):
    stats = await service.sync_stats()
    return ApiResponse.success(stats)
