"""
EliteSpeed Webhook 处理器
处理承运商推送的包裹状态变更

推送通道不可靠：可能重复、乱序、格式不一致。
这里只负责校验与解析，状态变更统一交给 OrderLifecycle。
"""
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pod_core.config import get_settings
from pod_core.models.orders import Order
from pod_core.services.base import BaseService
from pod_core.services.order_lifecycle import OrderLifecycle
from pod_core.utils.errors import WebhookRejectedError

from ..client import truncate_for_log
from ..status_mapping import classify_status, extract_tracking_code, extract_webhook_status


class EliteSpeedWebhookHandler(BaseService):
    """EliteSpeed Webhook 处理器"""

    def __init__(self, db_manager=None, webhook_token: Optional[str] = None):
        super().__init__(db_manager)
        self.webhook_token = webhook_token if webhook_token is not None else get_settings().elitespeed_webhook_token

    def verify_token(self, provided: Optional[str]) -> None:
        """配置了令牌时校验，未配置则放行"""
        if self.webhook_token and provided != self.webhook_token:
            self.logger.warning("EliteSpeed webhook rejected: invalid token")
            raise WebhookRejectedError(401, "WEBHOOK_UNAUTHORIZED", "Invalid webhook token")

    async def handle(self, payload: Any, header_token: Optional[str] = None) -> Dict[str, Any]:
        """
        处理 Webhook

        Args:
            payload: 请求体（JSON 或表单解析后的字典）
            header_token: X-Webhook-Token 头

        Returns:
            处理结果

        Raises:
            WebhookRejectedError: 401 令牌错误 / 400 缺少字段 / 404 运单不存在
        """
        payload = payload if isinstance(payload, dict) else {}
        self.logger.info("EliteSpeed webhook received", payload=truncate_for_log(payload, 2000))

        self.verify_token(header_token or payload.get("token"))

        tracking_code = extract_tracking_code(payload)
        raw_status = extract_webhook_status(payload)
        if not tracking_code or not raw_status:
            self.logger.warning(
                "EliteSpeed webhook missing required fields",
                payload=truncate_for_log(payload, 2000),
                keys=sorted(payload.keys()),
            )
            raise WebhookRejectedError(400, "WEBHOOK_MALFORMED", "Missing required fields")

        transition = await self.execute_with_transaction(self._apply, tracking_code, raw_status)

        self.logger.info(
            "Order status updated via webhook",
            order_number=transition.order.order_number,
            tracking_number=tracking_code,
            old_status=transition.old_status,
            new_status=transition.new_status,
            raw_status=raw_status,
            changed=transition.changed,
        )
        return {
            "success": True,
            "message": "Order status updated",
            "order_number": transition.order.order_number,
            "status": transition.new_status,
            "changed": transition.changed,
        }

    async def _apply(self, session: AsyncSession, tracking_code: str, raw_status: str):
        result = await session.execute(
            select(Order.id).where(Order.tracking_number == tracking_code).limit(2)
        )
        order_ids = result.scalars().all()

        if not order_ids:
            self.logger.warning("EliteSpeed webhook: order not found", tracking_number=tracking_code, raw_status=raw_status)
            raise WebhookRejectedError(404, "WEBHOOK_ORDER_NOT_FOUND", "Order not found")
        if len(order_ids) > 1:
            self.logger.error("EliteSpeed webhook: tracking number matches several orders", tracking_number=tracking_code)
            raise WebhookRejectedError(409, "WEBHOOK_AMBIGUOUS_TRACKING", "Tracking number matches several orders")

        return await OrderLifecycle.apply_carrier_status(
            session, order_ids[0], raw_status, classify_status, "webhook"
        )
