"""
承运商状态对账
Webhook 不保证送达，定时逐单查询承运商轨迹作为兜底

每个订单独立事务：单个订单失败只计入汇总，不影响批次中其他订单，
中途崩溃时已处理的订单保持正确状态。
"""
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pod_core.config import get_settings
from pod_core.models.orders import Order, OrderStatus
from pod_core.services.base import BaseService
from pod_core.services.carrier import CarrierGateway
from pod_core.services.orders import OrdersService
from pod_core.utils.errors import PodFlowException

OPEN_STATUSES = (
    OrderStatus.PENDING.value,
    OrderStatus.PRINTED.value,
    OrderStatus.SHIPPED.value,
    OrderStatus.DELIVERING.value,
)


class OrderReconciliationService(BaseService):
    """承运商状态对账服务"""

    def __init__(
        self,
        gateway: CarrierGateway,
        db_manager=None,
        orders_service: Optional[OrdersService] = None,
    ):
        super().__init__(db_manager)
        self.gateway = gateway
        self.orders_service = orders_service or OrdersService(self.db_manager)

    async def _candidates(self, session: AsyncSession, limit: int, force: bool) -> List[Dict[str, Any]]:
        """
        待对账订单：有运单号且未到终态

        force 时包含已退回的订单（已签收回款的订单始终排除）
        """
        query = select(Order.id, Order.order_number, Order.tracking_number).where(
            Order.tracking_number.is_not(None),
            Order.tracking_number != "",
        )
        if force:
            query = query.where(Order.status != OrderStatus.PAID.value)
        else:
            query = query.where(Order.status.in_(OPEN_STATUSES))
        query = query.order_by(Order.id).limit(limit)

        result = await session.execute(query)
        return [dict(row._mapping) for row in result.all()]

    async def sync_statuses(self, limit: Optional[int] = None, force: bool = False) -> Dict[str, Any]:
        """
        执行一轮对账

        Returns:
            {"updated", "unchanged", "failed", "total", "failures": [...]}
        """
        limit = limit or get_settings().order_sync_batch_limit
        candidates = await self.execute_with_session(self._candidates, limit, force)

        summary: Dict[str, Any] = {
            "updated": 0,
            "unchanged": 0,
            "failed": 0,
            "total": len(candidates),
            "failures": [],
        }
        self.logger.info("Order status sync started", total=len(candidates), limit=limit, force=force)

        for row in candidates:
            error: Optional[str] = None
            refresh = None
            try:
                refresh = await self.orders_service.refresh_from_carrier(
                    row["id"], row["tracking_number"], self.gateway, "sync"
                )
                error = refresh.error
            except PodFlowException as e:
                error = e.detail or e.title
            except Exception as e:
                self.logger.error("Order status sync failed", order_id=row["id"], exc_info=True)
                error = str(e) or type(e).__name__

            if error:
                summary["failed"] += 1
                summary["failures"].append({
                    "order_id": row["id"],
                    "order_number": row["order_number"],
                    "tracking_number": row["tracking_number"],
                    "error": error,
                })
                self.logger.warning(
                    "Order status sync skipped",
                    order_id=row["id"],
                    order_number=row["order_number"],
                    tracking_number=row["tracking_number"],
                    error=error,
                )
            elif refresh and refresh.transition and (refresh.transition.changed or refresh.transition.raw_changed):
                summary["updated"] += 1
            else:
                summary["unchanged"] += 1

        self.logger.info(
            "Order status sync completed",
            updated=summary["updated"],
            unchanged=summary["unchanged"],
            failed=summary["failed"],
            total=summary["total"],
        )
        return summary

    async def sync_stats(self) -> Dict[str, Any]:
        """对账统计：有运单号的订单数、待对账数、各状态数量"""
        async def _stats(session: AsyncSession) -> Dict[str, Any]:
            has_tracking = Order.tracking_number.is_not(None)
            with_tracking = await session.scalar(select(func.count(Order.id)).where(has_tracking))
            pending_sync = await session.scalar(
                select(func.count(Order.id)).where(has_tracking, Order.status.in_(OPEN_STATUSES))
            )
            result = await session.execute(
                select(Order.status, func.count(Order.id)).group_by(Order.status)
            )
            by_status = {status.value: 0 for status in OrderStatus}
            for status, count in result.all():
                by_status[status] = count
            return {
                "with_tracking": with_tracking or 0,
                "pending_sync": pending_sync or 0,
                "by_status": by_status,
            }
        return await self.execute_with_session(_stats)
