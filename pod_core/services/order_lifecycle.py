"""
订单状态机
统一处理状态变更及其副作用，被 Webhook、对账同步、手动修改、发货共用

副作用：
- 进入 RETURNED：强制 allow_reshipping = False
- 从非 PAID 进入 PAID：按 total_amount 给卖家回款，每单只回款一次
"""
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pod_core.models.ledger import TransactionType
from pod_core.models.orders import Order, OrderStatus, OrderStatusHistory
from pod_core.utils.errors import NotFoundError, ValidationError
from pod_core.utils.logger import get_logger
from .balance_ledger import BalanceLedger, utcnow

logger = get_logger(__name__)

# 来自承运商的状态来源，这些来源受终态保护
CARRIER_SOURCES = ("webhook", "sync", "track")


@dataclass
class TransitionResult:
    """状态变更结果"""
    order: Order
    old_status: str
    new_status: str
    changed: bool
    raw_changed: bool = False
    credited: bool = False

    def to_dict(self) -> dict:
        return {
            "order_id": self.order.id,
            "order_number": self.order.order_number,
            "old_status": self.old_status,
            "new_status": self.new_status,
            "changed": self.changed,
            "raw_status": self.order.shipping_status,
            "credited": self.credited,
        }


def normalize_status(status: str) -> str:
    """校验并规范化状态值"""
    value = (status or "").strip().upper()
    try:
        return OrderStatus(value).value
    except ValueError:
        raise ValidationError(
            code="INVALID_STATUS",
            detail=f"Invalid order status: {status}"
        )


class OrderLifecycle:
    """订单状态机（单一职责）"""

    @staticmethod
    async def lock_order(db: AsyncSession, order_id: int) -> Order:
        """行锁读取订单，状态比较与写入在同一事务内完成"""
        result = await db.execute(
            select(Order)
            .where(Order.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFoundError(code="ORDER_NOT_FOUND", resource=f"Order {order_id}")
        return order

    @staticmethod
    def guard_carrier_transition(old_status: str, new_status: str) -> bool:
        """
        承运商来源的终态保护（防止乱序/重复推送导致状态回退）

        - PAID 之后不再接受承运商状态
        - RETURNED 之后只接受 PAID（派送失败后最终签收）
        """
        if old_status == OrderStatus.PAID.value:
            return False
        if old_status == OrderStatus.RETURNED.value and new_status != OrderStatus.PAID.value:
            return False
        return True

    @staticmethod
    async def apply_status(
        db: AsyncSession,
        order_id: int,
        new_status: Optional[str],
        source: str,
        raw_status: Optional[str] = None,
        updated_by: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> TransitionResult:
        """
        应用状态变更（调用方负责事务）

        Args:
            db: 数据库会话（需在事务中）
            order_id: 订单ID
            new_status: 新规范状态，None 表示保持不变
            source: 来源 webhook / sync / track / ship / manual
            raw_status: 承运商原始状态文本，始终原样保存
            updated_by: 操作人
            notes: 备注
        """
        order = await OrderLifecycle.lock_order(db, order_id)
        old_status = order.status

        raw_changed = False
        if raw_status is not None and raw_status != order.shipping_status:
            order.shipping_status = raw_status
            raw_changed = True

        target = old_status
        if new_status is not None and new_status != old_status:
            if source in CARRIER_SOURCES and not OrderLifecycle.guard_carrier_transition(old_status, new_status):
                logger.info(
                    "Carrier status ignored for terminal order",
                    order_id=order.id,
                    order_number=order.order_number,
                    old_status=old_status,
                    new_status=new_status,
                    raw_status=raw_status,
                    source=source,
                )
            else:
                target = new_status

        changed = target != old_status
        order.status = target

        # 退货状态下永远不允许重发
        if order.status == OrderStatus.RETURNED.value and order.allow_reshipping:
            order.allow_reshipping = False

        credited = False
        if (
            old_status != OrderStatus.PAID.value
            and target == OrderStatus.PAID.value
            and order.delivery_credited_at is None
        ):
            await BalanceLedger.credit(
                db, order.user_id, order.total_amount,
                TransactionType.DELIVERY_CREDIT,
                order_id=order.id,
                notes=f"Delivery of order {order.order_number}"
            )
            order.delivery_credited_at = utcnow()
            credited = True

        if changed or raw_changed:
            db.add(OrderStatusHistory(
                order_id=order.id,
                old_status=old_status,
                new_status=target,
                raw_status=raw_status,
                source=source,
                notes=notes,
                updated_by=updated_by,
            ))

        await db.flush()

        if changed:
            logger.info(
                "Order status changed",
                order_id=order.id,
                order_number=order.order_number,
                old_status=old_status,
                new_status=target,
                raw_status=raw_status,
                source=source,
                credited=credited,
            )

        return TransitionResult(
            order=order,
            old_status=old_status,
            new_status=target,
            changed=changed,
            raw_changed=raw_changed,
            credited=credited,
        )

    @staticmethod
    async def apply_carrier_status(
        db: AsyncSession,
        order_id: int,
        raw_status: str,
        classify: Callable[[str, str], str],
        source: str,
    ) -> TransitionResult:
        """
        应用承运商原始状态：先在行锁下读取当前状态，再分类、写入

        Args:
            classify: (raw_status, current_status) -> 规范状态，无法识别时返回 current_status
        """
        order = await OrderLifecycle.lock_order(db, order_id)
        new_status = classify(raw_status, order.status)
        return await OrderLifecycle.apply_status(
            db, order_id, new_status, source, raw_status=raw_status
        )
