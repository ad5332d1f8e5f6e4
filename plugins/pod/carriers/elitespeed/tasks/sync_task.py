"""
承运商状态对账定时任务
默认每 30 分钟执行一次（POD__ORDER_SYNC_CRON_MINUTES）
"""
import asyncio
from typing import Any, Dict, Optional

from pod_core.database import get_db_manager, reset_db_manager
from pod_core.tasks.celery_app import celery_app
from pod_core.utils.logger import get_logger, LogContext

logger = get_logger(__name__)


async def run_status_sync(limit: Optional[int] = None, force: bool = False) -> Dict[str, Any]:
    """执行一轮对账（Celery 任务与命令行脚本共用）"""
    from ..gateway import EliteSpeedGateway
    from ..services.reconciliation import OrderReconciliationService

    db_manager = get_db_manager()
    try:
        service = OrderReconciliationService(EliteSpeedGateway(), db_manager=db_manager)
        return await service.sync_statuses(limit=limit, force=force)
    finally:
        await db_manager.close()


@celery_app.task(bind=True, name="pod.elitespeed.sync_order_statuses")
def sync_order_statuses(self, limit: Optional[int] = None, force: bool = False):
    """
    定时任务：按承运商轨迹同步订单状态

    Args:
        limit: 本轮最多处理的订单数
        force: 是否包含已退回的订单
    """
    with LogContext(trace_id=self.request.id, plugin="elitespeed"):
        try:
            logger.info("Starting scheduled order status sync", limit=limit, force=force)

            # 在新事件循环中运行，先重置数据库连接，避免引擎绑定到旧循环
            reset_db_manager()
            loop = asyncio.new_event_loop()
            asyncio.set_event_loop(loop)
            try:
                result = loop.run_until_complete(run_status_sync(limit=limit, force=force))
            finally:
                loop.close()
                asyncio.set_event_loop(None)

            logger.info(
                "Scheduled order status sync completed",
                updated=result["updated"],
                unchanged=result["unchanged"],
                failed=result["failed"],
                total=result["total"],
            )
            return result

        except Exception as e:
            logger.error(f"Scheduled order status sync failed: {e}", exc_info=True)
            return {"success": False, "error": str(e)}
