"""
EliteSpeed 插件定时任务
"""

from .sync_task import sync_order_statuses, run_status_sync

__all__ = ["sync_order_statuses", "run_status_sync"]
