"""
Celery 应用配置
"""
from celery import Celery
from celery.schedules import crontab
from pod_core.config import get_settings
from pod_core.utils.logger import get_logger

logger = get_logger(__name__)

settings = get_settings()

celery_app = Celery(
    "podflow",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "plugins.pod.carriers.elitespeed.tasks",  # EliteSpeed 插件任务
    ]
)

celery_app.conf.update(
    # 任务序列化
    task_serializer=settings.celery_task_serializer,
    result_serializer=settings.celery_result_serializer,
    accept_content=settings.celery_accept_content,

    timezone=settings.celery_timezone,
    enable_utc=True,

    task_default_queue=settings.celery_task_default_queue,
    task_routes={
        "pod.elitespeed.*": {"queue": "pod_carrier"},
    },

    result_expires=3600,
    task_ignore_result=False,

    # Worker 配置
    worker_prefetch_multiplier=1,  # 公平调度
    task_acks_late=True,
    worker_max_tasks_per_child=1000,

    # 任务超时（防止僵尸任务）
    task_soft_time_limit=300,
    task_time_limit=360,
    task_annotations={
        "pod.elitespeed.sync_order_statuses": {"soft_time_limit": 1500, "time_limit": 1560},
    },
)

# 定期任务：承运商对账（webhook 丢失时的兜底）
celery_app.conf.beat_schedule = {
    "elitespeed-sync-order-statuses": {
        "task": "pod.elitespeed.sync_order_statuses",
        "schedule": crontab(minute=settings.order_sync_cron_minutes),
        "kwargs": {"limit": settings.order_sync_batch_limit, "force": False},
        "options": {"queue": "pod_carrier"}
    },
}
