"""
PodFlow EliteSpeed Carrier Plugin
面向 EliteSpeed 承运商的建单、轨迹查询、状态推送与对账
"""
import logging
from typing import Optional

from fastapi import APIRouter

logger = logging.getLogger(__name__)

# 插件版本
__version__ = "1.0.0"


def get_router() -> Optional[APIRouter]:
    """
    获取插件的 API 路由

    Returns:
        插件的路由器，加载失败时返回 None
    """
    try:
        from .api.routes import router
        return router
    except ImportError as e:
        logger.error(f"EliteSpeed router import error: {e}", exc_info=True)
        return None
