"""
PodFlow API 路由模块
"""

from fastapi import APIRouter
import logging

from .orders import router as orders_router, admin_router as admin_orders_router
from .wallet import router as wallet_router
from .admin_wallet import router as admin_wallet_router

logger = logging.getLogger(__name__)

# 创建主路由器
api_router = APIRouter()

# 注册核心路由
api_router.include_router(orders_router)
api_router.include_router(admin_orders_router)
api_router.include_router(wallet_router)
api_router.include_router(admin_wallet_router)

# 加载承运商插件路由
try:
    from plugins.pod.carriers.elitespeed import get_router as get_elitespeed_router

    elitespeed_router = get_elitespeed_router()
    if elitespeed_router:
        api_router.include_router(elitespeed_router)
        logger.info("Loaded EliteSpeed carrier plugin routes")
    else:
        logger.warning("EliteSpeed carrier plugin has no routes")
except ImportError as e:
    logger.warning(f"Could not import EliteSpeed carrier plugin: {e}")
