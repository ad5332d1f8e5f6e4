"""
EliteSpeed 插件服务
"""
from .reconciliation import OrderReconciliationService

__all__ = ["OrderReconciliationService"]
