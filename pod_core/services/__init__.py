"""
PodFlow 核心服务
"""
from .balance_ledger import BalanceLedger
from .order_lifecycle import OrderLifecycle, TransitionResult
from .orders import OrderDraft, OrdersService
from .pricing import LineItemRequest, PricingResolver, PricingSnapshot
from .settings_provider import DatabaseSettingsProvider, StaticSettingsProvider

__all__ = [
    "BalanceLedger",
    "OrderLifecycle",
    "TransitionResult",
    "OrderDraft",
    "OrdersService",
    "LineItemRequest",
    "PricingResolver",
    "PricingSnapshot",
    "DatabaseSettingsProvider",
    "StaticSettingsProvider",
]
