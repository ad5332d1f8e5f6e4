"""
PodFlow 数据模型包
"""
from .base import Base
from .users import User
from .catalog import Product, SellerProductPrice, Template
from .customers import Customer
from .orders import Order, OrderItem, OrderSequence, OrderStatus, OrderStatusHistory
from .ledger import BalanceTransaction, Deposit, TransactionType, Withdrawal
from .settings import SystemSetting

__all__ = [
    "Base",
    "User",
    "Product",
    "SellerProductPrice",
    "Template",
    "Customer",
    "Order",
    "OrderItem",
    "OrderSequence",
    "OrderStatus",
    "OrderStatusHistory",
    "BalanceTransaction",
    "Deposit",
    "TransactionType",
    "Withdrawal",
    "SystemSetting",
]
