"""
PodFlow 核心包
按需印刷（POD）订单与余额账本引擎
"""

__version__ = "1.0.0"
