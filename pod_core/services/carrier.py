"""
承运商网关接口
具体承运商由插件实现（见 plugins.pod.carriers）
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

from pod_core.models.orders import Order


@dataclass
class ParcelCreated:
    """建单成功结果"""
    tracking_code: str
    response: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ParcelTracking:
    """查询结果，raw_status 为空表示承运商未返回可识别的状态"""
    raw_status: Optional[str]
    response: Any = None


class CarrierGateway(Protocol):
    """承运商网关"""

    name: str

    async def create_parcel(self, order: Order, note: Optional[str] = None) -> ParcelCreated:
        """创建包裹，失败抛出 ShippingFailureError"""
        ...

    async def track_parcel(self, tracking_code: str) -> ParcelTracking:
        """查询包裹状态"""
        ...

    def classify_status(self, raw_status: str, current_status: str) -> str:
        """承运商原始状态 → 规范状态，无法识别时返回 current_status"""
        ...
