"""
EliteSpeed 承运商网关
把 API 客户端、载荷构建和状态映射组合成核心层使用的 CarrierGateway
"""
from typing import Any, Callable, Optional

from pod_core.config import get_settings
from pod_core.models.orders import Order
from pod_core.services.carrier import ParcelCreated, ParcelTracking
from pod_core.utils.errors import ServiceUnavailableError, ShippingFailureError
from pod_core.utils.logger import get_logger

from .client import EliteSpeedClient
from .payloads import build_parcel_payload
from .status_mapping import classify_status, extract_tracking_status

logger = get_logger(__name__)


def extract_created_code(response: Any) -> Optional[str]:
    """建单响应中的运单号：顶层或 data 内的 code_shippment"""
    if not isinstance(response, dict):
        return None
    code = response.get("code_shippment")
    if not code and isinstance(response.get("data"), dict):
        code = response["data"].get("code_shippment")
    return str(code).strip() if code else None


class EliteSpeedGateway:
    """EliteSpeed 网关（每次调用使用独立的 HTTP 客户端）"""

    name = "elitespeed"

    def __init__(self, client_factory: Optional[Callable[[], EliteSpeedClient]] = None):
        self.client_factory = client_factory or EliteSpeedClient
        self.settings = get_settings()

    async def create_parcel(self, order: Order, note: Optional[str] = None) -> ParcelCreated:
        payload = build_parcel_payload(
            order, note,
            description_max_length=self.settings.elitespeed_description_max_length
        )
        async with self.client_factory() as client:
            response = await client.create_parcel(payload)

        code = extract_created_code(response)
        if not code:
            logger.error(
                "EliteSpeed response without tracking code",
                order_id=order.id,
                order_number=order.order_number,
                response=response,
            )
            raise ShippingFailureError(
                "EliteSpeed did not return a tracking code",
                carrier_payload=response
            )
        return ParcelCreated(tracking_code=code, response=response)

    async def track_parcel(self, tracking_code: str) -> ParcelTracking:
        async with self.client_factory() as client:
            response = await client.track_parcel(tracking_code)

        if response is None:
            raise ServiceUnavailableError(
                code="CARRIER_TRACKING_FAILED",
                detail=f"EliteSpeed tracking failed for {tracking_code}"
            )
        return ParcelTracking(raw_status=extract_tracking_status(response), response=response)

    def classify_status(self, raw_status: str, current_status: str) -> str:
        return classify_status(raw_status, current_status)


def get_gateway() -> EliteSpeedGateway:
    """依赖注入：EliteSpeed 网关"""
    return EliteSpeedGateway()
