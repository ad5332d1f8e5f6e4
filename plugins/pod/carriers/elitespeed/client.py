"""
EliteSpeed API 客户端
处理与 EliteSpeed 承运商 API 的交互：建单、查询轨迹、待揽收列表
"""
import json
import time
import uuid
from typing import Any, Dict, Optional

import httpx

from pod_core.config import get_settings
from pod_core.utils.errors import ShippingFailureError
from pod_core.utils.external_api_timing import log_external_api_timing
from pod_core.utils.logger import get_logger

logger = get_logger(__name__)

# 建单默认字段（调用方可覆盖）
PARCEL_DEFAULTS = {
    "from_stock": 0,
    "change": 0,
    "openpackage": 0,
}


def truncate_for_log(obj: Any, max_len: int = 5000) -> Optional[str]:
    """截断对象用于日志记录"""
    if obj is None:
        return None
    try:
        s = json.dumps(obj, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        s = str(obj)
    if len(s) > max_len:
        return s[:max_len] + f"... [truncated, total {len(s)} chars]"
    return s


class EliteSpeedClient:
    """
    EliteSpeed API 客户端

    使用方式:
        async with EliteSpeedClient() as client:
            created = await client.create_parcel(payload)
            tracking = await client.track_parcel(created["code_shippment"])
    """

    def __init__(
        self,
        api_token: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.api_token = api_token if api_token is not None else settings.elitespeed_api_token
        self.base_url = (base_url or settings.elitespeed_base_url).rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Accept": "application/json", "api-Token": self.api_token},
            timeout=timeout or settings.elitespeed_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """关闭客户端连接"""
        await self.client.aclose()

    async def _request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """
        发送请求并记录出站日志与耗时

        网络异常（超时、连接失败）原样抛出，由调用方决定如何处理。
        """
        request_id = str(uuid.uuid4())
        api_start = time.perf_counter()

        logger.info(
            "EliteSpeed API request",
            direction="outbound",
            method=method,
            endpoint=endpoint,
            request_id=request_id,
            request_body=truncate_for_log(data),
        )

        try:
            response = await self.client.request(method, endpoint, json=data)
        except httpx.HTTPError as e:
            api_elapsed_ms = (time.perf_counter() - api_start) * 1000
            logger.error(
                "EliteSpeed API request failed",
                direction="outbound",
                method=method,
                endpoint=endpoint,
                latency_ms=int(api_elapsed_ms),
                request_id=request_id,
                error=str(e),
                error_type=type(e).__name__,
                result="error",
            )
            log_external_api_timing(
                "EliteSpeed", method, endpoint, api_elapsed_ms,
                f"EXCEPTION={type(e).__name__}"
            )
            raise

        api_elapsed_ms = (time.perf_counter() - api_start) * 1000
        log_level = logger.info if response.is_success else logger.warning
        log_level(
            "EliteSpeed API response",
            direction="outbound",
            method=method,
            endpoint=endpoint,
            status_code=response.status_code,
            latency_ms=int(api_elapsed_ms),
            request_id=request_id,
            response_body=response.text[:5000] if response.text else None,
            result="success" if response.is_success else "error",
        )
        log_external_api_timing(
            "EliteSpeed", method, endpoint, api_elapsed_ms,
            "" if response.is_success else f"ERROR={response.status_code}"
        )
        return response

    @staticmethod
    def _json_or_text(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return response.text

    async def create_parcel(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        创建包裹

        POST /client/post/colis/add-colis

        Raises:
            ShippingFailureError: 网络错误、超时或非 2xx 响应
        """
        data = {**PARCEL_DEFAULTS, **payload}
        try:
            response = await self._request("POST", "/client/post/colis/add-colis", data)
        except httpx.HTTPError as e:
            raise ShippingFailureError(
                f"EliteSpeed request failed: {type(e).__name__}",
                carrier_payload={"error": str(e)}
            )

        body = self._json_or_text(response)
        if not response.is_success:
            raise ShippingFailureError(
                f"EliteSpeed rejected the parcel (HTTP {response.status_code})",
                carrier_payload=body
            )
        if not isinstance(body, dict):
            raise ShippingFailureError("EliteSpeed returned an unexpected response", carrier_payload=body)
        return body

    async def track_parcel(self, code: str) -> Optional[Any]:
        """
        查询包裹轨迹

        GET /client/colis/track/{code}，非 2xx 返回 None
        """
        response = await self._request("GET", f"/client/colis/track/{code}")
        if not response.is_success:
            return None
        return self._json_or_text(response)

    async def list_pickup_parcels(self) -> Any:
        """
        待揽收包裹列表

        GET /client/colis/list-colis-ramassage/
        """
        response = await self._request("GET", "/client/colis/list-colis-ramassage/")
        response.raise_for_status()
        return self._json_or_text(response)
