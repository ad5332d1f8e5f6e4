"""
请求日志中间件

记录入站 API 请求：
- 请求方法、路径、查询参数
- 响应状态码与耗时
- 错误响应体（截断），便于排查卖家看到的错误
"""
import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from pod_core.utils.logger import get_logger, LogContext


# 不记录详细日志的路径
SKIP_DETAIL_PATHS = {
    "/healthz",
    "/favicon.ico",
}

# 敏感字段（不记录到日志）
SENSITIVE_FIELDS = {"password", "api_key", "apikey", "secret", "token", "authorization"}

# 最大记录的响应体大小（字节）
MAX_BODY_LOG_SIZE = 4000


class LoggingMiddleware(BaseHTTPMiddleware):
    """请求日志中间件"""

    def __init__(self, app, logger=None):
        super().__init__(app)
        self.logger = logger or get_logger("middleware.logging")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        trace_id = request.headers.get("x-trace-id") or str(uuid.uuid4())
        request.state.trace_id = trace_id

        method = request.method
        path = request.url.path
        skip_detail = path in SKIP_DETAIL_PATHS
        start_time = time.time()

        # 不能在 BaseHTTPMiddleware 中预先读取请求体，否则路由无法再读取
        query_params = dict(request.query_params) if request.query_params else None
        seller_id = getattr(request.state, "user_id", None)

        with LogContext(trace_id=trace_id, seller_id=seller_id):
            if not skip_detail:
                log_data = {
                    "direction": "inbound",
                    "method": method,
                    "path": path,
                    "client_ip": self._get_client_ip(request),
                }
                if query_params:
                    log_data["query_params"] = self._mask_sensitive(query_params)
                self.logger.info("API request", **log_data)

            try:
                response = await call_next(request)
            except Exception as e:
                self.logger.error(
                    "API request failed",
                    direction="inbound",
                    method=method,
                    path=path,
                    latency_ms=int((time.time() - start_time) * 1000),
                    result="error",
                    err=str(e),
                    exc_info=True
                )
                raise

            duration_ms = int((time.time() - start_time) * 1000)
            resp_log_data = {
                "direction": "inbound",
                "method": method,
                "path": path,
                "status_code": response.status_code,
                "latency_ms": duration_ms,
                "result": "success" if response.status_code < 400 else "error",
            }

            if response.status_code >= 400:
                body = await self._read_response_body(response)
                if body:
                    resp_log_data["response_body"] = self._truncate_body(body)
                self.logger.warning("API response error", **resp_log_data)
            elif not skip_detail:
                self.logger.info("API response", **resp_log_data)

            response.headers["X-Trace-Id"] = trace_id
            return response

    async def _read_response_body(self, response: Response) -> Optional[str]:
        """读取响应体并重建迭代器"""
        body_iterator = getattr(response, "body_iterator", None)
        if body_iterator is None:
            return None

        body = b""
        async for chunk in body_iterator:
            body += chunk

        async def replay():
            yield body

        response.body_iterator = replay()
        return body.decode("utf-8", errors="replace") if body else None

    def _mask_sensitive(self, data) -> dict:
        """脱敏敏感字段"""
        if isinstance(data, dict):
            masked = {}
            for key, value in data.items():
                if key.lower() in SENSITIVE_FIELDS:
                    masked[key] = "***MASKED***"
                elif isinstance(value, dict):
                    masked[key] = self._mask_sensitive(value)
                else:
                    masked[key] = value
            return masked
        return data

    def _truncate_body(self, body: str) -> str:
        if len(body) > MAX_BODY_LOG_SIZE:
            return body[:MAX_BODY_LOG_SIZE] + f"... [truncated, total {len(body)} bytes]"
        return body

    def _get_client_ip(self, request: Request) -> str:
        """获取客户端 IP"""
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip

        if request.client:
            return request.client.host

        return "unknown"
